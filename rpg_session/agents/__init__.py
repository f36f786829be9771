"""Agents run inside a round: mechanics resolution and world-memory extraction."""
