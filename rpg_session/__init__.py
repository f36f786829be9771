"""Turn-based narrative session coordinator for text role-playing rooms."""
