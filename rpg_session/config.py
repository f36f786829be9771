"""Session configuration (backend connection, memory limits, history size).

Values are resolved in order of increasing precedence:

    _CONFIG_DEFAULTS  →  {data_dir}/config.json  →  environment variables

The launcher loads `.env` with python-dotenv before calling get_config(), so
`.env` entries arrive here as ordinary environment variables.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from rpg_session.agents.world_context import WorldContextLimits
from rpg_session.llm import HttpLLM

logger = logging.getLogger(__name__)

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm": {
        "provider_url": "http://localhost:1234",
        "api_key": "",
        "model": "",
        "timeout": 120,
    },
    "world_context": {
        "max_recent_events": 12,
        "max_world_facts": 50,
    },
    "history": {
        "max_turns": 20,
    },
    "autosave": True,
}

# env var -> (section, key, type)
_ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "LLM_PROVIDER_URL": ("llm", "provider_url", str),
    "LLM_API_KEY": ("llm", "api_key", str),
    "LLM_MODEL": ("llm", "model", str),
    "LLM_TIMEOUT": ("llm", "timeout", float),
    "HISTORY_MAX_TURNS": ("history", "max_turns", int),
}


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def default_config() -> dict[str, Any]:
    """A fresh deep copy of the defaults."""
    return json.loads(json.dumps(_CONFIG_DEFAULTS))


def get_config(data_dir: Path | None = None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values and the environment."""
    config = default_config()

    if data_dir is not None:
        path = _config_path(data_dir)
        if path.is_file():
            stored = json.loads(path.read_text())
            for key, value in stored.items():
                if isinstance(config.get(key), dict) and isinstance(value, dict):
                    config[key].update(value)
                elif key in config:
                    config[key] = value
                else:
                    logger.warning("Ignoring unknown config key %r in %s", key, path)

    env = os.environ if environ is None else environ
    for var, (section, key, cast) in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw in (None, ""):
            continue
        try:
            config[section][key] = cast(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: expected %s", var, raw, cast.__name__)
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into the stored config.json and persist. Returns full config."""
    path = _config_path(data_dir)
    stored = json.loads(path.read_text()) if path.is_file() else {}
    for key, value in fields.items():
        if isinstance(stored.get(key), dict) and isinstance(value, dict):
            stored[key].update(value)
        else:
            stored[key] = value
    data_dir.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(stored, indent=2))
    return get_config(data_dir)


def create_llm(config: dict[str, Any]) -> HttpLLM:
    llm = config["llm"]
    return HttpLLM(
        provider_url=llm["provider_url"],
        api_key=llm.get("api_key") or "",
        model=llm.get("model") or "",
        timeout=float(llm.get("timeout", 120)),
    )


def world_context_limits(config: dict[str, Any]) -> WorldContextLimits:
    return WorldContextLimits(**config["world_context"])
