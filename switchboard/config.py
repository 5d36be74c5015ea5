"""
Config loader for switchboard.
Reads config.yaml once, merges it over built-in defaults, and caches it.
All other modules import from here.

${ENV_VAR} references anywhere in the file are resolved from the
environment (after .env is loaded), so secrets stay out of the YAML.
"""

import copy
import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: dict | None = None

DEFAULTS: dict = {
    "server": {
        "host": "0.0.0.0",
        "port": 8000,
        "user_header": "X-User-Id",
    },
    "storage": {
        "sqlite_path": "./data/switchboard.db",
    },
    "dispatch": {
        "timeout": 30,
        "serialize_per_context": False,
        "personalize": True,
    },
    "generation": {
        "temperature": 0.7,
        "max_tokens": 1000,
    },
    "providers": {
        "openai": {"url": "https://api.openai.com/v1"},
        "anthropic": {"url": "https://api.anthropic.com/v1", "version": "2023-06-01"},
        "google": {"url": "https://generativelanguage.googleapis.com/v1beta"},
        "openrouter": {
            "url": "https://openrouter.ai/api/v1",
            "referer": "https://github.com/switchboard-chat/switchboard",
            "title": "Switchboard",
        },
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}


_ENV_REF = re.compile(r"\$\{(\w+)\}")


def _expand_env(node):
    """
    Expand ${NAME} inside every string of a loaded config tree.
    Unset variables expand to ""; a value that was exactly one reference to
    an unset variable becomes None so optional settings read as absent.
    """
    if isinstance(node, str):
        match = _ENV_REF.fullmatch(node)
        if match and match.group(1) not in os.environ:
            return None
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), node)
    if isinstance(node, dict):
        return {key: _expand_env(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand_env(item) for item in node]
    return node


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def config_path() -> Path:
    env_path = os.environ.get("SWITCHBOARD_CONFIG")
    return Path(env_path) if env_path else _CONFIG_PATH


def load_config(path: Path | str | None = None) -> dict:
    """Load and cache config. A missing default config.yaml means pure defaults."""
    global _config
    if _config is not None and path is None:
        return _config

    explicit = path is not None or "SWITCHBOARD_CONFIG" in os.environ
    cfg_path = Path(path) if path is not None else config_path()
    if cfg_path.exists():
        with open(cfg_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Top-level config must be a mapping: {cfg_path}")
    elif explicit:
        raise FileNotFoundError(f"Config not found: {cfg_path}")
    else:
        raw = {}

    _config = _expand_env(_deep_merge(DEFAULTS, raw))
    return _config


def get_config() -> dict:
    """Return cached config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def reset_config():
    """Drop the cached config so the next get_config() reloads."""
    global _config
    _config = None
