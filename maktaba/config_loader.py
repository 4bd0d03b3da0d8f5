"""Configuration loader with YAML defaults and environment variable overrides."""

import os

import yaml
from dotenv import load_dotenv

_DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "default.yaml")
_USER_CONFIG_PATH = "~/.config/maktaba/config.yaml"

# Up to four keys; blanks are dropped when the pool is built
CREDENTIAL_ENV_VARS = ("GOOGLE_KEY_1", "GOOGLE_KEY_2", "GOOGLE_KEY_3", "GOOGLE_KEY_4")


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _expand_paths(config: dict) -> dict:
    """Expand ~ in any string values that look like paths."""
    result = {}
    for key, value in config.items():
        if isinstance(value, dict):
            result[key] = _expand_paths(value)
        elif isinstance(value, str) and value.startswith("~"):
            result[key] = os.path.expanduser(value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides."""
    keys = [os.environ.get(name, "").strip() for name in CREDENTIAL_ENV_VARS]
    keys = [k for k in keys if k]
    if keys:
        config.setdefault("gemini", {})["api_keys"] = keys

    env_level = os.environ.get("MAKTABA_LOG_LEVEL")
    if env_level:
        config.setdefault("logging", {})["level"] = env_level

    env_db = os.environ.get("MAKTABA_DB_PATH")
    if env_db:
        config.setdefault("watchlist", {})["path"] = env_db

    return config


def load_config(config_path: str | None = None, use_dotenv: bool = True) -> dict:
    """Load configuration from YAML file with env overrides.

    Args:
        config_path: Path to YAML config file. Uses the packaged default.yaml if None.
        use_dotenv: Read a .env file from the working directory first.

    Returns:
        Merged configuration dict.
    """
    path = config_path or _DEFAULT_CONFIG_PATH

    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if config_path:
        # An explicit file still sits on top of the packaged defaults
        with open(_DEFAULT_CONFIG_PATH, encoding="utf-8") as f:
            config = _deep_merge(yaml.safe_load(f) or {}, config)

    user_config_path = os.path.expanduser(_USER_CONFIG_PATH)
    if os.path.exists(user_config_path):
        with open(user_config_path, encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        config = _deep_merge(config, user_config)

    if use_dotenv:
        load_dotenv()

    config = _apply_env_overrides(config)
    config = _expand_paths(config)

    return config


_VALID_SAMPLE_RATES = {8000, 16000, 22050, 24000, 32000, 44100, 48000}
_GENERATION_KEYS = {"temperature", "top_k", "top_p", "max_output_tokens"}


def validate_config(config: dict) -> list[str]:
    """Validate configuration values. Returns a list of error strings (empty = valid)."""
    errors: list[str] = []

    gemini = config.get("gemini", {})
    if not gemini.get("endpoint"):
        errors.append("gemini.endpoint must be a non-empty URL")

    timeout = gemini.get("timeout", 30.0)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        errors.append(f"gemini.timeout must be a positive number of seconds, got {timeout!r}")

    generation = gemini.get("generation") or {}
    unknown = sorted(set(generation) - _GENERATION_KEYS)
    if unknown:
        errors.append(f"gemini.generation has unknown keys: {', '.join(unknown)}")
    temperature = generation.get("temperature", 0.4)
    if not isinstance(temperature, (int, float)) or not 0 <= temperature <= 2:
        errors.append(f"gemini.generation.temperature must be within [0, 2], got {temperature!r}")

    max_tokens = generation.get("max_output_tokens", 512)
    if not isinstance(max_tokens, int) or max_tokens <= 0:
        errors.append(f"gemini.generation.max_output_tokens must be a positive integer, got {max_tokens!r}")

    keys = gemini.get("api_keys") or []
    if not isinstance(keys, list):
        errors.append("gemini.api_keys must be a list")

    live = config.get("live", {})
    if not live.get("model"):
        errors.append("live.model must be a non-empty string")
    for name in ("capture_sample_rate", "playback_sample_rate"):
        rate = live.get(name)
        if rate not in _VALID_SAMPLE_RATES:
            errors.append(f"live.{name} must be one of {sorted(_VALID_SAMPLE_RATES)}, got {rate!r}")

    db_path = config.get("watchlist", {}).get("path", "")
    if not isinstance(db_path, str) or not db_path:
        errors.append("watchlist.path must be a non-empty string")

    return errors
