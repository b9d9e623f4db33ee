"""
Runtime settings.

Values come from environment variables (COPILOT_*). An optional override file
(YAML or JSON) may set the same keys in lower-case form:

    sample_limit: 300
    max_kpis: 6
    regenerate_threshold: 12

Environment variable:
    COPILOT_SETTINGS_FILE: path to the override file (optional).
"""
from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

_log = logging.getLogger("copilot.config")

_DEFAULT_DATA_DIR = "/tmp/copilot_dashboards"


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _env_int(key: str, default: int) -> int:
    raw = (os.getenv(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        _log.warning("Ignoring non-integer %s=%r", key, raw)
        return default


def _env_float(key: str, default: float) -> float:
    raw = (os.getenv(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        _log.warning("Ignoring non-numeric %s=%r", key, raw)
        return default


@dataclass(frozen=True)
class Settings:
    env: str = "dev"
    data_dir: str = _DEFAULT_DATA_DIR

    # semantic model
    sample_limit: int = 500
    max_filters: int = 10

    # spec synthesis / validation
    max_kpis: int = 8
    regenerate_threshold: int = 10

    # external generation
    external_enabled: bool = True
    external_timeout_seconds: float = 20.0
    ai_model: str = "gpt-4o-mini"

    def with_overrides(self, overrides: Dict[str, Any]) -> "Settings":
        known = {f.name: f for f in dataclasses.fields(self)}
        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            f = known.get(str(key).strip().lower())
            if f is None:
                _log.warning("Skipping unknown settings key %r", key)
                continue
            current = getattr(self, f.name)
            try:
                if isinstance(current, bool):
                    changes[f.name] = value if isinstance(value, bool) else str(value).strip().lower() in ("1", "true", "yes")
                elif isinstance(current, int):
                    changes[f.name] = int(value)
                elif isinstance(current, float):
                    changes[f.name] = float(value)
                else:
                    changes[f.name] = str(value)
            except (TypeError, ValueError) as exc:
                _log.warning("Skipping invalid settings entry %r: %s", key, exc)
        return dataclasses.replace(self, **changes)


def load_settings_overrides(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load overrides from a YAML or JSON file.

    Returns an empty dict if the file is absent, unreadable, or malformed.
    """
    resolved = path
    if resolved is None:
        env_path = (os.getenv("COPILOT_SETTINGS_FILE") or "").strip()
        resolved = Path(env_path) if env_path else None
    if resolved is None or not resolved.exists():
        return {}

    try:
        raw_text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        _log.warning("Cannot read settings file %s: %s", resolved, exc)
        return {}

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            _log.warning("Failed to parse settings file %s as JSON or YAML: %s", resolved, exc)
            return {}

    if not isinstance(data, dict):
        _log.warning("Settings file %s must be a flat mapping, got %s", resolved, type(data).__name__)
        return {}
    return data


def load_settings(path: Optional[Path] = None) -> Settings:
    base = Settings(
        env=(os.getenv("COPILOT_ENV") or "dev").strip().lower(),
        data_dir=(os.getenv("COPILOT_DATA_DIR") or _DEFAULT_DATA_DIR).strip(),
        sample_limit=_env_int("COPILOT_SAMPLE_LIMIT", 500),
        max_filters=_env_int("COPILOT_MAX_FILTERS", 10),
        max_kpis=_env_int("COPILOT_MAX_KPIS", 8),
        regenerate_threshold=_env_int("COPILOT_REGENERATE_THRESHOLD", 10),
        external_enabled=_env_bool("COPILOT_EXTERNAL_ENABLED", True),
        external_timeout_seconds=_env_float("COPILOT_EXTERNAL_TIMEOUT_SECONDS", 20.0),
        ai_model=(os.getenv("AI_MODEL") or "gpt-4o-mini").strip(),
    )
    overrides = load_settings_overrides(path)
    if overrides:
        _log.info("Loaded %d settings overrides", len(overrides))
        return base.with_overrides(overrides)
    return base
