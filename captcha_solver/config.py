"""
Configuration module.

Settings are plain dataclasses built once and passed explicitly to the
solver manager. ``load_settings`` layers, in order: built-in defaults, an
optional JSON file, then environment variables.

JSON layout::

    {
      "models": {"path": "/app/models", "ocr_enabled": true, "cnn_enabled": true},
      "processing": {"max_image_size_mb": 10, "timeout_seconds": 30, "batch_size": 10}
    }

Environment overrides: ``MODELS_PATH`` and ``CAPTCHA_<SECTION>__<FIELD>``,
e.g. ``CAPTCHA_MODELS__CNN_ENABLED=false``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import json
import os


ENV_PREFIX = "CAPTCHA_"
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ModelsSettings:
    path: str = "/app/models"
    default_model: Optional[str] = None
    ocr_enabled: bool = True
    cnn_enabled: bool = True


@dataclass(frozen=True)
class ProcessingSettings:
    max_image_size_mb: int = 10
    timeout_seconds: int = 30
    batch_size: int = 10

    @property
    def max_image_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    models: ModelsSettings = field(default_factory=ModelsSettings)
    processing: ProcessingSettings = field(default_factory=ProcessingSettings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "models": {f.name: getattr(self.models, f.name) for f in fields(self.models)},
            "processing": {f.name: getattr(self.processing, f.name) for f in fields(self.processing)},
        }


def _coerce(value: Any, target: type, key: str) -> Any:
    """Convert a JSON or environment value to the field's type."""
    if target is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
        raise ValueError(f"Invalid boolean for {key}: {value!r}")
    if target is int:
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer for {key}: {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid integer for {key}: {value!r}") from None
    if value is None:
        return None
    return str(value)


def _field_types(section) -> Dict[str, type]:
    types = {"bool": bool, "int": int, "str": str, "Optional[str]": str}
    return {f.name: types.get(str(f.type), str) for f in fields(section)}


def _apply(section, values: Mapping[str, Any], section_name: str):
    types = _field_types(section)
    unknown = set(values) - set(types)
    if unknown:
        raise ValueError(f"Unknown {section_name} settings: {sorted(unknown)}")
    updates = {
        key: _coerce(value, types[key], f"{section_name}.{key}")
        for key, value in values.items()
    }
    return replace(section, **updates)


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Dict[str, str]]:
    overrides: Dict[str, Dict[str, str]] = {"models": {}, "processing": {}}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or "__" not in key:
            continue
        section, _, name = key[len(ENV_PREFIX):].partition("__")
        section = section.lower()
        if section in overrides:
            overrides[section][name.lower()] = value
    if "MODELS_PATH" in environ:
        overrides["models"]["path"] = environ["MODELS_PATH"]
    return overrides


def load_settings(json_path: Optional[str | Path] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from defaults, an optional JSON file and the environment.

    Args:
        json_path: Optional JSON settings file; must exist if given
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Settings object

    Raises:
        FileNotFoundError: If json_path does not exist
        ValueError: On unknown keys or malformed values
    """
    settings = Settings()
    environ = os.environ if environ is None else environ

    if json_path is not None:
        with open(json_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a JSON object: {json_path}")
        unknown = set(data) - {"models", "processing"}
        if unknown:
            raise ValueError(f"Unknown settings sections: {sorted(unknown)}")
        settings = Settings(
            models=_apply(settings.models, data.get("models", {}), "models"),
            processing=_apply(settings.processing, data.get("processing", {}), "processing"),
        )

    env = _env_overrides(environ)
    settings = Settings(
        models=_apply(settings.models, env["models"], "models"),
        processing=_apply(settings.processing, env["processing"], "processing"),
    )

    if settings.processing.batch_size < 1:
        raise ValueError("processing.batch_size must be >= 1")
    return settings
