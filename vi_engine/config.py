"""
FieldWatch VI - Configuration
=============================
Engine settings read from environment variables, optionally overridden by a
mapping (the Streamlit shell passes its ``fieldwatch`` secrets section).
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Tuple


ENV_PREFIX = "FIELDWATCH_"


@dataclass(frozen=True)
class Settings:
    """Engine configuration."""

    api_base_url: str = "http://localhost:8000"
    api_token: Optional[str] = None
    request_timeout: float = 30.0
    snapshot_limit: int = 4
    historical_count: int = 4
    tile_window_days: int = 30
    tile_mode: str = "static"
    raster_opacity: float = 0.85
    image_opacity: float = 0.8
    fit_padding: Tuple[int, int] = (20, 20)
    search_quiet_period: float = 0.35
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    nominatim_country: str = "th"
    chart_service_url: str = "https://quickchart.io/chart"
    label_locale: str = "en"
    log_level: str = "INFO"


# Environment names that differ from ``ENV_PREFIX + FIELD.upper()``
_ENV_ALIASES = {
    "api_base_url": "FIELDWATCH_API_BASE",
}


def _coerce(name: str, raw: Any) -> Any:
    """Convert a raw string/mapping value to the type of the named field."""
    default = getattr(Settings, name)
    if raw is None:
        return None
    if name == "fit_padding":
        if isinstance(raw, str):
            parts = [p.strip() for p in raw.split(",") if p.strip()]
        else:
            parts = list(raw)
        if len(parts) == 1:
            parts = parts * 2
        return (int(parts[0]), int(parts[1]))
    if isinstance(default, bool):
        return str(raw).lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return str(raw)


def load_settings(overrides: Optional[Mapping[str, Any]] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from the environment and an optional override mapping.

    Args:
        overrides: Values that take precedence over the environment
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Frozen Settings instance
    """
    environ = os.environ if environ is None else environ
    values = {}

    for field in fields(Settings):
        env_name = _ENV_ALIASES.get(field.name, ENV_PREFIX + field.name.upper())
        if env_name in environ:
            values[field.name] = _coerce(field.name, environ[env_name])

    for key, raw in (overrides or {}).items():
        if key in Settings.__dataclass_fields__:
            values[key] = _coerce(key, raw)

    settings = replace(Settings(), **values)
    if settings.snapshot_limit < 1:
        raise ValueError("snapshot_limit must be at least 1")
    if settings.tile_window_days < 1:
        raise ValueError("tile_window_days must be at least 1")
    return settings
