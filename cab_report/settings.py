"""
settings.py — Report Renderer Configuration.

Loads config.yaml into frozen dataclasses. Every section has defaults, so
the core pipeline runs without any configuration file at all; a YAML file
only overrides the keys it names.

Secrets (the telemetry webhook URL) are never read from config.yaml; only
the name of the environment variable that holds them is configured here.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from cab_report.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SanitizerSettings:
    max_chars: int = 1_000_000


@dataclass(frozen=True)
class ParserSettings:
    max_depth: int = 20
    split_min_sentences: int = 5
    split_min_chars: int = 300
    split_group_size: int = 3


@dataclass(frozen=True)
class CellPolicy:
    """Heuristics applied to table cells after parsing.

    over_bold_ratio: share of the cell's total characters (whitespace
        included) inside bold runs, above which all emphasis in the cell is
        removed.
    lead_bold_max_chars: longest leading phrase that lead-bold will wrap.
    lead_bold_min_words: shortest list item (in words) lead-bold touches.
    """

    strip_over_bold: bool = True
    over_bold_ratio: float = 0.5
    lead_bold: bool = True
    lead_bold_max_chars: int = 30
    lead_bold_min_words: int = 3


@dataclass(frozen=True)
class RenderSettings:
    fallback_preview_chars: int = 5000
    persona_limit: int = 5


@dataclass(frozen=True)
class ProductSettings:
    name: str = "The Zulu Method"
    title: str = "AI Customer Advisory Board"
    export_prefix: str = "The_Zulu_Method_CAB"


@dataclass(frozen=True)
class BrandSettings:
    navy: str = "051A53"
    accent: str = "577AFF"
    accent_light: str = "A1B4FF"
    accent_pale: str = "D5DDFF"
    tint: str = "EEF2FF"
    paper: str = "F9FAFD"
    ink: str = "221E1F"
    text: str = "383535"
    muted: str = "595657"
    deep: str = "31458F"


@dataclass(frozen=True)
class PathSettings:
    output_dir: str = "output"
    log_dir: str = "logs"


@dataclass(frozen=True)
class TelemetrySettings:
    webhook_env: str = "ERROR_WEBHOOK_URL"
    timeout: float = 10.0
    max_attempts: int = 3


@dataclass(frozen=True)
class ReportSettings:
    sanitizer: SanitizerSettings = field(default_factory=SanitizerSettings)
    parser: ParserSettings = field(default_factory=ParserSettings)
    cells: CellPolicy = field(default_factory=CellPolicy)
    render: RenderSettings = field(default_factory=RenderSettings)
    product: ProductSettings = field(default_factory=ProductSettings)
    brand: BrandSettings = field(default_factory=BrandSettings)
    paths: PathSettings = field(default_factory=PathSettings)
    telemetry: TelemetrySettings = field(default_factory=TelemetrySettings)


DEFAULT_SETTINGS = ReportSettings()


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

# Inclusive (low, high) limits for numeric keys; None leaves a side open.
_BOUNDS: dict[str, tuple[Optional[float], Optional[float]]] = {
    "sanitizer.max_chars": (1, None),
    "parser.max_depth": (1, None),
    "parser.split_min_sentences": (1, None),
    "parser.split_min_chars": (0, None),
    "parser.split_group_size": (1, None),
    "cells.over_bold_ratio": (0.0, 1.0),
    "cells.lead_bold_max_chars": (1, None),
    "cells.lead_bold_min_words": (1, None),
    "render.fallback_preview_chars": (0, None),
    "render.persona_limit": (0, None),
    "telemetry.timeout": (0.1, None),
    "telemetry.max_attempts": (1, None),
}


def _check_bounds(key: str, value: Any) -> None:
    low, high = _BOUNDS.get(key, (None, None))
    # written so that NaN fails both comparisons
    if not (low is None or value >= low) or not (high is None or value <= high):
        lo = "-inf" if low is None else low
        hi = "inf" if high is None else high
        raise ConfigError(f"{key} must be within [{lo}, {hi}], got {value!r}")


def _apply_section(current: Any, values: Any, section: str) -> Any:
    """Return a copy of one settings dataclass with YAML values applied.

    Args:
        current: Default instance of the section dataclass.
        values: Mapping read from YAML for this section.
        section: Section name, for error messages.

    Returns:
        New dataclass instance.

    Raises:
        ConfigError: If the section is not a mapping, names unknown keys, or
            sets a number outside its allowed range.
    """
    if values is None:
        return current
    if not isinstance(values, dict):
        raise ConfigError(f"config section '{section}' must be a mapping")

    known = {f.name: f for f in fields(current)}
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ConfigError(f"unknown keys in '{section}': {', '.join(unknown)}")

    updates = {}
    for key, raw in values.items():
        expected = type(getattr(current, key))
        try:
            if expected is bool:
                value = raw if isinstance(raw, bool) else str(raw).lower() in ("1", "true", "yes")
            elif expected is str:
                value = str(raw).lstrip("#") if section == "brand" else str(raw)
            else:
                value = expected(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"bad value for {section}.{key}: {raw!r}") from exc
        _check_bounds(f"{section}.{key}", value)
        updates[key] = value
    return replace(current, **updates)


def settings_from_dict(cfg: Optional[dict[str, Any]]) -> ReportSettings:
    """Build ReportSettings from an already-parsed config mapping.

    Args:
        cfg: Parsed YAML document (may be None or empty).

    Returns:
        ReportSettings with defaults for every key the mapping omits.
    """
    if not cfg:
        return DEFAULT_SETTINGS
    if not isinstance(cfg, dict):
        raise ConfigError("config root must be a mapping")

    sections = {f.name for f in fields(ReportSettings)}
    unknown = sorted(set(cfg) - sections)
    if unknown:
        logger.warning("Ignoring unknown config sections: %s", ", ".join(unknown))

    updates = {
        name: _apply_section(getattr(DEFAULT_SETTINGS, name), cfg.get(name), name)
        for name in sections
        if name in cfg
    }
    return replace(DEFAULT_SETTINGS, **updates)


def load_settings(config_path: Optional[str] = None) -> ReportSettings:
    """Load settings from a YAML file.

    Args:
        config_path: Path to configuration YAML. None means built-in defaults.

    Returns:
        ReportSettings.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ConfigError: If the YAML is malformed or has invalid values.
    """
    if config_path is None:
        return DEFAULT_SETTINGS

    path = Path(config_path)
    with open(path, "r", encoding="utf-8") as fh:
        try:
            cfg = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigError(f"cannot parse {path}: {exc}") from exc

    settings = settings_from_dict(cfg)
    logger.debug("Settings loaded from %s", path)
    return settings
