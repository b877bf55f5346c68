"""Report configuration: built-in defaults plus an optional YAML override.

The configuration is an explicit value.  Callers build one with
:func:`load_config` and pass it into :class:`dashreport.report.Report`;
nothing in the package reads process-wide settings.

Override files may set any subset of keys, e.g.::

    grafana:
      theme: light
      client-timeout: 120
    rect:
      graph: {width: 500, height: 250}
    position:
      title-y1: 70

Hyphenated keys (as used by the original TOML files) and underscored
keys are both accepted.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from dashreport.constants import DEFAULT_WORKERS, TMP_DIR

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when an override file cannot be parsed or has bad values."""

    def __init__(self, path: str, detail: str = "") -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Invalid config file {path}: {detail}")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GrafanaSettings:
    """Rendering options forwarded to Grafana.

    ``retry_interval`` is parsed for compatibility with existing config
    files but the fetch stage never retries.
    """

    theme: str = "dark"
    client_timeout: int = 300
    server_timeout: int = 300
    retry_interval: int = 10


@dataclass(frozen=True)
class FontSettings:
    family: str = "opensans"
    ttf: str = "OpenSans-Regular.ttf"
    size: int = 14
    font_dir: str = ""

    @property
    def ttf_path(self) -> str:
        return os.path.join(self.font_dir, self.ttf) if self.font_dir else self.ttf


@dataclass(frozen=True)
class Rect:
    width: float
    height: float


@dataclass(frozen=True)
class RectSettings:
    """Page size and the two image rectangles (points)."""

    page: Rect = field(default_factory=lambda: Rect(595.28, 841.89))
    graph: Rect = field(default_factory=lambda: Rect(480.0, 240.0))
    singlestat: Rect = field(default_factory=lambda: Rect(480.0, 93.0))


@dataclass(frozen=True)
class PositionSettings:
    """Layout offsets measured from the top-left corner of the page."""

    x: float = 50.0
    title_y1: float = 60.0
    title_y2: float = 350.0
    image_y1: float = 80.0
    image_y2: float = 370.0
    br: float = 20.0


@dataclass(frozen=True)
class ReporterConfig:
    grafana: GrafanaSettings = field(default_factory=GrafanaSettings)
    font: FontSettings = field(default_factory=FontSettings)
    rect: RectSettings = field(default_factory=RectSettings)
    position: PositionSettings = field(default_factory=PositionSettings)
    workers: int = DEFAULT_WORKERS
    tmp_dir: str = TMP_DIR


# ---------------------------------------------------------------------------
# Override helpers
# ---------------------------------------------------------------------------

def _normalise_key(key: str) -> str:
    return str(key).strip().replace("-", "_").lower()


def _override_section(section: Any, values: Any, path: str, name: str) -> Any:
    """Return a copy of *section* with any known keys from *values* applied."""
    if not isinstance(values, dict):
        raise ConfigError(path, f"section '{name}' must be a mapping")

    known = {f.name: f for f in fields(section)}
    changes: dict[str, Any] = {}
    for raw_key, value in values.items():
        key = _normalise_key(raw_key)
        if key not in known:
            logger.warning("Ignoring unknown config key %s.%s in %s", name, raw_key, path)
            continue
        current = getattr(section, key)
        try:
            changes[key] = type(current)(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(path, f"bad value for {name}.{raw_key}: {value!r}") from exc
    return replace(section, **changes)


def _override_rects(section: RectSettings, values: Any, path: str) -> RectSettings:
    if not isinstance(values, dict):
        raise ConfigError(path, "section 'rect' must be a mapping")

    changes: dict[str, Rect] = {}
    for raw_key, value in values.items():
        key = _normalise_key(raw_key)
        if not hasattr(section, key):
            logger.warning("Ignoring unknown rect %s in %s", raw_key, path)
            continue
        changes[key] = _override_section(getattr(section, key), value, path, f"rect.{key}")
    return replace(section, **changes)


def apply_overrides(base: ReporterConfig, data: dict[str, Any], path: str = "<dict>") -> ReporterConfig:
    """Merge a parsed override mapping into *base* and return the result."""
    cfg = base
    for raw_key, value in data.items():
        key = _normalise_key(raw_key)
        if key == "rect":
            cfg = replace(cfg, rect=_override_rects(cfg.rect, value, path))
        elif key in ("grafana", "font", "position"):
            cfg = replace(cfg, **{key: _override_section(getattr(cfg, key), value, path, key)})
        elif key == "workers":
            try:
                workers = int(value)
            except (TypeError, ValueError) as exc:
                raise ConfigError(path, f"bad value for workers: {value!r}") from exc
            if workers < 1:
                raise ConfigError(path, "workers must be at least 1")
            cfg = replace(cfg, workers=workers)
        elif key == "tmp_dir":
            cfg = replace(cfg, tmp_dir=str(value))
        else:
            logger.warning("Ignoring unknown config section %s in %s", raw_key, path)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_config(path: str | os.PathLike[str] | None = None) -> ReporterConfig:
    """Return the default configuration, optionally overridden from YAML.

    Parameters
    ----------
    path:
        Optional YAML file.  Any subset of sections/keys may be given.

    Raises
    ------
    FileNotFoundError
        If *path* is given but does not exist.
    ConfigError
        If the file is not valid YAML or holds values of the wrong type.
    """
    cfg = ReporterConfig()
    if path is None:
        return cfg

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigError(str(config_path), str(exc)) from exc

    if data is None:
        logger.info("Config file %s is empty; using defaults", config_path)
        return cfg
    if not isinstance(data, dict):
        raise ConfigError(str(config_path), "top level must be a mapping")

    cfg = apply_overrides(cfg, data, str(config_path))
    logger.info("Loaded config overrides from %s", config_path)
    return cfg


def with_font_dir(cfg: ReporterConfig, font_dir: str) -> ReporterConfig:
    """Return *cfg* with the TTF lookup directory replaced."""
    return replace(cfg, font=replace(cfg.font, font_dir=font_dir))
