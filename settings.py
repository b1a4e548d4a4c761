"""
settings.py

User settings for VecSketch, kept in a TOML file under the platform config
directory (``platformdirs.user_config_dir("vecsketch")``), e.g.
``~/.config/vecsketch/settings.toml`` on Linux.

Each TOML table maps onto one dataclass below; the dataclass field defaults
are the built-in values.  Unknown keys are ignored and values of the wrong
type fall back to the default, so a hand-edited file never breaks startup.
An unreadable file means all defaults.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import platformdirs

# tomllib is stdlib from Python 3.11; tomli is the same parser for older versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

log = logging.getLogger(__name__)

APP_NAME = "vecsketch"

_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Return the process-wide settings manager, loading it on first use."""
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


def reset_settings() -> None:
    """Drop the singleton so the next ``get_settings()`` reloads from disk."""
    global _settings_manager
    _settings_manager = None


# -----------------------------------------------------------------------------
# [canvas.*] tables
# -----------------------------------------------------------------------------

@dataclass
class CanvasHandleSettings:
    """Corner resize handles."""
    size: float = 8.0                 # px; the hit square is size x size
    border_color: str = "#3498DB"
    fill_color: str = "#FFFFFF"
    stroke_width: float = 1.0


@dataclass
class CanvasShapeSettings:
    """Geometry constants used by hit-testing, resizing and text layout."""
    min_size: float = 10.0            # resize floor per axis
    hit_tolerance: float = 5.0        # lines and path vertices
    halo_padding: float = 5.0         # added to half the stroke width
    text_ascent: float = 16.0         # text box height above the baseline anchor
    default_font_size: float = 16.0
    default_font_family: str = "sans-serif"


@dataclass
class CanvasSelectionSettings:
    outline_color: str = "#3498DB"
    outline_width: float = 1.0
    padding: float = 0.0              # around the selection box and its handles
    hover_color: str = "#0C8CE9"
    show_dimensions: bool = True      # "W × H" label under the selection
    dimensions_font_size: float = 11.0
    dimensions_y_offset: float = 8.0


@dataclass
class CanvasMarqueeSettings:
    stroke_color: str = "#0C8CE9"
    fill_color: str = "#0C8CE91A"     # 10% alpha
    min_drag: float = 2.0             # below this on both axes a marquee selects nothing


@dataclass
class CanvasSettings:
    handles: CanvasHandleSettings = field(default_factory=CanvasHandleSettings)
    shapes: CanvasShapeSettings = field(default_factory=CanvasShapeSettings)
    selection: CanvasSelectionSettings = field(default_factory=CanvasSelectionSettings)
    marquee: CanvasMarqueeSettings = field(default_factory=CanvasMarqueeSettings)


# -----------------------------------------------------------------------------
# [defaults.*] tables
# -----------------------------------------------------------------------------

@dataclass
class DefaultStyleSettings:
    """Initial active style: what new shapes get while nothing is selected."""
    fill: str = "#D9D9D9"
    stroke: str = "#000000"
    line_width: float = 2.0
    fill_enabled: bool = True
    stroke_enabled: bool = False
    opacity: float = 1.0


@dataclass
class DefaultSettings:
    style: DefaultStyleSettings = field(default_factory=DefaultStyleSettings)


@dataclass
class AppSettings:
    """Root of the settings tree.

    Attributes:
        workspace_dir: Starting directory for open/save dialogs.
        canvas: Geometry and decoration settings.
        defaults: Initial style for new shapes.
    """
    workspace_dir: str = ""
    canvas: CanvasSettings = field(default_factory=CanvasSettings)
    defaults: DefaultSettings = field(default_factory=DefaultSettings)


# TOML table path -> settings section, in file order
_SECTIONS: Tuple[Tuple[str, ...], ...] = (
    ("canvas", "handles"),
    ("canvas", "shapes"),
    ("canvas", "selection"),
    ("canvas", "marquee"),
    ("defaults", "style"),
)


def _section(settings: AppSettings, path: Tuple[str, ...]) -> Any:
    obj: Any = settings
    for key in path:
        obj = getattr(obj, key)
    return obj


def _coerce(current: Any, value: Any) -> Any:
    """Return ``value`` if it fits the type of ``current``, else ``current``."""
    if isinstance(current, bool):
        return value if isinstance(value, bool) else current
    if isinstance(current, float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        return current
    if isinstance(current, str):
        return value if isinstance(value, str) else current
    return value


def _apply_table(section: Any, table: Dict[str, Any], name: str) -> None:
    for f in fields(section):
        if f.name not in table:
            continue
        current = getattr(section, f.name)
        value = _coerce(current, table[f.name])
        if value is current and table[f.name] != current:
            log.warning("Ignoring %s.%s = %r (expected %s)",
                        name, f.name, table[f.name], type(current).__name__)
        setattr(section, f.name, value)


class SettingsManager:
    """Loads, holds and saves the settings file.

    ``settings`` is the live ``AppSettings``; edit it and call ``save()``.
    A missing file is written on the first ``ensure_file_complete()``.

    Args:
        app_name: Name of the per-user config directory.
    """

    def __init__(self, app_name: str = APP_NAME):
        self.settings_dir = Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()

    def ensure_file_complete(self) -> None:
        """Write the file once at startup if it is missing."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Read the settings file; defaults for anything missing or unreadable."""
        if not self.settings_file.exists():
            return AppSettings()
        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Using default settings, cannot read %s: %s", self.settings_file, e)
            return AppSettings()
        return self._parse_toml(data)

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        settings = AppSettings()
        general = data.get("general")
        if isinstance(general, dict):
            settings.workspace_dir = _coerce(settings.workspace_dir, general.get("workspace_dir", ""))
        for path in _SECTIONS:
            table: Any = data
            for key in path:
                table = table.get(key) if isinstance(table, dict) else None
            if isinstance(table, dict):
                _apply_table(_section(settings, path), table, ".".join(path))
        return settings

    def save(self) -> None:
        """Write the current settings, creating the config directory if needed."""
        self.settings_dir.mkdir(parents=True, exist_ok=True)
        with open(self.settings_file, "wb") as f:
            tomli_w.dump(self._to_toml_dict(), f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"general": {"workspace_dir": self.settings.workspace_dir}}
        for path in _SECTIONS:
            table = data
            for key in path[:-1]:
                table = table.setdefault(key, {})
            table[path[-1]] = asdict(_section(self.settings, path))
        return data

    def to_toml(self) -> str:
        """The current settings as TOML text."""
        return tomli_w.dumps(self._to_toml_dict())

    def get_workspace_dir(self) -> Path:
        """Directory for open/save dialogs; ``~/Documents/VecSketch`` when unset."""
        if self.settings.workspace_dir:
            return Path(self.settings.workspace_dir)
        return Path.home() / "Documents" / "VecSketch"

    def get_settings_path(self) -> Path:
        return self.settings_file
