"""
Configuration loader for synth voicing presets.

Loads ``SynthConfig`` values from YAML files with caching. The default
preset ships inside the package as ``piano_synth/configs/piano.yaml``.
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import yaml

from .errors import ConfigLoadError
from .sinks import SINK_KINDS
from .utils import (
    DEFAULT_GLOBAL_SCALE,
    DEFAULT_HARMONIC_COUNT,
    NOTE_DURATION,
    SAMPLE_RATE,
)

logger = logging.getLogger(__name__)


@dataclass
class SynthConfig:
    """
    Engine-wide defaults for new notes.

    Attributes:
        sample_rate: Render sample rate in Hz
        harmonic_count: Partials per note
        global_scale: Peak scale applied to each partial
        note_duration: Seconds until a note is torn down
        sink: Output kind (``null`` / ``wav`` / ``device``)
        output_dir: Directory for WAV output
        device: sounddevice output device (id or name)
    """
    sample_rate: int = SAMPLE_RATE
    harmonic_count: int = DEFAULT_HARMONIC_COUNT
    global_scale: float = DEFAULT_GLOBAL_SCALE
    note_duration: float = NOTE_DURATION
    sink: str = "null"
    output_dir: Optional[str] = None
    device: Optional[Union[int, str]] = None

    def __post_init__(self):
        if self.sink not in SINK_KINDS:
            raise ConfigLoadError(f"Unknown sink {self.sink!r}; expected one of {SINK_KINDS}")
        if int(self.sample_rate) <= 0:
            raise ConfigLoadError(f"sample_rate must be positive, got {self.sample_rate}")
        if int(self.harmonic_count) < 1:
            raise ConfigLoadError(f"harmonic_count must be >= 1, got {self.harmonic_count}")
        if float(self.note_duration) <= 0 or float(self.global_scale) <= 0:
            raise ConfigLoadError("note_duration and global_scale must be positive")
        self.sample_rate = int(self.sample_rate)
        self.harmonic_count = int(self.harmonic_count)
        self.global_scale = float(self.global_scale)
        self.note_duration = float(self.note_duration)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SynthConfig":
        """Build from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown synth config keys: %s", sorted(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def session_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``NoteSession``."""
        return {
            "harmonic_count": self.harmonic_count,
            "global_scale": self.global_scale,
            "total_duration": self.note_duration,
            "sample_rate": self.sample_rate,
            "sink_kind": self.sink,
            "output_dir": self.output_dir,
            "device": self.device,
        }


class ConfigLoader:
    """
    Loads voicing presets from YAML files with caching.

    Attributes:
        config_dir: Base directory for preset files
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        if config_dir is None:
            # Default to the preset directory shipped with the package
            self.config_dir = Path(__file__).parent / "configs"
        else:
            self.config_dir = Path(config_dir)

        self._cache: Dict[str, SynthConfig] = {}

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """
        Load a YAML file and return its contents.

        Raises:
            ConfigLoadError: If the file cannot be loaded or parsed
        """
        if not path.exists():
            raise ConfigLoadError(f"Configuration file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Failed to parse YAML file {path}: {e}")
        except OSError as e:
            raise ConfigLoadError(f"Failed to load configuration file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigLoadError(f"Expected a mapping at the top of {path}")
        return data

    def load(self, name: str = "piano") -> SynthConfig:
        """
        Load the preset ``<config_dir>/<name>.yaml``.

        The file may hold the settings at the top level or under a
        ``synth:`` key.
        """
        if name in self._cache:
            return self._cache[name]

        path = self.config_dir / f"{name}.yaml"
        data = self._load_yaml(path)
        settings = data.get("synth", data)
        if not isinstance(settings, dict):
            raise ConfigLoadError(f"'synth' section in {path} must be a mapping")

        try:
            config = SynthConfig.from_dict(settings)
        except (TypeError, ValueError) as e:
            raise ConfigLoadError(f"Invalid synth config in {path}: {e}")

        self._cache[name] = config
        logger.debug("Loaded synth config %r from %s", name, path)
        return config

    def has_preset(self, name: str = "piano") -> bool:
        return (self.config_dir / f"{name}.yaml").exists()

    def load_or_default(self, name: str = "piano") -> SynthConfig:
        """Load a preset, falling back to built-in defaults if the file is missing."""
        if not self.has_preset(name):
            logger.debug("No %s.yaml in %s; using defaults", name, self.config_dir)
            return SynthConfig()
        return self.load(name)

    def clear_cache(self) -> None:
        self._cache.clear()


_default_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Return the shared ConfigLoader instance."""
    global _default_loader
    if _default_loader is None:
        _default_loader = ConfigLoader()
    return _default_loader
