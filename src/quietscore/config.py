"""Process-wide sampling and banding configuration.

The same instance must be handed to the scheduler and the analytics engine:
the exposure distribution charges ``sample_interval_seconds`` per sample, and
the quiet score is expressed in minutes derived from that interval.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Mapping

from quietscore.errors import ConfigurationInvalid


DEFAULT_SAMPLE_INTERVAL = 60.0  # seconds
DEFAULT_QUIET_THRESHOLD = 40.0  # dB
DEFAULT_MODERATE_THRESHOLD = 70.0
DEFAULT_LOUD_THRESHOLD = 85.0


@dataclass(frozen=True)
class Configuration:
    """Sampling interval and exposure band thresholds."""

    sample_interval_seconds: float = DEFAULT_SAMPLE_INTERVAL
    quiet_threshold: float = DEFAULT_QUIET_THRESHOLD
    moderate_threshold: float = DEFAULT_MODERATE_THRESHOLD
    loud_threshold: float = DEFAULT_LOUD_THRESHOLD

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationInvalid(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigurationInvalid(f"{f.name} must be finite, got {value!r}")

        if self.sample_interval_seconds <= 0:
            raise ConfigurationInvalid(
                f"sample_interval_seconds must be > 0, got {self.sample_interval_seconds}"
            )
        if not (self.quiet_threshold < self.moderate_threshold < self.loud_threshold):
            raise ConfigurationInvalid(
                "thresholds must be strictly increasing: "
                f"quiet={self.quiet_threshold}, moderate={self.moderate_threshold}, "
                f"loud={self.loud_threshold}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Configuration:
        """Build a configuration from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationInvalid(f"unknown configuration keys: {', '.join(unknown)}")
        return cls(**{k: float(v) if isinstance(v, int) and not isinstance(v, bool) else v
                      for k, v in data.items()})

    def replace(self, **overrides: Any) -> Configuration:
        """Return a copy with the non-None overrides applied."""
        values = asdict(self)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return Configuration.from_mapping(values)

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


DEFAULT_CONFIG = Configuration()


def load_config(path: str | Path) -> Configuration:
    """Load a configuration from a JSON object file.

    Raises:
        ConfigurationInvalid: The file is not a JSON object or its values
            fail validation.
    """
    text = Path(path).read_text()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationInvalid(f"{path}: invalid JSON ({e.msg})") from e
    if not isinstance(data, dict):
        raise ConfigurationInvalid(f"{path}: expected a JSON object")
    return Configuration.from_mapping(data)
