# config.py

import math
import threading
from dataclasses import dataclass, replace

# Plain settings accepted by ConverterConfig.from_settings().
DEFAULT_SETTINGS = {
    'pixel_width': 1.0,
    'pixel_height': 1.0,
    'flatness': 0.5,
    'precision_grid_size': None,
}


@dataclass(frozen=True)
class ConverterConfig:
    """
    Immutable conversion settings shared by every engine call.

    - pixel_width / pixel_height scale x and y on the way into a geometry
      (and are divided out again on the way back to a ROI).
    - flatness is the maximum deviation allowed when curved shapes are
      tessellated into rings.
    - precision_grid_size switches on a fixed-precision coordinate model
      (None keeps full floating precision).
    """
    pixel_width: float = DEFAULT_SETTINGS['pixel_width']
    pixel_height: float = DEFAULT_SETTINGS['pixel_height']
    flatness: float = DEFAULT_SETTINGS['flatness']
    precision_grid_size: object = DEFAULT_SETTINGS['precision_grid_size']

    def __post_init__(self):
        for name in ('pixel_width', 'pixel_height', 'flatness'):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a finite value > 0, got {value}")
        grid = self.precision_grid_size
        if grid is not None and (not math.isfinite(grid) or grid < 0):
            raise ValueError(f"precision_grid_size must be None or >= 0, got {grid}")

    @property
    def is_scaled(self):
        return self.pixel_width != 1.0 or self.pixel_height != 1.0

    def with_pixel_size(self, pixel_width, pixel_height):
        return replace(self, pixel_width=pixel_width, pixel_height=pixel_height)

    def with_flatness(self, flatness):
        return replace(self, flatness=flatness)

    def with_precision(self, grid_size):
        return replace(self, precision_grid_size=grid_size)

    @classmethod
    def from_settings(cls, settings):
        """Builds a config from a settings dict, falling back to DEFAULT_SETTINGS for missing keys."""
        values = {key: settings.get(key, default) for key, default in DEFAULT_SETTINGS.items()}
        return cls(**values)


_default_config = None
_default_lock = threading.Lock()


def get_default_config():
    """Returns the process-wide default config, building it on first use only."""
    global _default_config
    if _default_config is None:
        with _default_lock:
            if _default_config is None:
                _default_config = ConverterConfig.from_settings(DEFAULT_SETTINGS)
    return _default_config


def resolve_config(config=None):
    return get_default_config() if config is None else config
