import dataclasses
import threading

import pytest

from roigeom.config import DEFAULT_SETTINGS, ConverterConfig, get_default_config, resolve_config


def test_defaults():
    config = ConverterConfig()
    assert config.pixel_width == 1.0
    assert config.pixel_height == 1.0
    assert config.flatness == 0.5
    assert config.precision_grid_size is None
    assert not config.is_scaled


def test_config_is_immutable():
    config = ConverterConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.flatness = 2.0


@pytest.mark.parametrize("kwargs", [
    {'pixel_width': 0},
    {'pixel_height': -1.0},
    {'flatness': float('nan')},
    {'flatness': float('inf')},
    {'precision_grid_size': -0.5},
])
def test_invalid_values_are_rejected(kwargs):
    with pytest.raises(ValueError):
        ConverterConfig(**kwargs)


def test_from_settings_fills_missing_keys():
    config = ConverterConfig.from_settings({'pixel_width': 0.25, 'unrelated': True})
    assert config.pixel_width == 0.25
    assert config.pixel_height == DEFAULT_SETTINGS['pixel_height']
    assert config.flatness == DEFAULT_SETTINGS['flatness']
    assert config.is_scaled


def test_with_methods_return_new_configs():
    base = ConverterConfig()

    scaled = base.with_pixel_size(0.5, 0.5)
    assert scaled is not base
    assert (scaled.pixel_width, scaled.pixel_height) == (0.5, 0.5)
    assert base.pixel_width == 1.0

    assert base.with_flatness(0.1).flatness == 0.1
    assert base.with_precision(1.0).precision_grid_size == 1.0
    with pytest.raises(ValueError):
        base.with_flatness(0)


def test_default_config_is_shared():
    assert get_default_config() is get_default_config()
    assert resolve_config() is get_default_config()

    custom = ConverterConfig(flatness=0.1)
    assert resolve_config(custom) is custom

    seen = []
    threads = [threading.Thread(target=lambda: seen.append(get_default_config())) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(seen) == 8
    assert all(c is seen[0] for c in seen)


if __name__ == "__main__":
    pytest.main([__file__])
