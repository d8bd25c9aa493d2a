"""Tests for base surface synthesis and its safety limits."""

import logging

import numpy as np
import pytest

from tissueforge.noise import create_permutation
from tissueforge.palettes import PALETTES, get_palette
from tissueforge.surface import (
    SafetyLimits,
    allocate_buffer,
    clamp_dimensions,
    color_ramp,
    synthesize_base,
)


@pytest.fixture
def perm():
    return create_permutation(42)


@pytest.fixture
def palette():
    return get_palette("fleshy")


def test_base_size_and_mode(perm, palette):
    img = synthesize_base(100, 100, palette, perm, 0.05)
    assert img.mode == "RGBA"
    assert img.size == (100, 100)


def test_base_deterministic(perm, palette):
    a = synthesize_base(100, 100, palette, perm, 0.05)
    b = synthesize_base(100, 100, palette, create_permutation(42), 0.05)
    np.testing.assert_array_equal(np.array(a), np.array(b))


@pytest.mark.parametrize("name", sorted(PALETTES))
def test_base_channels_in_range(perm, name):
    arr = np.array(synthesize_base(64, 64, PALETTES[name], perm, 0.05))
    assert arr.dtype == np.uint8
    assert (arr[:, :, 3] == 255).all()
    # Detail jitter never pushes a pixel far outside the palette's span
    palette = PALETTES[name]
    lo = np.min([palette.shadow, palette.base, palette.mid, palette.highlight], axis=0)
    hi = np.max([palette.shadow, palette.base, palette.mid, palette.highlight], axis=0)
    assert (arr[:, :, :3] >= np.maximum(lo - 5, 0)).all()
    assert (arr[:, :, :3] <= np.minimum(hi + 5, 255)).all()


def test_base_is_mottled(perm, palette):
    arr = np.array(synthesize_base(100, 100, palette, perm, 0.05))
    assert arr[:, :, :3].std() > 0.5


@pytest.mark.parametrize("band_rows", [1, 7, 64, 1000])
def test_band_size_does_not_change_output(perm, palette, band_rows):
    ref = synthesize_base(50, 37, palette, perm, 0.04)
    img = synthesize_base(50, 37, palette, perm, 0.04, band_rows=band_rows)
    np.testing.assert_array_equal(np.array(ref), np.array(img))


def test_time_drifts_structure(perm, palette):
    still = synthesize_base(60, 60, palette, perm, 0.05)
    moved = synthesize_base(60, 60, palette, perm, 0.05, time=20000)
    assert not np.array_equal(np.array(still), np.array(moved))


def test_color_ramp_endpoints(palette):
    rgb = color_ramp(np.array([0.0, 0.4, 0.7, 1.0]), palette)
    np.testing.assert_allclose(rgb[0], palette.shadow)
    np.testing.assert_allclose(rgb[1], palette.base)
    np.testing.assert_allclose(rgb[2], palette.mid)
    # Highlight segment only reaches 30% of the way to the highlight
    expected = np.add(palette.mid, np.subtract(palette.highlight, palette.mid) * 0.3)
    np.testing.assert_allclose(rgb[3], expected)


def test_clamp_within_limits_untouched():
    assert clamp_dimensions(800, 600, SafetyLimits()) == (800, 600)


def test_clamp_oversized(caplog):
    with caplog.at_level(logging.WARNING, logger="tissueforge.surface"):
        w, h = clamp_dimensions(8000, 8000, SafetyLimits())
    assert w <= 1920 and h <= 1080
    assert any(r.levelno == logging.WARNING for r in caplog.records)


def test_clamp_pixel_budget():
    limits = SafetyLimits(max_width=1000, max_height=1000, max_pixels=250000)
    w, h = clamp_dimensions(1000, 1000, limits)
    assert w * h <= 250000
    assert w == h


@pytest.mark.parametrize("value", [0, -5, float("nan")])
def test_clamp_degenerate_dimensions(value):
    assert clamp_dimensions(value, value, SafetyLimits()) == (1, 1)


def test_oversized_base_does_not_raise(perm, palette):
    limits = SafetyLimits(max_width=64, max_height=32, max_pixels=64 * 32)
    img = synthesize_base(8000, 8000, palette, perm, 0.01, limits=limits)
    assert img.size == (64, 32)


def test_allocation_fallback(monkeypatch, caplog, perm, palette):
    import tissueforge.surface as surface

    real_allocate = surface._allocate
    calls = []

    def flaky(width, height):
        calls.append((width, height))
        if len(calls) == 1:
            raise MemoryError("simulated")
        return real_allocate(width, height)

    monkeypatch.setattr(surface, "_allocate", flaky)
    with caplog.at_level(logging.ERROR, logger="tissueforge.surface"):
        img = synthesize_base(80, 60, palette, perm, 0.05)

    assert calls == [(80, 60), (40, 30)]
    assert img.size == (80, 60)
    assert img.mode == "RGBA"
    assert any(r.levelno == logging.ERROR for r in caplog.records)


def test_allocation_gives_up_after_retries(monkeypatch):
    import tissueforge.surface as surface

    def always_fail(width, height):
        raise MemoryError("simulated")

    monkeypatch.setattr(surface, "_allocate", always_fail)
    with pytest.raises(MemoryError):
        allocate_buffer(256, 256, SafetyLimits(max_retries=2))


def test_allocate_buffer_shape():
    buffer, w, h = allocate_buffer(10, 4, SafetyLimits())
    assert (w, h) == (10, 4)
    assert buffer.shape == (40, 4)


def test_synthesize_base_raises_when_every_retry_fails(monkeypatch, caplog, perm, palette):
    import tissueforge.surface as surface

    def always_fail(width, height):
        raise MemoryError("simulated")

    monkeypatch.setattr(surface, "_allocate", always_fail)
    with caplog.at_level(logging.ERROR, logger="tissueforge.surface"):
        with pytest.raises(MemoryError):
            synthesize_base(64, 64, palette, perm, 0.05, limits=SafetyLimits(max_retries=1))
    # One fallback attempt is logged before giving up
    assert sum(r.levelno == logging.ERROR for r in caplog.records) == 1
