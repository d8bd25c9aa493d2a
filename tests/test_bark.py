"""Tests for bark and wood surfaces."""

import numpy as np
import pytest

from tissueforge.bark import (
    GRAIN_FLOWS,
    KNOTS_PER_TILE,
    MAX_CRACKS,
    crack_intensity,
    place_cracks,
    place_knots,
    synthesize_bark,
)
from tissueforge.noise import create_permutation
from tissueforge.palettes import (
    WOOD_PALETTES,
    WoodPalette,
    get_wood_palette,
    wood_palette_from_color,
)
from tissueforge.surface import SafetyLimits


@pytest.fixture
def perm():
    return create_permutation(42)


@pytest.fixture
def oak():
    return get_wood_palette("oak")


def test_bark_size_and_mode(perm, oak):
    img = synthesize_bark(90, 70, oak, perm)
    assert img.mode == "RGBA"
    assert img.size == (90, 70)
    assert (np.array(img)[:, :, 3] == 255).all()


def test_bark_deterministic(oak):
    a = synthesize_bark(80, 80, oak, create_permutation(9), growth_level=1.0, moss=True)
    b = synthesize_bark(80, 80, oak, create_permutation(9), growth_level=1.0, moss=True)
    np.testing.assert_array_equal(np.array(a), np.array(b))


@pytest.mark.parametrize("flow", GRAIN_FLOWS)
def test_every_grain_flow_renders(perm, oak, flow):
    img = synthesize_bark(64, 64, oak, perm, grain_flow=flow)
    assert img.size == (64, 64)


def test_grain_flow_changes_texture(perm, oak):
    vertical = np.array(synthesize_bark(96, 96, oak, perm, grain_flow="vertical"))
    horizontal = np.array(synthesize_bark(96, 96, oak, perm, grain_flow="horizontal"))
    assert not np.array_equal(vertical, horizontal)


def test_unknown_grain_flow_raises(perm, oak):
    with pytest.raises(ValueError):
        synthesize_bark(32, 32, oak, perm, grain_flow="diagonal")


@pytest.mark.parametrize("growth, age, expected", [
    (0.0, 1.0, 0.0),
    (0.1, 1.0, 0.0),
    (1.0, 1.0, 1.0),
    (0.35, 0.5, 0.25),
    (1.0, 0.0, 0.0),
])
def test_crack_intensity(growth, age, expected):
    assert crack_intensity(growth, age) == pytest.approx(expected)


def test_crack_count_follows_intensity(perm):
    assert place_cracks(200, 200, perm, 0.0) == []
    cracks = place_cracks(200, 200, perm, 1.0)
    assert 0 < len(cracks) <= MAX_CRACKS
    assert all(c.length > 0 for c in cracks)


def test_knot_count_scales_with_area(perm):
    assert place_knots(400, 400, perm, 0.0) == []
    small = place_knots(400, 400, perm, 1.0)
    large = place_knots(800, 800, perm, 1.0)
    assert len(small) <= KNOTS_PER_TILE
    assert len(large) > len(small)
    assert all(k.radius > 0 for k in large)


def test_young_bark_is_smooth(perm, oak):
    # Nothing growth-gated appears at or below 0.1
    a = synthesize_bark(80, 80, oak, perm, growth_level=0.0, age=1.0, moss=True)
    b = synthesize_bark(80, 80, oak, perm, growth_level=0.1, age=1.0, moss=True)
    np.testing.assert_array_equal(np.array(a), np.array(b))


def test_growth_cracks_and_roughens(perm, oak):
    young = synthesize_bark(96, 96, oak, perm, growth_level=0.0, age=1.0)
    old = synthesize_bark(96, 96, oak, perm, growth_level=1.0, age=1.0)
    assert not np.array_equal(np.array(young), np.array(old))


def test_moss_waits_for_growth(perm, oak):
    with_moss = synthesize_bark(64, 64, oak, perm, growth_level=0.5, moss=True)
    without = synthesize_bark(64, 64, oak, perm, growth_level=0.5, moss=False)
    np.testing.assert_array_equal(np.array(with_moss), np.array(without))


def test_moss_appears_when_grown(oak):
    differs = []
    for seed in range(1, 6):
        perm = create_permutation(seed)
        with_moss = synthesize_bark(160, 160, oak, perm, growth_level=1.0, moss=True, seed=seed)
        without = synthesize_bark(160, 160, oak, perm, growth_level=1.0, moss=False, seed=seed)
        differs.append(not np.array_equal(np.array(with_moss), np.array(without)))
    assert any(differs)


@pytest.mark.parametrize("band_rows", [1, 7, 1000])
def test_bark_band_size_does_not_change_output(perm, oak, band_rows):
    ref = synthesize_bark(50, 40, oak, perm, growth_level=1.0)
    out = synthesize_bark(50, 40, oak, perm, growth_level=1.0, band_rows=band_rows)
    np.testing.assert_array_equal(np.array(out), np.array(ref))


def test_bark_is_clamped(perm, oak):
    limits = SafetyLimits(max_width=64, max_height=32, max_pixels=64 * 32)
    img = synthesize_bark(5000, 5000, oak, perm, limits=limits)
    assert img.size == (64, 32)


def test_wood_palettes():
    assert set(WOOD_PALETTES) == {"oak", "dark_wood", "weathered"}
    custom = WoodPalette(*([(1, 2, 3)] * 6))
    assert get_wood_palette(custom) is custom
    with pytest.raises(KeyError):
        get_wood_palette("plywood")


def test_wood_palette_from_color():
    wood = wood_palette_from_color("#3d2817")
    assert wood.base == (61, 40, 23)
    assert wood.mid == (79, 52, 30)
    assert wood.light == (98, 64, 37)
    assert wood.moss == WOOD_PALETTES["oak"].moss


def test_generate_bark_kind():
    from tissueforge import generate
    bark = generate(width=64, height=48, seed=4, surface_kind="bark", vein_count=0)
    tissue = generate(width=64, height=48, seed=4, vein_count=0)
    assert bark.size == (64, 48)
    assert not np.array_equal(np.array(bark), np.array(tissue))


def test_bark_kind_matches_synthesizer():
    from tissueforge import generate
    img = generate(width=48, height=48, seed=11, surface_kind="wood", vein_count=0,
                   growth_level=0.8, wood="weathered")
    direct = synthesize_bark(48, 48, WOOD_PALETTES["weathered"], create_permutation(11),
                             grain_flow="vertical", growth_level=0.8, roughness=0.4,
                             seed=11)
    np.testing.assert_array_equal(np.array(img), np.array(direct))


def test_bark_kind_defaults():
    from tissueforge import SurfaceRequest
    bark = SurfaceRequest(surface_kind="bark")
    assert (bark.grain_flow, bark.roughness) == ("vertical", 0.7)
    wood = SurfaceRequest(surface_kind="wood", roughness=0.9, grain_flow="radial")
    assert (wood.grain_flow, wood.roughness) == ("radial", 0.9)


def test_unknown_surface_kind_raises():
    from tissueforge import SurfaceRequest
    with pytest.raises(ValueError):
        SurfaceRequest(surface_kind="scales")
