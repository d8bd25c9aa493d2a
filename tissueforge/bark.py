"""Bark and wood surface synthesis.

Built on the same clamped, banded painter as the tissue base. A mottled
wood ramp is streaked by directional grain, then knots, growth-gated
depth cracks, fine surface detail and moss patches are layered on. The
later layers only appear as the growth level rises, so a young surface
is smooth and an old one is cracked and mossy.
"""

import math
from dataclasses import dataclass

import numpy as np

from .noise import fbm, simplex_2d
from .surface import BAND_ROWS, TIME_DRIFT, SafetyLimits, paint_surface, three_segment_ramp

GRAIN_FLOWS = ('vertical', 'horizontal', 'radial', 'chaotic')

# Wood ramp: dark -> base -> mid -> (40% of the way to) light
WOOD_LOW = 0.3
WOOD_HIGH = 0.6
WOOD_REACH = 0.4

WOOD_DETAIL_AMPLITUDE = np.array([8.0, 6.0, 5.0])

# Grain lines form where the grain field lies in this band
GRAIN_BAND = (0.3, 0.5)
GRAIN_WEIGHT = 0.3

KNOT_DARKEN = np.array([40.0, 35.0, 30.0])
CRACK_DARKEN = np.array([50.0, 45.0, 40.0])
CRACK_HALF_WIDTH = 3.0
DETAIL_TINT = np.array([1.0, 0.8, 0.6])

# Knots per 400x400 pixels at full density
KNOTS_PER_TILE = 5
KNOT_TILE = 400 * 400

MAX_CRACKS = 8
MAX_MOSS = 0.6


@dataclass
class Knot:
    x: float
    y: float
    radius: float


@dataclass
class Crack:
    x: float
    y: float
    length: float
    angle: float


def place_knots(width, height, perm, density, seed=0):
    """Knot centres and radii; knots with no positive radius are dropped."""
    count = int(max(0.0, density) * KNOTS_PER_TILE * width * height / KNOT_TILE)
    knots = []
    for i in range(count):
        radius = 15 + simplex_2d(i * 50, seed, perm) * 20
        if radius <= 0:
            continue
        knots.append(Knot(
            x=(simplex_2d(i * 100 + seed, 0, perm) * 0.5 + 0.5) * width,
            y=(simplex_2d(i * 100 + seed, 100, perm) * 0.5 + 0.5) * height,
            radius=radius,
        ))
    return knots


def crack_intensity(growth_level, age):
    """Crack strength in [0, 1]; zero until growth passes 0.1."""
    if growth_level <= 0.1:
        return 0.0
    return min(1.0, (growth_level - 0.1) * 2) * max(0.0, min(1.0, age))


def place_cracks(width, height, perm, intensity, seed=0):
    cracks = []
    for c in range(int(intensity * MAX_CRACKS)):
        length = 50 + simplex_2d(c * 100, seed, perm) * 100
        if length <= 0:
            continue
        cracks.append(Crack(
            x=(simplex_2d(c * 200 + seed, 0, perm) * 0.5 + 0.5) * width,
            y=(simplex_2d(c * 200 + seed, 200, perm) * 0.5 + 0.5) * height,
            length=length,
            angle=simplex_2d(c * 150, seed + 50, perm) * math.pi,
        ))
    return cracks


def grain_field(xs, ys, perm, flow, width, height, seed=0):
    """Directional noise whose mid band draws the grain lines."""
    if flow == 'vertical':
        return fbm(xs * 0.08, ys * 0.008 + seed * 0.1, perm, 3)
    if flow == 'horizontal':
        return fbm(xs * 0.008 + seed * 0.1, ys * 0.08, perm, 3)
    if flow == 'radial':
        dx = xs - width / 2
        dy = ys - height / 2
        angle = np.arctan2(dy, dx)
        dist = np.hypot(dx, dy)
        return fbm(angle * 2 + dist * 0.01, dist * 0.02, perm, 3)
    # chaotic: domain-warped
    warp_x = fbm(xs * 0.01, ys * 0.01, perm, 2) * 30
    warp_y = fbm(xs * 0.01 + 50, ys * 0.01 + 50, perm, 2) * 30
    return fbm((xs + warp_x) * 0.03, (ys + warp_y) * 0.03, perm, 3)


def _bark_rgb(xs, ys, width, height, palette, perm, grain_flow, knots, cracks,
              intensity, growth_level, moss, roughness, seed, time_offset):
    # 1. Mottled wood
    structure = fbm(xs * 0.008 + time_offset, ys * 0.008, perm, 4)
    detail = fbm(xs * 0.016 + 100, ys * 0.016 + 100, perm, 3)
    rgb = three_segment_ramp((structure + 1) / 2,
                             (palette.dark, palette.base, palette.mid, palette.light),
                             WOOD_LOW, WOOD_HIGH, WOOD_REACH)
    rgb += (((detail + 1) / 2) - 0.5)[:, np.newaxis] * WOOD_DETAIL_AMPLITUDE

    # 2. Grain
    grain = grain_field(xs, ys, perm, grain_flow, width, height, seed)
    lines = (grain > GRAIN_BAND[0]) & (grain < GRAIN_BAND[1])
    strength = np.where(lines, 1 - np.abs(grain - 0.4) * 10, 0.0)[:, np.newaxis] * GRAIN_WEIGHT
    rgb = rgb * (1 - strength) + np.asarray(palette.grain, dtype=np.float64) * strength
    rgb = np.clip(rgb, 0, 255)

    # 3. Knots, darker toward the centre with concentric rings
    for knot in knots:
        dist = np.hypot(xs - knot.x, ys - knot.y)
        t = dist / knot.radius
        ring = np.sin(dist * 0.5) * 0.5 + 0.5
        darken = np.where(t < 1, (1 - t) * 0.4 * (1 + ring * 0.3), 0.0)
        rgb = np.maximum(0, rgb - darken[:, np.newaxis] * KNOT_DARKEN)

    # 4. Depth cracks, fading along their length
    for crack in cracks:
        dx = xs - crack.x
        dy = ys - crack.y
        c, s = math.cos(crack.angle), math.sin(crack.angle)
        along = dx * c + dy * s
        across = np.abs(-dx * s + dy * c)
        hit = (along > 0) & (along < crack.length) & (across < CRACK_HALF_WIDTH)
        darken = np.where(
            hit,
            (1 - across / CRACK_HALF_WIDTH) * (1 - along / crack.length) * intensity * 0.5,
            0.0,
        )
        rgb = np.maximum(0, rgb - darken[:, np.newaxis] * CRACK_DARKEN)

    # 5. Fine surface detail
    if growth_level > 0.3:
        detail_strength = min(1.0, (growth_level - 0.3) * 2.5) * roughness
        fine = fbm(xs * 0.1, ys * 0.1, perm, 5) * detail_strength * 12
        rgb = np.clip(rgb + fine[:, np.newaxis] * DETAIL_TINT, 0, 255)

    # 6. Moss patches
    if moss and growth_level > 0.5:
        moss_intensity = (growth_level - 0.5) * 2
        patches = fbm(xs * 0.015 + seed * 0.5, ys * 0.015, perm, 3)
        cover = np.where(patches > 0.3,
                         np.minimum(MAX_MOSS, (patches - 0.3) * 1.4 * moss_intensity),
                         0.0)[:, np.newaxis]
        rgb = rgb * (1 - cover) + np.asarray(palette.moss, dtype=np.float64) * cover

    return rgb


def synthesize_bark(width, height, palette, perm, grain_flow='vertical', age=0.5,
                    growth_level=0.0, knot_density=0.3, moss=False,
                    roughness=0.5, seed=0, time=0.0, limits=None,
                    band_rows=BAND_ROWS):
    """Synthesize a bark or wood surface.

    Args:
        width, height: Requested size in pixels; clamped to limits.
        palette: WoodPalette.
        perm: Permutation table from create_permutation().
        grain_flow: One of GRAIN_FLOWS.
        age: 0-1, deepens cracks.
        growth_level: 0-1. Cracks appear above 0.1, fine detail above
            0.3 and moss (when enabled) above 0.5.
        knot_density: 0-1, knots per area.
        moss: Enable moss patches.
        roughness: 0-1, strength of the fine detail.
        seed: Offsets the grain, knot, crack and moss fields.
        time: Optional animation time, drifts the mottling.
        limits: SafetyLimits (defaults used if None).
        band_rows: Rows evaluated per band. Does not affect the output.

    Returns:
        PIL Image in RGBA mode, at the clamped size.

    Raises:
        ValueError: for an unknown grain_flow.
        MemoryError: if even the buffer left after limits.max_retries
            halvings cannot be allocated.
    """
    if grain_flow not in GRAIN_FLOWS:
        raise ValueError(f"grain_flow must be one of {GRAIN_FLOWS}, not {grain_flow!r}")
    if limits is None:
        limits = SafetyLimits()
    growth_level = min(1.0, max(0.0, float(growth_level)))
    roughness = min(1.0, max(0.0, float(roughness)))
    seed = int(seed)
    time_offset = float(time) * TIME_DRIFT
    intensity = crack_intensity(growth_level, age)

    def painter_for(w, h):
        knots = place_knots(w, h, perm, knot_density, seed)
        cracks = place_cracks(w, h, perm, intensity, seed)
        return lambda xs, ys: _bark_rgb(
            xs, ys, w, h, palette, perm, grain_flow, knots, cracks, intensity,
            growth_level, moss, roughness, seed, time_offset,
        )

    return paint_surface(width, height, limits, painter_for, band_rows)
