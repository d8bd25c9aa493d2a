"""Light response for organic surfaces.

A broad warm glow imitates light scattering under translucent tissue, a
tighter specular spot marks the light's core, and a few short veins show
up only inside the lit radius. The result is a separate float layer that
is added on top of a surface, so the surface itself can be cached
regardless of where the light is.
"""

import logging
import math

import numpy as np

from .canvas import StrokeLayer, add_layers, quadratic_bezier, radial_ramp
from .noise import simplex_2d

logger = logging.getLogger(__name__)

# Extents in multiples of the light radius
SCATTER_EXTENT = 1.5
SPECULAR_EXTENT = 0.5
REVEAL_EXTENT = 1.2

REVEALED_VEINS = 5
MIN_REVEAL_ALPHA = 0.05


def _shift(rgb, delta):
    return tuple(min(255, max(0, c + d)) for c, d in zip(rgb, delta))


def _scatter(size, light, radius, palette):
    extent = SCATTER_EXTENT
    warm = _shift(palette.vein_highlight, (20, 0, -10))
    vein = _shift(palette.vein, (15, 0, 0))
    mid = _shift(palette.mid, (10, 5, 5))
    # Glow peaks between 0.3 and 0.6 radius and is gone by 1.5 radius
    return radial_ramp(size, light, radius * extent, [
        (0.0, warm, 0.06),
        (0.3 / extent, warm, 0.12),
        (0.6 / extent, vein, 0.10),
        (1.0 / extent, mid, 0.04),
        (1.0, mid, 0.0),
    ])


def _specular(size, light, radius, palette):
    core = _shift(palette.highlight, (40, 35, 30))
    rim = _shift(palette.highlight, (20, 15, 10))
    return radial_ramp(size, light, radius * SPECULAR_EXTENT, [
        (0.0, core, 0.2),
        (0.5, rim, 0.08),
        (1.0, rim, 0.0),
    ])


def _revealed_veins(size, light, radius, palette, perm):
    """Short curved veins placed around the light by noise."""
    lx, ly = light
    layer = StrokeLayer(size)
    color = _shift(palette.vein, (20, 0, 0))
    reveal = radius * REVEAL_EXTENT

    for i in range(REVEALED_VEINS):
        angle = (simplex_2d(lx * 0.01 + i * 20, ly * 0.01, perm) + 1) * math.pi
        dist = radius * (0.1 + abs(simplex_2d(i * 30, 0, perm)) * 0.3)
        alpha = max(0.0, 1.0 - dist / reveal) * 0.3
        if alpha <= MIN_REVEAL_ALPHA:
            continue

        vx = lx + math.cos(angle) * dist
        vy = ly + math.sin(angle) * dist
        end_angle = angle + simplex_2d(i * 15, 500, perm) * 0.8
        length = radius * (0.1 + abs(simplex_2d(i * 35, 0, perm)) * 0.2)
        ctrl_angle = angle + simplex_2d(i * 20, 250, perm) * 0.5
        curve = quadratic_bezier(
            (vx, vy),
            (vx + math.cos(ctrl_angle) * length * 0.5,
             vy + math.sin(ctrl_angle) * length * 0.5),
            (vx + math.cos(end_angle) * length,
             vy + math.sin(end_angle) * length),
        )
        width = 1.0 + abs(simplex_2d(i * 25, 0, perm)) * 2.0
        layer.line(curve, color, width, alpha)

    return layer.to_layer()


def light_response_layer(size, light, radius, palette, perm):
    """Build the combined light-response layer.

    Args:
        size: (width, height) of the surface.
        light: (x, y) light position, may be off the surface.
        radius: Light radius in pixels.
        palette: ColorPalette.
        perm: Permutation table for the revealed veins.

    Returns:
        (height, width, 4) float array: RGB in 0-255, alpha as the
        additive weight of that colour. A non-finite position or radius
        gives an all-zero layer.
    """
    w, h = size
    radius = float(radius)
    light = (float(light[0]), float(light[1]))
    if not all(math.isfinite(v) for v in (radius,) + light):
        logger.warning("Ignoring non-finite light %r with radius %r", light, radius)
        return np.zeros((h, w, 4), dtype=np.float64)
    radius = max(1.0, radius)
    parts = (
        _scatter(size, light, radius, palette),
        _specular(size, light, radius, palette),
        _revealed_veins(size, light, radius, palette, perm),
    )

    premultiplied = sum(p[:, :, :3] * p[:, :, 3:4] for p in parts)
    alpha = sum(p[:, :, 3] for p in parts)

    layer = np.zeros((h, w, 4), dtype=np.float64)
    lit = alpha > 0
    layer[lit, :3] = premultiplied[lit] / alpha[lit][:, np.newaxis]
    layer[:, :, 3] = alpha
    return layer


def apply_light(image, layer):
    """Return a copy of image with the light layer added."""
    return add_layers(image, layer)
