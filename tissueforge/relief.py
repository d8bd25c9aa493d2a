"""Relief passes for organic surfaces.

The depth pass lays a few broad elliptical swells over the base, lit from
above and shaded below, like muscle under skin. The subsurface pass adds
softer, smaller shapes hinting at structure beneath. Both are raised
relief, never holes. Barnacle clusters and scars are separate decorations
drawn onto a finished surface.
"""

import math

import numpy as np

from .canvas import StrokeLayer, arc_points, blend_layers, ellipse_frame, gradient, quadratic_bezier
from .noise import simplex_2d
from .palettes import PALETTES

DEPTH_REGIONS = 8
SUBSURFACE_SHAPES = 15

# Colour the depth gradient passes through at its middle
NEUTRAL_GREY = (128, 128, 128)


def depth_layers(size, palette, perm):
    """One float layer per raised region of the depth pass."""
    w, h = size
    layers = []
    for i in range(DEPTH_REGIONS):
        if simplex_2d(i * 20, i * 20 + 500, perm) <= 0:
            continue
        x = (simplex_2d(i * 50, 0, perm) * 0.5 + 0.5) * w
        y = (simplex_2d(0, i * 50, perm) * 0.5 + 0.5) * h
        extent = 100 + abs(simplex_2d(i * 30, i * 30, perm)) * 200
        angle = simplex_2d(i * 10, 0, perm) * math.pi

        _, v, inside = ellipse_frame(size, (x, y), angle, extent, extent * 0.4)
        # Highlight on the upper edge, shadow on the lower
        t = (v + extent * 0.3) / (extent * 0.6)
        layer = gradient(np.clip(t, 0.0, 1.0), [
            (0.0, palette.highlight, 0.15),
            (0.5, NEUTRAL_GREY, 0.0),
            (1.0, palette.shadow, 0.1),
        ])
        layer[~inside] = 0.0
        layers.append(layer)
    return layers


def subsurface_layers(size, palette, perm):
    """Elongated radial shapes of the subsurface pass."""
    w, h = size
    layers = []
    for i in range(SUBSURFACE_SHAPES):
        x = (simplex_2d(i * 70, 0, perm) + 1) / 2 * w
        y = (simplex_2d(0, i * 70, perm) + 1) / 2 * h
        extent = 40 + abs(simplex_2d(i * 40, i * 40, perm)) * 100
        angle = simplex_2d(i * 25, 500, perm) * math.pi
        aspect = 0.3 + abs(simplex_2d(i * 35, 0, perm)) * 0.4
        brightness = 1.2 if simplex_2d(i * 45, 250, perm) > 0 else 0.8
        core = tuple(min(255.0, c * brightness) for c in palette.mid)

        u, v, inside = ellipse_frame(size, (x, y), angle, extent, extent * aspect)
        layer = gradient(np.hypot(u, v) / extent, [
            (0.0, core, 0.15),
            (0.7, palette.base, 0.05),
            (1.0, palette.base, 0.0),
        ])
        layer[~inside] = 0.0
        layers.append(layer)
    return layers


def apply_depth(image, palette, perm):
    """Return a copy of image with the depth pass overlaid."""
    return blend_layers(image, depth_layers(image.size, palette, perm), 'overlay')


def apply_subsurface(image, palette, perm):
    """Return a copy of image with the subsurface pass soft-lit in."""
    return blend_layers(image, subsurface_layers(image.size, palette, perm),
                        'soft-light')


def draw_barnacles(image, center, cluster_radius, perm, palette=None, count=8,
                   seed_offset=0):
    """Draw a cluster of raised barnacle rings onto image in place.

    Each barnacle is a ring lit along its upper half and shaded along its
    lower half, around a slightly raised centre.
    """
    if palette is None:
        palette = PALETTES['rocky']
    rims = StrokeLayer(image.size)
    shadows = StrokeLayer(image.size)
    centres = StrokeLayer(image.size)
    so = seed_offset

    for i in range(max(0, int(count))):
        angle = (simplex_2d(so + i * 13, 700, perm) + 1) * math.pi
        dist = abs(simplex_2d(so + i * 17, 710, perm)) * cluster_radius
        bx = center[0] + math.cos(angle) * dist
        by = center[1] + math.sin(angle) * dist
        size = 3 + abs(simplex_2d(so + i * 19, 720, perm)) * 8

        rims.line(arc_points((bx, by), size, math.pi * 0.8, math.pi * 1.8),
                  palette.highlight, 2, 0.4)
        shadows.line(arc_points((bx, by), size, math.pi * 1.8, math.pi * 2.8),
                     palette.base, 2, 0.5)
        centres.disc((bx, by), size * 0.4, palette.mid, 0.6)

    for layer in (rims, shadows, centres):
        layer.composite_onto(image)


def draw_scarring(image, start, length, palette, perm, angle=0.0, width=3.0,
                  seed_offset=0):
    """Draw a healed scar onto image in place: dark core, raised upper edge."""
    x, y = start
    mid_x = x + math.cos(angle) * length * 0.5
    mid_y = y + math.sin(angle) * length * 0.5
    end = (x + math.cos(angle) * length, y + math.sin(angle) * length)

    bend = simplex_2d(seed_offset, 800, perm) * 7.5
    ctrl = (mid_x + math.cos(angle + math.pi / 2) * bend,
            mid_y + math.sin(angle + math.pi / 2) * bend)

    core = StrokeLayer(image.size)
    core.line(quadratic_bezier(start, ctrl, end), palette.shadow, width, 0.7)

    lift = np.array([0.0, -width * 0.4])
    edge = StrokeLayer(image.size)
    edge.line(quadratic_bezier(start, ctrl, end) + lift, palette.vein_highlight,
              width * 0.4, 0.35)

    core.composite_onto(image)
    edge.composite_onto(image)
