"""Drawing surface helpers.

Strokes are drawn with Pillow onto transparent RGBA layers which are then
alpha-composited onto the surface. Radial colour ramps are built as float
numpy layers (RGB in 0-255, alpha in 0-1) so they can be added to an image
without touching it.
"""

import numpy as np
from PIL import Image, ImageDraw

# Polyline samples per smoothed curve segment
BEZIER_STEPS = 8


def _rgba(color, opacity):
    r, g, b = (int(np.clip(round(c), 0, 255)) for c in color)
    a = int(np.clip(round(opacity * 255), 0, 255))
    return (r, g, b, a)


def cubic_bezier(p0, p1, p2, p3, steps=BEZIER_STEPS):
    """Sample a cubic Bezier curve into an (steps + 1, 2) array."""
    t = np.linspace(0.0, 1.0, steps + 1)[:, np.newaxis]
    mt = 1.0 - t
    return (mt * mt * mt * np.asarray(p0, dtype=np.float64)
            + 3 * mt * mt * t * np.asarray(p1, dtype=np.float64)
            + 3 * mt * t * t * np.asarray(p2, dtype=np.float64)
            + t * t * t * np.asarray(p3, dtype=np.float64))


def quadratic_bezier(p0, p1, p2, steps=BEZIER_STEPS):
    t = np.linspace(0.0, 1.0, steps + 1)[:, np.newaxis]
    mt = 1.0 - t
    return (mt * mt * np.asarray(p0, dtype=np.float64)
            + 2 * mt * t * np.asarray(p1, dtype=np.float64)
            + t * t * np.asarray(p2, dtype=np.float64))


def catmull_rom_segments(points, steps=BEZIER_STEPS):
    """Smooth a polyline into one sampled Bezier curve per segment.

    Control points come from the Catmull-Rom tangent of the neighbouring
    points (clamped at the ends), giving a curve through every input point.

    Returns:
        List of (steps + 1, 2) arrays, one per consecutive point pair.
    """
    pts = np.asarray(points, dtype=np.float64)
    n = len(pts)
    curves = []
    for i in range(n - 1):
        p0 = pts[max(0, i - 1)]
        p1 = pts[i]
        p2 = pts[i + 1]
        p3 = pts[min(n - 1, i + 2)]
        cp1 = p1 + (p2 - p0) / 6.0
        cp2 = p2 - (p3 - p1) / 6.0
        curves.append(cubic_bezier(p1, cp1, cp2, p2, steps))
    return curves


class StrokeLayer:
    """Transparent RGBA layer collecting strokes of a single pass."""

    def __init__(self, size):
        self.image = Image.new('RGBA', size, (0, 0, 0, 0))
        self._draw = ImageDraw.Draw(self.image)

    def line(self, points, color, width, opacity=1.0):
        """Stroke a polyline with round joins and caps."""
        if len(points) < 2:
            return
        # Sub-pixel widths fade out instead of staying one pixel solid
        if width < 1.0:
            opacity *= max(width, 0.0)
        fill = _rgba(color, opacity)
        w = max(1, int(round(width)))
        pts = [(float(x), float(y)) for x, y in points]
        self._draw.line(pts, fill=fill, width=w, joint='curve')
        if w > 2:
            r = width / 2.0
            for x, y in (pts[0], pts[-1]):
                self._draw.ellipse([x - r, y - r, x + r, y + r], fill=fill)

    def disc(self, center, radius, color, opacity=1.0):
        x, y = center
        if radius <= 0:
            return
        self._draw.ellipse([x - radius, y - radius, x + radius, y + radius],
                           fill=_rgba(color, opacity))

    def polygon(self, points, color, opacity=1.0):
        if len(points) < 3:
            return
        self._draw.polygon([(float(x), float(y)) for x, y in points],
                           fill=_rgba(color, opacity))

    def composite_onto(self, image):
        """Alpha-composite this layer onto image in place."""
        image.alpha_composite(self.image)

    def to_layer(self):
        """Float layer view for additive compositing."""
        layer = np.array(self.image, dtype=np.float64)
        layer[:, :, 3] /= 255.0
        return layer


def radial_ramp(size, center, radius, stops):
    """Build a radial colour ramp layer.

    Args:
        size: (width, height) of the layer.
        center: (x, y) centre of the ramp, may lie outside the layer.
        radius: Distance mapped to offset 1.0.
        stops: Sequence of (offset, (r, g, b), alpha) with ascending
            offsets. Beyond the last stop the last stop's value holds.

    Returns:
        (height, width, 4) float64 array.
    """
    w, h = size
    cx, cy = center
    ys, xs = np.mgrid[0:h, 0:w]
    dist = np.hypot(xs + 0.5 - cx, ys + 0.5 - cy) / max(float(radius), 1e-6)

    offsets = [s[0] for s in stops]
    layer = np.empty((h, w, 4), dtype=np.float64)
    for c in range(3):
        layer[:, :, c] = np.interp(dist, offsets, [s[1][c] for s in stops])
    layer[:, :, 3] = np.interp(dist, offsets, [s[2] for s in stops])
    return layer


def add_layers(image, *layers):
    """Additively blend float layers over an RGBA image.

    Each layer contributes rgb * alpha. The input image is left
    untouched; a new RGBA image is returned.
    """
    arr = np.array(image.convert('RGBA'), dtype=np.float64)
    for layer in layers:
        arr[:, :, :3] += layer[:, :, :3] * layer[:, :, 3:4]
    out = np.clip(arr, 0, 255).astype(np.uint8)
    return Image.fromarray(out)


def arc_points(center, radius, start, end, steps=16):
    """Sample a circular arc from start to end angle (radians, clockwise)."""
    theta = np.linspace(start, end, steps + 1)
    return np.column_stack([center[0] + np.cos(theta) * radius,
                            center[1] + np.sin(theta) * radius])


def ellipse_frame(size, center, angle, rx, ry):
    """Pixel-centre coordinates in the frame of a rotated ellipse.

    Returns:
        (u, v, inside): u along the rotated major axis, v across it, and
        a boolean mask of the pixels within the ellipse.
    """
    w, h = size
    ys, xs = np.mgrid[0:h, 0:w]
    dx = xs + 0.5 - center[0]
    dy = ys + 0.5 - center[1]
    c, s = np.cos(angle), np.sin(angle)
    u = dx * c + dy * s
    v = -dx * s + dy * c
    inside = (u / max(rx, 1e-6)) ** 2 + (v / max(ry, 1e-6)) ** 2 <= 1.0
    return u, v, inside


def gradient(t, stops):
    """Evaluate colour stops at positions t, interpolating premultiplied.

    Args:
        t: Array of positions; clamped to the first and last stop.
        stops: Sequence of (offset, (r, g, b), alpha) with ascending offsets.

    Returns:
        (..., 4) float64 array, RGB in 0-255 and alpha in 0-1.
    """
    t = np.asarray(t, dtype=np.float64)
    offsets = [s[0] for s in stops]
    alpha = np.interp(t, offsets, [s[2] for s in stops])
    out = np.zeros(t.shape + (4,), dtype=np.float64)
    visible = alpha > 0
    for c in range(3):
        premul = np.interp(t, offsets, [s[1][c] * s[2] for s in stops])
        out[..., c][visible] = premul[visible] / alpha[visible]
    out[..., 3] = alpha
    return out


def _overlay(base, top):
    return np.where(base <= 0.5, 2 * base * top, 1 - 2 * (1 - base) * (1 - top))


def _soft_light(base, top):
    d = np.where(base <= 0.25, ((16 * base - 12) * base + 4) * base, np.sqrt(base))
    return np.where(top <= 0.5,
                    base - (1 - 2 * top) * base * (1 - base),
                    base + (2 * top - 1) * (d - base))


BLEND_MODES = {'overlay': _overlay, 'soft-light': _soft_light}


def blend_layers(image, layers, mode):
    """Blend float layers over an RGBA image with a separable blend mode.

    Each layer mixes towards the blended colour by its alpha, one after
    another. A new RGBA image is returned.
    """
    blend = BLEND_MODES[mode]
    arr = np.array(image.convert('RGBA'), dtype=np.float64)
    rgb = arr[:, :, :3] / 255.0
    for layer in layers:
        top = np.clip(layer[:, :, :3] / 255.0, 0.0, 1.0)
        alpha = np.clip(layer[:, :, 3:4], 0.0, 1.0)
        rgb = rgb + (blend(rgb, top) - rgb) * alpha
    arr[:, :, :3] = rgb * 255.0
    return Image.fromarray(np.rint(np.clip(arr, 0, 255)).astype(np.uint8))
