"""Mottled base layer synthesis.

Every pixel samples two decorrelated fBm fields: a low-frequency
"structure" field mapped through a three-segment colour ramp, and a
higher-frequency "detail" field that jitters each channel to break up
banding. Buffer sizes are clamped before allocation, and a failed
allocation degrades to a smaller buffer instead of raising.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image

from .noise import fbm

logger = logging.getLogger(__name__)

# Rows painted per band (bounds the temporaries of the noise evaluation)
BAND_ROWS = 128

# Coordinate drift per unit of time
TIME_DRIFT = 0.00005

# Ramp breakpoints and the damped reach of the top segment
RAMP_LOW = 0.4
RAMP_HIGH = 0.7
HIGHLIGHT_REACH = 0.3

# Per-channel amplitude of the detail jitter
DETAIL_AMPLITUDE = np.array([8.0, 6.0, 8.0])

# Origin offset of the detail field
DETAIL_OFFSET = 100.0


@dataclass
class SafetyLimits:
    """Hard ceiling on synthesized buffers."""
    max_width: int = 1920
    max_height: int = 1080
    max_pixels: int = 1920 * 1080
    max_retries: int = 4


def _as_dimension(value):
    value = float(value)
    if math.isnan(value):
        return 1
    if math.isinf(value):
        return 1 if value < 0 else 2 ** 31
    return max(1, int(value))


def clamp_dimensions(width, height, limits):
    """Clamp requested dimensions to the safety ceiling.

    Each axis is capped first; if the pixel count is still above the
    budget, both axes are scaled down by the same factor.
    """
    width = _as_dimension(width)
    height = _as_dimension(height)

    w = min(width, limits.max_width)
    h = min(height, limits.max_height)
    if (w, h) != (width, height):
        logger.warning(
            "Dimensions %dx%d exceed safe limit (%dx%d). Using %dx%d.",
            width, height, limits.max_width, limits.max_height, w, h,
        )

    pixels = w * h
    if pixels > limits.max_pixels:
        scale = math.sqrt(limits.max_pixels / pixels)
        scaled_w = max(1, int(w * scale))
        scaled_h = max(1, int(h * scale))
        logger.warning(
            "Pixel count %d exceeds limit %d. Scaling to %dx%d.",
            pixels, limits.max_pixels, scaled_w, scaled_h,
        )
        w, h = scaled_w, scaled_h

    return w, h


def _allocate(width, height):
    return np.zeros((width * height, 4), dtype=np.uint8)


def allocate_buffer(width, height, limits):
    """Allocate a flat RGBA buffer, halving the size on MemoryError.

    Returns:
        (buffer, width, height) where width/height are the dimensions
        actually allocated.

    Raises:
        MemoryError: once limits.max_retries halvings have all failed.
    """
    for attempt in range(limits.max_retries + 1):
        try:
            return _allocate(width, height), width, height
        except MemoryError as exc:
            if attempt == limits.max_retries or (width, height) == (1, 1):
                raise
            fallback_w = max(1, width // 2)
            fallback_h = max(1, height // 2)
            logger.error(
                "Failed to allocate %dx%d buffer (%s). Falling back to %dx%d.",
                width, height, exc, fallback_w, fallback_h,
            )
            width, height = fallback_w, fallback_h


def three_segment_ramp(blend, colors, low_break, high_break, reach):
    """Map values in [0, 1] through four colours in three linear segments.

    colors[0] -> colors[1] over [0, low_break), colors[1] -> colors[2]
    over [low_break, high_break) and colors[2] -> colors[3] over
    [high_break, 1], the last segment covering only `reach` of the way.
    """
    blend = np.clip(np.asarray(blend, dtype=np.float64), 0.0, 1.0)[..., np.newaxis]
    c0, c1, c2, c3 = (np.asarray(c, dtype=np.float64) for c in colors)

    low = c0 + (c1 - c0) * (blend / low_break)
    middle = c1 + (c2 - c1) * ((blend - low_break) / (high_break - low_break))
    high = c2 + (c3 - c2) * ((blend - high_break) / (1.0 - high_break)) * reach

    return np.where(blend < low_break, low, np.where(blend < high_break, middle, high))


def color_ramp(blend, palette):
    """Map structure values in [0, 1] to RGB through the palette.

    shadow -> base over [0, 0.4), base -> mid over [0.4, 0.7) and
    mid -> highlight over [0.7, 1], the last segment damped so
    highlights never blow out.
    """
    return three_segment_ramp(
        blend, (palette.shadow, palette.base, palette.mid, palette.highlight),
        RAMP_LOW, RAMP_HIGH, HIGHLIGHT_REACH,
    )


def paint_surface(width, height, limits, painter_for, band_rows=BAND_ROWS):
    """Clamp, allocate and paint an opaque RGBA surface band by band.

    Args:
        width, height: Requested size in pixels; clamped to limits.
        limits: SafetyLimits.
        painter_for: Called once with the allocated (width, height);
            returns a function mapping float pixel coordinate arrays
            (xs, ys) to an (n, 3) float RGB array.
        band_rows: Rows evaluated per band. Does not affect the output.

    Returns:
        PIL Image in RGBA mode, at the clamped size.

    Raises:
        MemoryError: if even the buffer left after limits.max_retries
            halvings cannot be allocated.
    """
    target_w, target_h = clamp_dimensions(width, height, limits)
    buffer, w, h = allocate_buffer(target_w, target_h, limits)
    paint = painter_for(w, h)

    total = w * h
    step = max(1, int(band_rows)) * w
    for start in range(0, total, step):
        # Flat row-major pixel indices of this band
        idx = np.arange(start, min(start + step, total))
        xs = (idx % w).astype(np.float64)
        ys = (idx // w).astype(np.float64)
        rgb = paint(xs, ys)
        buffer[idx, :3] = np.rint(np.clip(rgb, 0, 255)).astype(np.uint8)
        buffer[idx, 3] = 255

    image = Image.fromarray(buffer.reshape(h, w, 4))
    if (w, h) != (target_w, target_h):
        logger.info("Resampling %dx%d surface up to %dx%d.", w, h, target_w, target_h)
        image = image.resize((target_w, target_h), Image.Resampling.BILINEAR)
    return image


def _base_rgb(xs, ys, palette, perm, noise_scale, time_offset):
    structure = fbm(xs * noise_scale + time_offset, ys * noise_scale, perm, 4)
    detail = fbm(xs * noise_scale * 2 + DETAIL_OFFSET,
                 ys * noise_scale * 2 + DETAIL_OFFSET, perm, 3)

    rgb = color_ramp((structure + 1) / 2, palette)
    rgb += (((detail + 1) / 2) - 0.5)[:, np.newaxis] * DETAIL_AMPLITUDE
    return rgb


def synthesize_base(width, height, palette, perm, noise_scale, time=0.0,
                    limits=None, band_rows=BAND_ROWS):
    """Synthesize the mottled base surface.

    Args:
        width, height: Requested size in pixels; clamped to limits.
        palette: ColorPalette.
        perm: Permutation table from create_permutation().
        noise_scale: Coordinate multiplier; larger values give smaller
            features.
        time: Optional animation time, drifts the structure field.
        limits: SafetyLimits (defaults used if None).
        band_rows: Rows evaluated per band. Does not affect the output.

    Returns:
        PIL Image in RGBA mode, at the clamped size.

    Raises:
        MemoryError: if even the buffer left after limits.max_retries
            halvings cannot be allocated.
    """
    if limits is None:
        limits = SafetyLimits()
    time_offset = float(time) * TIME_DRIFT

    def painter_for(w, h):
        return lambda xs, ys: _base_rgb(xs, ys, palette, perm, noise_scale, time_offset)

    return paint_surface(width, height, limits, painter_for, band_rows)
