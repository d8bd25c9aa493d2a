"""Colour palettes and surface presets."""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r'^#?([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})$', re.IGNORECASE)
_DEFAULT_BASE = (61, 40, 23)


@dataclass(frozen=True)
class ColorPalette:
    """RGB triples used by every synthesis stage."""
    base: tuple
    mid: tuple
    highlight: tuple
    shadow: tuple
    vein: tuple
    vein_highlight: tuple


PALETTES = {
    # Whale/squid flesh, dark with blue undertones
    'fleshy': ColorPalette(
        base=(28, 22, 26), mid=(38, 30, 35), highlight=(58, 48, 52),
        shadow=(18, 14, 18), vein=(50, 28, 35), vein_highlight=(85, 50, 55),
    ),
    'abyssal': ColorPalette(
        base=(20, 25, 32), mid=(30, 38, 48), highlight=(50, 62, 75),
        shadow=(12, 15, 22), vein=(35, 45, 60), vein_highlight=(60, 80, 100),
    ),
    'rocky': ColorPalette(
        base=(25, 28, 25), mid=(38, 42, 38), highlight=(55, 62, 55),
        shadow=(15, 18, 16), vein=(35, 32, 30), vein_highlight=(55, 50, 45),
    ),
    'membranous': ColorPalette(
        base=(25, 20, 30), mid=(38, 30, 45), highlight=(60, 48, 68),
        shadow=(15, 12, 20), vein=(70, 40, 55), vein_highlight=(100, 60, 75),
    ),
    # Bark and wood tones
    'oak': ColorPalette(
        base=(61, 40, 23), mid=(85, 58, 35), highlight=(110, 78, 50),
        shadow=(35, 22, 12), vein=(45, 28, 15), vein_highlight=(92, 61, 42),
    ),
    'weathered': ColorPalette(
        base=(65, 55, 42), mid=(88, 75, 58), highlight=(115, 100, 80),
        shadow=(40, 35, 28), vein=(50, 42, 32), vein_highlight=(100, 88, 70),
    ),
}

# Shortcuts for common use: overridable noise scale and vein count
PRESETS = {
    'visible': {'noise_scale': 0.003, 'vein_count': 6},
    'subtle': {'noise_scale': 0.005, 'vein_count': 3},
    'dramatic': {'noise_scale': 0.002, 'vein_count': 10},
}


def get_palette(palette):
    """Resolve a palette id or pass a ColorPalette through."""
    if isinstance(palette, ColorPalette):
        return palette
    try:
        return PALETTES[palette]
    except KeyError:
        raise KeyError(
            f"Unknown palette {palette!r}; known: {', '.join(sorted(PALETTES))}"
        ) from None


def hex_to_rgb(hex_color):
    match = _HEX_RE.match(hex_color.strip()) if hex_color else None
    if match is None:
        logger.warning("Could not parse colour %r, using %s", hex_color,
                       _DEFAULT_BASE)
        return _DEFAULT_BASE
    return tuple(int(part, 16) for part in match.groups())


def _scale(rgb, factor):
    return tuple(min(255, int(round(c * factor))) for c in rgb)


def palette_from_color(hex_color):
    """Derive a full palette from a single '#rrggbb' base colour."""
    base = hex_to_rgb(hex_color)
    return ColorPalette(
        base=base,
        mid=_scale(base, 1.3),
        highlight=_scale(base, 1.6),
        shadow=_scale(base, 0.5),
        vein=_scale(base, 0.7),
        vein_highlight=_scale(base, 1.4),
    )


@dataclass(frozen=True)
class WoodPalette:
    """RGB triples for bark and wood surfaces."""
    dark: tuple
    base: tuple
    mid: tuple
    light: tuple
    grain: tuple
    moss: tuple


_MOSS = (55, 75, 40)

WOOD_PALETTES = {
    'oak': WoodPalette(
        dark=(35, 22, 12), base=(61, 40, 23), mid=(85, 58, 35),
        light=(110, 78, 50), grain=(45, 28, 15), moss=_MOSS,
    ),
    'dark_wood': WoodPalette(
        dark=(20, 12, 8), base=(38, 25, 15), mid=(55, 38, 25),
        light=(75, 52, 35), grain=(28, 18, 10), moss=(45, 65, 35),
    ),
    'weathered': WoodPalette(
        dark=(40, 35, 28), base=(65, 55, 42), mid=(88, 75, 58),
        light=(115, 100, 80), grain=(50, 42, 32), moss=(60, 80, 45),
    ),
}


def get_wood_palette(palette):
    if isinstance(palette, WoodPalette):
        return palette
    try:
        return WOOD_PALETTES[palette]
    except KeyError:
        raise KeyError(
            f"Unknown wood {palette!r}; known: {', '.join(sorted(WOOD_PALETTES))}"
        ) from None


def wood_palette_from_color(hex_color):
    """Derive a wood palette from a single '#rrggbb' base colour."""
    base = hex_to_rgb(hex_color)
    return WoodPalette(
        dark=_scale(base, 0.5),
        base=base,
        mid=_scale(base, 1.3),
        light=_scale(base, 1.6),
        grain=_scale(base, 0.7),
        moss=_MOSS,
    )
