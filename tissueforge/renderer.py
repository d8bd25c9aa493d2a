"""Main surface rendering pipeline.

Generates a living-tissue surface: a mottled noise base, a network of
branching veins on top, and an optional light response near a light
position.
"""

from dataclasses import dataclass

from .bark import synthesize_bark
from .cache import DEFAULT_CAPACITY, DEFAULT_TOLERANCE, TextureCache
from .lighting import apply_light, light_response_layer
from .noise import PermutationCache, create_permutation
from .palettes import PRESETS, get_palette, get_wood_palette, wood_palette_from_color
from .relief import apply_depth, apply_subsurface
from .surface import SafetyLimits, synthesize_base
from .veins import STYLES, draw_veins

DEFAULT_NOISE_SCALE = 0.003
DEFAULT_VEIN_COUNT = 6

# Bark-family kinds: (grain flow, roughness) used unless given explicitly
BARK_KINDS = {
    'bark': ('vertical', 0.7),
    'wood': ('vertical', 0.4),
}
SURFACE_KINDS = ('tissue',) + tuple(BARK_KINDS)


@dataclass
class SurfaceRequest:
    """Parameters of one surface render."""

    # Output size
    width: int = 512
    height: int = 512

    # Appearance
    surface_kind: str = 'tissue'
    palette: object = 'fleshy'
    preset: str = None
    noise_scale: float = None
    seed: int = 42
    time: float = 0.0

    # Relief passes (tissue surfaces)
    show_depth: bool = False
    show_subsurface: bool = False

    # Bark and wood surfaces
    wood: object = 'oak'
    wood_color: str = None
    grain_flow: str = None
    age: float = 0.5
    knot_density: float = 0.3
    moss: bool = False
    roughness: float = None

    # Veins
    show_veins: bool = True
    vein_count: int = None
    vein_style: str = 'vein'
    growth_level: float = 1.0

    # Light response
    light_position: tuple = None
    light_radius: float = 250.0

    def __post_init__(self):
        if self.surface_kind not in SURFACE_KINDS:
            raise ValueError(
                f"surface_kind must be one of {SURFACE_KINDS}, not {self.surface_kind!r}"
            )
        if self.surface_kind in BARK_KINDS:
            flow, roughness = BARK_KINDS[self.surface_kind]
            if self.grain_flow is None:
                self.grain_flow = flow
            if self.roughness is None:
                self.roughness = roughness
        # Preset values apply only where nothing explicit was given
        preset = PRESETS[self.preset] if self.preset else {}
        if self.noise_scale is None:
            self.noise_scale = preset.get('noise_scale', DEFAULT_NOISE_SCALE)
        if self.vein_count is None:
            self.vein_count = preset.get('vein_count', DEFAULT_VEIN_COUNT)
        self.vein_count = max(0, int(self.vein_count))
        self.growth_level = min(1.0, max(0.0, float(self.growth_level)))


def render(request, permutations=None, limits=None):
    """Render a surface, including its light response.

    Args:
        request: SurfaceRequest.
        permutations: Optional PermutationCache to reuse tables from.
        limits: SafetyLimits for the base buffer (defaults if None).

    Returns:
        PIL Image in RGBA mode.
    """
    perm = _permutation(request.seed, permutations)
    surface = render_surface(request, perm, limits)
    return _light(surface, request, perm)


def render_surface(request, perm, limits=None):
    """Render the cacheable, light-independent part of a surface."""
    palette = get_palette(request.palette)

    # --- Pipeline ---

    # 1. Mottled base (tissue) or grain (bark, wood)
    if request.surface_kind in BARK_KINDS:
        surface = _bark(request, perm, limits)
    else:
        surface = synthesize_base(request.width, request.height, palette, perm,
                                  request.noise_scale, time=request.time,
                                  limits=limits)

    # 2. Raised and recessed swells
    if request.show_depth:
        surface = apply_depth(surface, palette, perm)

    # 3. Vein network
    if request.show_veins and request.vein_count > 0:
        draw_veins(surface, palette, perm, request.vein_count,
                   time=request.time, growth_level=request.growth_level,
                   style=STYLES[request.vein_style])

    # 4. Subsurface structure
    if request.show_subsurface:
        surface = apply_subsurface(surface, palette, perm)

    return surface


class SurfaceEngine:
    """Renderer owning its permutation memo and texture cache.

    Surfaces rendered with a key are cached and reused while the
    request's growth level stays within the cache tolerance. The light
    response is applied after the lookup, so moving the light never
    invalidates a cached surface.
    """

    def __init__(self, cache_capacity=DEFAULT_CAPACITY,
                 cache_tolerance=DEFAULT_TOLERANCE, eviction='fifo',
                 limits=None):
        self.permutations = PermutationCache()
        self.cache = TextureCache(cache_capacity, cache_tolerance, eviction)
        self.limits = limits if limits is not None else SafetyLimits()

    def render(self, request, key=None):
        perm = self.permutations.get_or_create(request.seed)
        if key is None:
            surface = render_surface(request, perm, self.limits)
        else:
            surface = self.cache.get_or_create(
                key, request.growth_level,
                lambda: render_surface(request, perm, self.limits),
            )
        return _light(surface, request, perm)

    def clear(self):
        self.cache.clear()
        self.permutations.clear()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _permutation(seed, permutations):
    if permutations is None:
        return create_permutation(seed)
    return permutations.get_or_create(seed)


def _bark(request, perm, limits):
    if request.wood_color:
        wood = wood_palette_from_color(request.wood_color)
    else:
        wood = get_wood_palette(request.wood)
    return synthesize_bark(
        request.width, request.height, wood, perm,
        grain_flow=request.grain_flow, age=request.age,
        growth_level=request.growth_level, knot_density=request.knot_density,
        moss=request.moss, roughness=request.roughness, seed=request.seed,
        time=request.time, limits=limits,
    )


def _light(surface, request, perm):
    """Add the light response, or hand back an independent copy."""
    if request.light_position is None:
        return surface.copy()
    layer = light_response_layer(surface.size, request.light_position,
                                 request.light_radius,
                                 get_palette(request.palette), perm)
    return apply_light(surface, layer)
