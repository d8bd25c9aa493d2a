"""TissueForge - Procedural living-tissue and bark surfaces with branching veins."""

from .renderer import render, SurfaceEngine, SurfaceRequest

__version__ = "0.1.0"
__all__ = ["generate", "render", "SurfaceEngine", "SurfaceRequest"]


def generate(width=512, height=512, seed=42, **kwargs):
    """Generate an organic surface image.

    Args:
        width: Output image width in pixels.
        height: Output image height in pixels. Both are clamped to the
            safety ceiling (1920x1080 by default).
        seed: Random seed; the same seed always gives the same surface.
        **kwargs: Additional SurfaceRequest parameters (palette, preset,
            noise_scale, vein_count, growth_level, light_position, etc.).

    Returns:
        PIL Image in RGBA mode.
    """
    request = SurfaceRequest(width=width, height=height, seed=seed, **kwargs)
    return render(request)
