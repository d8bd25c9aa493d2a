"""CLI entry point for TissueForge."""

import argparse
import logging
from pathlib import Path

from . import generate
from .bark import GRAIN_FLOWS
from .palettes import PALETTES, PRESETS, WOOD_PALETTES, palette_from_color
from .renderer import SURFACE_KINDS
from .veins import STYLES


def main():
    parser = argparse.ArgumentParser(
        description="Generate procedural living-tissue surface images"
    )
    parser.add_argument(
        "--width", "-W", type=int, default=512,
        help="Output image width in pixels (default: 512)"
    )
    parser.add_argument(
        "--height", "-H", type=int, default=512,
        help="Output image height in pixels (default: 512)"
    )
    parser.add_argument(
        "--seed", "-s", type=int, default=42,
        help="Random seed for reproducible generation (default: 42)"
    )
    parser.add_argument(
        "--output", "-o", default="surface.png",
        help="Output file path (default: surface.png)"
    )
    parser.add_argument(
        "--palette", "-p", choices=sorted(PALETTES), default="fleshy",
        help="Named surface palette (default: fleshy)"
    )
    parser.add_argument(
        "--color", default=None,
        help="Derive the palette from a base colour as #rrggbb instead"
    )
    parser.add_argument(
        "--preset", choices=sorted(PRESETS), default=None,
        help="Noise scale / vein count preset"
    )
    parser.add_argument(
        "--noise-scale", type=float, default=None,
        help="Noise coordinate scale, smaller = larger features"
    )
    parser.add_argument(
        "--veins", type=int, default=None,
        help="Number of vein networks (0 disables veins)"
    )
    parser.add_argument(
        "--style", choices=sorted(STYLES), default="vein",
        help="Branch growth style (default: vein)"
    )
    parser.add_argument(
        "--growth", type=float, default=1.0,
        help="Growth level 0.0-1.0 (default: 1.0)"
    )
    parser.add_argument(
        "--light", nargs=2, type=float, default=None, metavar=("X", "Y"),
        help="Light position for the light response"
    )
    parser.add_argument(
        "--light-radius", type=float, default=250.0,
        help="Light radius in pixels (default: 250)"
    )
    parser.add_argument(
        "--kind", choices=SURFACE_KINDS, default="tissue",
        help="Surface kind (default: tissue)"
    )
    parser.add_argument(
        "--depth", action="store_true",
        help="Overlay raised and recessed swells on a tissue surface"
    )
    parser.add_argument(
        "--subsurface", action="store_true",
        help="Soft-light subsurface structure on top of the veins"
    )
    parser.add_argument(
        "--wood", choices=sorted(WOOD_PALETTES), default="oak",
        help="Wood palette for bark and wood kinds (default: oak)"
    )
    parser.add_argument(
        "--wood-color", default=None,
        help="Derive the wood palette from a base colour as #rrggbb instead"
    )
    parser.add_argument(
        "--grain", choices=GRAIN_FLOWS, default=None,
        help="Grain flow (default: vertical)"
    )
    parser.add_argument(
        "--age", type=float, default=0.5,
        help="Bark age 0.0-1.0, deepens cracks (default: 0.5)"
    )
    parser.add_argument(
        "--knots", type=float, default=0.3,
        help="Knot density 0.0-1.0 (default: 0.3)"
    )
    parser.add_argument(
        "--moss", action="store_true",
        help="Grow moss patches on bark past half growth"
    )
    parser.add_argument(
        "--roughness", type=float, default=None,
        help="Fine bark detail 0.0-1.0 (default depends on kind)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log cache and fallback diagnostics"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    kwargs = {
        "palette": palette_from_color(args.color) if args.color else args.palette,
        "preset": args.preset,
        "noise_scale": args.noise_scale,
        "vein_count": args.veins,
        "vein_style": args.style,
        "growth_level": args.growth,
        "light_radius": args.light_radius,
        "surface_kind": args.kind,
        "show_depth": args.depth,
        "show_subsurface": args.subsurface,
        "wood": args.wood,
        "wood_color": args.wood_color,
        "grain_flow": args.grain,
        "age": args.age,
        "knot_density": args.knots,
        "moss": args.moss,
        "roughness": args.roughness,
    }
    if args.light is not None:
        kwargs["light_position"] = tuple(args.light)

    image = generate(
        width=args.width,
        height=args.height,
        seed=args.seed,
        **kwargs,
    )

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    image.save(str(output))
    print(f"Saved surface ({image.size[0]}x{image.size[1]}) to {output}")


if __name__ == "__main__":
    main()
