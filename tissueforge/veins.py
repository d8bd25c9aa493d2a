"""Vein, root and vine growth.

A branch grows segment by segment from a BranchTask: every segment bends
the heading by a noise sample, advances by a noise-perturbed step and
tapers the thickness. Segments may spawn child tasks, which are pushed on
an explicit work list rather than recursed into. Growth always stops once
a task is thinner than the style's floor or deeper than its depth ceiling.

Branches are stroked as smoothed curves in three passes (offset shadow,
body, thin up-left highlight), which reads as a raised tube rather than
a flat line.
"""

import math
from dataclasses import dataclass, field, replace

import numpy as np

from .canvas import StrokeLayer, catmull_rom_segments, quadratic_bezier
from .noise import simplex_2d

# Branches drifting this far outside the canvas end early
BOUNDS_MARGIN = 50.0

# Hard cap on branches grown for one network
MAX_BRANCHES = 256

# No style branches deeper than this, whatever its max_depth
DEPTH_CEILING = 5

# Fixed point count of a tendril spiral
TENDRIL_STEPS = 30

# Radius fraction left at the end of a tendril coil
TENDRIL_INNER = 0.15

# Stroke passes: (offset in px, extra width, opacity)
SHADOW_OFFSET = (1.0, 1.0)
SHADOW_EXTRA_WIDTH = 2.0
SHADOW_OPACITY = 0.4
BODY_OPACITY = 0.7
HIGHLIGHT_WIDTH = 0.4
HIGHLIGHT_OPACITY = 0.25


@dataclass(frozen=True)
class GrowthStyle:
    """Parameters of one family of branching growth."""

    # Heading noise multiplier (roots wander more than vines)
    variation: float = 0.6

    # Segment count = segments_base + floor(|n| * segments_spread)
    segments_base: int = 8
    segments_spread: int = 6

    # Step length = step + n * step_jitter
    step: float = 22.5
    step_jitter: float = 7.5

    # Thickness change per segment
    taper: float = 0.92
    taper_jitter: float = 0.03
    bulge: float = 1.15
    bulge_threshold: float = 0.6
    min_thickness: float = 1.0

    # Branching
    max_depth: int = 4
    branch_start: int = 3
    branch_threshold: float = 0.35
    branch_depth_step: float = 0.1
    child_thickness: float = 0.6
    child_angle_min: float = 0.4
    child_angle_spread: float = 0.5

    # Steering
    gravity: float = 0.0
    target_pull: float = 0.0

    # Time-driven vertical wobble of each segment
    pulse: float = 2.0

    # Decoration; leaf_interval of 0 disables leaves
    leaf_interval: int = 0
    tendrils: bool = False


VEIN = GrowthStyle()

ROOT = GrowthStyle(
    variation=0.45, segments_base=5, segments_spread=6, step=20.0,
    step_jitter=5.0, bulge=1.12, bulge_threshold=0.65, max_depth=3,
    branch_start=1, branch_threshold=0.3, child_thickness=0.55,
    child_angle_min=0.5, gravity=0.08, pulse=0.0,
)

VINE = GrowthStyle(
    variation=0.25, segments_base=6, segments_spread=8, step=18.0,
    step_jitter=4.0, taper=0.94, taper_jitter=0.02, bulge=1.12,
    min_thickness=0.5, max_depth=3, branch_start=2, branch_threshold=0.45,
    child_thickness=0.55, target_pull=0.1, pulse=0.0, leaf_interval=3,
    tendrils=True,
)

STYLES = {'vein': VEIN, 'root': ROOT, 'vine': VINE}


@dataclass
class VeinPoint:
    x: float
    y: float
    thickness: float


@dataclass
class BranchTask:
    """A branch waiting to be grown."""
    x: float
    y: float
    angle: float
    thickness: float
    depth: int = 0
    seed_offset: float = 0.0


@dataclass
class Leaf:
    x: float
    y: float
    angle: float
    size: float


@dataclass
class Branch:
    """Geometry produced by growing one BranchTask."""
    task: BranchTask
    points: list
    children: list = field(default_factory=list)
    leaves: list = field(default_factory=list)
    tendril: list = None


def _wrap(angle):
    return (angle + math.pi) % (2 * math.pi) - math.pi


def _outside(x, y, bounds):
    w, h = bounds
    return (x < -BOUNDS_MARGIN or x > w + BOUNDS_MARGIN
            or y < -BOUNDS_MARGIN or y > h + BOUNDS_MARGIN)


def _depth_limit(style):
    return min(style.max_depth, DEPTH_CEILING)


def growth_reach(growth_level):
    """Step length multiplier for a growth level in [0, 1]."""
    level = min(1.0, max(0.0, float(growth_level)))
    return 0.4 + 0.6 * level


def tendril_spiral(x, y, angle, perm, seed_offset, steps=TENDRIL_STEPS):
    """Logarithmic spiral curling off a branch tip.

    Makes 2 to 3.5 turns whose radius shrinks geometrically, sampled at a
    fixed number of steps. The first point is the tip itself.
    """
    turns = 2.0 + abs(simplex_2d(seed_offset, 100, perm)) * 1.5
    length = 15.0 + simplex_2d(seed_offset + 200, 0, perm) * 5.0
    direction = 1 if simplex_2d(seed_offset + 300, 0, perm) > 0 else -1

    total = turns * 2 * math.pi
    decay = math.log(1.0 / TENDRIL_INNER) / total
    r0 = length * 0.25

    # Spiral centre sits beside the tip, on the curling side
    side = angle + direction * math.pi / 2
    cx = x + math.cos(side) * r0
    cy = y + math.sin(side) * r0
    start = side + math.pi

    points = []
    for s in range(steps + 1):
        theta = total * s / steps
        r = r0 * math.exp(-decay * theta)
        phi = start + direction * theta
        points.append((cx + math.cos(phi) * r, cy + math.sin(phi) * r))
    return points


def grow_branch(task, perm, style=VEIN, bounds=None, time=0.0, reach=1.0,
                target=None):
    """Grow the geometry of a single branch.

    Args:
        task: BranchTask to grow.
        perm: Permutation table driving every noise decision.
        style: GrowthStyle.
        bounds: Optional (width, height); a branch ends once it drifts
            more than BOUNDS_MARGIN outside.
        time: Animation time for the segment pulse.
        reach: Step length multiplier, see growth_reach().
        target: Optional (x, y) the branch steers toward.

    Returns:
        Branch. Its points are empty when the task is below the
        thickness floor or above the depth ceiling.
    """
    max_depth = _depth_limit(style)
    if task.thickness < style.min_thickness or task.depth > max_depth:
        return Branch(task=task, points=[])

    so = task.seed_offset
    depth = task.depth
    x, y = float(task.x), float(task.y)
    angle = float(task.angle)
    thickness = float(task.thickness)

    points = [VeinPoint(x, y, thickness)]
    children = []
    leaves = []

    spread = int(abs(simplex_2d(so, 0, perm)) * style.segments_spread)
    segment_count = style.segments_base + min(spread, style.segments_spread - 1)

    for i in range(segment_count):
        angle += simplex_2d(so + i * 10, depth * 100, perm) * style.variation
        if target is not None and style.target_pull:
            desired = math.atan2(target[1] - y, target[0] - x)
            angle += _wrap(desired - angle) * style.target_pull
        if style.gravity:
            angle += _wrap(math.pi / 2 - angle) * style.gravity

        step = (style.step + simplex_2d(so + i * 20, 0, perm) * style.step_jitter) * reach
        pulse = 0.0
        if time > 0 and style.pulse:
            pulse = math.sin(time * 0.002 + i * 0.5 + so * 0.01) * style.pulse

        x += math.cos(angle) * step
        y += math.sin(angle) * step + pulse

        taper_noise = simplex_2d(so + i * 15, depth * 50 + 500, perm)
        if taper_noise > style.bulge_threshold:
            factor = style.bulge
        else:
            factor = style.taper + taper_noise * style.taper_jitter
        thickness = min(task.thickness,
                        max(style.min_thickness, thickness * factor))

        points.append(VeinPoint(x, y, thickness))

        if bounds is not None and _outside(x, y, bounds):
            break

        if depth < max_depth and i >= style.branch_start:
            gate = simplex_2d(so + i * 25, depth * 200, perm)
            if gate > style.branch_threshold + depth * style.branch_depth_step:
                side = 1 if simplex_2d(so + i * 30, 0, perm) > 0 else -1
                turn = (style.child_angle_min
                        + abs(simplex_2d(so + i * 35, 0, perm)) * style.child_angle_spread)
                children.append(BranchTask(
                    x=x, y=y,
                    angle=angle + side * turn,
                    thickness=thickness * style.child_thickness,
                    depth=depth + 1,
                    seed_offset=so + (i + 1) * 1000 + (depth + 1) * 10000,
                ))

        if (style.leaf_interval and i > 0 and i % style.leaf_interval == 0
                and thickness > 1.0):
            side = 1 if simplex_2d(so + i * 40, 900, perm) > 0 else -1
            normal = angle + side * math.pi / 2
            size = 6.0 + simplex_2d(so + i * 45, 950, perm) * 4.0
            leaves.append(Leaf(
                x=x + math.cos(normal) * thickness * 0.5,
                y=y + math.sin(normal) * thickness * 0.5,
                angle=angle + side * math.pi * 0.4,
                size=size * (1 - (i / segment_count) * 0.3),
            ))

    tendril = None
    if style.tendrils and thickness < task.thickness * 0.5:
        tendril = tendril_spiral(x, y, angle, perm, so)

    return Branch(task=task, points=points, children=children,
                  leaves=leaves, tendril=tendril)


def grow_network(roots, perm, style=VEIN, bounds=None, time=0.0, reach=1.0,
                 target=None, max_branches=MAX_BRANCHES):
    """Grow every branch reachable from the root tasks.

    Tasks are processed depth-first from an explicit stack. Only root
    tasks steer toward target.

    Returns:
        List of grown Branch objects (never more than max_branches).
    """
    stack = list(reversed(roots))
    branches = []
    max_depth = _depth_limit(style)
    while stack and len(branches) < max_branches:
        task = stack.pop()
        if task.thickness < style.min_thickness or task.depth > max_depth:
            continue
        branch = grow_branch(task, perm, style, bounds=bounds, time=time,
                             reach=reach,
                             target=target if task.depth == 0 else None)
        branches.append(branch)
        stack.extend(reversed(branch.children))
    return branches


def _leaf_outline(leaf):
    size = leaf.size
    upper = quadratic_bezier((0, 0), (size * 0.5, -size * 0.4), (size, 0))
    lower = quadratic_bezier((size, 0), (size * 0.5, size * 0.4), (0, 0))
    shape = np.vstack([upper, lower[1:]])
    c, s = math.cos(leaf.angle), math.sin(leaf.angle)
    rotated = shape @ np.array([[c, s], [-s, c]])
    return rotated + (leaf.x, leaf.y)


def _lighten(rgb, factor):
    return tuple(c + (255 - c) * factor for c in rgb)


def _darken(rgb, factor):
    return tuple(c * factor for c in rgb)


def stroke_branches(image, branches, palette, leaf_color=None):
    """Stroke grown branches onto an RGBA image in place."""
    size = image.size
    shadow = StrokeLayer(size)
    body = StrokeLayer(size)
    highlight = StrokeLayer(size)
    foliage = StrokeLayer(size)
    if leaf_color is None:
        leaf_color = _lighten(palette.vein_highlight, 0.15)

    for branch in branches:
        points = branch.points
        if len(points) >= 2:
            curves = catmull_rom_segments([(p.x, p.y) for p in points])
            for curve, p1, p2 in zip(curves, points, points[1:]):
                width = (p1.thickness + p2.thickness) / 2
                shadow.line(curve + SHADOW_OFFSET, palette.shadow,
                            width + SHADOW_EXTRA_WIDTH, SHADOW_OPACITY)
                body.line(curve, palette.vein, width, BODY_OPACITY)
                lift = np.array([-0.15 * width, -0.25 * width])
                highlight.line(curve + lift, palette.vein_highlight,
                               width * HIGHLIGHT_WIDTH, HIGHLIGHT_OPACITY)

        if branch.tendril:
            tip = points[-1].thickness
            body.line(branch.tendril, _darken(palette.vein, 0.85),
                      max(0.5, tip * 0.4), BODY_OPACITY)

        for leaf in branch.leaves:
            outline = _leaf_outline(leaf)
            foliage.polygon(outline, leaf_color, 0.9)
            rib_end = (leaf.x + math.cos(leaf.angle) * leaf.size * 0.8,
                       leaf.y + math.sin(leaf.angle) * leaf.size * 0.8)
            foliage.line([(leaf.x, leaf.y), rib_end],
                         _darken(leaf_color, 0.7), 0.5, 0.9)

    for layer in (shadow, body, highlight, foliage):
        layer.composite_onto(image)


def edge_roots(width, height, perm, count):
    """Root tasks entering the surface from its four edges."""
    roots = []
    for v in range(count):
        edge = int((simplex_2d(v * 100, 0, perm) + 1) * 2) % 4
        pos = (simplex_2d(v * 50, v * 50, perm) + 1) / 2
        bend = simplex_2d(v * 30, edge * 100, perm) * 0.4

        if edge == 0:    # top
            x, y, angle = pos * width, -20.0, math.pi / 2 + bend
        elif edge == 1:  # right
            x, y, angle = width + 20.0, pos * height, math.pi + bend
        elif edge == 2:  # bottom
            x, y, angle = pos * width, height + 20.0, -math.pi / 2 + bend
        else:            # left
            x, y, angle = -20.0, pos * height, bend

        thickness = 5.0 + abs(simplex_2d(v * 20, v * 20, perm)) * 4.0
        roots.append(BranchTask(x=x, y=y, angle=angle, thickness=thickness,
                                depth=0, seed_offset=v * 1000))
    return roots


def draw_veins(image, palette, perm, count, time=0.0, growth_level=1.0,
               style=VEIN):
    """Grow and stroke `count` edge-origin vein networks onto image.

    Returns:
        The grown branches.
    """
    count = max(0, int(count))
    if count == 0:
        return []
    w, h = image.size
    roots = edge_roots(w, h, perm, count)
    branches = grow_network(roots, perm, style, bounds=(w, h), time=time,
                            reach=growth_reach(growth_level))
    stroke_branches(image, branches, palette)
    return branches


def draw_organic_roots(image, origin, palette, perm, main_root_count=4,
                       max_depth=3, thickness=5.0, growth_level=1.0, time=0.0):
    """Fan of main roots spreading downward from origin."""
    count = max(2, min(6, int(main_root_count)))
    style = replace(ROOT, max_depth=max(0, min(int(max_depth), DEPTH_CEILING)))
    roots = []
    for r in range(count):
        so = r * 10000
        offset = (r / (count - 1) - 0.5) * math.pi * 0.6
        angle = math.pi / 2 + offset + simplex_2d(so, 0, perm) * 0.2
        width = thickness * (0.8 + simplex_2d(so + 200, 0, perm) * 0.4)
        roots.append(BranchTask(x=origin[0], y=origin[1], angle=angle,
                                thickness=width, depth=0, seed_offset=so))
    branches = grow_network(roots, perm, style, bounds=image.size, time=time,
                            reach=growth_reach(growth_level))
    stroke_branches(image, branches, palette)
    return branches


def draw_organic_vine(image, origin, palette, perm, target=None, thickness=4.0,
                      growth_level=1.0, leaves=True, tendrils=True,
                      leaf_color=None, time=0.0, seed_offset=0):
    """A climbing vine reaching toward target, with leaves and tendrils."""
    style = replace(VINE, leaf_interval=VINE.leaf_interval if leaves else 0,
                    tendrils=tendrils)
    if target is not None:
        angle = math.atan2(target[1] - origin[1], target[0] - origin[0])
    else:
        angle = simplex_2d(seed_offset, 0, perm) * math.pi * 2
    root = BranchTask(x=origin[0], y=origin[1], angle=angle,
                      thickness=thickness, depth=0, seed_offset=seed_offset)
    branches = grow_network([root], perm, style, bounds=image.size, time=time,
                            reach=growth_reach(growth_level), target=target)
    stroke_branches(image, branches, palette, leaf_color=leaf_color)
    return branches
