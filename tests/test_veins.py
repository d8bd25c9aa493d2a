"""Tests for vein, root and vine growth."""

import math

import numpy as np
import pytest
from PIL import Image

from tissueforge.noise import create_permutation
from tissueforge.palettes import get_palette
from tissueforge.veins import (
    MAX_BRANCHES,
    ROOT,
    STYLES,
    TENDRIL_STEPS,
    VEIN,
    VINE,
    BranchTask,
    draw_organic_roots,
    draw_organic_vine,
    draw_veins,
    edge_roots,
    grow_branch,
    grow_network,
    growth_reach,
    tendril_spiral,
)


def _surface(size=(200, 200)):
    return Image.new("RGBA", size, (30, 24, 28, 255))


@pytest.mark.parametrize("seed", [0, 1, 42, 77, 2024])
@pytest.mark.parametrize("style_name", sorted(STYLES))
def test_network_terminates(seed, style_name):
    style = STYLES[style_name]
    perm = create_permutation(seed)
    roots = [BranchTask(x=100, y=100, angle=a, thickness=8.0, seed_offset=i * 1000)
             for i, a in enumerate(np.linspace(0, 2 * math.pi, 6, endpoint=False))]
    branches = grow_network(roots, perm, style)

    assert 0 < len(branches) <= MAX_BRANCHES
    max_points = style.segments_base + style.segments_spread
    for branch in branches:
        assert branch.task.depth <= style.max_depth
        assert len(branch.points) <= max_points


@pytest.mark.parametrize("seed", [3, 42, 1000])
def test_thickness_never_grows_past_start(seed):
    perm = create_permutation(seed)
    task = BranchTask(x=0, y=0, angle=0.3, thickness=6.0, seed_offset=seed * 7)
    for branch in grow_network([task], perm, VEIN):
        start = branch.task.thickness
        prev = start
        for point in branch.points[1:]:
            assert point.thickness <= prev * VEIN.bulge + 1e-9
            assert point.thickness <= start
            assert point.thickness >= VEIN.min_thickness
            prev = point.thickness
        for child in branch.children:
            assert child.thickness < start
            assert child.depth == branch.task.depth + 1


def test_below_floor_grows_nothing():
    perm = create_permutation(42)
    branch = grow_branch(BranchTask(0, 0, 0, thickness=0.5), perm, VEIN)
    assert branch.points == []
    assert branch.children == []


def test_beyond_depth_grows_nothing():
    perm = create_permutation(42)
    task = BranchTask(0, 0, 0, thickness=5.0, depth=VEIN.max_depth + 1)
    assert grow_branch(task, perm, VEIN).points == []


def test_leaves_bounds_early():
    perm = create_permutation(42)
    # Starts just inside the margin heading away from the canvas
    task = BranchTask(x=-45, y=10, angle=math.pi, thickness=5.0)
    branch = grow_branch(task, perm, VEIN, bounds=(20, 20))
    assert len(branch.points) == 2
    assert branch.points[-1].x < -50
    assert branch.children == []


def test_grow_branch_deterministic():
    perm = create_permutation(9)
    task = BranchTask(x=50, y=50, angle=1.0, thickness=5.0, seed_offset=300)
    a = grow_branch(task, perm, VEIN)
    b = grow_branch(task, perm, VEIN)
    assert a.points == b.points
    assert a.children == b.children


def test_growth_reach_shortens_steps():
    perm = create_permutation(9)
    task = BranchTask(x=0, y=0, angle=0.0, thickness=5.0)
    full = grow_branch(task, perm, VEIN, reach=growth_reach(1.0))
    young = grow_branch(task, perm, VEIN, reach=growth_reach(0.0))

    def length(branch):
        pts = [(p.x, p.y) for p in branch.points]
        return sum(math.dist(a, b) for a, b in zip(pts, pts[1:]))

    assert length(young) == pytest.approx(length(full) * 0.4)


def test_growth_reach_range():
    assert growth_reach(0.0) == pytest.approx(0.4)
    assert growth_reach(1.0) == pytest.approx(1.0)
    assert growth_reach(-2.0) == pytest.approx(0.4)
    assert growth_reach(5.0) == pytest.approx(1.0)


def test_max_branches_cap():
    perm = create_permutation(42)
    roots = [BranchTask(x=0, y=0, angle=0, thickness=5.0, seed_offset=i)
             for i in range(20)]
    assert len(grow_network(roots, perm, VEIN, max_branches=5)) == 5


def test_tendril_spiral_shape():
    perm = create_permutation(42)
    points = tendril_spiral(10.0, 20.0, 0.5, perm, 123)
    assert len(points) == TENDRIL_STEPS + 1
    assert points[0] == pytest.approx((10.0, 20.0))
    # Coils inward
    first = math.dist(points[0], points[1])
    last = math.dist(points[-2], points[-1])
    assert last < first


@pytest.mark.parametrize("seed", [0, 42])
def test_edge_roots_start_outside(seed):
    perm = create_permutation(seed)
    roots = edge_roots(300, 200, perm, 8)
    assert len(roots) == 8
    for task in roots:
        assert task.depth == 0
        assert 5.0 <= task.thickness <= 9.0
        outside = task.x < 0 or task.x > 300 or task.y < 0 or task.y > 200
        assert outside


def test_draw_veins_zero_count_is_noop():
    perm = create_permutation(42)
    img = _surface()
    before = np.array(img)
    assert draw_veins(img, get_palette("fleshy"), perm, 0) == []
    np.testing.assert_array_equal(np.array(img), before)


def test_draw_veins_marks_surface():
    perm = create_permutation(42)
    img = _surface()
    before = np.array(img)
    branches = draw_veins(img, get_palette("fleshy"), perm, 6)
    assert branches
    assert not np.array_equal(np.array(img), before)


def test_organic_roots():
    perm = create_permutation(42)
    img = _surface((300, 300))
    branches = draw_organic_roots(img, (150, 20), get_palette("oak"), perm,
                                  main_root_count=4)
    roots = [b for b in branches if b.task.depth == 0]
    assert len(roots) == 4
    assert all(b.task.depth <= ROOT.max_depth for b in branches)
    # Gravity pulls main roots downward
    assert np.mean([b.points[-1].y for b in roots]) > 20


def test_organic_roots_count_clamped():
    perm = create_permutation(42)
    branches = draw_organic_roots(_surface(), (100, 0), get_palette("oak"),
                                  perm, main_root_count=50)
    assert len([b for b in branches if b.task.depth == 0]) == 6


def test_organic_vine_reaches_toward_target():
    perm = create_permutation(42)
    img = _surface((400, 400))
    target = (350, 50)
    branches = draw_organic_vine(img, (50, 350), get_palette("weathered"),
                                 perm, target=target)
    main = branches[0]
    start = (main.points[0].x, main.points[0].y)
    end = (main.points[-1].x, main.points[-1].y)
    assert math.dist(end, target) < math.dist(start, target)


def test_vine_without_decoration():
    perm = create_permutation(42)
    branches = draw_organic_vine(_surface(), (100, 190), get_palette("oak"),
                                 perm, target=(100, 0), leaves=False,
                                 tendrils=False)
    assert all(not b.leaves and b.tendril is None for b in branches)


def test_vine_style_grows_leaves():
    perm = create_permutation(4)
    task = BranchTask(x=0, y=0, angle=0.0, thickness=6.0)
    branches = grow_network([task], perm, VINE)
    assert any(b.leaves for b in branches)


def test_depth_ceiling_caps_custom_styles():
    from dataclasses import replace

    from tissueforge.veins import DEPTH_CEILING

    style = replace(VEIN, max_depth=50, branch_threshold=-2.0, min_thickness=0.01)
    perm = create_permutation(42)
    branches = grow_network([BranchTask(x=0, y=0, angle=0, thickness=1000.0)],
                            perm, style)
    depths = [b.task.depth for b in branches]
    assert max(depths) == DEPTH_CEILING
    assert all(not b.children for b in branches if b.task.depth == DEPTH_CEILING)


def test_organic_roots_depth_capped():
    from tissueforge.veins import DEPTH_CEILING

    perm = create_permutation(42)
    branches = draw_organic_roots(_surface((400, 400)), (200, 10),
                                  get_palette("oak"), perm, max_depth=12,
                                  thickness=400.0)
    assert all(b.task.depth <= DEPTH_CEILING for b in branches)
