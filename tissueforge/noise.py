"""Seeded simplex noise and fractal layering for organic surfaces."""

import threading

import numpy as np

# Skew / unskew factors for the 2D triangular lattice
_F2 = 0.5 * (np.sqrt(3.0) - 1.0)
_G2 = (3.0 - np.sqrt(3.0)) / 6.0

# Fixed 8-direction gradient set, indexed by perm value % 8
_GRADIENTS = np.array([
    [1, 1], [-1, 1], [1, -1], [-1, -1],
    [1, 0], [-1, 0], [0, 1], [0, -1],
], dtype=np.float64)

# Keeps floor() of skewed coordinates inside int64
_COORD_LIMIT = 1e12


def create_permutation(seed):
    """Build the 512-entry permutation table for a seed.

    A linear-congruential generator drives a Fisher-Yates shuffle of
    0..255; the result is duplicated so lattice lookups never wrap.

    Args:
        seed: Integer seed. Same seed always gives the same table.

    Returns:
        Read-only int64 array of length 512.
    """
    perm = list(range(256))
    s = int(seed)
    for i in range(255, 0, -1):
        s = (s * 1103515245 + 12345) & 0x7FFFFFFF
        j = s % (i + 1)
        perm[i], perm[j] = perm[j], perm[i]

    table = np.array(perm + perm, dtype=np.int64)
    table.setflags(write=False)
    return table


class PermutationCache:
    """Memo of permutation tables keyed by seed."""

    def __init__(self):
        self._tables = {}
        self._lock = threading.Lock()

    def get_or_create(self, seed):
        seed = int(seed)
        with self._lock:
            table = self._tables.get(seed)
            if table is None:
                table = create_permutation(seed)
                self._tables[seed] = table
            return table

    def precompute(self, seeds):
        """Warm the memo for a batch of seeds."""
        for seed in seeds:
            self.get_or_create(seed)

    def invalidate(self, seed):
        with self._lock:
            self._tables.pop(int(seed), None)

    def clear(self):
        with self._lock:
            self._tables.clear()

    def __len__(self):
        with self._lock:
            return len(self._tables)


def _corner(gi, dx, dy):
    """Radially decaying contribution of one simplex corner."""
    t = 0.5 - dx * dx - dy * dy
    grad = _GRADIENTS[gi]
    dot = grad[..., 0] * dx + grad[..., 1] * dy
    t2 = t * t
    return np.where(t >= 0, t2 * t2 * dot, 0.0)


def simplex_2d(x, y, perm):
    """Evaluate 2D simplex noise.

    Args:
        x, y: Scalars or broadcast-compatible arrays of coordinates.
        perm: 512-entry table from create_permutation().

    Returns:
        float for scalar input, otherwise an array of the broadcast
        shape. Values lie roughly in [-1, 1].
    """
    x = np.nan_to_num(np.asarray(x, dtype=np.float64), nan=0.0,
                      posinf=_COORD_LIMIT, neginf=-_COORD_LIMIT)
    y = np.nan_to_num(np.asarray(y, dtype=np.float64), nan=0.0,
                      posinf=_COORD_LIMIT, neginf=-_COORD_LIMIT)
    x = np.clip(x, -_COORD_LIMIT, _COORD_LIMIT)
    y = np.clip(y, -_COORD_LIMIT, _COORD_LIMIT)

    # Skew onto the lattice and locate the enclosing simplex
    s = (x + y) * _F2
    i = np.floor(x + s).astype(np.int64)
    j = np.floor(y + s).astype(np.int64)

    t = (i + j) * _G2
    x0 = x - (i - t)
    y0 = y - (j - t)

    # Lower or upper triangle of the cell
    i1 = (x0 > y0).astype(np.int64)
    j1 = 1 - i1

    x1 = x0 - i1 + _G2
    y1 = y0 - j1 + _G2
    x2 = x0 - 1.0 + 2.0 * _G2
    y2 = y0 - 1.0 + 2.0 * _G2

    ii = i & 255
    jj = j & 255

    gi0 = perm[ii + perm[jj]] % 8
    gi1 = perm[ii + i1 + perm[jj + j1]] % 8
    gi2 = perm[ii + 1 + perm[jj + 1]] % 8

    result = 70.0 * (_corner(gi0, x0, y0)
                     + _corner(gi1, x1, y1)
                     + _corner(gi2, x2, y2))

    if result.ndim == 0:
        return float(result)
    return result


def fbm(x, y, perm, octaves=4):
    """Fractal Brownian motion over simplex_2d.

    Each octave doubles the frequency and halves the amplitude. The sum
    is divided by the total amplitude, so the output stays in [-1, 1]
    whatever the octave count.
    """
    octaves = max(1, int(octaves))
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)

    value = 0.0
    amplitude = 0.5
    frequency = 1.0
    total_amplitude = 0.0

    for _ in range(octaves):
        value = value + amplitude * simplex_2d(x * frequency, y * frequency, perm)
        total_amplitude += amplitude
        amplitude *= 0.5
        frequency *= 2.0

    result = np.clip(value / total_amplitude, -1.0, 1.0)
    if np.ndim(result) == 0:
        return float(result)
    return result
