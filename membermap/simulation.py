"""
Force simulation engine with d3-force semantics on numpy arrays.

Each tick cools alpha toward alpha_target, lets every registered force add to
the node velocities, damps the velocities by velocity_decay and moves the free
nodes. Node counts stay in the hundreds, so the many-body force is computed
exactly over all pairs.
"""

import numpy as np
from scipy.spatial import cKDTree


def _per_node(value, n: int) -> np.ndarray:
    """Broadcast a scalar or per-node sequence to a float array of length n."""
    return np.broadcast_to(np.asarray(value, dtype=float), (n,)).copy()


class ForceSimulation:
    def __init__(
        self,
        positions,
        *,
        alpha: float = 1.0,
        alpha_min: float = 0.001,
        alpha_decay: float | None = None,
        alpha_target: float = 0.0,
        velocity_decay: float = 0.4,
        seed: int | None = None,
    ):
        self.x = np.array(positions, dtype=float).reshape(-1, 2)
        self.v = np.zeros_like(self.x)
        # NaN = free on that axis
        self.fixed = np.full_like(self.x, np.nan)
        self.alpha = alpha
        self.alpha_min = alpha_min
        self.alpha_decay = (
            alpha_decay if alpha_decay is not None else 1 - alpha_min ** (1 / 300)
        )
        self.alpha_target = alpha_target
        self.velocity_decay = velocity_decay
        self.rng = np.random.default_rng(seed)
        self.forces: dict[str, "Force"] = {}

    def __len__(self) -> int:
        return len(self.x)

    def force(self, name: str, force: "Force | None") -> "ForceSimulation":
        """Register a named force, replacing any previous one; None removes it."""
        if force is None:
            self.forces.pop(name, None)
        else:
            force.initialize(self)
            self.forces[name] = force
        return self

    def jiggle(self, size: int) -> np.ndarray:
        """Tiny random offsets used to separate coincident nodes."""
        return (self.rng.random(size) - 0.5) * 1e-6

    def tick(self, iterations: int = 1) -> None:
        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay

            for force in self.forces.values():
                force(self.alpha)

            self.v *= 1 - self.velocity_decay
            self.x += self.v

            pinned = ~np.isnan(self.fixed)
            self.x[pinned] = self.fixed[pinned]
            self.v[pinned] = 0.0

    def run(self, max_ticks: int | None = None) -> int:
        """Tick until alpha drops below alpha_min or max_ticks is reached."""
        ticks = 0
        while self.alpha >= self.alpha_min:
            if max_ticks is not None and ticks >= max_ticks:
                break
            self.tick()
            ticks += 1
        return ticks

    def reheat(self, alpha: float = 1.0) -> None:
        self.alpha = alpha

    def fix(self, i: int, x: float, y: float) -> None:
        """Pin node i at (x, y), as while it is being dragged."""
        self.fixed[i] = (x, y)
        self.x[i] = (x, y)
        self.v[i] = 0.0

    def unfix(self, i: int) -> None:
        self.fixed[i] = np.nan


# ---------------------------------------------------------------------------
# Forces
# ---------------------------------------------------------------------------

class Force:
    sim: ForceSimulation

    def initialize(self, sim: ForceSimulation) -> None:
        self.sim = sim

    def __call__(self, alpha: float) -> None:
        raise NotImplementedError


class _AxisForce(Force):
    axis = 0

    def __init__(self, targets=0.0, strength=0.1):
        self.targets = targets
        self.strength = strength

    def initialize(self, sim: ForceSimulation) -> None:
        super().initialize(sim)
        n = len(sim)
        self._targets = _per_node(self.targets, n)
        self._strengths = _per_node(self.strength, n)

    def __call__(self, alpha: float) -> None:
        pos = self.sim.x[:, self.axis]
        self.sim.v[:, self.axis] += (self._targets - pos) * self._strengths * alpha


class ForceX(_AxisForce):
    """Pull each node horizontally toward its target x."""
    axis = 0


class ForceY(_AxisForce):
    """Pull each node vertically toward its target y."""
    axis = 1


class ManyBody(Force):
    """Charge between every pair of nodes; negative strength repels."""

    def __init__(self, strength=-30.0, distance_min: float = 1.0,
                 distance_max: float = float("inf")):
        self.strength = strength
        self.distance_min = distance_min
        self.distance_max = distance_max

    def initialize(self, sim: ForceSimulation) -> None:
        super().initialize(sim)
        self._strengths = _per_node(self.strength, len(sim))

    def __call__(self, alpha: float) -> None:
        x = self.sim.x
        n = len(x)
        if n < 2:
            return

        # d[i, j] = x_j - x_i
        d = x[None, :, :] - x[:, None, :]
        offdiag = ~np.eye(n, dtype=bool)
        for axis in (0, 1):
            zero = (d[..., axis] == 0) & offdiag
            if zero.any():
                d[..., axis][zero] = self.sim.jiggle(int(zero.sum()))

        l = (d ** 2).sum(axis=-1)
        np.fill_diagonal(l, np.inf)
        far = l >= self.distance_max ** 2

        dmin2 = self.distance_min ** 2
        l = np.where(l < dmin2, np.sqrt(dmin2 * l), l)

        w = self._strengths[None, :] * alpha / l
        w[far] = 0.0
        self.sim.v += (d * w[:, :, None]).sum(axis=1)


class Collide(Force):
    """Push apart nodes whose circles overlap at their next positions."""

    def __init__(self, radius=1.0, strength: float = 1.0, iterations: int = 1):
        self.radius = radius
        self.strength = strength
        self.iterations = iterations

    def initialize(self, sim: ForceSimulation) -> None:
        super().initialize(sim)
        self._radii = _per_node(self.radius, len(sim))

    def __call__(self, alpha: float) -> None:
        sim = self.sim
        if len(sim) < 2:
            return
        r = self._radii

        for _ in range(self.iterations):
            p = sim.x + sim.v
            tree = cKDTree(p)
            pairs = tree.query_pairs(2 * r.max(), output_type="ndarray")
            if len(pairs) == 0:
                continue
            i, j = pairs[:, 0], pairs[:, 1]

            reach = r[i] + r[j]
            delta = p[i] - p[j]
            l2 = (delta ** 2).sum(axis=1)
            hit = l2 < reach ** 2
            if not hit.any():
                continue
            i, j, reach, delta = i[hit], j[hit], reach[hit], delta[hit]

            for axis in (0, 1):
                zero = delta[:, axis] == 0
                if zero.any():
                    delta[zero, axis] = sim.jiggle(int(zero.sum()))
            l = np.sqrt((delta ** 2).sum(axis=1))

            k = (reach - l) / l * self.strength
            delta *= k[:, None]
            ri2, rj2 = r[i] ** 2, r[j] ** 2
            share = rj2 / (ri2 + rj2)
            np.add.at(sim.v, i, delta * share[:, None])
            np.add.at(sim.v, j, -delta * (1 - share)[:, None])


class Radial(Force):
    """Pull nodes toward a circle of the given radius around (cx, cy)."""

    def __init__(self, radius, cx=0.0, cy=0.0, strength=0.1):
        self.radius = radius
        self.cx = cx
        self.cy = cy
        self.strength = strength

    def initialize(self, sim: ForceSimulation) -> None:
        super().initialize(sim)
        n = len(sim)
        self._radii = _per_node(self.radius, n)
        self._cx = _per_node(self.cx, n)
        self._cy = _per_node(self.cy, n)
        self._strengths = _per_node(self.strength, n)

    def __call__(self, alpha: float) -> None:
        dx = self.sim.x[:, 0] - self._cx
        dy = self.sim.x[:, 1] - self._cy
        dist = np.hypot(dx, dy)
        dist[dist == 0] = 1e-6
        k = (self._radii - dist) * self._strengths * alpha / dist
        self.sim.v[:, 0] += dx * k
        self.sim.v[:, 1] += dy * k


class ClusterAttraction(Force):
    """Pairwise attraction between nodes that share a group label.

    Node i is pulled by the mean of (x_j - x_i) over the other members of its
    group, which is the pull toward the group centroid scaled by c / (c - 1).
    Nodes alone in their group feel nothing.
    """

    def __init__(self, groups, strength: float = 0.1):
        self.groups = list(groups)
        self.strength = strength

    def initialize(self, sim: ForceSimulation) -> None:
        super().initialize(sim)
        if len(self.groups) != len(sim):
            raise ValueError(
                f"ClusterAttraction got {len(self.groups)} labels for {len(sim)} nodes"
            )
        labels = np.array([str(g) for g in self.groups])
        _, codes = np.unique(labels, return_inverse=True)
        self._codes = codes.ravel()
        self._counts = np.bincount(self._codes)

    def __call__(self, alpha: float) -> None:
        x = self.sim.x
        if len(x) == 0:
            return
        sums = np.zeros((len(self._counts), 2))
        np.add.at(sums, self._codes, x)

        c = self._counts[self._codes].astype(float)
        others = np.maximum(c - 1, 1)[:, None]
        pull = (sums[self._codes] - c[:, None] * x) / others
        pull[c < 2] = 0.0
        self.sim.v += pull * self.strength * alpha
