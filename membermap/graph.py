#!/usr/bin/env python3
"""
Grapher — places members on a map of Japan and settles them with a force
simulation, then exports the positions for the site compiler.

Two layouts are produced:
  geo     members are pulled toward the Mercator-projected seat of their
          prefecture, with weak repulsion and collision avoidance
  radial  prefectures are laid out around a ring in their geographic bearing
          order; members are pulled onto the ring, toward their own
          prefecture sector and toward each other within the prefecture

Usage:
    python -m membermap.graph output/members.json -o output/
    python -m membermap.graph output/members.json -o output/ --mode radial --plot
    python -m membermap.graph output/members.json -o output/ --ticks 300 --seed 7
"""

import argparse
import json
import math
import sys
from collections import defaultdict
from dataclasses import asdict, dataclass
from pathlib import Path

import networkx as nx
import numpy as np

from membermap.parse import Member, read_members_json
from membermap.prefectures import get_prefecture_coordinate
from membermap.simulation import (
    ClusterAttraction,
    Collide,
    ForceSimulation,
    ForceX,
    ForceY,
    ManyBody,
    Radial,
)

MODES = ("geo", "radial")


@dataclass
class LayoutConfig:
    # Mercator projection roughly centered on Honshu
    center: tuple[float, float] = (137.0, 38.0)
    scale: float = 1600.0
    translate: tuple[float, float] = (0.0, 0.0)
    jitter: float = 8.0
    position_strength: float = 0.08
    charge: float = -5.0
    collide_radius: float = 6.0
    cooldown_ticks: int = 150
    radial_radius: float = 300.0
    radial_strength: float = 0.1
    cluster_strength: float = 0.05
    seed: int = 42


@dataclass
class GraphNode:
    id: str
    name: str
    prefecture: str
    organization: str
    avatar_path: str
    color: str
    target_x: float
    target_y: float
    x: float
    y: float
    angle: float | None = None
    ring_x: float | None = None
    ring_y: float | None = None


# ---------------------------------------------------------------------------
# 1. Projection & nodes
# ---------------------------------------------------------------------------

def _mercator_y(lat: float) -> float:
    return math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))


def mercator(
    center: tuple[float, float] = (137.0, 38.0),
    scale: float = 1600.0,
    translate: tuple[float, float] = (0.0, 0.0),
):
    """Spherical Mercator that maps `center` (lng, lat) onto `translate`.

    Screen y grows southward, as in d3.geoMercator().
    """
    lng0, lat0 = center
    tx, ty = translate
    y0 = _mercator_y(lat0)

    def project(lng: float, lat: float) -> tuple[float, float]:
        x = tx + scale * math.radians(lng - lng0)
        y = ty - scale * (_mercator_y(lat) - y0)
        return x, y

    return project


def build_nodes(
    members: list[Member],
    config: LayoutConfig,
    rng: np.random.Generator,
) -> list[GraphNode]:
    """One node per placeable member, started near its prefecture seat."""
    project = mercator(config.center, config.scale, config.translate)
    nodes: list[GraphNode] = []
    for index, m in enumerate(members):
        coord = get_prefecture_coordinate(m.prefecture)
        if coord is None:
            print(
                f"  WARNING: coordinates not found for prefecture {m.prefecture!r} "
                f"({m.name}); skipped",
                file=sys.stderr,
            )
            continue
        x0, y0 = project(coord.lng, coord.lat)
        jx, jy = (rng.random(2) - 0.5) * config.jitter
        nodes.append(GraphNode(
            id=f"{index}-{m.name}",
            name=m.name,
            prefecture=coord.name,
            organization=m.organization,
            avatar_path=m.avatar_path,
            color=coord.color,
            target_x=x0,
            target_y=y0,
            x=x0 + jx,
            y=y0 + jy,
        ))
    return nodes


# ---------------------------------------------------------------------------
# 2. Radial variant
# ---------------------------------------------------------------------------

def prefecture_angles(nodes: list[GraphNode]) -> dict[str, tuple[float, float]]:
    """Angular sector (start, width) per prefecture, in geographic bearing order.

    Bearings are measured from the centroid of all targets. Sector widths are
    proportional to member counts and together cover the full circle. Sectors
    are laid end to end, so only the order of bearings is kept exactly; the
    ring as a whole is rotated to the member-weighted circular mean of the
    bearing errors, which keeps each sector as close to its bearing as the
    packing allows.
    """
    if not nodes:
        return {}
    targets = np.array([(n.target_x, n.target_y) for n in nodes])
    cx, cy = targets.mean(axis=0)

    counts: dict[str, int] = defaultdict(int)
    bearings: dict[str, float] = {}
    for n in nodes:
        counts[n.prefecture] += 1
        bearings[n.prefecture] = math.atan2(n.target_y - cy, n.target_x - cx)

    order = sorted(counts, key=lambda p: (bearings[p], p))
    total = len(nodes)

    sectors: dict[str, tuple[float, float]] = {}
    start = 0.0
    for pref in order:
        width = 2 * math.pi * counts[pref] / total
        sectors[pref] = (start, width)
        start += width

    errors = [
        (counts[p], bearings[p] - (s + w / 2)) for p, (s, w) in sectors.items()
    ]
    rotation = math.atan2(
        sum(c * math.sin(e) for c, e in errors),
        sum(c * math.cos(e) for c, e in errors),
    )
    return {p: (s + rotation, w) for p, (s, w) in sectors.items()}


def radial_targets(nodes: list[GraphNode], config: LayoutConfig) -> None:
    """Assign each node an angle inside its prefecture sector and a ring target."""
    sectors = prefecture_angles(nodes)
    seen: dict[str, int] = defaultdict(int)
    counts: dict[str, int] = defaultdict(int)
    for n in nodes:
        counts[n.prefecture] += 1

    cx, cy = config.translate
    for n in nodes:
        start, width = sectors[n.prefecture]
        k = seen[n.prefecture]
        seen[n.prefecture] += 1
        n.angle = start + width * (k + 0.5) / counts[n.prefecture]
        n.ring_x = cx + config.radial_radius * math.cos(n.angle)
        n.ring_y = cy + config.radial_radius * math.sin(n.angle)


# ---------------------------------------------------------------------------
# 3. Simulation
# ---------------------------------------------------------------------------

def geo_simulation(nodes: list[GraphNode], config: LayoutConfig) -> ForceSimulation:
    sim = ForceSimulation([(n.x, n.y) for n in nodes], seed=config.seed)
    sim.force("x", ForceX([n.target_x for n in nodes], config.position_strength))
    sim.force("y", ForceY([n.target_y for n in nodes], config.position_strength))
    sim.force("charge", ManyBody(config.charge))
    sim.force("collide", Collide(config.collide_radius))
    return sim


def radial_simulation(nodes: list[GraphNode], config: LayoutConfig) -> ForceSimulation:
    """Ring + same-prefecture attraction; nodes must already carry ring targets."""
    cx, cy = config.translate
    sim = ForceSimulation([(n.x, n.y) for n in nodes], seed=config.seed)
    sim.force("radial", Radial(config.radial_radius, cx, cy, config.radial_strength))
    sim.force("cluster", ClusterAttraction([n.prefecture for n in nodes],
                                           config.cluster_strength))
    # Weak pull keeps each prefecture inside its own sector
    sim.force("x", ForceX([n.ring_x for n in nodes], config.position_strength / 4))
    sim.force("y", ForceY([n.ring_y for n in nodes], config.position_strength / 4))
    sim.force("charge", ManyBody(config.charge))
    sim.force("collide", Collide(config.collide_radius))
    return sim


def compute_layout(
    members: list[Member],
    mode: str = "geo",
    config: LayoutConfig | None = None,
) -> list[GraphNode]:
    """Build nodes for the members and settle them with the mode's forces."""
    if mode not in MODES:
        raise ValueError(f"Unknown layout mode {mode!r}; expected one of {MODES}")
    config = config or LayoutConfig()
    rng = np.random.default_rng(config.seed)

    nodes = build_nodes(members, config, rng)
    if not nodes:
        print(f"{mode} layout: no placeable members", file=sys.stderr)
        return nodes

    if mode == "radial":
        radial_targets(nodes, config)
        # Start on the ring with the same jitter the geo start used
        for n in nodes:
            n.x = n.ring_x + (n.x - n.target_x)
            n.y = n.ring_y + (n.y - n.target_y)
        sim = radial_simulation(nodes, config)
    else:
        sim = geo_simulation(nodes, config)

    ticks = sim.run(config.cooldown_ticks)
    for n, (x, y) in zip(nodes, sim.x):
        n.x = round(float(x), 3)
        n.y = round(float(y), 3)

    print(
        f"{mode} layout: {len(nodes)} nodes settled after {ticks} ticks "
        f"(alpha {sim.alpha:.4f})",
        file=sys.stderr,
    )
    return nodes


def zoom_to_fit(
    nodes: list[GraphNode],
    width: float,
    height: float,
    padding: float = 80.0,
    min_zoom: float = 0.25,
    max_zoom: float = 12.0,
) -> tuple[float, float, float]:
    """Zoom factor and center that fit every node inside the viewport."""
    if not nodes:
        return 1.0, 0.0, 0.0
    xs = [n.x for n in nodes]
    ys = [n.y for n in nodes]
    x0, x1 = min(xs), max(xs)
    y0, y1 = min(ys), max(ys)
    cx, cy = (x0 + x1) / 2, (y0 + y1) / 2

    k = min(
        (width - 2 * padding) / max(x1 - x0, 1e-12),
        (height - 2 * padding) / max(y1 - y0, 1e-12),
    )
    k = min(max(k, min_zoom), max_zoom)
    return k, cx, cy


# ---------------------------------------------------------------------------
# 4. Graph & summary
# ---------------------------------------------------------------------------

def build_graph(nodes: list[GraphNode]) -> nx.Graph:
    """Edgeless graph carrying every node's attributes (for GraphML)."""
    g = nx.Graph()
    for n in nodes:
        attrs = {k: v for k, v in asdict(n).items() if k != "id" and v is not None}
        attrs["label"] = n.name
        g.add_node(n.id, **attrs)
    return g


def prefecture_summary(nodes: list[GraphNode]) -> dict[str, dict]:
    """Member count, centroid and color per prefecture."""
    groups: dict[str, list[GraphNode]] = defaultdict(list)
    for n in nodes:
        groups[n.prefecture].append(n)

    summary = {}
    for pref, members in groups.items():
        summary[pref] = {
            "count": len(members),
            "cx": round(sum(m.x for m in members) / len(members), 3),
            "cy": round(sum(m.y for m in members) / len(members), 3),
            "color": members[0].color,
        }
    return summary


def print_prefecture_summary(summary: dict[str, dict]) -> None:
    for pref, info in sorted(summary.items(), key=lambda kv: (-kv[1]["count"], kv[0])):
        print(
            f"  {pref}: {info['count']} members, centroid "
            f"({info['cx']:.1f}, {info['cy']:.1f})",
            file=sys.stderr,
        )


# ---------------------------------------------------------------------------
# 5. Export
# ---------------------------------------------------------------------------

def export_layout(
    path: Path, nodes: list[GraphNode], mode: str, config: LayoutConfig,
) -> None:
    """Write layout JSON: mode, the config used, and per-node positions."""
    out_nodes = {}
    for n in nodes:
        entry = {
            "x": n.x,
            "y": n.y,
            "tx": round(n.target_x, 3),
            "ty": round(n.target_y, 3),
        }
        if n.angle is not None:
            entry["angle"] = round(n.angle, 6)
            entry["rx"] = round(n.ring_x, 3)
            entry["ry"] = round(n.ring_y, 3)
        out_nodes[n.id] = entry

    data = {
        "mode": mode,
        "config": asdict(config),
        "prefectures": prefecture_summary(nodes),
        "nodes": out_nodes,
    }
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, separators=(",", ":"))
    print(f"Wrote {path} ({len(out_nodes)} positions)", file=sys.stderr)


def export_graphml(path: Path, graph: nx.Graph) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    nx.write_graphml(graph, str(path))
    print(f"Wrote {path} ({graph.number_of_nodes()} nodes)", file=sys.stderr)


def plot_layout(path: Path, nodes: list[GraphNode], title: str) -> None:
    """Render a PNG preview of a settled layout."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    matplotlib.rcParams["font.family"] = [
        "Hiragino Sans", "Noto Sans CJK JP", "IPAexGothic", "sans-serif",
    ]

    fig, ax = plt.subplots(figsize=(12, 12))
    ax.scatter(
        [n.x for n in nodes], [n.y for n in nodes],
        s=36, c=[n.color for n in nodes], alpha=0.85,
        edgecolors="#333", linewidths=0.3,
    )
    for pref, info in prefecture_summary(nodes).items():
        ax.annotate(
            f"{pref} ({info['count']})", (info["cx"], info["cy"]),
            fontsize=7, ha="center", va="bottom", color="#333",
        )

    # Screen coordinates: y grows downward
    ax.invert_yaxis()
    ax.set_aspect("equal")
    ax.set_title(f"{title} — {len(nodes)} members", fontsize=13)
    ax.axis("off")
    fig.tight_layout()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(str(path), dpi=150)
    plt.close(fig)
    print(f"Wrote {path}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    defaults = LayoutConfig()
    parser = argparse.ArgumentParser(
        description="Compute geographic and radial force layouts for the member roster.",
    )
    parser.add_argument("members", type=Path, help="members.json from membermap.parse")
    parser.add_argument(
        "-o", "--output", type=Path, required=True,
        help="Output directory for layout JSON / GraphML files",
    )
    parser.add_argument(
        "--mode", choices=[*MODES, "both"], default="both",
        help="Layout(s) to compute (default: both)",
    )
    parser.add_argument(
        "--ticks", type=int, default=defaults.cooldown_ticks,
        help=f"Simulation ticks before freezing (default: {defaults.cooldown_ticks})",
    )
    parser.add_argument(
        "--seed", type=int, default=defaults.seed,
        help=f"Random seed for start jitter (default: {defaults.seed})",
    )
    parser.add_argument(
        "--charge", type=float, default=defaults.charge,
        help=f"Many-body strength, negative repels (default: {defaults.charge})",
    )
    parser.add_argument(
        "--collide-radius", type=float, default=defaults.collide_radius,
        help=f"Collision radius in px (default: {defaults.collide_radius})",
    )
    parser.add_argument(
        "--position-strength", type=float, default=defaults.position_strength,
        help=f"Pull toward prefecture targets (default: {defaults.position_strength})",
    )
    parser.add_argument(
        "--radial-radius", type=float, default=defaults.radial_radius,
        help=f"Ring radius for the radial layout (default: {defaults.radial_radius})",
    )
    parser.add_argument(
        "--cluster-strength", type=float, default=defaults.cluster_strength,
        help=f"Same-prefecture attraction in the radial layout "
             f"(default: {defaults.cluster_strength})",
    )
    parser.add_argument(
        "--plot", action="store_true",
        help="Generate PNG previews alongside the layout files",
    )
    args = parser.parse_args()

    if args.ticks < 1:
        parser.error("--ticks must be at least 1")

    try:
        members = read_members_json(args.members)
    except FileNotFoundError as e:
        parser.error(str(e))
    print(f"Loaded {len(members)} members from {args.members}", file=sys.stderr)

    config = LayoutConfig(
        charge=args.charge,
        collide_radius=args.collide_radius,
        position_strength=args.position_strength,
        cooldown_ticks=args.ticks,
        radial_radius=args.radial_radius,
        radial_strength=defaults.radial_strength,
        cluster_strength=args.cluster_strength,
        seed=args.seed,
    )

    modes = MODES if args.mode == "both" else (args.mode,)
    for mode in modes:
        nodes = compute_layout(members, mode, config)
        if mode == "geo":
            print_prefecture_summary(prefecture_summary(nodes))
            export_graphml(args.output / "members.graphml", build_graph(nodes))
        export_layout(args.output / f"layout_{mode}.json", nodes, mode, config)
        if args.plot:
            plot_layout(args.output / f"layout_{mode}.png", nodes, f"{mode} layout")

    print(f"\nDone. {len(modes)} layout(s) exported to {args.output}/", file=sys.stderr)


if __name__ == "__main__":
    main()
