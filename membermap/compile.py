#!/usr/bin/env python3
"""
Site compiler — reads members.json and the layout files written by the grapher
and generates a static HTML site with an interactive force-graph map and a
roster table.

Usage:
    python -m membermap.compile -i output/ -o www/
    python -m membermap.compile -i output/ -o www/ --images public/img
    python -m membermap.compile -i output/ -o www/ --base-path /cs-members

The generated site works via file:// protocol (no server required).
Member data is embedded as a JS global loaded via a <script src> tag.
"""

import argparse
import json
import shutil
import sys
import urllib.request
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from membermap.graph import MODES, LayoutConfig, mercator
from membermap.parse import Member, read_members_json
from membermap.prefectures import get_prefecture_coordinate

TEMPLATE_DIR = Path(__file__).parent / "templates"

# CDN URLs for JS libraries
JS_LIBS = {
    "d3.min.js": "https://unpkg.com/d3@7.9.0/dist/d3.min.js",
    "force-graph.min.js": "https://unpkg.com/force-graph@1.43.5/dist/force-graph.min.js",
}

THEME = {
    "background": "#f4f1ea",
    "accent": "#3b82f6",
    "text": "#1f2937",
    "muted": "#6b7280",
    "border": "#d1d5db",
}

SITE = {
    "lang": "ja",
    "title": "みんなでつくる中国山地 百年会議 会員マップ",
    "description": (
        "中国山地 百年会議の会員を地図上に可視化したアプリケーションです。"
        "会員同士のつながりや交流のきっかけづくりを目的としています。"
    ),
    "heading": "コミュニティ会員",
    "footer_url": "https://cs-editors.site/",
    "footer_label": "みんなでつくる中国山地 百年会議 公式サイト→",
    "background": "img/bg.jpg",
}

# Client-side rendering and interaction settings
GRAPH = {
    "nodeRelSize": 3,
    "pointerRadius": 10,
    "labelMinZoom": 2.5,
    "labelFontSize": 12,
    "labelFontExponent": 0.6,
    "focusZoom": 4,
    "focusDuration": 800,
    "minZoom": 0.25,
    "maxZoom": 12,
    "fitPadding": 80,
    "fitDelay": 100,
    "maxPixelRatio": 2,
    "defaultDisplay": "initial",
    "defaultMode": "geo",
}


# ---------------------------------------------------------------------------
# Data loading
# ---------------------------------------------------------------------------

def load_members_json(input_dir: Path) -> list[Member]:
    return read_members_json(input_dir / "members.json")


def load_layouts(input_dir: Path) -> dict[str, dict]:
    """Load layout_<mode>.json for every mode the grapher produced."""
    layouts = {}
    for mode in MODES:
        path = input_dir / f"layout_{mode}.json"
        if not path.exists():
            print(
                f"  WARNING: {path.name} not found; the {mode} view will lay out "
                f"in the browser from prefecture targets only",
                file=sys.stderr,
            )
            continue
        try:
            with open(path, encoding="utf-8") as f:
                layouts[mode] = json.load(f)
        except json.JSONDecodeError as e:
            print(
                f"  WARNING: {path.name} is not valid JSON ({e}); "
                f"skipping the {mode} layout",
                file=sys.stderr,
            )
    return layouts


def layout_config(layouts: dict[str, dict]) -> LayoutConfig:
    """The config the layouts were computed with, or defaults."""
    for mode in MODES:
        if mode in layouts:
            raw = dict(layouts[mode].get("config", {}))
            known = LayoutConfig.__dataclass_fields__
            raw = {k: tuple(v) if isinstance(v, list) else v
                   for k, v in raw.items() if k in known}
            return LayoutConfig(**raw)
    return LayoutConfig()


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def node_records(
    members: list[Member],
    layouts: dict[str, dict],
    config: LayoutConfig | None = None,
) -> list[dict]:
    """Join members with their settled positions into page records."""
    config = config or layout_config(layouts)
    project = mercator(config.center, config.scale, config.translate)
    geo_nodes = layouts.get("geo", {}).get("nodes", {})
    radial_nodes = layouts.get("radial", {}).get("nodes", {})

    records = []
    skipped = 0
    for index, m in enumerate(members):
        coord = get_prefecture_coordinate(m.prefecture)
        if coord is None:
            skipped += 1
            continue
        node_id = f"{index}-{m.name}"
        tx, ty = project(coord.lng, coord.lat)
        geo = geo_nodes.get(node_id, {})
        record = {
            "id": node_id,
            "name": m.name,
            "initial": m.initial,
            "pref": coord.name,
            "org": m.organization,
            "avatar": m.avatar_path,
            "color": coord.color,
            "tx": round(tx, 3),
            "ty": round(ty, 3),
            "x": geo.get("x", round(tx, 3)),
            "y": geo.get("y", round(ty, 3)),
        }
        radial = radial_nodes.get(node_id)
        if radial and "rx" in radial:
            record["radial"] = {
                "x": radial["x"],
                "y": radial["y"],
                "tx": radial["rx"],
                "ty": radial["ry"],
            }
        records.append(record)

    if skipped:
        print(
            f"  WARNING: {skipped} members with unknown prefectures left off the map",
            file=sys.stderr,
        )
    return records


def prefecture_legend(records: list[dict]) -> list[dict]:
    """Prefectures present on the map, largest first."""
    counts: dict[str, dict] = {}
    for r in records:
        entry = counts.setdefault(r["pref"], {"name": r["pref"], "color": r["color"], "count": 0})
        entry["count"] += 1
    return sorted(counts.values(), key=lambda e: (-e["count"], e["name"]))


# ---------------------------------------------------------------------------
# JS data export
# ---------------------------------------------------------------------------

def export_members_js(
    output_dir: Path, records: list[dict], config: LayoutConfig, modes: list[str],
) -> None:
    """Write members.js with node records and the force settings."""
    data = {
        "nodes": records,
        "prefectures": prefecture_legend(records),
        "modes": modes,
        "forces": {
            "positionStrength": config.position_strength,
            "charge": config.charge,
            "collideRadius": config.collide_radius,
            "cooldownTicks": config.cooldown_ticks,
            "radialRadius": config.radial_radius,
            "radialStrength": config.radial_strength,
            "clusterStrength": config.cluster_strength,
            "ringCenter": list(config.translate),
        },
    }
    path = output_dir / "data" / "members.js"
    with open(path, "w", encoding="utf-8") as f:
        f.write("var MEMBERS_DATA = ")
        json.dump(data, f, ensure_ascii=False, separators=(",", ":"))
        f.write(";\n")
    print(f"  Wrote {path} ({len(records)} nodes)", file=sys.stderr)


# ---------------------------------------------------------------------------
# CSS generation
# ---------------------------------------------------------------------------

def write_css(output_dir: Path) -> None:
    """Write the main stylesheet."""
    css = """\
* { margin: 0; padding: 0; box-sizing: border-box; }
html, body { height: 100%; font-family: -apple-system, BlinkMacSystemFont, 'Hiragino Sans', 'Noto Sans JP', sans-serif; background: __BACKGROUND__; color: __TEXT__; }
body.graph-page { overflow: hidden; }

.page-background {
  position: fixed; inset: 0; z-index: -20;
  background-size: cover; background-position: center; background-repeat: no-repeat;
}

#site-header {
  position: fixed; top: 0; left: 0; right: 0; z-index: 100;
  display: flex; align-items: center; justify-content: space-between;
  height: 52px; padding: 0 16px;
  background: rgba(255, 255, 255, 0.9); border-bottom: 1px solid __BORDER__;
}
.site-title { font-size: 15px; font-weight: 700; color: __TEXT__; text-decoration: none; }
.site-stats { font-size: 12px; color: __MUTED__; margin-left: 10px; }

/* Hamburger menu */
.menu { position: relative; }
.menu-toggle {
  padding: 8px; border: none; background: none; border-radius: 8px; cursor: pointer;
  font-size: 22px; line-height: 1; color: __TEXT__;
}
.menu-toggle:hover { background: #f3f4f6; }
.menu-overlay { position: fixed; inset: 0; z-index: 40; }
.menu-panel {
  position: absolute; top: 100%; right: 0; margin-top: 8px; z-index: 50;
  min-width: 200px; padding: 16px; background: #fff;
  border: 1px solid __BORDER__; border-radius: 8px; box-shadow: 0 4px 12px rgba(0,0,0,0.12);
}
.menu-section + .menu-section { margin-top: 16px; }
.menu-section h3 { font-size: 13px; font-weight: 500; color: #374151; margin-bottom: 8px; }
.menu-option {
  display: block; width: 100%; margin-bottom: 6px; padding: 8px 16px;
  border: none; border-radius: 8px; background: none; text-align: left;
  font-size: 14px; font-weight: 500; color: #374151; cursor: pointer;
}
.menu-option:hover { background: #f3f4f6; }
.menu-option.active { background: __ACCENT__; color: #fff; }
.menu-link { display: block; padding: 8px 16px; font-size: 14px; color: __ACCENT__; text-decoration: none; }
.hidden { display: none !important; }

/* Graph */
#graph { position: fixed; inset: 0; }

/* Tooltip */
.tooltip {
  position: absolute; z-index: 50; pointer-events: none;
  transform: translateX(-50%); max-width: 24rem;
  padding: 8px 12px; background: #fff; border: 2px solid #6b7280;
  border-radius: 8px; box-shadow: 0 4px 12px rgba(0,0,0,0.15);
}
.tooltip-body { display: flex; align-items: flex-start; gap: 8px; }
.tooltip-pref {
  flex-shrink: 0; padding: 2px 8px; border-radius: 4px;
  font-size: 12px; font-weight: 500; color: #fff;
}
.tooltip-name { font-size: 14px; font-weight: 600; color: #1f2937; }
.tooltip-org { margin-top: 4px; font-size: 12px; color: #4b5563; }
@media (max-width: 640px) { .tooltip-body { flex-direction: column; } }

/* Legend */
#legend {
  position: fixed; bottom: 16px; left: 16px; z-index: 30;
  max-height: 40vh; overflow-y: auto; padding: 10px 14px;
  background: rgba(255, 255, 255, 0.92); border: 1px solid __BORDER__; border-radius: 6px;
}
.legend-item { display: flex; align-items: center; gap: 6px; padding: 2px 0; font-size: 11px; color: #555; }
.legend-swatch { display: inline-block; width: 10px; height: 10px; border-radius: 50%; flex-shrink: 0; }

/* Roster page */
.roster-layout {
  display: flex; flex-direction: column; align-items: center; gap: 32px;
  min-height: 100%; padding: 80px 20px 40px;
}
.roster-layout h1 { font-size: 24px; font-weight: 700; }
.roster-table { width: 100%; max-width: 56rem; border-collapse: collapse; background: rgba(255,255,255,0.92); }
.roster-table th, .roster-table td { border: 1px solid __BORDER__; padding: 8px 16px; text-align: left; font-size: 14px; }
.roster-table thead tr { background: #f3f4f6; }
.roster-table tbody tr:hover { background: #f9fafb; }
.roster-footer a { color: __TEXT__; text-decoration: none; font-size: 14px; }
.roster-footer a:hover { text-decoration: underline; text-underline-offset: 4px; }
"""
    for key in ("background", "text", "muted", "border", "accent"):
        css = css.replace(f"__{key.upper()}__", THEME[key])
    path = output_dir / "assets" / "style.css"
    with open(path, "w", encoding="utf-8") as f:
        f.write(css)
    print(f"  Wrote {path}", file=sys.stderr)


def write_js(output_dir: Path) -> None:
    """Copy the graph page script into assets/."""
    dest = output_dir / "assets" / "graph.js"
    shutil.copyfile(TEMPLATE_DIR / "graph.js", dest)
    print(f"  Wrote {dest}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------

def download_js_libs(output_dir: Path) -> None:
    """Download the d3 and force-graph UMD bundles."""
    assets = output_dir / "assets"
    for filename, url in JS_LIBS.items():
        dest = assets / filename
        if dest.exists():
            print(f"  {filename} already exists, skipping", file=sys.stderr)
            continue
        print(f"  Downloading {filename}...", file=sys.stderr)
        try:
            req = urllib.request.Request(url, headers={"User-Agent": "membermap/0.1"})
            with urllib.request.urlopen(req, timeout=30) as resp:
                data = resp.read()
            with open(dest, "wb") as f:
                f.write(data)
            print(f"  Saved {dest} ({len(data):,} bytes)", file=sys.stderr)
        except OSError as e:
            print(
                f"  WARNING: Could not download {filename}: {e}\n"
                f"  Please download manually from {url}\n"
                f"  and place in {assets}/",
                file=sys.stderr,
            )


def copy_images(images_dir: Path | None, output_dir: Path) -> int:
    """Copy avatar and background images into img/. Returns files copied."""
    if images_dir is None:
        return 0
    if not images_dir.is_dir():
        print(f"  WARNING: image directory {images_dir} not found", file=sys.stderr)
        return 0
    dest = output_dir / "img"
    copied = 0
    for src in sorted(images_dir.rglob("*")):
        if not src.is_file():
            continue
        target = dest / src.relative_to(images_dir)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, target)
        copied += 1
    print(f"  Copied {copied} images to {dest}/", file=sys.stderr)
    return copied


# ---------------------------------------------------------------------------
# HTML generation
# ---------------------------------------------------------------------------

def page_root(base_path: str | None, depth: int) -> str:
    """Prefix for asset links: absolute under base_path, else relative."""
    if base_path:
        return base_path.rstrip("/") + "/"
    return "../" * depth


def render_templates(
    output_dir: Path,
    members: list[Member],
    records: list[dict],
    modes: list[str],
    site: dict | None = None,
    base_path: str | None = None,
) -> None:
    """Render Jinja2 templates to HTML files."""
    site = {**SITE, **(site or {})}
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    pref_count = len({r["pref"] for r in records})

    # Graph page
    root = page_root(base_path, 0)
    tpl = env.get_template("index.html")
    html = tpl.render(
        root=root,
        site=site,
        theme=THEME,
        graph={**GRAPH, "root": root},
        modes=modes,
        node_count=len(records),
        prefecture_count=pref_count,
    )
    with open(output_dir / "index.html", "w", encoding="utf-8") as f:
        f.write(html)
    print(f"  Wrote {output_dir / 'index.html'}", file=sys.stderr)

    # Roster page (trailing-slash URL)
    tpl = env.get_template("members.html")
    html = tpl.render(
        root=page_root(base_path, 1),
        site=site,
        theme=THEME,
        members=members,
    )
    with open(output_dir / "members" / "index.html", "w", encoding="utf-8") as f:
        f.write(html)
    print(
        f"  Wrote {output_dir / 'members' / 'index.html'} ({len(members)} rows)",
        file=sys.stderr,
    )


def compile_site(
    input_dir: Path,
    output_dir: Path,
    images_dir: Path | None = None,
    base_path: str | None = None,
    site: dict | None = None,
    download: bool = True,
) -> int:
    """Run the whole compile; returns the number of nodes on the map."""
    print("Loading member data...", file=sys.stderr)
    members = load_members_json(input_dir)
    layouts = load_layouts(input_dir)
    print(
        f"Loaded {len(members)} members and {len(layouts)} layout(s)",
        file=sys.stderr,
    )

    for d in ["", "data", "assets", "members"]:
        (output_dir / d).mkdir(parents=True, exist_ok=True)

    print("Exporting data files...", file=sys.stderr)
    config = layout_config(layouts)
    records = node_records(members, layouts, config)
    modes = [m for m in MODES if m == "geo" or m in layouts]
    export_members_js(output_dir, records, config, modes)

    print("Setting up assets...", file=sys.stderr)
    if download:
        download_js_libs(output_dir)
    write_css(output_dir)
    write_js(output_dir)
    copy_images(images_dir, output_dir)

    print("Rendering HTML pages...", file=sys.stderr)
    render_templates(output_dir, members, records, modes, site, base_path)
    return len(records)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Compile member layouts into an interactive HTML site."
    )
    parser.add_argument(
        "-i", "--input", type=Path, required=True,
        help="Input directory with members.json and layout_*.json",
    )
    parser.add_argument(
        "-o", "--output", type=Path, required=True,
        help="Output directory for the generated site (e.g. www/)",
    )
    parser.add_argument(
        "--images", type=Path, default=None,
        help="Directory with avatar/background images to copy into img/",
    )
    parser.add_argument(
        "--base-path", default=None,
        help="URL prefix when hosted below the domain root (e.g. /cs-members)",
    )
    parser.add_argument("--title", default=None, help="Page title")
    parser.add_argument(
        "--no-download", action="store_true",
        help="Do not fetch d3 / force-graph bundles",
    )
    args = parser.parse_args()

    site = {"title": args.title} if args.title else None
    try:
        node_count = compile_site(
            args.input, args.output,
            images_dir=args.images,
            base_path=args.base_path,
            site=site,
            download=not args.no_download,
        )
    except FileNotFoundError as e:
        parser.error(str(e))

    print(
        f"\nDone! Site generated at {args.output}/\n"
        f"  {node_count} members on the map\n"
        f"  Open {args.output}/index.html in a browser (file:// works)",
        file=sys.stderr,
    )


if __name__ == "__main__":
    main()
