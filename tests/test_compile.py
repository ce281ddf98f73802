import json
import math
import sys
import urllib.error
import urllib.request

import pytest

from membermap import compile as site
from membermap.graph import LayoutConfig, compute_layout, export_layout
from membermap.parse import Member, write_members_json


def read_members_js(path):
    text = path.read_text(encoding="utf-8")
    prefix = "var MEMBERS_DATA = "
    assert text.startswith(prefix)
    return json.loads(text[len(prefix):].rstrip().rstrip(";"))


@pytest.fixture
def pipeline_dir(tmp_path, chugoku_members):
    """Input directory as left behind by parse + graph."""
    input_dir = tmp_path / "output"
    members = chugoku_members + [Member("火星", "宇宙人")]
    write_members_json(input_dir / "members.json", members)
    config = LayoutConfig(cooldown_ticks=30)
    for mode in ("geo", "radial"):
        nodes = compute_layout(members, mode, config)
        export_layout(input_dir / f"layout_{mode}.json", nodes, mode, config)
    return input_dir


def test_compile_site(pipeline_dir, tmp_path):
    www = tmp_path / "www"
    count = site.compile_site(pipeline_dir, www, download=False)
    assert count == 12

    for rel in [
        "index.html", "members/index.html", "data/members.js",
        "assets/style.css", "assets/graph.js",
    ]:
        assert (www / rel).is_file(), rel

    data = read_members_js(www / "data" / "members.js")
    assert data["modes"] == ["geo", "radial"]
    assert len(data["nodes"]) == 12
    assert data["forces"]["cooldownTicks"] == 30
    assert [p["count"] for p in data["prefectures"]] == [4, 4, 4]

    first = data["nodes"][0]
    assert first["id"] == "0-岡山県0"
    assert first["initial"] == "岡"
    assert first["avatar"] == "img/avator01.png"
    assert set(first["radial"]) == {"x", "y", "tx", "ty"}


def test_records_use_settled_positions(pipeline_dir):
    members = site.load_members_json(pipeline_dir)
    layouts = site.load_layouts(pipeline_dir)
    records = site.node_records(members, layouts)
    geo = layouts["geo"]["nodes"]
    for r in records:
        assert (r["x"], r["y"]) == (geo[r["id"]]["x"], geo[r["id"]]["y"])
        assert r["tx"] == pytest.approx(geo[r["id"]]["tx"], abs=1e-3)


def test_missing_layouts_fall_back_to_targets(tmp_path, capsys):
    input_dir = tmp_path / "output"
    write_members_json(input_dir / "members.json", [Member("岡山県", "A")])
    www = tmp_path / "www"
    site.compile_site(input_dir, www, download=False)

    assert "layout_geo.json not found" in capsys.readouterr().err
    data = read_members_js(www / "data" / "members.js")
    assert data["modes"] == ["geo"]
    node = data["nodes"][0]
    assert (node["x"], node["y"]) == (node["tx"], node["ty"])
    assert "radial" not in node
    assert "円環" not in (www / "index.html").read_text(encoding="utf-8")


def test_missing_members(tmp_path):
    with pytest.raises(FileNotFoundError):
        site.compile_site(tmp_path / "nothing", tmp_path / "www", download=False)
    assert not (tmp_path / "www").exists()


def test_pages(pipeline_dir, tmp_path):
    www = tmp_path / "www"
    site.compile_site(pipeline_dir, www, download=False, site={"title": "テスト会員マップ"})

    index = (www / "index.html").read_text(encoding="utf-8")
    assert "<title>テスト会員マップ</title>" in index
    assert 'src="assets/force-graph.min.js"' in index
    assert '"labelMinZoom": 2.5' in index
    assert 'data-display="thumbnail"' in index
    assert "12名 / 3都道府県" in index

    roster = (www / "members" / "index.html").read_text(encoding="utf-8")
    assert 'href="../assets/style.css"' in roster
    assert "宇宙人" in roster
    assert "https://cs-editors.site/" in roster


def test_roster_escapes_html(tmp_path):
    input_dir = tmp_path / "output"
    write_members_json(input_dir / "members.json", [Member("岡山県", "<b>A</b>")])
    www = tmp_path / "www"
    site.compile_site(input_dir, www, download=False)
    roster = (www / "members" / "index.html").read_text(encoding="utf-8")
    assert "&lt;b&gt;A&lt;/b&gt;" in roster


def test_base_path(pipeline_dir, tmp_path):
    www = tmp_path / "www"
    site.compile_site(pipeline_dir, www, base_path="/cs-members/", download=False)
    index = (www / "index.html").read_text(encoding="utf-8")
    roster = (www / "members" / "index.html").read_text(encoding="utf-8")
    assert 'href="/cs-members/assets/style.css"' in index
    assert 'href="/cs-members/assets/style.css"' in roster
    assert '"root": "/cs-members/"' in index


def test_css_has_theme_values(tmp_path):
    (tmp_path / "assets").mkdir()
    site.write_css(tmp_path)
    css = (tmp_path / "assets" / "style.css").read_text(encoding="utf-8")
    assert "__" not in css
    assert site.THEME["accent"] in css


def test_download_skips_existing(tmp_path, monkeypatch):
    assets = tmp_path / "assets"
    assets.mkdir()
    for name in site.JS_LIBS:
        (assets / name).write_text("// cached")

    def fail(*args, **kwargs):
        raise AssertionError("network used")

    monkeypatch.setattr(urllib.request, "urlopen", fail)
    site.download_js_libs(tmp_path)


def test_download_failure_is_a_warning(tmp_path, monkeypatch, capsys):
    (tmp_path / "assets").mkdir()

    def offline(*args, **kwargs):
        raise urllib.error.URLError("offline")

    monkeypatch.setattr(urllib.request, "urlopen", offline)
    site.download_js_libs(tmp_path)
    assert "WARNING: Could not download" in capsys.readouterr().err
    assert list((tmp_path / "assets").iterdir()) == []


def test_copy_images(tmp_path):
    src = tmp_path / "img"
    (src / "sub").mkdir(parents=True)
    (src / "avator01.png").write_bytes(b"png")
    (src / "sub" / "bg.jpg").write_bytes(b"jpg")
    www = tmp_path / "www"

    assert site.copy_images(src, www) == 2
    assert (www / "img" / "avator01.png").read_bytes() == b"png"
    assert (www / "img" / "sub" / "bg.jpg").is_file()

    assert site.copy_images(tmp_path / "missing", www) == 0
    assert site.copy_images(None, www) == 0


def test_page_root():
    assert site.page_root(None, 0) == ""
    assert site.page_root(None, 1) == "../"
    assert site.page_root("/cs-members", 1) == "/cs-members/"


def test_layout_config_restores_saved_values():
    saved = {"geo": {"config": {"center": [135.0, 35.0], "charge": -8, "unknown": 1}}}
    config = site.layout_config(saved)
    assert config.center == (135.0, 35.0)
    assert config.charge == -8
    assert site.layout_config({}) == LayoutConfig()


def test_write_js(tmp_path):
    (tmp_path / "assets").mkdir()
    site.write_js(tmp_path)
    script = (tmp_path / "assets" / "graph.js").read_text(encoding="utf-8")
    assert "MEMBERS_DATA" in script
    assert "centerAt(node._targetX, node._targetY" in script
    assert "img.onload" in script


def test_radial_records_focus_on_ring_targets(pipeline_dir):
    layouts = site.load_layouts(pipeline_dir)
    config = site.layout_config(layouts)
    records = site.node_records(site.load_members_json(pipeline_dir), layouts, config)
    ring = layouts["radial"]["nodes"]
    cx, cy = config.translate

    for r in records:
        focus = r["radial"]
        assert (focus["tx"], focus["ty"]) == (ring[r["id"]]["rx"], ring[r["id"]]["ry"])
        distance = math.hypot(focus["tx"] - cx, focus["ty"] - cy)
        assert distance == pytest.approx(config.radial_radius, abs=1e-2)


def test_malformed_layout_is_a_warning(pipeline_dir, tmp_path, capsys):
    (pipeline_dir / "layout_radial.json").write_text("{not json", encoding="utf-8")
    www = tmp_path / "www"
    site.compile_site(pipeline_dir, www, download=False)

    assert "layout_radial.json is not valid JSON" in capsys.readouterr().err
    data = read_members_js(www / "data" / "members.js")
    assert data["modes"] == ["geo"]


def test_cli_compiles_site(pipeline_dir, tmp_path, monkeypatch, capsys):
    www = tmp_path / "www"
    monkeypatch.setattr(sys, "argv", [
        "membermap-compile", "-i", str(pipeline_dir), "-o", str(www),
        "--no-download", "--title", "CLI会員マップ",
    ])
    site.main()

    assert "12 members on the map" in capsys.readouterr().err
    assert "<title>CLI会員マップ</title>" in (www / "index.html").read_text(encoding="utf-8")
    assert not (www / "assets" / "d3.min.js").exists()


def test_cli_missing_input(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "argv", [
        "membermap-compile", "-i", str(tmp_path / "missing"), "-o", str(tmp_path / "www"),
        "--no-download",
    ])
    with pytest.raises(SystemExit) as exc:
        site.main()
    assert exc.value.code == 2
