import matplotlib
from matplotlib.colors import to_hex

from membermap.prefectures import (
    PALETTE,
    PREFECTURES,
    get_prefecture_coordinate,
    normalize_prefecture,
    prefecture_color,
)


def test_all_prefectures_present():
    assert len(PREFECTURES) == 47
    names = list(PREFECTURES)
    assert names[0] == "北海道"
    assert names[-1] == "沖縄県"


def test_normalize_accepts_short_names():
    assert normalize_prefecture("岡山") == "岡山県"
    assert normalize_prefecture("東京") == "東京都"
    assert normalize_prefecture("大阪") == "大阪府"
    assert normalize_prefecture("京都") == "京都府"
    assert normalize_prefecture("北海道") == "北海道"


def test_normalize_strips_full_width_spaces():
    assert normalize_prefecture("　広島県 ") == "広島県"


def test_unknown_prefecture():
    assert get_prefecture_coordinate("火星") is None
    assert get_prefecture_coordinate("") is None
    assert prefecture_color("火星") == "#333"


def test_coordinates_are_in_japan():
    for coord in PREFECTURES.values():
        assert 24 < coord.lat < 46
        assert 122 < coord.lng < 146


def test_colors_cycle_through_palette():
    assert prefecture_color("北海道") == PALETTE[0]
    # 11th prefecture wraps around to the first color
    assert prefecture_color("埼玉県") == PALETTE[0]
    assert prefecture_color("青森") == PALETTE[1]


def test_palette_is_tab10():
    tab10 = [to_hex(c) for c in matplotlib.colormaps["tab10"].colors]
    assert PALETTE == tab10
