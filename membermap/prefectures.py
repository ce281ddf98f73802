"""
Prefecture reference table: seat coordinates, region and display color for
all 47 prefectures in JIS order.
"""

from dataclasses import dataclass

# Categorical palette (d3 schemeCategory10 / matplotlib tab10)
PALETTE = [
    "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
    "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf",
]

DEFAULT_COLOR = "#333"

SUFFIXES = ("都", "道", "府", "県")


@dataclass(frozen=True)
class PrefectureCoordinate:
    name: str
    lat: float
    lng: float
    color: str
    region: str


# (name, lat, lng, region) of each prefectural seat
_SEATS = [
    ("北海道", 43.0642, 141.3469, "北海道"),
    ("青森県", 40.8244, 140.7400, "東北"),
    ("岩手県", 39.7036, 141.1527, "東北"),
    ("宮城県", 38.2688, 140.8721, "東北"),
    ("秋田県", 39.7186, 140.1024, "東北"),
    ("山形県", 38.2404, 140.3633, "東北"),
    ("福島県", 37.7503, 140.4675, "東北"),
    ("茨城県", 36.3418, 140.4468, "関東"),
    ("栃木県", 36.5657, 139.8836, "関東"),
    ("群馬県", 36.3911, 139.0608, "関東"),
    ("埼玉県", 35.8569, 139.6489, "関東"),
    ("千葉県", 35.6046, 140.1233, "関東"),
    ("東京都", 35.6895, 139.6917, "関東"),
    ("神奈川県", 35.4478, 139.6425, "関東"),
    ("新潟県", 37.9026, 139.0236, "中部"),
    ("富山県", 36.6953, 137.2113, "中部"),
    ("石川県", 36.5947, 136.6256, "中部"),
    ("福井県", 36.0652, 136.2216, "中部"),
    ("山梨県", 35.6642, 138.5684, "中部"),
    ("長野県", 36.6513, 138.1810, "中部"),
    ("岐阜県", 35.3912, 136.7223, "中部"),
    ("静岡県", 34.9769, 138.3831, "中部"),
    ("愛知県", 35.1802, 136.9066, "中部"),
    ("三重県", 34.7303, 136.5086, "近畿"),
    ("滋賀県", 35.0045, 135.8686, "近畿"),
    ("京都府", 35.0214, 135.7556, "近畿"),
    ("大阪府", 34.6863, 135.5200, "近畿"),
    ("兵庫県", 34.6913, 135.1830, "近畿"),
    ("奈良県", 34.6851, 135.8048, "近畿"),
    ("和歌山県", 34.2260, 135.1675, "近畿"),
    ("鳥取県", 35.5039, 134.2377, "中国"),
    ("島根県", 35.4723, 133.0505, "中国"),
    ("岡山県", 34.6618, 133.9344, "中国"),
    ("広島県", 34.3966, 132.4596, "中国"),
    ("山口県", 34.1859, 131.4714, "中国"),
    ("徳島県", 34.0658, 134.5593, "四国"),
    ("香川県", 34.3401, 134.0434, "四国"),
    ("愛媛県", 33.8416, 132.7657, "四国"),
    ("高知県", 33.5597, 133.5311, "四国"),
    ("福岡県", 33.6064, 130.4181, "九州"),
    ("佐賀県", 33.2494, 130.2988, "九州"),
    ("長崎県", 32.7448, 129.8737, "九州"),
    ("熊本県", 32.7898, 130.7417, "九州"),
    ("大分県", 33.2382, 131.6126, "九州"),
    ("宮崎県", 31.9111, 131.4239, "九州"),
    ("鹿児島県", 31.5602, 130.5581, "九州"),
    ("沖縄県", 26.2124, 127.6809, "沖縄"),
]

PREFECTURES: dict[str, PrefectureCoordinate] = {
    name: PrefectureCoordinate(name, lat, lng, PALETTE[i % len(PALETTE)], region)
    for i, (name, lat, lng, region) in enumerate(_SEATS)
}


def normalize_prefecture(name: str) -> str:
    """Canonical prefecture name; accepts short forms like 岡山 or 東京."""
    # str.strip() also removes full-width spaces
    name = (name or "").strip()
    if name in PREFECTURES:
        return name
    for suffix in SUFFIXES:
        if name + suffix in PREFECTURES:
            return name + suffix
    return name


def get_prefecture_coordinate(name: str) -> PrefectureCoordinate | None:
    return PREFECTURES.get(normalize_prefecture(name))


def prefecture_color(name: str, default: str = DEFAULT_COLOR) -> str:
    coord = get_prefecture_coordinate(name)
    return coord.color if coord else default
