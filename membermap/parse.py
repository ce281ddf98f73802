#!/usr/bin/env python3
"""
Member parser — reads the community roster CSV and writes members.json for
the grapher.

CSV layout (first line is a header):
    都道府県,氏名,所属
    岡山県,山田太郎,〇〇協議会

Usage:
    python -m membermap.parse data/members.csv -o output/members.json

    # Report members whose prefecture is not in the prefecture table
    python -m membermap.parse data/members.csv -o output/members.json --check
"""

import argparse
import csv
import io
import json
import sys
from dataclasses import asdict, dataclass
from pathlib import Path

from membermap.prefectures import get_prefecture_coordinate, normalize_prefecture

DEFAULT_AVATAR_COUNT = 20
AVATAR_PATTERN = "img/avator{:02d}.png"


@dataclass
class Member:
    prefecture: str
    name: str
    organization: str = ""
    avatar_path: str = ""

    @property
    def initial(self) -> str:
        return self.name[:1] or "?"


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def detect_encoding(raw: bytes) -> str:
    """Detect encoding from BOM or fall back to utf-8."""
    if raw.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if raw.startswith(b"\xff\xfe"):
        return "utf-16-le"
    if raw.startswith(b"\xfe\xff"):
        return "utf-16-be"
    return "utf-8"


def read_file(path: Path) -> str:
    raw = Path(path).read_bytes()
    encoding = detect_encoding(raw)
    try:
        text = raw.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        # Spreadsheet exports on Japanese Windows are usually Shift_JIS
        text = raw.decode("cp932", errors="replace")
        if "\ufffd" in text:
            print(
                f"  WARNING: {path} is neither UTF-8 nor Shift_JIS; "
                f"undecodable bytes were replaced",
                file=sys.stderr,
            )
    # utf-16 decoding keeps the BOM character
    return text.lstrip("\ufeff")


def avatar_path(index: int, count: int = DEFAULT_AVATAR_COUNT) -> str:
    """Avatars are handed out in rotation: row 0 -> 01, row 19 -> 20, row 20 -> 01."""
    return AVATAR_PATTERN.format((index % count) + 1)


def parse_csv(text: str, avatar_count: int = DEFAULT_AVATAR_COUNT) -> list[Member]:
    """Parse roster CSV text into members, skipping the header row."""
    members: list[Member] = []
    reader = csv.reader(io.StringIO(text.strip()))
    next(reader, None)

    for line_no, row in enumerate(reader, 2):
        values = [v.strip() for v in row]
        if not any(values):
            continue
        if len(values) < 2:
            print(
                f"  WARNING: line {line_no}: expected prefecture,name[,organization], "
                f"got {row!r}; skipped",
                file=sys.stderr,
            )
            continue
        members.append(Member(
            prefecture=values[0],
            name=values[1],
            organization=values[2] if len(values) > 2 else "",
            avatar_path=avatar_path(len(members), avatar_count),
        ))
    return members


def load_members(path: Path, avatar_count: int = DEFAULT_AVATAR_COUNT) -> list[Member]:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Roster CSV not found: {path}")
    return parse_csv(read_file(path), avatar_count)


# ---------------------------------------------------------------------------
# members.json
# ---------------------------------------------------------------------------

def write_members_json(path: Path, members: list[Member]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([asdict(m) for m in members], f, ensure_ascii=False, indent=1)
    print(f"Wrote {path} ({len(members)} members)", file=sys.stderr)


def read_members_json(path: Path) -> list[Member]:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"members.json not found: {path}")
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    return [
        Member(
            prefecture=m["prefecture"],
            name=m["name"],
            organization=m.get("organization", ""),
            avatar_path=m.get("avatar_path", ""),
        )
        for m in raw
    ]


def unknown_prefectures(members: list[Member]) -> list[Member]:
    """Members whose prefecture cannot be placed on the map."""
    return [m for m in members if get_prefecture_coordinate(m.prefecture) is None]


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Parse the member roster CSV into members.json."
    )
    parser.add_argument("input", type=Path, help="Roster CSV (prefecture,name,organization)")
    parser.add_argument(
        "-o", "--output", type=Path, required=True,
        help="Output JSON path (e.g. output/members.json)",
    )
    parser.add_argument(
        "--avatar-count", type=int, default=DEFAULT_AVATAR_COUNT,
        help=f"Number of avatar images to rotate through (default: {DEFAULT_AVATAR_COUNT})",
    )
    parser.add_argument(
        "--check", action="store_true",
        help="Report members whose prefecture is unknown",
    )
    args = parser.parse_args()

    if args.avatar_count < 1:
        parser.error("--avatar-count must be at least 1")

    try:
        members = load_members(args.input, args.avatar_count)
    except FileNotFoundError as e:
        parser.error(str(e))

    print(f"Parsed {len(members)} members from {args.input}", file=sys.stderr)

    if args.check:
        unknown = unknown_prefectures(members)
        for m in unknown:
            print(
                f"  WARNING: unknown prefecture {m.prefecture!r} for {m.name} "
                f"(normalized: {normalize_prefecture(m.prefecture)!r})",
                file=sys.stderr,
            )
        print(
            f"{len(members) - len(unknown)}/{len(members)} members have a known prefecture",
            file=sys.stderr,
        )

    write_members_json(args.output, members)


if __name__ == "__main__":
    main()
