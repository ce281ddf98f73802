import pytest

from membermap.parse import Member, avatar_path


def make_members(spec):
    """[(prefecture, count), ...] -> members named <pref><n>."""
    members = []
    for pref, count in spec:
        for k in range(count):
            i = len(members)
            members.append(Member(pref, f"{pref}{k}", f"org{i}", avatar_path(i)))
    return members


@pytest.fixture
def far_apart_members():
    return make_members([("北海道", 5), ("東京都", 5), ("沖縄県", 5)])


@pytest.fixture
def chugoku_members():
    return make_members([("岡山県", 4), ("広島県", 4), ("鳥取県", 4)])
