import pytest

from respot.range_set import Range, RangeSet


def make(*pairs):
    rs = RangeSet()
    for start, length in pairs:
        rs.add_range(Range(start, length))
    return rs


SAMPLE_PAIRS = [
    (),
    ((0, 5),),
    ((2, 3), (10, 4)),
    ((0, 1), (3, 3), (8, 10)),
    ((5, 20),),
    ((1, 2), (4, 2), (7, 2), (12, 6)),
]


def test_empty_set():
    rs = RangeSet()
    assert rs.is_empty()
    assert len(rs) == 0
    assert str(rs) == "()"
    assert not rs.contains(0)


def test_range_end_and_str():
    r = Range(5, 1)
    assert r.end() == 6
    assert str(r) == "[5, 5]"


def test_add_keeps_order():
    rs = make((10, 5), (0, 5))
    assert list(rs) == [Range(0, 5), Range(10, 5)]
    assert rs.get_range(0) == Range(0, 5)
    assert rs.get_range(1) == Range(10, 5)


def test_add_zero_length_is_noop():
    rs = make((0, 0))
    assert rs.is_empty()


def test_touching_ranges_merge():
    rs = make((0, 5), (5, 5))
    ranges = list(rs)
    assert len(ranges) == 1
    assert ranges[0].start == 0
    assert rs.contains(9)
    assert not rs.contains(10)


def test_add_bridges_several_ranges():
    rs = make((0, 2), (4, 2), (8, 2))
    rs.add_range(Range(1, 8))
    ranges = list(rs)
    assert len(ranges) == 1
    assert all(rs.contains(v) for v in range(0, 10))


def test_contained_length_from_value():
    rs = make((10, 5))
    assert rs.contained_length_from_value(10) == 5
    assert rs.contained_length_from_value(9) == 0
    assert rs.contained_length_from_value(20) == 0


def test_subtract_punches_hole():
    rs = make((0, 10))
    rs.subtract_range(Range(3, 2))
    assert len(list(rs)) == 2
    assert rs.contains(2)
    assert not rs.contains(3)
    assert not rs.contains(4)
    assert rs.contains(5)


def test_subtract_across_ranges():
    rs = make((0, 4), (6, 4), (12, 4))
    rs.subtract_range(Range(2, 12))
    assert rs.contains(1)
    assert not any(rs.contains(v) for v in range(2, 14))
    assert rs.contains(14)
    assert rs.contains(15)


def test_subtract_zero_length_is_noop():
    rs = make((0, 4))
    rs.subtract_range(Range(1, 0))
    assert list(rs) == [Range(0, 4)]


def test_copy_is_independent():
    rs = make((0, 4))
    clone = rs.copy()
    clone.add_range(Range(10, 2))
    assert list(rs) == [Range(0, 4)]
    assert clone.contains(10)


def test_contains_range_set():
    big = make((0, 20))
    small = make((2, 3), (10, 4))
    assert big.contains_range_set(small)
    assert not small.contains_range_set(big)


@pytest.mark.parametrize("a_pairs", SAMPLE_PAIRS)
@pytest.mark.parametrize("b_pairs", SAMPLE_PAIRS)
def test_set_operations_match_membership(a_pairs, b_pairs):
    a = make(*a_pairs)
    b = make(*b_pairs)
    union = a.union(b)
    minus = a.minus(b)
    inter = a.intersection(b)
    for v in range(0, 30):
        assert union.contains(v) == (a.contains(v) or b.contains(v))
        assert minus.contains(v) == (a.contains(v) and not b.contains(v))
        assert inter.contains(v) == (a.contains(v) and b.contains(v))


@pytest.mark.parametrize("pairs", SAMPLE_PAIRS)
def test_ranges_stay_disjoint_and_sorted(pairs):
    rs = make(*pairs)
    combined = rs.union(make((3, 4), (15, 2)))
    ranges = list(combined)
    for left, right in zip(ranges, ranges[1:]):
        assert left.end() < right.start
    assert len(combined) == sum(1 for v in range(0, 40) if combined.contains(v))