import pytest

from worklog.records import Level, WorkRecord
from worklog.sorting import make_comparator, natural_key, next_sort, sort_records


def test_digit_runs_compare_by_value():
    values = ["item10", "item2", "Item3", "item1"]
    assert sorted(values, key=natural_key) == ["item1", "item2", "Item3", "item10"]
    assert natural_key("2") < natural_key("10")


def test_comparator_is_antisymmetric():
    cmp = make_comparator("name", "asc")
    pairs = [({"name": "a2"}, {"name": "a10"}), ({"name": "x"}, {"name": "x"}), ({"name": "b"}, {"name": None})]
    for a, b in pairs:
        assert cmp(a, b) == -cmp(b, a)
    assert cmp({"name": "x"}, {"name": "x"}) == 0


def test_direction_flips_sign():
    a, b = {"n": "1"}, {"n": "9"}
    assert make_comparator("n", "asc")(a, b) < 0
    assert make_comparator("n", "desc")(a, b) > 0


def test_unknown_direction():
    with pytest.raises(ValueError):
        make_comparator("n", "up")


def test_sort_records_by_attribute_and_header(records):
    by_minutes = sort_records(records, "minutes", "asc")
    assert [r.id for r in by_minutes] == [3, 4, 1, 2]
    by_header = sort_records(records, "提問日期", "desc")
    assert by_header[0].id == 4  # "not a date" sorts after the digit-led ISO strings
    assert [r.id for r in by_header[1:]] == [3, 2, 1]


def test_equal_keys_keep_input_order():
    recs = [WorkRecord(id=i, system="ERP") for i in range(5)]
    assert [r.id for r in sort_records(recs, "system", "desc")] == [0, 1, 2, 3, 4]


def test_levels_sort_by_value():
    recs = [WorkRecord(id=1, difficulty=Level.MID), WorkRecord(id=2, difficulty=Level.HIGH)]
    assert [r.id for r in sort_records(recs, "difficulty")] == [2, 1]


def test_next_sort():
    assert next_sort("system", "asc", "system") == ("system", "desc")
    assert next_sort("system", "desc", "system") == ("system", "asc")
    assert next_sort("system", "desc", "minutes") == ("minutes", "asc")
