import pytest

from prodtrack.hours import InvalidHours, coerce_hours, format_hours, parse_hours


def test_blank_and_lone_point_count_as_zero():
    assert parse_hours("") == 0.0
    assert parse_hours(".") == 0.0
    assert parse_hours("  ") == 0.0
    assert parse_hours(None) == 0.0


def test_parse_hours_accepts_numbers_and_numeric_text():
    assert parse_hours("3.25") == 3.25
    assert parse_hours(" 2 ") == 2.0
    assert parse_hours(".5") == 0.5
    assert parse_hours(4) == 4.0


@pytest.mark.parametrize("value", ["abc", "1,5", "nan", "inf", "-1", -2, True])
def test_parse_hours_rejects_garbage(value):
    with pytest.raises(InvalidHours):
        parse_hours(value)


def test_coerce_hours_turns_garbage_into_zero():
    assert coerce_hours("abc") == 0.0
    assert coerce_hours("1.5") == 1.5


def test_format_hours():
    assert format_hours(-2.5) == "-2.50"
    assert format_hours(None) == "0.00"
    assert format_hours(-0.001) == "0.00"
    assert format_hours(3.10, strip_zeros=True) == "3.1"
    assert format_hours(4.0, strip_zeros=True) == "4"
    assert format_hours(0, strip_zeros=True) == "0"
