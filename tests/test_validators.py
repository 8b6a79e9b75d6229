import pytest

from cssport.errors import APIError
from cssport.validators import parse_bool, validate_date, validate_int_id


def test_validate_date_ok():
    assert validate_date("2024-02-29") == "2024-02-29"


@pytest.mark.parametrize("raw", [None, "", "2024-2-29", "29-02-2024", "2024-02-29T00:00"])
def test_validate_date_bad_format(raw):
    with pytest.raises(APIError) as info:
        validate_date(raw)
    assert info.value.status == 400
    assert info.value.message == "Invalid date format. Use YYYY-MM-DD"


def test_validate_date_impossible_value():
    with pytest.raises(APIError) as info:
        validate_date("2023-02-29")
    assert info.value.status == 400
    assert info.value.message == "Invalid date value"


def test_parse_bool():
    assert parse_bool("true") is True
    assert parse_bool("1") is True
    assert parse_bool("no") is False
    assert parse_bool(None) is False
    assert parse_bool(None, default=True) is True


def test_validate_int_id():
    assert validate_int_id("39") == 39
    for raw in ("abc", "0", "-3", None):
        with pytest.raises(APIError):
            validate_int_id(raw)
