import pytest

from equation_deploy.constants import RATE_BASE
from equation_deploy.errors import FormatError
from equation_deploy.percent import format_percent, parse_percent


@pytest.mark.parametrize(
    "text,expected",
    [
        ("0%", 0),
        ("0.001%", 1_000),
        ("0.05%", 50_000),
        ("0.00125%", 1_250),
        ("1%", 1_000_000),
        ("99.5%", 99_500_000),
        ("100%", RATE_BASE),
    ],
)
def test_parse_percent(text, expected):
    assert parse_percent(text) == expected


def test_parse_percent_rounds_half_away_from_zero():
    assert parse_percent("0.0000005%") == 1
    assert parse_percent("0.0000004%") == 0
    assert parse_percent("0.0000015%") == 2


def test_parse_percent_is_exact_for_long_inputs():
    assert parse_percent("12345678901234567890.123456%") == 12345678901234567890123456


def test_parse_percent_accepts_exponents():
    assert parse_percent("1e1%") == 10_000_000


@pytest.mark.parametrize("text", ["5", "5 percent", "", "%", "abc%", "1.2.3%", "NaN%", "Infinity%"])
def test_parse_percent_rejects_malformed_input(text):
    with pytest.raises(FormatError):
        parse_percent(text)


def test_parse_percent_rejects_negative_rates():
    with pytest.raises(FormatError, match="negative"):
        parse_percent("-1%")


def test_parse_percent_rejects_non_strings():
    with pytest.raises(FormatError):
        parse_percent(5)


def test_format_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_percent("5")


@pytest.mark.parametrize("value", [0, 1, 1_250, 50_000, 99_500_000, RATE_BASE])
def test_format_percent_decodes_back(value):
    assert parse_percent(format_percent(value)) == value


def test_format_percent_is_shortest():
    assert format_percent(0) == "0%"
    assert format_percent(50_000) == "0.05%"
    assert format_percent(RATE_BASE) == "100%"
