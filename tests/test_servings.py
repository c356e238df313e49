from decimal import Decimal

import pytest

from domain.servings import InvalidArgument, parse_quantity, scale_quantity


@pytest.mark.parametrize(
    "text,from_servings,to_servings,expected",
    (
        ("400g", 4, 8, "800g"),
        ("3", 4, 2, "1.5"),
        ("2.5 liter", 4, 6, "3.8 liter"),
        ("2,5 dl melk", 2, 4, "5 dl melk"),
        ("1 el olijfolie", 4, 4, "1 el olijfolie"),
        ("250 g", 4, 3, "187.5 g"),
        ("100 g", 3, 1, "33.3 g"),
        ("  200ml", 2, 1, "100ml"),
    ),
)
def test_scale_quantity(text: str, from_servings: int, to_servings: int, expected: str) -> None:
    assert scale_quantity(text, from_servings, to_servings) == expected


@pytest.mark.parametrize("text", ("zout naar smaak", "", "een snufje peper", "½ citroen"))
def test_scale_quantity_without_number_is_unchanged(text: str) -> None:
    assert scale_quantity(text, 4, 8) == text


@pytest.mark.parametrize("from_servings,to_servings", ((0, 8), (4, 0), (-2, 4), (4, -1)))
def test_scale_quantity_rejects_non_positive_servings(from_servings: int, to_servings: int) -> None:
    with pytest.raises(InvalidArgument):
        scale_quantity("400g", from_servings, to_servings)


def test_invalid_argument_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        scale_quantity("zout naar smaak", 0, 4)


def test_rounds_half_up() -> None:
    # 0.25 * 3 = 0.75 would round to 0.8, 0.05 * 5 = 0.25 to 0.3
    assert scale_quantity("0.25 kg", 1, 3) == "0.8 kg"
    assert scale_quantity("0.05 l", 1, 5) == "0.3 l"


def test_same_servings_keeps_value() -> None:
    for text in ("400g", "2.5 liter", "1 ui", "7"):
        assert scale_quantity(text, 6, 6) == text


def test_scale_up_and_back() -> None:
    doubled = scale_quantity("400g", 4, 8)
    assert scale_quantity(doubled, 8, 4) == "400g"


def test_output_uses_a_dot() -> None:
    assert scale_quantity("1,5 kg", 2, 3) == "2.3 kg"


def test_parse_quantity() -> None:
    quantity = parse_quantity("2,5 liter melk")
    assert quantity is not None
    assert quantity.value == Decimal("2.5")
    assert quantity.separator == " "
    assert quantity.unit == "liter melk"
    assert parse_quantity("zout") is None


@pytest.mark.parametrize(
    "text,expected",
    (
        ("1/2 tl zout", "1 tl zout"),
        ("1 1/2 el", "3 el"),
        ("3/4l", "1.5l"),
        ("1/3 kop", "0.7 kop"),
    ),
)
def test_fractions_are_scaled(text: str, expected: str) -> None:
    assert scale_quantity(text, 4, 8) == expected


@pytest.mark.parametrize(
    "text",
    ("1-2 teentjes", "1 - 2 teentjes", "12,5-15 g", "2–3 el", "1/0 tl", "1/2-1 tl"),
)
def test_ranges_are_left_alone(text: str) -> None:
    assert scale_quantity(text, 4, 8) == text


def test_parse_quantity_fraction() -> None:
    quantity = parse_quantity("1 1/2 el")
    assert quantity is not None
    assert quantity.value == Decimal("1.5")
    assert quantity.unit == "el"
