"""Rescale display quantities like "400g" when the number of servings changes."""

from decimal import ROUND_HALF_UP, Decimal
import re
from typing import NamedTuple


QUANTITY_RE = re.compile(
    r"^\s*(?:(\d+)\s+(\d+)/(\d+)|(\d+)/(\d+)|(\d+(?:[.,]\d+)?))"
    # "1-2 teentjes" or "12,5-15 g" is a range, not a number
    r"(?![\d/]|[.,]\d|\s*[-–]\s*\d)"
    r"(\s*)(.*)$",
    re.DOTALL,
)

ONE_DECIMAL = Decimal("0.1")


class InvalidArgument(ValueError):
    pass


class Quantity(NamedTuple):
    value: Decimal
    separator: str
    unit: str


def parse_quantity(text: str) -> Quantity | None:
    match = QUANTITY_RE.match(text)
    if match is None:
        return None
    whole, numerator, denominator, top, bottom, number, separator, unit = match.groups()
    if number is not None:
        value = Decimal(number.replace(",", "."))
    elif whole is not None:
        if int(denominator) == 0:
            return None
        value = Decimal(whole) + Decimal(numerator) / Decimal(denominator)
    else:
        if int(bottom) == 0:
            return None
        value = Decimal(top) / Decimal(bottom)
    return Quantity(value, separator, unit)


def format_number(value: Decimal) -> str:
    """One decimal, half-up, without a trailing ".0"."""
    rounded = value.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)
    text = f"{rounded:f}"
    return text[:-2] if text.endswith(".0") else text


def scale_quantity(display_text: str, from_servings: int, to_servings: int) -> str:
    """Scale `display_text` by `to_servings / from_servings`.

    Text that does not start with a number ("zout naar smaak") comes back
    unchanged. The unit and the whitespace before it are kept verbatim, so
    "400g" stays glued and "2.5 liter" keeps its space. Fractions ("1/2 tl",
    "1 1/2 el") come back as decimals; ranges ("1-2 teentjes") are left alone.
    """
    if from_servings <= 0:
        raise InvalidArgument(f"from_servings must be positive, got {from_servings}")
    if to_servings <= 0:
        raise InvalidArgument(f"to_servings must be positive, got {to_servings}")

    quantity = parse_quantity(display_text)
    if quantity is None:
        return display_text

    ratio = Decimal(str(to_servings)) / Decimal(str(from_servings))
    scaled = format_number(quantity.value * ratio)
    if not quantity.unit:
        return scaled
    return f"{scaled}{quantity.separator}{quantity.unit}"
