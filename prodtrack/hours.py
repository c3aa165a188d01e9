from __future__ import annotations

import math
from typing import Optional, Union

HoursInput = Union[str, int, float, None]

_ZERO_TEXT = ("", ".")


class InvalidHours(ValueError):
    pass


def parse_hours(value: HoursInput) -> float:
    """Parse user input into a non-negative number of hours.

    Blank input and a lone decimal point count as zero so a half-typed cell
    never blocks a write. Anything else that is not a finite, non-negative
    number raises :class:`InvalidHours`.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise InvalidHours(f"Invalid hours value: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if text in _ZERO_TEXT:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            raise InvalidHours(f"Invalid hours value: {value!r}") from None
    if math.isnan(number) or math.isinf(number):
        raise InvalidHours(f"Invalid hours value: {value!r}")
    if number < 0:
        raise InvalidHours(f"Hours cannot be negative: {value!r}")
    return number


def coerce_hours(value: HoursInput) -> float:
    try:
        return parse_hours(value)
    except InvalidHours:
        return 0.0


def format_hours(value: Optional[float], strip_zeros: bool = False) -> str:
    text = f"{(value or 0.0):.2f}"
    if text == "-0.00":
        text = "0.00"
    if strip_zeros:
        text = text.rstrip("0").rstrip(".")
        if text in ("", "-0"):
            text = "0"
    return text
