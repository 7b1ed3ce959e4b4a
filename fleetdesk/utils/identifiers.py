"""Vehicle identifier helpers shared by the workflow core and the vehicles router."""

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_vehicle_number(value: str) -> str:
    """'  ka01 ab 1234 ' -> 'KA01AB1234'. Registration numbers ignore case and spacing."""
    if value is None:
        return ""
    return _WHITESPACE.sub("", value).upper()
