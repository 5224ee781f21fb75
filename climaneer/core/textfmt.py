from __future__ import annotations


def fmt_number(value: float) -> str:
    """
    Render a number the way the dashboard shows it in text.

    Integral values drop the decimal part (``30.0 -> "30"``); anything else
    keeps its shortest repr (``25.5 -> "25.5"``).
    """
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)
