"""
Core Module - Display Formatting.
"""


def format_number(value: float) -> str:
    """Render 75.0 as "75", 0.5 as "0.5" and 9.3333 as "9.33"."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")
