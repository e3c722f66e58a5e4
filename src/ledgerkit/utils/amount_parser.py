"""Amount parsing utilities."""

import re
from decimal import Decimal, InvalidOperation

_CURRENCY = re.compile(r"^[A-Z]{3}\s*|\s*[A-Z]{3}$|[$€£¥]")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles the formats banks tend to export:
    - "1234.56", "-1234.56", "1,234.56"
    - "$1,234.56", "USD 1234.56", "1234.56 KES"
    - "(1234.56)" (negative in parentheses)
    - "1234.56 DR" / "1234.56 CR" (debit is money out, so negative)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    text = amount_str.strip().upper()
    negative = False

    if text.endswith(" DR") or text.endswith(" CR"):
        negative = text.endswith(" DR")
        text = text[:-3].strip()

    if text.startswith("(") and text.endswith(")"):
        negative = not negative
        text = text[1:-1].strip()

    text = _CURRENCY.sub("", text).replace(",", "").replace(" ", "")

    try:
        amount = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if negative else amount
