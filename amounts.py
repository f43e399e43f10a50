from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

AmountValue = Union[Decimal, int, float, str]


def parse_amount(value: AmountValue, *, allow_negative: bool = False) -> int:
    """Parse a user-entered amount in major units into integer cents.

    Accepts ``12.50``, ``12,50``, ``1.234,56`` and strips currency symbols.
    Raises ``ValueError`` for anything that is not a number.
    """
    clean = (
        str(value)
        .strip()
        .replace("R$", "")
        .replace("€", "")
        .replace("$", "")
        .replace(" ", "")
    )
    clean = clean.replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
        if not amount.is_finite():
            raise ValueError("Invalid amount")
        cents = round_cents(amount * 100)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def coerce_cents(value: object) -> int:
    """Stored integer cents; anything non-numeric or missing counts as 0.

    Amounts are magnitudes, the sign is dropped.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return abs(value)
    try:
        return abs(round_cents(Decimal(str(value))))
    except (InvalidOperation, ValueError):
        return 0


def round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
