from decimal import Decimal, ROUND_HALF_UP

PAISE = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round to the currency minor unit (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(PAISE, rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    """Rupees -> paise, rounding instead of truncating."""
    return int((to_money(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
