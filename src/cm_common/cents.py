"""Integer arithmetic utilities for cents-based bookkeeping.

All amounts and balances use int (minor units). No float, no Decimal.
"""

# Upper bound of a BIGINT amount column
MAX_AMOUNT_CENTS = 2**63 - 1

_CURRENCY_SYMBOLS = {
    "BRL": "R$",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def currency_symbol(currency: str) -> str:
    return _CURRENCY_SYMBOLS.get(currency.upper(), currency.upper() + " ")


def cents_to_display(cents: int, currency: str = "USD") -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    symbol = currency_symbol(currency)
    if cents < 0:
        abs_cents = -cents
        return f"-{symbol}{abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"{symbol}{cents // 100:,}.{cents % 100:02d}"


def percentage_of(current: int, target: int, cap: float = 100.0) -> float:
    """Progress of current towards target as a percentage, capped and rounded to 2dp."""
    if target <= 0:
        return 0.0
    return round(min(current * 100 / target, cap), 2)
