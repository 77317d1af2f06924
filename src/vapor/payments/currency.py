"""Fixed-rate conversion of store prices to EUR."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# 1 unit of currency -> EUR
RATES_TO_EUR: dict[str, Decimal] = {
    "EUR": Decimal("1.0"),
    "USD": Decimal("0.92"),
    "GBP": Decimal("1.17"),
    "JPY": Decimal("0.0062"),
    "CNY": Decimal("0.13"),
    "BGN": Decimal("0.51"),
    "CAD": Decimal("0.6349"),
    "CHF": Decimal("0.693"),
    "SEK": Decimal("0.091"),
    "NZD": Decimal("0.579"),
    "HKD": Decimal("0.118"),
    "SGD": Decimal("0.689"),
    "MXN": Decimal("0.052"),
    "INR": Decimal("0.011"),
    "BRL": Decimal("0.056"),
    "ZAR": Decimal("0.056"),
    "RUB": Decimal("0.011"),
    "COP": Decimal("0.00023"),
    "CRC": Decimal("0.0016"),
    "ILS": Decimal("0.24"),
    "PLN": Decimal("0.23"),
    "THB": Decimal("0.026"),
    "VND": Decimal("0.000038"),
    "CLP": Decimal("0.0010"),
    "KZT": Decimal("0.0019"),
    "NOK": Decimal("0.086"),
    "QAR": Decimal("0.25"),
    "SAR": Decimal("0.245"),
    "KRW": Decimal("0.00069"),
    "AED": Decimal("0.25"),
    "AUD": Decimal("0.60"),
    "IDR": Decimal("0.000059"),
    "KWD": Decimal("2.99"),
    "MYR": Decimal("0.20"),
    "PEN": Decimal("0.24"),
    "PHP": Decimal("0.016"),
    "TWD": Decimal("0.028"),
    "UAH": Decimal("0.024"),
    "UYU": Decimal("0.023"),
}


def convert_to_euro(amount: Decimal | int | float | str, currency_code: str) -> Decimal:
    """
    Convert ``amount`` to EUR, rounded to cents.

    Raises:
        ValueError: Unsupported currency code.
    """
    rate = RATES_TO_EUR.get(currency_code.strip().upper())
    if rate is None:
        msg = f"Unsupported currency: {currency_code}"
        raise ValueError(msg)
    return (Decimal(str(amount)) * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
