"""Fixed-rate currency conversion."""

from decimal import Decimal

import pytest

from vapor.payments.currency import RATES_TO_EUR, convert_to_euro


def test_euro_is_identity():
    assert convert_to_euro(Decimal("12.34"), "EUR") == Decimal("12.34")


def test_usd_rounds_to_cents():
    assert convert_to_euro(Decimal("10.00"), "USD") == Decimal("9.20")


def test_code_is_case_insensitive():
    assert convert_to_euro("100", "gbp") == Decimal("117.00")


def test_half_up_rounding():
    # 1.25 * 0.026 = 0.0325
    assert convert_to_euro(Decimal("1.25"), "THB") == Decimal("0.03")
    # 0.5 * 0.25 = 0.125
    assert convert_to_euro(Decimal("0.5"), "QAR") == Decimal("0.13")


def test_unknown_currency():
    with pytest.raises(ValueError, match="Unsupported currency: XYZ"):
        convert_to_euro(Decimal("1"), "XYZ")


def test_every_rate_positive():
    assert all(rate > 0 for rate in RATES_TO_EUR.values())
