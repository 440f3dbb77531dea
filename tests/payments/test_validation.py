"""Phone/operator and card validation run before any network call."""
from datetime import date

import pytest

from app.core.errors import PaymentValidationError
from app.services.payments.models import MobileOperator, PaymentDetails
from app.services.payments.validation import (
    detect_operator,
    format_phone,
    is_valid_zambian_phone,
    luhn_ok,
    normalize_phone,
    validate_card,
    validate_mobile_money,
)


class TestPhone:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("0977 123 456", "0977123456"),
            ("+260 97 712 3456", "0977123456"),
            ("260961234567", "0961234567"),
            ("095-123-4567", "0951234567"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("phone", ["0971234567", "0761234567", "0951234567"])
    def test_valid(self, phone):
        assert is_valid_zambian_phone(phone) is True

    @pytest.mark.parametrize("phone", ["", "097123456", "09712345678", "0871234567", "abc"])
    def test_invalid(self, phone):
        assert is_valid_zambian_phone(phone) is False

    @pytest.mark.parametrize(
        "phone,operator",
        [
            ("0961234567", MobileOperator.MTN),
            ("0761234567", MobileOperator.MTN),
            ("0971234567", MobileOperator.AIRTEL),
            ("0771234567", MobileOperator.AIRTEL),
            ("0951234567", MobileOperator.ZAMTEL),
            ("0751234567", MobileOperator.ZAMTEL),
            ("0911234567", None),
        ],
    )
    def test_detect_operator(self, phone, operator):
        assert detect_operator(phone) == operator

    def test_format(self):
        assert format_phone("0977123456") == "097 712 3456"


class TestValidateMobileMoney:
    def test_detects_operator_when_omitted(self):
        assert validate_mobile_money("+260 96 123 4567") == ("0961234567", MobileOperator.MTN)

    def test_matching_operator(self):
        assert validate_mobile_money("0971234567", MobileOperator.AIRTEL)[1] == MobileOperator.AIRTEL

    def test_operator_mismatch(self):
        with pytest.raises(PaymentValidationError) as exc:
            validate_mobile_money("0971234567", MobileOperator.MTN)
        assert exc.value.field == "operator"

    def test_missing_phone(self):
        with pytest.raises(PaymentValidationError) as exc:
            validate_mobile_money(None)
        assert exc.value.field == "phone"

    def test_bad_format(self):
        with pytest.raises(PaymentValidationError):
            validate_mobile_money("12345")

    def test_unknown_network_prefix(self):
        with pytest.raises(PaymentValidationError):
            validate_mobile_money("0911234567")


class TestCard:
    TODAY = date(2025, 3, 10)

    def _details(self, **kwargs):
        values = {"card_number": "4242 4242 4242 4242", "card_expiry": "12/27", "card_cvv": "123"}
        values.update(kwargs)
        return PaymentDetails(**values)

    def test_luhn(self):
        assert luhn_ok("4242424242424242") is True
        assert luhn_ok("4242424242424241") is False

    def test_valid_card_returns_last4(self):
        assert validate_card(self._details(), today=self.TODAY) == "4242"

    def test_current_month_is_not_expired(self):
        assert validate_card(self._details(card_expiry="03/25"), today=self.TODAY) == "4242"

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"card_number": "4242424242424241"}, "card_number"),
            ({"card_number": "424242424242"}, "card_number"),
            ({"card_number": None}, "card_number"),
            ({"card_expiry": "13/27"}, "card_expiry"),
            ({"card_expiry": "1227"}, "card_expiry"),
            ({"card_expiry": "02/25"}, "card_expiry"),
            ({"card_cvv": "12"}, "card_cvv"),
            ({"card_cvv": "12345"}, "card_cvv"),
        ],
    )
    def test_invalid(self, kwargs, field):
        with pytest.raises(PaymentValidationError) as exc:
            validate_card(self._details(**kwargs), today=self.TODAY)
        assert exc.value.field == field
