"""
Input checks run before any network or storage call.
Zambian mobile-money numbers: 10 digits, 09x/07x, prefix decides the network.
"""
from __future__ import annotations

import re
from datetime import date

from app.core.errors import PaymentValidationError
from app.services.payments.models import MobileOperator, PaymentDetails
from app.utils.dates import utc_today

OPERATOR_PREFIXES: dict[MobileOperator, tuple[str, ...]] = {
    MobileOperator.MTN: ("096", "076"),
    MobileOperator.AIRTEL: ("097", "077"),
    MobileOperator.ZAMTEL: ("095", "075"),
}

_ZAMBIAN_PHONE_RE = re.compile(r"^(09|07)\d{8}$")
_EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/(\d{2})$")
COUNTRY_CODE = "260"


def normalize_phone(phone: str) -> str:
    """Strip formatting; +260 97 ... becomes 097...."""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith(COUNTRY_CODE) and len(digits) == 12:
        digits = "0" + digits[len(COUNTRY_CODE):]
    return digits


def is_valid_zambian_phone(phone: str) -> bool:
    return bool(_ZAMBIAN_PHONE_RE.match(normalize_phone(phone)))


def detect_operator(phone: str) -> MobileOperator | None:
    digits = normalize_phone(phone)
    for operator, prefixes in OPERATOR_PREFIXES.items():
        if digits.startswith(prefixes):
            return operator
    return None


def format_phone(phone: str) -> str:
    digits = normalize_phone(phone)
    if len(digits) == 10:
        return f"{digits[:3]} {digits[3:6]} {digits[6:]}"
    return phone


def validate_mobile_money(
    phone: str | None, operator: MobileOperator | None = None
) -> tuple[str, MobileOperator]:
    """
    Returns (normalized_phone, operator).
    The number must belong to the chosen network; operator is detected when omitted.
    """
    if not phone:
        raise PaymentValidationError("Mobile money number is required", field="phone")
    if not is_valid_zambian_phone(phone):
        raise PaymentValidationError(
            "Enter a valid mobile money number, e.g. 0977 123 456", field="phone"
        )
    normalized = normalize_phone(phone)
    detected = detect_operator(normalized)
    if detected is None:
        raise PaymentValidationError(
            "Number does not belong to MTN, Airtel or Zamtel", field="phone"
        )
    if operator is not None and operator != detected:
        raise PaymentValidationError(
            f"Number {format_phone(normalized)} is not an {operator.value.upper()} number",
            field="operator",
        )
    return normalized, detected


def luhn_ok(number: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(number)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def validate_card(details: PaymentDetails, today: date | None = None) -> str:
    """Returns the last four digits of the card."""
    number = re.sub(r"\D", "", details.card_number or "")
    if not 13 <= len(number) <= 19 or not luhn_ok(number):
        raise PaymentValidationError("Invalid card number", field="card_number")

    match = _EXPIRY_RE.match((details.card_expiry or "").strip())
    if not match:
        raise PaymentValidationError("Expiry must be MM/YY", field="card_expiry")
    month, year = int(match.group(1)), 2000 + int(match.group(2))
    today = today or utc_today()
    if (year, month) < (today.year, today.month):
        raise PaymentValidationError("Card has expired", field="card_expiry")

    if not re.fullmatch(r"\d{3,4}", details.card_cvv or ""):
        raise PaymentValidationError("Invalid CVV", field="card_cvv")
    return number[-4:]
