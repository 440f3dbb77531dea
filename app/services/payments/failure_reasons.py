"""
Human-readable settlement failure reasons.
Processors return free text; known substrings map to fixed messages.
"""
from __future__ import annotations

# Order matters: the first matching pattern wins.
FAILURE_PATTERNS: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("insufficient",),
        "Insufficient balance. Top up your mobile money wallet and try again.",
    ),
    (
        ("declin",),
        "The payment was declined. Check your account and try again.",
    ),
    (
        ("timeout", "timed out", "expired"),
        "The payment request expired before it was approved. Start a new payment to try again.",
    ),
    (
        ("cancel",),
        "The payment was cancelled.",
    ),
    (
        ("invalid",),
        "Invalid payment details. Check your number and try again.",
    ),
)

GENERIC_FAILURE_MESSAGE = "Payment failed. Please try again."

# Not a failure: the charge may still have gone through.
TIMED_OUT_MESSAGE = (
    "We could not confirm your payment in time. If money left your account, "
    "check the payment status before paying again."
)


def extract_failure_reason(message: str | None) -> str:
    text = (message or "").strip().lower()
    if not text:
        return GENERIC_FAILURE_MESSAGE
    for needles, reason in FAILURE_PATTERNS:
        if any(n in text for n in needles):
            return reason
    return GENERIC_FAILURE_MESSAGE
