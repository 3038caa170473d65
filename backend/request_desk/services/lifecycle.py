"""Lifecycle rules: transition table, timestamp rule and amount derivation.

Everything here is pure: no session, no I/O.  The engine composes these
rules with persistence and notifications.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from request_desk.errors import InvalidTransition, ValidationError
from request_desk.models.request import RequestStatus, PaymentOption, PaymentStatus

ADVANCE_RATIO = Decimal("0.7")

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.pending: frozenset({RequestStatus.approved, RequestStatus.rejected}),
    RequestStatus.approved: frozenset({RequestStatus.in_progress, RequestStatus.rejected}),
    RequestStatus.in_progress: frozenset({RequestStatus.completed, RequestStatus.rejected}),
    RequestStatus.completed: frozenset(),
    RequestStatus.rejected: frozenset(),
}

# Statuses in which a request can take (or already hold) money.
PAYABLE_STATUSES = frozenset({RequestStatus.approved, RequestStatus.in_progress, RequestStatus.completed})


def check_transition(current: RequestStatus, target: RequestStatus) -> None:
    """Raise ``InvalidTransition`` unless ``current → target`` is allowed.

    Re-applying the current status is always accepted.
    """
    if current == target:
        return
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(f"Cannot move request from '{current.value}' to '{target.value}'")


def check_payment_coupling(status: RequestStatus, payment_status: PaymentStatus) -> None:
    """A fully paid request may only sit in a payable status."""
    if payment_status == PaymentStatus.completed and status not in PAYABLE_STATUSES:
        raise InvalidTransition(
            f"Request with completed payment cannot be '{status.value}'"
        )


def check_payment_option(option: PaymentOption, payment_status: PaymentStatus) -> None:
    if payment_status == PaymentStatus.partial and option != PaymentOption.advance:
        raise ValidationError("Payment status 'partial' requires the advance payment option")


def stamp_transition(request, target: RequestStatus, now: datetime) -> None:
    """Set ``approved_at`` / ``completed_at`` the first time the status is entered."""
    if target == RequestStatus.approved and request.approved_at is None:
        request.approved_at = now
    elif target == RequestStatus.completed and request.completed_at is None:
        request.completed_at = now


def effective_price(actual_price: Optional[int], estimated_price: Optional[int]) -> int:
    if actual_price is not None:
        return actual_price
    if estimated_price is not None:
        return estimated_price
    return 0


def advance_amount(price: int) -> int:
    """70% of ``price``, rounded half-up to a whole minor unit."""
    return int((Decimal(price) * ADVANCE_RATIO).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def amount_due(price: int, option: PaymentOption) -> int:
    if option == PaymentOption.advance:
        return advance_amount(price)
    return price


def remaining_on_advance(price: int) -> int:
    return price - advance_amount(price)


def due_for(request) -> int:
    """Amount due up front for a request under its chosen payment option."""
    price = effective_price(request.actual_price, request.estimated_price)
    return amount_due(price, PaymentOption(request.payment_option))


def derive_payment_status(
    current: PaymentStatus,
    option: PaymentOption,
    price: int,
    total_captured: int,
) -> PaymentStatus:
    """Payment status after a capture has brought the total to ``total_captured``.

    ``full`` captures, or captures covering the price, complete the payment.
    An ``advance`` capture covering only the advance makes it partial.
    Never moves backwards.
    """
    if current == PaymentStatus.completed:
        return current
    if option == PaymentOption.full or total_captured >= price:
        return PaymentStatus.completed
    if total_captured >= advance_amount(price):
        return PaymentStatus.partial
    return current


def settled_payment_status(
    current: PaymentStatus,
    option: PaymentOption,
    price: int,
    amount_paid: int,
) -> PaymentStatus:
    """Payment status implied by what was already paid, after a price change.

    Unlike ``derive_payment_status`` a ``full`` option does not complete the
    payment unless the paid total covers the price.  Never moves backwards.
    """
    if current == PaymentStatus.completed or amount_paid <= 0:
        return current
    if amount_paid >= price:
        return PaymentStatus.completed
    if option == PaymentOption.advance and amount_paid >= advance_amount(price):
        return PaymentStatus.partial
    return current


def next_charge(price: int, option: PaymentOption, payment_status: PaymentStatus, amount_paid: int) -> int:
    """Amount to collect now; never more than ``price - amount_paid``."""
    if payment_status == PaymentStatus.completed:
        return 0
    outstanding = max(price - amount_paid, 0)
    if payment_status == PaymentStatus.partial:
        return outstanding
    return min(max(amount_due(price, option) - amount_paid, 0), outstanding)


def payment_summary(price: int, option: PaymentOption, payment_status: PaymentStatus, amount_paid: int) -> dict:
    due_now = next_charge(price, option, payment_status, amount_paid)
    outstanding = max(price - amount_paid, 0)
    if payment_status == PaymentStatus.completed:
        remaining = 0
    elif payment_status == PaymentStatus.partial:
        remaining = outstanding
    else:
        remaining = outstanding - due_now
    return {
        "price": price,
        "amount_due_now": due_now,
        "remaining_balance": remaining,
        "amount_paid": amount_paid,
    }
