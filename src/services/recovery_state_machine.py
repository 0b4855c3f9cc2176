"""
Abandoned cart lifecycle as pure functions over (now, record).

Abandoned -> FirstReminderSent -> SecondReminderSent -> Expired, with
Recovered reachable from every state and terminal.

Nothing here touches the store or a clock; the scheduler decides when to
ask, and ``CartRecoveryService`` persists what these functions return.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from config.settings import RecoveryWindows
from models.cart import MAX_REMINDERS, AbandonedCart
from utils.error_handling import PreconditionFailedError


class CartState(str, Enum):
    ABANDONED = "abandoned"
    FIRST_REMINDER_SENT = "first_reminder_sent"
    SECOND_REMINDER_SENT = "second_reminder_sent"
    RECOVERED = "recovered"
    EXPIRED = "expired"


@dataclass(frozen=True)
class ReminderAction:
    """Send reminder number ``stage`` (1 or 2)."""

    stage: int


def within(anchor: Optional[datetime], now: datetime, min_hours: float, max_hours: float) -> bool:
    """Closed interval check on elapsed time since ``anchor``."""
    if anchor is None:
        return False
    elapsed = now - anchor
    return timedelta(hours=min_hours) <= elapsed <= timedelta(hours=max_hours)


def _anchor(cart: AbandonedCart) -> Optional[datetime]:
    return cart.abandoned_at if cart.reminder_count == 0 else cart.last_reminder_at


def state_of(
    cart: AbandonedCart,
    now: Optional[datetime] = None,
    windows: RecoveryWindows = RecoveryWindows(),
) -> CartState:
    """Current lifecycle state. With ``now``, carts past their last window read as Expired."""
    if cart.recovered:
        return CartState.RECOVERED

    if cart.reminder_count == 0 and not cart.email_sent:
        state, limit = CartState.ABANDONED, windows.first_max_hours
    elif cart.reminder_count <= 1:
        state, limit = CartState.FIRST_REMINDER_SENT, windows.second_max_hours
    else:
        state, limit = CartState.SECOND_REMINDER_SENT, windows.second_max_hours

    anchor = _anchor(cart)
    if now is not None and anchor is not None and now - anchor > timedelta(hours=limit):
        return CartState.EXPIRED
    return state


def next_reminder(
    cart: AbandonedCart,
    now: datetime,
    windows: RecoveryWindows = RecoveryWindows(),
    enforce_window: bool = True,
) -> Optional[ReminderAction]:
    """The reminder due for this cart, or None.

    ``enforce_window=False`` is for manual sends: the stage rules still hold,
    only the elapsed-time window is skipped.
    """
    if cart.recovered or cart.reminder_count >= MAX_REMINDERS:
        return None

    if cart.reminder_count == 0 and not cart.email_sent:
        action = ReminderAction(stage=1)
        due = within(cart.abandoned_at, now, windows.first_min_hours, windows.first_max_hours)
    elif cart.reminder_count == 1:
        action = ReminderAction(stage=2)
        due = within(
            cart.last_reminder_at, now, windows.second_min_hours, windows.second_max_hours
        )
    else:
        return None

    if enforce_window and not due:
        return None
    return action


def apply_reminder_sent(
    cart: AbandonedCart, action: ReminderAction, now: datetime, discount_code: Optional[str]
) -> AbandonedCart:
    """Record after a successful send: one step up, never past the cap."""
    if cart.recovered:
        raise PreconditionFailedError(f"Cart {cart.cart_id} is already recovered")
    if action.stage != cart.reminder_count + 1 or action.stage > MAX_REMINDERS:
        raise PreconditionFailedError(
            f"Cart {cart.cart_id} cannot move from reminder {cart.reminder_count} to {action.stage}"
        )
    return cart.model_copy(
        update={
            "email_sent": True,
            "reminder_count": action.stage,
            "last_reminder_at": now,
            "discount_code": discount_code,
            "last_error": None,
            "claim_token": None,
            "claimed_at": None,
        }
    )


def apply_send_failure(cart: AbandonedCart, error: str) -> AbandonedCart:
    """A failed send is counted but does not advance the lifecycle."""
    return cart.model_copy(
        update={
            "failed_attempts": cart.failed_attempts + 1,
            "last_error": error,
            "claim_token": None,
            "claimed_at": None,
        }
    )


def apply_recovered(cart: AbandonedCart, now: datetime) -> AbandonedCart:
    """Checkout completed. Terminal: no transition leaves Recovered."""
    if cart.recovered:
        raise PreconditionFailedError(f"Cart {cart.cart_id} is already recovered")
    return cart.model_copy(update={"recovered": True, "recovered_at": now})
