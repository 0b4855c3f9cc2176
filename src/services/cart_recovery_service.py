"""
Cart recovery service.

Creates abandoned carts from the storefront webhook and drives them through
the reminder lifecycle. Each reminder is claim-then-act:

1. claim the cart with a conditional UPDATE (one claimant wins),
2. build and send the email,
3. commit the new state guarded by the claim token, or release the claim
   and count the failure without advancing state. A send whose claim expired
   meanwhile is still recorded, guarded by the prior reminder count.

Batch passes walk eligible carts in keyset pages. A pass that dies mid-page
leaves claims that expire after ``claim_lease_minutes``; committed carts are
no longer eligible, so the next pass resumes where this one stopped.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.engine import Engine

from config.settings import Settings
from models.cart import AbandonedCart, AbandonmentRequest
from models.jobs import JobSummary
from repositories.cart_repo import FIRST_STAGE, SECOND_STAGE, CartRepository
from repositories.customer_repo import CustomerRepository
from repositories.database import get_engine
from services.email_service import EmailSender, EmailService
from services.offer_service import OfferService
from services.recovery_state_machine import (
    ReminderAction,
    apply_recovered,
    apply_reminder_sent,
    apply_send_failure,
    next_reminder,
)
from utils.clock import utc_now
from utils.error_handling import (
    AppError,
    NotFoundError,
    PreconditionFailedError,
    TransientIOError,
    as_app_error,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)


class CartRecoveryService:
    """Abandoned cart intake, reminders and recovery."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[Settings] = None,
        email_sender: Optional[EmailSender] = None,
        offers: Optional[OfferService] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        engine = engine or get_engine(self.settings)
        self.carts = CartRepository(engine)
        self.customers = CustomerRepository(engine)
        self.offers = offers or OfferService(engine=engine, settings=self.settings, clock=clock)
        self.email_sender = email_sender or EmailService(self.settings)
        self.clock = clock

    def track_abandoned_cart(
        self, request: AbandonmentRequest, now: Optional[datetime] = None
    ) -> AbandonedCart:
        """
        Create or refresh the customer's pending cart.

        Only a cart still in the Abandoned state (no reminder sent) is updated
        in place, with its clock restarted. A cart that already got a reminder
        keeps its own lifecycle and the new signal starts a fresh record.
        """
        now = now or self.clock()
        existing = self.carts.find_unreminded_for_customer(request.customer_id)
        if existing is not None:
            if self.carts.replace_contents(
                existing.cart_id, request.cart_items, request.cart_total, abandoned_at=now
            ):
                logger.info(
                    "Abandoned cart updated",
                    extra={"cart_id": existing.cart_id, "customer_id": request.customer_id},
                )
                return self.carts.get(existing.cart_id)

        cart = AbandonedCart(
            cart_id=uuid.uuid4().hex,
            customer_id=request.customer_id,
            cart_items=request.cart_items,
            cart_total=request.cart_total,
            abandoned_at=now,
        )
        self.carts.insert(cart)
        logger.info(
            "Abandoned cart tracked",
            extra={
                "cart_id": cart.cart_id,
                "customer_id": cart.customer_id,
                "cart_total": cart.cart_total,
            },
        )
        return cart

    def send_recovery_email(
        self, cart_id: str, now: Optional[datetime] = None, enforce_window: bool = False
    ) -> AbandonedCart:
        """Send whichever reminder is next for one cart (manual trigger)."""
        now = now or self.clock()
        cart = self.carts.get(cart_id)
        if cart is None:
            raise NotFoundError(f"Abandoned cart {cart_id} not found")

        action = next_reminder(cart, now, self.settings.recovery_windows, enforce_window)
        if action is None:
            raise PreconditionFailedError(f"Cart {cart_id} has no reminder due")
        updated, _ = self._remind(cart, action, now, token=uuid.uuid4().hex)
        return updated

    def mark_recovered(self, cart_id: str, now: Optional[datetime] = None) -> AbandonedCart:
        """Checkout completed for this cart; no reminder is ever sent afterwards."""
        now = now or self.clock()
        cart = self.carts.get(cart_id)
        if cart is None:
            raise NotFoundError(f"Abandoned cart {cart_id} not found")

        recovered = apply_recovered(cart, now)
        if not self.carts.mark_recovered(cart_id, now):
            raise PreconditionFailedError(f"Cart {cart_id} is already recovered")
        logger.info("Cart recovered", extra={"cart_id": cart_id, "customer_id": cart.customer_id})
        return recovered

    def mark_customer_recovered(self, customer_id: str, now: Optional[datetime] = None) -> List[str]:
        """Recover every open cart of a customer who just checked out."""
        now = now or self.clock()
        recovered = [
            cart_id
            for cart_id in self.carts.open_cart_ids(customer_id)
            if self.carts.mark_recovered(cart_id, now)
        ]
        logger.info(
            "Customer carts recovered",
            extra={"customer_id": customer_id, "count": len(recovered)},
        )
        return recovered

    def process_first_reminders(self, now: Optional[datetime] = None) -> JobSummary:
        """Scheduled pass: first reminder for carts abandoned 1 to 24 hours ago."""
        now = now or self.clock()
        window_start, window_end = self._window(FIRST_STAGE, now)
        return self._run_pass(FIRST_STAGE, "recover_carts", now, window_start, window_end)

    def process_second_reminders(self, now: Optional[datetime] = None) -> JobSummary:
        """Scheduled pass: second reminder 24 to 48 hours after the first."""
        now = now or self.clock()
        window_start, window_end = self._window(SECOND_STAGE, now)
        return self._run_pass(SECOND_STAGE, "send_second_reminders", now, window_start, window_end)

    def bulk_recover(self, hours_old: float = 1.0, now: Optional[datetime] = None) -> JobSummary:
        """
        Operator-triggered catch-up: first reminder for up to ``bulk_recovery_limit``
        unemailed carts abandoned at least ``hours_old`` hours ago.

        There is no upper age bound here, unlike the scheduled pass. Claims
        still apply, so a concurrent scheduled pass never double-sends.
        """
        now = now or self.clock()
        cutoff = now - timedelta(hours=hours_old)
        return self._run_pass(
            FIRST_STAGE,
            "bulk_recovery",
            now,
            None,
            cutoff,
            page_size=self.settings.bulk_recovery_limit,
            max_pages=1,
        )

    def _window(self, stage: int, now: datetime) -> Tuple[datetime, datetime]:
        windows = self.settings.recovery_windows
        if stage == FIRST_STAGE:
            low, high = windows.first_min_hours, windows.first_max_hours
        else:
            low, high = windows.second_min_hours, windows.second_max_hours
        return now - timedelta(hours=high), now - timedelta(hours=low)

    def _run_pass(
        self,
        stage: int,
        job: str,
        now: datetime,
        window_start: Optional[datetime],
        window_end: datetime,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> JobSummary:
        start = time.perf_counter()
        summary = JobSummary(job=job)
        skipped = 0
        claim_lost = 0
        token = uuid.uuid4().hex
        page_size = page_size or self.settings.page_size
        max_pages = max_pages or self.settings.max_pages_per_pass
        lease_cutoff = now - timedelta(minutes=self.settings.claim_lease_minutes)
        logger.info("Reminder pass started", extra={"job": job, "stage": stage})

        after: Optional[str] = None
        for _ in range(max_pages):
            try:
                page = self.carts.eligible_page(
                    stage, window_start, window_end, lease_cutoff, after, page_size
                )
            except AppError as exc:
                # Store unavailable: stop here, the next scheduled pass resumes.
                summary.details["aborted"] = str(exc)
                logger.warning("Reminder pass aborted", extra={"job": job, "error": str(exc)})
                break

            for cart in page:
                try:
                    _, committed = self._remind(cart, ReminderAction(stage=stage), now, token)
                    summary.record_success()
                    if not committed:
                        claim_lost += 1
                except PreconditionFailedError:
                    # Claimed by a concurrent pass or changed state since the query.
                    skipped += 1
                except Exception as exc:
                    error = as_app_error(exc)
                    summary.record_failure(cart.cart_id, error.kind, str(error))
                    logger.warning(
                        "Reminder failed",
                        extra={"job": job, "cart_id": cart.cart_id, "error": str(error)},
                    )

            if len(page) < page_size:
                break
            after = page[-1].cart_id

        summary.details["skipped"] = skipped
        summary.details["claim_lost"] = claim_lost
        logger.info(
            "Reminder pass complete",
            extra={
                "job": job,
                "processed": summary.processed,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "claim_lost": claim_lost,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return summary

    def _remind(
        self, cart: AbandonedCart, action: ReminderAction, now: datetime, token: str
    ) -> Tuple[AbandonedCart, bool]:
        """Claim, send, commit. The flag is False when the claim was lost mid-send."""
        lease_cutoff = now - timedelta(minutes=self.settings.claim_lease_minutes)
        if not self.carts.claim(cart.cart_id, action.stage, token, now, lease_cutoff):
            raise PreconditionFailedError(f"Cart {cart.cart_id} is not claimable")

        try:
            code = self._send(cart, action, now)
        except AppError as exc:
            self.carts.release_after_failure(cart.cart_id, token, str(exc))
            failed = apply_send_failure(cart, str(exc))
            logger.warning(
                "Recovery email not sent",
                extra={
                    "cart_id": cart.cart_id,
                    "stage": action.stage,
                    "failed_attempts": failed.failed_attempts,
                    "error": str(exc),
                },
            )
            raise

        updated = apply_reminder_sent(cart, action, now, code)
        if self.carts.commit_reminder(updated, token):
            logger.info(
                "Recovery email sent",
                extra={"cart_id": cart.cart_id, "stage": action.stage, "code": code},
            )
            return updated, True

        # Already sent: record it without the claim.
        recorded = self.carts.commit_reminder(updated, token=None)
        logger.warning(
            "Reminder sent but claim was lost before commit",
            extra={"cart_id": cart.cart_id, "stage": action.stage, "recorded": recorded},
        )
        return updated, False

    def _send(self, cart: AbandonedCart, action: ReminderAction, now: datetime) -> str:
        """Email the customer; returns the discount code used."""
        customer = self.customers.get(cart.customer_id)
        if customer is None or not customer.email:
            raise NotFoundError(f"No email address for customer {cart.customer_id}")

        try:
            if cart.discount_code:
                code, percent = cart.discount_code, None
            else:
                offer = self.offers.personalized_offer(cart.customer_id, now=now)
                code, percent = offer.code, offer.discount_percent
        except Exception as exc:
            raise as_app_error(exc)

        template = (
            self.settings.first_reminder_template
            if action.stage == FIRST_STAGE
            else self.settings.second_reminder_template
        )
        variables = {
            "customerName": customer.name or "there",
            "cartItems": [item.model_dump() for item in cart.cart_items],
            "cartTotal": f"{cart.cart_total:.2f}",
            "discountCode": code,
            "discountPercent": percent,
            "reminderNumber": action.stage,
        }
        if not self.email_sender.send_templated_email(template, customer.email, variables):
            raise TransientIOError("Email collaborator rejected or timed out")
        return code
