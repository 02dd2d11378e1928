"""
Application-fee payments through Stripe Checkout.

Handlers only see ``PaymentGateway``; ``StripeGateway`` is the production
implementation and tests substitute their own.
"""
import logging
from typing import Dict, Optional

import stripe
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    pass


def _as_dict(obj) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


class CheckoutSession(BaseModel):
    id: str
    url: str


class SessionStatus(BaseModel):
    id: str
    payment_status: str
    customer_email: Optional[str] = None
    payment_intent: Optional[str] = None
    amount_total: Optional[int] = None
    metadata: Dict[str, str] = {}


class PaymentGateway:
    def create_checkout_session(
        self,
        amount_cents: int,
        currency: str,
        product_name: str,
        customer_email: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        raise NotImplementedError

    def retrieve_session(self, session_id: str) -> SessionStatus:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: str):
        self._api_key = api_key

    def _init_client(self) -> None:
        if not self._api_key:
            raise PaymentError("Stripe API key not found. Set STRIPE_SECRET_KEY in environment.")
        stripe.api_key = self._api_key

    def create_checkout_session(
        self,
        amount_cents,
        currency,
        product_name,
        customer_email,
        metadata,
        success_url,
        cancel_url,
    ):
        self._init_client()
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                customer_email=customer_email,
                line_items=[
                    {
                        "price_data": {
                            "currency": currency,
                            "unit_amount": amount_cents,
                            "product_data": {"name": product_name},
                        },
                        "quantity": 1,
                    }
                ],
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout session creation failed: %s", e)
            raise PaymentError(str(e)) from e
        return CheckoutSession(id=session.id, url=session.url)

    def retrieve_session(self, session_id):
        self._init_client()
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            logger.error("Stripe session lookup failed for %s: %s", session_id, e)
            raise PaymentError(str(e)) from e
        # StripeObject is not a dict in current SDKs
        data = _as_dict(session)
        metadata = _as_dict(data.get("metadata"))
        details = _as_dict(data.get("customer_details"))
        return SessionStatus(
            id=data["id"],
            payment_status=data.get("payment_status") or "unpaid",
            customer_email=data.get("customer_email") or details.get("email"),
            payment_intent=data.get("payment_intent"),
            amount_total=data.get("amount_total"),
            metadata={k: str(v) for k, v in metadata.items()},
        )
