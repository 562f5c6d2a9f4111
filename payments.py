"""
Stripe payment endpoints.

Intents carry the order id in ``metadata.orderId``; the webhook uses it to find
the order once Stripe reports the outcome. Signature checks are left to the
Stripe library.
"""

import logging
from typing import Any, Callable, Dict

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

import config
import order_service
from auth import get_current_user
from database import get_db, now
from errors import NotAuthorizedError, OrderAlreadyPaidError, OrderNotFoundError

logger = logging.getLogger(__name__)

stripe.api_key = config.STRIPE_SECRET_KEY

router = APIRouter(prefix="/api/payments", tags=["payments"])


class PaymentIntentInput(BaseModel):
    order_id: str


class SetupIntentInput(BaseModel):
    customer_id: str


@router.post("/create-payment-intent")
def create_payment_intent(data: PaymentIntentInput, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    order = order_service.get_order(db, data.order_id)
    if order["user"] != current_user["id"]:
        raise NotAuthorizedError("Not authorized to access this order")
    if order.get("is_paid"):
        raise OrderAlreadyPaidError()

    amount = int(round(order["total_price"] * 100))
    intent = stripe.PaymentIntent.create(
        amount=amount,
        currency=config.PAYMENT_CURRENCY,
        metadata={"orderId": str(order["_id"]), "userId": current_user["id"]},
        description=f"Payment for order {order.get('order_number')}",
    )
    logger.info("Payment intent %s created for order %s", intent["id"], order.get("order_number"))
    return {"client_secret": intent["client_secret"], "order_id": str(order["_id"]), "amount": order["total_price"]}


@router.get("/payment-intent/{intent_id}")
def get_payment_intent(intent_id: str, _: dict = Depends(get_current_user)):
    try:
        intent = stripe.PaymentIntent.retrieve(intent_id)
    except stripe.StripeError:
        logger.exception("Stripe payment intent lookup failed for %s", intent_id)
        raise HTTPException(status_code=500, detail="Error retrieving payment intent")
    return intent.to_dict()


@router.get("/payment-methods")
def payment_methods(current_user: dict = Depends(get_current_user)):
    try:
        customers = stripe.Customer.list(email=current_user["email"], limit=1)
        if customers["data"]:
            customer = customers["data"][0]
        else:
            customer = stripe.Customer.create(
                email=current_user["email"],
                name=current_user.get("name"),
                metadata={"userId": current_user["id"]},
            )
        methods = stripe.PaymentMethod.list(customer=customer["id"], type="card")
    except stripe.StripeError:
        logger.exception("Stripe payment method lookup failed for user %s", current_user["id"])
        raise HTTPException(status_code=500, detail="Error processing payment methods")
    return {"customer": customer["id"], "payment_methods": [m.to_dict() for m in methods["data"]]}


@router.post("/setup-intent")
def create_setup_intent(data: SetupIntentInput, _: dict = Depends(get_current_user)):
    intent = stripe.SetupIntent.create(
        customer=data.customer_id,
        payment_method_types=["card"],
        usage="off_session",
    )
    return {"client_secret": intent["client_secret"]}


# Webhook

def _payment_result(obj: Dict[str, Any]) -> Dict[str, Any]:
    result = {
        "id": obj.get("id"),
        "status": obj.get("status"),
        "update_time": now().isoformat(),
    }
    if obj.get("receipt_email"):
        result["email_address"] = obj["receipt_email"]
    return result


def handle_payment_succeeded(db: Database, intent: Dict[str, Any]):
    order_id = (intent.get("metadata") or {}).get("orderId")
    try:
        order_service.mark_paid(db, order_id, payment_result=_payment_result(intent), payment_method="stripe")
    except OrderNotFoundError:
        logger.warning("Payment %s succeeded for unknown order %s", intent.get("id"), order_id)
    except OrderAlreadyPaidError:
        logger.info("Order %s already paid; ignoring duplicate event", order_id)


def handle_payment_failed(db: Database, intent: Dict[str, Any]):
    order_id = (intent.get("metadata") or {}).get("orderId")
    try:
        order = order_service.get_order(db, order_id)
    except OrderNotFoundError:
        logger.warning("Payment %s failed for unknown order %s", intent.get("id"), order_id)
        return
    order["payment_result"] = _payment_result(intent)
    order_service.save_order(db, order)
    logger.info("Order %s payment failed", order.get("order_number"))


def handle_charge_succeeded(db: Database, charge: Dict[str, Any]):
    logger.info("Charge succeeded: %s", charge.get("id"))


def handle_charge_failed(db: Database, charge: Dict[str, Any]):
    logger.info("Charge failed: %s", charge.get("id"))


EVENT_HANDLERS: Dict[str, Callable[[Database, Dict[str, Any]], None]] = {
    "payment_intent.succeeded": handle_payment_succeeded,
    "payment_intent.payment_failed": handle_payment_failed,
    "charge.succeeded": handle_charge_succeeded,
    "charge.failed": handle_charge_failed,
}


def dispatch_event(db: Database, event: Dict[str, Any]):
    handler = EVENT_HANDLERS.get(event.get("type"))
    if handler is None:
        logger.info("Unhandled event type %s", event.get("type"))
        return
    handler(db, event["data"]["object"])


@router.post("/webhook")
async def webhook(request: Request, stripe_signature: str = Header(default=""), db: Database = Depends(get_db)):
    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, config.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail="Webhook Error")

    await run_in_threadpool(dispatch_event, db, event.to_dict())
    return {"received": True}
