import logging
from traceback import format_exc
from typing import Annotated, Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from config import CALLBACK_BASE_URL, STRIPE_PUBLISHABLE_KEY, STRIPE_WEBHOOK_SECRET
from voidai.models.database import User
from voidai.models.payments import (
    BillingPortalRequest,
    BillingPortalResponse,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PlansResponse,
    StripeConfigResponse,
)
from voidai.server.dependencies import get_billing_handler
from voidai.server.routers.auth_routes import get_current_user
from voidai.services.payments.stripe import (
    BillingEventHandler,
    create_billing_portal_session,
    create_checkout_session,
    fetch_plans,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create payment router
payment_router = APIRouter()


def get_stripe_publishable_key() -> Optional[str]:
    return STRIPE_PUBLISHABLE_KEY


@payment_router.get("/stripe/config", response_model=StripeConfigResponse)
async def get_stripe_config(
    publishable_key: Annotated[Optional[str], Depends(get_stripe_publishable_key)],
) -> StripeConfigResponse:
    """Publishable key the client needs to load Stripe.js."""
    if not publishable_key:
        logger.error("Stripe publishable key is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stripe is not configured",
        )
    return StripeConfigResponse(publishable_key=publishable_key)


@payment_router.get("/subscription/plans", response_model=PlansResponse)
async def get_plans() -> PlansResponse:
    """Get purchasable plans directly from Stripe."""
    plans = await fetch_plans()
    return PlansResponse(plans=plans)


@payment_router.post("/checkout", response_model=CheckoutSessionResponse)
async def create_checkout(
    request: CheckoutSessionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
) -> CheckoutSessionResponse:
    """Create a Stripe Checkout session for a plan subscription."""
    try:
        checkout_session = create_checkout_session(current_user, request)

        logger.info(
            f"Created subscription checkout session {checkout_session.id} "
            f"for user {current_user.id}"
        )
        return CheckoutSessionResponse(
            checkout_url=checkout_session.url,
            session_id=checkout_session.id,
        )

    except stripe.StripeError as e:
        logger.error(f"Stripe error: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Payment processing error: {str(e)}",
        )
    except Exception as e:
        logger.error(f"Failed to create checkout session: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session",
        )


@payment_router.post("/billing/portal", response_model=BillingPortalResponse)
async def create_billing_portal(
    current_user: Annotated[User, Depends(get_current_user)],
    request: Optional[BillingPortalRequest] = None,
) -> BillingPortalResponse:
    """Open the Stripe customer portal for the current user."""
    return_url = (request and request.return_url) or f"{CALLBACK_BASE_URL}/billing"
    try:
        portal_session = create_billing_portal_session(current_user, return_url)
        logger.info(f"Created billing portal session for user {current_user.id}")
        return BillingPortalResponse(url=portal_session.url)

    except stripe.StripeError as e:
        logger.error(f"Stripe error: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Payment processing error: {str(e)}",
        )


@payment_router.post("/stripe/webhook")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Annotated[str, Header(alias="stripe-signature")],
    billing: Annotated[BillingEventHandler, Depends(get_billing_handler)],
):
    """Handle Stripe webhook events for plan purchases and subscriptions."""
    try:
        # Get request body
        body = await request.body()

        # Verify webhook signature
        try:
            event = stripe.Webhook.construct_event(
                body, stripe_signature, STRIPE_WEBHOOK_SECRET
            )
        except ValueError:
            logger.error("Invalid payload in webhook")
            raise HTTPException(status_code=400, detail="Invalid payload")
        except stripe.SignatureVerificationError:
            logger.error("Invalid signature in webhook")
            raise HTTPException(status_code=400, detail="Invalid signature")

        await billing.handle_event(event)
        return {"status": "success"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Webhook error: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )
