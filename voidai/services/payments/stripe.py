import logging
from traceback import format_exc
from typing import Any, List, Optional

import stripe
from fastapi import HTTPException, status
from sqlalchemy import select

from config import STRIPE_SECRET_KEY
from voidai.models.database import User
from voidai.models.payments import CheckoutSessionRequest, ProductInfo
from voidai.models.shared import PlanType
from voidai.services.database import DatabaseService, get_database_service
from voidai.services.errors import MissingPrerequisite
from voidai.services.payments.credit_manager import CreditManager

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = STRIPE_SECRET_KEY

PLAN_METADATA_KEY = "plan_type"


def plan_from_metadata(metadata: Optional[dict]) -> Optional[PlanType]:
    """
    Read the plan tier from Stripe product or session metadata.

    Args:
        metadata: Stripe metadata mapping

    Returns:
        PlanType or None if the metadata carries no valid tier
    """
    if not metadata:
        return None
    value = metadata.get(PLAN_METADATA_KEY) or metadata.get("planType")
    if not value:
        return None
    try:
        return PlanType(str(value).lower())
    except ValueError:
        logger.warning(f"Unknown plan type in Stripe metadata: {value}")
        return None


async def fetch_plans() -> List[ProductInfo]:
    """
    Fetch plan products directly from Stripe API.

    Only active products tagged with a `plan_type` metadata key are returned.

    Returns:
        List[ProductInfo]: One entry per active price of each plan product
    """
    try:
        logger.info("Fetching plans from Stripe...")

        stripe_products = stripe.Product.list(active=True, limit=100)
        plans = []

        for product in stripe_products.data:
            plan_type = plan_from_metadata(product.metadata)
            if plan_type is None:
                continue

            prices = stripe.Price.list(product=product.id, active=True)
            for price in prices.data:
                recurring = getattr(price, "recurring", None)
                plans.append(
                    ProductInfo(
                        product_id=product.id,
                        price_id=price.id,
                        name=product.name,
                        description=product.description or "",
                        price=price.unit_amount or 0,
                        currency=price.currency,
                        plan_type=plan_type,
                        interval=recurring.get("interval") if recurring else None,
                    )
                )

        logger.info(f"Retrieved {len(plans)} plans from Stripe")
        return plans

    except stripe.StripeError as e:
        logger.error(f"Stripe API error: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to fetch plans from Stripe",
        )
    except Exception as e:
        logger.error(f"Failed to fetch plans from Stripe: {str(e)}\n{format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve plans",
        )


def create_checkout_session(user: User, request: CheckoutSessionRequest) -> Any:
    """Create a subscription Checkout Session for a plan price."""
    params = dict(
        payment_method_types=["card"],
        line_items=[{"price": request.price_id, "quantity": 1}],
        mode="subscription",
        success_url=request.success_url + "?session_id={CHECKOUT_SESSION_ID}",
        cancel_url=request.cancel_url,
        client_reference_id=user.id,
        metadata={"user_id": user.id, "planType": PlanType(request.plan_type).value},
    )
    if user.stripe_customer_id:
        params["customer"] = user.stripe_customer_id
    else:
        params["customer_email"] = user.email
    return stripe.checkout.Session.create(**params)


def create_billing_portal_session(user: User, return_url: str) -> Any:
    """
    Create a Stripe customer portal session where the user manages their subscription.

    Args:
        user: Paying user; must already have a Stripe customer id
        return_url: Where the portal sends the user back to

    Returns:
        The Stripe billing portal session

    Raises:
        MissingPrerequisite: The user has never completed a checkout
    """
    if not user.stripe_customer_id:
        raise MissingPrerequisite("No billing account found for this user")
    return stripe.billing_portal.Session.create(
        customer=user.stripe_customer_id, return_url=return_url
    )


class BillingEventHandler:
    """Applies Stripe webhook events to user plans."""

    def __init__(
        self,
        credit_manager: CreditManager,
        database_service: Optional[DatabaseService] = None,
    ):
        self.credit_manager = credit_manager
        self.database_service = database_service or get_database_service()

    def _find_user_id(
        self,
        user_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[str]:
        with self.database_service.session() as session:
            if user_id and session.get(User, user_id) is not None:
                return user_id
            if customer_id:
                found = session.execute(
                    select(User.id).where(User.stripe_customer_id == customer_id)
                ).scalar_one_or_none()
                if found:
                    return found
            if email:
                return session.execute(
                    select(User.id).where(User.email == email.lower())
                ).scalar_one_or_none()
        return None

    def _customer_email(self, customer_id: str) -> Optional[str]:
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except stripe.StripeError as e:
            logger.error(f"Failed to retrieve Stripe customer {customer_id}: {str(e)}")
            return None
        if getattr(customer, "deleted", False):
            return None
        return getattr(customer, "email", None)

    def _store_customer_id(self, user_id: str, customer_id: str) -> None:
        with self.database_service.session() as session:
            user = session.get(User, user_id)
            if user is not None and user.stripe_customer_id != customer_id:
                user.stripe_customer_id = customer_id

    async def handle_event(self, event: Any) -> None:
        """
        Dispatch a verified Stripe event.

        Args:
            event: Event returned by stripe.Webhook.construct_event
        """
        event_type = event["type"]
        payload = event["data"]["object"]

        if event_type == "checkout.session.completed":
            await self.handle_checkout_completed(payload)
        elif event_type == "customer.subscription.updated":
            await self.handle_subscription_updated(payload)
        elif event_type == "customer.subscription.deleted":
            await self.handle_subscription_deleted(payload)
        else:
            logger.info(f"Unhandled event type: {event_type}")

    async def handle_checkout_completed(self, checkout_session: Any) -> None:
        plan_type = plan_from_metadata(checkout_session.get("metadata"))
        customer_details = checkout_session.get("customer_details") or {}
        email = checkout_session.get("customer_email") or customer_details.get("email")
        customer_id = checkout_session.get("customer")

        user_id = self._find_user_id(
            user_id=checkout_session.get("client_reference_id"),
            customer_id=customer_id,
            email=email,
        )
        if plan_type is None or user_id is None:
            logger.warning(
                f"Checkout session {checkout_session.get('id')} has no plan or user"
            )
            return

        if customer_id:
            self._store_customer_id(user_id, customer_id)
        await self.credit_manager.set_plan(user_id, plan_type)
        logger.info(f"Checkout completed: user {user_id} moved to {plan_type.value}")

    async def handle_subscription_updated(self, subscription: Any) -> None:
        if subscription.get("status") != "active":
            return

        customer_id = subscription.get("customer")
        user_id = self._find_user_id(customer_id=customer_id)
        if user_id is None and customer_id:
            user_id = self._find_user_id(email=self._customer_email(customer_id))
        if user_id is None:
            logger.warning(f"No user for Stripe customer {customer_id}")
            return

        items = (subscription.get("items") or {}).get("data") or []
        if not items:
            return
        price_id = items[0]["price"]["id"]
        price = stripe.Price.retrieve(price_id, expand=["product"])
        plan_type = plan_from_metadata(price.product.metadata)
        if plan_type is None:
            return

        balance = await self.credit_manager.get_balance(user_id)
        if balance.plan_type != plan_type.value:
            await self.credit_manager.set_plan(user_id, plan_type)
            logger.info(f"Subscription update: user {user_id} changed to {plan_type.value}")

    async def handle_subscription_deleted(self, subscription: Any) -> None:
        customer_id = subscription.get("customer")
        user_id = self._find_user_id(customer_id=customer_id)
        if user_id is None and customer_id:
            user_id = self._find_user_id(email=self._customer_email(customer_id))
        if user_id is None:
            logger.warning(f"No user for Stripe customer {customer_id}")
            return

        await self.credit_manager.set_plan(user_id, PlanType.FREE)
        logger.info(f"Subscription canceled: user {user_id} downgraded to free")
