"""
Request-scoped service wiring.

Process-wide clients (database, providers, notifier) are singletons; the
managers and stores built on them are constructed per request from those
singletons, so tests can swap any of them through `app.dependency_overrides`.
"""

from typing import Annotated

from fastapi import Depends

from voidai.services.auth.discord import DiscordOAuthClient
from voidai.services.database import DatabaseService, get_database_service
from voidai.services.generation.kie import get_music_provider
from voidai.services.generation.runway import get_video_provider
from voidai.services.notifications.firebase import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from voidai.services.payments.credit_manager import CreditManager
from voidai.services.payments.promo_manager import PromoManager
from voidai.services.payments.stripe import BillingEventHandler
from voidai.services.tasks.reconciler import TrackReconciler, VideoReconciler
from voidai.services.tasks.track_store import TrackStore
from voidai.services.tasks.video_store import VideoStore

Database = Annotated[DatabaseService, Depends(get_database_service)]
Notifier = Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)]


def get_credit_manager(database_service: Database) -> CreditManager:
    return CreditManager(database_service)


def get_promo_manager(database_service: Database) -> PromoManager:
    return PromoManager(database_service)


def get_track_store(database_service: Database) -> TrackStore:
    return TrackStore(database_service)


def get_video_store(database_service: Database) -> VideoStore:
    return VideoStore(database_service)


def get_track_reconciler(
    database_service: Database, notifier: Notifier
) -> TrackReconciler:
    return TrackReconciler(
        notifier, TrackStore(database_service), database_service=database_service
    )


def get_video_reconciler(
    database_service: Database, notifier: Notifier
) -> VideoReconciler:
    return VideoReconciler(
        notifier, VideoStore(database_service), database_service=database_service
    )


def get_billing_handler(
    database_service: Database,
    credit_manager: Annotated[CreditManager, Depends(get_credit_manager)],
) -> BillingEventHandler:
    return BillingEventHandler(credit_manager, database_service)


def get_discord_client() -> DiscordOAuthClient:
    return DiscordOAuthClient()


__all__ = [
    "Database",
    "Notifier",
    "get_billing_handler",
    "get_credit_manager",
    "get_database_service",
    "get_discord_client",
    "get_music_provider",
    "get_notification_dispatcher",
    "get_promo_manager",
    "get_track_reconciler",
    "get_track_store",
    "get_video_provider",
    "get_video_reconciler",
    "get_video_store",
]
