"""
Models Package

This package contains relational tables and API models organized by domain:
- database.py: SQLAlchemy tables for users, tracks, video jobs and promo codes
- credits.py: Credit balance and plan change models
- payments.py: Stripe plan and checkout models
- promo.py: Promo code and redemption models
- tracks.py: Music generation request, task status and track models
- users.py: User, authentication and notification preference models
- videos.py: Video job models
- shared.py: Common base model, enums and error response
"""

# Import all models for easy access
from voidai.models.credits import CreditBalance, PlanUpdateRequest
from voidai.models.database import (
    TABLE_MODELS,
    Base,
    CodeRedemption,
    PromoCode,
    Track,
    User,
    VideoJob,
)
from voidai.models.payments import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PlansResponse,
    ProductInfo,
)
from voidai.models.promo import (
    PromoCodeCreate,
    PromoCodeRecord,
    PromoCodeUpdate,
    RedeemRequest,
    RedeemResponse,
)
from voidai.models.shared import (
    ApiBaseModel,
    ErrorResponse,
    MusicModel,
    PlanType,
    TaskStatus,
    VideoStyle,
)
from voidai.models.tracks import (
    CallbackAck,
    GenerateMusicRequest,
    GenerateMusicResponse,
    TaskStatusResponse,
    TrackRecord,
    TrackResult,
    TrackUpdateRequest,
)
from voidai.models.users import (
    BanRequest,
    DiscordAuthUrlResponse,
    NotificationPreferencesRequest,
    OwnerRequest,
    ProfileUpdateRequest,
    SignupRequest,
    Token,
    TokenData,
    UserRecord,
)
from voidai.models.videos import (
    GenerateVideoRequest,
    GenerateVideoResponse,
    VideoJobRecord,
)

__all__ = [
    # Base models
    "ApiBaseModel",
    "ErrorResponse",
    # Enums
    "MusicModel",
    "PlanType",
    "TaskStatus",
    "VideoStyle",
    # Tables
    "Base",
    "CodeRedemption",
    "PromoCode",
    "Track",
    "User",
    "VideoJob",
    # Credit models
    "CreditBalance",
    "PlanUpdateRequest",
    # Payment models
    "CheckoutSessionRequest",
    "CheckoutSessionResponse",
    "PlansResponse",
    "ProductInfo",
    # Promo models
    "PromoCodeCreate",
    "PromoCodeRecord",
    "PromoCodeUpdate",
    "RedeemRequest",
    "RedeemResponse",
    # Track models
    "CallbackAck",
    "GenerateMusicRequest",
    "GenerateMusicResponse",
    "TaskStatusResponse",
    "TrackRecord",
    "TrackResult",
    "TrackUpdateRequest",
    # User models
    "BanRequest",
    "DiscordAuthUrlResponse",
    "NotificationPreferencesRequest",
    "OwnerRequest",
    "ProfileUpdateRequest",
    "SignupRequest",
    "Token",
    "TokenData",
    "UserRecord",
    # Video models
    "GenerateVideoRequest",
    "GenerateVideoResponse",
    "VideoJobRecord",
    # Table mappings
    "TABLE_MODELS",
]
