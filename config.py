import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Environment configuration
ENV = os.getenv("VOIDAI_ENV", "p").lower()
if ENV not in ["d", "p"]:
    raise ValueError("VOIDAI_ENV must be either 'd' (development) or 'p' (production)")

# API Keys
AUTH_JWT_KEY = os.getenv("VOIDAI_AUTH_JWT_KEY")
if not AUTH_JWT_KEY:
    raise ValueError("VOIDAI_AUTH_JWT_KEY environment variable is not set")

# NOTE: Provider keys are optional at startup, the clients report the provider
# as unavailable until they are configured
KIE_API_KEY = os.getenv("VOIDAI_KIE_API_KEY")
KIE_API_BASE = os.getenv("VOIDAI_KIE_API_BASE", "https://api.kie.ai/api/v1")

RUNWAY_API_KEY = os.getenv("VOIDAI_RUNWAY_API_KEY")
RUNWAY_API_BASE = os.getenv("VOIDAI_RUNWAY_API_BASE", "https://api.dev.runwayml.com/v1")

STRIPE_SECRET_KEY = os.getenv("VOIDAI_STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("VOIDAI_STRIPE_WEBHOOK_SECRET")
STRIPE_PUBLISHABLE_KEY = os.getenv("VOIDAI_STRIPE_PUBLISHABLE_KEY")

FIREBASE_SERVICE_ACCOUNT_JSON = os.getenv("VOIDAI_FIREBASE_SERVICE_ACCOUNT_JSON")

DISCORD_CLIENT_ID = os.getenv("VOIDAI_DISCORD_CLIENT_ID")
DISCORD_CLIENT_SECRET = os.getenv("VOIDAI_DISCORD_CLIENT_SECRET")

# Database
DATABASE_URL = os.getenv("VOIDAI_DATABASE_URL", "sqlite:///./voidai.db")

# Public hostname of the deployment, used to build provider callback URLs
PUBLIC_HOSTNAME = os.getenv("VOIDAI_PUBLIC_HOSTNAME", "localhost:8080")
CALLBACK_BASE_URL = (
    f"http://{PUBLIC_HOSTNAME}" if ENV == "d" else f"https://{PUBLIC_HOSTNAME}"
)

# Shared token appended to the music callback URL and checked on delivery
CALLBACK_SECRET = os.getenv("VOIDAI_CALLBACK_SECRET")

# Allowed CORS origins (comma separated)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "VOIDAI_CORS_ORIGINS", "http://localhost:5000,http://localhost:8080"
    ).split(",")
    if origin.strip()
]
