import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
    "https://b12-m11-session.web.app",
]

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "loansDb")

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
FB_SERVICE_KEY = os.getenv("FB_SERVICE_KEY", "")

CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173").rstrip("/")
CLIENT_ORIGINS = [o.strip() for o in os.getenv("CLIENT_ORIGINS", "").split(",") if o.strip()] or DEFAULT_ORIGINS

# Fixed application fee, in cents
APPLICATION_FEE_CENTS = int(os.getenv("APPLICATION_FEE_CENTS", 1000))
FEE_CURRENCY = "usd"

PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
