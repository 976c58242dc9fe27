import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")


class Settings(BaseModel):
    database_url: str = "sqlite:///./storefront.db"
    webhook_secret: Optional[str] = None
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    merchant_email: Optional[str] = None
    store_name: str = "WishZep"
    admin_dashboard_url: str = "https://wishzep.vercel.app/admin/dashboard"
    lookup_attempts: int = 3
    lookup_interval: float = 2.0
    jwt_secret: Optional[str] = None


def _number(name: str, cast):
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a valid %s; using the default", name, raw, cast.__name__)
        return None


def get_settings() -> Settings:
    """Read settings from the environment on every call so restarts aren't needed."""
    env = {
        "database_url": os.getenv("DATABASE_URL"),
        "webhook_secret": os.getenv("RAZORPAY_WEBHOOK_SECRET"),
        "smtp_user": os.getenv("SMTP_USER"),
        "smtp_pass": os.getenv("SMTP_PASS"),
        "smtp_host": os.getenv("SMTP_HOST"),
        "smtp_port": _number("SMTP_PORT", int),
        "merchant_email": os.getenv("MERCHANT_EMAIL") or os.getenv("SMTP_USER"),
        "store_name": os.getenv("STORE_NAME"),
        "admin_dashboard_url": os.getenv("ADMIN_DASHBOARD_URL"),
        "lookup_attempts": _number("WEBHOOK_LOOKUP_ATTEMPTS", int),
        "lookup_interval": _number("WEBHOOK_LOOKUP_INTERVAL_SECONDS", float),
        "jwt_secret": os.getenv("JWT_SECRET"),
    }
    # Empty strings and unparseable numbers count as unset
    return Settings(**{key: value for key, value in env.items() if value is not None and value != ""})
