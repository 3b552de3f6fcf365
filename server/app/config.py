import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

DEFAULT_OVERDUE_THRESHOLD_DAYS = 30


@dataclass
class Settings:
    # Database
    database_url: str

    # Server
    port: int

    # Auth
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"

    # Redis (Celery broker)
    redis_url: str = "redis://localhost:6379/0"

    # Email (MailerSend)
    mailersend_api_key: Optional[str] = None
    mailersend_from_email: str = "it-portal@example.com"
    mailersend_from_name: str = "IT Portal"
    app_base_url: str = "http://localhost:3000"

    # Offboarding
    hr_notification_emails: tuple[str, ...] = field(default_factory=tuple)
    hr_contact_email: Optional[str] = None
    overdue_threshold_days: int = DEFAULT_OVERDUE_THRESHOLD_DAYS


# Global settings instance
_settings: Optional[Settings] = None


def parse_email_list(raw: Optional[str]) -> tuple[str, ...]:
    """Split a comma-separated address list into a sorted, de-duplicated tuple."""
    if not raw:
        return ()
    emails: set[str] = set()
    for value in raw.split(","):
        normalized = value.strip().lower()
        if normalized:
            emails.add(normalized)
    return tuple(sorted(emails))


def _parse_threshold(raw: Optional[str]) -> int:
    if not raw:
        return DEFAULT_OVERDUE_THRESHOLD_DAYS
    try:
        parsed = int(raw)
    except ValueError:
        return DEFAULT_OVERDUE_THRESHOLD_DAYS
    return parsed if parsed > 0 else DEFAULT_OVERDUE_THRESHOLD_DAYS


def load_settings() -> Settings:
    global _settings
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is required")

    jwt_secret_key = os.getenv("JWT_SECRET_KEY", "")
    if not jwt_secret_key:
        # Generate a default for development, but warn
        import secrets
        jwt_secret_key = secrets.token_urlsafe(32)
        print("[WARNING] JWT_SECRET_KEY not set. Using random key (sessions won't persist across restarts)")

    _settings = Settings(
        database_url=database_url.strip().strip('"'),
        port=int(os.getenv("PORT", "8000")),
        jwt_secret_key=jwt_secret_key,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        mailersend_api_key=os.getenv("MAILERSEND_API_KEY") or None,
        mailersend_from_email=os.getenv("MAILERSEND_FROM_EMAIL", "it-portal@example.com"),
        mailersend_from_name=os.getenv("MAILERSEND_FROM_NAME", "IT Portal"),
        app_base_url=os.getenv("APP_BASE_URL", "http://localhost:3000").rstrip("/"),
        hr_notification_emails=parse_email_list(os.getenv("HR_NOTIFICATION_EMAILS")),
        hr_contact_email=os.getenv("HR_CONTACT_EMAIL") or None,
        overdue_threshold_days=_parse_threshold(os.getenv("OVERDUE_THRESHOLD_DAYS")),
    )
    return _settings


def get_settings() -> Settings:
    """Get the loaded settings. Must call load_settings() first."""
    global _settings
    if _settings is None:
        raise RuntimeError("Settings not initialized. Call load_settings() first.")
    return _settings
