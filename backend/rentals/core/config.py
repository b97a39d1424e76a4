# backend/rentals/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Literal, Set, cast

from dotenv import load_dotenv
from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


NON_PROD_SITE_MODES: Set[str] = {
    "local",
    "dev",
    "development",
    "test",
    "stg",
    "staging",
    "preview",
}
PROD_SITE_MODES: Set[str] = {"prod", "production", "live"}

DEV_SECRET_KEY = "dev-only-secret-key-change-me"


def _classify_site_mode(raw_site_mode: str | None) -> tuple[str, bool, bool]:
    """Return normalized site mode with production/non-prod classification."""

    normalized = (raw_site_mode or "").strip().lower()
    is_prod = normalized in PROD_SITE_MODES
    is_non_prod = normalized in NON_PROD_SITE_MODES
    return normalized, is_prod, is_non_prod


class Settings(BaseSettings):
    secret_key: SecretStr = Field(
        default=SecretStr(DEV_SECRET_KEY),
        description="Secret key for verifying access tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # 12 hours

    site_mode_raw: str = Field(default="local", alias="SITE_MODE", description="Deployment mode")
    database_url: str = Field(
        default="sqlite:///./rentals.db",
        description="SQLAlchemy database URL",
    )

    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the resident-facing site; payment callbacks redirect here",
    )
    callback_base_url: str = Field(
        default="http://localhost:8000",
        description="Public base URL of this API, used to build payment callback URLs",
    )
    login_path: str = Field(default="/login", description="Where unauthenticated residents go")

    # Payments
    payment_mode: Literal["live", "mock"] = Field(
        default="mock",
        description="live talks to Paystack; mock simulates success without network calls",
    )
    allow_mock_payments_in_prod: bool = Field(
        default=False,
        description="Escape hatch allowing mock payments when SITE_MODE is production",
    )
    paystack_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Paystack secret key (required when payment_mode=live)",
    )
    paystack_api_base: str = Field(default="https://api.paystack.co")
    paystack_timeout_seconds: float = Field(default=10.0, gt=0)
    payment_currency: str = Field(default="USD", description="Currency code sent to the processor")
    payment_exchange_rate: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        description="Multiplier converting booking prices into the processor's currency",
    )
    payment_minor_unit_factor: int = Field(
        default=100,
        gt=0,
        description="Minor units per major unit of the processor's currency",
    )

    # Booking policies
    price_policy: Literal["verify", "trust"] = Field(
        default="verify",
        description="verify recomputes total_price server-side; trust stores the caller's value",
    )
    price_tolerance: Decimal = Field(default=Decimal("0.01"), ge=0)
    booking_overlap_policy: Literal["reject", "allow"] = Field(
        default="reject",
        description="reject refuses dates overlapping a confirmed booking of the same property",
    )

    is_testing: bool = Field(default_factory=is_running_tests)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def site_mode(self) -> Literal["local", "preview", "prod"]:
        normalized, is_prod, _ = _classify_site_mode(self.site_mode_raw)
        if is_prod:
            return "prod"
        if normalized == "preview":
            return "preview"
        return "local"

    @property
    def payment_mock(self) -> bool:
        return self.payment_mode == "mock"

    @model_validator(mode="after")
    def _default_payment_mode(self) -> "Settings":
        """Default to live payments in production and mock payments elsewhere."""

        fields_set = cast(Set[str], getattr(self, "model_fields_set", set()))
        has_env_flag = "PAYMENT_MODE" in os.environ
        if "payment_mode" not in fields_set and not has_env_flag:
            _, is_prod, _ = _classify_site_mode(self.site_mode_raw)
            self.payment_mode = "live" if is_prod else "mock"
        return self

    @model_validator(mode="after")
    def _require_paystack_key_for_live(self) -> "Settings":
        if self.payment_mode == "live" and not self.paystack_secret_key.get_secret_value():
            raise ValueError("PAYSTACK_SECRET_KEY must be set when PAYMENT_MODE=live")
        return self

    @model_validator(mode="after")
    def _require_real_secret_in_prod(self) -> "Settings":
        _, is_prod, _ = _classify_site_mode(self.site_mode_raw)
        if is_prod and self.secret_key.get_secret_value() == DEV_SECRET_KEY:
            raise ValueError("SECRET_KEY must be configured in production")
        return self


def assert_payment_env(
    site_mode_raw: str,
    payment_mode: str,
    *,
    allow_override: bool | None = None,
) -> None:
    """Refuse to start with mock payments in production unless explicitly allowed."""

    _, is_prod, _ = _classify_site_mode(site_mode_raw)
    if not is_prod or payment_mode != "mock":
        return

    override = settings.allow_mock_payments_in_prod if allow_override is None else allow_override
    if override:
        logger.warning("[CONFIG] Mock payments enabled in production via override")
        return
    raise RuntimeError("Refusing to start: production requires PAYMENT_MODE=live")


settings = Settings()
logger.info(
    "[CONFIG] Payment configuration: site_mode=%s payment_mode=%s currency=%s",
    settings.site_mode,
    settings.payment_mode,
    settings.payment_currency,
)
