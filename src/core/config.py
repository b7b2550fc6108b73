"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-reconciler", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,https://dharaniherbbals.com",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")

    # Razorpay
    razorpay_key_id: str = Field(default="", description="Razorpay key id (also sent to the checkout widget)")
    razorpay_key_secret: str = Field(default="", description="Razorpay key secret")
    razorpay_webhook_secret: str = Field(default="", description="Razorpay webhook signing secret")
    razorpay_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for Razorpay API calls")
    store_name: str = Field(default="Dharani Herbbals", description="Merchant name shown in the payment widget")
    currency: str = Field(default="INR", description="Payment currency")

    # Order / invoice numbering
    order_number_prefix: str = Field(default="DH-ECOM-", description="Order number prefix")
    order_number_width: int = Field(default=4, ge=1, description="Zero-padded width of the order sequence")
    invoice_number_prefix: str = Field(default="DH", description="Invoice number prefix")
    invoice_number_width: int = Field(default=7, ge=1, description="Zero-padded width of the invoice sequence")
    invoice_number_start: int = Field(default=2500, ge=1, description="First invoice number when none exist")
    sequence_lookup_timeout_seconds: float = Field(
        default=3.0, gt=0, description="Timeout for the max-number lookups before falling back"
    )
    sequence_reserve_attempts: int = Field(
        default=3, ge=1, description="Numbers to try when another worker already claimed one"
    )

    # Shipping
    tamil_nadu_shipping: float = Field(default=50, description="Shipping charge inside Tamil Nadu")
    other_state_shipping: float = Field(default=150, description="Shipping charge outside Tamil Nadu")
    tamil_nadu_free_shipping: float = Field(
        default=750, description="Tamil Nadu free-shipping threshold (-1 disables)"
    )
    other_state_free_shipping: float = Field(
        default=1000, description="Other-state free-shipping threshold (-1 disables)"
    )

    # Pending-order expiry
    pending_order_expiry_hours: int = Field(default=24, ge=1, description="Hours before a pending order expires")
    expiry_sweep_interval_seconds: int = Field(
        default=3600, ge=0, description="Background expiry sweep interval (0 disables the loop)"
    )

    # Notifications
    order_sms_url: str = Field(
        default="https://api.dharaniherbbals.com/api/order-sms",
        description="Order confirmation SMS endpoint",
    )
    order_whatsapp_url: str = Field(
        default="https://api.dharaniherbbals.com/api/whatsapp/send-order",
        description="Order confirmation WhatsApp endpoint",
    )
    notification_timeout_seconds: float = Field(default=5.0, gt=0, description="Per-request notification timeout")
    notification_max_attempts: int = Field(default=2, ge=1, description="Attempts per notification channel")

    @model_validator(mode="after")
    def check_razorpay_keys(self) -> "Settings":
        """Require the key secret whenever a key id is configured."""
        if self.razorpay_key_id and not self.razorpay_key_secret:
            raise ValueError("RAZORPAY_KEY_SECRET must be set when RAZORPAY_KEY_ID is set")
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_razorpay_test_mode(self) -> bool:
        """Check if using Razorpay test keys."""
        return self.razorpay_key_id.startswith("rzp_test_")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
