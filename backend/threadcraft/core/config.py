"""Application configuration from environment variables."""
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _clean_str(value: str | None) -> str | None:
    if value is None:
        return None
    # Replace non-breaking spaces with normal spaces
    return value.replace("\u00a0", " ")


class PlanGrant(BaseModel):
    """Plan name and point grant for a Stripe price."""

    plan: str
    points: int


DEFAULT_PRICE_PLANS: dict[str, PlanGrant] = {
    "price_1PyFKGBibz3ZDixDAaJ3HO74": PlanGrant(plan="Basic", points=100),
    "price_1PyFN0Bibz3ZDixDqm9eYL8W": PlanGrant(plan="Pro", points=500),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    PROJECT_NAME: str = "ThreadCraft"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_TOKEN: str | None = None
    CORS_ORIGINS: list[str] = ["*"]

    # Database Settings
    DATABASE_URL: str | None = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "threadcraft"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432

    # Billing (Stripe)
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_PRICE_PLANS: dict[str, PlanGrant] = Field(
        default_factory=lambda: dict(DEFAULT_PRICE_PLANS)
    )
    # Off by default: redelivered checkout events credit points again.
    STRIPE_DEDUPE_EVENTS: bool = False
    CHECKOUT_SUCCESS_URL: str = "http://localhost:3000/generate?upgraded=true"
    CHECKOUT_CANCEL_URL: str = "http://localhost:3000/pricing"

    # Identity (Clerk, delivered through Svix)
    CLERK_WEBHOOK_SECRET: str | None = None

    # Generation (Gemini)
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-pro"

    # Points
    POINTS_PER_GENERATION: int = 5
    INITIAL_POINTS: int = 50
    HISTORY_DEFAULT_LIMIT: int = 10

    # Email
    ENABLE_EMAIL_NOTIFICATIONS: bool = False

    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587

    SMTP_USERNAME: str | None = Field(default=None, alias="SMTP_USERNAME")
    SMTP_PASSWORD: str | None = Field(default=None, alias="SMTP_PASSWORD")

    SMTP_USE_TLS: bool = True  # STARTTLS

    SMTP_FROM_EMAIL: str | None = Field(default=None, alias="SMTP_FROM_EMAIL")
    SMTP_FROM_NAME: str = Field(default="ThreadCraft", alias="SMTP_FROM_NAME")

    @field_validator(
        "SMTP_USERNAME",
        "SMTP_PASSWORD",
        "SMTP_FROM_EMAIL",
        "SMTP_FROM_NAME",
        mode="before",
    )
    @classmethod
    def clean_smtp_strings(cls, v):
        return _clean_str(v)

    @property
    def database_url(self) -> str:
        """Explicit DATABASE_URL, else a Postgres URL built from components."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def plan_for_price(self, price_id: str | None) -> PlanGrant | None:
        if not price_id:
            return None
        return self.STRIPE_PRICE_PLANS.get(price_id)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
