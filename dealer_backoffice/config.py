from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache
import json


DEFAULT_TRADE_DISCLAIMER = (
    "I confirm that, when purchasing the above vehicle, I have been advised that "
    "this purchase is a Trade-Sale and outside of the scope of the Consumer "
    "Protection provisions. Therefore, no warranty or post-sale liabilities will "
    "apply. By purchasing this vehicle, I am confirming my understanding of the "
    "above, that all of the details listed are correct and providing my consent "
    "for these conditions to be applied."
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App Settings
    APP_NAME: str = "Dealer Back Office Invoice Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:5173",
    ]

    # Invoice arithmetic
    # Used vehicles are sold under the margin scheme, so VAT is 0 today.
    # Confirm with accounts before setting a non-zero rate.
    VAT_RATE_PERCENT: Decimal = Decimal("0")

    # Document formatting (en-GB)
    CURRENCY_SYMBOL: str = "£"
    CURRENCY_DECIMAL_PLACES: int = 2
    DATE_FORMAT: str = "%d/%m/%Y"

    # Page 2 text for trade sales when the dealer has no custom trade terms
    TRADE_DISCLAIMER_TEXT: str = DEFAULT_TRADE_DISCLAIMER

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('VAT_RATE_PERCENT')
    @classmethod
    def validate_vat_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 100:
            raise ValueError("VAT_RATE_PERCENT must be between 0 and 100")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return list(self.CORS_ORIGINS)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
