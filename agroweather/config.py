"""Engine configuration pulled from environment variables via pydantic."""
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")

DEFAULT_PROVIDER_ORDER = "openweathermap,weatherapi,accuweather,meteostat"
ENVIRONMENTS = ("development", "test", "production")


class Settings(BaseSettings):
    """Environment-driven configuration for the weather aggregation engine."""
    model_config = SettingsConfigDict(env_prefix="AGROWEATHER_", extra="ignore")

    # provider credentials; a missing key removes that provider from the fallback chain
    openweathermap_api_key: Optional[str] = None
    weatherapi_api_key: Optional[str] = None
    accuweather_api_key: Optional[str] = None
    meteostat_api_key: Optional[str] = None
    provider_order: str = DEFAULT_PROVIDER_ORDER

    environment: str = "development"  # options: development, test, production
    enable_simulation: bool = False

    attempt_timeout_seconds: float = 10.0
    http_retries: int = 1

    cache_redis_url: Optional[str] = None
    cache_max_entries: int = 1000
    cache_coordinate_precision: int = 2
    current_ttl_seconds: int = 300
    extended_ttl_seconds: int = 1800
    historical_ttl_seconds: int = 86400

    prediction_workers: int = 2
    prediction_history_days: int = 7
    temperature_model_path: Optional[str] = None
    precipitation_model_path: Optional[str] = None

    log_level: str = "INFO"

    @field_validator("environment", mode="after")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        """Lowercase and restrict to known environment names."""
        v = str(v).strip().lower()
        if v not in ENVIRONMENTS:
            raise ValueError(f"environment must be one of {', '.join(ENVIRONMENTS)}")
        return v

    @property
    def provider_names(self) -> List[str]:
        """Configured fallback order as a list of provider ids."""
        return [p.strip().lower() for p in self.provider_order.split(",") if p.strip()]

    def api_key_for(self, provider: str) -> Optional[str]:
        """Return the credential for a provider id, treating blank values as unset."""
        key = getattr(self, f"{provider}_api_key", None)
        if key is None or not str(key).strip():
            return None
        return str(key).strip()


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4, exclude={'openweathermap_api_key', 'weatherapi_api_key', 'accuweather_api_key', 'meteostat_api_key'})}")
