import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # API Keys
    finnhub_api_key: str = Field(default="", alias="FINNHUB_API_KEY")
    fred_api_key: str = Field(default="", alias="FRED_API_KEY")

    # Refresh Configuration (seconds)
    refresh_interval: int = Field(default=300, alias="REFRESH_INTERVAL")
    secondary_stage_delay: float = Field(default=2.0, alias="SECONDARY_STAGE_DELAY")
    tertiary_stage_delay: float = Field(default=4.0, alias="TERTIARY_STAGE_DELAY")
    cache_prune_interval: int = Field(default=600, alias="CACHE_PRUNE_INTERVAL")

    # HTTP Configuration
    request_retries: int = Field(default=2, alias="REQUEST_RETRIES")
    retry_delay: float = Field(default=1.0, alias="RETRY_DELAY")

    # Debug
    debug: bool = Field(default=False, alias="MONITOR_DEBUG")


global_settings = Settings.model_validate(dict(os.environ))
