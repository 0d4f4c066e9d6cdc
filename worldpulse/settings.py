import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./worldpulse.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Cycle Configuration
    cycle_interval_seconds: int = Field(default=120, alias="CYCLE_INTERVAL_SECONDS")
    snapshot_key: str = Field(default="default", alias="SNAPSHOT_KEY")
    batch_path: str = Field(default="./batch.json", alias="BATCH_PATH")
    signal_log_retention_days: int = Field(default=7, alias="SIGNAL_LOG_RETENTION_DAYS")

    # Dedup Guard Configuration
    dedup_ttl_minutes: int = Field(default=30, alias="DEDUP_TTL_MINUTES")
    dedup_max_entries: int = Field(default=5000, alias="DEDUP_MAX_ENTRIES")

    # Engine Thresholds
    similarity_threshold: float = Field(default=0.5, alias="SIMILARITY_THRESHOLD")
    prediction_shift_threshold: float = Field(
        default=5.0, alias="PREDICTION_SHIFT_THRESHOLD"
    )
    market_move_threshold: float = Field(default=3.0, alias="MARKET_MOVE_THRESHOLD")
    news_velocity_threshold: float = Field(
        default=3.0, alias="NEWS_VELOCITY_THRESHOLD"
    )
    flow_price_threshold: float = Field(default=1.5, alias="FLOW_PRICE_THRESHOLD")
    spike_multiplier: float = Field(default=3.0, alias="SPIKE_MULTIPLIER")
    min_confidence: float = Field(default=0.6, alias="MIN_SIGNAL_CONFIDENCE")


global_settings = Settings.model_validate(dict(os.environ))
