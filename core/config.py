"""
Configuration loader for ProspectComps.
Loads environment variables from .env file.
"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv


# Load .env from the project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_PATH = PROJECT_ROOT / ".env"
load_dotenv(ENV_PATH)


class Config:
    """Application configuration."""
    # --- Storage ---
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017/prospect_comps")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "prospect_comps")

    # --- Comp source ---
    COMP_SOURCE_URL: str = os.getenv("COMP_SOURCE_URL", "https://back.130point.com/cards/")
    COMP_PRODUCT_QUALIFIER: str = os.getenv("COMP_PRODUCT_QUALIFIER", "bowman chrome auto")
    COMP_REPORTING_CURRENCY: str = os.getenv("COMP_REPORTING_CURRENCY", "USD")
    COMP_FETCH_TIMEOUT_SECONDS: float = float(os.getenv("COMP_FETCH_TIMEOUT_SECONDS", 20))

    # --- Market summary ---
    MARKET_SAMPLE_SIZE: int = int(os.getenv("MARKET_SAMPLE_SIZE", 5))
    # Only summarize sales from the last N days; unset means no cutoff
    MARKET_LOOKBACK_DAYS: Optional[int] = (
        int(os.environ["MARKET_LOOKBACK_DAYS"]) if os.getenv("MARKET_LOOKBACK_DAYS") else None
    )

    # --- Batch refresh ---
    REFRESH_DELAY_SECONDS: float = float(os.getenv("REFRESH_DELAY_SECONDS", 1.5))
    # Host kills the job at 5 minutes; stop starting new players at 4.5
    REFRESH_TIME_BUDGET_SECONDS: float = float(os.getenv("REFRESH_TIME_BUDGET_SECONDS", 270))


# Singleton instance
config = Config()
