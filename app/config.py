import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Settings read from the environment (and a local .env file if present)."""

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./gym_booking.db")

    @property
    def SKIP_DB_INIT(self):
        # read late so test fixtures can set it after import
        return os.getenv("SKIP_DB_INIT") == "1"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # 0 = Monday (ISO week), 6 = Sunday
    WEEK_START_DAY = int(os.getenv("WEEK_START_DAY", "0"))

    # Subscriptions expiring within this many days are flagged as "expiring soon"
    EXPIRY_WARNING_DAYS = int(os.getenv("EXPIRY_WARNING_DAYS", "7"))

    FREE_LEVEL_NAME = os.getenv("FREE_LEVEL_NAME", "Free")


config = Config()
