import os
from dotenv import load_dotenv

load_dotenv()

# -----------------------
# Database Config
# -----------------------
DB_TYPE = os.getenv("DB_TYPE", "sqlite").lower()

if DB_TYPE == "postgres":
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL is required for Postgres setup")
elif DB_TYPE == "sqlite":
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./storefront.db")
else:
    raise ValueError(f"Unsupported DB_TYPE: {DB_TYPE}")

# -----------------------
# JWT Config
# -----------------------
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise ValueError("JWT_SECRET environment variable must be set")

JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# -----------------------
# Store rules
# -----------------------
# Lima has no daylight saving, so the store clock is a fixed offset.
STORE_UTC_OFFSET_HOURS = int(os.getenv("STORE_UTC_OFFSET_HOURS", "-5"))
ORDER_EDIT_WINDOW_DAYS = int(os.getenv("ORDER_EDIT_WINDOW_DAYS", "30"))
ORDER_DELAY_HOURS = int(os.getenv("ORDER_DELAY_HOURS", "24"))
MAX_PERCENTAGE_DISCOUNT = int(os.getenv("MAX_PERCENTAGE_DISCOUNT", "80"))
ORDER_CODE_PREFIX = os.getenv("ORDER_CODE_PREFIX", "MAE")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
