# bakery_orders/config.py
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
POOL_MIN = int(os.getenv("APP_POOL_MIN", "1"))
POOL_MAX = int(os.getenv("APP_POOL_MAX", "10"))
POOL_TIMEOUT = float(os.getenv("APP_POOL_TIMEOUT", "5.0"))  # seconds to wait for a free connection
STATEMENT_TIMEOUT_MS = int(os.getenv("APP_STATEMENT_TIMEOUT_MS", "5000"))

DEFAULT_TAX_RATE = float(os.getenv("DEFAULT_TAX_RATE", "0.11"))
ORDER_NUMBER_MAX_ATTEMPTS = int(os.getenv("ORDER_NUMBER_MAX_ATTEMPTS", "5"))
WHATSAPP_MAX_MESSAGE_LENGTH = int(os.getenv("WHATSAPP_MAX_MESSAGE_LENGTH", "3000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", "8000"))
