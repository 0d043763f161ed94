import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./jobdesk.db")
SECRET_KEY = os.getenv("SECRET_KEY", "dev_change_me")
ALGO = "HS256"

# transaction primitive: bounded optimistic retries
TXN_MAX_ATTEMPTS = int(os.getenv("TXN_MAX_ATTEMPTS", "5"))
TXN_RETRY_BASE = float(os.getenv("TXN_RETRY_BASE", "0.05"))
TXN_RETRY_CAP = float(os.getenv("TXN_RETRY_CAP", "1.0"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
