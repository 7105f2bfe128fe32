import logging
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "restaurant")
# privileged connection, only used by seed_tables.py
SEED_DATABASE_URL = os.getenv("SEED_DATABASE_URL") or DATABASE_URL

JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALG = "HS256"
TOKEN_EXPIRE_MIN = int(os.getenv("TOKEN_EXPIRE_MIN", 60 * 24 * 14))  # 14 days
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def init_log(log_name: str = __name__):
    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s - %(levelname)s - [%(name)s] %(message)s'
    )
    logging.getLogger("pymongo").setLevel(logging.WARNING)

    return logging.getLogger(log_name)
