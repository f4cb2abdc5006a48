"""
Runtime configuration read from the environment (and a local .env file).
"""

import os
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()


def load_config() -> Dict[str, Any]:
    """
    Collect settings from environment variables.

    Returns:
        dict: Flask config keys with their defaults applied.
    """
    origins = os.getenv("CORS_ORIGINS", "*")
    return {
        "DATABASE_URL": os.getenv("DATABASE_URL"),
        "DB_POOL_MIN": int(os.getenv("DB_POOL_MIN", 1)),
        "DB_POOL_MAX": int(os.getenv("DB_POOL_MAX", 10)),
        "DB_POOL_TIMEOUT": float(os.getenv("DB_POOL_TIMEOUT", 5)),
        "DB_STATEMENT_TIMEOUT_MS": int(os.getenv("DB_STATEMENT_TIMEOUT_MS", 5000)),
        "DB_CONNECT_TIMEOUT": int(os.getenv("DB_CONNECT_TIMEOUT", 5)),
        "CORS_ORIGINS": [o.strip() for o in origins.split(",") if o.strip()],
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
        "PORT": int(os.getenv("PORT", 5000)),
        "DEBUG": os.getenv("FLASK_DEBUG", "0").lower() in ("1", "true", "yes"),
    }
