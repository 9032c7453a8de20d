"""
Configuration module for wikitree.
Centralizes all configuration settings and environment variables.
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Server configuration
PORT = int(os.getenv("PORT", "8080"))
DEV = os.getenv("DEV", "false").lower() == "true"
HOST = os.getenv("HOST", "0.0.0.0")

# Content store location
DATA_DIR = os.getenv("DATA_DIR", "data")

# Built single-page frontend, served for every non-API path when set
FRONTEND_DIR = os.getenv("FRONTEND_DIR")

# Application settings
APP_NAME = "wikitree"
APP_DESCRIPTION = "A self-hosted wiki backed by plain Markdown files"
DEFAULT_APP_TITLE = "wikitree"
API_PREFIX = "/_api"

# Version reported by GET /_api/app
VERSION = "0.4.0"

# Background jobs
RETENTION_INTERVAL_SECONDS = int(os.getenv("RETENTION_INTERVAL_SECONDS", "3600"))
REFRESH_TOKEN_CLEANUP_INTERVAL_SECONDS = int(
    os.getenv("REFRESH_TOKEN_CLEANUP_INTERVAL_SECONDS", "86400")
)

# Tokens
ACCESS_TOKEN_TTL_SECONDS = 15 * 60
REFRESH_TOKEN_TTL_DAYS = 90
REFRESH_COOKIE_NAME = "refresh_token"
REFRESH_COOKIE_PATH = API_PREFIX + "/auth"

# Login throttling (token bucket per client IP)
LOGIN_BURST = int(os.getenv("LOGIN_BURST", "5"))
LOGIN_REFILL_SECONDS = float(os.getenv("LOGIN_REFILL_SECONDS", "30"))
LOGIN_LIMITER_TTL_SECONDS = int(os.getenv("LOGIN_LIMITER_TTL_SECONDS", "1800"))

# Key limiters on X-Forwarded-For / X-Real-IP; only safe behind a proxy that sets them
TRUST_PROXY_HEADERS = os.getenv("TRUST_PROXY_HEADERS", "false").lower() == "true"

# Search throttling
SEARCH_IP_BURST = int(os.getenv("SEARCH_IP_BURST", "3"))
SEARCH_IP_REFILL_SECONDS = float(os.getenv("SEARCH_IP_REFILL_SECONDS", "10"))
SEARCH_USER_BURST = int(os.getenv("SEARCH_USER_BURST", "30"))
SEARCH_USER_REFILL_SECONDS = float(os.getenv("SEARCH_USER_REFILL_SECONDS", "2"))
SEARCH_LIMITER_TTL_SECONDS = int(os.getenv("SEARCH_LIMITER_TTL_SECONDS", "900"))
SEARCH_MAX_RESULTS = 10

# Logging settings
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_RETENTION = "7 days"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
