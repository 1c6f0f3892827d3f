import os

# Challenge lifetime
CAPTCHA_EXPIRY_SECONDS = int(os.getenv("CAPTCHA_EXPIRY_SECONDS", "300"))
# Used/expired challenges are dropped once they are older than this
CAPTCHA_RETENTION_MINUTES = int(os.getenv("CAPTCHA_RETENTION_MINUTES", "60"))

# Target drop position range (x in [50, 250), y in [25, 125))
TARGET_X_MIN = 50
TARGET_X_SPAN = 200
TARGET_Y_MIN = 25
TARGET_Y_SPAN = 100

# Background/puzzle images are not generated; the schema keeps placeholders
PLACEHOLDER_IMAGE_URL = "-"

# Optional YAML file overriding the trajectory heuristics
CAPTCHA_HEURISTICS_FILE = os.getenv("CAPTCHA_HEURISTICS_FILE")

# Rate limiting (slowapi limit strings, per remote address)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")
CAPTCHA_RATE_LIMIT = os.getenv("CAPTCHA_RATE_LIMIT", "30/minute")
VERIFY_RATE_LIMIT = os.getenv("VERIFY_RATE_LIMIT", "60/minute")

# Logging
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_FILE_NAME = os.getenv("LOG_FILE_NAME", "captcha.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
