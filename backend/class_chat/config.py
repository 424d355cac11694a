"""Configuration settings for the application."""
import os
from pathlib import Path

# Project root (backend directory)
BACKEND_ROOT = Path(__file__).parent.parent
PROJECT_ROOT = BACKEND_ROOT.parent

# Database configuration
DATA_DIR = Path(os.getenv("CLASS_CHAT_DATA_DIR", str(PROJECT_ROOT / "data")))
DB_FILE = os.getenv("CLASS_CHAT_DB_FILE", str(DATA_DIR / "class_chat.db"))
DB_TIMEOUT = 30.0  # 30 seconds timeout for busy database

# CORS settings
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CLASS_CHAT_CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = ["GET", "POST", "DELETE"]
CORS_ALLOW_HEADERS = ["*"]

# Server binding
HOST = os.getenv("CLASS_CHAT_HOST", "localhost")
PORT = int(os.getenv("PORT", "5000"))

# Logging
LOG_LEVEL = os.getenv("CLASS_CHAT_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Application settings
APP_TITLE = "Class Chat Server"
APP_VERSION = "1.0.0"
