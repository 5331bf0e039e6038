import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'cardnav.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    IMPORT_MAX_BYTES = int(os.environ.get("IMPORT_MAX_BYTES", str(5 * 1024 * 1024)))
    IMPORT_MIN_BYTES = int(os.environ.get("IMPORT_MIN_BYTES", "10"))
    IMPORT_BATCH_SIZE = int(os.environ.get("IMPORT_BATCH_SIZE", "100"))
    IMPORT_FALLBACK_MENU = os.environ.get("IMPORT_FALLBACK_MENU", "Home")
    IMPORT_SAMPLE_SIZE = int(os.environ.get("IMPORT_SAMPLE_SIZE", "20"))
    IMPORT_MAX_ERRORS = int(os.environ.get("IMPORT_MAX_ERRORS", "50"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
