import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as grievance.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "grievance.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "grievance_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 30 minutes
    IDLE_TIMEOUT_SECONDS = 30 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Uploads (complaint images and voice notes)
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
    MAX_IMAGE_BYTES = 5 * 1024 * 1024
    MAX_VOICE_NOTE_BYTES = 10 * 1024 * 1024
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    # AI gateway used for translation / transliteration (OpenAI-style chat completions)
    AI_GATEWAY_URL = os.getenv("AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1/chat/completions")
    AI_GATEWAY_API_KEY = os.getenv("AI_GATEWAY_API_KEY")
    AI_MODEL = os.getenv("AI_MODEL", "google/gemini-2.5-flash")

    # Text-to-speech / speech-to-text
    TTS_URL = os.getenv("TTS_URL", "https://translate.google.com/translate_tts")
    STT_URL = os.getenv("STT_URL")
    STT_API_KEY = os.getenv("STT_API_KEY")
    LANGUAGE_TIMEOUT_SECONDS = int(os.getenv("LANGUAGE_TIMEOUT_SECONDS", "20"))

    # Email (SMTP) for resolution notices
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    PORTAL_NAME = os.getenv("PORTAL_NAME", "Sahayya Portal")

    # TOTP two-factor
    MFA_ISSUER = os.getenv("MFA_ISSUER", "Campus Grievance Portal")

    # Bootstrap admin (flask create-admin)
    ADMIN_DEFAULT_EMAIL = os.getenv("ADMIN_DEFAULT_EMAIL", "admin@college.edu")

    # Basic app settings
    DEBUG = False
    # Production schema comes from migrations (flask db upgrade)
    AUTO_CREATE_TABLES = False


class TestConfig(Config):
    TESTING = True
    AUTO_CREATE_TABLES = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SMTP_HOST = None
    AI_GATEWAY_API_KEY = "test-key"
    STT_URL = "https://stt.example.test/v1/transcribe"
