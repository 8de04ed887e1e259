import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # go up to project root
env_path = BASE_DIR / ".env"

load_dotenv(env_path)


def _split_csv(value: str) -> list:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Settings:
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB: str = os.getenv("MONGO_DB", "buzz_smile")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    JWT_SECRET: str = os.getenv("JWT_SECRET")
    JWT_EXPIRES_DAYS: int = int(os.getenv("JWT_EXPIRES_DAYS", "7"))

    CLIENT_URL: str = os.getenv("CLIENT_URL", "")
    CLIENT_URLS: list = _split_csv(os.getenv("CLIENT_URLS", ""))
    API_BASE_URL: str = os.getenv("API_BASE_URL", "")

    UPLOAD_DIR: Path = Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads")))
    BACKUP_DIR: Path = Path(os.getenv("BACKUP_DIR", str(BASE_DIR / "backups")))
    ALLOWED_VIDEO_FORMATS: list = _split_csv(os.getenv("ALLOWED_VIDEO_FORMATS", "mp4,mov,avi,mkv"))
    DEFAULT_CREDITS: int = int(os.getenv("DEFAULT_CREDITS", "45"))
    DOWNLOAD_RETENTION_DAYS: int = int(os.getenv("DOWNLOAD_RETENTION_DAYS", "30"))

    EMAIL_USER: str = os.getenv("EMAIL_USER")
    EMAIL_PASS: str = os.getenv("EMAIL_PASS")
    EMAIL_HOST: str = os.getenv("EMAIL_HOST", "smtp.gmail.com")
    EMAIL_PORT: int = int(os.getenv("EMAIL_PORT", "465"))
    EMAIL_SECURE: str = os.getenv("EMAIL_SECURE")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM")
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY")

    DISCORD_WEBHOOK_URL: str = os.getenv("DISCORD_WEBHOOK_URL")

    GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET")
    GOOGLE_CALLBACK_URL: str = os.getenv("GOOGLE_CALLBACK_URL", "/auth/google/callback")

    AWS_S3_BUCKET: str = os.getenv("AWS_S3_BUCKET")
    AWS_ACCESS_KEY_ID: str = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY: str = os.getenv("AWS_SECRET_ACCESS_KEY")
    AWS_REGION: str = os.getenv("AWS_REGION")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def jwt_secret(self) -> str:
        if self.JWT_SECRET:
            return self.JWT_SECRET
        if self.is_production:
            raise RuntimeError("JWT_SECRET is not configured in production environment")
        return "dev-secret"

    @property
    def client_base_url(self) -> str:
        urls = self.CLIENT_URLS or _split_csv(self.CLIENT_URL)
        return (urls[0] if urls else "http://localhost:3000").rstrip("/")


settings = Settings()
