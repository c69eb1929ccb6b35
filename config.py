import os
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from dotenv import load_dotenv

DEV_SECRET = "dev-secret-change-me"


@dataclass(frozen=True)
class Settings:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "shop"
    jwt_secret: str = DEV_SECRET
    token_ttl: timedelta = field(default_factory=lambda: timedelta(days=1))
    environment: str = "development"
    upload_dir: str = "public/uploads"
    cookie_name: str = "jwt"
    port: int = 8000
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        environment = os.getenv("APP_ENV", "development")
        secret = os.getenv("JWT_SECRET")
        if not secret:
            if environment != "development":
                raise RuntimeError("JWT_SECRET must be set outside development")
            secret = DEV_SECRET
        return cls(
            database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
            database_name=os.getenv("DATABASE_NAME", "shop"),
            jwt_secret=secret,
            token_ttl=timedelta(hours=int(os.getenv("TOKEN_TTL_HOURS", "24"))),
            environment=environment,
            upload_dir=os.getenv("UPLOAD_DIR", "public/uploads"),
            port=int(os.getenv("PORT", 8000)),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
