# capital/core/config.py
import os
from urllib.parse import quote_plus

from dotenv import load_dotenv


def str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def merge_unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in items:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


class Settings:
    def __init__(self) -> None:
        # Only load .env for local/dev. In prod, env vars come from the service config.
        self.ENV = os.getenv("ENV", "dev").strip().lower()  # dev | prod
        if self.ENV != "prod":
            load_dotenv()

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

        # ----------------------------
        # Database
        # ----------------------------
        self.DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
        self.DB_HOST = os.getenv("DB_HOST", "")
        self.DB_PORT = os.getenv("DB_PORT", "5432")
        self.DB_NAME = os.getenv("DB_NAME", "")
        self.DB_APP_USER = os.getenv("DB_APP_USER", "")
        self.DB_APP_PASSWORD = os.getenv("DB_APP_PASSWORD", "")
        self.DB_MIGRATOR_USER = os.getenv("DB_MIGRATOR_USER", "")
        self.DB_MIGRATOR_PASSWORD = os.getenv("DB_MIGRATOR_PASSWORD", "")
        self.DB_SSLMODE = os.getenv("DB_SSLMODE", "require").strip().lower()

        # ----------------------------
        # Redis
        # ----------------------------
        self.REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))

        # ----------------------------
        # CORS
        # ----------------------------
        dev_defaults = [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

        cors_from_env = parse_csv(os.getenv("CORS_ORIGINS"))
        if self.ENV == "prod":
            self.CORS_ORIGINS = merge_unique(cors_from_env)
        else:
            self.CORS_ORIGINS = merge_unique(cors_from_env + dev_defaults)

        # ----------------------------
        # Auth / JWT
        # ----------------------------
        self.JWT_SECRET = os.getenv("JWT_SECRET", "")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.ACCESS_TOKEN_EXPIRES_IN = os.getenv("ACCESS_TOKEN_EXPIRES_IN", "60min")
        self.REFRESH_TOKEN_EXPIRES_IN = os.getenv("REFRESH_TOKEN_EXPIRES_IN", "7d")

        # ----------------------------
        # Session cookies
        # ----------------------------
        self.ACCESS_COOKIE_NAME = os.getenv("ACCESS_COOKIE_NAME", "access_token")
        self.REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
        self.REFRESH_COOKIE_PATH = os.getenv("REFRESH_COOKIE_PATH", "/api/v1/authentication/refresh")
        self.COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "none")
        self.COOKIE_SECURE = str_to_bool(os.getenv("COOKIE_SECURE"), default=True)
        self.COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN", "") or None

        # ----------------------------
        # Cache lifetimes (seconds)
        # ----------------------------
        self.ACCOUNTS_CACHE_TTL_SECONDS = int(os.getenv("ACCOUNTS_CACHE_TTL_SECONDS", str(30 * 60)))
        self.BUDGETS_CACHE_TTL_SECONDS = int(os.getenv("BUDGETS_CACHE_TTL_SECONDS", str(30 * 60)))
        self.TRANSACTIONS_CACHE_TTL_SECONDS = int(os.getenv("TRANSACTIONS_CACHE_TTL_SECONDS", str(10 * 60)))
        self.USER_CACHE_TTL_SECONDS = int(os.getenv("USER_CACHE_TTL_SECONDS", str(30 * 60)))
        self.ECONOMY_CACHE_TTL_SECONDS = int(os.getenv("ECONOMY_CACHE_TTL_SECONDS", str(24 * 60 * 60)))
        self.ECONOMY_FALLBACK_CACHE_TTL_SECONDS = int(os.getenv("ECONOMY_FALLBACK_CACHE_TTL_SECONDS", str(5 * 60)))

        # ----------------------------
        # Market data providers
        # ----------------------------
        self.MARKET_DATA_API_KEY = os.getenv("MARKET_DATA_API_KEY", "")
        self.ALPHA_VANTAGE_URL = os.getenv("ALPHA_VANTAGE_URL", "https://www.alphavantage.co/query")
        self.NEWS_API_URL = os.getenv("NEWS_API_URL", "https://global-economy-news.p.rapidapi.com/")
        self.EXTERNAL_FETCH_TIMEOUT_SECONDS = float(os.getenv("EXTERNAL_FETCH_TIMEOUT_SECONDS", "10"))

        # Final: fail fast in prod
        self._validate_prod()

    def _validate_prod(self) -> None:
        if self.ENV != "prod":
            return

        missing: list[str] = []

        if not self.JWT_SECRET:
            missing.append("JWT_SECRET")
        if not self.DATABASE_URL:
            if not self.DB_HOST:
                missing.append("DB_HOST")
            if not self.DB_NAME:
                missing.append("DB_NAME")
            if not self.DB_APP_USER:
                missing.append("DB_APP_USER")
            if not self.DB_APP_PASSWORD:
                missing.append("DB_APP_PASSWORD")
            if self.DB_SSLMODE != "require":
                raise RuntimeError("DB_SSLMODE must be 'require' in prod")
        if not self.REDIS_URL:
            missing.append("REDIS_URL")
        if not self.MARKET_DATA_API_KEY:
            missing.append("MARKET_DATA_API_KEY")

        if not self.CORS_ORIGINS:
            missing.append("CORS_ORIGINS")

        cors_joined = ",".join(self.CORS_ORIGINS)
        if "localhost" in cors_joined or "127.0.0.1" in cors_joined:
            raise RuntimeError("CORS_ORIGINS contains localhost/dev origins in prod")

        # SameSite=None cookies are dropped by browsers unless they are also Secure
        if self.COOKIE_SAMESITE.lower() == "none" and not self.COOKIE_SECURE:
            raise RuntimeError("COOKIE_SECURE must be true when COOKIE_SAMESITE=none")

        if missing:
            raise RuntimeError(f"Missing required prod env vars: {', '.join(missing)}")

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"

    def _build_database_url(self, user: str, password: str) -> str:
        encoded_password = quote_plus(password)
        return (
            f"postgresql+psycopg://{user}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            f"?sslmode={self.DB_SSLMODE}"
        )

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return self._build_database_url(self.DB_APP_USER, self.DB_APP_PASSWORD)

    @property
    def migrations_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return self._build_database_url(self.DB_MIGRATOR_USER, self.DB_MIGRATOR_PASSWORD)


settings = Settings()


def require_jwt_secret() -> None:
    if not settings.JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set")
