import os
from pathlib import Path

from dotenv import load_dotenv

from app.errors import ConfigurationError

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

REQUIRED_SETTINGS = ("DATABASE_URL", "ADMIN_TOKEN", "PI_API_KEY", "APP_WALLET_SECRET")


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @staticmethod
    def _get_float(name: str, default: float) -> float:
        return float(os.getenv(name, str(default)))

    @staticmethod
    def require(name: str) -> str:
        value = os.getenv(name, "").strip()
        if not value:
            raise ConfigurationError(f"{name} is not configured", hint=f"Set {name} in the environment or .env")
        return value

    def missing_required(self) -> list[str]:
        return [name for name in REQUIRED_SETTINGS if not os.getenv(name, "").strip()]

    @property
    def DATABASE_URL(self) -> str:
        return self.require("DATABASE_URL")

    @property
    def ADMIN_TOKEN(self) -> str:
        return self.require("ADMIN_TOKEN")

    @property
    def PI_API_KEY(self) -> str:
        return self.require("PI_API_KEY")

    @property
    def APP_WALLET_SECRET(self) -> str:
        return self.require("APP_WALLET_SECRET")

    @property
    def PI_API_BASE_URL(self) -> str:
        return os.getenv("PI_API_BASE_URL", "https://api.minepi.com/v2").rstrip("/")

    @property
    def PI_API_TIMEOUT_SECONDS(self) -> float:
        return self._get_float("PI_API_TIMEOUT_SECONDS", 10.0)

    @property
    def REFUND_POLL_ATTEMPTS(self) -> int:
        return self._get_int("REFUND_POLL_ATTEMPTS", 10)

    @property
    def REFUND_POLL_INTERVAL_SECONDS(self) -> float:
        return self._get_float("REFUND_POLL_INTERVAL_SECONDS", 1.0)

    @property
    def REFUND_POLL_DEADLINE_SECONDS(self) -> float:
        return self._get_float("REFUND_POLL_DEADLINE_SECONDS", 25.0)

    @property
    def INITIAL_EXCHANGE_RATE(self) -> str | None:
        return os.getenv("INITIAL_EXCHANGE_RATE", "").strip() or None

    @property
    def DB_CONNECT_RETRIES(self) -> int:
        return self._get_int("DB_CONNECT_RETRIES", 5)

    @property
    def DB_CONNECT_RETRY_DELAY_SECONDS(self) -> int:
        return self._get_int("DB_CONNECT_RETRY_DELAY_SECONDS", 2)

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "*")


settings = Settings()
