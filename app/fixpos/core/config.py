from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "FIXPOS"
    DATABASE_URL: str = "sqlite+aiosqlite:///./fixpos.db"
    DRAWER_TIMEZONE: str = "America/Puerto_Rico"
    TAX_RATE_PERCENT: Decimal = Decimal("11.5")
    PAYMENT_METHODS_ENABLED: dict[str, bool] = {
        "cash": True,
        "card": True,
        "mobile_wallet": True,
        "bank_transfer": True,
        "check": True,
    }
    QUICK_DISCOUNT_PRESETS: list[int] = [5, 10, 15, 20]
    BALANCE_EPSILON: Decimal = Decimal("0.01")
    CATALOG_LIST_LIMIT: int = 200
    METRICS_ENABLED: bool = True


settings = Settings()


def sync_database_url(url: str) -> str:
    """Driver-swapped URL for alembic and other sync tooling."""
    return url.replace("+aiosqlite", "+pysqlite").replace("+asyncpg", "+psycopg")
