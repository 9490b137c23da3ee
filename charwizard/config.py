import os

from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_DEFAULT_DB_URL = "sqlite:///./charwizard.db"


class Settings(BaseSettings):
    app_name: str = "charwizard"
    env: str = "dev"
    database_url: str = "sqlite+pysqlite:///./charwizard.db"
    log_level: str = "INFO"

    llm_api_key: str = ""
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o"
    llm_timeout_s: float = 30.0
    llm_max_attempts: int = 1

    choice_max_tokens: int = 800
    choice_temperature: float = 0.9
    choice_option_count: int = 4
    reaction_max_tokens: int = 200
    reaction_temperature: float = 0.8
    reaction_max_chars: int = 150
    celebration_max_tokens: int = 200
    celebration_temperature: float = 0.9

    daily_completion_limit: int = 200
    quota_timezone: str = "UTC"

    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "charwizard"
    jwt_audience: str = "charwizard-app"
    jwt_exp_minutes: int = 60 * 24
    jwt_leeway_s: int = 60
    dev_auth_enabled: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _is_sqlite_memory_url(db_url: str) -> bool:
    candidate = (db_url or "").strip().lower()
    if not candidate.startswith("sqlite"):
        return False
    if ":memory:" in candidate:
        return True
    return candidate in {
        "sqlite://",
        "sqlite:///",
        "sqlite+pysqlite://",
        "sqlite+pysqlite:///",
    }


def validate_database_url(env: str, db_url: str | None) -> str:
    env_value = (env or "").strip().lower()
    if env_value != "dev":
        return db_url or ""

    if not db_url or not db_url.strip():
        return DEV_DEFAULT_DB_URL

    if _is_sqlite_memory_url(db_url):
        raise RuntimeError(
            "DATABASE_URL cannot be sqlite :memory: when ENV=dev because creation sessions will disappear. "
            f"Set DATABASE_URL={DEV_DEFAULT_DB_URL} or another file-based sqlite url."
        )
    return db_url


settings = Settings()
settings.database_url = validate_database_url(settings.env, os.getenv("DATABASE_URL") or settings.database_url)
