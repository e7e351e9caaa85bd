from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+psycopg2://theoremz:theoremz@db:5432/theoremz"
    ENVIRONMENT: str = "development"

    # Cron
    BLACK_CRON_SECRET: str | None = None
    CRON_SECRET: str | None = None
    READINESS_CHUNK_SIZE: int = 500

    # Firebase (auth + legacy Firestore mirror)
    FIREBASE_PROJECT_ID: str | None = None
    FIREBASE_CLIENT_EMAIL: str | None = None
    FIREBASE_PRIVATE_KEY: str | None = None

    # Async queue (optional)
    ASYNC_QUEUE_ENABLED: bool = False
    REDIS_URL: str = "redis://redis:6379/0"
    RQ_QUEUE_NAME: str = "theoremz"
    RQ_JOB_TIMEOUT_SECONDS: int = 600
    RQ_JOB_RETRY_MAX: int = 1

    # Pre-exam tips
    OPENAI_API_KEY: str | None = None
    LLM_MODEL_NAME: str = "gpt-4o"
    GMAIL_USER: str | None = None
    GMAIL_APP_PASS: str | None = None
    BLACK_PRE_EXAM_CC: str | None = None
    BLACK_PRE_EXAM_TEST_TO: str | None = None

    # Subscription access
    STRIPE_SECRET_KEY: str | None = None
    SUB_OVERRIDES: str = ""
    SUB_TEMP_ACCESS: str = ""
    PREMIUM_TTL_TRUE_SECONDS: int = 600
    PREMIUM_TTL_FALSE_SECONDS: int = 120

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.casefold() == "production"

    @property
    def cron_secret(self) -> str | None:
        return self.BLACK_CRON_SECRET or self.CRON_SECRET or None


settings = Settings()
