from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Data source: "supabase" for the real store, "demo" for synthetic data
    data_source: str = "demo"
    demo_user_id: str = "demo-user"

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_key: str = ""

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8000/auth/google/callback"

    # Zoom OAuth (attendance counts for past meetings)
    zoom_client_id: str = ""
    zoom_client_secret: str = ""
    zoom_redirect_uri: str = "http://localhost:8000/auth/zoom/callback"

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4"

    # Audit
    default_hourly_cost: float = 50.0
    audit_lookback_days: int = 30
    audit_lookahead_days: int = 30

    # Scheduler
    scheduler_enabled: bool = False
    scheduler_interval_minutes: int = 60

    # App
    secret_key: str = "change-this-in-production"
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def demo_mode(self) -> bool:
        return self.data_source == "demo"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
