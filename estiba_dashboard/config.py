from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = ""
    request_timeout_seconds: float = 30.0

    events_table: str = "page_events"
    users_table: str = "usuarios"
    subscriptions_table: str = "usuarios_premium"
    subscription_status_column: str = "estado"

    page_size: int = 1000
    event_scan_limit: int = 5000
    user_scan_limit: int = 2000

    display_timezone: str = "Europe/Madrid"
    timeline_hours: int = 24
    top_users_limit: int = 10

    class Config:
        env_file = ".env"


settings = Settings()
