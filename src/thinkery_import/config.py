from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # OneNote (Microsoft Graph)
    onenote_access_token: str = ""
    graph_base_url: str = "https://graph.microsoft.com/v1.0/me/onenote"
    request_timeout: float = 30.0
    max_retries: int = 3
    publish_concurrency: int = 4

    # Import ledger
    database_url: str = "sqlite+aiosqlite:///./thinkery_import.db"

    log_level: str = "info"
