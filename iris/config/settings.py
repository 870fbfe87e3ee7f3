from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Server-side queries bypass RLS with this key

    # Auth
    jwt_secret: str = "iris-super-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 3600
    refresh_token_ttl_seconds: int = 7 * 24 * 3600
    pbkdf2_iterations: int = 100000

    # ARIA (any OpenAI-compatible chat completions endpoint)
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    llm_model: str = "gemini-2.0-flash"
    llm_max_output_tokens: int = 8192
    aria_max_tool_turns: int = 5
    aria_stream_chunk_size: int = 100
    aria_input_cost_per_million: float = 0.10
    aria_output_cost_per_million: float = 0.30

    # Storage buckets
    avatar_bucket: str = "user-avatars"
    avatar_max_bytes: int = 5 * 1024 * 1024
    aria_attachments_bucket: str = "aria-attachments"

    # Pagination
    default_page_size: int = 10
    max_page_size: int = 100

    # App
    app_name: str = "iris-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
