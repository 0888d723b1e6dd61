from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]

    # GitHub REST API
    github_api_url: str = "https://api.github.com"
    github_web_url: str = "https://github.com"  # For constructing commit URLs
    github_api_version: str = "2022-11-28"
    # Shared connection pool; one request per file during blob upload
    github_http_timeout_seconds: float = 30.0
    github_http_connect_timeout_seconds: float = 5.0
    github_http_max_connections: int = 20
    github_http_max_keepalive_connections: int = 10

    # Push pipeline
    # Small worker pool: unbounded parallel blob creates trip GitHub's secondary limits
    push_max_concurrency: int = 6
    push_max_attempts: int = 4
    push_backoff_base_seconds: float = 0.5
    push_backoff_max_seconds: float = 8.0
    # Entries per create-tree call before switching to base_tree composition
    push_tree_chunk_size: int = 300
    # Wall-clock budget for a whole push (all stages)
    push_timeout_seconds: float = 120.0

    # Rate limiting
    # Used when a rate-limit response carries neither Retry-After nor X-RateLimit-Reset
    rate_limit_default_wait_seconds: float = 60.0
    # Upper bound for a single rate-limit wait
    rate_limit_max_wait_seconds: float = 60.0

    # Commit identity used when the caller supplies none
    push_author_name: str = "Scaffold Wizard"
    push_author_email: str = "scaffold-wizard@users.noreply.github.com"


settings = Settings()
