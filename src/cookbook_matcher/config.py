"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    supabase_storage_bucket: str = "scans"
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str = "medium"
    openai_store: bool = False
    keepa_api_key: str
    keepa_base_url: str = "https://api.keepa.com"
    amazon_associates_tag: str = "cookbookapp-20"
    ingredient_match_threshold: float = 85.0
    ingredient_match_prefer_best: bool = False
    product_confidence_threshold: int = 70
    job_max_retries: int = 3
    queue_max_attempts: int = 3
    queue_backoff_base_ms: int = 5000
    job_lease_seconds: int = 300
    stale_job_sweep_seconds: int = 60
    recommendation_cache_ttl_seconds: int = 300
    recommendation_candidate_limit: int = 500
    slow_query_warning_seconds: float = 5.0
    run_workers: bool = True
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
