"""Generation functions settings configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class GenerationSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Defaults to {SUPABASE_URL}/functions/v1 when empty
    GENERATION_FUNCTIONS_URL: str = ""
    GENERATION_TIMEOUT_SECONDS: int = 180
