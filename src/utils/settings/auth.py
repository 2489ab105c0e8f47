from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_KEY: str = ""
    SUPABASE_JWT_SECRET: str = ""
