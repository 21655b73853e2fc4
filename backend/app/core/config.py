from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Craft Beer Wizard API"
    api_prefix: str = "/api/v1"
    database_url: str = "sqlite:///./brewwizard.db"
    auto_create_tables: bool = False
    log_level: str = "INFO"

    ai_llm_base_url: str = "https://api.openai.com"
    ai_llm_api_key: str | None = None
    ai_llm_model: str = "gpt-4o"
    ai_llm_temperature: float = 0.7
    ai_llm_max_output_tokens: int = 3500
    ai_llm_timeout_seconds: int = 60

    free_recipe_limit: int = 100
    engine_version: str = "v3.0_chemistry"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
