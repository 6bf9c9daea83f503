from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"

    # Keys
    openai_api_key: str | None = None
    gemini_api_key: str | None = None

    # Models
    openai_text_model: str = "gpt-4.1"
    gemini_image_model: str = "imagen-3.0-generate-002"

    storyboard_aspect_ratio: str = "16:9"

    # Logging
    log_level: str = "INFO"
    log_format: str = "plain"  # plain|json

    # Used when a project carries no brandContext of its own.
    default_brand_context: str = (
        "You are the creative engine of a creative agency producing performance creatives "
        "that run as paid social ads and organic short-form content.\n"
        "Tone: bold, provocative, smart, witty. Never preachy. Never condescending.\n"
        "Joke first, ad second: the brand shows up at the end as a light punchline, not a savior.\n"
        "The hook must work in the first 1-2 seconds. End card never before the 80% mark."
    )


settings = Settings()
