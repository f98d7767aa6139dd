from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "LessonCraft AI"
    debug: bool = False

    # Supabase (only required when LESSONCRAFT_STORE=supabase)
    supabase_url: str = ""
    supabase_service_key: str = ""

    # OpenAI (kept for fallback)
    openai_api_key: str = ""

    # Gemini
    gemini_api_key: str = ""
    llm_provider: str = "gemini"
    llm_model: str = "gemini-2.5-flash"

    # Generation
    generation_timeout_seconds: float = 60.0
    max_section_retries: int = 1
    fallback_ratio_warn: float = 0.5

    # CORS
    frontend_url: str = "http://localhost:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
