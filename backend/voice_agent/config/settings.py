"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Voice Agent Relay"
    app_version: str = "1.0.0"
    debug: bool = True
    frontend_url: str = "http://localhost:3000"

    # Session
    secret_key: str = "your-secret-key-change-this-in-production"
    algorithm: str = "HS256"
    session_cookie_name: str = "voice_agent_session"
    session_max_age_seconds: int = 24 * 60 * 60  # 24 hours
    max_history_messages: int = 20
    default_model: str = "gpt-4o-mini"

    # Generation
    generation_temperature: float = 0.7
    generation_max_tokens: int = 512
    provider_timeout: float = 60.0
    provider_order: list[str] = ["openai", "huggingface", "groq"]

    # Primary: OpenAI-compatible chat completions
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: Optional[str] = None  # falls back to default_model

    # Secondary: Hugging Face hosted inference, tried across candidate models
    hf_api_key: Optional[str] = None
    hf_base_url: str = "https://api-inference.huggingface.co"
    hf_models: list[str] = [
        "mistralai/Mistral-7B-Instruct-v0.2",
        "HuggingFaceH4/zephyr-7b-beta",
        "microsoft/DialoGPT-medium",
    ]

    # Tertiary: Groq fast inference (OpenAI-compatible)
    groq_api_key: Optional[str] = None
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_model: str = "llama-3.1-8b-instant"

    # Google Calendar
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_redirect_uri: str = "http://localhost:8000/auth/google/callback"
    google_calendar_id: str = "primary"
    calendar_timezone: str = "UTC"
    calendar_link_base: str = "https://calendar.google.com/calendar/render"

    # Image generation
    image_endpoint_template: str = "https://image.pollinations.ai/prompt/{prompt}"
    image_timeout: float = 60.0

    # Speech-to-text
    transcription_model: str = "whisper-1"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/voice_agent.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
