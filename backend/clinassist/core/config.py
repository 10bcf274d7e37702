from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderId = Literal["gemini", "huggingface", "openai"]

DEFAULT_EMERGENCY_KEYWORDS = (
    "chest pain,difficulty breathing,shortness of breath,severe bleeding,"
    "unconscious,stroke symptoms,cardiac arrest,anaphylaxis,"
    "severe allergic reaction,severe trauma,overdose,seizure,heart attack"
)

DEFAULT_EMERGENCY_RESPONSE = (
    "🚨 EMERGENCY SITUATION DETECTED 🚨\n\n"
    "This appears to describe a potential medical emergency. Please:\n"
    "1. Call emergency services immediately (911/999)\n"
    "2. Seek immediate medical attention\n"
    "3. Do not delay treatment\n\n"
    "This AI cannot provide emergency medical care. "
    "Professional medical evaluation is urgently required."
)

DEFAULT_DISCLAIMER = (
    "This AI-generated information is for clinical decision support only. "
    "Always consult with qualified healthcare professionals for definitive medical decisions."
)


class Settings(BaseSettings):
    # --------------------
    # App
    # --------------------
    PROJECT_NAME: str = "Clinical Assist"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # --------------------
    # Database
    # --------------------
    DATABASE_URL: str = "sqlite:///./clinassist.db"

    # --------------------
    # Provider routing
    # --------------------
    PRIMARY_PROVIDER: ProviderId = "gemini"
    FALLBACK_PROVIDER: ProviderId = "huggingface"
    FALLBACK_ENABLED: bool = True
    PER_CALL_TIMEOUT_SECONDS: float = 30
    PROBE_TIMEOUT_SECONDS: float = 10

    # --------------------
    # Gemini
    # --------------------
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-pro"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TOP_P: float = 0.8
    GEMINI_TOP_K: int = 40

    # --------------------
    # Hugging Face
    # --------------------
    HF_API_TOKEN: str = ""
    HF_MODEL: str = "mistralai/Mistral-7B-Instruct-v0.2"
    HF_BASE_URL: str = "https://router.huggingface.co/v1"

    # --------------------
    # OpenAI
    # --------------------
    OPENAI_BASE_URL: str | None = None
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    # --------------------
    # Clinical safety
    # --------------------
    EMERGENCY_KEYWORDS: str = DEFAULT_EMERGENCY_KEYWORDS
    EMERGENCY_RESPONSE: str = DEFAULT_EMERGENCY_RESPONSE
    DISCLAIMER: str = DEFAULT_DISCLAIMER
    HISTORY_WINDOW: int = 6

    # --------------------
    # Background enrichment
    # --------------------
    SUMMARY_WORKERS: int = 2

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def emergency_keywords(self) -> tuple[str, ...]:
        return parse_keywords(self.EMERGENCY_KEYWORDS)


def parse_keywords(raw: str) -> tuple[str, ...]:
    """
    Split a comma-separated keyword list into lower-cased, non-empty phrases.
    """
    return tuple(k.strip().lower() for k in (raw or "").split(",") if k.strip())


settings = Settings()

if settings.HISTORY_WINDOW < 0:
    raise RuntimeError("HISTORY_WINDOW must not be negative")
