"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_SYSTEM_PROMPT = """
Você é a Aura, uma conselheira emocional e amiga próxima.
Seu objetivo é melhorar a vida, as emoções e o bem-estar do usuário.
Diretrizes:
1. Empatia Profunda: Valide sempre os sentimentos do usuário.
2. Sabedoria Prática: Ofereça soluções acionáveis, não apenas clichês.
3. Educadora: Ensine conceitos de inteligência emocional, psicologia positiva e mindfulness de forma leve.
4. Linguagem: Use um tom caloroso, amigável e informal (em Português do Brasil).
5. Interatividade: Faça perguntas para entender melhor a situação.
6. Limites: Se o usuário demonstrar risco de autoagressão, recomende ajuda profissional e linhas de apoio (CVV 188 no Brasil).
""".strip()


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Text completion (OpenRouter-compatible endpoint)
    openrouter_api_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("OPENROUTER_API_KEY", "openrouter_api_key"),
    )
    openrouter_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://openrouter.ai/api/v1"),
        validation_alias=AliasChoices("OPENROUTER_BASE_URL", "openrouter_base_url"),
    )
    openrouter_app_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices(
            "OPENROUTER_APP_URL",
            "HTTP_REFERER",
            "openrouter_app_url",
        ),
    )
    openrouter_app_name: Optional[str] = Field(
        default="Aura",
        validation_alias=AliasChoices(
            "OPENROUTER_APP_TITLE",
            "X_TITLE",
            "openrouter_app_name",
        ),
    )
    chat_model: str = Field(
        default="google/gemini-3-flash-preview",
        validation_alias=AliasChoices("AURA_CHAT_MODEL", "chat_model"),
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        validation_alias=AliasChoices("AURA_SYSTEM_PROMPT", "system_prompt"),
    )
    temperature: float = Field(
        default=0.8,
        ge=0.0,
        le=2.0,
        validation_alias=AliasChoices("AURA_TEMPERATURE", "temperature"),
    )
    top_p: float = Field(
        default=0.95,
        gt=0.0,
        le=1.0,
        validation_alias=AliasChoices("AURA_TOP_P", "top_p"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("OPENROUTER_TIMEOUT", "request_timeout"),
        ge=1,
    )

    # Speech synthesis (Gemini TTS)
    gemini_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY", "gemini_api_key"),
    )
    gemini_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl(
            "https://generativelanguage.googleapis.com/v1beta"
        ),
        validation_alias=AliasChoices("GEMINI_BASE_URL", "gemini_base_url"),
    )
    tts_model: str = Field(
        default="gemini-2.5-flash-preview-tts",
        validation_alias=AliasChoices("AURA_TTS_MODEL", "tts_model"),
    )
    tts_voice: str = Field(
        default="Kore",
        validation_alias=AliasChoices("AURA_TTS_VOICE", "tts_voice"),
    )
    tts_style_prefix: str = Field(
        default="Diga de forma carinhosa e natural: ",
        validation_alias=AliasChoices("AURA_TTS_STYLE_PREFIX", "tts_style_prefix"),
    )
    tts_timeout: float = Field(
        default=30.0,
        ge=1,
        validation_alias=AliasChoices("AURA_TTS_TIMEOUT", "tts_timeout"),
    )

    # Persistence
    state_db_path: Path = Field(
        default_factory=lambda: Path("data/aura_state.db"),
        validation_alias=AliasChoices("AURA_STATE_DB_PATH", "state_db_path"),
    )
    display_name: str = Field(
        default="Amiga",
        validation_alias=AliasChoices("AURA_DISPLAY_NAME", "display_name"),
    )

    # Speech pipeline
    segment_min_chars: int = Field(
        default=15,
        ge=0,
        validation_alias=AliasChoices("AURA_SEGMENT_MIN_CHARS", "segment_min_chars"),
    )
    audio_output_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "AURA_AUDIO_OUTPUT_ENABLED", "audio_output_enabled"
        ),
    )
    audio_device: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AURA_AUDIO_DEVICE", "audio_device"),
        description="Output device index or name passed to sounddevice.",
    )
    start_muted: bool = Field(
        default=False,
        validation_alias=AliasChoices("AURA_START_MUTED", "start_muted"),
    )

    @property
    def audio_device_selector(self) -> int | str | None:
        """Return the configured device as sounddevice expects it."""

        if self.audio_device is None or not self.audio_device.strip():
            return None
        value = self.audio_device.strip()
        return int(value) if value.isdigit() else value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["DEFAULT_SYSTEM_PROMPT", "PROJECT_ROOT", "Settings", "get_settings"]
