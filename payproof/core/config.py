"""
Application configuration loaded from environment variables.

Uses pydantic-settings for type-safe env var parsing with automatic
.env file loading. All secrets are injected via environment — never
hard-coded.

To extend: add new fields here and document them in .env.example.
See https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Used when VISION_MODELS_STR is unset or blank.
DEFAULT_VISION_MODELS = ["gemini-2.5-flash", "gemini-2.5-pro"]


class Settings(BaseSettings):
    # ─── Core ──────────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False

    # ─── CORS ──────────────────────────────────────────────────────
    # Comma-separated allowed origins for the upload UI.
    cors_origins_str: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins_str.split(",") if o.strip()]

    # ─── Vision backends ───────────────────────────────────────────
    # "gemini"  → Google Generative AI SDK, needs GEMINI_API_KEY
    # "gateway" → OpenAI-compatible chat completions gateway, needs AI_GATEWAY_API_KEY
    vision_provider: str = "gemini"

    gemini_api_key: str = ""
    ai_gateway_api_key: str = ""
    ai_gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"

    # Comma-separated model identifiers; one parallel request per model.
    # Gateway example: "google/gemini-2.5-flash,openai/gpt-5-mini"
    vision_models_str: str = ",".join(DEFAULT_VISION_MODELS)

    @property
    def vision_models(self) -> list[str]:
        models = [m.strip() for m in self.vision_models_str.split(",") if m.strip()]
        return models or list(DEFAULT_VISION_MODELS)

    # A backend slower than this is dropped from aggregation for the request.
    vision_timeout_seconds: float = 25.0
    vision_temperature: float = 0.3
    vision_max_tokens: int = 1000

    # When True, vision calls return a canned "nothing found" response.
    # Handy for local dev of the UI without spending API credit.
    ai_mock_mode: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Don't fail on unknown env vars
    )


# Module-level singleton: import this everywhere instead of instantiating Settings()
settings = Settings()
