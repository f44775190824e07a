"""Configuration management for FinFlow."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # LLM Configuration
    llm_provider: Literal["ollama", "openai", "gemini"] = "gemini"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash-latest"

    # Structuring call
    structuring_timeout: float = 120.0
    structuring_max_tokens: int = 8192
    structuring_max_retries: int = 2
    backoff_base: float = 2.0

    # Import pipeline
    max_chunk_size: int = 50_000
    min_statement_length: int = 100
    happy_path_confidence: float = 0.7
    repaired_confidence: float = 0.5
    pattern_confidence: float = 0.4
    unknown_direction_policy: Literal["debit", "drop"] = "debit"
    enable_pattern_fallback: bool = False

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # LLM_PROVIDER and llm_provider both work
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def active_api_key(self) -> str:
        """API key for the configured provider (empty for Ollama)."""
        if self.llm_provider == "openai":
            return self.openai_api_key
        if self.llm_provider == "gemini":
            return self.gemini_api_key
        return ""

    def log_config(self) -> None:
        """Log current configuration with sensitive values redacted."""
        import os

        def _redact(key: str) -> str:
            if not key:
                return "✗ Not set"
            return "✓ Set (" + key[:4] + "..." + key[-4:] + ")"

        print("\n" + "=" * 60)
        print("📋 CONFIGURATION LOADED")
        print("=" * 60)

        env_llm_provider = os.getenv("LLM_PROVIDER")
        env_file_path = os.path.join(os.getcwd(), ".env")

        print(f"Working Directory:   {os.getcwd()}")
        print(f".env file exists:    {os.path.exists(env_file_path)}")
        if env_llm_provider:
            print(f"⚠️  ENV VAR override:   LLM_PROVIDER={env_llm_provider}")
        print("-" * 60)

        print(f"LLM Provider:        {self.llm_provider}")
        print(f"OpenAI API Key:      {_redact(self.openai_api_key)}")
        print(f"OpenAI Model:        {self.openai_model}")
        print(f"Gemini API Key:      {_redact(self.gemini_api_key)}")
        print(f"Gemini Model:        {self.gemini_model}")
        print(f"Ollama Host:         {self.ollama_host}")
        print(f"Ollama Model:        {self.ollama_model}")
        print(f"Retries / Backoff:   {self.structuring_max_retries} / {self.backoff_base}s^n")
        print(f"Max Chunk Size:      {self.max_chunk_size} chars")
        print(f"Unknown Direction:   {self.unknown_direction_policy}")
        print(f"Pattern Fallback:    {self.enable_pattern_fallback}")
        print(f"API Host:            {self.api_host}:{self.api_port}")
        print("=" * 60 + "\n")


# Global settings instance
settings = Settings()
