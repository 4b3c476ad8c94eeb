from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "StuSave API"
    log_level: str = "INFO"
    gemini_api_key: str = ""
    # must support generateContent with JSON output; override via GEMINI_MODEL
    gemini_model: str = "gemini-2.5-flash"
    # Comma-separated origins for CORS. The scanning device calls from another origin.
    cors_allow_origins: str = "*"

    # Origin embedded in transfer QR codes, and the API the client talks to.
    app_base_url: str = "http://localhost:9002/"
    api_base_url: str = "http://localhost:8000"

    transfer_ttl_seconds: float = 300
    transfer_sweep_interval_seconds: float = 60
    transfer_id_length: int = 6
    transfer_id_alphabet: str = "abcdefghijklmnopqrstuvwxyz0123456789"
    transfer_id_max_attempts: int = 16

    state_file: str = "stusave_data.json"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
