from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "QTICraft"
    debug: bool = False

    # Remote QTI service
    qti_server_url: str = "https://qti.alpha-1edtech.ai/api"
    qti_token_url: str = ""
    qti_client_id: str = ""
    qti_client_secret: str = ""
    request_timeout_seconds: float = 30.0

    # Remote round-trip validation
    temp_identifier_prefix: str = "nice-tmp_"
    validation_batch_size: int = 10
    validation_batch_delay_seconds: float = 1.0

    # OpenAI (structured-output generation, upstream of the compiler)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"

    # Telemetry
    enable_telemetry_log: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
