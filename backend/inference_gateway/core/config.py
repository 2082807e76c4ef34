"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.

Services never read the environment themselves: the hosting process builds a
Settings object (usually through get_settings()) and passes it to each
service constructor, so tests can hand in their own instance.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # AWS — shared transport settings
    # ------------------------------------------------------------------
    aws_region:     str = "us-east-1"
    bedrock_region: str = ""            # empty = use aws_region

    # botocore retry policy (the gateway itself never retries)
    aws_max_attempts: int = 3
    aws_retry_mode:   str = "adaptive"  # legacy | standard | adaptive

    # ------------------------------------------------------------------
    # SageMaker — default endpoints for derived tasks
    # ------------------------------------------------------------------
    sagemaker_document_classifier_endpoint: str = ""
    sagemaker_ner_endpoint:                 str = ""
    sagemaker_embedding_endpoint:           str = ""
    sagemaker_sentiment_endpoint:           str = ""

    # ------------------------------------------------------------------
    # Batch inference
    # ------------------------------------------------------------------
    batch_inference_size:        int = 10
    batch_inference_concurrency: int = 1   # 1 = sequential chunks

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def effective_bedrock_region(self) -> str:
        return self.bedrock_region or self.aws_region


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
