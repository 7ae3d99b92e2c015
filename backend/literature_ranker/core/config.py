from pathlib import Path
from typing import Literal, Optional
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )
    
    project_name: str = "Literature Ranker"
    log_level: str = "INFO"
    
    # "hashing" needs no network access; "openai" calls the embeddings API
    embedding_provider: Literal["hashing", "openai"] = "hashing"
    # Defaults to the provider's own model when unset
    embedding_model: Optional[str] = None
    embedding_dimensions: int = Field(default=384, ge=8, le=4096)
    openai_api_key: Optional[SecretStr] = Field(default=None, description="OpenAI API key for embedding calls")
    
    embedding_cache_max_entries: int = Field(default=10_000, ge=1)
    embedding_cache_ttl_hours: int = Field(default=24, ge=1)
    embedding_max_workers: int = Field(default=4, ge=1, le=64)
    embedding_timeout_seconds: float = Field(default=30.0, gt=0)
    embedding_persistent_cache: bool = False
    
    redis_host: str = "localhost"
    redis_port: int = 6379
    
    semantic_top_k: int = Field(default=1200, ge=1)
    semantic_max_failure_ratio: float = Field(default=0.5, ge=0.0, le=1.0)
    # FlashRank cross-encoder blended with cosine similarity
    semantic_cross_encoder: bool = False
    cross_encoder_model: Optional[str] = None
    cross_encoder_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    
    # Optional JSON file replacing the built-in purpose table
    purpose_config_file: Optional[Path] = None
    
    # slowapi limit strings; runs carry whole candidate pools, so they get less headroom than reads
    rate_limit_enabled: bool = True
    rate_limit_default: str = "120/minute"
    rate_limit_run: str = "30/minute"
    rate_limit_stream: str = "10/minute"
    # Key clients by the first X-Forwarded-For hop (only behind a trusted proxy)
    rate_limit_trust_forwarded: bool = False
    
    @property
    def PROJECT_NAME(self) -> str:
        return self.project_name
    
    @property
    def LOG_LEVEL(self) -> str:
        return self.log_level
    
    @property
    def OPENAI_API_KEY(self) -> Optional[str]:
        if self.openai_api_key:
            return self.openai_api_key.get_secret_value()
        return None
    
    @property
    def EMBEDDING_PROVIDER(self) -> str:
        return self.embedding_provider
    
    @property
    def EMBEDDING_MODEL(self) -> Optional[str]:
        return self.embedding_model
    
    @property
    def EMBEDDING_DIMENSIONS(self) -> int:
        return self.embedding_dimensions
    
    @property
    def REDIS_HOST(self) -> str:
        return self.redis_host
    
    @property
    def REDIS_PORT(self) -> int:
        return self.redis_port
    
    @property
    def SEMANTIC_TOP_K(self) -> int:
        return self.semantic_top_k
    
    @property
    def PURPOSE_CONFIG_FILE(self) -> Optional[Path]:
        return self.purpose_config_file


settings = Settings()
