# File: docsearch/core/config.py
import sys
import logging
from typing import Dict, Any, Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env', env_prefix='DOCSEARCH_', env_file_encoding='utf-8',
        case_sensitive=False, extra='ignore'
    )

    PROJECT_NAME: str = "Document Indexing & Search Worker"
    SERVICE_NAME: str = "docsearch"
    LOG_LEVEL: str = "INFO"
    METRICS_PORT: int = 8001

    # --- Kafka ---
    KAFKA_BOOTSTRAP_SERVERS: str = Field(default="localhost:9092", description="Comma-separated list of Kafka bootstrap servers.")
    KAFKA_CONSUMER_GROUP_ID: str = Field(default="text_embedding_workers", description="Kafka consumer group ID.")
    KAFKA_INPUT_TOPIC: str = Field(default="document.text.embedding", description="Topic carrying document embedding jobs.")
    KAFKA_SUMMARY_TOPIC: str = Field(default="document.summarization", description="Topic to hand extracted text to the summarizer.")
    KAFKA_AUTO_OFFSET_RESET: str = "earliest"
    KAFKA_MAX_IN_FLIGHT: int = Field(default=4, ge=1, description="Maximum number of messages processed concurrently.")
    KAFKA_POLL_TIMEOUT_SECONDS: float = 1.0
    KAFKA_MAX_DELIVERY_ATTEMPTS: int = Field(default=5, ge=1, description="Attempts per message before it is logged, dropped and committed past.")
    KAFKA_REDELIVERY_BACKOFF_SECONDS: float = Field(default=1.0, ge=0, description="Delay before the first redelivery; doubles per attempt.")
    KAFKA_REDELIVERY_BACKOFF_MAX_SECONDS: float = Field(default=30.0, ge=0)

    # --- Object storage (S3 / MinIO) ---
    STORAGE_ENDPOINT_URL: Optional[str] = Field(default="http://localhost:9000", description="S3-compatible endpoint; None for AWS.")
    STORAGE_ACCESS_KEY: Optional[SecretStr] = None
    STORAGE_SECRET_KEY: Optional[SecretStr] = None
    STORAGE_REGION: str = "us-east-1"
    STORAGE_BUCKET_NAME: str = Field(default="documents", description="Default bucket when a job does not name one.")

    # --- Embedding model ---
    EMBEDDING_TASK: str = "feature-extraction"
    EMBEDDING_MODEL_NAME: str = "BAAI/bge-m3"
    EMBEDDING_DEVICE: str = "cpu"
    MODELS_PATH: str = Field(default="/app/models", description="Local on-disk model cache.")
    MODEL_MAX_RETRIES: int = Field(default=3, ge=0)
    MODEL_RETRY_DELAY_SECONDS: float = Field(default=5.0, ge=0)
    MODEL_FALLBACKS: Dict[str, str] = {
        "feature-extraction": "BAAI/bge-large-en-v1.5",
    }

    # --- Ingestion ---
    CHUNK_MAX_SIZE: int = Field(default=512, gt=0, description="Maximum characters per chunk.")
    EMBEDDING_BATCH_SIZE: int = Field(default=8, gt=0)
    DETERMINISTIC_POINT_IDS: bool = False
    SUMMARIZATION_ENABLED: bool = True

    # --- Vector index (Milvus) ---
    MILVUS_URI: str = "http://localhost:19530"
    MILVUS_TOKEN: Optional[SecretStr] = None
    MILVUS_GRPC_TIMEOUT: int = 10
    MILVUS_COLLECTION_NAME: str = "documents_text"
    EMBEDDING_DIMENSION: int = 1024
    MILVUS_METRIC_TYPE: str = "COSINE"
    MILVUS_TEXT_FIELD_MAX_LENGTH: int = 8192
    MILVUS_INDEX_PARAMS: Dict[str, Any] = {
        "index_type": "HNSW",
        "metric_type": "COSINE",
        "params": {"M": 16, "efConstruction": 200},
    }

    # --- Document store callbacks ---
    DOCUMENT_STORE_BASE_URL: str = "http://localhost:8000/api/v1"
    HTTP_CLIENT_TIMEOUT: float = 30.0
    HTTP_CLIENT_MAX_RETRIES: int = 3
    HTTP_CLIENT_BACKOFF_FACTOR: float = 0.5

    # --- PostgreSQL ---
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: SecretStr = SecretStr("postgres")
    POSTGRES_DB: str = "documents"
    POSTGRES_POOL_MIN_SIZE: int = 2
    POSTGRES_POOL_MAX_SIZE: int = 10

    # --- Search ---
    SEARCH_CASCADE_FAIL_FAST: bool = True
    SEARCH_TRIGRAM_MIN_SIMILARITY: float = 0.1
    SEARCH_TRIGRAM_SESSION_THRESHOLD: float = 0.2

    @field_validator("LOG_LEVEL")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        normalized_v = v.upper()
        if normalized_v not in valid_levels:
            raise ValueError(f"Invalid LOG_LEVEL '{v}'. Must be one of {valid_levels}")
        return normalized_v

    @field_validator("MILVUS_METRIC_TYPE")
    @classmethod
    def check_metric_type(cls, v: str) -> str:
        normalized_v = v.upper()
        if normalized_v not in ("COSINE", "IP", "L2"):
            raise ValueError(f"Unsupported MILVUS_METRIC_TYPE '{v}'.")
        return normalized_v

# Basic logging for the loading phase
temp_log_config = logging.getLogger("docsearch.config.loader")
if not temp_log_config.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(levelname)-8s [%(name)s] %(message)s')
    handler.setFormatter(formatter)
    temp_log_config.addHandler(handler)
    temp_log_config.setLevel(logging.INFO)

try:
    temp_log_config.info("Loading docsearch settings...")
    settings = Settings()
    temp_log_config.info("--- docsearch Settings Loaded ---")
    temp_log_config.info(f"  PROJECT_NAME: {settings.PROJECT_NAME}")
    temp_log_config.info(f"  LOG_LEVEL: {settings.LOG_LEVEL}")
    temp_log_config.info(f"  KAFKA_INPUT_TOPIC: {settings.KAFKA_INPUT_TOPIC}")
    temp_log_config.info(f"  EMBEDDING_MODEL_NAME: {settings.EMBEDDING_MODEL_NAME}")
    temp_log_config.info(f"  MILVUS_COLLECTION_NAME: {settings.MILVUS_COLLECTION_NAME} (dim={settings.EMBEDDING_DIMENSION})")
    temp_log_config.info(f"  POSTGRES_SERVER: {settings.POSTGRES_SERVER}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}")
    temp_log_config.info("---------------------------------------------")
except Exception as e:
    temp_log_config.critical(f"FATAL: docsearch configuration validation failed:\n{e}")
    sys.exit("FATAL: Invalid configuration. Check logs.")
