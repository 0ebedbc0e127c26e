import os
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Startup Analyst"
    API_V1_STR: str = "/api"

    # Environment detection
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None  # Console only when unset

    # CORS Settings
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # LLM / OCR upstream (Ollama)
    OLLAMA_HOST: str = "http://localhost:11434"
    LLM_MODEL: str = "gemma3:12b"
    VISION_MODEL: str = "gemma3:12b"
    LLM_TIMEOUT_SECONDS: float = 60.0
    OCR_TIMEOUT_SECONDS: float = 60.0
    LLM_MAX_TOKENS: int = 8192
    LLM_TEMPERATURE: float = 0.3
    LLM_CONTEXT_WINDOW: int = 32768

    # Text extraction
    MIN_TEXT_LAYER_CHARS: int = 50
    EXTRACTION_CONCURRENCY: int = 4
    MAX_UPLOAD_SIZE: int = 20 * 1024 * 1024  # 20MB per document
    PDF_RENDER_DPI: int = 150

    # Consolidation (0 = no per-document truncation)
    CONSOLIDATION_MAX_CHARS_PER_DOCUMENT: int = 0

    # Competitor discovery (Google Custom Search compatible)
    SEARCH_API_URL: str = "https://www.googleapis.com/customsearch/v1"
    SEARCH_API_KEY: str = ""
    SEARCH_ENGINE_ID: str = ""
    SEARCH_TIMEOUT_SECONDS: float = 15.0

    # Batch analysis
    BATCH_DATA_PATH: str = "./Company Data"
    BATCH_COMPANY_DELAY_SECONDS: float = 1.0
    BATCH_REPORT_FILENAME: str = "batch-analysis-report.json"

    # Investment memo
    MEMO_SECTION_CONCURRENCY: int = 4
    MEMO_MAX_TOKENS: int = 2000

    # Due diligence assistant
    DUE_DILIGENCE_RELEVANCE_THRESHOLD: float = 0.3
    DUE_DILIGENCE_MAX_CHUNKS: int = 5

    class Config:
        env_file = ".env"
        extra = "ignore"

def get_environment() -> str:
    """Detect current environment from ENV variable or default to development"""
    return os.getenv("ENVIRONMENT", "development")

def load_environment_config() -> Settings:
    """Load configuration based on current environment"""
    environment = get_environment()

    # environments/<name>.env takes precedence over the local .env
    env_file = os.path.join("environments", f"{environment}.env")
    if os.path.exists(env_file):
        return Settings(_env_file=env_file)

    # Fall back to default settings with .env
    return Settings()

# Create settings instance with environment detection
settings = load_environment_config()
