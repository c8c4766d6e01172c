# WORKFLOW: Core configuration management for the Shipment Compliance API.
# Used by: All modules throughout the application
# Configuration includes:
# - Database connection settings (rule repository tables)
# - Rule data source (seed JSON file or SQL tables)
# - Advisory classifier settings (Ollama, model name, timeout)
# - Evaluation thresholds (refresh threshold, confidence decay, high-value limit)
# - API settings (CORS, server)
# - Logging configuration
#
# Loaded at startup and used by all services for consistent configuration.

from pathlib import Path
from typing import Dict

from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./compliance.db"

    # Rule data
    rule_source: str = "json"  # "json" or "sql"
    rules_data_path: str = str(PROJECT_ROOT / "data" / "compliance_rules.json")
    missing_rule_refresh_threshold: int = 3

    # Advisory classifier (LLM)
    ollama_url: str = "http://localhost:11434"
    llm_model: str = "llama2:7b"
    advisory_enabled: bool = False
    advisory_timeout_seconds: float = 8.0

    # Evaluation
    default_confidence: Dict[str, float] = {
        "scan": 0.9,
        "manual": 0.85,
        "batch-row": 0.8,
    }
    low_confidence_threshold: float = 0.7
    confidence_decay_non_compliant: float = 0.2
    confidence_decay_warning: float = 0.1
    confidence_floor: float = 0.2
    high_value_threshold: float = 1000.0

    # Batch processing
    batch_concurrency: int = 8

    # API
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Shipment Compliance API"
    version: str = "1.0.0"

    # Environment
    environment: str = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"

    # CORS
    allowed_origins: list[str] = ["*"]
    allowed_methods: list[str] = ["*"]
    allowed_headers: list[str] = ["*"]

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8001

    class Config:
        env_file = ".env"
        case_sensitive = False
        protected_namespaces = ('settings_',)


settings = Settings()
