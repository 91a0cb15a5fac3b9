"""
Configuration module for the Nursing Knowledge Chatbot

This module handles all configuration settings including environment variables,
storage backend selection, and application settings using Pydantic Settings.
"""

import os
from typing import Dict, List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings and configuration."""

    # Deployment environment ("development" or "production")
    environment: str = Field(default="development")

    # Knowledge Store Configuration
    knowledge_backend: str = Field(default="memory")  # "memory" or "chroma"
    chroma_persist_directory: str = Field(default="./chroma_db")
    chroma_collection_name: str = Field(default="nursing_knowledge")
    keyword_index_key: str = Field(default="keyword-index")
    knowledge_key_prefix: str = Field(default="knowledge:")

    # Retrieval Configuration
    keyword_match_policy: str = Field(default="longest")  # "longest" or "insertion"
    departments: List[str] = Field(default=["icu", "er", "ward", "or", "opd", "nurse"])
    department_names: Dict[str, str] = Field(
        default={
            "icu": "ICU Intensive Care",
            "er": "ER Emergency",
            "ward": "Ward",
            "or": "OR Operating Room",
            "opd": "OPD Outpatient",
            "nurse": "Nursing Department (General)",
        }
    )

    # Memory Configuration
    max_conversation_history: int = Field(default=10)
    session_backend: str = Field(default="memory")  # "memory" or "store"

    # Application Configuration
    app_host: str = Field(default="0.0.0.0")
    app_port: int = Field(default=8000)
    debug: bool = Field(default=False)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file: Optional[str] = Field(default="nursing_chatbot.log")

    # API Configuration
    api_title: str = Field(default="Nursing Knowledge Chatbot API")
    api_description: str = Field(
        default="Keyword-indexed nursing knowledge base with per-user conversation history"
    )
    api_version: str = Field(default="1.0.0")

    # CORS Configuration
    allowed_origins: List[str] = Field(
        default=["http://localhost:8501", "http://localhost:3000"]
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()


def validate_configuration(config: Optional[Settings] = None) -> bool:
    """
    Validate that all required configuration is present and valid.

    Args:
        config: Settings to validate, defaults to the global settings

    Returns:
        bool: True if configuration is valid, False otherwise
    """
    config = config or settings

    if config.knowledge_backend not in ("memory", "chroma"):
        print(f"ERROR: Unknown KNOWLEDGE_BACKEND '{config.knowledge_backend}'")
        return False

    if config.session_backend not in ("memory", "store"):
        print(f"ERROR: Unknown SESSION_BACKEND '{config.session_backend}'")
        return False

    if config.keyword_match_policy not in ("longest", "insertion"):
        print(f"ERROR: Unknown KEYWORD_MATCH_POLICY '{config.keyword_match_policy}'")
        return False

    if config.max_conversation_history < 1:
        print("ERROR: MAX_CONVERSATION_HISTORY must be at least 1")
        return False

    try:
        if config.knowledge_backend == "chroma":
            os.makedirs(config.chroma_persist_directory, exist_ok=True)
    except OSError as e:
        print(f"Configuration validation failed: {e}")
        return False

    return True


# Global settings instance
settings = get_settings()


if __name__ == "__main__":
    # Test configuration
    if validate_configuration():
        print("✅ Configuration is valid")
        print(f"Environment: {settings.environment}")
        print(f"Knowledge backend: {settings.knowledge_backend}")
        print(f"API Host: {settings.app_host}:{settings.app_port}")
    else:
        print("❌ Configuration validation failed")
