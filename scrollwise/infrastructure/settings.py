"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os

# Environment
ENV = os.getenv("SCROLLWISE_ENV", "development")

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("SCROLLWISE_LOG_LEVEL", "INFO")

# Text generation (OpenAI-compatible chat completions; Groq by default)
TEXTGEN_BASE_URL = os.getenv("TEXTGEN_BASE_URL", "https://api.groq.com/openai/v1")
TEXTGEN_MODEL = os.getenv("TEXTGEN_MODEL", "llama-3.3-70b-versatile")
TEXTGEN_TEMPERATURE = float(os.getenv("TEXTGEN_TEMPERATURE", "0.7"))
TEXTGEN_MAX_TOKENS = int(os.getenv("TEXTGEN_MAX_TOKENS", "512"))

# Frontend / extension origins allowed by CORS (comma-separated)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
EXTENSION_URLS = os.getenv("EXTENSION_URLS", "")


def is_development() -> bool:
    """Check if running in development"""
    return ENV == "development"


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with fallback"""
    return os.getenv(key, default)
