"""Configuration module for the study search API."""

from .settings import Settings, get_settings
from .llm_providers import get_llm, is_azure_configured

__all__ = [
    "Settings",
    "get_settings",
    "get_llm",
    "is_azure_configured",
]
