"""Configuration module for the partner hub BFF."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
