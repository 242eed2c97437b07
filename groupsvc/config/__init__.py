"""Configuration module for the group service."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
