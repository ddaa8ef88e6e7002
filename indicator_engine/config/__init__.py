"""
Indicator Engine
Configuration Module
"""
from .settings import EngineSettings, Settings, get_settings

__all__ = ["EngineSettings", "Settings", "get_settings"]
