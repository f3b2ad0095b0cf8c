"""Configuration module for riskledger."""

from riskledger.config.settings import Environment, Settings, get_settings

__all__ = ["Settings", "get_settings", "Environment"]
