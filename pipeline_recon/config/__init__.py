"""Configuration management components."""

from .config_manager import ConfigManager, get_config_manager, reset_config_manager
from .recon_defaults import ReconDefaults

__all__ = ['ConfigManager', 'get_config_manager', 'reset_config_manager', 'ReconDefaults']
