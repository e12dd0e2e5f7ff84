"""
Utilities package

Modules used throughout the application
"""

from src.utils.config import ConfigManager
from src.utils.logger import get_logger, setup_logger, set_global_log_level

__all__ = [
    'ConfigManager',
    'get_logger',
    'setup_logger',
    'set_global_log_level',
]
