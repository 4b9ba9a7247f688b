"""
Configuration adapters - load AppConfig from files and the environment.
"""

from .env_provider import EnvironmentConfigProvider
from .file_provider import FileConfigProvider, config_from_dict


__all__ = [
    "EnvironmentConfigProvider",
    "FileConfigProvider",
    "config_from_dict",
]
