"""
Runtime support: error model and configuration.
"""

from .errors import *
from .config import KdfParams, StorageConfig, HOME_ENV_VAR
