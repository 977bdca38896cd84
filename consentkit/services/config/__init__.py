"""
Config Service

Configuration acquisition:
- sync.py - Fetch with retry, cache fallback, cache refresh
- validator.py - Structural and semantic validation
"""

from .sync import ConfigSyncer
from .validator import ConfigValidator

__all__ = ["ConfigSyncer", "ConfigValidator"]
