"""
Slide Sync Package

Keeps the slides of a presentation in step with a list of slide documents,
re-rendering only the slides whose content changed.
"""

from .engine import EngineContext, ReconciliationEngine, SyncReport
from .plugin import SlideSyncPlugin
from .config import SyncConfig
from .models import SlideDocument

__all__ = ['EngineContext', 'ReconciliationEngine', 'SyncReport', 'SlideSyncPlugin', 'SyncConfig', 'SlideDocument']
