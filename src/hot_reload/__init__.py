"""
Development-time file watcher that tells connected clients to reload.
"""

from hot_reload.core.models import RELOAD_SIGNAL, ListenerState
from hot_reload.listener import Listener, ProcessReloader
from hot_reload.notifier import Notifier

__all__ = ["RELOAD_SIGNAL", "ListenerState", "Listener", "ProcessReloader", "Notifier"]
__version__ = "1.0.0"
