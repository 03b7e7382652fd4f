from enum import Enum

# The only application-level message on the wire.
RELOAD_SIGNAL = "reload"


class ListenerState(Enum):
    """Connection states of a listener."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
