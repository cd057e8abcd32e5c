"""LinkBridge - linked-device session relay and document delivery queue."""

__version__ = "0.1.0"
