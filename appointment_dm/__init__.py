"""Voice-driven slot-filling dialogue manager for booking appointments."""

__version__ = "0.1.0"
