"""Payment request creation and webhook reconciliation service."""

__version__ = "1.0.0"
