"""note analytics: engagement metric sync and cumulative import reconciliation."""

__version__ = "0.1.0"
