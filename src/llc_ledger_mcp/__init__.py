"""LLC Ledger MCP: reconciles bank provider accounts with locally edited account records."""

__version__ = "0.1.0"
