"""ShipIt - chat-driven code changes delivered as GitHub pull requests."""

__version__ = "0.1.0"
