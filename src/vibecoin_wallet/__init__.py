"""vibecoin-wallet: local key custody and transaction signing for coin launches."""

__version__ = "0.3.0"
