"""assetex: digital-asset registry and fixed-price exchange ledger."""

__version__ = "0.1.0"
