"""Shop API: accounts, product catalog and atomic order placement."""

__version__ = "0.1.0"
