"""orderhub - order ingestion and lookup service"""

__version__ = "1.0.0"
