"""Stock Catalog - hierarchical ERP catalog with balances, preferences and reorder points."""

from stock_catalog.utils.constants import APP_VERSION

__version__ = APP_VERSION
