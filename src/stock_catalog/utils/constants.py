"""
Constants for the Stock Catalog application.

This module defines all system-wide constants including:
- Application metadata
- Preference sections
- Search and debounce tunables
- ERP connection defaults
- Well-known catalog and warehouse codes
"""

from typing import Dict, FrozenSet

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Stock Catalog"
APP_VERSION = "0.1.0"
DATABASE_FILENAME = "stock_catalog.db"
DATABASE_VERSION = "1.0"

# ============================================================================
# Preference Sections
# ============================================================================

# Preferences are stored per view section; the same group can be a favorite
# in the balance view and hidden in the nomenclature view.
SECTION_BALANCE = "balance"
SECTION_NOMENCLATURE = "nomenclature"
VALID_SECTIONS: FrozenSet[str] = frozenset({SECTION_BALANCE, SECTION_NOMENCLATURE})

# ============================================================================
# Search
# ============================================================================

SEARCH_DEBOUNCE_MS = 500

# Minimum stripped query length before a search becomes active
MIN_SEARCH_LENGTH_BALANCE = 1
MIN_SEARCH_LENGTH_NOMENCLATURE = 3
MIN_SEARCH_LENGTH: Dict[str, int] = {
    SECTION_BALANCE: MIN_SEARCH_LENGTH_BALANCE,
    SECTION_NOMENCLATURE: MIN_SEARCH_LENGTH_NOMENCLATURE,
}

# Locale used for alphabetical ordering of catalog names
COLLATION_LOCALE = "ru"

# ============================================================================
# ERP
# ============================================================================

ERP_URLS: Dict[str, str] = {
    "test": "https://api.module.team/module.team/hs/",
    "production": "https://api.module.team/main/hs/",
}

ERP_REQUEST_TIMEOUT_SECONDS = 120.0
ERP_RETRY_DELAY_SECONDS = 2.0
ERP_ERROR_BODY_LIMIT = 500

ERP_CATALOG_ENDPOINT = "warehouse/get/balances"
ERP_WAREHOUSES_ENDPOINT = "warehouses/get/list"

# ============================================================================
# Well-known Codes
# ============================================================================

# Root group of the reorder-point picker: only this branch holds stock materials
MATERIALS_GROUP_CODE = "00000007716"

# The "available balance" view counts stock on the main warehouse only
MAIN_WAREHOUSE_CODE = "000000007"
