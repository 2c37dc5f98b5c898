"""
Constants for the Larder stock allocation engine.

This module defines all system-wide constants including:
- Application metadata
- Unit families and base units
- Currency defaults
- Tunable defaults for configuration
"""

from typing import Dict

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Larder"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "larder.db"

# ============================================================================
# Units
# ============================================================================

FAMILY_MASS = "mass"
FAMILY_VOLUME = "volume"
FAMILY_COUNT = "count"

# Units scaled into their base unit (lower-case lookup keys)
SCALED_UNITS: Dict[str, str] = {
    "g": "Kg",
    "ml": "L",
}

# Units already expressed in a base unit
BASE_UNITS: Dict[str, str] = {
    "kg": "Kg",
    "l": "L",
}

UNIT_FAMILIES: Dict[str, str] = {
    "g": FAMILY_MASS,
    "kg": FAMILY_MASS,
    "ml": FAMILY_VOLUME,
    "l": FAMILY_VOLUME,
}

# g -> Kg and ml -> L
SCALE_FACTOR = 1000

# ============================================================================
# Currency
# ============================================================================

DEFAULT_BASE_CURRENCY = "RON"
DEFAULT_RATE_SOURCE_URL = "https://www.bnr.ro/nbrfxrates.xml"

# ============================================================================
# Configuration defaults
# ============================================================================

DEFAULT_RATE_CACHE_TTL_SECONDS = 600
DEFAULT_RATE_FETCH_RETRIES = 3
DEFAULT_RATE_FETCH_TIMEOUT = 10
DEFAULT_COMMIT_RETRIES = 3
DEFAULT_ALMOST_EXPIRED_DAYS = 3

# Reporting precision for money
MONEY_DECIMAL_PLACES = 2
