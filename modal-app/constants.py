"""
Constants for the Vehicle Listing Scraper.
Default allowlist, heuristic vocabularies and browser settings.
"""

# =============================================================================
# DOMAINS
# =============================================================================

# Root domains accepted as scrape targets when ALLOWED_DOMAINS is not set.
# Subdomains of these are accepted too (www.cars.com, m.auto.ria.com).
DEFAULT_ALLOWED_DOMAINS = ("auto.ria.com", "cars.com", "copart.com", "iaai.com")

# =============================================================================
# EXTRACTION VOCABULARY
# =============================================================================

# Closed list: leftmost match in the corpus wins, no ranking between brands.
KNOWN_BRANDS = [
    "Toyota", "Honda", "BMW", "Mercedes", "Audi", "Volkswagen", "Lexus",
    "Kia", "Hyundai", "Nissan", "Mazda", "Ford", "Chevrolet",
]

KNOWN_COLORS = [
    "black", "white", "silver", "gray", "grey", "blue", "red", "green",
    "beige", "brown", "yellow", "orange",
]

# =============================================================================
# BROWSER
# =============================================================================

# Desktop Chrome on Linux. Plain headless UA strings get blocked on most
# marketplaces.
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)

# Per attempt, not per request: two attempts can take up to 2x this.
SCRAPE_TIMEOUT_SECONDS = 30
SCRAPE_ATTEMPTS = 2

# =============================================================================
# HTTP
# =============================================================================

DEFAULT_PORT = 8080
RATE_LIMIT_WINDOW_MS = 60_000
RATE_LIMIT_MAX = 20
MAX_BODY_BYTES = 1024 * 1024

ERROR_DOMAIN_NOT_ALLOWED = "Domain is not allowed"
ERROR_TARGET_REQUIRED = "Either url or vin is required"
ERROR_INVALID_JSON = "Invalid JSON body"
ERROR_BODY_TOO_LARGE = "Request body too large"
ERROR_RATE_LIMITED = "Too many requests, please try again later."
ERROR_SCRAPE_FAILED = "Failed to scrape listing"
ERROR_INTERNAL = "Internal server error"
