"""Internal constants shared across the library."""

EARTH_RADIUS_M = 6_371_000.0

# ------------------------------------------------------------------
# Position arbitration defaults (seconds / meters)
# ------------------------------------------------------------------

DEFAULT_DEADLINE_S = 15.0
DEFAULT_GRACE_DELAY_S = 5.0
DEFAULT_PRECISE_GOOD_ACCURACY_M = 20.0
DEFAULT_APPROX_ACCEPTABLE_ACCURACY_M = 50.0

DEFAULT_MATCH_THRESHOLD_M = 20.0

# Network source poll interval, slower than the precise source.
DEFAULT_GEOLOCATION_INTERVAL_S = 2.0

# ------------------------------------------------------------------
# Storage
# ------------------------------------------------------------------

DEFAULT_DB_PATH = "locations.db"
SCHEMA_VERSION_KEY = "schema_version"

MAPS_URL_TEMPLATE = "https://maps.google.com/?q={latitude},{longitude}"
