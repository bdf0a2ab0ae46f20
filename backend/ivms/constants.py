"""Route prefixes shared by ``ivms.main`` and the routers."""

# Base API prefix (all HTTP routes are served under /api/*)
API_PREFIX = "/api"

# Router prefixes (relative to API_PREFIX)
AUTH_PREFIX = "/auth"
USERS_PREFIX = "/users"
RENTAL_COMPANIES_PREFIX = "/rental-companies"
CARS_PREFIX = "/cars"
PARTS_PREFIX = "/parts"
MAINTENANCE_PREFIX = "/maintenance"
CAR_REQUESTS_PREFIX = "/car-requests"
AUDIT_PREFIX = "/audit"
NOTIFICATIONS_PREFIX = "/notifications"
