"""Shared constants for the prototype showcase.

This module contains constants that are used across multiple modules
to avoid duplication and ensure consistency.
"""

# =============================================================================
# Default Admin Configuration
# =============================================================================

# Default admin email (seeded outside production)
DEFAULT_ADMIN_EMAIL = "admin@example.com"

# Default admin display name
DEFAULT_ADMIN_NAME = "Admin User"

# Default admin password (overridable via SHOWCASE_ADMIN_PASSWORD)
DEFAULT_ADMIN_PASSWORD = "ChangeMe123"

# =============================================================================
# Role Names
# =============================================================================

ROLE_ADMIN = "admin"
ROLE_PROSPECT = "prospect"
ROLE_VIEWER = "viewer"

ROLES = (ROLE_ADMIN, ROLE_PROSPECT, ROLE_VIEWER)

# =============================================================================
# Role Permissions
# =============================================================================

ADMIN_PERMISSIONS = [
    "manage_users",
    "manage_prototypes",
    "manage_links",
    "view_audit",
    "manage_settings",
    "review_access",
]

VIEWER_PERMISSIONS = [
    "view_assigned",
    "request_access",
]

PROSPECT_PERMISSIONS = [
    "view_shared",
    "submit_feedback",
]

ROLE_PERMISSIONS = {
    ROLE_ADMIN: ADMIN_PERMISSIONS,
    ROLE_VIEWER: VIEWER_PERMISSIONS,
    ROLE_PROSPECT: PROSPECT_PERMISSIONS,
}

# =============================================================================
# Prototype / Link / Feedback Vocabularies
# =============================================================================

PROTOTYPE_STATUSES = ("draft", "published", "archived")
PROTOTYPE_TYPES = ("html", "zip")

ACCESS_REQUEST_STATUSES = ("pending", "approved", "denied")

FEEDBACK_CATEGORIES = ("ui", "navigation", "feature", "performance", "general")
DEFAULT_FEEDBACK_CATEGORY = "general"
MAX_FEEDBACK_LENGTH = 5000

# Magic link tokens are 32 random bytes rendered as hex
MAGIC_LINK_TOKEN_BYTES = 32

USER_AGENT_MAX_LENGTH = 500
MAX_VIEW_DURATION_SECONDS = 86400

# =============================================================================
# Notifications
# =============================================================================

SLACK_EVENTS = ("view", "feedback", "access_request", "access_approved", "access_denied")

# app_settings keys
SETTING_SLACK_WEBHOOK = "slack_webhook_url"
SETTING_SLACK_EVENTS = "slack_events"
SETTING_DEFAULT_BRANDING = "default_branding"

DEFAULT_BRANDING = {
    "header_text": "",
    "footer_text": "",
    "primary_color": "#0070c0",
    "hide_default_branding": False,
}

# =============================================================================
# Audit
# =============================================================================

# Request prefixes that get one audit row per request
AUDITED_PREFIXES = (
    "/api/auth",
    "/api/admin",
    "/api/prototypes",
    "/api/links",
    "/api/prospect",
)
