# ============================================
# PERMISSION CATALOG
# ============================================
# Identifiers are opaque. Checks are set membership only.

# -----------------------------------------------------
# Tour management
# -----------------------------------------------------
TOURS_VIEW = "tours:view"
TOURS_CREATE = "tours:create"
TOURS_EDIT = "tours:edit"
TOURS_DELETE = "tours:delete"
TOURS_MANAGE_STAFF = "tours:manage_staff"

# -----------------------------------------------------
# Event management
# -----------------------------------------------------
EVENTS_VIEW = "events:view"
EVENTS_CREATE = "events:create"
EVENTS_EDIT = "events:edit"
EVENTS_DELETE = "events:delete"

# -----------------------------------------------------
# Staff management
# -----------------------------------------------------
STAFF_VIEW = "staff:view"
STAFF_INVITE = "staff:invite"
STAFF_MANAGE = "staff:manage"
STAFF_REMOVE = "staff:remove"

# -----------------------------------------------------
# Financial management
# -----------------------------------------------------
FINANCES_VIEW = "finances:view"
FINANCES_EDIT = "finances:edit"
FINANCES_APPROVE = "finances:approve"

# -----------------------------------------------------
# Logistics management
# -----------------------------------------------------
LOGISTICS_VIEW = "logistics:view"
LOGISTICS_EDIT = "logistics:edit"

# -----------------------------------------------------
# Communications / analytics
# -----------------------------------------------------
COMMUNICATIONS_SEND = "communications:send"
ANALYTICS_VIEW = "analytics:view"

# -----------------------------------------------------
# Administration
# -----------------------------------------------------
ADMIN_ROLES = "admin:roles"
ADMIN_SETTINGS = "admin:settings"


# Permission → display category
PERMISSION_CATEGORIES = {
    TOURS_VIEW: "tour_management",
    TOURS_CREATE: "tour_management",
    TOURS_EDIT: "tour_management",
    TOURS_DELETE: "tour_management",
    TOURS_MANAGE_STAFF: "tour_management",

    EVENTS_VIEW: "event_management",
    EVENTS_CREATE: "event_management",
    EVENTS_EDIT: "event_management",
    EVENTS_DELETE: "event_management",

    STAFF_VIEW: "staff_management",
    STAFF_INVITE: "staff_management",
    STAFF_MANAGE: "staff_management",
    STAFF_REMOVE: "staff_management",

    FINANCES_VIEW: "financial_management",
    FINANCES_EDIT: "financial_management",
    FINANCES_APPROVE: "financial_management",

    LOGISTICS_VIEW: "logistics_management",
    LOGISTICS_EDIT: "logistics_management",

    COMMUNICATIONS_SEND: "communications",
    ANALYTICS_VIEW: "analytics",

    ADMIN_ROLES: "administration",
    ADMIN_SETTINGS: "administration",
}

ALL_PERMISSIONS = frozenset(PERMISSION_CATEGORIES)


def is_known_permission(permission: str) -> bool:
    return permission in ALL_PERMISSIONS


def permissions_in_category(category: str) -> list[str]:
    return [p for p, c in PERMISSION_CATEGORIES.items() if c == category]


# ============================================
# SEEDED SYSTEM ROLES → DEFAULT PERMISSIONS
# ============================================
SYSTEM_ROLE_PERMISSIONS = {

    # =====================================================
    # SUPER ADMIN: every catalog entry
    # =====================================================
    "super_admin": sorted(ALL_PERMISSIONS),

    # =====================================================
    # TOUR MANAGER: runs a tour end to end
    # =====================================================
    "tour_manager": [
        TOURS_VIEW, TOURS_EDIT, TOURS_MANAGE_STAFF,
        EVENTS_VIEW, EVENTS_CREATE, EVENTS_EDIT, EVENTS_DELETE,
        STAFF_VIEW, STAFF_INVITE, STAFF_MANAGE, STAFF_REMOVE,
        FINANCES_VIEW,
        LOGISTICS_VIEW, LOGISTICS_EDIT,
        COMMUNICATIONS_SEND,
        ANALYTICS_VIEW,
    ],

    # =====================================================
    # ARTIST
    # =====================================================
    "artist": [
        TOURS_VIEW,
        EVENTS_VIEW,
        LOGISTICS_VIEW,
    ],

    # =====================================================
    # CREW CHIEF
    # =====================================================
    "crew_chief": [
        TOURS_VIEW,
        EVENTS_VIEW,
        STAFF_VIEW, STAFF_MANAGE,
        LOGISTICS_VIEW, LOGISTICS_EDIT,
        COMMUNICATIONS_SEND,
    ],

    # =====================================================
    # CREW MEMBER
    # =====================================================
    "crew_member": [
        TOURS_VIEW,
        EVENTS_VIEW,
        STAFF_VIEW,
        LOGISTICS_VIEW,
    ],

    # =====================================================
    # VENDOR
    # =====================================================
    "vendor": [
        EVENTS_VIEW,
        LOGISTICS_VIEW,
    ],

    # =====================================================
    # VENUE COORDINATOR
    # =====================================================
    "venue_coordinator": [
        TOURS_VIEW,
        EVENTS_VIEW, EVENTS_EDIT,
        LOGISTICS_VIEW, LOGISTICS_EDIT,
    ],

    # =====================================================
    # FINANCIAL MANAGER
    # =====================================================
    "financial_manager": [
        TOURS_VIEW,
        EVENTS_VIEW,
        FINANCES_VIEW, FINANCES_EDIT, FINANCES_APPROVE,
        ANALYTICS_VIEW,
    ],
}

SYSTEM_ROLES = tuple(SYSTEM_ROLE_PERMISSIONS)
