"""
Centralized constants for the session core.
Avoid magic strings for roles, statuses, actions and events.

Usage:
    from shared.config.constants import Roles, SessionStatus, Actions

    if session.status == SessionStatus.ACTIVE:
        ...
"""

from typing import Final


# =============================================================================
# Actor Roles
# =============================================================================


class Roles:
    """Actor role constants."""

    CUSTOMER: Final[str] = "customer"
    WAITER: Final[str] = "waiter"
    ADMIN: Final[str] = "admin"
    OWNER: Final[str] = "owner"
    # Synthetic role for unauthenticated callers (QR scan / OTP entry)
    PUBLIC: Final[str] = "public"

    ALL: Final[list[str]] = [CUSTOMER, WAITER, ADMIN, OWNER, PUBLIC]


MANAGEMENT_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.OWNER})
STAFF_ROLES: Final[frozenset[str]] = frozenset({Roles.WAITER, Roles.ADMIN, Roles.OWNER})
SELF_SERVICE_ROLES: Final[frozenset[str]] = frozenset({Roles.CUSTOMER, Roles.PUBLIC})


# =============================================================================
# Entity Status Constants
# =============================================================================


class SessionStatus:
    """Table session status constants."""

    ACTIVE: Final[str] = "active"
    BILLED: Final[str] = "billed"
    CLEARED: Final[str] = "cleared"

    ALL: Final[list[str]] = [ACTIVE, BILLED, CLEARED]


class OrderStatus:
    """Order status constants."""

    PENDING: Final[str] = "pending"
    PREPARING: Final[str] = "preparing"
    READY: Final[str] = "ready"
    SERVED: Final[str] = "served"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [PENDING, PREPARING, READY, SERVED, CANCELLED]
    # Orders that count towards a session total
    BILLABLE: Final[list[str]] = [PENDING, PREPARING, READY, SERVED]
    TERMINAL: Final[list[str]] = [SERVED, CANCELLED]


class TableStatus:
    """Restaurant table status constants."""

    AVAILABLE: Final[str] = "available"
    OCCUPIED: Final[str] = "occupied"
    OUT_OF_SERVICE: Final[str] = "out_of_service"


# =============================================================================
# Status Transitions
# =============================================================================

# from -> to; cleared is terminal
SESSION_TRANSITIONS: Final[dict[str, list[str]]] = {
    SessionStatus.ACTIVE: [SessionStatus.BILLED],
    SessionStatus.BILLED: [SessionStatus.CLEARED],
    SessionStatus.CLEARED: [],
}

ORDER_TRANSITIONS: Final[dict[str, list[str]]] = {
    OrderStatus.PENDING: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
    OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.SERVED, OrderStatus.CANCELLED],
    OrderStatus.SERVED: [],
    OrderStatus.CANCELLED: [],
}


# =============================================================================
# Policy Actions
# =============================================================================


class Actions:
    """Action names evaluated by the policy engine."""

    # Session administration
    OPEN_SESSION: Final[str] = "open_session"
    REGENERATE_OTP: Final[str] = "regenerate_otp"
    CLOSE_SESSION: Final[str] = "close_session"
    CLEAR_SESSION: Final[str] = "clear_session"
    UPDATE_SESSION: Final[str] = "update_session"
    READ_SESSION: Final[str] = "read_session"
    READ_SUMMARY: Final[str] = "read_summary"
    LIST_SESSIONS: Final[str] = "list_sessions"
    READ_SESSION_DETAILS: Final[str] = "read_session_details"

    # Customer self-service
    READ_TABLE: Final[str] = "read_table"
    JOIN_SESSION: Final[str] = "join_session"
    CREATE_ORDER: Final[str] = "create_order"
    UPDATE_ORDER: Final[str] = "update_order"
    DELETE_ORDER: Final[str] = "delete_order"

    # Order operations
    READ_ORDER: Final[str] = "read_order"
    UPDATE_ORDER_STATUS: Final[str] = "update_order_status"
    ATTRIBUTE_ORDER: Final[str] = "attribute_order"
    DETACH_ORDER: Final[str] = "detach_order"

    # Menu / staff administration (owned by outer CRUD screens)
    INSERT_MENU_ITEM: Final[str] = "insert_menu_item"
    UPDATE_MENU_ITEM: Final[str] = "update_menu_item"
    DELETE_MENU_ITEM: Final[str] = "delete_menu_item"
    INSERT_MENU_CATEGORY: Final[str] = "insert_menu_category"
    UPDATE_MENU_CATEGORY: Final[str] = "update_menu_category"
    DELETE_MENU_CATEGORY: Final[str] = "delete_menu_category"
    MANAGE_USERS: Final[str] = "manage_users"

    # Tombstone lifecycle prefixes: delete_<entity>, restore_<entity>, purge_<entity>
    DELETE_PREFIX: Final[str] = "delete_"
    RESTORE_PREFIX: Final[str] = "restore_"
    PURGE_PREFIX: Final[str] = "purge_"


# Actions a customer (or the synthetic public actor) may perform on its own behalf
SELF_SERVICE_ACTIONS: Final[frozenset[str]] = frozenset({
    Actions.READ_TABLE,
    Actions.JOIN_SESSION,
    Actions.CREATE_ORDER,
    Actions.READ_SESSION,
    Actions.READ_SUMMARY,
    Actions.READ_ORDER,
    Actions.UPDATE_ORDER,
    Actions.DELETE_ORDER,
})

# Self-service actions that additionally require owner identity match
OWNER_SCOPED_ACTIONS: Final[frozenset[str]] = frozenset({
    Actions.READ_ORDER,
    Actions.UPDATE_ORDER,
    Actions.DELETE_ORDER,
})

# Self-service actions a customer may only take inside the session they joined
SESSION_SCOPED_ACTIONS: Final[frozenset[str]] = frozenset({
    Actions.CREATE_ORDER,
    Actions.READ_SESSION,
    Actions.READ_SUMMARY,
})

# Operational actions waiters may perform within their restaurant
WAITER_ACTIONS: Final[frozenset[str]] = frozenset({
    Actions.OPEN_SESSION,
    Actions.REGENERATE_OTP,
    Actions.CLOSE_SESSION,
    Actions.CLEAR_SESSION,
    Actions.UPDATE_SESSION,
    Actions.READ_SESSION,
    Actions.READ_SUMMARY,
    Actions.LIST_SESSIONS,
    Actions.READ_SESSION_DETAILS,
    Actions.READ_TABLE,
    Actions.JOIN_SESSION,
    Actions.CREATE_ORDER,
    Actions.UPDATE_ORDER,
    Actions.READ_ORDER,
    Actions.UPDATE_ORDER_STATUS,
    Actions.ATTRIBUTE_ORDER,
    Actions.DETACH_ORDER,
})


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99

    MIN_PRICE_CENTS: Final[int] = 0
    MAX_PRICE_CENTS: Final[int] = 100_000_00

    MIN_DISPLAY_NAME_LENGTH: Final[int] = 1
    MAX_DISPLAY_NAME_LENGTH: Final[int] = 100

    MIN_CONTACT_DIGITS: Final[int] = 10
    MAX_CONTACT_DIGITS: Final[int] = 15


# =============================================================================
# Event Types (notification sink)
# =============================================================================


class EventType:
    """Session/order change event constants."""

    SESSION_OPENED: Final[str] = "SESSION_OPENED"
    SESSION_OTP_REGENERATED: Final[str] = "SESSION_OTP_REGENERATED"
    SESSION_CLOSED: Final[str] = "SESSION_CLOSED"
    SESSION_CLEARED: Final[str] = "SESSION_CLEARED"
    SESSION_TOTAL_CHANGED: Final[str] = "SESSION_TOTAL_CHANGED"
    CUSTOMER_JOINED: Final[str] = "CUSTOMER_JOINED"

    ORDER_PLACED: Final[str] = "ORDER_PLACED"
    ORDER_STATUS_CHANGED: Final[str] = "ORDER_STATUS_CHANGED"
    ORDER_ATTRIBUTED: Final[str] = "ORDER_ATTRIBUTED"
    ORDER_DETACHED: Final[str] = "ORDER_DETACHED"

    ENTITY_DELETED: Final[str] = "ENTITY_DELETED"
    ENTITY_RESTORED: Final[str] = "ENTITY_RESTORED"
    ENTITY_PURGED: Final[str] = "ENTITY_PURGED"
