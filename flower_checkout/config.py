"""
Configuration Module for Flower Checkout
========================================

This module centralizes all configuration settings, environment variables, and
constants used throughout the checkout engine. By consolidating configuration
in one place, every environment (dev, staging, prod) can override settings via
environment variables without code changes.

Configuration Categories:
-------------------------
- **Store Configuration**: The single served city and the store-local timezone
  used to compute "today" for the delivery window.

- **Delivery Scheduling**: Window length, probe budget and the enumerated
  delivery time slots.

- **Region Defaults**: Fallback block lists used when the remote delivery
  settings cannot be fetched.

- **Remote Collaborators**: Base URLs and timeouts for the configuration,
  order, payment, analytics, authentication and customer services.

- **Client Storage**: Key names of the persisted checkout draft schema.

- **Session Management**: TTL and cache size for the in-memory session cache.

- **Rate Limiting / CORS**: HTTP surface protection.

Environment Variables:
----------------------
- STORE_TIMEZONE: Timezone for the store-local date (default: "Europe/Istanbul")
- CONFIG_API_URL / ORDER_API_URL / PAYMENT_API_URL / ANALYTICS_API_URL /
  AUTH_API_URL / CUSTOMER_API_URL: Collaborator base URLs
- REMOTE_CONFIG_TIMEOUT: Seconds before a configuration fetch falls back (default: 5)
- PAYMENT_INIT_TIMEOUT: Seconds before payment initialization fails (default: 20)
- SESSION_TTL_SECONDS: Session cache TTL (default: 3600)
- RATE_LIMIT_CHECKOUT: Checkout endpoint rate limit (default: "60 per minute")
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")

Usage:
------
    from flower_checkout.config import (
        DELIVERY_WINDOW_DAYS,
        DELIVERY_TIME_SLOTS,
        STORE_TIMEZONE,
    )
"""

import os
from typing import Dict, List, Tuple


# =============================================================================
# Store Configuration
# =============================================================================
# The shop delivers in exactly one city. Saved addresses outside it are shown
# to the customer but cannot be used for delivery.

SERVED_CITY: str = os.getenv("SERVED_CITY", "İstanbul")

# "Today" is always the store-local calendar date, never a timestamp
STORE_TIMEZONE: str = os.getenv("STORE_TIMEZONE", "Europe/Istanbul")


# =============================================================================
# Delivery Scheduling
# =============================================================================

# Selectable dates are [today + 1, today + DELIVERY_WINDOW_DAYS]
DELIVERY_WINDOW_DAYS: int = int(os.getenv("DELIVERY_WINDOW_DAYS", "7"))

# Maximum number of days next_allowed() inspects before giving up
DELIVERY_DATE_MAX_PROBES: int = int(os.getenv("DELIVERY_DATE_MAX_PROBES", "10"))

DELIVERY_TIME_SLOTS: Tuple[str, ...] = ("11:00-17:00", "17:00-22:00")

# Only used by the recovery policy when hydrating pre-selected delivery info
DEFAULT_TIME_SLOT: str = DELIVERY_TIME_SLOTS[0]

# Every order is gift-wrapped, which relaxes the recipient name length
ORDERS_ARE_GIFTS: bool = True

# Extra sender-name gate on message -> payment, kept off for now
REQUIRE_SENDER_NAME: bool = os.getenv("REQUIRE_SENDER_NAME", "false").lower() == "true"


# =============================================================================
# Region Defaults
# =============================================================================
# Used whenever the remote delivery settings are missing or the fetch fails.

DEFAULT_DISABLED_DISTRICTS: List[str] = ["Çatalca", "Silivri", "Büyükçekmece"]
DEFAULT_DISABLED_NEIGHBORHOODS: Dict[str, List[str]] = {}
DEFAULT_SECONDARY_REGION_CLOSED: bool = True


# =============================================================================
# Remote Collaborators
# =============================================================================

CONFIG_API_URL: str = os.getenv("CONFIG_API_URL", "http://localhost:3000/api")
ORDER_API_URL: str = os.getenv("ORDER_API_URL", "http://localhost:3000/api")
PAYMENT_API_URL: str = os.getenv("PAYMENT_API_URL", "http://localhost:3000/api")
ANALYTICS_API_URL: str = os.getenv("ANALYTICS_API_URL", "http://localhost:3000/api")
AUTH_API_URL: str = os.getenv("AUTH_API_URL", "http://localhost:3000/api")
CUSTOMER_API_URL: str = os.getenv("CUSTOMER_API_URL", "http://localhost:3000/api")

# Request timeouts in seconds
REMOTE_CONFIG_TIMEOUT: float = float(os.getenv("REMOTE_CONFIG_TIMEOUT", "5"))
ORDER_API_TIMEOUT: float = float(os.getenv("ORDER_API_TIMEOUT", "15"))
PAYMENT_INIT_TIMEOUT: float = float(os.getenv("PAYMENT_INIT_TIMEOUT", "20"))
FIRE_AND_FORGET_TIMEOUT: float = float(os.getenv("FIRE_AND_FORGET_TIMEOUT", "3"))

# Off days and region settings are fetched again on every checkout start and
# every dispatch; outside those, a snapshot older than this is refetched
DELIVERY_CONFIG_MAX_AGE_SECONDS: int = int(os.getenv("DELIVERY_CONFIG_MAX_AGE_SECONDS", "300"))


# =============================================================================
# Client Storage
# =============================================================================
# Keys of the persisted checkout schema. Each is namespaced per browsing session.

STORAGE_KEY_DRAFT: str = "checkout_draft"
STORAGE_KEY_ABANDONMENT_MARKER: str = "pending_payment"
STORAGE_KEY_PAYMENT_OUTCOME: str = "last_payment_outcome"
STORAGE_KEY_BANK_TRANSFER_SUMMARY: str = "bank_transfer_summary"


# =============================================================================
# Session Management Configuration
# =============================================================================
# Checkout sessions are persisted to the database and cached in memory.

SESSION_TTL_SECONDS: int = int(os.getenv("SESSION_TTL_SECONDS", "3600"))  # 1 hour
SESSION_MAX_CACHE_SIZE: int = int(os.getenv("SESSION_MAX_CACHE_SIZE", "1000"))


# =============================================================================
# Database
# =============================================================================

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./flower_checkout.db")


# =============================================================================
# Rate Limiting Configuration
# =============================================================================

RATE_LIMIT_CHECKOUT: str = os.getenv("RATE_LIMIT_CHECKOUT", "60 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_checkout() -> str:
    """
    Return the current checkout rate limit.

    This function allows dynamic override in tests without modifying
    the module-level constant.
    """
    return RATE_LIMIT_CHECKOUT


# =============================================================================
# CORS Configuration
# =============================================================================

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]
