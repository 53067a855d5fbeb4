"""
Remote delivery configuration.

Two admin-managed inputs feed the delivery policies:
1. Off days: GET {CONFIG_API_URL}/delivery-off-days
2. Region settings: GET {CONFIG_API_URL}/admin/settings?category=delivery

Both are best-effort. A failed, timed-out or interrupted fetch is logged at
WARNING and replaced by the fallback (no off days; default district block
list); the customer never sees a configuration error.

DeliveryConfigProvider holds the current snapshot. It loads on first use so
recipient validation never runs against a configuration that hasn't either
arrived or fallen back, and every refresh produces a new versioned snapshot
instead of mutating the old one.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Optional

import requests

from .checkout.delivery_calendar import BlockedDateSet, DeliveryCalendarPolicy, store_today
from .checkout.region_policy import RegionAvailability, RegionAvailabilityPolicy
from .config import CONFIG_API_URL, DELIVERY_CONFIG_MAX_AGE_SECONDS, REMOTE_CONFIG_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryConfig:
    """One immutable snapshot of remote delivery configuration."""
    blocked: BlockedDateSet
    regions: RegionAvailability
    version: int = 0
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _get_json(url: str, timeout: float, params: Optional[dict] = None):
    response = requests.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    return response.json()


def fetch_off_days(base_url: str = CONFIG_API_URL, timeout: float = REMOTE_CONFIG_TIMEOUT) -> BlockedDateSet:
    """
    Fetch admin off days. Returns an empty set when the call fails.

    Accepts {"offDays": [{"offDate": "YYYY-MM-DD"}, ...]} or a bare list of ISO strings.
    """
    try:
        payload = _get_json(f"{base_url.rstrip('/')}/delivery-off-days", timeout)
    except (requests.RequestException, ValueError) as e:
        logger.warning("Off days unavailable, using Sunday rule only: %s", e)
        return BlockedDateSet()

    rows = payload.get("offDays", []) if isinstance(payload, dict) else payload
    values = []
    for row in rows or []:
        if isinstance(row, dict):
            if row.get("isActive", True) is False:
                continue
            values.append(row.get("offDate") or row.get("off_date"))
        else:
            values.append(row)
    return BlockedDateSet.from_iso(v for v in values if v)


def fetch_region_availability(
    base_url: str = CONFIG_API_URL,
    timeout: float = REMOTE_CONFIG_TIMEOUT,
    version: int = 0,
) -> RegionAvailability:
    """Fetch delivery region settings. Returns the fallback defaults when the call fails."""
    try:
        payload = _get_json(
            f"{base_url.rstrip('/')}/admin/settings",
            timeout,
            params={"category": "delivery"},
        )
    except (requests.RequestException, ValueError) as e:
        logger.warning("Region settings unavailable, using defaults: %s", e)
        return RegionAvailability.fallback(version=version)

    settings = {}
    if isinstance(payload, dict):
        settings = payload.get("settings") or (payload.get("category") or {}).get("settings") or {}
    if not isinstance(settings, dict) or not settings:
        logger.info("Region settings empty, using defaults")
        return RegionAvailability.fallback(version=version)
    return RegionAvailability.from_settings(settings, version=version)


def _fetch_remote() -> tuple[BlockedDateSet, RegionAvailability]:
    return fetch_off_days(), fetch_region_availability()


class DeliveryConfigProvider:
    """
    Thread-safe holder of the current DeliveryConfig snapshot.

    Args:
        fetch: Callable returning (BlockedDateSet, RegionAvailability). Defaults
               to the remote fetchers; tests pass a static one.
        today: Store-local "today", handed to every calendar policy built here.
        max_age: Seconds after which get() fetches again. None never expires.
    """

    def __init__(
        self,
        fetch: Callable[[], tuple[BlockedDateSet, RegionAvailability]] = _fetch_remote,
        today: Callable[[], date] = store_today,
        max_age: Optional[float] = DELIVERY_CONFIG_MAX_AGE_SECONDS,
    ):
        self._fetch = fetch
        self.today = today
        self.max_age = max_age
        self._snapshot: Optional[DeliveryConfig] = None
        self._loaded_at = 0.0
        self._version = 0
        self._lock = threading.Lock()

    @classmethod
    def static(
        cls,
        blocked: BlockedDateSet | None = None,
        regions: RegionAvailability | None = None,
        today: Callable[[], date] = store_today,
    ) -> "DeliveryConfigProvider":
        """Provider that always serves the given configuration."""
        return cls(
            fetch=lambda: (blocked or BlockedDateSet(), regions or RegionAvailability.fallback()),
            today=today,
            max_age=None,
        )

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def get(self) -> DeliveryConfig:
        """Current snapshot, loading it first if nothing is loaded or it has expired."""
        with self._lock:
            if self._snapshot is None or self._expired():
                self._snapshot = self._load()
            return self._snapshot

    def _expired(self) -> bool:
        if self.max_age is None:
            return False
        return time.monotonic() - self._loaded_at > self.max_age

    def refresh(self) -> DeliveryConfig:
        """Fetch again and swap in a new snapshot."""
        with self._lock:
            self._snapshot = self._load()
            return self._snapshot

    def _load(self) -> DeliveryConfig:
        self._version += 1
        self._loaded_at = time.monotonic()
        try:
            blocked, regions = self._fetch()
        except Exception as e:
            # The fetchers already fall back; this covers custom fetch callables
            logger.warning("Delivery configuration load failed, using defaults: %s", e)
            blocked, regions = BlockedDateSet(), RegionAvailability.fallback()

        regions = regions.model_copy(update={"version": self._version})
        snapshot = DeliveryConfig(blocked=blocked, regions=regions, version=self._version)
        logger.info(
            "Delivery configuration v%d loaded (%d off days, regions from %s)",
            snapshot.version,
            len(blocked.off_days),
            regions.source,
        )
        return snapshot

    def calendar(self, config: Optional[DeliveryConfig] = None) -> DeliveryCalendarPolicy:
        config = config or self.get()
        return DeliveryCalendarPolicy(blocked=config.blocked, today=self.today)

    def regions(self, config: Optional[DeliveryConfig] = None) -> RegionAvailabilityPolicy:
        config = config or self.get()
        return RegionAvailabilityPolicy(config.regions)
