"""
Delivery calendar policy.

Pure date arithmetic for the delivery step, no I/O:
1. The delivery window is [today + 1, today + DELIVERY_WINDOW_DAYS], computed
   fresh from the store-local date on every evaluation
2. Sundays are always blocked; admin "off days" arrive as a BlockedDateSet
3. Manual date input is first clamped into the window, then resolved against
   blocked days (Sundays auto-advance, admin off days need the customer's
   acknowledgement)
4. Time slots are one of two enumerated values after normalization
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from ..config import (
    DEFAULT_TIME_SLOT,
    DELIVERY_DATE_MAX_PROBES,
    DELIVERY_TIME_SLOTS,
    DELIVERY_WINDOW_DAYS,
    STORE_TIMEZONE,
)
from .messages import CheckoutMessages

logger = logging.getLogger(__name__)

SUNDAY = 6  # date.weekday()

_TIME_SLOT_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})-(\d{1,2}):(\d{2})$")
_DASH_VARIANTS = re.compile(r"[‐‑‒–—―−]")


def store_today() -> date:
    """The calendar date at the store right now."""
    return datetime.now(ZoneInfo(STORE_TIMEZONE)).date()


def parse_iso_date(raw) -> Optional[date]:
    """Parse YYYY-MM-DD (or pass a date through). Returns None when unparseable."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


class BlockReason(str, Enum):
    SUNDAY = "sunday"
    OFF_DAY = "off_day"


class SelectionStatus(str, Enum):
    """How apply_manual_selection resolved the customer's input."""
    ACCEPTED = "accepted"
    CLAMPED = "clamped"
    ADVANCED = "advanced"
    NEEDS_ACKNOWLEDGEMENT = "needs_acknowledgement"
    EXHAUSTED = "exhausted"
    INVALID = "invalid"


@dataclass(frozen=True)
class DeliveryWindow:
    """Inclusive range of selectable delivery dates."""
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def clamp(self, day: date) -> date:
        return max(self.start, min(self.end, day))

    def days(self) -> list[date]:
        span = (self.end - self.start).days
        return [self.start + timedelta(days=i) for i in range(span + 1)]


@dataclass(frozen=True)
class BlockedDateSet:
    """Admin-declared off days. The Sunday rule is applied by the policy, not stored here."""
    off_days: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_iso(cls, values: Iterable[str]) -> "BlockedDateSet":
        parsed = set()
        for value in values or []:
            day = parse_iso_date(value)
            if day is None:
                logger.warning("Ignoring malformed off day: %r", value)
                continue
            parsed.add(day)
        return cls(off_days=frozenset(parsed))

    def __contains__(self, day: date) -> bool:
        return day in self.off_days

    def to_iso(self) -> list[str]:
        return sorted(day.isoformat() for day in self.off_days)


@dataclass(frozen=True)
class DateSelection:
    """Result of resolving a manually entered delivery date."""
    date: Optional[date]
    status: SelectionStatus
    notice: Optional[str] = None

    @property
    def requires_reprompt(self) -> bool:
        """The caller must ask the customer again instead of moving on."""
        return self.status in (
            SelectionStatus.NEEDS_ACKNOWLEDGEMENT,
            SelectionStatus.EXHAUSTED,
            SelectionStatus.INVALID,
        )


@dataclass(frozen=True)
class DateProblem:
    """Why a delivery date cannot be used. kind is "validation" or "scheduling"."""
    code: str
    message: str
    kind: str = "validation"


# =============================================================================
# Time slots
# =============================================================================

def normalize_time_slot(raw: Optional[str]) -> str:
    """
    Normalize free-form slot input like "11:00 – 17:00" or "9:00-17:00".

    Trims, folds dash variants to "-", drops whitespace and zero-pads hours.
    Input that doesn't look like a range is returned trimmed, unchanged.
    """
    if not raw:
        return ""
    text = _DASH_VARIANTS.sub("-", raw.strip())
    compact = re.sub(r"\s+", "", text)
    match = _TIME_SLOT_PATTERN.match(compact)
    if not match:
        return raw.strip()
    start_h, start_m, end_h, end_m = match.groups()
    return f"{int(start_h):02d}:{start_m}-{int(end_h):02d}:{end_m}"


def is_valid_time_slot(raw: Optional[str]) -> bool:
    return normalize_time_slot(raw) in DELIVERY_TIME_SLOTS


def recover_time_slot(raw: Optional[str]) -> str:
    """
    Recovery policy for pre-selected delivery info (e.g. from a product page).

    Validation never calls this: an invalid slot is reported, not coerced.
    """
    normalized = normalize_time_slot(raw)
    if normalized in DELIVERY_TIME_SLOTS:
        return normalized
    return DEFAULT_TIME_SLOT


# =============================================================================
# Policy
# =============================================================================

class DeliveryCalendarPolicy:
    """
    Decides which delivery dates are selectable.

    The policy never caches "today": every call recomputes the window so a
    session that crosses midnight sees the new window.
    """

    def __init__(
        self,
        blocked: BlockedDateSet | None = None,
        today: Callable[[], date] = store_today,
        window_days: int = DELIVERY_WINDOW_DAYS,
        max_probes: int = DELIVERY_DATE_MAX_PROBES,
    ):
        self.blocked = blocked or BlockedDateSet()
        self._today = today
        self.window_days = window_days
        self.max_probes = max_probes

    def window(self) -> DeliveryWindow:
        today = self._today()
        return DeliveryWindow(
            start=today + timedelta(days=1),
            end=today + timedelta(days=self.window_days),
        )

    def block_reason(self, day: date) -> Optional[BlockReason]:
        """Sunday takes precedence when a Sunday is also an admin off day."""
        if day.weekday() == SUNDAY:
            return BlockReason.SUNDAY
        if day in self.blocked:
            return BlockReason.OFF_DAY
        return None

    def is_blocked(self, day: date) -> bool:
        return self.block_reason(day) is not None

    def next_allowed(self, preferred: Optional[date] = None) -> Optional[date]:
        """
        First unblocked date at or after `preferred` (clamped into the window).

        Returns None when the window or the probe budget runs out. Callers
        must surface that as "no delivery day available", never default.
        """
        window = self.window()
        candidate = window.clamp(preferred) if preferred else window.start
        for _ in range(self.max_probes):
            if not window.contains(candidate):
                return None
            if not self.is_blocked(candidate):
                return candidate
            candidate += timedelta(days=1)
        return None

    def _previous_allowed(self, day: date) -> Optional[date]:
        window = self.window()
        candidate = day - timedelta(days=1)
        while candidate >= window.start:
            if not self.is_blocked(candidate):
                return candidate
            candidate -= timedelta(days=1)
        return None

    def available_dates(self) -> list[date]:
        return [day for day in self.window().days() if not self.is_blocked(day)]

    def apply_manual_selection(self, raw) -> DateSelection:
        """
        Resolve a date typed or picked by the customer.

        Order matters: clamp into the window first, then deal with blocking.
        A Sunday moves forward to the next allowed day (or back toward the
        window start when nothing is left ahead). An admin off day is a hard
        stop: the date comes back unchanged and the customer must choose again.
        """
        parsed = parse_iso_date(raw)
        if parsed is None:
            return DateSelection(None, SelectionStatus.INVALID, CheckoutMessages.DATE_INVALID_FORMAT)

        window = self.window()
        clamped = window.clamp(parsed)
        status = SelectionStatus.ACCEPTED
        notice = None
        if clamped != parsed:
            status = SelectionStatus.CLAMPED
            if parsed < window.start:
                notice = CheckoutMessages.DATE_CLAMPED_TO_EARLIEST.format(date=clamped.isoformat())
            else:
                notice = CheckoutMessages.DATE_CLAMPED_TO_LATEST.format(date=clamped.isoformat())

        reason = self.block_reason(clamped)
        if reason is None:
            return DateSelection(clamped, status, notice)

        if reason == BlockReason.OFF_DAY:
            return DateSelection(
                clamped,
                SelectionStatus.NEEDS_ACKNOWLEDGEMENT,
                CheckoutMessages.DATE_OFF_DAY.format(date=clamped.isoformat()),
            )

        advanced = self.next_allowed(clamped) or self._previous_allowed(clamped)
        if advanced is None:
            logger.info("No delivery day available in window %s..%s", window.start, window.end)
            return DateSelection(None, SelectionStatus.EXHAUSTED, CheckoutMessages.DATE_SCHEDULING_EXHAUSTED)

        return DateSelection(
            advanced,
            SelectionStatus.ADVANCED,
            CheckoutMessages.DATE_SUNDAY_ADVANCED.format(date=advanced.isoformat()),
        )

    def evaluate_date(self, raw) -> Optional[DateProblem]:
        """Explain why `raw` can't be used as the delivery date, or None if it can."""
        if raw is None or not str(raw).strip():
            if self.next_allowed() is None:
                return DateProblem("scheduling_exhausted", CheckoutMessages.DATE_SCHEDULING_EXHAUSTED, "scheduling")
            return DateProblem("required", CheckoutMessages.DATE_REQUIRED)

        parsed = parse_iso_date(raw)
        if parsed is None:
            return DateProblem("invalid_format", CheckoutMessages.DATE_INVALID_FORMAT)

        window = self.window()
        reason = self.block_reason(parsed) if window.contains(parsed) else None
        if window.contains(parsed) and reason is None:
            return None

        if self.next_allowed() is None:
            return DateProblem("scheduling_exhausted", CheckoutMessages.DATE_SCHEDULING_EXHAUSTED, "scheduling")

        if not window.contains(parsed):
            return DateProblem(
                "out_of_window",
                CheckoutMessages.DATE_OUT_OF_WINDOW.format(
                    start=window.start.isoformat(), end=window.end.isoformat()
                ),
            )
        if reason == BlockReason.SUNDAY:
            return DateProblem("sunday", CheckoutMessages.DATE_SUNDAY)
        return DateProblem("off_day", CheckoutMessages.DATE_OFF_DAY.format(date=parsed.isoformat()))
