"""
Recipient form validator.

Evaluates a RecipientDetails snapshot and returns every problem keyed by
field, plus the first invalid field. The field order below is the order the
storefront scrolls through errors, so it must not be rearranged.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config import ORDERS_ARE_GIFTS
from .delivery_calendar import DeliveryCalendarPolicy, is_valid_time_slot
from .messages import CheckoutMessages
from .models import RecipientDetails
from .parsers import validate_phone_number
from .region_policy import RegionAvailabilityPolicy

logger = logging.getLogger(__name__)

FIELD_ORDER: tuple[str, ...] = (
    "name",
    "phone",
    "region",
    "neighborhood",
    "street",
    "building_number",
    "delivery_date",
    "delivery_time_slot",
)

MIN_NAME_LENGTH_GIFT = 2
MIN_NAME_LENGTH = 3
MIN_STREET_LENGTH = 3


@dataclass(frozen=True)
class FieldError:
    """
    One field-level problem.

    kind follows the error taxonomy: "validation" (customer input),
    "region" (closed area from remote configuration) or "scheduling"
    (no delivery day left in the window).
    """
    field: str
    code: str
    message: str
    kind: str = "validation"


@dataclass(frozen=True)
class RecipientValidation:
    errors: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def first_error_field(self) -> Optional[str]:
        for name in FIELD_ORDER:
            if name in self.errors:
                return name
        return None

    @property
    def first_error(self) -> Optional[FieldError]:
        name = self.first_error_field
        return self.errors[name] if name else None

    @property
    def has_scheduling_exhaustion(self) -> bool:
        return any(e.kind == "scheduling" for e in self.errors.values())


class RecipientFormValidator:
    """
    Validates the recipient step.

    Holds no state of its own: the same snapshot always produces the same
    result, so repeated attempts with unchanged input report identical errors.
    """

    def __init__(
        self,
        calendar: DeliveryCalendarPolicy,
        regions: RegionAvailabilityPolicy,
        is_gift: bool = ORDERS_ARE_GIFTS,
    ):
        self.calendar = calendar
        self.regions = regions
        self.is_gift = is_gift

    def validate(
        self,
        recipient: RecipientDetails,
        saved_address_warning: Optional[str] = None,
    ) -> RecipientValidation:
        """
        Validate a full recipient snapshot.

        Args:
            recipient: The snapshot to check.
            saved_address_warning: Warning from resolving the selected saved
                address, if it is not deliverable. Reported on the region field.
        """
        errors: dict[str, FieldError] = {}

        min_name = MIN_NAME_LENGTH_GIFT if self.is_gift else MIN_NAME_LENGTH
        if len(recipient.name.strip()) < min_name:
            errors["name"] = FieldError(
                "name", "too_short", CheckoutMessages.NAME_TOO_SHORT.format(min_length=min_name)
            )

        _, phone_error = validate_phone_number(recipient.phone)
        if phone_error:
            errors["phone"] = FieldError("phone", "invalid", phone_error)

        region_error = self._region_error(recipient, saved_address_warning)
        if region_error:
            errors["region"] = region_error

        neighborhood_error = self._neighborhood_error(recipient)
        if neighborhood_error:
            errors["neighborhood"] = neighborhood_error

        if len(recipient.street.strip()) < MIN_STREET_LENGTH:
            errors["street"] = FieldError("street", "too_short", CheckoutMessages.STREET_TOO_SHORT)

        if not recipient.building_number.strip():
            errors["building_number"] = FieldError(
                "building_number", "required", CheckoutMessages.BUILDING_REQUIRED
            )

        problem = self.calendar.evaluate_date(recipient.delivery_date)
        if problem:
            errors["delivery_date"] = FieldError(
                "delivery_date", problem.code, problem.message, problem.kind
            )

        if not recipient.delivery_time_slot.strip():
            errors["delivery_time_slot"] = FieldError(
                "delivery_time_slot", "required", CheckoutMessages.TIME_SLOT_REQUIRED
            )
        elif not is_valid_time_slot(recipient.delivery_time_slot):
            errors["delivery_time_slot"] = FieldError(
                "delivery_time_slot", "invalid", CheckoutMessages.TIME_SLOT_INVALID
            )

        if errors:
            logger.debug("Recipient step has %d invalid field(s)", len(errors))
        return RecipientValidation(errors=errors)

    def _region_error(
        self,
        recipient: RecipientDetails,
        saved_address_warning: Optional[str],
    ) -> Optional[FieldError]:
        if saved_address_warning:
            return FieldError("region", "unsupported_address", saved_address_warning, "region")
        if not recipient.district.strip():
            return FieldError("region", "required", CheckoutMessages.DISTRICT_REQUIRED)
        problem = self.regions.district_problem(recipient.district)
        if problem:
            return FieldError("region", "closed", problem, "region")
        return None

    def _neighborhood_error(self, recipient: RecipientDetails) -> Optional[FieldError]:
        if not recipient.district.strip():
            return None
        if not recipient.neighborhood.strip():
            return FieldError("neighborhood", "required", CheckoutMessages.NEIGHBORHOOD_REQUIRED)
        if not self.regions.is_neighborhood_available(recipient.district, recipient.neighborhood):
            return FieldError(
                "neighborhood",
                "closed",
                CheckoutMessages.NEIGHBORHOOD_CLOSED.format(neighborhood=recipient.neighborhood),
                "region",
            )
        return None
