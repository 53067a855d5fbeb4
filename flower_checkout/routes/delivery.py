"""
Delivery Routes for Flower Checkout
===================================

Stateless helpers for the recipient step, answered from the current
delivery configuration snapshot.

Endpoints:
----------
- GET /delivery/window: Selectable dates, blocked dates and time slots
- POST /delivery/date-selection: Resolve a manually entered date
- GET /delivery/districts: Districts per region with their availability
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from ..checkout.region_policy import ISTANBUL_REGIONS, SECONDARY_REGION
from ..config import DELIVERY_TIME_SLOTS
from ..schemas.delivery import (
    BlockedDateOut,
    DateSelectionOut,
    DateSelectionRequest,
    DeliveryWindowOut,
    RegionOut,
)
from ..services.engine import CheckoutEngine, get_engine


logger = logging.getLogger(__name__)

# Router definition
delivery_router = APIRouter(prefix="/delivery", tags=["Delivery"])


@delivery_router.get("/window", response_model=DeliveryWindowOut)
def get_delivery_window(
    engine: CheckoutEngine = Depends(get_engine),
) -> DeliveryWindowOut:
    """
    The rolling delivery window starting tomorrow (store-local).

    Sundays and admin off days are listed as blocked with their reason.
    next_available is null when no day in the window can be delivered.
    """
    config = engine.config_provider.get()
    calendar = engine.config_provider.calendar(config)
    window = calendar.window()

    available = []
    blocked = []
    for day in window.days():
        reason = calendar.block_reason(day)
        if reason is None:
            available.append(day.isoformat())
        else:
            blocked.append(BlockedDateOut(date=day.isoformat(), reason=reason.value))

    next_available = calendar.next_allowed()
    return DeliveryWindowOut(
        start=window.start.isoformat(),
        end=window.end.isoformat(),
        available_dates=available,
        blocked_dates=blocked,
        next_available=next_available.isoformat() if next_available else None,
        time_slots=list(DELIVERY_TIME_SLOTS),
        config_version=config.version,
    )


@delivery_router.post("/date-selection", response_model=DateSelectionOut)
def select_delivery_date(
    req: DateSelectionRequest,
    engine: CheckoutEngine = Depends(get_engine),
) -> DateSelectionOut:
    """Clamp, advance or reject a typed date the way the date picker does."""
    selection = engine.config_provider.calendar().apply_manual_selection(req.date)
    return DateSelectionOut(
        date=selection.date.isoformat() if selection.date else None,
        status=selection.status.value,
        notice=selection.notice,
        requires_reprompt=selection.requires_reprompt,
    )


@delivery_router.get("/districts", response_model=List[RegionOut])
def list_districts(
    engine: CheckoutEngine = Depends(get_engine),
) -> List[RegionOut]:
    """Every region of the served city with its deliverable and closed districts."""
    regions = engine.config_provider.regions()
    closed_secondary = regions.availability.is_secondary_region_closed

    result = []
    for region_id, region in ISTANBUL_REGIONS.items():
        available = regions.available_districts(region_id)
        result.append(RegionOut(
            region=region_id,
            name=region["name"],
            districts=available,
            unavailable_districts=[d for d in region["districts"] if d not in available],
            is_closed=region_id == SECONDARY_REGION and closed_secondary,
        ))
    return result
