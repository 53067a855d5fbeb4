"""
Delivery Schemas for Flower Checkout
====================================

Models for the stateless delivery endpoints the recipient step uses to
build its date picker and district list.
"""

from typing import List, Optional

from pydantic import BaseModel


class BlockedDateOut(BaseModel):
    date: str
    reason: str  # "sunday" or "off_day"


class DeliveryWindowOut(BaseModel):
    start: str
    end: str
    available_dates: List[str]
    blocked_dates: List[BlockedDateOut]
    next_available: Optional[str] = None
    time_slots: List[str]
    config_version: int


class DateSelectionRequest(BaseModel):
    date: str


class DateSelectionOut(BaseModel):
    """
    Resolution of a manually entered date.

    When requires_reprompt is true the customer has to pick again; date is
    then either the blocked day itself (admin off day) or null.
    """
    date: Optional[str] = None
    status: str
    notice: Optional[str] = None
    requires_reprompt: bool


class RegionOut(BaseModel):
    region: str
    name: str
    districts: List[str]
    unavailable_districts: List[str]
    is_closed: bool = False
