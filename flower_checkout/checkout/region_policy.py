"""
Region availability policy.

Decides whether a district/neighborhood in the served city can receive
deliveries right now. The inputs come from the remote delivery settings
(disabled districts, disabled neighborhoods, a closed secondary region) and
are injected as an immutable RegionAvailability snapshot; when the remote
call fails the fallback defaults from config.py are used instead.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import (
    DEFAULT_DISABLED_DISTRICTS,
    DEFAULT_DISABLED_NEIGHBORHOODS,
    DEFAULT_SECONDARY_REGION_CLOSED,
    SERVED_CITY,
)
from .messages import CheckoutMessages
from .models import SavedAddress

logger = logging.getLogger(__name__)

PRIMARY_REGION = "avrupa"
SECONDARY_REGION = "anadolu"

# District catalog of the served city, per side of the Bosphorus
ISTANBUL_REGIONS: dict[str, dict] = {
    PRIMARY_REGION: {
        "name": "İstanbul (Avrupa)",
        "districts": [
            "Arnavutköy", "Avcılar", "Bağcılar", "Bahçelievler", "Bakırköy", "Başakşehir",
            "Bayrampaşa", "Beşiktaş", "Beylikdüzü", "Beyoğlu", "Büyükçekmece", "Çatalca",
            "Esenler", "Esenyurt", "Eyüpsultan", "Fatih", "Gaziosmanpaşa", "Güngören",
            "Kağıthane", "Küçükçekmece", "Sarıyer", "Silivri", "Sultangazi", "Şişli",
            "Zeytinburnu",
        ],
    },
    SECONDARY_REGION: {
        "name": "İstanbul (Anadolu)",
        "districts": [
            "Adalar", "Ataşehir", "Beykoz", "Çekmeköy", "Kadıköy", "Kartal", "Maltepe",
            "Pendik", "Sancaktepe", "Sultanbeyli", "Şile", "Tuzla", "Ümraniye", "Üsküdar",
        ],
    },
}


def fold_name(value: Optional[str]) -> str:
    """Case-fold a place name for comparison; dotted and dotless i compare equal."""
    if not value:
        return ""
    return value.strip().replace("İ", "i").casefold().replace("ı", "i")


def district_region(district: Optional[str]) -> Optional[str]:
    key = fold_name(district)
    if not key:
        return None
    for region_id, region in ISTANBUL_REGIONS.items():
        if any(fold_name(d) == key for d in region["districts"]):
            return region_id
    return None


def province_label(district: Optional[str], region: Optional[str] = None) -> str:
    """Province label of a delivery address, e.g. "İstanbul (Anadolu)" for Kadıköy."""
    region_id = district_region(district) or region
    if region_id in ISTANBUL_REGIONS:
        return ISTANBUL_REGIONS[region_id]["name"]
    return SERVED_CITY


class RegionAvailability(BaseModel):
    """Server-declared delivery region settings. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    disabled_districts: frozenset[str] = Field(default_factory=frozenset)
    disabled_neighborhoods_by_district: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    is_secondary_region_closed: bool = False
    source: str = "remote"
    version: int = 0

    @classmethod
    def fallback(cls, version: int = 0) -> "RegionAvailability":
        return cls(
            disabled_districts=frozenset(DEFAULT_DISABLED_DISTRICTS),
            disabled_neighborhoods_by_district={
                district: tuple(names)
                for district, names in DEFAULT_DISABLED_NEIGHBORHOODS.items()
            },
            is_secondary_region_closed=DEFAULT_SECONDARY_REGION_CLOSED,
            source="fallback",
            version=version,
        )

    @classmethod
    def from_settings(cls, settings: dict, version: int = 0) -> "RegionAvailability":
        """
        Build from the "delivery" settings category.

        Missing or malformed keys fall back to the defaults individually.
        """
        fallback = cls.fallback()

        districts = settings.get("disabled_districts")
        if isinstance(districts, list):
            disabled_districts = frozenset(str(d) for d in districts if d)
        else:
            disabled_districts = fallback.disabled_districts

        by_district = settings.get("disabled_neighborhoods_by_district")
        if isinstance(by_district, dict):
            neighborhoods = {
                str(district): tuple(str(n) for n in names if n)
                for district, names in by_district.items()
                if isinstance(names, list)
            }
        else:
            neighborhoods = dict(fallback.disabled_neighborhoods_by_district)

        closed = settings.get("is_secondary_region_closed")
        if not isinstance(closed, bool):
            closed = fallback.is_secondary_region_closed

        return cls(
            disabled_districts=disabled_districts,
            disabled_neighborhoods_by_district=neighborhoods,
            is_secondary_region_closed=closed,
            source="remote",
            version=version,
        )


@dataclass(frozen=True)
class AddressResolution:
    """Whether a saved address can be delivered to, with the warning to show if not."""
    supported: bool
    warning: Optional[str] = None


class RegionAvailabilityPolicy:
    """Answers availability questions against one RegionAvailability snapshot."""

    def __init__(self, availability: RegionAvailability | None = None):
        self.availability = availability or RegionAvailability.fallback()
        self._disabled = {fold_name(d) for d in self.availability.disabled_districts}

    def region_for_district(self, district: str) -> Optional[str]:
        return district_region(district)

    def is_district_available(self, district: str) -> bool:
        region = self.region_for_district(district)
        if region is None:
            return False
        if region == SECONDARY_REGION and self.availability.is_secondary_region_closed:
            return False
        return fold_name(district) not in self._disabled

    def district_problem(self, district: str) -> Optional[str]:
        """User-facing reason a district can't be used, or None."""
        region = self.region_for_district(district)
        if region is None:
            return CheckoutMessages.UNSUPPORTED_DISTRICT.format(district=district)
        if region == SECONDARY_REGION and self.availability.is_secondary_region_closed:
            return CheckoutMessages.SECONDARY_REGION_CLOSED
        if fold_name(district) in self._disabled:
            return CheckoutMessages.DISTRICT_CLOSED.format(district=district)
        return None

    def _disabled_neighborhoods(self, district: str) -> tuple[str, ...]:
        key = fold_name(district)
        for name, neighborhoods in self.availability.disabled_neighborhoods_by_district.items():
            if fold_name(name) == key:
                return neighborhoods
        return ()

    def is_neighborhood_available(self, district: str, neighborhood: str) -> bool:
        """
        False when a disabled entry and the neighborhood contain one another.

        The upstream neighborhood directory spells names inconsistently
        ("Cihangir" vs "Cihangir Mah."), so this is a substring match both ways.
        """
        target = fold_name(neighborhood)
        if not target:
            return True
        for disabled in self._disabled_neighborhoods(district):
            entry = fold_name(disabled)
            if entry and (entry in target or target in entry):
                return False
        return True

    def available_districts(self, region: str = PRIMARY_REGION) -> list[str]:
        districts = ISTANBUL_REGIONS.get(region, {}).get("districts", [])
        return [d for d in districts if self.is_district_available(d)]

    def resolve_saved_address(self, address: SavedAddress) -> AddressResolution:
        """
        Check a saved address against the served city and district rules.

        Unsupported addresses stay selectable so the customer sees their data;
        the warning blocks moving forward until they pick another address.
        """
        if fold_name(SERVED_CITY) not in fold_name(address.province):
            return AddressResolution(
                supported=False,
                warning=CheckoutMessages.UNSUPPORTED_CITY.format(city=SERVED_CITY),
            )
        if not self.is_district_available(address.district):
            return AddressResolution(
                supported=False,
                warning=self.district_problem(address.district)
                or CheckoutMessages.UNSUPPORTED_DISTRICT.format(district=address.district),
            )
        return AddressResolution(supported=True)
