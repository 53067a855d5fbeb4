"""
Tests for district/neighborhood availability and saved address resolution.
"""

from flower_checkout.checkout.messages import CheckoutMessages
from flower_checkout.checkout.models import SavedAddress
from flower_checkout.checkout.region_policy import (
    PRIMARY_REGION,
    SECONDARY_REGION,
    RegionAvailability,
    RegionAvailabilityPolicy,
    fold_name,
    province_label,
)


def make_address(**overrides):
    fields = {
        "id": "addr-1",
        "title": "Home",
        "recipient_name": "Mehmet Demir",
        "recipient_phone": "5321112233",
        "province": "İstanbul",
        "district": "Şişli",
        "neighborhood": "Nişantaşı",
        "street": "Abdi İpekçi Caddesi",
        "building_number": "7",
    }
    fields.update(overrides)
    return SavedAddress(**fields)


class TestFoldName:
    def test_turkish_i_variants_compare_equal(self):
        assert fold_name("İSTANBUL") == fold_name("istanbul")
        assert fold_name("SARIYER") == fold_name("Sarıyer")

    def test_empty(self):
        assert fold_name(None) == ""
        assert fold_name("  ") == ""


class TestProvinceLabel:
    def test_label_per_side(self):
        assert province_label("Beşiktaş") == "İstanbul (Avrupa)"
        assert province_label("ÜSKÜDAR") == "İstanbul (Anadolu)"

    def test_unknown_district_uses_region_then_city(self):
        assert province_label("Nowhere", SECONDARY_REGION) == "İstanbul (Anadolu)"
        assert province_label("Nowhere") == "İstanbul"


class TestFallbackAvailability:
    """The defaults used whenever remote settings are missing."""

    def test_fallback_disables_outer_districts(self):
        policy = RegionAvailabilityPolicy(RegionAvailability.fallback())
        assert not policy.is_district_available("Çatalca")
        assert not policy.is_district_available("ÇATALCA")
        assert policy.is_district_available("Beşiktaş")

    def test_fallback_closes_secondary_region(self):
        policy = RegionAvailabilityPolicy(RegionAvailability.fallback())
        assert not policy.is_district_available("Kadıköy")
        assert policy.district_problem("Kadıköy") == CheckoutMessages.SECONDARY_REGION_CLOSED
        assert policy.available_districts(SECONDARY_REGION) == []

    def test_default_policy_uses_fallback(self):
        policy = RegionAvailabilityPolicy()
        assert policy.availability.source == "fallback"


class TestDistricts:
    def test_region_lookup(self):
        policy = RegionAvailabilityPolicy()
        assert policy.region_for_district("beşiktaş") == PRIMARY_REGION
        assert policy.region_for_district("Üsküdar") == SECONDARY_REGION
        assert policy.region_for_district("Çankaya") is None

    def test_unknown_district(self):
        policy = RegionAvailabilityPolicy()
        assert not policy.is_district_available("Çankaya")
        assert policy.district_problem("Çankaya") == CheckoutMessages.UNSUPPORTED_DISTRICT.format(district="Çankaya")

    def test_closed_district_problem(self):
        policy = RegionAvailabilityPolicy()
        assert policy.district_problem("Silivri") == CheckoutMessages.DISTRICT_CLOSED.format(district="Silivri")
        assert policy.district_problem("Fatih") is None

    def test_open_secondary_region(self):
        availability = RegionAvailability(
            disabled_districts=frozenset({"Beykoz"}),
            is_secondary_region_closed=False,
        )
        policy = RegionAvailabilityPolicy(availability)
        assert policy.is_district_available("Kadıköy")
        assert not policy.is_district_available("Beykoz")
        assert "Beykoz" not in policy.available_districts(SECONDARY_REGION)
        assert "Kadıköy" in policy.available_districts(SECONDARY_REGION)

    def test_available_districts_excludes_disabled(self):
        districts = RegionAvailabilityPolicy().available_districts(PRIMARY_REGION)
        assert "Çatalca" not in districts
        assert "Beyoğlu" in districts


class TestNeighborhoods:
    def make_policy(self):
        return RegionAvailabilityPolicy(RegionAvailability(
            disabled_neighborhoods_by_district={"Beyoğlu": ("Cihangir",)},
        ))

    def test_substring_match_both_ways(self):
        policy = self.make_policy()
        assert not policy.is_neighborhood_available("Beyoğlu", "Cihangir")
        assert not policy.is_neighborhood_available("Beyoğlu", "Cihangir Mah.")
        assert not policy.is_neighborhood_available("beyoğlu", "CİHANGİR")

    def test_other_neighborhoods_open(self):
        policy = self.make_policy()
        assert policy.is_neighborhood_available("Beyoğlu", "Galata")
        assert policy.is_neighborhood_available("Fatih", "Cihangir")

    def test_blank_neighborhood_is_not_blocked(self):
        assert self.make_policy().is_neighborhood_available("Beyoğlu", "")


class TestFromSettings:
    def test_full_settings(self):
        availability = RegionAvailability.from_settings({
            "disabled_districts": ["Arnavutköy"],
            "disabled_neighborhoods_by_district": {"Şişli": ["Bomonti"]},
            "is_secondary_region_closed": False,
        }, version=3)
        assert availability.disabled_districts == frozenset({"Arnavutköy"})
        assert availability.disabled_neighborhoods_by_district == {"Şişli": ("Bomonti",)}
        assert availability.is_secondary_region_closed is False
        assert availability.source == "remote"
        assert availability.version == 3

    def test_malformed_keys_fall_back_individually(self):
        availability = RegionAvailability.from_settings({
            "disabled_districts": "Arnavutköy",
            "is_secondary_region_closed": "no",
        })
        fallback = RegionAvailability.fallback()
        assert availability.disabled_districts == fallback.disabled_districts
        assert availability.is_secondary_region_closed == fallback.is_secondary_region_closed


class TestSavedAddressResolution:
    def test_supported_address(self):
        resolution = RegionAvailabilityPolicy().resolve_saved_address(make_address())
        assert resolution.supported
        assert resolution.warning is None

    def test_other_city(self):
        resolution = RegionAvailabilityPolicy().resolve_saved_address(
            make_address(province="Ankara", district="Çankaya")
        )
        assert not resolution.supported
        assert resolution.warning == CheckoutMessages.UNSUPPORTED_CITY.format(city="İstanbul")

    def test_province_with_region_suffix(self):
        resolution = RegionAvailabilityPolicy().resolve_saved_address(
            make_address(province="ISTANBUL (AVRUPA)")
        )
        assert resolution.supported

    def test_closed_district(self):
        resolution = RegionAvailabilityPolicy().resolve_saved_address(make_address(district="Çatalca"))
        assert not resolution.supported
        assert resolution.warning == CheckoutMessages.DISTRICT_CLOSED.format(district="Çatalca")
