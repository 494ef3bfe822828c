"""Tests for header-based region detection and region name translation."""
from starlette.datastructures import Headers

from medplat.region_resolver import (
    GLOBAL_REGION,
    RegionNameTranslator,
    RegionResolver,
    resolve_region,
)


class TestResolveRegion:
    """Test resolve_region with the default header sources."""

    def test_no_headers(self):
        assert resolve_region({}) == GLOBAL_REGION

    def test_unrelated_headers_only(self):
        assert resolve_region({"user-agent": "pytest", "x-forwarded-for": "10.0.0.1"}) == "global"

    def test_app_platform_header(self):
        assert resolve_region({"x-appengine-country": "DK"}) == "dk"

    def test_app_platform_header_wins_over_cdn(self):
        headers = {"x-appengine-country": "DK", "cf-ipcountry": "US"}
        assert resolve_region(headers) == "dk"

    def test_cdn_header_used_when_app_header_missing(self):
        assert resolve_region({"cf-ipcountry": "NG"}) == "ng"

    def test_app_sentinel_falls_through_to_cdn(self):
        headers = {"x-appengine-country": "ZZ", "cf-ipcountry": "KE"}
        assert resolve_region(headers) == "ke"

    def test_both_sentinels(self):
        headers = {"x-appengine-country": "ZZ", "cf-ipcountry": "T1"}
        assert resolve_region(headers) == "global"

    def test_sentinel_case_insensitive(self):
        assert resolve_region({"cf-ipcountry": "t1"}) == "global"

    def test_blank_value_ignored(self):
        headers = {"x-appengine-country": "  ", "cf-ipcountry": "gb"}
        assert resolve_region(headers) == "gb"

    def test_header_name_case_insensitive_for_dicts(self):
        assert resolve_region({"X-AppEngine-Country": "SE"}) == "se"

    def test_starlette_headers(self):
        headers = Headers({"CF-IPCountry": "IN"})
        assert resolve_region(headers) == "in"

    def test_none_headers(self):
        assert resolve_region(None) == "global"

    def test_non_string_value(self):
        assert resolve_region({"x-appengine-country": 42}) == "global"

    def test_broken_headers_object(self):
        class Exploding(dict):
            def get(self, *args, **kwargs):
                raise RuntimeError("boom")

        assert resolve_region(Exploding()) == "global"


class TestRegionResolverSources:
    """Test custom header source tables."""

    def test_custom_source_table(self):
        resolver = RegionResolver(header_sources=[("x-country", "XX")])
        assert resolver.resolve({"x-country": "FR"}) == "fr"
        assert resolver.resolve({"x-country": "XX"}) == "global"
        assert resolver.resolve({"x-appengine-country": "DK"}) == "global"

    def test_empty_source_table(self):
        assert RegionResolver(header_sources=[]).resolve({"cf-ipcountry": "DK"}) == "global"


class TestRegionNameTranslator:
    """Test RegionNameTranslator."""

    def test_no_default_mapping(self):
        translator = RegionNameTranslator()
        assert len(translator) == 0
        assert translator.to_display_name("dk") is None
        assert translator.to_display_name("us") is None

    def test_supplied_mapping(self):
        translator = RegionNameTranslator({"dk": "Denmark", "GB": "United Kingdom"})
        assert translator.to_display_name("dk") == "Denmark"
        assert translator.to_display_name("DK") == "Denmark"
        assert translator.to_display_name("gb") == "United Kingdom"

    def test_unknown_and_empty_codes(self):
        translator = RegionNameTranslator({"dk": "Denmark"})
        assert translator.to_display_name("global") is None
        assert translator.to_display_name("") is None
        assert translator.to_display_name(None) is None
