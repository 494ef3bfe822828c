"""Tests for the HTTP endpoints."""
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from medplat import main, rate_limiter
from medplat.case_assembler import CaseAssembler
from medplat.guideline_registry import FALLBACK_REGION_LABEL, GuidelineRegistry
from medplat.region_resolver import RegionNameTranslator


@pytest.fixture(autouse=True)
def fresh_rate_limits():
    rate_limiter.rate_limit_manager.limiters.clear()
    yield
    rate_limiter.rate_limit_manager.limiters.clear()


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def translator():
    names = RegionNameTranslator({"dk": "Denmark", "gb": "United Kingdom"})
    with patch.object(main, "get_translator", return_value=names):
        yield names


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "WHO" in data["guideline_regions"]


class TestRegionEndpoint:
    def test_detects_region(self, client, translator):
        response = client.get("/api/region", headers={"X-AppEngine-Country": "DK"})
        assert response.json() == {"ok": True, "region": "dk", "display_name": "Denmark"}

    def test_global_without_headers(self, client, translator):
        response = client.get("/api/region")
        assert response.json() == {"ok": True, "region": "global", "display_name": None}

    def test_rate_limit_headers(self, client):
        response = client.get("/api/region")
        assert response.headers["X-RateLimit-Limit"] == "60"
        assert "X-Request-ID" in response.headers


class TestUnhandledErrors:
    def test_json_500_with_request_id(self):
        client = TestClient(main.app, raise_server_exceptions=False)
        with patch.object(main, "get_translator", side_effect=RuntimeError("mapping unreadable")), \
                patch.object(main, "log_request") as log_request:
            response = client.get("/api/region", headers={"X-Request-ID": "req-4242"})

        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "Internal server error"}
        assert response.headers["X-Request-ID"] == "req-4242"
        assert log_request.call_args.kwargs["status_code"] == 500
        assert log_request.call_args.kwargs["path"] == "/api/region"


class TestGuidelinesEndpoint:
    def test_explicit_region(self, client):
        response = client.get("/api/guidelines", params={"region": "Denmark", "topic": "Atrial Fibrillation"})
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["region"] == "Denmark"
        assert data["topic"] == "Atrial Fibrillation"
        assert data["guidelines"][0]["society"] == "Sundhedsstyrelsen"
        assert data["note"]

    def test_defaults_to_auto_fallback(self, client, translator):
        response = client.get("/api/guidelines")
        data = response.json()
        assert data["region"] == FALLBACK_REGION_LABEL
        assert data["topic"] == ""
        assert data["guidelines"][0]["society"] == "WHO"
        assert [g["society"] for g in data["guidelines"][-2:]] == ["ESC", "AHA"]

    def test_auto_uses_translated_header_region(self, client, translator):
        response = client.get("/api/guidelines", headers={"CF-IPCountry": "GB"})
        data = response.json()
        assert data["region"] == "United Kingdom"
        assert data["guidelines"][0]["society"] == "NICE"

    def test_auto_without_mapping_falls_back(self, client, translator):
        response = client.get("/api/guidelines", headers={"X-AppEngine-Country": "NG"})
        assert response.json()["region"] == FALLBACK_REGION_LABEL

    def test_explicit_code_translated(self, client, translator):
        response = client.get("/api/guidelines", params={"region": "dk"})
        assert response.json()["region"] == "Denmark"

    def test_unknown_region_echoed_with_fallback(self, client):
        data = client.get("/api/guidelines", params={"region": "Atlantis"}).json()
        assert data["region"] == "Atlantis"
        assert data["guidelines"][0]["society"] == "WHO"

    def test_internal_error(self, client):
        broken = MagicMock(spec=GuidelineRegistry)
        broken.lookup.side_effect = RuntimeError("registry corrupted")
        with patch.object(main, "get_registry", return_value=broken):
            response = client.get("/api/guidelines", params={"region": "Denmark"})
        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "registry corrupted"}


class TestGenerateCaseEndpoint:
    def test_not_configured(self, client):
        with patch.object(main, "get_case_assembler", return_value=CaseAssembler()):
            response = client.post("/api/cases/generate", json={"topic": "Stroke"})
        assert response.status_code == 503

    def test_empty_topic_rejected(self, client):
        response = client.post("/api/cases/generate", json={"topic": "   "})
        assert response.status_code == 422

    def test_generates_lmic_case(self, client):
        llm = MagicMock()
        llm.models.generate_content.return_value = MagicMock(text=json.dumps({
            "meta": {},
            "history": "Acute ischemic stroke with left hemiparesis",
            "guidelines": {"usa": ["AHA/ASA"], "international": [], "continental": []},
            "management": {"initial": "CT scan now", "definitive": "Aspirin"},
        }))
        with patch.object(main, "get_case_assembler", return_value=CaseAssembler(client=llm)):
            response = client.post(
                "/api/cases/generate",
                json={"topic": "Stroke", "domains": ["Neurology"]},
                headers={"CF-IPCountry": "NG"},
            )

        assert response.status_code == 200
        data = response.json()
        assert data["region"] == "ng"
        assert data["lmic_mode"] is True
        assert data["case"]["guidelines"]["primary_locked"] == "international"
        assert data["case"]["management"]["initial"].startswith("clinical assessment (CT unavailable in LMIC)")

    def test_llm_failure(self, client):
        llm = MagicMock()
        llm.models.generate_content.side_effect = RuntimeError("upstream timeout")
        with patch.object(main, "get_case_assembler", return_value=CaseAssembler(client=llm)):
            response = client.post("/api/cases/generate", json={"topic": "Stroke", "region": "Denmark"})
        assert response.status_code == 502

    def test_rate_limited(self, client):
        with patch.object(main, "get_case_assembler", return_value=CaseAssembler()):
            statuses = [
                client.post("/api/cases/generate", json={"topic": "Stroke"}).status_code
                for _ in range(6)
            ]
        assert statuses[:5] == [503] * 5
        assert statuses[5] == 429

    def test_header_country_translated_before_lmic_decision(self, client):
        llm = MagicMock()
        llm.models.generate_content.return_value = MagicMock(text=json.dumps({
            "meta": {},
            "history": "Acute ischemic stroke with aphasia",
            "guidelines": {"usa": ["AHA/ASA"]},
            "management": {"initial": "CT scan now", "definitive": "Thrombolysis"},
        }))
        names = RegionNameTranslator({"de": "Germany"})
        with patch.object(main, "get_translator", return_value=names), \
                patch.object(main, "get_case_assembler", return_value=CaseAssembler(client=llm)):
            response = client.post(
                "/api/cases/generate",
                json={"topic": "Stroke", "domains": ["neurology"]},
                headers={"X-AppEngine-Country": "DE"},
            )

        assert response.status_code == 200
        data = response.json()
        assert data["region"] == "Germany"
        assert data["lmic_mode"] is False
        assert data["case"]["management"]["initial"] == "CT scan now"
        assert "lmic_enforcement_applied" not in data["case"]["meta"]

    def test_translated_uk_region_is_high_resource(self, client, translator):
        llm = MagicMock()
        llm.models.generate_content.return_value = MagicMock(text=json.dumps({"meta": {}}))
        with patch.object(main, "get_case_assembler", return_value=CaseAssembler(client=llm)):
            response = client.post("/api/cases/generate", json={"topic": "Asthma"}, headers={"CF-IPCountry": "GB"})

        assert response.json()["region"] == "United Kingdom"
        assert response.json()["lmic_mode"] is False
