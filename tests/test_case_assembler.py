"""Tests for case generation and LMIC post-processing."""
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from medplat import case_assembler
from medplat.case_assembler import CaseAssembler
from medplat.lmic_adapter import WHO_STROKE_GUIDELINE


STROKE_CASE = {
    "meta": {"topic": "Acute ischemic stroke"},
    "history": "Sudden right-sided weakness and aphasia; suspected stroke.",
    "physical_exam": "Right hemiparesis.",
    "final_diagnosis": "Acute ischemic stroke",
    "guidelines": {"usa": ["AHA/ASA 2019"], "international": [], "continental": []},
    "management": {"initial": "Urgent CT scan", "definitive": "MRI follow-up"},
}


def _mock_client(payload):
    client = MagicMock()
    text = payload if isinstance(payload, str) else json.dumps(payload)
    client.models.generate_content.return_value = MagicMock(text=text)
    return client


class TestInitialize:
    def test_missing_key(self):
        assembler = CaseAssembler()
        with patch.object(case_assembler, "get_settings") as settings:
            settings.return_value.gemini_api_key = None
            with pytest.raises(RuntimeError):
                assembler.initialize()
        assert assembler.available is False

    def test_creates_client(self):
        assembler = CaseAssembler()
        with patch.object(case_assembler.genai, "Client") as client_cls:
            assembler.initialize(api_key="test-key")
        client_cls.assert_called_once()
        assert client_cls.call_args.kwargs["api_key"] == "test-key"
        assert assembler.available is True


class TestGenerate:
    def test_not_initialized(self):
        with pytest.raises(RuntimeError):
            CaseAssembler().generate("Stroke")

    def test_requests_json_output(self):
        client = _mock_client({"meta": {}})
        CaseAssembler(client=client, model_name="gemini-test").generate("Sepsis", region="Denmark")

        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert "topic: Sepsis" in kwargs["contents"]
        assert kwargs["config"].response_mime_type == "application/json"

    def test_lmic_instruction_in_prompt(self):
        client = _mock_client({"meta": {}})
        CaseAssembler(client=client).generate("Stroke", region="ng", domains=["neurology"])
        prompt = client.models.generate_content.call_args.kwargs["contents"]
        assert "low-resource (LMIC)" in prompt
        assert "neurology" in prompt

    def test_stroke_case_adapted_for_lmic(self):
        client = _mock_client(STROKE_CASE)
        case = CaseAssembler(client=client).generate(
            "Stroke", region="ng", domains=["neurology", "stroke"], lmic_mode=True
        )
        assert case["meta"]["lmic_mode"] is True
        assert case["meta"]["region"] == "ng"
        assert case["guidelines"]["usa"] == []
        assert case["guidelines"]["international"][0] == WHO_STROKE_GUIDELINE
        assert case["guidelines"]["primary_locked"] == "international"
        assert "clinical assessment (CT unavailable in LMIC)" in case["management"]["initial"]
        assert case["guidelines"]["lmic_alternatives"]
        assert case["management"]["definitive"] == "clinical assessment (MRI unavailable in LMIC) follow-up"
        assert case["meta"]["lmic_enforcement_applied"] is True
        assert case["management"]["lmic_clinical_pathway"]

    def test_fenced_output(self):
        client = _mock_client("```json\n" + json.dumps({"meta": {"topic": "Asthma"}}) + "\n```")
        case = CaseAssembler(client=client).generate("Asthma", region="Denmark")
        assert case["meta"]["topic"] == "Asthma"
        assert case["meta"]["lmic_mode"] is False

    def test_non_json_output(self):
        client = _mock_client("The model declined to answer.")
        with pytest.raises(HTTPException):
            CaseAssembler(client=client).generate("Stroke")


class TestFinalizeCase:
    def _finalize(self, raw, **kwargs):
        params = {"topic": "Stroke", "language": "en", "region": "Denmark", "domains": ["neurology"]}
        params.update(kwargs)
        return CaseAssembler(client=MagicMock()).finalize_case(raw, **params)

    def test_explicit_flag_wins(self):
        case = self._finalize({"meta": {"lmic_mode": False}}, lmic_mode=True)
        assert case["meta"]["lmic_mode"] is True

    def test_model_flag_used_when_no_explicit(self):
        case = self._finalize({"meta": {"lmic_mode": True}})
        assert case["meta"]["lmic_mode"] is True

    def test_detected_when_missing(self):
        assert self._finalize({}, region="Denmark")["meta"]["lmic_mode"] is False
        assert self._finalize({}, region="ng")["meta"]["lmic_mode"] is True

    def test_meta_stamped(self):
        case = self._finalize({"meta": "broken"}, language="da")
        assert case["meta"]["topic"] == "Stroke"
        assert case["meta"]["language"] == "da"
        assert case["meta"]["region"] == "Denmark"
        assert case["meta"]["domains"] == ["neurology"]

    def test_non_lmic_case_untouched(self):
        raw = json.loads(json.dumps(STROKE_CASE))
        case = self._finalize(raw, region="Denmark", domains=["neurology", "stroke"])
        assert case["guidelines"] == STROKE_CASE["guidelines"]
        assert case["management"] == STROKE_CASE["management"]
        assert "meta" in raw and "lmic_mode" not in raw["meta"]

    def test_non_dict_raw_case(self):
        case = self._finalize(["unexpected"])
        assert case["meta"]["topic"] == "Stroke"
