from __future__ import annotations

import json

import pytest

from buildorbail import gemini
from buildorbail.gemini import (
    AnalysisError,
    brutally_analyze,
    build_prompt,
    extract_json,
    fallback_analysis,
    parse_analysis,
    to_validation_analysis,
)
from buildorbail.schemas import BrutalAnalysis, validate_submission

from conftest import BAIL_PAYLOAD, BUILD_PAYLOAD


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    reply = ""
    error = None
    created = []

    def __init__(self, model_name, generation_config=None):
        self.model_name = model_name
        self.generation_config = generation_config
        FakeModel.created.append(self)

    def generate_content(self, prompt, request_options=None):
        self.prompt = prompt
        self.request_options = request_options
        if FakeModel.error is not None:
            raise FakeModel.error
        return FakeResponse(FakeModel.reply)


@pytest.fixture
def fake_genai(monkeypatch):
    FakeModel.reply = json.dumps(BAIL_PAYLOAD)
    FakeModel.error = None
    FakeModel.created = []
    monkeypatch.setattr(gemini.genai, "configure", lambda **kwargs: None)
    monkeypatch.setattr(gemini.genai, "GenerativeModel", FakeModel)
    return FakeModel


def test_extract_json_strips_code_fences() -> None:
    text = "```json\n{\"verdict\": \"BAIL\", \"overall_score\": 2}\n```"
    assert extract_json(text) == {"verdict": "BAIL", "overall_score": 2}


def test_extract_json_ignores_chatter_around_object() -> None:
    assert extract_json('Sure! {"verdict": "BUILD"} Good luck.') == {"verdict": "BUILD"}


@pytest.mark.parametrize("text", ["", "   ", "no json here", "{not: valid}"])
def test_extract_json_rejects_garbage(text) -> None:
    with pytest.raises(AnalysisError):
        extract_json(text)


def test_parse_analysis_rejects_missing_score() -> None:
    with pytest.raises(AnalysisError):
        parse_analysis({"verdict": "BAIL"})


def test_prompt_mentions_optional_fields(submission) -> None:
    submission.pop("budget")
    submission["features"] = "QR codes on every sock"
    prompt = build_prompt(validate_submission(submission))
    assert "App Name: CryptoSocks" in prompt
    assert "Budget / Monetization: Not specified" in prompt
    assert "Key Features: QR codes on every sock" in prompt
    assert "Known Competition" not in prompt


def test_brutally_analyze_calls_gemini(app, fake_genai, submission) -> None:
    with app.app_context():
        analysis = brutally_analyze(validate_submission(submission))
    assert analysis.verdict == "BAIL"
    assert analysis.overall_score == 2
    model = fake_genai.created[0]
    assert model.model_name == app.config["GEMINI_MODEL"]
    assert model.generation_config == {"response_mime_type": "application/json"}
    assert model.request_options == {"timeout": app.config["GEMINI_TIMEOUT_SECONDS"]}


def test_brutally_analyze_wraps_sdk_errors(app, fake_genai, submission) -> None:
    fake_genai.error = RuntimeError("quota exceeded")
    with app.app_context():
        with pytest.raises(AnalysisError, match="quota exceeded"):
            brutally_analyze(validate_submission(submission))


def test_brutally_analyze_rejects_empty_reply(app, fake_genai, submission) -> None:
    fake_genai.reply = ""
    with app.app_context():
        with pytest.raises(AnalysisError, match="Empty response"):
            brutally_analyze(validate_submission(submission))


def test_brutally_analyze_requires_api_key(app, fake_genai, submission) -> None:
    app.config["GEMINI_API_KEY"] = None
    with app.app_context():
        with pytest.raises(AnalysisError, match="GEMINI_API_KEY"):
            brutally_analyze(validate_submission(submission))
    assert fake_genai.created == []


def test_fallback_is_flagged_caution() -> None:
    analysis = fallback_analysis()
    assert analysis.verdict == "CAUTION"
    assert analysis.overall_score == 5
    assert analysis.fallback is True


def test_transform_bail_has_no_strengths() -> None:
    result = to_validation_analysis(BrutalAnalysis.model_validate(BAIL_PAYLOAD))
    assert result["verdict"] == "BAIL"
    assert result["score"] == 2
    assert result["strengths"] == []
    assert result["opportunities"] == []
    assert result["weaknesses"] == BAIL_PAYLOAD["fatal_flaws"]
    assert result["timeSavedHours"] == 120
    assert result["actionItems"][0] == "Talk to ten sock buyers"
    assert result["actionItems"][1] == "Address fatal flaw 1: No demand"
    assert len(result["actionItems"]) == 1 + len(BAIL_PAYLOAD["fatal_flaws"])


def test_transform_build_takes_first_sentences() -> None:
    result = to_validation_analysis(BrutalAnalysis.model_validate(BUILD_PAYLOAD))
    assert result["strengths"] == [
        "Chronic patients need this",
        "Device integrations are doable",
    ]
    assert result["opportunities"] == [
        "Clinics will pay for reports",
        "Incumbents are clunky",
    ]
    assert result["detailedAnalysis"].startswith(
        "Market Reality (8/10): Chronic patients need this. Demand is proven."
    )
    assert "\n\nMonetization (7/10): " in result["detailedAnalysis"]


def test_parse_analysis_wraps_bad_list_types() -> None:
    with pytest.raises(AnalysisError):
        parse_analysis({"verdict": "BAIL", "overall_score": 2, "fatal_flaws": 5})


def test_infinity_in_reply_is_neutralized() -> None:
    data = extract_json('{"verdict": "BAIL", "overall_score": 2, "time_saved_hours": Infinity}')
    assert parse_analysis(data).time_saved_hours == 0
