import json
import logging
import re

import google.generativeai as genai
from flask import current_app
from pydantic import ValidationError

from .schemas import BrutalAnalysis

logger = logging.getLogger(__name__)

SECTIONS = (
    ("market_reality", "Market Reality"),
    ("competition_analysis", "Competition"),
    ("technical_feasibility", "Technical"),
    ("monetization_reality", "Monetization"),
)


class AnalysisError(Exception):
    """The model could not be reached or returned something unusable."""


# -------------------------------------------------------------------
# Prompt
# -------------------------------------------------------------------
def build_prompt(idea):
    extra = ""
    if idea.features:
        extra += f"Key Features: {idea.features}\n"
    if idea.competition:
        extra += f"Known Competition: {idea.competition}\n"

    return f"""You are a brutally honest startup advisor and technical expert known for destroying bad ideas with facts. Analyze this app idea and provide harsh but constructive feedback.

App Name: {idea.appName}
Description: {idea.description}
Target Market: {idea.targetMarket}
Budget / Monetization: {idea.budget or 'Not specified'}
{extra}
First destroy the idea with brutal honesty, then help fix it: give 3-5 specific actionable steps,
ways to differentiate from existing competition, 2-3 pivot approaches and validation steps to take
before writing any code. Only give a BUILD verdict if the idea is genuinely promising.

Respond with valid JSON in this exact format:
{{
  "overall_score": <number 1-10>,
  "verdict": "<BUILD|BAIL|CAUTION>",
  "market_reality": {{"score": <number 1-10>, "analysis": "<market demand, size and timing>"}},
  "competition_analysis": {{"score": <number 1-10>, "analysis": "<existing competitors and why this is not unique enough>"}},
  "technical_feasibility": {{"score": <number 1-10>, "analysis": "<technical challenges and required expertise>"}},
  "monetization_reality": {{"score": <number 1-10>, "analysis": "<why the money-making plan will or won't work>"}},
  "fatal_flaws": ["<flaw1>", "<flaw2>", "<flaw3>"],
  "time_saved_hours": <estimated hours saved by not building>,
  "brutal_summary": "<snarky one-liner>",
  "actionable_steps": ["<step1>", "<step2>", "<step3>"],
  "differentiation_strategy": "<strategy advice>",
  "pivot_suggestions": ["<pivot1>", "<pivot2>"],
  "validation_steps": ["<validation1>", "<validation2>", "<validation3>"]
}}
"""


# -------------------------------------------------------------------
# Model call
# -------------------------------------------------------------------
def extract_json(text):
    """Parse the JSON object out of a model reply, tolerating code fences."""
    if not text or not text.strip():
        raise AnalysisError("Empty response from Gemini API")

    cleaned = re.sub(r"```(json)?", "", text).strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end == -1:
        raise AnalysisError("No JSON object in Gemini response")

    try:
        data = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Invalid JSON response from Gemini API: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError("Gemini response is not a JSON object")
    return data


def parse_analysis(data):
    try:
        return BrutalAnalysis.model_validate(data)
    except ValidationError as e:
        raise AnalysisError(f"Invalid response structure from Gemini API: {e.error_count()} error(s)") from e
    except TypeError as e:
        raise AnalysisError(f"Invalid response structure from Gemini API: {e}") from e


def brutally_analyze(idea):
    """Ask Gemini to tear the idea apart. Raises AnalysisError on any failure."""
    config = current_app.config
    api_key = config.get("GEMINI_API_KEY")
    if not api_key:
        raise AnalysisError("GEMINI_API_KEY environment variable is required")

    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(
        config["GEMINI_MODEL"],
        generation_config={"response_mime_type": "application/json"},
    )

    try:
        response = model.generate_content(
            build_prompt(idea),
            request_options={"timeout": config["GEMINI_TIMEOUT_SECONDS"]},
        )
        raw_text = response.text
    except Exception as e:
        # the SDK raises a mix of google.api_core and ValueError types
        logger.error(f"Gemini API error: {e}")
        raise AnalysisError(f"Gemini API error: {e}") from e

    return parse_analysis(extract_json(raw_text))


def fallback_analysis():
    """Canned critique used when the model is unavailable."""
    return BrutalAnalysis(
        verdict="CAUTION",
        overall_score=5,
        market_reality={
            "score": 5,
            "analysis": "Our analyst is unavailable right now. Assume the market is crowded until you prove otherwise.",
        },
        competition_analysis={
            "score": 5,
            "analysis": "Competitors were not checked. Search for them before you write a line of code.",
        },
        technical_feasibility={
            "score": 5,
            "analysis": "Feasibility was not assessed. Scope the smallest version you could ship in two weeks.",
        },
        monetization_reality={
            "score": 5,
            "analysis": "Monetization was not assessed. Find ten people willing to pay before building.",
        },
        fatal_flaws=["Not yet validated with real users"],
        time_saved_hours=0,
        brutal_summary="No verdict today. Go talk to customers instead.",
        actionable_steps=[
            "Interview at least ten people in your target market",
            "Put up a landing page and measure sign-ups",
            "Submit the idea again later for a full analysis",
        ],
        fallback=True,
    )


# -------------------------------------------------------------------
# Transform to the stored result shape
# -------------------------------------------------------------------
def _first_sentence(text):
    return (text or "").split(".")[0].strip()


def to_validation_analysis(brutal):
    hopeful = brutal.verdict != "BAIL"

    strengths, opportunities = [], []
    if hopeful:
        strengths = [
            s for s in (
                _first_sentence(brutal.market_reality.analysis),
                _first_sentence(brutal.technical_feasibility.analysis),
            ) if s
        ]
        opportunities = [
            s for s in (
                _first_sentence(brutal.monetization_reality.analysis),
                _first_sentence(brutal.competition_analysis.analysis),
            ) if s
        ]

    detailed = "\n\n".join(
        f"{label} ({getattr(brutal, key).score:g}/10): {getattr(brutal, key).analysis}"
        for key, label in SECTIONS
    )

    action_items = list(brutal.actionable_steps) + [
        f"Address fatal flaw {i}: {flaw}" for i, flaw in enumerate(brutal.fatal_flaws, start=1)
    ]

    return {
        "score": brutal.overall_score,
        "verdict": brutal.verdict,
        "strengths": strengths,
        "weaknesses": list(brutal.fatal_flaws),
        "opportunities": opportunities,
        "detailedAnalysis": detailed,
        "actionItems": action_items,
        "timeSavedHours": brutal.time_saved_hours,
    }
