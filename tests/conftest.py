from __future__ import annotations

import copy

import pytest

from buildorbail import create_app, db, routes
from buildorbail.gemini import AnalysisError, parse_analysis

SUBMISSION = {
    "appName": "CryptoSocks",
    "description": "A subscription service that sends you crypto-themed socks every month.",
    "targetMarket": "Crypto enthusiasts",
    "budget": "Subscription fees",
    "agreeToTerms": True,
}

BAIL_PAYLOAD = {
    "verdict": "BAIL",
    "overall_score": 2,
    "market_reality": {"score": 2, "analysis": "Nobody wants this. The market is tiny."},
    "competition_analysis": {"score": 3, "analysis": "Sock clubs already exist. They ship cheaper."},
    "technical_feasibility": {"score": 8, "analysis": "Trivial to build. Shopify does it."},
    "monetization_reality": {"score": 1, "analysis": "Churn will eat you alive. Margins are thin."},
    "fatal_flaws": ["No demand", "Commodity product", "Crypto fad", "High churn"],
    "time_saved_hours": 120,
    "actionable_steps": ["Talk to ten sock buyers"],
}

BUILD_PAYLOAD = {
    "verdict": "BUILD",
    "overall_score": 8,
    "market_reality": {"score": 8, "analysis": "Chronic patients need this. Demand is proven."},
    "competition_analysis": {"score": 6, "analysis": "Incumbents are clunky. There is room."},
    "technical_feasibility": {"score": 7, "analysis": "Device integrations are doable. Start with two."},
    "monetization_reality": {"score": 7, "analysis": "Clinics will pay for reports. Freemium works."},
    "fatal_flaws": ["Regulatory exposure"],
    "time_saved_hours": 0,
}


class FakeLLM:
    """Stands in for the Gemini call; returns ``payload`` or raises ``error``."""

    def __init__(self):
        self.payload = copy.deepcopy(BAIL_PAYLOAD)
        self.error = None
        self.calls = []

    def __call__(self, idea):
        self.calls.append(idea)
        if self.error is not None:
            raise self.error
        return parse_analysis(self.payload)

    def fail(self, message="Gemini is down"):
        self.error = AnalysisError(message)


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
        "GEMINI_API_KEY": "test-key",
        "LLM_FALLBACK_ENABLED": True,
        "RATE_LIMIT_ENABLED": True,
        "RATE_LIMIT_MAX_REQUESTS": 3,
        "RATE_LIMIT_WINDOW_SECONDS": 3600,
        "TRUSTED_PROXY_COUNT": 1,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(routes, "brutally_analyze", fake)
    return fake


@pytest.fixture
def submission():
    return dict(SUBMISSION)
