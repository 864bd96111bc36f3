from datetime import datetime
import logging

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .gemini import AnalysisError, brutally_analyze, fallback_analysis, to_validation_analysis
from .rate_limit import check_rate_limit, record_request
from .schemas import validate_submission
from .storage import (
    create_idea_with_result,
    get_all_results,
    get_analytics,
    get_bail_verdicts,
    get_result_with_idea,
)
from .utils import (
    clamp,
    client_ip,
    format_validation_errors,
    isoformat,
    result_to_dict,
    shame_entry_to_dict,
)

# -------------------------------------------------------------------
# Blueprint & Logging
# -------------------------------------------------------------------
main = Blueprint("main", __name__)
logger = logging.getLogger(__name__)

MAX_RESULTS = 100
DEFAULT_SHAME_LIMIT = 50


# -------------------------------------------------------------------
# Health
# -------------------------------------------------------------------
@main.route("/api/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "timestamp": isoformat(datetime.utcnow())})


# -------------------------------------------------------------------
# Analyze Idea Route
# -------------------------------------------------------------------
@main.route("/api/analyze", methods=["POST"])
@main.route("/api/validate", methods=["POST"])
def analyze_idea():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"message": "Invalid JSON in request body"}), 400

    # 🧾 STEP 1: Validate input
    try:
        submission = validate_submission(payload)
    except ValidationError as e:
        return jsonify({
            "message": "Invalid input data",
            "errors": format_validation_errors(e),
        }), 400

    # 🚦 STEP 2: Rate limit by IP
    user_ip = client_ip(request)
    status = check_rate_limit(user_ip)
    if not status.allowed:
        logger.info(f"Rate limit hit for {user_ip}")
        response = jsonify({
            "message": "Too many submissions. Come back when the window resets.",
            "remainingRequests": 0,
            "resetAt": isoformat(status.reset_at),
        })
        if status.reset_at:
            retry_after = max(1, int((status.reset_at - datetime.utcnow()).total_seconds()))
            response.headers["Retry-After"] = str(retry_after)
        return response, 429
    record_request(user_ip)

    # 🔥 STEP 3: Gemini brutal analysis
    try:
        brutal = brutally_analyze(submission)
    except AnalysisError as e:
        if not current_app.config["LLM_FALLBACK_ENABLED"]:
            logger.error(f"Analysis failed for {submission.appName!r}: {e}")
            return jsonify({"message": f"Failed to analyze app idea: {e}"}), 502
        logger.warning(f"Analysis failed, serving fallback critique: {e}")
        brutal = fallback_analysis()

    analysis = to_validation_analysis(brutal)
    raw_payload = brutal.model_dump()

    # 💾 STEP 4: Save to DB
    try:
        _, result = create_idea_with_result(submission, analysis, raw_payload, user_ip=user_ip)
        body = result_to_dict(result)
        body["persisted"] = True
    except SQLAlchemyError as e:
        logger.error(f"Database insert failed: {e}")
        body = _unsaved_result(submission, analysis, raw_payload)

    body["remainingRequests"] = status.remaining
    return jsonify(body)


def _unsaved_result(submission, analysis, raw_payload):
    now = isoformat(datetime.utcnow())
    return {
        "id": None,
        "appIdeaId": None,
        **analysis,
        "brutalAnalysis": raw_payload,
        "createdAt": now,
        "appIdea": {
            "id": None,
            "appName": submission.appName,
            "userName": submission.userName,
            "description": submission.description,
            "targetMarket": submission.targetMarket,
            "budget": submission.budget,
            "features": submission.features,
            "competition": submission.competition,
            "createdAt": now,
        },
        "persisted": False,
    }


# -------------------------------------------------------------------
# Results
# -------------------------------------------------------------------
@main.route("/api/results", methods=["GET"])
def list_results():
    try:
        results = get_all_results(limit=MAX_RESULTS)
    except SQLAlchemyError as e:
        logger.error(f"Results fetch failed: {e}")
        return jsonify({"message": "Failed to get validation results"}), 500
    return jsonify([result_to_dict(r) for r in results])


@main.route("/api/results/<result_id>", methods=["GET"])
def get_result(result_id):
    try:
        result = get_result_with_idea(result_id)
    except SQLAlchemyError as e:
        logger.error(f"Result fetch failed: {e}")
        return jsonify({"message": "Failed to get validation result"}), 500

    if result is None:
        return jsonify({"message": "Validation result not found"}), 404
    return jsonify(result_to_dict(result))


# -------------------------------------------------------------------
# Wall of Shame
# -------------------------------------------------------------------
@main.route("/api/wall-of-shame", methods=["GET"])
def wall_of_shame():
    limit = request.args.get("limit", DEFAULT_SHAME_LIMIT, type=int)
    limit = clamp(limit, 1, MAX_RESULTS)
    try:
        results = get_bail_verdicts(limit=limit)
    except SQLAlchemyError as e:
        logger.error(f"Wall of shame fetch failed: {e}")
        return jsonify({"message": "Failed to get wall of shame"}), 500
    return jsonify([shame_entry_to_dict(r, rank) for rank, r in enumerate(results, start=1)])


# -------------------------------------------------------------------
# Admin Analytics
# -------------------------------------------------------------------
@main.route("/api/admin/analytics", methods=["GET"])
def analytics():
    try:
        return jsonify(get_analytics())
    except SQLAlchemyError as e:
        logger.error(f"Analytics fetch failed: {e}")
        return jsonify({"message": "Failed to get analytics"}), 500
