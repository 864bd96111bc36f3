from . import db
from .models import AppIdea, ValidationResult


def create_idea_with_result(submission, analysis, raw_payload, user_ip=None):
    """Insert the idea and its result in one transaction."""
    idea = AppIdea(
        app_name=submission.appName,
        user_name=submission.userName,
        description=submission.description,
        target_market=submission.targetMarket,
        budget=submission.budget,
        features=submission.features,
        competition=submission.competition,
        user_ip=user_ip,
    )
    result = ValidationResult(
        app_idea=idea,
        score=analysis["score"],
        verdict=analysis["verdict"],
        strengths=analysis["strengths"],
        weaknesses=analysis["weaknesses"],
        opportunities=analysis["opportunities"],
        detailed_analysis=analysis["detailedAnalysis"],
        action_items=analysis["actionItems"],
        time_saved_hours=analysis["timeSavedHours"],
        raw_payload=raw_payload,
    )
    try:
        db.session.add(idea)
        db.session.add(result)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return idea, result


def get_result_with_idea(result_id):
    return (
        ValidationResult.query
        .join(AppIdea)
        .filter(ValidationResult.id == result_id)
        .first()
    )


def get_all_results(limit=100):
    return (
        ValidationResult.query
        .join(AppIdea)
        .order_by(ValidationResult.created_at.desc())
        .limit(limit)
        .all()
    )


def get_bail_verdicts(limit=50):
    return (
        ValidationResult.query
        .join(AppIdea)
        .filter(ValidationResult.verdict == "BAIL")
        .order_by(ValidationResult.created_at.desc())
        .limit(limit)
        .all()
    )


def get_analytics():
    total, average, time_saved = db.session.query(
        db.func.count(ValidationResult.id),
        db.func.avg(ValidationResult.score),
        db.func.sum(ValidationResult.time_saved_hours),
    ).one()

    counts = dict(
        db.session.query(ValidationResult.verdict, db.func.count(ValidationResult.id))
        .group_by(ValidationResult.verdict)
        .all()
    )
    build = counts.get("BUILD", 0)
    bail = counts.get("BAIL", 0)

    return {
        "totalIdeasAnalyzed": total,
        "totalBuildVerdicts": build,
        "totalBailVerdicts": bail,
        "totalCautionVerdicts": counts.get("CAUTION", 0),
        "totalTimeSaved": round(float(time_saved or 0), 1),
        "averageScore": round(float(average or 0), 1),
        "buildBailRatio": f"{build}:{bail}",
    }
