def clamp(n, smallest=0, largest=10):
    return max(smallest, min(n, largest))


def isoformat(value):
    return value.isoformat() + "Z" if value else None


def client_ip(request):
    """Submitter address. Forwarded headers are only honoured through ProxyFix."""
    return request.remote_addr or "unknown"


def format_validation_errors(error):
    """Flatten a pydantic ValidationError into field/message pairs."""
    errors = []
    for item in error.errors():
        field = ".".join(str(part) for part in item.get("loc", ())) or "body"
        message = item.get("msg", "Invalid value")
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": field, "message": message})
    return errors


def idea_to_dict(idea):
    return {
        "id": idea.id,
        "appName": idea.app_name,
        "userName": idea.user_name,
        "description": idea.description,
        "targetMarket": idea.target_market,
        "budget": idea.budget,
        "features": idea.features,
        "competition": idea.competition,
        "createdAt": isoformat(idea.created_at),
    }


def result_to_dict(result, include_idea=True):
    payload = {
        "id": result.id,
        "appIdeaId": result.app_idea_id,
        "score": result.score,
        "verdict": result.verdict,
        "strengths": result.strengths or [],
        "weaknesses": result.weaknesses or [],
        "opportunities": result.opportunities or [],
        "detailedAnalysis": result.detailed_analysis,
        "actionItems": result.action_items or [],
        "timeSavedHours": result.time_saved_hours or 0,
        "brutalAnalysis": result.raw_payload,
        "createdAt": isoformat(result.created_at),
    }
    if include_idea:
        payload["appIdea"] = idea_to_dict(result.app_idea) if result.app_idea else None
    return payload


def shame_entry_to_dict(result, rank):
    idea = result.app_idea
    return {
        "id": result.id,
        "rank": rank,
        "appName": idea.app_name,
        "description": idea.description,
        "targetMarket": idea.target_market,
        "score": result.score,
        "verdict": result.verdict,
        "topWeaknesses": (result.weaknesses or [])[:3],
        "timeSaved": result.time_saved_hours or 0,
        "createdAt": isoformat(result.created_at),
    }
