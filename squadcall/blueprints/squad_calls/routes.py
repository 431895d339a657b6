import json
from flask import jsonify, request, current_app
from flask_login import current_user
from . import bp
from squadcall.extensions import limiter
from squadcall.services import proposals
from squadcall.services.errors import ServiceError, ValidationError
from squadcall.services.policy import require_login
from squadcall.utils.validators import clean_str, to_int_or_none


def _write_limit():
    return current_app.config.get("CALL_WRITE_RATE_LIMIT", "30 per minute")


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@bp.errorhandler(ServiceError)
def _service_error(e: ServiceError):
    current_app.logger.info(json.dumps({
        "event": "call_request_rejected",
        "path": request.path,
        "method": request.method,
        "error": e.kind,
        "detail": str(e),
        "status": e.status_code,
    }))
    return jsonify(e.to_dict()), e.status_code


@bp.get("/squads/<int:squad_id>/standard-call")
@require_login
def get_standard_call(squad_id: int):
    """The squad's pending/confirmed call (or null) and the caller's vote on it."""
    active = proposals.get_active_proposal(squad_id, current_user.id)
    return jsonify({
        "call": active.proposal.to_dict() if active.proposal else None,
        "userVote": active.my_vote,
    }), 200


@bp.post("/squads/<int:squad_id>/standard-call")
@require_login
@limiter.limit(_write_limit)
def create_standard_call(squad_id: int):
    """
    Suggest a call (proposalType "new", the default) or propose to edit/delete
    the confirmed one (proposalType "edit"/"delete" with originalCallId).
    """
    data = _json_body()
    proposal_type = (clean_str(data.get("proposalType"), max_len=10) or "new").lower()

    if proposal_type == "new":
        result = proposals.suggest(
            squad_id,
            current_user.id,
            data.get("dateTime"),
            data.get("timezone"),
            data.get("location"),
            data.get("title"),
        )
    else:
        result = proposals.propose_change(
            squad_id,
            current_user.id,
            to_int_or_none(data.get("originalCallId")),
            proposal_type,
            data.get("dateTime"),
            data.get("timezone"),
            data.get("location"),
            data.get("title"),
        )

    return jsonify({
        "success": True,
        "call": result.proposal.to_dict(),
        "isConfirmed": result.confirmed,
    }), 201


@bp.put("/squads/<int:squad_id>/standard-call")
@require_login
@limiter.limit(_write_limit)
def vote_standard_call(squad_id: int):
    """Vote yes/no on the pending proposal: {"callId": ..., "vote": "yes"|"no"}."""
    data = _json_body()
    outcome = proposals.vote(
        squad_id,
        current_user.id,
        to_int_or_none(data.get("callId")),
        data.get("vote"),
    )
    return jsonify({
        "success": True,
        "call": outcome.proposal.to_dict(),
        "userVote": outcome.my_vote,
        "isConfirmed": outcome.confirmed,
        "changed": outcome.changed,
    }), 200
