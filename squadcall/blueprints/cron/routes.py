from flask import jsonify, request
from . import bp
from squadcall.extensions import csrf, limiter
from squadcall.services import scheduler
from squadcall.services.policy import require_cron_secret
from squadcall.utils.validators import to_int_or_none


def _limit_arg():
    limit = to_int_or_none(request.args.get("limit"))
    return limit if limit and limit > 0 else None


@bp.route("/squad-call-jobs", methods=["GET", "POST"])
@csrf.exempt
@limiter.exempt
@require_cron_secret
def run_squad_call_jobs():
    """Execute due 24h/1h/live notification and email jobs."""
    stats = scheduler.process_due_jobs(limit=_limit_arg())
    return jsonify({"success": True, **stats}), 200


@bp.route("/squad-call-reminders", methods=["GET", "POST"])
@csrf.exempt
@limiter.exempt
@require_cron_secret
def run_squad_call_reminders():
    """Post due one-hour chat reminders."""
    stats = scheduler.process_due_reminders(limit=_limit_arg())
    return jsonify({"success": True, **stats}), 200
