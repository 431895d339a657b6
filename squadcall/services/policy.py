import hmac
from functools import wraps
from flask import abort, request, current_app, jsonify
from flask_login import current_user

def require_login(fn):
    """Signed-in user required; the squad membership check lives in the service layer."""
    @wraps(fn)
    def _wrap(*args, **kwargs):
        if not getattr(current_user, "is_authenticated", False):
            return _abort_smart(401)
        return fn(*args, **kwargs)
    return _wrap

def require_cron_secret(fn):
    """Authorization: Bearer <CRON_SECRET>. With no secret configured every call is refused."""
    @wraps(fn)
    def _wrap(*args, **kwargs):
        secret = current_app.config.get("CRON_SECRET")
        header = request.headers.get("Authorization") or ""
        token = header[len("Bearer "):] if header.startswith("Bearer ") else ""
        if not secret or not token or not hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8")):
            current_app.logger.warning("Unauthorized cron request to %s", request.path)
            return _abort_smart(401)
        return fn(*args, **kwargs)
    return _wrap

def _abort_smart(code: int):
    # If the client asked for JSON, return a JSON-shaped error
    accept = (request.headers.get("Accept") or "").lower()
    if "application/json" in accept or request.is_json or request.path.endswith(".json"):
        return jsonify({"error": {401: "unauthorized", 403: "forbidden", 404: "not_found"}[code], "code": code}), code
    abort(code)
