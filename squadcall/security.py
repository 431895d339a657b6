from flask_talisman import Talisman

def init_security(app):
    """
    Production/staging security headers. The service only answers JSON,
    so the CSP is locked down to same-origin.
    """
    csp = {
        "default-src": ["'self'"],
        "img-src":     ["'self'", "data:"],
        "connect-src": ["'self'"],
        "frame-ancestors": ["'none'"],
        "base-uri":    ["'self'"],
        "form-action": ["'self'"],
    }

    Talisman(
        app,
        content_security_policy=csp,
        force_https=True,
        strict_transport_security=True,
        session_cookie_secure=True,
        frame_options="DENY",
        referrer_policy="strict-origin-when-cross-origin",
    )
