"""
Security headers middleware.

The portal serves JSON only, so the policy is the strict API variant:
nothing may be embedded, framed or sniffed.

Usage:
    from practice_portal.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""


def init_security_headers(app):
    """Register after_request handler that injects security headers."""

    @app.after_request
    def _add_security_headers(response):
        response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
        )
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        # Workflow responses carry per-caller data
        if response.mimetype == "application/json":
            response.headers.setdefault("Cache-Control", "no-store")
        response.headers.pop("Server", None)
        return response
