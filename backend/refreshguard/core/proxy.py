"""Trust ``X-Forwarded-*`` headers set by the reverse proxies in front of us."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Wrap ``app.wsgi_app`` in :class:`ProxyFix` for ``PROXYFIX_HOPS`` proxies.

    Only the client address and scheme are rewritten: the address keys the
    login rate limiter and the scheme decides whether ``Secure`` cookies are
    sent. ``0`` hops leaves the WSGI app untouched.
    """
    hops = int(app.config.get("PROXYFIX_HOPS", 1))
    if hops > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops)
