"""WSGI entry point (``gunicorn refreshguard.wsgi:app``)."""

from __future__ import annotations

import atexit

from refreshguard import create_app
from refreshguard.core import extensions

app = create_app()

# Release the DB pool and Redis connections when the worker exits
atexit.register(extensions.shutdown, app)
