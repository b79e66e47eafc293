"""Operator commands exposed through ``flask <group> ...``."""

from __future__ import annotations

from flask import Flask

from .sessions import sessions_cli

COMMAND_GROUPS = (sessions_cli,)


def init_app(app: Flask) -> None:
    for group in COMMAND_GROUPS:
        app.cli.add_command(group)
