"""Flask CLI commands to inspect and revoke a principal's refresh tokens."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from refreshguard.core.security import session_service
from refreshguard.services._shared.errors import NotFoundError, ServiceError
from refreshguard.services.identity import IdentityService

LOGGER = logging.getLogger(__name__)


def _principal_for(email: str) -> str:
    try:
        return IdentityService().get_by_email(email).principal_id
    except NotFoundError as exc:
        raise click.ClickException(f"No user with email {email!r}") from exc


@click.group("sessions")
def sessions_cli() -> None:
    """Inspect and revoke refresh-token sessions."""


@sessions_cli.command("show")
@click.argument("email")
@with_appcontext
def show_command(email: str) -> None:
    """List the refresh-token identifiers honored for EMAIL (oldest first)."""
    view = session_service().describe(_principal_for(email))
    click.echo(f"principal={view.principal_id} version={view.version} active={len(view.token_ids)}")
    for position, token_id in enumerate(view.token_ids, start=1):
        click.echo(f"  {position:>2}. {token_id}")


@sessions_cli.command("revoke")
@click.argument("email")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@with_appcontext
def revoke_command(email: str, yes: bool) -> None:
    """Revoke every refresh token of EMAIL, forcing sign-in on all devices."""
    principal_id = _principal_for(email)
    if not yes:
        click.confirm(f"Revoke all sessions of {email}?", abort=True)
    try:
        revoked = session_service().revoke_all(principal_id)
    except ServiceError as exc:  # pragma: no cover - CLI safeguard
        raise click.ClickException(f"Revocation failed: {exc}") from exc
    LOGGER.info(
        "sessions.revoked_by_operator",
        extra={"event": "session.revoke_all", "principal_id": principal_id},
    )
    click.echo(f"Revoked {revoked} session(s) for {email}.")
