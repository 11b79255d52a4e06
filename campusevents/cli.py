"""Typer CLI for Campus Events."""

from __future__ import annotations

import json
from pathlib import Path

from sqlalchemy.exc import IntegrityError, OperationalError
import typer
import uvicorn

from .config import (
    WEEKDAY_INDEX,
    load_settings,
    settings,
    settings_as_dict,
    update_config_file,
)
from .crud import create_profile, get_profile_by_user_id, rotate_access_token
from .database import get_session
from .models import ROLES
from .schema import init_db, upgrade_database
from .seed import seed_fake_data

app = typer.Typer(help="Campus Events command-line interface")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _exit_if_readonly(exc: OperationalError, action: str) -> None:
    message = str(getattr(exc, "orig", exc)).lower()
    if "readonly" in message or "read-only" in message:
        typer.secho(
            f"Unable to {action} because the database is read-only. "
            f"Ensure write access to {settings.database_path}.",
            err=True,
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)


@app.command("upgrade-db")
def upgrade_db(
    no_backup: bool = typer.Option(
        False,
        "--no-backup",
        help="Skip creating a .bak copy of the database before upgrading",
    ),
) -> None:
    """Upgrade the SQLite database schema if needed."""
    try:
        actions = upgrade_database(make_backup=not no_backup)
    except OperationalError as exc:
        _exit_if_readonly(exc, "upgrade")
        raise

    if not actions:
        typer.echo("Database already up to date.")
        return

    typer.echo("Database upgrade complete:")
    for action in actions:
        typer.echo(f"- {action}")


@app.command("runserver")
def runserver(
    host: str = typer.Option(settings.app_host, "--host", help="Host to bind"),
    port: int = typer.Option(settings.app_port, "--port", help="Port to bind"),
):
    """Start the FastAPI app under uvicorn."""
    init_db()
    config = uvicorn.Config(
        "campusevents.api:app",
        host=host,
        port=port,
        reload=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    server = uvicorn.Server(config)
    typer.echo(f"Starting Campus Events on {host}:{port}")
    server.run()


@app.command("create-user")
def create_user(
    name: str = typer.Option(..., "--name", help="Display name"),
    email: str | None = typer.Option(None, "--email", help="Email address"),
    role: str = typer.Option("user", "--role", help=f"One of: {', '.join(ROLES)}"),
    department: str | None = typer.Option(None, "--department", help="Department"),
) -> None:
    """Create a profile and print its access token."""
    init_db()
    try:
        with get_session() as session:
            profile = create_profile(
                session,
                full_name=name,
                email=email,
                role=role,
                department=department,
            )
            user_id = profile.user_id
            token = profile.access_token
    except ValueError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except IntegrityError:
        typer.secho(
            f"A profile with email {email} already exists.",
            err=True,
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    typer.echo(f"Created {role} {user_id}")
    typer.echo(token)


@app.command("rotate-token")
def rotate_token(
    user_id: str = typer.Argument(..., help="User id of the profile"),
) -> None:
    """Rotate a profile's access token, signing out every client."""
    init_db()
    try:
        with get_session() as session:
            profile = get_profile_by_user_id(session, user_id)
            if profile is None:
                typer.secho(f"No profile with user id {user_id}", err=True, fg=typer.colors.RED)
                raise typer.Exit(code=1)
            token = rotate_access_token(session, profile)
    except OperationalError as exc:
        _exit_if_readonly(exc, "rotate the token")
        raise
    typer.echo(token)


@app.command("seed-data")
def seed_data(
    users: int = typer.Option(
        settings.seed_users, "--users", min=1, help="Number of profiles to create"
    ),
    categories: int = typer.Option(
        settings.seed_categories,
        "--categories",
        min=0,
        help="Number of categories to create",
    ),
    events: int = typer.Option(
        settings.seed_events, "--events", min=0, help="Number of events to create"
    ),
):
    """Populate the database with fake profiles and events for testing."""
    stats = seed_fake_data(
        user_count=users,
        category_count=categories,
        event_count=events,
    )
    typer.echo(
        f"Seed complete: {stats['users']} users, {stats['categories']} categories, "
        f"{stats['events']} events, {stats['registrations']} registrations created."
    )


@app.command("config")
def configure(
    show: bool = typer.Option(
        False, "--show", help="Show the current effective configuration"
    ),
    host: str | None = typer.Option(None, "--host", help="Default host for runserver"),
    port: int | None = typer.Option(None, "--port", help="Default port for runserver"),
    config_path: Path | None = typer.Option(
        None,
        "--config-path",
        help="Path to campusevents.toml (default: ./campusevents.toml)",
    ),
    storage_bucket: str | None = typer.Option(
        None, "--storage-bucket", help="Bucket that receives uploaded media"
    ),
    max_image_mb: int | None = typer.Option(
        None, "--max-image-mb", min=1, help="Largest accepted image upload"
    ),
    max_video_mb: int | None = typer.Option(
        None, "--max-video-mb", min=1, help="Largest accepted video upload"
    ),
    week_start: str | None = typer.Option(
        None, "--week-start", help="First calendar column (e.g. sunday, monday)"
    ),
    cookie_name: str | None = typer.Option(
        None, "--cookie-name", help="Cookie that carries the browser access token"
    ),
    seed_users: int | None = typer.Option(
        None, "--seed-users", min=1, help="Default seed-data profiles"
    ),
    seed_categories: int | None = typer.Option(
        None, "--seed-categories", min=0, help="Default seed-data categories"
    ),
    seed_events: int | None = typer.Option(
        None, "--seed-events", min=0, help="Default seed-data events"
    ),
):
    """View or update the persistent configuration file."""

    if week_start is not None:
        week_start = week_start.strip().lower()
        if week_start not in WEEKDAY_INDEX:
            typer.secho(
                f"Invalid week start {week_start!r}. "
                f"Choose one of: {', '.join(WEEKDAY_INDEX)}.",
                err=True,
                fg=typer.colors.RED,
            )
            raise typer.Exit(code=1)

    updates = {
        "app_host": host,
        "app_port": port,
        "storage_bucket": storage_bucket,
        "max_image_mb": max_image_mb,
        "max_video_mb": max_video_mb,
        "week_start": week_start,
        "cookie_name": cookie_name,
        "seed_users": seed_users,
        "seed_categories": seed_categories,
        "seed_events": seed_events,
    }
    clean_updates = {k: v for k, v in updates.items() if v is not None}

    target_path = config_path or settings.config_path
    if clean_updates:
        settings_ref = update_config_file(clean_updates, path=target_path)
        typer.echo(f"Updated configuration in {target_path}")
    else:
        settings_ref = load_settings(target_path)
    if show or not clean_updates:
        effective = settings_as_dict(settings_ref)
        effective["config_path"] = str(target_path)
        typer.echo(json.dumps(effective, indent=2))


if __name__ == "__main__":
    app()
