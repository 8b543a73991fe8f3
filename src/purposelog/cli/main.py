"""PurposeLog admin CLI.

Usage:
    purposelog init-db                                  # Create tables (dev)
    purposelog create-user alice alice@example.com      # Prompts for password
    purposelog create-user root root@example.com --role admin
    purposelog set-role alice admin                     # Promote / demote
    purposelog serve --reload                           # Run the API

Works directly against PURPOSELOG_DATABASE_URL; accounts created here
have no avatar (registration through the API requires one).
"""

import asyncio
import sys

import click

from purposelog.auth.password import PASSWORD_MIN_LEN, PasswordHasher
from purposelog.config import settings
from purposelog.db.models import USER_ROLES, User


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


@click.group()
def cli():
    """PurposeLog — task tracker API administration."""


@cli.command("init-db")
def init_db():
    """Create all tables (production deployments use `alembic upgrade head`)."""
    from purposelog.db.engine import create_all, engine

    async def _run():
        await create_all(engine)
        await engine.dispose()

    asyncio.run(_run())
    click.secho("Tables created.", fg="green")


@cli.command("create-user")
@click.argument("username")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--full-name", default=None)
@click.option("--role", type=click.Choice(USER_ROLES), default="user", show_default=True)
def create_user(username: str, email: str, password: str, full_name, role: str):
    """Create an account without going through registration."""
    if len(password) < PASSWORD_MIN_LEN:
        _fail(f"Password must be at least {PASSWORD_MIN_LEN} characters.")

    from purposelog.db.engine import async_session_factory, engine
    from purposelog.services.user_store import UserStore

    async def _run() -> bool:
        async with async_session_factory() as db:
            if await UserStore(db).find_conflict(username, email):
                return False
            hasher = PasswordHasher(settings.bcrypt_rounds)
            db.add(
                User(
                    full_name=full_name,
                    username=username,
                    email=email,
                    password_hash=await hasher.hash(password),
                    role=role,
                )
            )
            await db.commit()
        await engine.dispose()
        return True

    if not asyncio.run(_run()):
        _fail("Username or email is already in use.")
    click.secho(f"Created user '{username.strip().lower()}' with role '{role}'.", fg="green")


@cli.command("set-role")
@click.argument("username")
@click.argument("role", type=click.Choice(USER_ROLES))
def set_role(username: str, role: str):
    """Promote or demote an existing user."""
    from purposelog.db.engine import async_session_factory, engine
    from purposelog.services.user_store import UserStore

    async def _run() -> bool:
        async with async_session_factory() as db:
            user = await UserStore(db).get_by_username(username)
            if user is None:
                return False
            user.role = role
            await db.commit()
        await engine.dispose()
        return True

    if not asyncio.run(_run()):
        _fail(f"User '{username}' not found.")
    click.secho(f"User '{username}' now has role '{role}'.", fg="green")


@cli.command()
@click.option("--host", default=settings.host, show_default=True)
@click.option("--port", default=settings.port, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Auto-reload on code changes (dev).")
def serve(host: str, port: int, reload: bool):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("purposelog.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
