"""accountgate CLI — sign up, log in, switch users from a terminal.

Usage:
    accountgate signup me@example.com "Dave Jones"    # prompts for password
    accountgate login me@example.com                  # prompts for password
    accountgate login me@example.com -u dave-jones    # pick a user on the account
    accountgate whoami                                # ids + roles of the session
    accountgate switch jones-kids                     # become a sibling user
    accountgate add-user "Jones Kids"                 # new user on this account
    accountgate refresh                               # rotate the token pair
    accountgate logout                                # revoke the refresh token

The current token pair is kept in a JSON file
(ACCOUNTGATE_SESSION_FILE, default ~/.accountgate/session.json).
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from pathlib import Path
from typing import Optional

import click
import httpx

from accountgate import __version__
from accountgate.client import AuthClient, AuthClientError

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("ACCOUNTGATE_API_URL", DEFAULT_API_URL).rstrip("/")


def _session_file() -> Path:
    default = Path.home() / ".accountgate" / "session.json"
    return Path(os.environ.get("ACCOUNTGATE_SESSION_FILE", default))


def _load_session() -> Optional[dict]:
    path = _session_file()
    if not path.exists():
        return None
    return json.loads(path.read_text())


def _save_session(session: Optional[dict]) -> None:
    path = _session_file()
    if session is None:
        path.unlink(missing_ok=True)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(session, indent=2))
    path.chmod(0o600)


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _fail(e: AuthClientError):
    click.secho(f"Error: {e.reason} ({e.kind})", fg="red", err=True)
    sys.exit(1)


def _print_session(session: dict) -> None:
    click.secho(f"Signed in as user {session['user_id']}", fg="green")
    click.echo(f"  account: {session['account_id']}")
    click.echo(f"  roles:   {session['roles']}")


async def _with_session(action):
    """Run ``action(auth)`` with the saved session, then persist whatever it left."""
    async with _client() as c:
        auth = AuthClient(c, _load_session())
        try:
            return await action(auth)
        except AuthClientError as e:
            _fail(e)
        finally:
            _save_session(auth.session)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="accountgate")
def main():
    """accountgate — account / multi-user sessions from the command line."""


@main.command()
@click.argument("email")
@click.argument("username")
@click.password_option()
def signup(email: str, username: str, password: str):
    """Create an account with its first user."""
    session = _run(_with_session(lambda auth: auth.signup(email, password, username)))
    _print_session(session)


@main.command()
@click.argument("identifier")
@click.option("--username", "-u", help="Pick a user on a multi-user account")
@click.password_option(confirmation_prompt=False)
def login(identifier: str, username: Optional[str], password: str):
    """Log in with an email or username."""
    _run(_login_impl(identifier, password, username))


async def _login_impl(identifier: str, password: str, username: Optional[str]):
    async def action(auth: AuthClient):
        data = await auth.login(identifier, password, username)
        if "selection_token" not in data:
            _print_session(data)
            return
        users = await auth.users_on_account(data["selection_token"])
        click.secho("This account has several users. Log in again with -u:", fg="yellow")
        for user in users:
            click.echo(f"  {user['username']}  ({user['roles']})")

    await _with_session(action)


@main.command()
def whoami():
    """Show the user behind the current session."""
    me = _run(_with_session(lambda auth: auth.me()))
    click.echo(json.dumps(me, indent=2))


@main.command()
def refresh():
    """Rotate the refresh token."""
    session = _run(_with_session(lambda auth: auth.refresh()))
    _print_session(session)


@main.command()
@click.argument("username")
def switch(username: str):
    """Switch to another user on the same account."""
    session = _run(_with_session(lambda auth: auth.switch(username)))
    _print_session(session)


@main.command("add-user")
@click.argument("username")
def add_user(username: str):
    """Create another user on the current account."""
    user = _run(_with_session(lambda auth: auth.create_user(username)))
    click.secho(f"Created user {user['username']} ({user['id']})", fg="green")


@main.command()
def logout():
    """Revoke the refresh token and forget the session."""
    _run(_with_session(lambda auth: auth.logout()))
    click.echo("Logged out")


if __name__ == "__main__":
    main()
