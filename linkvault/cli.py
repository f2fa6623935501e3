"""Command-line interface for linkvault.

This module provides a Typer-based CLI for a links server.

Commands:
- login / register / logout / whoami: Manage the stored session
- oauth-url / oauth-callback: Google sign-in in a browser
- links / categories: Browse links grouped by date
- add / delete / favorite / open: Manage your links
- admin: User and link administration (admin accounts only)

Example:
    $ linkvault login alice
    $ linkvault links --search python --sort access-desc
    $ linkvault add example.com --autofill
    $ linkvault admin users
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from linkvault.api import LinksClient
from linkvault.config import PrivacyFilter, SortMode, settings
from linkvault.errors import LinkVaultError
from linkvault.logging import request_context
from linkvault.logging import setup_logging as configure_logging
from linkvault.models import Link, LinkDraft, User
from linkvault.query import ALL_CATEGORIES, GroupedView
from linkvault.service import AdminConsole, LinkService
from linkvault.session import SessionGate, SessionStorage

T = TypeVar("T")

# Initialize CLI app
app       = typer.Typer(
    name="linkvault",
    help="Bookmark manager client: search, filter and organize your links",
    add_completion=False,
)
admin_app = typer.Typer(help="Administration (admin accounts only)")
app.add_typer(admin_app, name="admin")
console   = Console()

VERBOSE = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")


# =============================================================================
# Helper Functions
# =============================================================================


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, set DEBUG level; otherwise the configured level
    """
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
        log_file=settings.log_file,
        colorize=not settings.log_json,
    )


def run_async(coro: Awaitable[T]) -> T:
    """Run async coroutine in event loop."""
    return asyncio.run(coro)  # type: ignore[arg-type]


def build_service() -> LinkService:
    """Create a service bound to the persisted session."""
    session = SessionGate(SessionStorage(settings.session_file))
    service = LinkService(client=LinksClient(session=session), session=session)
    service.restore()
    return service


def run_with_service(action: Callable[[LinkService], Awaitable[T]], failure: str) -> T:
    """Run ``action`` against a fresh service; errors exit with code 1.

    Args:
        action: Coroutine function receiving the service
        failure: Prefix for the error message
    """

    async def _run() -> T:
        service = build_service()
        try:
            with request_context(
                request_id=uuid.uuid4().hex[:12],
                username=service.session.user.username if service.session.user else None,
                operation=action.__name__.lstrip("_"),
            ):
                return await action(service)
        finally:
            await service.close()

    try:
        return run_async(_run())
    except LinkVaultError as e:
        console.print(f"\n❌ [bold red]{failure}: {escape(e.message)}[/bold red]")
        raise typer.Exit(code=1)


def render_view(view: GroupedView, show_owner: bool = False) -> None:
    """Print one table per date, most recent first."""
    if not view:
        console.print("📭 No links found")
        return

    for day, links in view.groups.items():
        table = Table(title=day.isoformat(), title_justify="left")
        table.add_column("ID", justify="right", style="cyan")
        table.add_column("★", justify="center")
        table.add_column("Title", style="bold")
        table.add_column("URL", style="blue")
        table.add_column("Tags", style="magenta")
        table.add_column("Category", style="yellow")
        table.add_column("Opened", justify="right", style="green")
        if show_owner:
            table.add_column("Owner")

        for link in links:
            row = [
                str(link.id),
                "★" if link.is_favorite else "",
                escape(link.title) + (" 🔒" if link.is_private else ""),
                escape(link.url),
                escape(link.tags or ""),
                escape(link.effective_category),
                str(link.access_count),
            ]
            if show_owner:
                row.append(escape(link.username or ""))
            table.add_row(*row)

        console.print(table)

    console.print(f"\n🔗 {view.count} of {view.total} links")


def render_users(users: list[User]) -> None:
    table = Table(title="Users")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Username", style="bold")
    table.add_column("Email")
    table.add_column("Admin", justify="center")
    table.add_column("Created", style="yellow")

    for user in users:
        table.add_row(
            str(user.id),
            escape(user.username),
            escape(user.email or ""),
            "✅" if user.is_admin else "",
            user.created_at or "",
        )
    console.print(table)


def render_admin_links(links: list[Link]) -> None:
    table = Table(title="All links")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Owner", style="bold")
    table.add_column("URL", style="blue")
    table.add_column("Private", justify="center")
    table.add_column("Locked", justify="center")
    table.add_column("Created", style="yellow")

    for link in links:
        table.add_row(
            str(link.id),
            escape(link.username or str(link.user_id or "")),
            escape(link.url),
            "🔒" if link.is_private else "",
            "⛔" if link.is_locked else "",
            link.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


# =============================================================================
# Session Commands
# =============================================================================


@app.command()
def login(
    username: str = typer.Argument(..., help="Account username"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    verbose: bool = VERBOSE,
) -> None:
    """Log in and store the session for later commands.

    Examples:
        $ linkvault login alice
    """
    setup_logging(verbose)

    async def _login(service: LinkService) -> Any:
        return await service.login(username, password)

    session = run_with_service(_login, "Login failed")
    console.print(f"✅ [bold green]Logged in as {escape(session.user.username)}[/bold green]")


@app.command()
def register(
    username: str = typer.Argument(..., help="New account username"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    verbose: bool = VERBOSE,
) -> None:
    """Create an account and log in.

    Passwords need at least 6 characters with an uppercase letter, a
    lowercase letter and a number.
    """
    setup_logging(verbose)

    async def _register(service: LinkService) -> Any:
        return await service.register(username, password)

    session = run_with_service(_register, "Registration failed")
    console.print(f"✅ [bold green]Account created for {escape(session.user.username)}[/bold green]")


@app.command()
def logout(verbose: bool = VERBOSE) -> None:
    """Forget the stored session."""
    setup_logging(verbose)

    service = build_service()
    if service.logout():
        console.print("👋 Logged out")
    else:
        console.print("Not logged in")


@app.command()
def whoami(verbose: bool = VERBOSE) -> None:
    """Show the logged-in user."""
    setup_logging(verbose)

    user = build_service().session.user
    if user is None:
        console.print("❌ [bold red]Not logged in[/bold red]")
        raise typer.Exit(code=1)

    table = Table(title="Current User", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("ID", str(user.id))
    table.add_row("Username", escape(user.username))
    table.add_row("Email", escape(user.email or "N/A"))
    table.add_row("Admin", "yes" if user.is_admin else "no")
    table.add_row("Server", settings.api_base_url)
    console.print(table)


@app.command("oauth-url")
def oauth_url() -> None:
    """Print the URL that starts Google sign-in."""
    console.print(LinksClient(session=SessionGate()).oauth_start_url())


@app.command("oauth-callback")
def oauth_callback(
    url: str = typer.Argument(..., help="Full redirect URL from the browser"),
    verbose: bool = VERBOSE,
) -> None:
    """Adopt the session from a Google sign-in redirect URL."""
    setup_logging(verbose)

    service = build_service()
    cleaned = service.adopt_oauth_callback(url)
    user = service.session.user
    if user is None:
        console.print("❌ [bold red]No session found in callback URL[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"✅ [bold green]Logged in as {escape(user.username)}[/bold green]")
    console.print(f"🔗 {escape(cleaned)}")


# =============================================================================
# Link Commands
# =============================================================================


@app.command()
def links(
    search: str = typer.Option("", "--search", "-s", help="Match URL, description or tags"),
    privacy: PrivacyFilter = typer.Option(PrivacyFilter.ALL, "--privacy", "-p"),
    category: str = typer.Option(ALL_CATEGORIES, "--category", "-c"),
    sort: SortMode = typer.Option(SortMode.DATE_DESC, "--sort"),
    public: bool = typer.Option(False, "--public", help="Browse everyone's public links"),
    verbose: bool = VERBOSE,
) -> None:
    """List links grouped by date.

    Examples:
        $ linkvault links --sort access-desc
        $ linkvault links --privacy favorites --category reading
        $ linkvault links --public --search python
    """
    setup_logging(verbose)

    async def _links(service: LinkService) -> GroupedView:
        if public:
            await service.load_public()
        else:
            await service.refresh()
        return service.set_criteria(search=search, privacy=privacy, category=category, sort=sort)

    render_view(run_with_service(_links, "Failed to load links"), show_owner=public)


@app.command()
def categories(verbose: bool = VERBOSE) -> None:
    """List the categories in use."""
    setup_logging(verbose)

    async def _categories(service: LinkService) -> list[str]:
        await service.refresh()
        return service.categories()

    for name in run_with_service(_categories, "Failed to load categories"):
        console.print(f"• {escape(name)}")


@app.command()
def add(
    url: str = typer.Argument(..., help="Link URL (https:// is added when missing)"),
    description: str = typer.Option("", "--description", "-d"),
    tags: str = typer.Option("", "--tags", "-t", help="Comma-separated, at most 10"),
    category: str = typer.Option("", "--category", "-c"),
    private: bool = typer.Option(False, "--private", help="Hide from public listing"),
    autofill: bool = typer.Option(False, "--autofill", "-a", help="Fill empty fields from the page"),
    verbose: bool = VERBOSE,
) -> None:
    """Save a new link.

    Examples:
        $ linkvault add example.com -d "Example" -t "demo, test"
        $ linkvault add https://docs.python.org --autofill --private
    """
    setup_logging(verbose)

    draft = LinkDraft(
        url=url,
        description=description,
        tags=tags,
        category=category,
        is_private=private,
    )

    async def _add(service: LinkService) -> Link:
        final = draft
        if autofill:
            final = await service.autofill(draft) or draft
        return await service.add_link(final)

    link = run_with_service(_add, "Failed to add link")
    console.print(f"✅ [bold green]Saved link {link.id}[/bold green]: {escape(link.url)}")


@app.command()
def delete(
    link_id: int = typer.Argument(..., help="Link ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    verbose: bool = VERBOSE,
) -> None:
    """Delete one of your links."""
    setup_logging(verbose)

    if not yes:
        typer.confirm(f"Delete link {link_id}?", abort=True)

    async def _delete(service: LinkService) -> None:
        await service.delete_link(link_id)

    run_with_service(_delete, "Failed to delete link")
    console.print(f"🗑️ Deleted link {link_id}")


@app.command()
def favorite(
    link_id: int = typer.Argument(..., help="Link ID"),
    value: Optional[bool] = typer.Option(None, "--on/--off", help="Set instead of toggling"),
    verbose: bool = VERBOSE,
) -> None:
    """Toggle (or set) the favorite flag."""
    setup_logging(verbose)

    async def _favorite(service: LinkService) -> Link:
        await service.refresh()
        return await service.toggle_favorite(link_id, value)

    link = run_with_service(_favorite, "Failed to update favorite")
    state = "★ favorite" if link.is_favorite else "not a favorite"
    console.print(f"✅ Link {link.id} is now {state}")


@app.command("open")
def open_(
    link_id: int = typer.Argument(..., help="Link ID"),
    launch: bool = typer.Option(False, "--launch", "-l", help="Open in the default browser"),
    verbose: bool = VERBOSE,
) -> None:
    """Record a visit and print (or launch) the URL."""
    setup_logging(verbose)

    async def _open(service: LinkService) -> Link:
        await service.refresh()
        return await service.open_link(link_id)

    link = run_with_service(_open, "Failed to open link")
    console.print(escape(link.url))
    if launch:
        typer.launch(link.url)


# =============================================================================
# Admin Commands
# =============================================================================


def run_admin(action: Callable[[AdminConsole], Awaitable[T]], failure: str) -> T:
    async def _admin(service: LinkService) -> T:
        return await action(AdminConsole(service.client, service.session))  # type: ignore[arg-type]

    return run_with_service(_admin, failure)


@admin_app.command("users")
def admin_users(verbose: bool = VERBOSE) -> None:
    """List every user."""
    setup_logging(verbose)
    render_users(run_admin(lambda admin: admin.list_users(), "Failed to load users"))


@admin_app.command("links")
def admin_links(verbose: bool = VERBOSE) -> None:
    """List every link, private ones included."""
    setup_logging(verbose)
    render_admin_links(run_admin(lambda admin: admin.list_links(), "Failed to load links"))


@admin_app.command("set-admin")
def admin_set_admin(
    user_id: int = typer.Argument(..., help="User ID"),
    revoke: bool = typer.Option(False, "--revoke", help="Remove admin rights"),
    verbose: bool = VERBOSE,
) -> None:
    """Grant (or revoke) admin rights."""
    setup_logging(verbose)
    run_admin(lambda admin: admin.set_user_admin(user_id, not revoke), "Failed to update user")
    console.print(f"✅ User {user_id} admin: {'no' if revoke else 'yes'}")


@admin_app.command("delete-user")
def admin_delete_user(
    user_id: int = typer.Argument(..., help="User ID"),
    yes: bool = typer.Option(False, "--yes", "-y"),
    verbose: bool = VERBOSE,
) -> None:
    """Delete a user and their links."""
    setup_logging(verbose)
    if not yes:
        typer.confirm(f"Delete user {user_id} and all their links?", abort=True)
    run_admin(lambda admin: admin.delete_user(user_id), "Failed to delete user")
    console.print(f"🗑️ Deleted user {user_id}")


@admin_app.command("delete-link")
def admin_delete_link(
    link_id: int = typer.Argument(..., help="Link ID"),
    yes: bool = typer.Option(False, "--yes", "-y"),
    verbose: bool = VERBOSE,
) -> None:
    """Delete any user's link."""
    setup_logging(verbose)
    if not yes:
        typer.confirm(f"Delete link {link_id}?", abort=True)
    run_admin(lambda admin: admin.delete_link(link_id), "Failed to delete link")
    console.print(f"🗑️ Deleted link {link_id}")


@admin_app.command("lock")
def admin_lock(
    link_id: int = typer.Argument(..., help="Link ID"),
    unlock: bool = typer.Option(False, "--unlock", help="Allow the owner to change privacy again"),
    verbose: bool = VERBOSE,
) -> None:
    """Lock a link's privacy setting."""
    setup_logging(verbose)
    run_admin(lambda admin: admin.lock_link(link_id, not unlock), "Failed to update link")
    console.print(f"🔒 Link {link_id} {'unlocked' if unlock else 'locked'}")


@admin_app.command("force-private")
def admin_force_private(
    link_id: int = typer.Argument(..., help="Link ID"),
    verbose: bool = VERBOSE,
) -> None:
    """Make a link private and lock it."""
    setup_logging(verbose)
    run_admin(lambda admin: admin.force_private(link_id), "Failed to update link")
    console.print(f"🔒 Link {link_id} is now private")


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
