from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Coroutine, List, Optional

import typer

from docvault.app import setup_logging
from docvault.auth import MemoryNavigator, RedirectPolicy, RouteGuard, SessionManager
from docvault.auth.sql import SqlAuthBackend
from docvault.backend import SqlDocumentBackend
from docvault.db import DBEngine, get_db_settings
from docvault.documents import (
    Document,
    DocumentData,
    DocumentRepository,
    FileUpload,
    SearchController,
)
from docvault.exceptions import DocVaultError, PartialFailureError
from docvault.settings import DocVaultSettings, get_settings
from docvault.storage import easy_storage

app = typer.Typer(no_args_is_help=True, add_completion=False, help="Manage your documents.")

LOGIN_HINT = "Not signed in. Run `docvault login EMAIL` first."


@dataclass
class CliContext:
    settings: DocVaultSettings
    engine: DBEngine
    sessions: SessionManager
    repository: DocumentRepository
    navigator: MemoryNavigator
    guard: RouteGuard
    requested: str = "/"

    @property
    def redirected(self) -> bool:
        """True when the route guard moved away from the requested screen."""
        return self.navigator.location != self.requested


def _policy(settings: DocVaultSettings) -> RedirectPolicy:
    return RedirectPolicy(
        home=settings.home_route,
        login=settings.login_route,
        auth_routes=frozenset(settings.auth_routes),
    )


@asynccontextmanager
async def open_app(route: str) -> AsyncIterator[CliContext]:
    """Wire the backends for one command and resolve the session at ``route``."""
    settings = get_settings()
    engine = DBEngine(get_db_settings())
    sessions = SessionManager(SqlAuthBackend(engine, session_file=settings.session_file))
    repository = DocumentRepository(
        SqlDocumentBackend(engine, search_config=settings.search_config),
        easy_storage(settings),
        sessions,
    )
    navigator = MemoryNavigator(route)
    guard = RouteGuard(sessions, navigator, _policy(settings)).start()
    ctx = CliContext(settings, engine, sessions, repository, navigator, guard, requested=route)
    try:
        await sessions.initialize()
        yield ctx
    finally:
        guard.stop()
        await sessions.close()
        await engine.dispose()


def _run(coro: Coroutine) -> None:
    try:
        asyncio.run(coro)
    except PartialFailureError as e:
        typer.echo(f"{e.message} (document {e.document.id})", err=True)
        raise typer.Exit(code=1)
    except DocVaultError as e:
        typer.echo(e.message, err=True)
        raise typer.Exit(code=1)


def _require_session(ctx: CliContext) -> None:
    if ctx.redirected:
        typer.echo(LOGIN_HINT, err=True)
        raise typer.Exit(code=1)


def _format_row(doc: Document) -> str:
    return f"{doc.id}  {doc.updated_at:%Y-%m-%d %H:%M}  {doc.title}"


def _echo_documents(docs: list[Document], as_json: bool) -> None:
    if as_json:
        typer.echo("[" + ",".join(d.model_dump_json() for d in docs) + "]")
        return
    if not docs:
        typer.echo("No documents.")
        return
    for doc in docs:
        typer.echo(_format_row(doc))


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", envvar="LOG_LEVEL", help="Logging level."),
    log_format: Optional[str] = typer.Option(None, "--log-format", envvar="LOG_FORMAT", help="plain or json"),
):
    setup_logging(level=log_level, fmt=log_format)


@app.command("init-db")
def init_db():
    """Create the database tables (SQLite convenience; use Alembic for Postgres)."""

    async def _go() -> None:
        engine = DBEngine(get_db_settings())
        try:
            await engine.create_all()
        finally:
            await engine.dispose()
        typer.echo("Database ready.")

    _run(_go())


# -- auth -------------------------------------------------------------------


@app.command()
def signup(
    email: str = typer.Argument(..., help="Email address"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Create an account and sign in."""

    async def _go() -> None:
        async with open_app("/signup") as ctx:
            if ctx.redirected:
                typer.echo(f"Already signed in as {ctx.sessions.current_user.email}.")
                return
            result = await ctx.sessions.sign_up(email, password)
            if not result.ok:
                typer.echo(f"Sign up failed: {result.error.message}", err=True)
                raise typer.Exit(code=1)
            if result.session is None:
                typer.echo("Check your email to confirm your account.")
            else:
                typer.echo(f"Signed up as {result.user.email}.")

    _run(_go())


@app.command()
def login(
    email: str = typer.Argument(..., help="Email address"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
):
    """Sign in with email and password."""

    async def _go() -> None:
        async with open_app("/login") as ctx:
            if ctx.redirected:
                typer.echo(f"Already signed in as {ctx.sessions.current_user.email}.")
                return
            result = await ctx.sessions.sign_in(email, password)
            if not result.ok:
                typer.echo(f"Login failed: {result.error.message}", err=True)
                raise typer.Exit(code=1)
            typer.echo(f"Signed in as {result.user.email}.")

    _run(_go())


@app.command()
def logout():
    """Sign out and forget the stored session."""

    async def _go() -> None:
        async with open_app("/login") as ctx:
            result = await ctx.sessions.sign_out()
            if not result.ok:
                typer.echo(f"Warning: {result.error.message}", err=True)
            typer.echo("Signed out.")

    _run(_go())


@app.command()
def whoami():
    """Show the signed-in user."""

    async def _go() -> None:
        async with open_app("/profile") as ctx:
            _require_session(ctx)
            user = ctx.sessions.current_user
            typer.echo(f"{user.email} ({user.id})")

    _run(_go())


# -- documents --------------------------------------------------------------


@app.command("list")
def list_documents(as_json: bool = typer.Option(False, "--json", help="Print JSON.")):
    """List your documents, newest first."""

    async def _go() -> None:
        async with open_app("/") as ctx:
            _require_session(ctx)
            _echo_documents(await ctx.repository.list(), as_json)

    _run(_go())


@app.command()
def search(
    query: str = typer.Argument("", help="Words to look for; each is a prefix."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON."),
):
    """Full-text search over titles and descriptions."""

    async def _go() -> None:
        async with open_app("/") as ctx:
            _require_session(ctx)
            controller = SearchController(
                ctx.repository.search, debounce=ctx.settings.search_debounce_seconds
            )
            controller.search_now(query)
            await controller.wait_idle()
            if controller.error:
                typer.echo(controller.error, err=True)
                raise typer.Exit(code=1)
            _echo_documents(controller.results, as_json)

    _run(_go())


@app.command()
def show(
    document_id: uuid.UUID = typer.Argument(..., help="Document id"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON."),
):
    """Show one document with its categories."""

    async def _go() -> None:
        async with open_app(f"/documents/{document_id}") as ctx:
            _require_session(ctx)
            doc = await ctx.repository.get_by_id(document_id)
            if as_json:
                typer.echo(doc.model_dump_json())
                return
            typer.echo(f"Title:       {doc.title}")
            typer.echo(f"Description: {doc.description}")
            typer.echo(f"Keywords:    {', '.join(doc.keywords)}")
            typer.echo(f"Categories:  {', '.join(c.name for c in doc.categories)}")
            typer.echo(f"File:        {doc.file_url}")
            typer.echo(f"Created:     {doc.created_at:%Y-%m-%d %H:%M}")
            typer.echo(f"Updated:     {doc.updated_at:%Y-%m-%d %H:%M}")

    _run(_go())


@app.command()
def add(
    title: str = typer.Argument(..., help="Document title"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="File to upload"),
    description: str = typer.Option("", "--description", "-d"),
    keywords: str = typer.Option("", "--keywords", "-k", help="Comma-separated keywords"),
    category: Optional[List[int]] = typer.Option(None, "--category", "-c", help="Category id (repeatable)"),
):
    """Upload a file with its metadata."""

    async def _go() -> None:
        async with open_app("/documents/new") as ctx:
            _require_session(ctx)
            upload = FileUpload.from_path(file) if file is not None and file.is_file() else None
            if file is not None and upload is None:
                typer.echo(f"No such file: {file}", err=True)
                raise typer.Exit(code=1)
            doc = await ctx.repository.create(
                DocumentData(title=title, description=description, keywords=keywords),
                upload,
                category or [],
            )
            typer.echo(f"Created {doc.id}")

    _run(_go())


@app.command()
def edit(
    document_id: uuid.UUID = typer.Argument(..., help="Document id"),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    keywords: Optional[str] = typer.Option(None, "--keywords", "-k", help="Comma-separated keywords"),
    category: Optional[List[int]] = typer.Option(None, "--category", "-c", help="Category id (repeatable)"),
    clear_categories: bool = typer.Option(False, "--clear-categories", help="Remove every category"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Replacement file"),
):
    """Change a document's metadata, categories or file.

    Options left out keep their current value.
    """

    async def _go() -> None:
        async with open_app(f"/documents/{document_id}/edit") as ctx:
            _require_session(ctx)
            current = await ctx.repository.get_by_id(document_id)
            if clear_categories:
                category_ids: list[int] = []
            elif category:
                category_ids = list(category)
            else:
                category_ids = [c.id for c in current.categories]
            new_file = None
            if file is not None:
                if not file.is_file():
                    typer.echo(f"No such file: {file}", err=True)
                    raise typer.Exit(code=1)
                new_file = FileUpload.from_path(file)
            data = DocumentData(
                title=current.title if title is None else title,
                description=current.description if description is None else description,
                keywords=", ".join(current.keywords) if keywords is None else keywords,
            )
            doc = await ctx.repository.update(document_id, data, category_ids, new_file)
            typer.echo(f"Updated {doc.id}")

    _run(_go())


@app.command()
def delete(
    document_id: uuid.UUID = typer.Argument(..., help="Document id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a document and its stored file."""

    async def _go() -> None:
        async with open_app(f"/documents/{document_id}") as ctx:
            _require_session(ctx)
            doc = await ctx.repository.get_by_id(document_id)
            if not yes and not typer.confirm(f"Delete '{doc.title}'?"):
                typer.echo("Aborted.")
                return
            result = await ctx.repository.delete(doc)
            if result.storage_error:
                typer.echo(f"Warning: stored file not removed ({result.storage_error})", err=True)
            typer.echo(f"Deleted {result.document_id}")

    _run(_go())


# -- categories -------------------------------------------------------------


@app.command()
def categories():
    """List every category."""

    async def _go() -> None:
        async with open_app("/categories") as ctx:
            _require_session(ctx)
            items = await ctx.repository.list_categories()
            if not items:
                typer.echo("No categories.")
            for c in items:
                typer.echo(f"{c.id}  {c.name}")

    _run(_go())


@app.command("add-category")
def add_category(name: str = typer.Argument(..., help="Category name")):
    """Create a category."""

    async def _go() -> None:
        async with open_app("/categories") as ctx:
            _require_session(ctx)
            created = await ctx.repository.create_category(name)
            typer.echo(f"Created category {created.id}  {created.name}")

    _run(_go())
