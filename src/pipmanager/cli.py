"""
Command-line front end.

Thin wrappers over ``pipmanager.engine.PackageManager``. Results go to
stdout, logs and pip's streamed output to stderr.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import sys
from typing import TYPE_CHECKING, Any

import click
from pydantic import ValidationError

from pipmanager import __version__
from pipmanager.cancel import CancelToken
from pipmanager.config import MirrorSource, Settings
from pipmanager.errors import NoResultError, OperationCancelledError, PipManagerError
from pipmanager.logging_config import configure_logging
from pipmanager.sink import StreamSink, StructlogSink
from pipmanager.state import open_state

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pipmanager.state import AppState


class ClickNotifier:
    """Prints failures of mutating operations once, in red, on stderr."""

    def __init__(self) -> None:
        self.reported: list[str] = []

    def notify_error(self, message: str) -> None:
        self.reported.append(message)
        click.secho(message, fg="red", err=True)


def _run(ctx: click.Context, operation: Callable[[AppState, CancelToken], Awaitable[Any]]) -> Any:
    """Run one engine operation; Ctrl-C cancels it through the token."""
    settings: Settings = ctx.obj["settings"]
    notifier: ClickNotifier = ctx.obj["notifier"]
    sink = StreamSink(sys.stderr) if ctx.obj["verbose"] else StructlogSink()

    async def main() -> Any:
        token = CancelToken()
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, token.cancel)
        try:
            async with open_state(settings, sink=sink, notifier=notifier) as state:
                return await operation(state, token)
        finally:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(signal.SIGINT)

    try:
        return asyncio.run(main())
    except OperationCancelledError:
        click.secho("Cancelled.", fg="yellow", err=True)
        sys.exit(130)
    except PipManagerError as e:
        if e.message not in notifier.reported:
            click.secho(f"❌ {e.message}", fg="red", err=True)
        sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="pipmanager")
@click.option("--python", "python_path", default=None, help="Interpreter whose packages to manage.")
@click.option(
    "--mirror",
    type=click.Choice([m.value for m in MirrorSource]),
    default=None,
    help="Named package index mirror.",
)
@click.option("--index-url", default=None, help="Custom index URL (overrides --mirror).")
@click.option("--verbose", "-v", is_flag=True, help="Stream pip's output to stderr.")
@click.pass_context
def cli(
    ctx: click.Context,
    python_path: str | None,
    mirror: str | None,
    index_url: str | None,
    verbose: bool,
) -> None:
    """Manage the installed packages of a Python interpreter."""
    overrides: dict[str, Any] = {}
    if python_path:
        overrides["pip"] = {"python_path": python_path}
    mirror_overrides: dict[str, Any] = {}
    if mirror:
        mirror_overrides["source"] = mirror
    if index_url:
        mirror_overrides["custom_url"] = index_url
    if mirror_overrides:
        overrides["mirror"] = mirror_overrides

    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        raise click.UsageError(str(e)) from e
    configure_logging(settings.logging)
    ctx.ensure_object(dict)
    ctx.obj.update(settings=settings, verbose=verbose, notifier=ClickNotifier())


# ── Listing ─────────────────────────────────────────────────────


@cli.command("list")
@click.option("--outdated", is_flag=True, help="Only packages with a newer version available.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_packages(ctx: click.Context, outdated: bool, as_json: bool) -> None:
    """List installed packages, marking available upgrades."""

    async def op(state: AppState, token: CancelToken) -> Any:
        if outdated:
            return await state.manager.list_upgradable(token)
        return await state.manager.list_installed_with_upgrades(token)

    records = _run(ctx, op)

    if as_json:
        click.echo(json.dumps([r.model_dump() for r in records], indent=2))
        return
    if not records:
        click.secho("No packages found.", fg="yellow")
        return

    width = max(len(r.name) for r in records)
    for r in records:
        click.echo(f"{r.name:<{width}}  {r.version}", nl=False)
        if r.upgradable:
            click.secho(f" > {r.latest_version}", fg="cyan")
        else:
            click.echo()


@cli.command()
@click.argument("spec")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def versions(ctx: click.Context, spec: str, as_json: bool) -> None:
    """Show the versions the index offers for SPEC, newest first."""
    found = _run(ctx, lambda state, token: state.manager.list_versions(spec, token))

    if as_json:
        click.echo(json.dumps(found))
        return
    if not found:
        click.secho(f"No version information for {spec}.", fg="yellow")
        return
    for v in found:
        click.echo(v)


@cli.command()
@click.argument("keyword", required=False, default="")
@click.option("--page", default=1, type=click.IntRange(min=1), help="Result page.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def search(ctx: click.Context, keyword: str, page: int, as_json: bool) -> None:
    """Search PyPI. Without KEYWORD, browse Python 3 packages."""

    async def op(state: AppState, token: CancelToken) -> Any:
        try:
            return await state.manager.search(keyword, page, token)
        except NoResultError:
            return None

    result = _run(ctx, op)

    if result is None:
        click.secho("No results.", fg="yellow")
        return
    if as_json:
        click.echo(result.model_dump_json(indent=2))
        return

    for item in result.items:
        click.secho(f"{item.name}", fg="cyan", bold=True, nl=False)
        click.echo(f" {item.version}  {item.update_time[:10]}")
        if item.description:
            click.echo(f"   {item.description}")
    click.echo(f"Page {page} of {result.total_pages}")


# ── Changes ─────────────────────────────────────────────────────


@cli.command()
@click.argument("specs", nargs=-1)
@click.option(
    "-r",
    "--requirement",
    "requirement",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Install from a requirements file.",
)
@click.option("--pick", is_flag=True, help="Choose the version interactively.")
@click.pass_context
def install(
    ctx: click.Context,
    specs: tuple[str, ...],
    requirement: str | None,
    pick: bool,
) -> None:
    """Install packages (NAME or NAME==VERSION)."""
    if not specs and not requirement:
        raise click.UsageError("Give at least one package or -r FILE.")

    if pick:
        if len(specs) != 1:
            raise click.UsageError("--pick takes exactly one package.")
        found = _run(ctx, lambda state, token: state.manager.list_versions(specs[0], token))
        if not found:
            click.secho(f"No version information for {specs[0]}.", fg="yellow")
            sys.exit(1)
        chosen = click.prompt("Version", type=click.Choice(found), default=found[0])
        specs = (f"{specs[0].partition('==')[0]}=={chosen}",)

    async def op(state: AppState, token: CancelToken) -> None:
        if requirement:
            await state.manager.install_from_manifest(requirement, token)
        for spec in specs:
            await state.manager.install(spec, token)

    _run(ctx, op)
    click.secho("✅ Installed.", fg="green")


@cli.command()
@click.argument("specs", nargs=-1, required=True)
@click.pass_context
def upgrade(ctx: click.Context, specs: tuple[str, ...]) -> None:
    """Upgrade packages to the newest (or the given) version."""

    async def op(state: AppState, token: CancelToken) -> None:
        for spec in specs:
            await state.manager.upgrade(spec, token)

    _run(ctx, op)
    click.secho("✅ Upgraded.", fg="green")


@cli.command()
@click.argument("specs", nargs=-1, required=True)
@click.pass_context
def remove(ctx: click.Context, specs: tuple[str, ...]) -> None:
    """Uninstall packages. pip, setuptools and wheel are never removed."""

    async def op(state: AppState, token: CancelToken) -> list[tuple[str, bool]]:
        return [(spec, await state.manager.remove(spec, token)) for spec in specs]

    for spec, removed in _run(ctx, op):
        if removed:
            click.secho(f"✅ Removed {spec}.", fg="green")
        else:
            click.secho(f"⚠️  {spec} is required by pip and was not removed.", fg="yellow")


def main() -> None:
    cli(obj={})
