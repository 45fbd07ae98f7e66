"""CLI interface for autoqac."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

import click

from autoqac import storage
from autoqac.core.journal import Journal
from autoqac.core.orchestrator import CleaningOrchestrator
from autoqac.core.skiplist import SkipListRegistry
from autoqac.core.tracker import Tracker
from autoqac.errors import AutoQacError, ConfigurationError
from autoqac.games import GameMode
from autoqac.loadorder import detect_game_from_file, read_load_order
from autoqac.models.outcome import Disposition, OutcomeRecord
from autoqac.models.progress import ProgressEvent
from autoqac.models.run_result import RunResult
from autoqac.settings import CleaningConfig, Settings
from autoqac.utils import format_elapsed, plural

_GAME_CHOICE = click.Choice([g.value for g in GameMode], case_sensitive=False)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _resolve_game(config: CleaningConfig) -> None:
    """Fill in the game mode from the load order file if it is unset."""
    if config.game_mode is None and config.load_order_path is not None and config.load_order_path.is_file():
        config.game_mode = detect_game_from_file(config.load_order_path)


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.option("--settings", "settings_path", type=click.Path(path_type=Path), default=None,
              help="Use a different settings file")
@click.pass_context
def main(ctx: click.Context, verbose: int, settings_path: Path | None) -> None:
    """autoqac — automatic xEdit Quick Auto Clean for Bethesda plugins."""
    _setup_logging(verbose)
    ctx.obj = Settings(settings_path)


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@click.argument("plugins", nargs=-1)
@click.option("--game", "-g", type=_GAME_CHOICE, default=None, help="Game mode (detected when omitted)")
@click.option("--xedit", type=click.Path(path_type=Path), default=None, help="Path to the xEdit executable")
@click.option("--load-order", type=click.Path(path_type=Path), default=None, help="loadorder.txt or plugins.txt")
@click.option("--timeout", type=float, default=None, help="Per-plugin timeout in seconds")
@click.option("--partial-forms", is_flag=True, help="Let xEdit convert ITMs to partial forms")
@click.option("--debug", is_flag=True, help="Keep xEdit log files after each plugin")
@click.option("--close-running", is_flag=True, help="Close other xEdit instances before starting")
@click.option("--json", "as_json", is_flag=True, help="Output the summary as JSON")
@click.pass_obj
def clean(
    settings: Settings,
    plugins: tuple[str, ...],
    game: str | None,
    xedit: Path | None,
    load_order: Path | None,
    timeout: float | None,
    partial_forms: bool,
    debug: bool,
    close_running: bool,
    as_json: bool,
) -> None:
    """Clean PLUGINS (default: every plugin in the load order) with xEdit."""
    config = CleaningConfig.from_settings(settings)
    if game is not None:
        config.game_mode = GameMode.parse(game)
    if xedit is not None:
        config.xedit_path = xedit
    if load_order is not None:
        config.load_order_path = load_order
    if timeout is not None:
        config.timeout = timeout
    if partial_forms:
        config.partial_forms = True
    if debug:
        config.debug_mode = True

    problems = config.validate()
    if problems:
        raise click.ClickException("\n".join(problems))
    _resolve_game(config)

    if plugins:
        queue = list(plugins)
    elif config.load_order_path is not None:
        try:
            queue = read_load_order(config.load_order_path)
        except ConfigurationError as e:
            raise click.ClickException(str(e))
    else:
        raise click.ClickException("No plugins given and no load order file configured.")

    with Journal(storage.JOURNAL_FILE, expiration_days=config.journal_expiration_days,
                 enabled=config.journal_enabled) as journal:
        orchestrator = CleaningOrchestrator(config, SkipListRegistry(), journal=journal)
        result = _run_interruptible(orchestrator, queue, close_running, quiet=as_json)

    Tracker().save_run(result)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return
    _print_summary(result)


def _run_interruptible(
    orchestrator: CleaningOrchestrator,
    queue: list[str],
    close_running: bool,
    quiet: bool,
) -> RunResult:
    """Run in a worker thread so Ctrl-C can request a cooperative cancel."""
    box: dict[str, object] = {}

    def on_progress(event: ProgressEvent) -> None:
        if quiet or event.current == 0:
            return
        if event.message.endswith("..."):
            click.echo(f"  [{event.current}/{event.total}] {event.message}", nl=False)

    def on_result(plugin: str, outcome: OutcomeRecord) -> None:
        if quiet:
            return
        match outcome.disposition:
            case Disposition.CLEANED:
                mark = click.style("✓", fg="green")
            case Disposition.NOTHING_TO_CLEAN:
                mark = click.style("·", fg="bright_black")
            case _:
                mark = click.style("✗", fg="red")
        click.echo(f"\r  {mark} {plugin:45s} — {outcome.message}")

    def _work() -> None:
        try:
            box["result"] = orchestrator.run(queue, on_progress, on_result, close_running=close_running)
        except Exception as e:
            box["error"] = e

    if not quiet:
        click.echo(f"\n{click.style('🧹', bold=True)} Cleaning with xEdit (Ctrl-C to stop)...\n")

    worker = threading.Thread(target=_work, name="autoqac-run")
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.2)
    except KeyboardInterrupt:
        click.echo("\nCancelling, waiting for xEdit to stop...", err=True)
        orchestrator.cancel()
        worker.join()

    error = box.get("error")
    if isinstance(error, AutoQacError):
        raise click.ClickException(str(error))
    if error is not None:
        raise error
    return box["result"]


def _print_summary(result: RunResult) -> None:
    click.echo()
    if result.cancelled:
        click.echo(click.style("Cleaning cancelled.", fg="yellow"))
    click.echo(
        f"Processed {click.style(str(result.processed), bold=True)}/{result.queued} plugins, "
        f"{click.style(plural(result.cleaned, 'plugin'), fg='green', bold=True)} cleaned "
        f"in {format_elapsed(result.elapsed)}."
    )
    for title, names in result.categories():
        if not names:
            continue
        click.echo(f"\n  {click.style(title + ':', bold=True)}")
        for name in names:
            click.echo(f"    {name}")
    for warning in result.warnings:
        click.echo(click.style(f"warning: {warning}", fg="yellow"), err=True)
    click.echo()


# ── ignore ───────────────────────────────────────────────────────────────

@main.group()
def ignore() -> None:
    """Manage the skip list."""


@ignore.command("list")
@click.option("--game", "-g", type=_GAME_CHOICE, required=True)
@click.option("--all", "show_all", is_flag=True, help="Include the built-in entries")
def ignore_list(game: str, show_all: bool) -> None:
    """Show skip list entries for a game."""
    registry = SkipListRegistry()
    if show_all:
        for name in registry.baseline(game):
            click.echo(f"  {name} {click.style('[built-in]', fg='bright_black')}")
    learned = registry.learned(game)
    for name in learned:
        click.echo(f"  {name}")
    if not learned and not show_all:
        click.echo("No learned entries.")


@ignore.command("add")
@click.argument("plugin")
@click.option("--game", "-g", type=_GAME_CHOICE, required=True)
def ignore_add(plugin: str, game: str) -> None:
    """Never clean PLUGIN for this game."""
    if not SkipListRegistry().record_non_cleanable(plugin, game):
        raise click.ClickException("Skip list could not be saved.")
    click.echo(f"Added {plugin}.")


@ignore.command("remove")
@click.argument("plugin")
@click.option("--game", "-g", type=_GAME_CHOICE, required=True)
def ignore_remove(plugin: str, game: str) -> None:
    """Allow PLUGIN to be cleaned again."""
    if SkipListRegistry().remove(plugin, game):
        click.echo(f"Removed {plugin}.")
    else:
        click.echo(f"{plugin} is not on the learned skip list.", err=True)


# ── stats ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--period", "-p", default="all", type=click.Choice(["today", "week", "month", "all"]))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(period: str, as_json: bool) -> None:
    """Show cleaning statistics."""
    data = Tracker().get_stats(period)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"\n{click.style('📊', bold=True)} Statistics ({period})\n")
    click.echo(f"  Runs:             {data['session_count']}")
    click.echo(f"  Plugins processed: {data['processed']:,}")
    click.echo(f"  Plugins cleaned:  {click.style(str(data['cleaned']), fg='green', bold=True)}")
    click.echo(f"  Failures:         {data['failed']}")
    click.echo(f"  Lifetime cleaned: {click.style(str(data['lifetime_cleaned']), fg='cyan', bold=True)}")

    if data["per_plugin"]:
        click.echo("\n  Per-plugin breakdown:")
        for name, pstats in sorted(data["per_plugin"].items(), key=lambda x: x[1]["cleaned"], reverse=True):
            click.echo(f"    {name:45s} {pstats['cleaned']:>3} cleaned / {pstats['runs']} runs")
    click.echo()


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Show or change settings."""


@config.command("show")
@click.pass_obj
def config_show(settings: Settings) -> None:
    """Print the effective configuration."""
    cfg = CleaningConfig.from_settings(settings)
    click.echo(f"  settings file:     {settings.path}")
    click.echo(f"  xedit.path:        {cfg.xedit_path or '-'}")
    click.echo(f"  load_order.path:   {cfg.load_order_path or '-'}")
    click.echo(f"  game.mode:         {cfg.game_mode.value if cfg.game_mode else '-'}")
    click.echo(f"  cleaning.timeout:  {cfg.timeout:g}")
    click.echo(f"  cleaning.partial_forms: {cfg.partial_forms}")
    click.echo(f"  debug.enabled:     {cfg.debug_mode}")
    click.echo(f"  journal.enabled:   {cfg.journal_enabled}")
    click.echo(f"  journal.expiration_days: {cfg.journal_expiration_days}")
    click.echo(f"  watchdog.poll_interval: {cfg.poll_interval:g}")


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set(settings: Settings, key: str, value: str) -> None:
    """Set KEY to VALUE (JSON literals such as 600 or true are parsed)."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    settings.set(key, parsed)
    click.echo(f"{key} = {parsed!r}")


@config.command("check")
@click.pass_obj
def config_check(settings: Settings) -> None:
    """Validate the configuration."""
    cfg = CleaningConfig.from_settings(settings)
    problems = cfg.validate()
    if cfg.xedit_path is None:
        problems.append("xedit.path is not set.")
    if problems:
        for problem in problems:
            click.echo(f"  {click.style('✗', fg='red')} {problem}")
        raise SystemExit(1)
    click.echo(f"  {click.style('✓', fg='green')} Configuration looks good.")
