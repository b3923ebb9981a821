"""Command-line interface for cmdguard."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional, Sequence

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cmdguard import __version__
from cmdguard.core.errors import CmdGuardError, UnknownPackError
from cmdguard.core.guard import Guard
from cmdguard.core.hook import run_hook
from cmdguard.core.results import EvaluationResult
from cmdguard.packs.base import DecisionMode
from cmdguard.utils.log import init_logger


console = Console()

_MODE_STYLES = {
    DecisionMode.ALLOW: "green",
    DecisionMode.WARN: "yellow",
    DecisionMode.DENY: "bold red",
    DecisionMode.BYPASS: "cyan",
}

_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Use this config file instead of the user config",
)


def _load_guard(
    config_path: Optional[Path], pack_ids: Sequence[str] = (), strict: bool = True
) -> Guard:
    try:
        guard = Guard.from_config_files(
            project_path=Path.cwd(),
            config_path=config_path,
            strict=strict and config_path is not None,
        )
        if pack_ids:
            for pack_id in pack_ids:
                if not guard.registry.is_known(pack_id):
                    raise UnknownPackError(pack_id)
            guard = guard.with_packs(pack_ids)
    except CmdGuardError as e:
        raise click.ClickException(str(e)) from e
    return guard


def _print_result(command: str, result: EvaluationResult) -> None:
    mode = result.effective_mode
    style = _MODE_STYLES[mode]
    console.print(f"[{style}]{mode.value.upper()}[/{style}] {escape(command)}")

    info = result.pattern_info
    if info is None:
        return
    if info.rule_id:
        console.print(f"  Rule: {escape(info.rule_id)}")
    if info.severity is not None:
        console.print(f"  Severity: {info.severity.label}")
    console.print(f"  Reason: {escape(info.reason)}")
    if info.matched_text_preview:
        console.print(f"  Matched: {escape(info.matched_text_preview)}")
    if result.confidence is not None:
        console.print(f"  Confidence: {result.confidence.value:.2f}")
    if result.allowlist_override is not None:
        console.print(
            f"  Allowlisted ({result.allowlist_override.layer.value}): "
            f"{escape(result.allowlist_override.reason)}"
        )
    if info.explanation:
        console.print(f"[dim]{escape(info.explanation)}[/dim]")


@click.group()
@click.version_option(version=__version__, prog_name="cmdguard")
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="CMDGUARD_LOG_DIR",
    default=None,
    help="Also write debug logs to a file in this directory",
)
def cli(log_dir: Optional[Path]) -> None:
    """Guard shell commands against destructive operations."""
    if log_dir is not None:
        init_logger(log_dir)


@cli.command(name="check")
@click.argument("command")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option(
    "--pack",
    "pack_ids",
    multiple=True,
    help="Enable only this pack or category (repeatable)",
)
@_config_option
@click.pass_context
def check_cmd(
    ctx: click.Context,
    command: str,
    as_json: bool,
    pack_ids: tuple[str, ...],
    config_path: Optional[Path],
) -> None:
    """Evaluate COMMAND and exit 1 if it would be denied."""
    guard = _load_guard(config_path, pack_ids)
    result = guard.evaluate(command)

    if as_json:
        click.echo(json.dumps({"command": command, **result.to_dict()}, indent=2))
    else:
        _print_result(command, result)

    if result.is_denied:
        ctx.exit(1)


@cli.command(name="hook")
@_config_option
@click.pass_context
def hook_cmd(ctx: click.Context, config_path: Optional[Path]) -> None:
    """Run as a PreToolUse hook: read JSON on stdin, print a denial if needed."""
    guard = _load_guard(config_path, strict=False)
    ctx.exit(run_hook(sys.stdin, sys.stdout, guard))


@cli.command(name="packs")
@click.option("--enabled-only", is_flag=True, help="Only list enabled packs")
@_config_option
def packs_cmd(enabled_only: bool, config_path: Optional[Path]) -> None:
    """List available pattern packs."""
    guard = _load_guard(config_path)
    infos = guard.registry.list_packs(guard.enabled_pack_ids)
    if enabled_only:
        infos = [info for info in infos if info.enabled]

    if not infos:
        console.print("[yellow]No packs enabled.[/yellow]")
        return

    table = Table(title="Packs")
    table.add_column("ID", no_wrap=True)
    table.add_column("Enabled", no_wrap=True)
    table.add_column("Patterns", no_wrap=True)
    table.add_column("Description")
    for info in infos:
        table.add_row(
            info.id,
            "[green]yes[/green]" if info.enabled else "[dim]no[/dim]",
            f"{info.safe_pattern_count} safe / {info.destructive_pattern_count} destructive",
            escape(info.description),
        )
    console.print(table)


@cli.command(name="explain")
@click.argument("command")
@_config_option
def explain_cmd(command: str, config_path: Optional[Path]) -> None:
    """Show how each evaluation step handled COMMAND."""
    guard = _load_guard(config_path)
    trace = guard.explain(command)

    console.print(f"[bold]Command:[/bold] {escape(command)}")
    console.print(f"[bold]Packs:[/bold] {', '.join(guard.enabled_pack_ids) or '(none)'}")
    console.print()
    for step in trace.steps:
        line = f"  {step.step:<17} {escape(step.outcome)}"
        if step.detail:
            line += f"  [dim]{escape(step.detail)}[/dim]"
        console.print(line)
    console.print()
    _print_result(command, trace.result)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


__all__ = ["cli", "main"]
