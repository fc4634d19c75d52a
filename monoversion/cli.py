"""CLI entry point: monoversion.

Subcommands:
    monoversion check [NAMES...]               # report dependencies resolved to several versions
    monoversion check --fix                     # apply manual locks from monoversion.json
    monoversion lock react --version 18.2.0     # lock one dependency across the workspace
    monoversion config --init                   # write a default monoversion.json
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from monoversion.core.config import (
    WorkspaceConfig,
    default_config,
    find_config_dir,
    init_config,
    load_config,
)
from monoversion.core.logging import setup_logging
from monoversion.engines.consistency.workspace import Workspace
from monoversion.engines.consistency.writer import WriteResult
from monoversion.exceptions import ConfigError, LockfileError, MissingArgumentError
from monoversion.reporting import render_buckets, render_grouping


def _load_workspace(
    ctx: click.Context,
    include_packages: tuple[str, ...] = (),
    exclude_packages: tuple[str, ...] = (),
) -> Workspace:
    """Find the config, overlay CLI options and load the workspace."""
    config_dir = find_config_dir()
    try:
        config = load_config(config_dir) if config_dir else WorkspaceConfig()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    package_manager = ctx.obj.get("package_manager")
    if package_manager:
        config = config.model_copy(update={"package_manager": package_manager})
    config = config.with_package_filters(include_packages, exclude_packages)

    root = config_dir or Path.cwd()
    try:
        return asyncio.run(Workspace(root, config).load())
    except LockfileError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _report_writes(results: list[WriteResult]) -> bool:
    """Print per-manifest write results; returns True when all succeeded."""
    ok = True
    for result in results:
        if result.error is not None:
            ok = False
            click.echo(click.style(f"  [!] {result.error}", fg="red"), err=True)
        elif result.changed:
            click.echo(f"  [+] {result.path}")
    return ok


@click.group()
@click.option("-p", "--package-manager", default=None, help="Package manager (default: from config, pnpm)")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.pass_context
def main(ctx: click.Context, package_manager: str | None, verbose: bool) -> None:
    """monoversion: keep dependency versions consistent across a monorepo."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["package_manager"] = package_manager


@main.command("check")
@click.argument("dependency_names", nargs=-1)
@click.option("--diff/--no-diff", default=True, help="Print only dependencies with several versions")
@click.option("--fix", is_flag=True, help="Apply manual locks that differ from package.json")
@click.option("--silent", is_flag=True, help="Do not print the report")
@click.option("--include-package", multiple=True, help="Only check these packages")
@click.option("--exclude-package", multiple=True, help="Skip these packages")
@click.pass_context
def check(
    ctx: click.Context,
    dependency_names: tuple[str, ...],
    diff: bool,
    fix: bool,
    silent: bool,
    include_package: tuple[str, ...],
    exclude_package: tuple[str, ...],
) -> None:
    """Check that every dependency resolves to one version."""
    workspace = _load_workspace(ctx, include_package, exclude_package)
    result = workspace.check_version(dependency_names, only_different=diff)

    if fix:
        count = len(result.auto_fixable)
        if not count:
            click.echo(click.style("No dependency can be auto fixed", fg="green", bold=True))
            return
        click.echo(click.style(f"{count} dependency can be auto fixed", fg="green", bold=True))
        click.echo("locking...")
        ok = _report_writes(asyncio.run(workspace.fix(result.auto_fixable)))
        click.echo("lock finished")
        if not ok:
            sys.exit(1)
        return

    if silent:
        return

    if not result.has_divergence and diff:
        click.echo(click.style("All dependencies resolve to a single version", fg="green", bold=True))
    elif not diff:
        for line in render_grouping(result.report):
            click.echo(line)
    else:
        for index, (name, buckets) in enumerate(result.divergent.items()):
            if index:
                click.echo("")
                click.echo("======================================")
            for line in render_buckets(name, buckets):
                click.echo(line)
            report = workspace.get_suggestions(buckets, name in result.manual_diff)
            if report is None:
                continue
            for heading, grouped in (
                ("PeerDependencies:", report.peer_dependencies),
                ("TransitivePeerDependencies:", report.transitive_peer_dependencies),
            ):
                if grouped:
                    click.echo("")
                    click.echo(click.style(heading, fg="blue"))
                    for line in render_grouping(grouped):
                        click.echo(line)
            for suggestion in report.suggestions:
                click.echo(click.style(f"suggestion: {suggestion.message}", fg="cyan"))

    # the full report already lists unresolved buckets
    if diff and result.unresolved:
        click.echo("")
        click.echo(click.style("Not found in lockfile:", fg="yellow"))
        for line in render_grouping(result.unresolved):
            click.echo(line)

    if result.has_divergence:
        sys.exit(1)


@main.command("lock")
@click.argument("dependency_name", required=False)
@click.option("-v", "--version", "version", default=None, help="Version to lock the dependency to")
@click.option("--peer-version", default=None, help="Version for peerDependencies (default: from config)")
@click.option("--include-package", multiple=True, help="Only lock in these packages")
@click.option("--exclude-package", multiple=True, help="Do not lock in these packages")
@click.pass_context
def lock(
    ctx: click.Context,
    dependency_name: str | None,
    version: str | None,
    peer_version: str | None,
    include_package: tuple[str, ...],
    exclude_package: tuple[str, ...],
) -> None:
    """Lock one dependency to a single version in every package."""
    if not dependency_name:
        click.echo("Error: Missing dependency name", err=True)
        sys.exit(1)
    if not version:
        click.echo("Error: Missing option '--version'", err=True)
        sys.exit(1)

    workspace = _load_workspace(ctx, include_package, exclude_package)
    try:
        results = asyncio.run(workspace.lock_version(dependency_name, version, peer_version))
    except MissingArgumentError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    changed = [r for r in results if r.changed]
    ok = _report_writes(results)
    click.echo(f"Locked {dependency_name} to {version} in {len(changed)} package(s)")
    if not ok:
        sys.exit(1)


@main.command("config")
@click.option("-i", "--init", "init", is_flag=True, help="Write a default monoversion.json")
@click.pass_context
def config(ctx: click.Context, init: bool) -> None:
    """Manage monoversion.json."""
    if not init:
        click.echo(ctx.get_help())
        return
    cwd = Path.cwd()
    path = init_config(cwd, default_config(ctx.obj.get("package_manager") or "pnpm", cwd))
    click.echo(f"Config written to {path}")


if __name__ == "__main__":
    main()
