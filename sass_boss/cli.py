"""CLI entry point: sass-boss compile / commands."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from .config import Config
from .models import CompileTarget
from .pipeline import Pipeline
from .session import CompileSession


def _target_options(f):
    for option in reversed([
        click.argument("src"),
        click.argument("output"),
        click.option("--watch/--no-watch", default=None, help="Keep recompiling on changes"),
        click.option("--production/--no-production", default=None, help="Compressed output"),
        click.option("--source-maps/--no-source-maps", default=None, help="Embed source maps"),
        click.option("--autoprefixer/--no-autoprefixer", "autoprefixer_enabled", default=None,
                     help="Run postcss on the compiled CSS"),
        click.option("--include-path", "include_paths", multiple=True, help="Extra Sass load path"),
        click.option("--importer", default=None, help="node-sass custom importer"),
        click.option("--root", default=None, help="Project root holding node_modules"),
        click.option("--config", "config_path", default=None, help="YAML config file"),
    ]):
        f = option(f)
    return f


def _build(src, output, include_paths, importer, config_path, **overrides):
    cfg = Config.from_cli(config=config_path, **overrides)
    plugin_options = {}
    if include_paths:
        plugin_options["include_paths"] = list(include_paths)
    if importer:
        plugin_options["importer"] = importer
    target = CompileTarget(source_path=src, output_path=output, plugin_options=plugin_options)
    return cfg, target


@click.group()
def cli():
    """sass-boss: Supervise node-sass and postcss builds."""
    pass


@cli.command("compile")
@_target_options
@click.option("--notifications/--no-notifications", default=None, help="Report results as notifications")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def compile_cmd(verbose: bool, **kwargs):
    """Compile SRC into OUTPUT."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg, target = _build(**kwargs)
    session = CompileSession(target, cfg)

    try:
        status = asyncio.run(session.run())
    except OSError as e:
        raise click.ClickException(f"Could not start compiler: {e}")
    except KeyboardInterrupt:
        click.echo("Stopped.")
        status = 0
    sys.exit(status)


@cli.command()
@_target_options
def commands(**kwargs):
    """Show the command lines a compile of SRC would run."""
    cfg, target = _build(**kwargs)
    for spec in Pipeline(cfg).commands(target, watch=cfg.watch):
        click.echo(spec.command_line())


if __name__ == "__main__":
    cli()
