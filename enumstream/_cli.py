import asyncio
import collections.abc as cabc
import io
import logging
from contextlib import redirect_stdout

import click
from omegaconf import OmegaConf
from omegaconf.errors import OmegaConfBaseException
from rich.logging import RichHandler

from enumstream.pipeline import factory, load
from enumstream.pipeline import construct_pipeline, register_defaults
from enumstream.pipeline import run_pipeline
from enumstream._version import version


LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format='%(message)s',
        datefmt='[%X]',
        handlers=[RichHandler(rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.argument('config_path', type=click.Path(exists=True, dir_okay=False))
@click.option(
        '--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False),
        default='WARNING', show_default=True,
        help='Verbosity of the log messages.'
        )
@click.version_option(version, prog_name='enumstream')
@click.pass_context
def enumstream(ctx, config_path, log_level):
    """Enumerate the source described in CONFIG_PATH into its sinks."""
    configure_logging(log_level.upper())
    hide_stdout = io.StringIO()
    try:
        with redirect_stdout(hide_stdout):
            conf = OmegaConf.load(config_path)
            conf = OmegaConf.to_object(conf)
    except OmegaConfBaseException as e:
        raise click.ClickException(f'Invalid configuration: {e}') from e
    if not isinstance(conf, dict):
        raise click.ClickException('Configuration must be a mapping.')
    register_defaults()
    plugin_list = [p for p in conf.get('plugins') or [] if p is not None]
    try:
        load.load_plugins(plugin_list)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    if 'source' not in conf:
        raise click.ClickException('Configuration has no source.')
    ctx.obj = {}
    ctx.obj['source'] = conf['source']
    ctx.obj['sinks'] = conf.get('sinks') or [{'type': 'console'}]


async def build_and_run(source_args, sink_list) -> int:
    """Builds the source and sinks, then runs the pipeline. Pieces
    already built are closed if a later one cannot be.
    """
    try:
        source = factory.create(source_args)
    except (ValueError, TypeError) as e:
        raise click.ClickException(str(e)) from e
    if not isinstance(source, cabc.AsyncIterator):
        raise click.ClickException(
            f'{type(source).__name__} object is not an async iterator.'
        )
    try:
        sink = await construct_pipeline(sink_list)
    except (ValueError, TypeError) as e:
        aclose = getattr(source, 'aclose', None)
        if aclose is not None:
            await aclose()
        raise click.ClickException(str(e)) from e
    return await run_pipeline(source, sink)


@enumstream.command()
@click.pass_context
def run(ctx):
    """Runs the pipeline, printing the number of enumerated items."""
    count = asyncio.run(build_and_run(ctx.obj['source'], ctx.obj['sinks']))
    click.echo(click.style(f'Enumerated {count} items.', fg='green'))


def main():
    enumstream()
