"""CLI entrypoint for querygen."""

import logging
import sys
from pathlib import Path

import rich_click as click

from querygen import __version__
from querygen.config import ConfigError
from querygen.orchestrator.controllers import CodegenCliController, GenerateCommand

click.rich_click.USE_MARKDOWN = True
CODEGEN_CONTROLLER = CodegenCliController()


@click.command()
@click.version_option(version=__version__, prog_name="querygen")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    envvar="QUERYGEN_CONFIG",
    help="Config file path.",
)
@click.option("--watch", "-w", is_flag=True, default=False, help="Watch mode.")
@click.option(
    "--file",
    "-f",
    "file_override",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="File path (process single file, incompatible with --watch).",
)
@click.option("--uri", default=None, help="DB connection URI (overrides config).")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug diagnostics.")
def querygen(
    config_path: Path,
    watch: bool,
    file_override: Path | None,
    uri: str | None,
    verbose: bool,
) -> None:
    """Generate query declarations for every matching source file."""

    if watch and file_override is not None:
        raise click.UsageError("File override is not compatible with watch mode.")
    _configure_logging(verbose)

    try:
        exit_code = CODEGEN_CONTROLLER.generate(
            GenerateCommand(
                config_path=config_path,
                watch=watch,
                file_override=file_override,
                connection_uri=uri,
            ),
            on_progress=click.echo,
        )
    except ConfigError as error:
        raise click.ClickException(f"Failed to parse config file: {error}") from error
    sys.exit(exit_code)


def _configure_logging(verbose: bool) -> None:
    root = logging.getLogger("querygen")
    if not verbose or root.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)


if __name__ == "__main__":  # pragma: no cover
    querygen()
