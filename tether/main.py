"""
Main entry point for the tether command-line interface.

Applications are referenced as ``module:attribute`` where the attribute is
an ``Application`` instance or a factory returning one. A factory that
accepts a parameter receives the loaded ``ApplicationConfig``.
"""

import asyncio
import importlib
import inspect
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
import yaml

from .application.application import Application
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging

# Create CLI application
cli = typer.Typer(
    name="tether",
    help="Inversion-of-control container and application lifecycle runner"
)

logger = logging.getLogger(__name__)


def load_application(target: str, config: ApplicationConfig, app_dir: str = ".") -> Application:
    """
    Import an application from a ``module:attribute`` reference.

    Args:
        target: Reference such as ``myproject.app:application``
        config: Configuration passed to application factories
        app_dir: Directory prepended to the import path

    Returns:
        The referenced application

    Raises:
        typer.BadParameter: If the reference cannot be imported or does not
            yield an Application
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"Expected 'module:attribute', got '{target}'")

    app_path = str(Path(app_dir).resolve())
    if app_path not in sys.path:
        sys.path.insert(0, app_path)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import module '{module_name}': {e}") from e

    try:
        obj = getattr(module, attribute)
    except AttributeError as e:
        raise typer.BadParameter(
            f"Module '{module_name}' has no attribute '{attribute}'") from e

    if not isinstance(obj, Application) and callable(obj):
        obj = obj(config) if inspect.signature(obj).parameters else obj()

    if not isinstance(obj, Application):
        raise typer.BadParameter(f"'{target}' is not an Application")
    return obj


@cli.command()
def run(
    target: str = typer.Argument(..., help="Application reference (module:attribute)"),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    app_dir: str = typer.Option(
        ".", "--app-dir", help="Directory to import the application from"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode"
    )
) -> None:
    """Start an application and keep it running until it is signalled to stop."""

    config_loader = ConfigLoader()
    config = config_loader.load_config(config_file)

    if log_level:
        config.logging.level = log_level.upper()
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    setup_logging(config.logging)

    app = load_application(target, config, app_dir)
    logger.info(f"Running {app.name} ({config.environment})")

    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application failed: {e}")
        sys.exit(1)


@cli.command("inspect")
def inspect_app(
    target: str = typer.Argument(..., help="Application reference (module:attribute)"),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    app_dir: str = typer.Option(
        ".", "--app-dir", help="Directory to import the application from"
    )
) -> None:
    """Print the bindings of an application as YAML."""

    config = ConfigLoader().load_config(config_file)
    app = load_application(target, config, app_dir)
    typer.echo(yaml.safe_dump(app.inspect(), default_flow_style=False, sort_keys=False))


@cli.command()
def init_config(
    output: str = typer.Option(
        "config.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""

    config = ApplicationConfig()
    config_loader = ConfigLoader()

    try:
        config_loader.save_config(config, output, format)
        typer.echo(f"Default configuration saved to {output}")
    except Exception as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(...,
                                      help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""

    config_loader = ConfigLoader()

    try:
        config = config_loader.load_config(config_file)
        typer.echo(f"Configuration file {config_file} is valid")
        typer.echo(f"Application: {config.name} v{config.version}")
        typer.echo(f"Life cycle group order: {', '.join(config.lifecycle.orders) or '(none)'}")
    except Exception as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
