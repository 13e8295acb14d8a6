import logging
import os

import click
from rich.logging import RichHandler

from .core import RackController
from .errors import RackError
from .services.config_loader import ConfigLoader
from .services.versions import DEFAULT_REGISTRY_URL


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _controller(ctx) -> RackController:
    try:
        return RackController(**ctx.obj["controller"])
    except RackError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .rackctl.yml if present.",
)
@click.option("--host", envvar="RACK_HOST", required=False, help="Rack API host.")
@click.option("--password", envvar="RACK_PASSWORD", required=False, help="Rack API password.")
@click.option("--rack", envvar="RACK", required=False, help="Rack name sent with each request.")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, host, password, rack, verbose, log_file):
    """Manage a self-hosted rack."""
    logger = logging.getLogger("rackctl")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ConfigLoader.DEFAULT_FILENAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except RackError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    ctx.ensure_object(dict)
    ctx.obj["controller"] = {
        "host": _resolve_option(host, config_values, "host"),
        "password": _resolve_option(password, config_values, "password"),
        "rack": _resolve_option(rack, config_values, "rack"),
        "registry_url": _resolve_option(None, config_values, "registry_url", default=DEFAULT_REGISTRY_URL),
        "request_timeout": float(
            _resolve_option(None, config_values, "request_timeout", default=30.0)
        ),
        "poll_interval_seconds": float(
            _resolve_option(None, config_values, "poll_interval_seconds", default=2.0)
        ),
        "wait_timeout_minutes": float(
            _resolve_option(None, config_values, "wait_timeout_minutes", default=30)
        ),
        "grace_seconds": float(_resolve_option(None, config_values, "grace_seconds", default=5.0)),
        "settle_polls": int(_resolve_option(None, config_values, "settle_polls", default=5)),
        "noop_is_error": bool(_resolve_option(None, config_values, "noop_is_error", default=False)),
    }


@main.command()
@click.pass_context
def info(ctx):
    """Show rack status and version."""
    ctx.exit(_controller(ctx).info())


@main.command()
@click.argument("version", required=False)
@click.option(
    "--wait",
    is_flag=True,
    envvar="RACK_WAIT",
    help="Wait for the rack update to finish before returning.",
)
@click.pass_context
def update(ctx, version, wait):
    """Update the rack to VERSION (default: latest)."""
    ctx.exit(_controller(ctx).update(requested=version, wait=wait))


@main.group(invoke_without_command=True)
@click.pass_context
def params(ctx):
    """List advanced rack parameters."""
    if ctx.invoked_subcommand is None:
        ctx.exit(_controller(ctx).params())


@params.command("set")
@click.argument("assignments", nargs=-1, required=True)
@click.option(
    "--wait",
    is_flag=True,
    envvar="RACK_WAIT",
    help="Wait for the rack update to finish before returning.",
)
@click.pass_context
def params_set(ctx, assignments, wait):
    """Update advanced rack parameters (NAME=VALUE ...)."""
    ctx.exit(_controller(ctx).params_set(assignments, wait=wait))


@main.command()
@click.option("--count", type=int, default=None, help="Instance count, e.g. 3 or 10.")
@click.option("--type", "instance_type", default=None, help="Instance type, e.g. t2.small.")
@click.pass_context
def scale(ctx, count, instance_type):
    """Scale the rack capacity."""
    ctx.exit(_controller(ctx).scale(count=count, instance_type=instance_type))


@main.command()
@click.option("--unpublished", is_flag=True, help="Include unpublished versions.")
@click.pass_context
def releases(ctx, unpublished):
    """List the rack's version history."""
    ctx.exit(_controller(ctx).releases(include_unpublished=unpublished))


@main.command()
@click.option("--name", default="convox", show_default=True, help="Local rack name.")
@click.option("--router", default="10.42.0.0", show_default=True, help="Local router address.")
@click.option("--version", default=None, help="Rack image version (default: latest).")
@click.pass_context
def start(ctx, name, router, version):
    """Start a local rack in Docker."""
    ctx.exit(_controller(ctx).start(name=name, router=router, version=version))


if __name__ == "__main__":
    main()
