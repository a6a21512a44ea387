import logging
import os

import click
from rich.logging import RichHandler

from . import constants
from .core import NodeInstaller
from .errors import InstallerError
from .models import InstallConfig, NodeRole
from .services.config_loader import ConfigLoader

DEFAULT_CONFIG_FILE = ".kube-node-installer.yml"

USAGE_EPILOG = """\b
On a control plane node use the '-c' option:
  kube-node-installer -c
On a worker node, run with no options:
  kube-node-installer
For verbose output, run with the '-v' option:
  kube-node-installer -v
"""


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


class UsageOnErrorCommand(click.Command):
    """Prints usage and exits successfully on unrecognised options."""

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as exc:
            click.echo(f"{exc.format_message()}\n", err=True)
            click.echo(ctx.get_help())
            ctx.exit(0)


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(level=logging.INFO, rich_tracebacks=True, show_level=False, show_path=False)
    ],
)


@click.command(
    cls=UsageOnErrorCommand,
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog=USAGE_EPILOG,
)
@click.option(
    "-c",
    "--control-plane",
    "control_plane",
    is_flag=True,
    default=None,
    help="Configure this host as the control plane node (default: worker node).",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=None,
    help="Print the full install log once the run completes.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--log-file", type=click.Path(), help="Keep a persistent copy of the install log.")
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Print the ordered install plan without changing the host.",
)
def main(control_plane, verbose, config, log_file, dry_run):
    """Install and configure a single Kubernetes node on Ubuntu 22.04."""
    logger = logging.getLogger("kubeinstaller")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except InstallerError as exc:
        raise click.ClickException(str(exc)) from exc

    control_plane = bool(_resolve_option(control_plane, config_values, "control_plane", default=False))
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    dry_run = bool(_resolve_option(dry_run, config_values, "dry_run", default=False))

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        install_config = InstallConfig(
            role=NodeRole.CONTROL_PLANE if control_plane else NodeRole.WORKER,
            verbose=verbose,
            kube_version=str(config_values.get("kube_version", constants.KUBE_VERSION)),
            containerd_version=str(
                config_values.get("containerd_version", constants.CONTAINERD_VERSION)
            ),
            containerd_sha256=config_values.get("containerd_sha256"),
            calico_version=str(config_values.get("calico_version", constants.CALICO_VERSION)),
            pod_network_cidr=str(
                config_values.get("pod_network_cidr", constants.POD_NETWORK_CIDR)
            ),
            node_ready_timeout_seconds=int(
                config_values.get("node_ready_timeout", constants.NODE_READY_TIMEOUT_SECONDS)
            ),
            kubeconfig_users=tuple(
                config_values.get("kubeconfig_users", constants.KUBECONFIG_USERS)
            ),
            dry_run=dry_run,
        )
        installer = NodeInstaller(config=install_config)
    except (InstallerError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(installer.run())


if __name__ == "__main__":
    main()
