"""
Infoblox IPAM provider CLI entry point.

Usage:
    infoblox-ipam [OPTIONS] COMMAND [ARGS]...

Commands:
    run       Run the claim and pool controllers
    version   Show version information
"""

import asyncio
from typing import Annotated

import typer
from rich.console import Console

from infoblox_ipam.config import config
from infoblox_ipam.models.enums import LogLevel
from infoblox_ipam.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

console = Console()

app = typer.Typer(
    name="infoblox-ipam",
    help="Cluster API IPAM provider backed by Infoblox",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.command("run")
def run(
    namespace: Annotated[
        str,
        typer.Option(
            "--namespace",
            "-n",
            help="Namespace to watch; all namespaces when empty",
            envvar="WATCH_NAMESPACE",
        ),
    ] = "",
    watch_filter: Annotated[
        str,
        typer.Option(
            "--watch-filter",
            help="Only reconcile objects labeled cluster.x-k8s.io/watch-filter=<value>",
            envvar="WATCH_FILTER",
        ),
    ] = "",
    operator_namespace: Annotated[
        str,
        typer.Option(
            "--operator-namespace",
            help="Namespace of the instance credential secrets",
            envvar="NAMESPACE",
        ),
    ] = "",
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", "-l", help="Log verbosity", envvar="LOG_LEVEL"),
    ] = LogLevel.INFO,
    kubeconfig: Annotated[
        str,
        typer.Option(
            "--kubeconfig",
            help="Kubeconfig used when not running in a cluster",
            envvar="KUBECONFIG",
        ),
    ] = "",
):
    """Run the IPAddressClaim and InfobloxIPPool controllers."""
    from infoblox_ipam.controllers.setup import setup_with_manager
    from infoblox_ipam.infoblox import ClientManager
    from infoblox_ipam.kube.cache import ObjectCache
    from infoblox_ipam.kube.client import KubernetesObjectClient, load_api_client
    from infoblox_ipam.runtime.manager import Manager

    config.WATCH_NAMESPACE = namespace
    config.WATCH_FILTER = watch_filter
    config.KUBECONFIG = kubeconfig
    config.LOG_LEVEL = log_level
    if operator_namespace:
        config.OPERATOR_NAMESPACE = operator_namespace

    configure_logging(config.LOG_LEVEL)

    if not config.OPERATOR_NAMESPACE:
        logger.warning(
            "No operator namespace set, credential secrets are looked up "
            "in the default namespace"
        )

    kube = KubernetesObjectClient(load_api_client(config.KUBECONFIG))
    manager = Manager(kube, ObjectCache(), config.WATCH_NAMESPACE)
    clients = ClientManager()
    setup_with_manager(
        manager,
        clients,
        config.OPERATOR_NAMESPACE or "default",
        config.WATCH_FILTER,
    )

    try:
        asyncio.run(manager.start())
    finally:
        clients.close()


@app.command("version")
def version():
    """Show version information."""
    from infoblox_ipam import __version__

    console.print(f"infoblox-ipam v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
