import logging
from typing import Callable, Iterable, List, Optional

import requests
from rich.console import Console
from rich.table import Table

from .errors import (
    CommandError,
    ConfigError,
    IsLatest,
    LocalLifecycleError,
    NoopUpdate,
    RackError,
    ReleaseNotFound,
    RollbackDetected,
    RolloutTimeout,
)
from .errors_catalog import actionable_error
from .models import LocalInstance, RackCredentials, SystemState, SystemStatus
from .services.command_runner import CommandRunner
from .services.local_rack import LocalRackService
from .services.parameters import ParameterService
from .services.remote import RackApiClient
from .services.rollout import RolloutSupervisor
from .services.versions import DEFAULT_REGISTRY_URL, VersionCatalog, VersionRegistry, plan_update

console = Console()
logger = logging.getLogger("rackctl")


class RackController:
    """Runs rack commands and turns their outcome into an exit code."""

    def __init__(
        self,
        host: Optional[str] = None,
        password: Optional[str] = None,
        rack: Optional[str] = None,
        registry_url: str = DEFAULT_REGISTRY_URL,
        request_timeout: float = 30.0,
        poll_interval_seconds: float = 2.0,
        wait_timeout_minutes: float = 30,
        grace_seconds: float = 5.0,
        settle_polls: int = 5,
        noop_is_error: bool = False,
    ):
        self.credentials = RackCredentials(host=host or "", password=password or "", rack=rack or "")
        self.wait_timeout_minutes = wait_timeout_minutes
        self.grace_seconds = grace_seconds
        self.noop_is_error = noop_is_error

        self.command_runner = CommandRunner(logger=logger)
        self.registry = VersionRegistry(
            logger=logger,
            requests_module=requests,
            url=registry_url,
            timeout=request_timeout,
        )
        self.client = RackApiClient(
            credentials=self.credentials,
            logger=logger,
            requests_module=requests,
            timeout=request_timeout,
        )
        self.supervisor = RolloutSupervisor(
            client=self.client,
            logger=logger,
            console=console,
            poll_interval=poll_interval_seconds,
            settle_polls=settle_polls,
        )
        self.parameter_service = ParameterService(client=self.client, logger=logger)
        self.local_rack_service = LocalRackService(
            logger=logger,
            console=console,
            run_cmd=self._run_cmd,
        )

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False):
        return self.command_runner.run(cmd, check=check, capture_output=capture_output)

    def _require_host(self):
        if self.credentials.host:
            return
        message = actionable_error("missing_host")
        if self.local_rack_service.is_running():
            message = f"{message} A local rack is running; use its published 5443 port as the host."
        raise ConfigError(message)

    def _load_catalog(self, include_unpublished: bool = False) -> VersionCatalog:
        return VersionCatalog.load(self.registry, include_unpublished=include_unpublished)

    def _execute(self, action: Callable, *args, **kwargs) -> int:
        try:
            action(*args, **kwargs)
            return 0
        except NoopUpdate as exc:
            if self.noop_is_error:
                console.print(f"[bold red]Error:[/bold red] {exc}")
                logger.error(str(exc))
                return 1
            console.print(f"[yellow]{exc}[/yellow]")
            logger.info(str(exc))
            return 0
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return 1
        except RollbackDetected as exc:
            console.print(f"[bold red]Rolled back:[/bold red] {exc}")
            logger.error(str(exc))
            return 1
        except RolloutTimeout as exc:
            console.print(f"[bold yellow]Timeout:[/bold yellow] {exc}")
            logger.error(str(exc))
            return 1
        except RackError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return 1

    def _wait_for_completion(self, acknowledged_status: Optional[str] = None):
        console.print("[blue]Waiting for completion...[/blue]")
        self.supervisor.wait(
            timeout=self.wait_timeout_minutes * 60,
            grace=self.grace_seconds,
            acknowledged_status=acknowledged_status,
        )
        console.print("[green]OK[/green]")

    def _print_system(self, system: SystemState, full: bool = False):
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="bold")
        grid.add_column()
        grid.add_row("Name", system.name)
        grid.add_row("Status", system.status)
        grid.add_row("Version", system.version)

        if full:
            if system.count > 0:
                grid.add_row("Count", str(system.count))
            if system.domain:
                grid.add_row("Domain", system.domain)
            if system.region:
                grid.add_row("Region", system.region)
            if system.type:
                grid.add_row("Type", system.type)
        else:
            grid.add_row("Count", str(system.count))
            grid.add_row("Type", system.type)

        console.print(grid)

    # info

    def info(self) -> int:
        return self._execute(self._info)

    def _info(self):
        self._require_host()
        self._print_system(self.client.get_system(), full=True)

    # update

    def update(self, requested: Optional[str] = None, wait: bool = False) -> int:
        return self._execute(self._update, requested, wait)

    def _update(self, requested: Optional[str], wait: bool):
        self._require_host()
        catalog = self._load_catalog()
        system = self.client.get_system()

        plan = plan_update(catalog, system.version, requested)
        logger.info(
            "Current version %s, requested %s, updating to %s",
            system.version,
            plan.requested.id,
            plan.target.id,
        )
        if plan.gated:
            console.print("[bold yellow]WARNING: Required update found.[/bold yellow]")
            console.print(
                f"Please run `rackctl update` again once this update completes "
                f"to continue to {plan.requested.id}."
            )

        console.print(f"[blue]Updating to {plan.target.id}...[/blue]")
        acknowledgement = self.supervisor.trigger(plan.target.id)
        console.print("[cyan]UPDATING[/cyan]")

        if wait:
            self._wait_for_completion(acknowledgement.status)

    # params

    def params(self) -> int:
        return self._execute(self._params)

    def _params(self):
        self._require_host()
        system = self.client.get_system()

        table = Table("NAME", "VALUE", box=None)
        for name, value in self.parameter_service.list(system.name):
            table.add_row(name, value)
        console.print(table)

    def params_set(self, assignments: Iterable[str], wait: bool = False) -> int:
        return self._execute(self._params_set, list(assignments), wait)

    def _params_set(self, assignments: List[str], wait: bool):
        params = self.parameter_service.parse_assignments(assignments)
        self._require_host()
        system = self.client.get_system()

        console.print("[blue]Updating parameters...[/blue]")
        self.parameter_service.apply(system.name, params)
        console.print("[green]OK[/green]")

        if wait:
            self._wait_for_completion()

    # scale

    def scale(self, count: Optional[int] = None, instance_type: Optional[str] = None) -> int:
        return self._execute(self._scale, count, instance_type)

    def _scale(self, count: Optional[int], instance_type: Optional[str]):
        self._require_host()
        if count is not None or instance_type:
            self.client.scale_system(count=count, instance_type=instance_type)
        self._print_system(self.client.get_system())

    # releases

    def releases(self, include_unpublished: bool = False) -> int:
        return self._execute(self._releases, include_unpublished)

    def _releases(self, include_unpublished: bool):
        self._require_host()
        system = self.client.get_system()
        pending = system.version

        table = Table("VERSION", "UPDATED", "STATUS", box=None)
        for index, release in enumerate(self.client.list_releases()):
            status = ""
            if system.status == SystemStatus.UPDATING.value and index == 0:
                pending = release.id
                status = "updating"
            if system.version == release.id:
                status = "active"
            table.add_row(release.id, release.created or "", status)
        console.print(table)

        catalog = self._load_catalog(include_unpublished=include_unpublished)
        try:
            next_release = catalog.next(system.version)
        except (IsLatest, ReleaseNotFound):
            return

        if next_release.id > pending:
            console.print(f"\nNew version available: [bold]{next_release.id}[/bold]")

    # local rack

    def start(self, name: str, router: str, version: Optional[str] = None) -> int:
        return self._execute(self._start, name, router, version)

    def _start(self, name: str, router: str, version: Optional[str]) -> LocalInstance:
        if not version or version == VersionCatalog.LATEST:
            version = self._load_catalog().latest().id

        try:
            running = self.local_rack_service.discover()
        except CommandError as exc:
            raise LocalLifecycleError(f"Could not list local racks: {exc}") from exc

        if name in running:
            console.print(f"[yellow]Replacing running local rack {name}.[/yellow]")

        instance = self.local_rack_service.start(name=name, version=version, router=router)
        console.print(f"[green]Local rack {instance.name} stopped.[/green]")
        return instance

