"""Lifecycle of a single local rack running as a Docker container."""

import signal
import sys
import threading
from typing import Callable, List, Optional

from rackctl.errors import CommandError, LocalLifecycleError
from rackctl.errors_catalog import actionable_error
from rackctl.models import LocalInstance


class TerminationListener:
    """Forwards SIGINT/SIGTERM to a stop callback while the block is active.

    Handlers only record the signal; a background thread performs the stop so
    the foreground ``docker run`` keeps waiting until the container exits.
    The callback runs at most once however many signals arrive.
    """

    def __init__(self, on_signal: Callable[[int], None], logger, signal_module=signal):
        self.on_signal = on_signal
        self.logger = logger
        self.signal = signal_module
        self.signals = (signal_module.SIGINT, signal_module.SIGTERM)
        self.received: Optional[int] = None
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._fired = False
        self._previous = {}
        self._thread: Optional[threading.Thread] = None

    @property
    def triggered(self) -> bool:
        return self._fired

    def __enter__(self):
        for signum in self.signals:
            self._previous[signum] = self.signal.signal(signum, self._handle)
        self._thread = threading.Thread(target=self._listen, name="rackctl-signals", daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        for signum, handler in self._previous.items():
            self.signal.signal(signum, handler)
        self._previous.clear()
        self._event.set()
        if self._thread is not None:
            self._thread.join()
        return False

    def _handle(self, signum, _frame):
        if self.received is None:
            self.received = signum
        self._event.set()

    def _listen(self):
        self._event.wait()
        if self.received is None:
            return
        with self._lock:
            if self._fired:
                return
            self._fired = True
        try:
            self.on_signal(self.received)
        except Exception:
            self.logger.exception("Failed to stop local rack after signal %s", self.received)


class LocalRackService:
    """Starts, stops and discovers local racks through the Docker CLI."""

    IMAGE = "convox/rack"
    LABEL_PREFIX = "convox"
    MEMORY_LIMIT = "256m"
    API_PORT = "5443"

    def __init__(self, logger, console, run_cmd: Callable, platform: str = sys.platform, signal_module=signal):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.platform = platform
        self.signal = signal_module

    def volume_root(self) -> str:
        if self.platform == "darwin":
            return "/Users/Shared/convox"
        return "/var/convox"

    def build_run_command(self, name: str, version: str, router: str) -> List[str]:
        vol = self.volume_root()
        return [
            "docker",
            "run",
            "--rm",
            "-e",
            "COMBINED=true",
            "-e",
            "PROVIDER=local",
            "-e",
            f"PROVIDER_ROUTER={router}",
            "-e",
            f"PROVIDER_VOLUME={vol}",
            "-e",
            f"RACK={name}",
            "-e",
            f"VERSION={version}",
            "-i",
            "--label",
            f"{self.LABEL_PREFIX}.rack={name}",
            "--label",
            f"{self.LABEL_PREFIX}.type=rack",
            "-m",
            self.MEMORY_LIMIT,
            "--name",
            name,
            "-p",
            self.API_PORT,
            "-v",
            f"{vol}:/var/convox",
            "-v",
            "/var/run/docker.sock:/var/run/docker.sock",
            f"{self.IMAGE}:{version}",
        ]

    def remove(self, name: str):
        self.logger.debug("Removing any existing container named %s", name)
        self.run_cmd(["docker", "rm", "-f", name], check=False, capture_output=True)

    def stop(self, name: str):
        try:
            self.run_cmd(["docker", "stop", name], check=True, capture_output=True)
        except CommandError as exc:
            raise LocalLifecycleError(f"Could not stop local rack {name}: {exc}") from exc

    def start(self, name: str, version: str, router: str) -> LocalInstance:
        self.remove(name)
        cmd = self.build_run_command(name, version, router)

        self.logger.info("Starting local rack %s (%s) on router %s", name, version, router)

        def stop_on_signal(_signum: int):
            self.console.print(f"\nstopping: {name}")
            self.stop(name)

        try:
            with TerminationListener(stop_on_signal, self.logger, signal_module=self.signal) as listener:
                result = self.run_cmd(cmd, check=False, capture_output=False)
        except CommandError as exc:
            raise LocalLifecycleError(str(exc)) from exc

        if result.returncode != 0 and not listener.triggered:
            raise LocalLifecycleError(
                actionable_error("local_rack_failed", name=name, status=str(result.returncode))
            )

        return LocalInstance(
            name=name,
            router_address=router,
            version=version,
            returncode=result.returncode,
        )

    def discover(self) -> List[str]:
        result = self.run_cmd(
            [
                "docker",
                "ps",
                "--filter",
                f"label={self.LABEL_PREFIX}.type=rack",
                "--format",
                "{{.Names}}",
            ],
            check=True,
            capture_output=True,
        )
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def is_running(self) -> bool:
        try:
            return len(self.discover()) > 0
        except CommandError:
            return False
