import subprocess

import pytest

from rackctl.errors import CommandError, LocalLifecycleError
from rackctl.services.local_rack import LocalRackService, TerminationListener


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None

    def exception(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def __init__(self):
        self.lines = []

    def print(self, *args, **_kwargs):
        self.lines.append(" ".join(str(a) for a in args))


class FakeSignalModule:
    SIGINT = 2
    SIGTERM = 15

    def __init__(self):
        self.handlers = {self.SIGINT: "default-int", self.SIGTERM: "default-term"}

    def signal(self, signum, handler):
        previous = self.handlers.get(signum)
        self.handlers[signum] = handler
        return previous

    def send(self, signum):
        self.handlers[signum](signum, None)


class FakeRunner:
    def __init__(self, run_returncode=0, on_run=None, stdout=""):
        self.run_returncode = run_returncode
        self.on_run = on_run
        self.stdout = stdout
        self.commands = []

    def __call__(self, cmd, check=True, capture_output=False):
        self.commands.append(list(cmd))
        if cmd[:2] == ["docker", "run"]:
            if self.on_run:
                self.on_run()
            return subprocess.CompletedProcess(cmd, self.run_returncode)
        return subprocess.CompletedProcess(cmd, 0, stdout=self.stdout, stderr="")


def _service(runner, signal_module=None, platform="linux"):
    return LocalRackService(
        logger=DummyLogger(),
        console=DummyConsole(),
        run_cmd=runner,
        platform=platform,
        signal_module=signal_module or FakeSignalModule(),
    )


def test_build_run_command_wires_environment_labels_and_limits():
    cmd = _service(FakeRunner()).build_run_command("devbox", "20200301000000", "10.42.0.0")

    assert cmd[:3] == ["docker", "run", "--rm"]
    assert "PROVIDER_ROUTER=10.42.0.0" in cmd
    assert "PROVIDER_VOLUME=/var/convox" in cmd
    assert "RACK=devbox" in cmd
    assert "VERSION=20200301000000" in cmd
    assert "convox.rack=devbox" in cmd
    assert "convox.type=rack" in cmd
    assert cmd[cmd.index("-m") + 1] == "256m"
    assert cmd[cmd.index("--name") + 1] == "devbox"
    assert cmd[-1] == "convox/rack:20200301000000"


def test_volume_root_on_macos():
    cmd = _service(FakeRunner(), platform="darwin").build_run_command("devbox", "1", "10.42.0.0")

    assert "PROVIDER_VOLUME=/Users/Shared/convox" in cmd
    assert "/Users/Shared/convox:/var/convox" in cmd


def test_start_removes_existing_container_before_running():
    runner = FakeRunner()

    instance = _service(runner).start("devbox", "20200301000000", "10.42.0.0")

    assert runner.commands[0] == ["docker", "rm", "-f", "devbox"]
    assert runner.commands[1][:2] == ["docker", "run"]
    assert len(runner.commands) == 2
    assert instance.name == "devbox"
    assert instance.version == "20200301000000"
    assert instance.returncode == 0


def test_start_stops_container_once_on_repeated_signals():
    signals = FakeSignalModule()

    def interrupt():
        signals.send(signals.SIGINT)
        signals.send(signals.SIGINT)
        signals.send(signals.SIGTERM)

    runner = FakeRunner(run_returncode=130, on_run=interrupt)
    service = _service(runner, signal_module=signals)

    instance = service.start("devbox", "1", "10.42.0.0")

    stops = [cmd for cmd in runner.commands if cmd[:2] == ["docker", "stop"]]
    assert stops == [["docker", "stop", "devbox"]]
    assert instance.returncode == 130
    assert any("stopping: devbox" in line for line in service.console.lines)


def test_start_restores_previous_signal_handlers():
    signals = FakeSignalModule()

    _service(FakeRunner(), signal_module=signals).start("devbox", "1", "10.42.0.0")

    assert signals.handlers == {signals.SIGINT: "default-int", signals.SIGTERM: "default-term"}


def test_start_raises_when_container_fails_without_signal():
    with pytest.raises(LocalLifecycleError, match="exited with status 125"):
        _service(FakeRunner(run_returncode=125)).start("devbox", "1", "10.42.0.0")


def test_start_wraps_command_errors():
    def broken_runner(cmd, check=True, capture_output=False):
        if cmd[:2] == ["docker", "run"]:
            raise CommandError("Required command not found: docker.")
        return subprocess.CompletedProcess(cmd, 0)

    with pytest.raises(LocalLifecycleError, match="not found"):
        _service(broken_runner).start("devbox", "1", "10.42.0.0")


def test_termination_listener_ignores_exit_without_signal():
    calls = []
    signals = FakeSignalModule()

    with TerminationListener(calls.append, DummyLogger(), signal_module=signals) as listener:
        pass

    assert calls == []
    assert listener.triggered is False


def test_discover_lists_running_rack_names():
    runner = FakeRunner(stdout="devbox\nconvox\n")
    service = _service(runner)

    assert service.discover() == ["devbox", "convox"]
    assert "label=convox.type=rack" in runner.commands[0]
    assert service.is_running() is True


def test_is_running_false_when_docker_unavailable():
    def failing_runner(*_args, **_kwargs):
        raise CommandError("Required command not found: docker.")

    assert _service(failing_runner).is_running() is False
