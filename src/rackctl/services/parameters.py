"""Rack parameter convergence."""

from typing import Dict, Iterable, List, Tuple

from rackctl.errors import InvalidParameter, NoopUpdate, RemoteError


class ParameterService:
    """Applies NAME=VALUE settings to a rack's persisted configuration."""

    NOOP_MARKER = "no updates are to be performed"

    def __init__(self, client, logger):
        self.client = client
        self.logger = logger

    @staticmethod
    def parse_assignments(assignments: Iterable[str]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for arg in assignments:
            name, sep, value = arg.partition("=")
            if not sep or not name:
                raise InvalidParameter(f"invalid argument: {arg}")
            params[name] = value
        return params

    def list(self, system_name: str) -> List[Tuple[str, str]]:
        params = self.client.list_parameters(system_name)
        return sorted(params.items())

    def apply(self, system_name: str, params: Dict[str, str]) -> None:
        self.logger.info("Updating parameters on %s: %s", system_name, ", ".join(sorted(params)))
        try:
            self.client.set_parameters(system_name, params)
        except RemoteError as exc:
            if self.NOOP_MARKER in str(exc).lower():
                raise NoopUpdate("No updates are to be performed") from exc
            raise
