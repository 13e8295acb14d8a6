"""Client for the rack management API."""

from typing import Any, Dict, List, Optional

from rackctl.errors import RemoteError, RemoteTransportError
from rackctl.models import RackCredentials, RackRelease, SystemState


class RackApiClient:
    """Thin HTTP accessor over the rack's management endpoints."""

    USERNAME = "convox"

    def __init__(self, credentials: RackCredentials, logger, requests_module, timeout: float = 30.0):
        self.credentials = credentials
        self.logger = logger
        self.requests = requests_module
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        host = self.credentials.host.rstrip("/")
        if "://" not in host:
            host = f"https://{host}"
        return host

    def get_system(self) -> SystemState:
        data = self._request("GET", "/system")
        return self._system_from(data)

    def update_system(self, version: str) -> SystemState:
        data = self._request("PUT", "/system", data={"version": version})
        return self._system_from(data)

    def scale_system(self, count: Optional[int] = None, instance_type: Optional[str] = None) -> SystemState:
        form: Dict[str, str] = {}
        if count is not None:
            form["count"] = str(count)
        if instance_type:
            form["type"] = instance_type
        data = self._request("PUT", "/system", data=form)
        return self._system_from(data)

    def list_parameters(self, system_name: str) -> Dict[str, str]:
        data = self._request("GET", f"/apps/{system_name}/parameters")
        if not isinstance(data, dict):
            raise RemoteError("Unexpected parameters response from rack.")
        return {str(key): str(value) for key, value in data.items()}

    def set_parameters(self, system_name: str, params: Dict[str, str]) -> None:
        self._request("POST", f"/apps/{system_name}/parameters", data=dict(params))

    def list_releases(self) -> List[RackRelease]:
        data = self._request("GET", "/system/releases")
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise RemoteError("Unexpected releases response from rack.")
        return [RackRelease(id=str(item.get("id", "")), created=item.get("created")) for item in data]

    def _request(self, method: str, path: str, data: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}
        if self.credentials.rack:
            headers["Rack"] = self.credentials.rack

        self.logger.debug("%s %s", method, url)
        try:
            response = self.requests.request(
                method,
                url,
                data=data,
                headers=headers,
                auth=(self.USERNAME, self.credentials.password),
                timeout=self.timeout,
            )
        except self.requests.RequestException as exc:
            raise RemoteTransportError(f"Could not reach rack at {self.base_url}: {exc}") from exc

        if response.status_code >= 400:
            raise RemoteError(self._error_message(response))

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"Invalid JSON response from {method} {path}") from exc

    @staticmethod
    def _error_message(response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        text = (response.text or "").strip()
        return text or f"HTTP {response.status_code}"

    @staticmethod
    def _system_from(data: Any) -> SystemState:
        if not isinstance(data, dict):
            raise RemoteError("Unexpected system response from rack.")
        try:
            count = int(data.get("count") or 0)
        except (TypeError, ValueError) as exc:
            raise RemoteError(f"Invalid instance count in system response: {data.get('count')!r}") from exc
        return SystemState(
            name=data.get("name", ""),
            status=data.get("status", ""),
            version=data.get("version", ""),
            count=count,
            type=data.get("type") or "",
            domain=data.get("domain") or "",
            region=data.get("region") or "",
        )
