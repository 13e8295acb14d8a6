"""Release catalog and upgrade target resolution."""

from typing import Any, Dict, Iterable, List, Optional

from rackctl.errors import (
    CatalogUnavailable,
    EmptyCatalog,
    IsLatest,
    ReleaseNotFound,
)
from rackctl.errors_catalog import actionable_error
from rackctl.models import Release, UpdatePlan

DEFAULT_REGISTRY_URL = "https://convox.s3.amazonaws.com/release/versions.json"


class VersionRegistry:
    """Fetches the full release history from the published registry."""

    def __init__(self, logger, requests_module, url: str = DEFAULT_REGISTRY_URL, timeout: float = 30.0):
        self.logger = logger
        self.requests = requests_module
        self.url = url
        self.timeout = timeout

    def fetch(self) -> List[Release]:
        self.logger.debug("Fetching release catalog from %s", self.url)
        try:
            response = self.requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except self.requests.RequestException as exc:
            raise CatalogUnavailable(
                actionable_error("catalog_unavailable", url=self.url, reason=str(exc))
            ) from exc
        except ValueError as exc:
            raise CatalogUnavailable(
                actionable_error("catalog_unavailable", url=self.url, reason="invalid JSON")
            ) from exc

        return self.parse(payload)

    def parse(self, payload: Any) -> List[Release]:
        entries = payload.get("versions") if isinstance(payload, dict) else payload
        if not isinstance(entries, list):
            raise CatalogUnavailable(
                actionable_error("catalog_unavailable", url=self.url, reason="expected a list of versions")
            )

        releases = []
        seen = set()
        for entry in entries:
            release = self._parse_entry(entry)
            if release.id in seen:
                raise CatalogUnavailable(
                    actionable_error(
                        "catalog_unavailable",
                        url=self.url,
                        reason=f"duplicate version {release.id}",
                    )
                )
            seen.add(release.id)
            releases.append(release)

        self.logger.debug("Loaded %s releases", len(releases))
        return releases

    def _parse_entry(self, entry: Any) -> Release:
        if not isinstance(entry, dict):
            raise CatalogUnavailable(
                actionable_error("catalog_unavailable", url=self.url, reason="malformed version entry")
            )

        release_id = entry.get("version") or entry.get("id")
        if not release_id:
            raise CatalogUnavailable(
                actionable_error("catalog_unavailable", url=self.url, reason="version entry without id")
            )

        return Release(
            id=str(release_id),
            created_at=entry.get("created") or entry.get("createdAt"),
            required=bool(entry.get("required", False)),
            published=bool(entry.get("published", True)),
            description=entry.get("description") or "",
        )


class VersionCatalog:
    """Answers resolution queries over a snapshot of the release history."""

    LATEST = "latest"

    def __init__(self, releases: Iterable[Release], include_unpublished: bool = False):
        self._full_history = sorted(releases, key=lambda r: r.id)
        self._by_id: Dict[str, Release] = {r.id: r for r in self._full_history}
        # candidates for latest and next; lookups use the full history
        self._history = [r for r in self._full_history if include_unpublished or r.published]

    @classmethod
    def load(cls, registry: VersionRegistry, include_unpublished: bool = False) -> "VersionCatalog":
        return cls(registry.fetch(), include_unpublished=include_unpublished)

    def all(self) -> List[Release]:
        return list(reversed(self._history))

    def latest(self) -> Release:
        if not self._history:
            raise EmptyCatalog("No releases found in the catalog.")
        return self._history[-1]

    def find(self, release_id: str) -> Release:
        release = self._by_id.get(release_id)
        if release is None:
            raise ReleaseNotFound(f"Version {release_id} not found.")
        return release

    def resolve(self, token: str) -> Release:
        if token == self.LATEST:
            return self.latest()
        return self.find(token)

    def next(self, current_id: str) -> Release:
        if current_id not in self._by_id:
            raise ReleaseNotFound(f"Current version {current_id} not found.")

        for release in self._history:
            if release.id > current_id:
                return release

        raise IsLatest(f"Version {current_id} is latest.")

    def first_required_between(self, low_id: str, high_id: str) -> Optional[Release]:
        """Oldest required release strictly between the two ids."""
        for release in self._history:
            if low_id < release.id < high_id and release.required:
                return release
        return None


def plan_update(catalog: VersionCatalog, current_id: str, requested: Optional[str] = None) -> UpdatePlan:
    """Pick the version one ``update`` run should move to.

    A required release between ``current_id`` and the requested target
    becomes the target for this run.
    """
    target = catalog.resolve(requested or VersionCatalog.LATEST)

    try:
        next_release = catalog.next(current_id)
    except IsLatest:
        next_release = target

    if next_release.id < target.id:
        gate = catalog.first_required_between(current_id, target.id)
        if gate is not None:
            return UpdatePlan(target=gate, requested=target, gated=True)

    return UpdatePlan(target=target, requested=target, gated=False)
