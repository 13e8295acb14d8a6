"""Shared domain models for rackctl."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Release:
    """One published version of the rack software.

    Ids are opaque timestamp-like tokens ordered by plain string comparison.
    """

    id: str
    created_at: Optional[str] = None
    required: bool = False
    published: bool = True
    description: str = ""


@dataclass(frozen=True)
class SystemState:
    """Live snapshot of a rack as reported by its management API."""

    name: str
    status: str
    version: str
    count: int = 0
    type: str = ""
    domain: str = ""
    region: str = ""


@dataclass(frozen=True)
class RackRelease:
    """An entry in the rack's own deployment history."""

    id: str
    created: Optional[str] = None


@dataclass(frozen=True)
class RackCredentials:
    """Connection details for one rack, passed explicitly to the API client."""

    host: str
    password: str = field(default="", repr=False)
    rack: str = ""


@dataclass(frozen=True)
class UpdatePlan:
    target: Release
    requested: Release
    gated: bool = False


@dataclass(frozen=True)
class LocalInstance:
    name: str
    router_address: str
    version: str
    returncode: Optional[int] = None


class SystemStatus(str, Enum):
    RUNNING = "running"
    UPDATING = "updating"
    ROLLBACK = "rollback"


class RolloutOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    ROLLED_BACK = "rolled_back"
