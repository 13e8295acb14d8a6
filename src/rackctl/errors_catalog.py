"""Actionable error catalog for rackctl."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_host": {
        "what": "No rack host configured.",
        "next": "Pass `--host`, set RACK_HOST, or add `host` to .rackctl.yml.",
    },
    "catalog_unavailable": {
        "what": "Could not load the release catalog from {url}: {reason}",
        "next": "Check network access to the registry or set `registry_url`.",
    },
    "update_rolled_back": {
        "what": "Update rolled back.",
        "next": "Inspect the rack logs for the failed change, then run `rackctl update` again.",
    },
    "rollout_timeout": {
        "what": "Timed out after {minutes} minutes waiting for the rack to finish updating.",
        "next": "The rack may still be converging. Check `rackctl info` before retrying.",
    },
    "local_rack_failed": {
        "what": "Local rack {name} exited with status {status}.",
        "next": "Check the container output above and that Docker is running.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
