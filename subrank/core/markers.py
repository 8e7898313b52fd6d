import logging
import os
from typing import Any, Optional

from subrank.core.model import AuditMarkers, OutdatedMarkers, make_id

SEVERITY_RANKS = {
    "info": 0,
    "low": 1,
    "moderate": 2,
    "high": 3,
    "critical": 4,
}


def severity_label(rank: Optional[int]) -> Optional[str]:
    if rank is None:
        return None
    for label, value in SEVERITY_RANKS.items():
        if value == rank:
            return label
    return None


def _resolve(root: str, location: Any) -> Optional[str]:
    if not isinstance(location, str) or not location:
        return None
    return os.path.abspath(os.path.join(root, location))


def is_outdated_entry(value: Any) -> bool:
    """An `npm outdated` record: a `current` version plus `latest` or `wanted`."""
    if not isinstance(value, dict):
        return False
    if not isinstance(value.get("current"), str):
        return False
    return "latest" in value or "wanted" in value


def collect_outdated_markers(root: str, data: Any) -> Optional[OutdatedMarkers]:
    """
    Indexes every outdated entry found anywhere inside `data` by install path
    and by name@version. Returns None when `data` is None, i.e. when
    `npm outdated` could not be run at all.
    """
    if data is None:
        return None

    markers = OutdatedMarkers()

    def visit(value, name_hint=None):
        if is_outdated_entry(value):
            name = value.get("name")
            if not isinstance(name, str) or not name:
                name = name_hint
            if name:
                markers.ids.add(make_id(name, value["current"]))
            path = _resolve(root, value.get("location") or value.get("path"))
            if path:
                markers.paths.add(path)
            return

        if isinstance(value, dict):
            for key, child in value.items():
                visit(child, key)
        elif isinstance(value, list):
            # npm groups several installs of one package as {name: [entry, ...]}
            for child in value:
                visit(child, name_hint)

    visit(data)
    logging.debug(f"Outdated markers: {len(markers.ids)} ids, {len(markers.paths)} paths")
    return markers


def collect_audit_markers(root: str, data: Any) -> Optional[AuditMarkers]:
    """
    Builds severity lookups from `npm audit --json`: the highest rank seen per
    absolute node path and per package name.
    """
    if data is None:
        return None

    markers = AuditMarkers()
    vulnerabilities = data.get("vulnerabilities") if isinstance(data, dict) else None
    if not isinstance(vulnerabilities, dict):
        return markers

    for pkg_name, vuln in vulnerabilities.items():
        if not isinstance(vuln, dict):
            continue
        rank = SEVERITY_RANKS.get(str(vuln.get("severity", "")).lower())
        if rank is None:
            continue

        name = vuln.get("name") if isinstance(vuln.get("name"), str) else pkg_name
        if rank > markers.names.get(name, -1):
            markers.names[name] = rank

        nodes = vuln.get("nodes")
        if not isinstance(nodes, list):
            continue
        for location in nodes:
            path = _resolve(root, location)
            if path and rank > markers.paths.get(path, -1):
                markers.paths[path] = rank

    logging.debug(f"Audit markers: {len(markers.names)} packages, {len(markers.paths)} paths")
    return markers
