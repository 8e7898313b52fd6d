from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

UNKNOWN_VERSION = "UNKNOWN"
NOT_INSTALLED = "NOT INSTALLED"


def make_id(name: str, version: Optional[str]) -> str:
    """Deduplication key shared by every traversal: ``name@version``."""
    return f"{name}@{version or UNKNOWN_VERSION}"


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


@dataclass
class DependencyNode:
    name: str
    version: Optional[str] = None
    path: Optional[str] = None
    # npm lists declared-but-absent packages with "missing": true
    missing: bool = False
    dependencies: Dict[str, 'DependencyNode'] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return make_id(self.name, self.version)

    @classmethod
    def from_json(cls, name: str, data: Any) -> 'DependencyNode':
        """Builds a node (and its children) from one entry of `npm ls --json`."""
        if not isinstance(data, dict):
            return cls(name)

        node = cls(
            name,
            _optional_str(data.get("version")),
            _optional_str(data.get("path")),
            missing=data.get("missing") is True,
        )
        children = data.get("dependencies")
        if isinstance(children, dict):
            for child_name, child_data in children.items():
                if isinstance(child_data, dict):
                    node.dependencies[child_name] = cls.from_json(child_name, child_data)
        return node


@dataclass
class OutdatedMarkers:
    paths: Set[str] = field(default_factory=set)
    ids: Set[str] = field(default_factory=set)


@dataclass
class AuditMarkers:
    # Values are severity ranks, see core.markers.SEVERITY_RANKS
    paths: Dict[str, int] = field(default_factory=dict)
    names: Dict[str, int] = field(default_factory=dict)


@dataclass
class SubtreeStats:
    subdeps: int = 0
    approx_bytes: int = 0
    # None means the side dataset was unavailable, 0 means checked and clean
    outdated_subdeps: Optional[int] = None
    audit_subdeps: Optional[int] = None
    audit_severity: Optional[str] = None


@dataclass
class LatestRelease:
    version: str
    published: Optional[str] = None


@dataclass
class ResultRecord:
    name: str
    wanted: str
    version: Optional[str]
    is_installed: bool = True
    types: Set[str] = field(default_factory=set)
    stats: SubtreeStats = field(default_factory=SubtreeStats)
    last_updated: Optional[str] = None
    latest: Optional[str] = None

    @property
    def subdeps(self) -> int:
        return self.stats.subdeps

    @property
    def approx_bytes(self) -> int:
        return self.stats.approx_bytes

    @property
    def installed_label(self) -> str:
        if not self.is_installed:
            return NOT_INSTALLED
        return self.version or UNKNOWN_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "wanted": self.wanted,
            "installed": self.installed_label,
            "types": sorted(self.types),
            "dev": self.types == {"dev"},
            "subdeps": self.stats.subdeps,
            "approxBytes": self.stats.approx_bytes,
            "outdatedSubdeps": self.stats.outdated_subdeps,
            "auditSubdeps": self.stats.audit_subdeps,
            "auditSeverity": self.stats.audit_severity,
            "latest": self.latest,
            "lastUpdated": self.last_updated,
        }


@dataclass
class Report:
    results: List[ResultRecord]
    aggregate_approx_bytes: int
    sort: str
    order: str
    top: int
    outdated_available: bool = True
    audit_available: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sort": self.sort,
            "order": self.order,
            "outdatedAvailable": self.outdated_available,
            "auditAvailable": self.audit_available,
            "aggregateApproxBytes": self.aggregate_approx_bytes,
            "results": [r.to_dict() for r in self.results],
        }
