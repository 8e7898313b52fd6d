import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Tuple

from subrank.constants import DEFAULT_SORT, DEFAULT_TOP, LOG_FORMAT, REGISTRY_TIMEOUT
from subrank.core.disk import SizeCache
from subrank.core.graph import collect_aggregate_approx_bytes, collect_subtree_stats
from subrank.core.markers import collect_audit_markers, collect_outdated_markers
from subrank.core.model import AuditMarkers, DependencyNode, Report, ResultRecord
from subrank.core.ranking import default_order, sort_results
from subrank.core.registry import default_registry_url, fetch_all, package_scope
from subrank.managers import ManifestError, PackageManager, detect_manager
from subrank.managers.javascript import top_level_dependencies


def configure_logging(level: str = "WARNING", filename: Optional[str] = None) -> None:
    kwargs = {"filename": filename, "filemode": "w"} if filename else {}
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT, **kwargs)


@dataclass
class Options:
    root: str = "."
    json: bool = False
    top: int = DEFAULT_TOP
    sort: str = DEFAULT_SORT
    order: Optional[str] = None
    omit: Set[str] = field(default_factory=set)
    include: Set[str] = field(default_factory=set)
    metadata: str = "npm"
    registry: Optional[str] = None
    timeout: Optional[float] = None

    @property
    def omitted(self) -> Set[str]:
        return self.omit - self.include


def select_top_level(declared: Dict[str, Tuple[str, Set[str]]], omitted: Set[str]) -> Dict[str, Tuple[str, Set[str]]]:
    """Drops packages whose every dependency type is omitted from the tree."""
    return {name: entry for name, entry in declared.items() if not entry[1] <= omitted}


def resolve_registries(options: Options, manager: PackageManager, names) -> Tuple[str, Dict[str, str]]:
    """
    Registry for unscoped packages plus any per-scope registries npm is
    configured with, so `.npmrc` mirrors apply to direct lookups too.
    """
    registry = options.registry or manager.registry_url() or default_registry_url()
    scopes: Dict[str, str] = {}
    for scope in sorted({package_scope(name) for name in names} - {None}):
        url = manager.registry_url(scope)
        if url:
            scopes[scope] = url
    logging.debug(f"Registry: {registry}, scoped: {scopes}")
    return registry, scopes


def scan_project(options: Options, manager: Optional[PackageManager] = None) -> Report:
    """
    Builds the ranked report. Raises ManagerError when the manifest or the
    installed tree cannot be read; every other missing input degrades the
    report instead of aborting it.
    """
    root = os.path.abspath(options.root)

    if manager is None:
        manager = detect_manager(root, omit=options.omit, include=options.include, timeout=options.timeout)
        if manager is None:
            raise ManifestError(f"No package.json found in {root}.")
    logging.info(f"Manager: {manager.name}")

    manifest = manager.load_manifest()
    declared = select_top_level(top_level_dependencies(manifest), options.omitted)
    logging.info(f"{len(declared)} top-level dependencies declared")

    tree_data = manager.list_tree()
    tree = DependencyNode.from_json(str(manifest.get("name") or "root"), tree_data).dependencies

    outdated_markers = collect_outdated_markers(root, manager.outdated())
    audit_markers = collect_audit_markers(root, manager.audit())
    audit_available = audit_markers is not None
    if audit_markers is None:
        # No audit data reads as no findings
        audit_markers = AuditMarkers()

    size_cache: SizeCache = {}
    results = []
    for name, (wanted, types) in declared.items():
        node = tree.get(name)
        installed = node is not None and not node.missing
        stats = collect_subtree_stats(name, node if installed else None, size_cache, outdated_markers, audit_markers)
        results.append(ResultRecord(
            name=name,
            wanted=wanted,
            version=node.version if installed else None,
            is_installed=installed,
            types=types,
            stats=stats,
        ))

    aggregate = collect_aggregate_approx_bytes(tree, declared.keys(), size_cache)
    logging.info(f"Aggregate approx size: {aggregate} bytes over {len(size_cache)} scanned paths")

    if options.metadata == "registry":
        registry, scope_registries = resolve_registries(options, manager, declared.keys())
    else:
        registry, scope_registries = default_registry_url(), {}
    releases = fetch_all(
        declared.keys(),
        options.metadata,
        registry,
        lookup=manager.view_latest,
        timeout=options.timeout or REGISTRY_TIMEOUT,
        scope_registries=scope_registries,
    )
    for record in results:
        release = releases.get(record.name)
        if release is not None:
            record.latest = release.version
            record.last_updated = release.published

    order = options.order or default_order(options.sort)
    return Report(
        results=sort_results(results, options.sort, order),
        aggregate_approx_bytes=aggregate,
        sort=options.sort,
        order=order,
        top=options.top,
        outdated_available=outdated_markers is not None,
        audit_available=audit_available,
    )
