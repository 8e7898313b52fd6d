import logging
import os
from typing import Dict, Iterable, List, Optional, Set, Tuple

from subrank.core.disk import SizeCache, approx_size
from subrank.core.markers import severity_label
from subrank.core.model import AuditMarkers, DependencyNode, OutdatedMarkers, SubtreeStats


def _abs(path: Optional[str]) -> Optional[str]:
    return os.path.abspath(path) if path else None


def is_outdated(node: DependencyNode, markers: OutdatedMarkers) -> bool:
    path = _abs(node.path)
    if path and path in markers.paths:
        return True
    return node.id in markers.ids


def audit_rank(node: DependencyNode, markers: AuditMarkers) -> Optional[int]:
    # A path hit wins outright; the name table is only a fallback.
    path = _abs(node.path)
    if path and path in markers.paths:
        return markers.paths[path]
    return markers.names.get(node.name)


def collect_subtree_stats(
    top_name: str,
    top_node: Optional[DependencyNode],
    size_cache: SizeCache,
    outdated_markers: Optional[OutdatedMarkers] = None,
    audit_markers: Optional[AuditMarkers] = None,
) -> SubtreeStats:
    """
    Unique transitive subdependencies of one top-level package, deduplicated
    by name@version within the subtree. Children npm reports as missing still
    count, keyed name@UNKNOWN when they carry no version. The top-level package contributes to
    the byte total but never to its own counts.
    """
    outdated = 0 if outdated_markers is not None else None
    audited = 0 if audit_markers is not None else None

    if top_node is None or top_node.missing:
        logging.debug(f"{top_name} is not installed")
        return SubtreeStats(outdated_subdeps=outdated, audit_subdeps=audited)

    seen: Set[str] = set()
    approx_bytes = 0
    worst: Optional[int] = None
    stack: List[Tuple[DependencyNode, int]] = [(top_node, 0)]

    while stack:
        node, depth = stack.pop()
        node_id = node.id
        if node_id in seen:
            continue
        seen.add(node_id)

        approx_bytes += approx_size(node.path, size_cache)

        if depth > 0:
            if outdated_markers is not None and is_outdated(node, outdated_markers):
                outdated += 1
            if audit_markers is not None:
                rank = audit_rank(node, audit_markers)
                if rank is not None:
                    audited += 1
                    if worst is None or rank > worst:
                        worst = rank

        for child in node.dependencies.values():
            stack.append((child, depth + 1))

    return SubtreeStats(
        subdeps=len(seen) - 1,
        approx_bytes=approx_bytes,
        outdated_subdeps=outdated,
        audit_subdeps=audited,
        audit_severity=severity_label(worst),
    )


def collect_aggregate_approx_bytes(
    tree: Dict[str, DependencyNode],
    top_names: Iterable[str],
    size_cache: SizeCache,
) -> int:
    """Approximate bytes of the union of all top-level subtrees; shared packages are billed once."""
    seen: Set[str] = set()
    total = 0
    stack = [tree[name] for name in top_names if name in tree and not tree[name].missing]

    while stack:
        node = stack.pop()
        node_id = node.id
        if node_id in seen:
            continue
        seen.add(node_id)

        total += approx_size(node.path, size_cache)
        stack.extend(node.dependencies.values())

    return total
