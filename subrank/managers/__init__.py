import os
from typing import Optional

from .base import ManagerError, ManifestError, PackageManager
from .javascript import NodeManager

MANAGERS = [
    NodeManager,
]


def detect_manager(root: str = ".", **kwargs) -> Optional[PackageManager]:
    """Checks files in `root` and returns the matching manager."""
    try:
        files = os.listdir(root)
    except OSError:
        return None

    for manager_cls in MANAGERS:
        manager = manager_cls(root, **kwargs)
        if manager.detect(files):
            return manager

    return None
