from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from subrank.core.model import LatestRelease


class ManagerError(Exception):
    """A package manager command failed in a way the report cannot recover from."""


class ManifestError(ManagerError):
    """The project manifest is missing or unreadable."""


class PackageManager(ABC):
    """Base class for the package manager a report is built on."""

    def __init__(self, root: str = ".", omit=None, include=None, timeout: Optional[float] = None):
        self.root = root
        self.omit = set(omit or ())
        self.include = set(include or ())
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Friendly ecosystem name (e.g., NPM)."""
        pass

    @property
    @abstractmethod
    def manifest_files(self) -> List[str]:
        """Exact filenames that mark a project of this ecosystem."""
        pass

    def detect(self, files: List[str]) -> bool:
        for manifest in self.manifest_files:
            if manifest in files:
                return True
        return False

    @abstractmethod
    def load_manifest(self) -> Dict[str, Any]:
        """Raises ManifestError when the manifest cannot be read."""
        pass

    @abstractmethod
    def list_tree(self) -> Dict[str, Any]:
        """Installed dependency tree. Raises ManagerError when nothing usable comes back."""
        pass

    @abstractmethod
    def outdated(self) -> Optional[Any]:
        """Outdated entries, or None when the check could not run."""
        pass

    @abstractmethod
    def audit(self) -> Optional[Dict[str, Any]]:
        """Audit report, or None when the audit could not run."""
        pass

    @abstractmethod
    def view_latest(self, package: str) -> Optional[LatestRelease]:
        pass

    def registry_url(self, scope: Optional[str] = None) -> Optional[str]:
        """Configured registry (for `scope` when given), or None when unknown."""
        return None
