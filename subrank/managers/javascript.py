import json
import logging
import os
import subprocess
import sys
from typing import Any, Dict, List, Optional, Set, Tuple

from subrank.constants import DEPENDENCY_FIELDS, NPM_TIMEOUT
from subrank.core.markers import is_outdated_entry
from subrank.core.model import LatestRelease
from subrank.core.registry import parse_latest_release
from subrank.managers.base import ManagerError, ManifestError, PackageManager


def npm_bin() -> str:
    return "npm.cmd" if sys.platform == "win32" else "npm"


def npm_flags(omit: Set[str], include: Set[str]) -> List[str]:
    """--omit/--include flags for npm; including a category cancels omitting it."""
    flags = [f"--omit={c}" for c in sorted(set(omit) - set(include))]
    flags += [f"--include={c}" for c in sorted(include)]
    return flags


def npm_error(data: Any) -> Optional[str]:
    """
    Summary of the `{"error": {...}}` object npm prints with --json when the
    command itself failed, or None when `data` is a real report. npm ls keeps
    `dependencies` next to its ELSPROBLEMS error, and an outdated package can
    itself be named "error".
    """
    if not isinstance(data, dict) or not isinstance(data.get("error"), dict):
        return None
    error = data["error"]
    if is_outdated_entry(error) or "dependencies" in data or "vulnerabilities" in data:
        return None
    return str(error.get("summary") or error.get("code") or "unknown error")


def top_level_dependencies(manifest: Dict[str, Any]) -> Dict[str, Tuple[str, Set[str]]]:
    """Maps every declared dependency to (wanted range, dependency types)."""
    deps: Dict[str, Tuple[str, Set[str]]] = {}
    for field_name, dep_type in DEPENDENCY_FIELDS.items():
        section = manifest.get(field_name)
        if not isinstance(section, dict):
            continue
        for name, wanted in section.items():
            prev_wanted, types = deps.get(name, ("", set()))
            types.add(dep_type)
            # Later sections win, so a devDependencies range overrides dependencies.
            deps[name] = (str(wanted) if wanted is not None else prev_wanted, types)
    return deps


class NodeManager(PackageManager):
    @property
    def name(self) -> str:
        return "NPM"

    @property
    def manifest_files(self) -> List[str]:
        return ["package.json"]

    @property
    def flags(self) -> List[str]:
        return npm_flags(self.omit, self.include)

    def load_manifest(self) -> Dict[str, Any]:
        manifest_path = os.path.join(self.root, "package.json")
        logging.debug(f"Reading {manifest_path}...")
        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ManifestError(f"No package.json found in {os.path.abspath(self.root)}.")
        except (OSError, ValueError) as e:
            raise ManifestError(f"Error reading package.json: {e}")

        if not isinstance(data, dict):
            raise ManifestError("package.json does not contain a JSON object.")
        return data

    def _run(self, args: List[str], timeout: Optional[float] = None) -> str:
        cmd = [npm_bin()] + args
        logging.debug(f"Running: {' '.join(cmd)}")
        return subprocess.check_output(
            cmd,
            cwd=self.root,
            text=True,
            timeout=timeout or self.timeout or NPM_TIMEOUT,
            stderr=subprocess.PIPE,
        )

    def _run_json(self, args: List[str]) -> Any:
        """
        Runs npm and parses stdout as JSON. npm exits non-zero when it finds
        problems (extraneous packages, outdated entries, vulnerabilities) but
        still prints a usable report, so stdout is salvaged on failure. A bare
        `{"error": {...}}` object is npm reporting that the command itself
        failed and raises ManagerError.
        """
        try:
            out = self._run(args)
        except subprocess.CalledProcessError as e:
            logging.debug(f"npm {args[0]} exited with {e.returncode}: {e.stderr}")
            if not e.output or not e.output.strip():
                raise
            out = e.output

        if not out.strip():
            return {}
        data = json.loads(out)
        error = npm_error(data)
        if error:
            raise ManagerError(f"npm {args[0]} failed: {error}")
        return data

    def list_tree(self) -> Dict[str, Any]:
        args = ["ls", "--all", "--json", "--long"] + self.flags
        try:
            data = self._run_json(args)
        except ManagerError as e:
            raise ManagerError(f'Failed to run "npm {" ".join(args)}": {e}')
        except subprocess.CalledProcessError as e:
            raise ManagerError(f'Failed to run "npm {" ".join(args)}".\n{e.stderr or ""}'.rstrip())
        except (subprocess.SubprocessError, OSError, ValueError) as e:
            raise ManagerError(f'Failed to run "npm {" ".join(args)}": {e}')

        if not isinstance(data, dict):
            raise ManagerError("npm ls did not return a JSON object.")
        return data

    def outdated(self) -> Optional[Any]:
        args = ["outdated", "--all", "--json"] + self.flags
        try:
            return self._run_json(args)
        except (ManagerError, subprocess.SubprocessError, OSError, ValueError) as e:
            logging.warning(f"npm outdated unavailable: {e}")
            return None

    def audit(self) -> Optional[Dict[str, Any]]:
        args = ["audit", "--json"] + self.flags
        try:
            data = self._run_json(args)
        except (ManagerError, subprocess.SubprocessError, OSError, ValueError) as e:
            logging.info(f"npm audit unavailable: {e}")
            return None
        return data if isinstance(data, dict) else None

    def view_latest(self, package: str) -> Optional[LatestRelease]:
        try:
            out = self._run(["view", package, "dist-tags.latest", "time", "--json"])
            return parse_latest_release(json.loads(out))
        except (subprocess.SubprocessError, OSError, ValueError) as e:
            logging.debug(f"npm view failed for {package}: {e}")
            return None

    def registry_url(self, scope: Optional[str] = None) -> Optional[str]:
        """Registry npm would use here, honouring the project's .npmrc."""
        key = f"{scope}:registry" if scope else "registry"
        try:
            out = self._run(["config", "get", key]).strip()
        except (subprocess.SubprocessError, OSError) as e:
            logging.debug(f"npm config get {key} failed: {e}")
            return None
        if not out or out in ("undefined", "null"):
            return None
        return out
