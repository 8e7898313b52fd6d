import asyncio
import logging
import os
from typing import Any, Callable, Dict, Iterable, Optional
from urllib.parse import quote

import httpx

from subrank.constants import DEFAULT_REGISTRY_URL, REGISTRY_CONCURRENCY, REGISTRY_ENV_VARS, REGISTRY_TIMEOUT
from subrank.core.model import LatestRelease

ReleaseMap = Dict[str, Optional[LatestRelease]]


def parse_latest_release(data: Any) -> Optional[LatestRelease]:
    """
    Reads the `latest` dist-tag and its publish time from either a registry
    packument or the flattened output of `npm view <pkg> dist-tags.latest time --json`.
    """
    if not isinstance(data, dict):
        return None

    latest = data.get("dist-tags.latest")
    if latest is None:
        tags = data.get("dist-tags")
        if isinstance(tags, dict):
            latest = tags.get("latest")
    if not isinstance(latest, str) or not latest:
        return None

    published = None
    times = data.get("time")
    if isinstance(times, dict) and isinstance(times.get(latest), str):
        published = times[latest]

    return LatestRelease(latest, published)


def package_url(registry_url: str, name: str) -> str:
    # Scoped packages keep their "@" but the slash must be escaped.
    return registry_url.rstrip("/") + "/" + quote(name, safe="@")


async def fetch_latest_release(client: httpx.AsyncClient, registry_url: str, name: str) -> Optional[LatestRelease]:
    url = package_url(registry_url, name)
    try:
        response = await client.get(url, headers={"Accept": "application/json"})
        if response.status_code != 200:
            logging.debug(f"Registry returned {response.status_code} for {name}")
            return None
        return parse_latest_release(response.json())
    except (httpx.HTTPError, ValueError) as e:
        logging.debug(f"Registry lookup failed for {name}: {e}")
        return None


def default_registry_url() -> str:
    """Registry from npm's environment variables, else the public registry."""
    for var in REGISTRY_ENV_VARS:
        value = os.environ.get(var)
        if value:
            return value
    return DEFAULT_REGISTRY_URL


def package_scope(name: str) -> Optional[str]:
    if name.startswith("@") and "/" in name:
        return name.split("/", 1)[0]
    return None


async def collect_latest_releases(
    names: Iterable[str],
    registry_url: str,
    timeout: float = REGISTRY_TIMEOUT,
    concurrency: int = REGISTRY_CONCURRENCY,
    scope_registries: Optional[Dict[str, str]] = None,
) -> ReleaseMap:
    """
    One registry round trip per package, run concurrently. Scoped packages go
    to their scope's registry when one is configured. Each lookup only fills
    its own slot; failures resolve to None and never cancel siblings.
    """
    names = list(dict.fromkeys(names))
    if not names:
        return {}
    scope_registries = scope_registries or {}

    logging.info(f"Fetching registry metadata for {len(names)} packages (Async Mode)...")
    semaphore = asyncio.Semaphore(concurrency)
    limits = httpx.Limits(max_keepalive_connections=concurrency, max_connections=concurrency)

    async with httpx.AsyncClient(timeout=timeout, limits=limits, follow_redirects=True) as client:
        async def lookup(name):
            url = scope_registries.get(package_scope(name), registry_url)
            async with semaphore:
                try:
                    return name, await fetch_latest_release(client, url, name)
                except Exception as e:
                    logging.debug(f"Metadata lookup failed for {name}: {e}")
                    return name, None

        results = await asyncio.gather(*(lookup(n) for n in names))

    return dict(results)


async def collect_latest_releases_with(
    names: Iterable[str],
    lookup: Callable[[str], Optional[LatestRelease]],
    concurrency: int = REGISTRY_CONCURRENCY,
) -> ReleaseMap:
    """Same fan-out as collect_latest_releases for a blocking lookup such as `npm view`."""
    names = list(dict.fromkeys(names))
    semaphore = asyncio.Semaphore(concurrency)

    async def run(name):
        async with semaphore:
            try:
                return name, await asyncio.to_thread(lookup, name)
            except Exception as e:
                logging.debug(f"Metadata lookup failed for {name}: {e}")
                return name, None

    results = await asyncio.gather(*(run(n) for n in names))
    return dict(results)


def fetch_all(
    names: Iterable[str],
    source: str,
    registry_url: str,
    lookup: Optional[Callable[[str], Optional[LatestRelease]]] = None,
    timeout: float = REGISTRY_TIMEOUT,
    scope_registries: Optional[Dict[str, str]] = None,
) -> ReleaseMap:
    names = list(names)
    if source == "none":
        return {name: None for name in names}
    if source == "npm":
        if lookup is None:
            raise ValueError("npm metadata source needs a lookup function")
        return asyncio.run(collect_latest_releases_with(names, lookup))
    return asyncio.run(collect_latest_releases(
        names, registry_url, timeout=timeout, scope_registries=scope_registries
    ))
