import logging
import os
import stat
from typing import Dict, Optional

SizeCache = Dict[str, int]


def human_size(num_bytes: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(num_bytes)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{num_bytes} B"


def approx_size(path: Optional[str], cache: SizeCache) -> int:
    """
    Apparent size in bytes of everything under `path`.

    Symbolic links are neither followed nor counted. Entries that cannot be
    stat'd (permissions, concurrent deletion) count as zero. Results are
    memoized in `cache` by absolute path, including every directory scanned
    on the way down.
    """
    if not path:
        return 0

    abs_path = os.path.abspath(path)
    if abs_path in cache:
        return cache[abs_path]

    try:
        st = os.lstat(abs_path)
    except OSError as e:
        logging.debug(f"Cannot stat {abs_path}: {e}")
        cache[abs_path] = 0
        return 0

    if stat.S_ISLNK(st.st_mode):
        size = 0
    elif stat.S_ISREG(st.st_mode):
        size = st.st_size
    elif stat.S_ISDIR(st.st_mode):
        size = _dir_size(abs_path, cache)
    else:
        size = 0

    cache[abs_path] = size
    return size


def _dir_size(dir_path: str, cache: SizeCache) -> int:
    if dir_path in cache:
        return cache[dir_path]

    total = 0
    try:
        with os.scandir(dir_path) as it:
            for entry in it:
                try:
                    if entry.is_symlink():
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        total += _dir_size(entry.path, cache)
                    elif entry.is_file(follow_symlinks=False):
                        total += entry.stat(follow_symlinks=False).st_size
                except OSError as e:
                    logging.debug(f"Skipping {entry.path}: {e}")
                    continue
    except OSError as e:
        logging.debug(f"Cannot list {dir_path}: {e}")

    cache[dir_path] = total
    return total
