"""
Directory scanning for the face scan pipeline.

Responsibility:
    Recursively enumerate eligible image files under one or more root
    directories, one worker thread per root, and turn them into
    ImageRecords.

Non-goals:
    - No deduplication. Paths found under several roots are kept as-is;
      content-level deduplication happens downstream on content_hash.
    - No decoding or detection.

Robustness:
    - Unreadable directories and files are logged and skipped; a bad entry
      never aborts the scan.
    - Traversal is bounded by max_depth. Symlinked directories are only
      followed on request, and then each real directory is visited once.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence, Set, Tuple, Union

from facescan.identity import build_image_record
from facescan.records import ImageRecord

logger = logging.getLogger(__name__)

# Image extensions recognized by the scanner (lower-case, no dot)
IMAGE_EXTENSIONS: Tuple[str, ...] = ("jpg", "jpeg", "heic")

DEFAULT_MAX_DEPTH = 64

PathLike = Union[str, os.PathLike]


def is_image_file(path: PathLike, extensions: Iterable[str] = IMAGE_EXTENSIONS) -> bool:
    """Return True if the path's extension is in the allowlist (case-insensitive)."""
    suffix = Path(path).suffix
    if not suffix:
        return False
    return suffix[1:].lower() in set(extensions)


def walk_root(
    root: PathLike,
    extensions: Iterable[str] = IMAGE_EXTENSIONS,
    max_depth: int = DEFAULT_MAX_DEPTH,
    follow_symlinks: bool = False,
) -> Iterator[str]:
    """Yield eligible image file paths below a single root directory.

    Args:
        root: Directory to traverse.
        extensions: Allowlist of lower-case extensions without dots.
        max_depth: Directories deeper than this (root is depth 0) are not entered.
        follow_symlinks: Whether to descend into symlinked directories.

    Yields:
        File paths as strings, in traversal order.
    """
    root_str = os.fspath(root)
    allowed = set(extensions)

    if not os.path.isdir(root_str):
        logger.warning("Skipping root, not a readable directory: %s", root_str)
        return

    root_depth = root_str.rstrip(os.sep).count(os.sep)
    visited: Set[Tuple[int, int]] = set()

    def _on_error(err: OSError) -> None:
        logger.debug("Failed to read directory %s: %s", err.filename, err)

    for dirpath, dirnames, filenames in os.walk(
        root_str, onerror=_on_error, followlinks=follow_symlinks
    ):
        if follow_symlinks:
            try:
                st = os.stat(dirpath)
            except OSError as e:
                logger.debug("Failed to stat directory %s: %s", dirpath, e)
                dirnames[:] = []
                continue
            key = (st.st_dev, st.st_ino)
            if key in visited:
                logger.debug("Directory already visited (symlink loop?): %s", dirpath)
                dirnames[:] = []
                continue
            visited.add(key)

        depth = dirpath.rstrip(os.sep).count(os.sep) - root_depth
        if depth >= max_depth:
            if dirnames:
                logger.debug("Max depth %d reached at %s, not descending.", max_depth, dirpath)
            dirnames[:] = []

        for name in filenames:
            if is_image_file(name, allowed):
                yield os.path.join(dirpath, name)


def _build_records(paths: Iterable[str]) -> List[ImageRecord]:
    """Build ImageRecords, excluding files that cannot be read."""
    records: List[ImageRecord] = []
    for path in paths:
        try:
            records.append(build_image_record(path))
        except OSError as e:
            logger.debug("Failed to process file %s: %s", path, e)
    return records


def _fan_out(roots: Sequence[PathLike], task) -> list:
    """Run task(root) for every root in parallel and concatenate the results."""
    if not roots:
        return []

    collected: list = []
    with ThreadPoolExecutor(max_workers=len(roots), thread_name_prefix="scan") as executor:
        for items in executor.map(task, roots):
            collected.extend(items)
    return collected


def scan_directories(
    roots: Sequence[PathLike],
    extensions: Iterable[str] = IMAGE_EXTENSIONS,
    max_depth: int = DEFAULT_MAX_DEPTH,
    follow_symlinks: bool = False,
) -> List[str]:
    """Enumerate eligible image paths under every root, one thread per root.

    Returns:
        All matching file paths. Order is not meaningful; duplicates across
        overlapping roots are preserved.
    """
    extensions = tuple(extensions)
    logger.info("Collecting files in %d directories...", len(roots))

    def _task(root: PathLike) -> List[str]:
        return list(walk_root(root, extensions, max_depth, follow_symlinks))

    return _fan_out(roots, _task)


def collect_images(
    roots: Sequence[PathLike],
    extensions: Iterable[str] = IMAGE_EXTENSIONS,
    max_depth: int = DEFAULT_MAX_DEPTH,
    follow_symlinks: bool = False,
) -> List[ImageRecord]:
    """Scan all roots and build an ImageRecord for each eligible file.

    Hashing happens inside each root's worker, so large collections under
    different roots are hashed in parallel. Files that cannot be read are
    logged at debug level and left out.
    """
    extensions = tuple(extensions)
    logger.info("Collecting images in %d directories...", len(roots))

    def _task(root: PathLike) -> List[ImageRecord]:
        return _build_records(walk_root(root, extensions, max_depth, follow_symlinks))

    records = _fan_out(roots, _task)
    logger.info("Collected %d image files.", len(records))
    return records
