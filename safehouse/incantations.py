"""
Decide which paths are protected by a manifest.

Protection is an exact membership test: a path is protected when its location relative to
the manifest's directory is listed in the manifest's files.
"""

import logging
import os
import pathlib
import typing

from .manifest import Manifest
from .utils import PathResolutionError

log = logging.getLogger(__name__)

SUFFIX = '.gpg.asc'

PathLike = typing.Union[str, os.PathLike]


def ensure_suffix(path: PathLike) -> pathlib.Path:
    """Add the encrypted suffix to a path if it is not already present."""
    name = os.fspath(path)
    if not name.endswith(SUFFIX):
        name += SUFFIX
    return pathlib.Path(name)


def trim_suffix(path: PathLike) -> pathlib.Path:
    """Remove the encrypted suffix from a path."""
    name = os.fspath(path)
    if name.endswith(SUFFIX):
        name = name[:-len(SUFFIX)]
    return pathlib.Path(name)


def relative(path: PathLike, manifest: Manifest) -> str:
    """The path relative to the manifest's directory, as stored in the manifest."""
    try:
        absolute = os.path.abspath(os.fspath(path))
        return pathlib.Path(os.path.relpath(absolute, manifest.location)).as_posix()
    except (OSError, ValueError) as error:
        raise PathResolutionError(
            f"Could not resolve {path} relative to {manifest.location}: {error}") from error


def is_protected(path: PathLike, manifest: Manifest) -> bool:
    return relative(path, manifest) in manifest.files


def find(directory: PathLike, manifest: Manifest) -> typing.List[pathlib.Path]:
    """Recursively find every protected file in a directory."""
    log.info(f"Searching for protected files in {directory}")
    found: typing.List[pathlib.Path] = []

    def fail(error: OSError):
        raise PathResolutionError(f"Could not search {error.filename}: {error.strerror}")

    for root, dirs, files in os.walk(directory, onerror=fail):
        dirs.sort()
        for name in sorted(files):
            path = pathlib.Path(root, name)
            if is_protected(path, manifest):
                found.append(path)

    log.info(f"Search found {len(found)} protected files in {directory}")
    return found
