"""
The safe.yml manifest records which files are protected and who can read them.
"""

import logging
import os
import pathlib
import tempfile
import typing

import attr
import yaml

from .utils import ConfigNotFound, InvalidConfig, StorageError

log = logging.getLogger(__name__)

MANIFEST_NAME = 'safe.yml'


def _string_list(value: typing.Any, field: str) -> typing.List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidConfig(f"Invalid manifest, '{field}' must be a list of strings")
    return list(value)


@attr.s(kw_only=True)
class Manifest:
    recipients: typing.List[str] = attr.ib()
    overrides: typing.Dict[str, typing.List[str]] = attr.ib(factory=dict)
    files: typing.List[str] = attr.ib(factory=list, converter=lambda f: sorted(set(f)))
    location: pathlib.Path = attr.ib(on_setattr=attr.setters.frozen)

    @property
    def path(self) -> pathlib.Path:
        return self.location / MANIFEST_NAME

    def recipients_for(self, relative: str) -> typing.List[str]:
        """An override replaces the default recipients entirely."""
        if relative in self.overrides:
            return list(self.overrides[relative])
        return list(self.recipients)

    def add(self, relative: str) -> None:
        if relative not in self.files:
            self.files.append(relative)
            self.files.sort()

    def discard(self, relative: str) -> None:
        if relative in self.files:
            self.files.remove(relative)

    def serialize(self) -> typing.Dict[str, typing.Any]:
        data: typing.Dict[str, typing.Any] = {'recipients': list(self.recipients)}
        if self.overrides:
            data['overrides'] = {k: list(v) for k, v in sorted(self.overrides.items())}
        data['files'] = sorted(self.files)
        return data

    @classmethod
    def parse(cls, data: typing.Any, location: pathlib.Path) -> 'Manifest':
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidConfig("Invalid manifest, expected a mapping")

        overrides = data.get('overrides') or {}
        if not isinstance(overrides, dict):
            raise InvalidConfig("Invalid manifest, 'overrides' must be a mapping")

        manifest = cls(
            recipients=_string_list(data.get('recipients'), 'recipients'),
            overrides={str(k): _string_list(v, f'overrides.{k}') for k, v in overrides.items()},
            files=_string_list(data.get('files'), 'files'),
            location=location)

        if not manifest.recipients:
            raise InvalidConfig("Invalid manifest, no recipients")

        return manifest


def find_manifest(start: pathlib.Path) -> typing.Optional[pathlib.Path]:
    """Search a directory and its parents for a manifest, without changing directory."""
    start = pathlib.Path(os.path.abspath(start))
    for directory in (start, *start.parents):
        candidate = directory / MANIFEST_NAME
        if candidate.is_file():
            return candidate
    return None


def load(start: typing.Optional[pathlib.Path] = None) -> Manifest:
    start = start or pathlib.Path.cwd()
    path = find_manifest(start)
    if path is None:
        raise ConfigNotFound(f"No {MANIFEST_NAME} file found in {start} or its parents")

    log.debug(f"Loading manifest from {path}")
    try:
        data = yaml.safe_load(path.read_bytes())
    except yaml.YAMLError as error:
        raise InvalidConfig(f"Invalid manifest {path}: {error}") from error
    except OSError as error:
        raise StorageError(f"Could not read {path}: {error}") from error

    manifest = Manifest.parse(data, location=path.parent)
    log.info(f"Loaded manifest {path} with {len(manifest.files)} protected files")
    return manifest


def save(manifest: Manifest) -> None:
    """
    Write the manifest back to disk.

    The content is written to a temporary file in the same directory and moved into place,
    so the manifest on disk is either the old version or the new one.
    """
    log.debug(f"Writing manifest to {manifest.path}")
    text = yaml.safe_dump(manifest.serialize(), default_flow_style=False, sort_keys=False)

    try:
        fd, temporary = tempfile.mkstemp(
            dir=manifest.location, prefix=f'.{MANIFEST_NAME}.', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(text)
            os.chmod(temporary, 0o644)
            os.replace(temporary, manifest.path)
        except BaseException:
            pathlib.Path(temporary).unlink(missing_ok=True)
            raise
    except OSError as error:
        raise StorageError(f"Could not write {manifest.path}: {error}") from error
