import logging
import os
import pathlib
import subprocess
import typing

import attr
import click

from . import environment, incantations, manifest as store
from .commits import Committer
from .gpg import GPG
from .manifest import Manifest
from .utils import (
    AlreadyProtected,
    CommandError,
    NotProtected,
    SecretNotFound,
    StorageError,
    UnsupportedFormat,
)

log = logging.getLogger(__name__)

EXPORTABLE_SUFFIXES = ('.yml', '.yaml', '.json')


@attr.s(frozen=True, kw_only=True)
class Secret:
    """A protected file: the plaintext path and the encrypted path it's stored at."""

    encrypted: pathlib.Path = attr.ib()
    decrypted: pathlib.Path = attr.ib()
    relative: str = attr.ib()

    def __str__(self):
        return self.logical

    @property
    def logical(self) -> str:
        """The relative path without the encrypted suffix."""
        return incantations.trim_suffix(self.relative).as_posix()


@attr.s(frozen=True)
class SecretKeeper:
    manifest: Manifest = attr.ib()
    gpg: GPG = attr.ib(factory=GPG)
    committer: Committer = attr.ib(
        default=attr.Factory(lambda self: Committer(self.manifest.location), takes_self=True))
    editor: typing.Optional[str] = attr.ib(default=None)

    @classmethod
    def load(cls, directory: typing.Optional[pathlib.Path] = None, **kwargs) -> 'SecretKeeper':
        return cls(store.load(directory), **kwargs)

    def secret(self, path: incantations.PathLike) -> Secret:
        encrypted = pathlib.Path(os.path.abspath(incantations.ensure_suffix(path)))
        return Secret(
            encrypted=encrypted,
            decrypted=incantations.trim_suffix(encrypted),
            relative=incantations.relative(encrypted, self.manifest))

    def is_protected(self, path: incantations.PathLike) -> bool:
        return incantations.is_protected(self.secret(path).encrypted, self.manifest)

    def __iter__(self) -> typing.Iterator[Secret]:
        return iter([self.secret(self.manifest.location / f) for f in self.manifest.files])

    def _encrypt(self, secret: Secret, plaintext: bytes) -> None:
        recipients = self.manifest.recipients_for(secret.relative)
        self.gpg.encrypt(secret.encrypted, plaintext, recipients)

    def _commit(self, action: str, secret: Secret, *paths: pathlib.Path) -> None:
        self.committer.commit(action, secret.logical, [self.manifest.path, *paths])

    def protect(self, path: incantations.PathLike, commit: bool = False) -> Secret:
        """
        Encrypt an existing plaintext file and delete the plaintext.

        The manifest is saved before the plaintext is removed, so an interrupted protect
        leaves both files in place rather than losing the plaintext.
        """
        secret = self.secret(path)
        if self.is_protected(secret.encrypted):
            raise AlreadyProtected(f"{secret} is already protected")

        log.info(f"Protecting {secret.decrypted}")
        try:
            plaintext = secret.decrypted.read_bytes()
        except FileNotFoundError as error:
            raise SecretNotFound(f"{secret.decrypted} not found") from error
        except OSError as error:
            raise StorageError(f"Could not read {secret.decrypted}: {error}") from error

        self._encrypt(secret, plaintext)
        self.manifest.add(secret.relative)
        store.save(self.manifest)

        try:
            secret.decrypted.unlink()
        except OSError as error:
            raise StorageError(f"Could not remove {secret.decrypted}: {error}") from error

        if commit:
            self._commit('protect', secret, secret.decrypted, secret.encrypted)
        return secret

    def _launch_editor(self, path: pathlib.Path) -> None:
        log.debug(f"Editing {path}")
        click.edit(filename=str(path), editor=self.editor)

    def edit(self, path: incantations.PathLike, commit: bool = False) -> bool:
        """
        Edit a protected file in an editor, creating it if it doesn't exist yet.

        Returns False if the contents were not changed, in which case nothing is written.
        """
        secret = self.secret(path)

        if secret.encrypted.exists():
            scratch = self.gpg.decrypt_to_temp(secret.encrypted)
        else:
            log.info(f"{secret.encrypted} does not exist, starting from an empty file")
            scratch = self.gpg.scratch(secret.encrypted)

        with scratch:
            self._launch_editor(scratch.path)
            try:
                edited = scratch.path.read_bytes()
            except FileNotFoundError:
                edited = b''
            except OSError as error:
                raise StorageError(f"Could not read {scratch.path}: {error}") from error

        if edited == scratch.plaintext:
            log.info(f"No changes made to {secret}")
            return False

        self._encrypt(secret, edited)
        self.manifest.add(secret.relative)
        store.save(self.manifest)

        if commit:
            self._commit('edit', secret, secret.encrypted)
        return True

    def remove(self, path: incantations.PathLike, commit: bool = False) -> Secret:
        secret = self.secret(path)
        if not self.is_protected(secret.encrypted):
            raise NotProtected(f"{secret} is not protected")

        log.info(f"Removing {secret.encrypted}")
        try:
            secret.encrypted.unlink(missing_ok=True)
        except OSError as error:
            raise StorageError(f"Could not remove {secret.encrypted}: {error}") from error

        self.manifest.discard(secret.relative)
        store.save(self.manifest)

        if commit:
            self._commit('remove', secret, secret.encrypted)
        return secret

    def reencrypt(self, commit: bool = False) -> typing.Iterator[Secret]:
        """
        Re-encrypt every protected file for its current recipients.

        Each file is handled (and committed) separately and yielded once it's done;
        a failure stops at that file.
        """
        secrets = list(self)
        log.info(f"Re-encrypting {len(secrets)} secrets")

        for secret in secrets:
            plaintext = self.gpg.decrypt(secret.encrypted)
            self._encrypt(secret, plaintext)
            store.save(self.manifest)
            if commit:
                self._commit('reencrypt', secret, secret.encrypted)
            yield secret

        log.info(f"Re-encrypted {len(secrets)} secrets")

    def reencrypt_all(self, commit: bool = False) -> typing.List[Secret]:
        return list(self.reencrypt(commit=commit))

    def exec(self, path: incantations.PathLike, command: typing.Sequence[str]) -> int:
        """Run a command with the top-level keys of a protected document in its environment."""
        if not command:
            raise CommandError("No command given")

        secret = self.secret(path)
        if not self.is_protected(secret.encrypted):
            raise NotProtected(f"{secret} is not protected")

        if secret.decrypted.suffix not in EXPORTABLE_SUFFIXES:
            raise UnsupportedFormat(
                f"Only {', '.join(EXPORTABLE_SUFFIXES)} files can be exported, not {secret}")

        document = environment.parse_document(
            self.gpg.decrypt(secret.encrypted), suffix=secret.decrypted.suffix)
        env = {**os.environ, **environment.overlay(document)}

        log.info(f"Running {' '.join(command)} with {len(document)} variables from {secret}")
        try:
            return subprocess.run(list(command), env=env).returncode
        except FileNotFoundError as error:
            raise CommandError(f"Command not found: {command[0]}") from error
        except OSError as error:
            raise CommandError(f"Could not run {command[0]}: {error.strerror}") from error

    def find(self, directory: incantations.PathLike) -> typing.List[pathlib.Path]:
        return incantations.find(directory, self.manifest)

    def print(self, path: incantations.PathLike) -> bytes:
        secret = self.secret(path)
        if not self.is_protected(secret.encrypted):
            raise NotProtected(f"{secret} is not protected")
        return self.gpg.decrypt(secret.encrypted)
