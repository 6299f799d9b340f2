import logging
import os
import pathlib
import subprocess
import tempfile
import typing

import attr

from .utils import DecryptError, EncryptError, SafehouseException, SecretNotFound, StorageError

log = logging.getLogger(__name__)

SCRATCH_PREFIX = 'safe--'

# Never write plaintext through a symlink planted at the scratch path.
SCRATCH_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, 'O_NOFOLLOW', 0)


def scratch_path(path: pathlib.Path) -> pathlib.Path:
    """
    A predictable location to decrypt a file to while it's being edited.

    Repeated operations on the same file will always use the same scratch path.
    """
    name = path.name.replace('.gpg.asc', '', 1)
    return pathlib.Path(tempfile.gettempdir()) / f'{SCRATCH_PREFIX}{name}'


@attr.s(frozen=True)
class Scratch:
    """Decrypted plaintext written to a scratch file, removed by release()."""

    path: pathlib.Path = attr.ib()
    plaintext: bytes = attr.ib()

    def release(self) -> None:
        log.debug(f"Removing scratch file {self.path}")
        self.path.unlink(missing_ok=True)

    def __enter__(self) -> 'Scratch':
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


@attr.s(frozen=True)
class GPG:
    verbose: bool = attr.ib(default=False)
    home: typing.Optional[pathlib.Path] = attr.ib(default=None)

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = ('gpg', '--yes')
        if self.verbose:
            command = (*command, '--verbose')
        return (*command, *arguments)

    def run(self,
            arguments: typing.Sequence[str],
            error: typing.Type[SafehouseException],
            stdin: typing.Optional[bytes] = None) -> subprocess.CompletedProcess:
        env = {**os.environ, 'GNUPGHOME': self.home.as_posix()} if self.home else None
        try:
            return subprocess.run(
                self.command(arguments),
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                check=True)
        except FileNotFoundError as exc:
            raise error("The 'gpg' command was not found") from exc
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode('utf-8', errors='replace')
            for line in stderr.splitlines():
                log.error(line)
            raise error(f"gpg exited with status {exc.returncode}") from exc

    def decrypt(self, path: pathlib.Path) -> bytes:
        """
        Decrypt a file, returning exactly the plaintext that was encrypted.

        Encryption appends a newline to the plaintext, which is removed here.
        """
        if not path.exists():
            raise SecretNotFound(f"{path} not found")

        log.debug(f"Decrypting {path}")
        result = self.run(['--decrypt', str(path)], error=DecryptError)
        stdout: bytes = result.stdout
        return stdout[:-1] if stdout.endswith(b'\n') else stdout

    def scratch(self, path: pathlib.Path, plaintext: bytes = b'') -> Scratch:
        """Write plaintext for an encrypted path to its scratch file."""
        scratch = Scratch(path=scratch_path(path), plaintext=plaintext)
        log.debug(f"Writing scratch file {scratch.path}")
        try:
            fd = os.open(scratch.path, SCRATCH_FLAGS, 0o600)
            with os.fdopen(fd, 'wb') as f:
                os.fchmod(fd, 0o600)
                f.write(plaintext)
        except OSError as error:
            scratch.release()
            raise StorageError(f"Could not write scratch file {scratch.path}: {error}") from error
        return scratch

    def decrypt_to_temp(self, path: pathlib.Path) -> Scratch:
        return self.scratch(path, self.decrypt(path))

    def encrypt(
            self,
            path: pathlib.Path,
            plaintext: bytes,
            recipients: typing.Iterable[str]) -> subprocess.CompletedProcess:
        """Encrypt plaintext to an armoured file, overwriting anything already there."""
        recipients = tuple(recipients)
        if not recipients:
            raise EncryptError(f"No recipients to encrypt {path} for")

        log.debug(f"Encrypting {path} for {', '.join(recipients)}")
        args: typing.List[str] = ['--armour', '--encrypt', '--output', str(path)]
        for recipient in recipients:
            args += ['--recipient', recipient]
        return self.run(args, error=EncryptError, stdin=plaintext + b'\n')
