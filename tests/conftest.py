import base64
import pathlib
import subprocess
import typing

import attr
import click
import click.testing
import pytest
import yaml

import safehouse.cli
from safehouse.commits import Committer
from safehouse.gpg import GPG
from safehouse.secrets import SecretKeeper

MANIFEST = """\
recipients:
- alice@example.invalid
"""


class FakeGPG(GPG):
    """
    Stands in for the gpg binary with a reversible encoding.

    The "ciphertext" records the recipients it was encrypted for.
    """

    def run(self, arguments, error, stdin=None):
        arguments = list(arguments)
        if '--decrypt' in arguments:
            path = pathlib.Path(arguments[arguments.index('--decrypt') + 1])
            lines = path.read_bytes().split(b'\n')
            if lines[0] != b'-----BEGIN FAKE MESSAGE-----':
                raise error(f"{path} is not encrypted")
            return subprocess.CompletedProcess(arguments, 0, base64.b64decode(lines[2]), b'')

        output = pathlib.Path(arguments[arguments.index('--output') + 1])
        recipients = [arguments[i + 1] for i, arg in enumerate(arguments) if arg == '--recipient']
        output.write_bytes(b'\n'.join([
            b'-----BEGIN FAKE MESSAGE-----',
            ','.join(recipients).encode(),
            base64.b64encode(stdin),
            b'-----END FAKE MESSAGE-----',
            b'',
        ]))
        return subprocess.CompletedProcess(arguments, 0, b'', b'')


def recipients(path: pathlib.Path) -> typing.List[str]:
    """Read the recipients a file was encrypted for by FakeGPG."""
    return path.read_bytes().split(b'\n')[1].decode().split(',')


def manifest_data(root: pathlib.Path) -> dict:
    return yaml.safe_load((root / 'safe.yml').read_text())


@pytest.fixture()
def root(tmp_path, monkeypatch) -> pathlib.Path:
    (tmp_path / 'safe.yml').write_text(MANIFEST)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def gpg() -> FakeGPG:
    return FakeGPG()


@pytest.fixture()
def committer(mocker):
    return mocker.create_autospec(Committer, instance=True)


@pytest.fixture()
def keeper(root, gpg, committer) -> SecretKeeper:
    return SecretKeeper.load(root, gpg=gpg, committer=committer)


@pytest.fixture()
def notes(keeper, root):
    """A protected file containing 'hello'."""
    (root / 'notes.md').write_bytes(b'hello')
    return keeper.protect('notes.md')


@attr.s
class FakeEditor:
    """Replaces click.edit, optionally writing new contents to the edited file."""

    contents: typing.Optional[bytes] = attr.ib(default=None)
    paths: typing.List[pathlib.Path] = attr.ib(factory=list)
    seen: typing.List[bytes] = attr.ib(factory=list)

    def __call__(self, text=None, editor=None, env=None, require_save=True,
                 extension='.txt', filename=None):
        path = pathlib.Path(filename)
        self.paths.append(path)
        self.seen.append(path.read_bytes())
        if self.contents is not None:
            path.write_bytes(self.contents)


@pytest.fixture()
def editor(monkeypatch) -> FakeEditor:
    editor = FakeEditor()
    monkeypatch.setattr(click, 'edit', editor)
    return editor


@pytest.fixture()
def invoke(root, monkeypatch):
    monkeypatch.setattr(safehouse.cli, 'GPG', FakeGPG)

    def invoke_func(arguments: typing.Sequence[str], exit_code: int = 0):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        result = runner.invoke(safehouse.cli.main, list(arguments))
        if result.exit_code != exit_code:
            message = f"Command safehouse {' '.join(arguments)} exited with {result.exit_code}"
            raise Exception(f"{message}:\n{result.output}") from result.exception
        return result.output.splitlines()

    return invoke_func
