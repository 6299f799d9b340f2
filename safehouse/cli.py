import functools
import logging
import os.path
import pathlib
import typing

import click

from . import __doc__, __version__
from .gpg import GPG
from .secrets import Secret, SecretKeeper

log = logging.getLogger(__name__)


@functools.lru_cache()
def rel(path: pathlib.Path) -> str:
    """
    Convert a path to a relative Path.

    Returns a string as these should only be used for presentation.
    """
    return os.path.relpath(path.as_posix(), pathlib.Path.cwd().as_posix())


def enc(secret: Secret) -> str:
    """Style a path to a encrypted file."""
    return click.style(rel(secret.encrypted), fg='green')


def dec(secret: Secret) -> str:
    """Style a path to a decrypted file."""
    return click.style(rel(secret.decrypted), fg='red')


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


commit_option = click.option(
    '-c', '--commit/--no-commit', 'commit',
    envvar='SAFEHOUSE_COMMIT',
    default=False,
    help="Commit the changed files to git.")

secret_path_argument = click.argument(
    'path',
    type=PathType(),
    required=True)


@click.group(help=__doc__)
@click.version_option(__version__, prog_name='safehouse')
@click.option(
    '-p', '--path',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    default=None,
    help="Directory to search upwards from for safe.yml. Defaults to the current directory.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'gpg_verbose',
    default=False,
    is_flag=True,
    help="Pass --verbose to gpg.")
@click.option(
    '--gnupg-home',
    type=PathType(file_okay=False, dir_okay=True),
    envvar='SAFEHOUSE_GNUPGHOME',
    default=None,
    help="GnuPG home directory to use instead of the default.")
@click.option(
    '-e', '--editor',
    envvar='SAFEHOUSE_EDITOR',
    default=None,
    help="Editor to use. Defaults to $VISUAL or $EDITOR.")
@click.pass_context
def main(
        ctx,
        debug: bool,
        path: typing.Optional[pathlib.Path],
        gpg_verbose: bool,
        gnupg_home: typing.Optional[pathlib.Path],
        editor: typing.Optional[str]):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    ctx.obj = SecretKeeper.load(
        path,
        gpg=GPG(verbose=gpg_verbose, home=gnupg_home),
        editor=editor)


@main.command()
@secret_path_argument
@commit_option
@click.pass_obj
def edit(sk: SecretKeeper, path: pathlib.Path, commit: bool):
    """
    Edit a protected file in your $EDITOR.

    The file is decrypted to a temporary file that is removed afterwards. New files are
    created and protected when the editor is closed.
    """
    secret = sk.secret(path)
    if sk.edit(path, commit=commit):
        click.echo(f"Encrypted {enc(secret)}")
    else:
        click.echo(f"No changes made to {enc(secret)}")


@main.command()
@secret_path_argument
@commit_option
@click.pass_obj
def protect(sk: SecretKeeper, path: pathlib.Path, commit: bool):
    """Encrypt a plaintext file and remove the plaintext."""
    secret = sk.protect(path, commit=commit)
    click.echo(f"Protected {dec(secret)} as {enc(secret)}")


@main.command()
@secret_path_argument
@commit_option
@click.pass_obj
def remove(sk: SecretKeeper, path: pathlib.Path, commit: bool):
    """Delete a protected file and stop tracking it."""
    secret = sk.remove(path, commit=commit)
    click.echo(f"Removed {enc(secret)}")


@main.command()
@commit_option
@click.pass_obj
def reencrypt(sk: SecretKeeper, commit: bool):
    """Re-encrypt all protected files for their current recipients."""
    for secret in sk.reencrypt(commit=commit):
        click.echo(f"Re-encrypted {enc(secret)}")


@main.command(name='exec', context_settings={'ignore_unknown_options': True})
@secret_path_argument
@click.argument(
    'command',
    type=click.UNPROCESSED,
    required=True,
    nargs=-1)
@click.pass_context
def exec_(ctx, path: pathlib.Path, command: typing.Sequence[str]):
    """
    Run a command with the values of a protected YAML file in the environment.

    Each top-level key is upper-cased and exported; lists are joined with commas.
    """
    ctx.exit(ctx.obj.exec(path, command))


@main.command()
@click.argument(
    'directory',
    type=PathType(file_okay=False, dir_okay=True, exists=True),
    default='.',
    required=False)
@click.pass_obj
def find(sk: SecretKeeper, directory: pathlib.Path):
    """List protected files in a directory."""
    for path in sk.find(directory):
        click.echo(click.style(rel(path), fg='green'))


@main.command(name='print')
@secret_path_argument
@click.pass_obj
def print_(sk: SecretKeeper, path: pathlib.Path):
    """Print the decrypted contents of a protected file."""
    click.echo(sk.print(path))
