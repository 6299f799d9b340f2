import logging
import pathlib
import typing

import attr
import git

from .utils import CommitError

log = logging.getLogger(__name__)


@attr.s(frozen=True)
class Committer:
    directory: pathlib.Path = attr.ib()
    namespace: str = attr.ib(default='safe')

    def repo(self) -> git.Repo:
        try:
            return git.Repo(self.directory, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as error:
            raise CommitError(f"{self.directory} is not in a git repository") from error

    def stage_and_commit(
            self,
            paths: typing.Iterable[pathlib.Path],
            message: str) -> None:
        """
        Stage each path separately and commit them together.

        Failing to stage a path is ignored: a plaintext file that was never checked in
        can't be added after it has been deleted, and the rest should still be committed.
        """
        repo = self.repo()

        for path in paths:
            try:
                repo.git.add('--', str(path))
            except git.exc.GitCommandError as error:
                log.debug(f"Could not stage {path}: {error.stderr.strip()}")

        log.info(f"Committing '{message}'")
        try:
            output = repo.git.commit('-m', message)
        except git.exc.GitCommandError as error:
            raise CommitError(f"Could not commit '{message}': {error.stderr.strip()}") from error
        log.debug(output)

    def commit(
            self,
            action: str,
            logical: str,
            paths: typing.Iterable[pathlib.Path]) -> None:
        self.stage_and_commit(paths, f"{self.namespace}: {action} {logical}")
