import logging
import pathlib
import subprocess
import typing

import attr
import git

from .utils import CommitFailed, NotARepo, VersionControlError

log = logging.getLogger(__name__)

GITATTRIBUTES = '*.gpg diff=gpg\n'
TEXTCONV = 'gpg -d --quiet --yes --compress-algo=none --no-encrypt-to'


@attr.s(frozen=True)
class Git:
    """Records changes to the password store in git, if it is a repository."""

    def repository(self, root: pathlib.Path) -> git.Repo:
        try:
            return git.Repo(root, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as error:
            raise NotARepo(f"{root} is not a git repository") from error

    def is_repository(self, root: pathlib.Path) -> bool:
        try:
            self.repository(root)
        except NotARepo:
            return False
        return True

    @staticmethod
    def should_sign(repo: git.Repo) -> bool:
        reader = repo.config_reader()
        value = reader.get_value('pass', 'signcommits', default='false')
        return str(value).lower() == 'true'

    def commit_file(self, root: pathlib.Path, relative_path: str, message: str) -> None:
        self.commit_paths(root, [relative_path], message)

    def commit_paths(
            self,
            root: pathlib.Path,
            relative_paths: typing.Sequence[str],
            message: str) -> None:
        """Stage the given paths (including deletions) and commit them."""
        repo = self.repository(root)
        paths = [(root / path).as_posix() for path in relative_paths]
        log.debug(f"Committing {', '.join(relative_paths)} in {repo.working_dir}")
        try:
            repo.git.add('--all', '--', *paths)
            if not repo.git.status('--porcelain', '--', *paths):
                raise CommitFailed(f"Could not stage {', '.join(relative_paths)}")
            self.commit(repo, message)
        except git.exc.GitCommandError as error:
            raise CommitFailed(self.describe(error)) from error

    def commit_all(self, root: pathlib.Path, message: str) -> None:
        repo = self.repository(root)
        try:
            repo.git.add('--all')
            if repo.git.diff('--cached', '--name-only'):
                self.commit(repo, message)
        except git.exc.GitCommandError as error:
            raise CommitFailed(self.describe(error)) from error

    def commit(self, repo: git.Repo, message: str) -> None:
        args = ['-m', message]
        if self.should_sign(repo):
            args = ['-S', *args]
        repo.git.commit(*args)
        log.info(f"Committed '{message}'")

    def init(self, root: pathlib.Path, arguments: typing.Sequence[str] = ()) -> git.Repo:
        """Create a repository for the store and configure diffs of encrypted files."""
        if self.is_repository(root):
            raise VersionControlError(f"{root} is already a git repository")

        root.mkdir(parents=True, exist_ok=True)
        try:
            git.Git(root.as_posix()).init(*arguments)
        except git.exc.GitCommandError as error:
            raise VersionControlError(self.describe(error)) from error
        repo = self.repository(root)

        self.commit_all(root, "Add current contents of password store.")

        with (root / '.gitattributes').open('a') as f:
            f.write(GITATTRIBUTES)
        self.commit_file(root, '.gitattributes', "Configure git repository for gpg file diff.")

        with repo.config_writer() as writer:
            writer.set_value('diff "gpg"', 'binary', 'true')
            writer.set_value('diff "gpg"', 'textconv', TEXTCONV)
        return repo

    def command(self, root: pathlib.Path, arguments: typing.Sequence[str]) -> int:
        """Run an arbitrary git command in the store."""
        self.repository(root)
        return subprocess.run(('git', '-C', root.as_posix(), *arguments)).returncode

    @staticmethod
    def describe(error: git.exc.GitCommandError) -> str:
        for line in (error.stderr or '').strip().splitlines():
            log.error(line.strip())
        return str(error).strip()

