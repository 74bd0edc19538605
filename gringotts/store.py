import logging
import pathlib
import shutil
import typing

import attr

from . import names
from .git import Git
from .gpg import GPG, CryptoBackend
from .recipients import RecipientResolver
from .utils import (CommitFailed, Confirm, EntryNotFound, GringottsException,
                    NotARepo, OverwriteDeclined, StoreUninitialized, confirm)
from .workspace import VOLATILE, Workspace

log = logging.getLogger(__name__)


@attr.s(frozen=True)
class EntryStore:
    """A directory of encrypted entries."""

    root: pathlib.Path = attr.ib()
    gpg: CryptoBackend = attr.ib(factory=GPG)
    git: Git = attr.ib(factory=Git)
    confirm: Confirm = attr.ib(default=confirm, repr=False)
    volatile: pathlib.Path = attr.ib(default=VOLATILE)

    @property
    def recipients(self) -> RecipientResolver:
        return RecipientResolver(self.root)

    def path(self, name: str) -> pathlib.Path:
        return names.entry_path(self.root, name)

    def directory(self, name: str) -> pathlib.Path:
        return names.directory_path(self.root, name)

    def exists(self, name: str) -> bool:
        return self.path(name).is_file()

    def is_directory(self, name: str) -> bool:
        return self.directory(name).is_dir()

    def check_initialized(self) -> None:
        if not self.root.is_dir() or not any(self.root.iterdir()):
            raise StoreUninitialized(self.root)

    def open(self, name: str) -> Workspace:
        """Decrypt an existing entry into a workspace."""
        self.check_initialized()
        path = self.path(name)
        if not path.is_file():
            raise EntryNotFound(name, path)
        log.debug(f"Opening {name} from {path}")
        plaintext = self.gpg.decrypt(path.read_bytes())
        return Workspace.holding(self, name, plaintext)

    def create(self, name: str, force: bool = False) -> Workspace:
        """
        Start a new, empty entry.

        The entry is only written when the workspace is flushed. If an entry
        already exists it is replaced at that point, after confirmation unless
        force is set.
        """
        self.check_initialized()
        path = self.path(name)
        if path.exists() and not force:
            if not self.confirm(f"An entry already exists for {path}. Overwrite it?", False):
                raise OverwriteDeclined(f"Not overwriting {name}")
        return Workspace.holding(self, name, b'', dirty=True)

    def entries(self, subfolder: str = '') -> typing.List[str]:
        directory = self.directory(subfolder)
        found = (names.entry_name(self.root, path)
                 for path in directory.rglob(f'*{names.SUFFIX}')
                 if path.is_file() and path.name != names.SUFFIX)
        return sorted(found, key=names.sort_key)

    def find(self, terms: typing.Iterable[str]) -> typing.List[str]:
        """Entries with a name containing any of the terms, ignoring case."""
        terms = [term.lower() for term in terms]
        return [name for name in self.entries() if any(term in name.lower() for term in terms)]

    def remove(self, name: str, recursive: bool = False, force: bool = False) -> None:
        self.check_initialized()
        if recursive:
            path = self.directory(name)
            relative = names.parse(name).as_posix()
        else:
            path = self.path(name)
            relative = names.relative_file(name)

        if not path.exists():
            raise EntryNotFound(name, path)
        if recursive and not path.is_dir():
            raise GringottsException(f"{name} is not a directory")

        if not force and not self.confirm(f"Are you sure you would like to delete {name}?", False):
            raise OverwriteDeclined(f"Not deleting {name}")

        if recursive:
            shutil.rmtree(path)
        else:
            path.unlink()
        log.info(f"Removed {path}")
        self.commit([relative], f"Remove {name} from store.")

    def init(self, recipients: typing.Sequence[str], subfolder: str = '') -> pathlib.Path:
        """
        Set the recipients for a directory and re-encrypt the entries it governs.

        Entries below a deeper '.gpg-id' keep their own recipients and are
        left as they are.
        """
        self.gpg.resolve_recipients(recipients)
        directory = self.directory(subfolder)
        marker = self.recipients.write(directory, recipients)
        listed = ', '.join(recipients)
        self.commit([marker.relative_to(self.root).as_posix()], f"Set GPG id to {listed}.")

        affected = [name for name in self.entries(subfolder)
                    if self.recipients.marker_for(name) == marker]
        log.info(f"Re-encrypting {len(affected)} entries for {listed}")
        for name in affected:
            with self.open(name) as workspace:
                workspace.set_commit_message(
                    f"Reencrypt password store using new GPG id {listed}.")
                workspace.touch()
                workspace.flush_or_discard()
        return marker

    def commit(self, paths: typing.Sequence[str], message: str) -> None:
        """Record changes in git; never undoes a change that was already written."""
        try:
            self.git.commit_paths(self.root, paths, message)
        except NotARepo:
            log.debug(f"Not committing as {self.root} is not a git repository")
        except CommitFailed as error:
            log.warning(f"Changes were saved but not committed: {error.format_message()}")
