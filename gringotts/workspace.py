"""
Decrypted working copies of entries.

A Workspace holds the plaintext of a single entry in a private directory on
volatile storage. Changes are encrypted back to the store by flush(), and
close() (or leaving a `with` block) flushes any remaining changes before
erasing the plaintext.
"""

import contextlib
import logging
import os
import pathlib
import tempfile
import typing

import attr

from . import names
from .utils import Confirm, InsecureTempStorage, WorkspaceLost

if typing.TYPE_CHECKING:
    from .store import EntryStore

log = logging.getLogger(__name__)

VOLATILE = pathlib.Path('/dev/shm')

INSECURE_WARNING = (
    "{volatile} is not available, which means that it may be difficult to "
    "entirely erase the temporary decrypted file after editing.\n\n"
    "Are you sure you would like to continue?")


def volatile_directory(volatile: pathlib.Path, confirm: Confirm) -> pathlib.Path:
    """Create a private directory, preferably somewhere that is never written to disk."""
    try:
        return pathlib.Path(tempfile.mkdtemp(prefix='gringotts.', dir=volatile))
    except OSError as error:
        log.debug(f"Could not create a directory in {volatile}: {error}")

    if not confirm(INSECURE_WARNING.format(volatile=volatile), False):
        raise InsecureTempStorage(
            f"Refusing to write decrypted files outside of {volatile}")

    directory = pathlib.Path(tempfile.mkdtemp(prefix='gringotts.'))
    log.warning(f"Writing decrypted files to {directory}, which may be on a persistent disk")
    return directory


def replace_file(path: pathlib.Path, data: bytes) -> None:
    """Write a file so that it either has the old contents or all of the new contents."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temporary = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temporary, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(temporary)
        raise


@attr.s(frozen=True)
class TransientFile:
    path: pathlib.Path = attr.ib()

    @classmethod
    def create(
            cls,
            volatile: pathlib.Path,
            confirm: Confirm,
            filename: str,
            content: bytes) -> 'TransientFile':
        path = volatile_directory(volatile, confirm) / filename
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(content)
        return cls(path)

    def erase(self) -> None:
        """Overwrite the file with zeros and remove it and its directory."""
        try:
            size = self.path.stat().st_size
            with self.path.open('r+b') as f:
                f.write(b'\0' * size)
                f.flush()
                os.fsync(f.fileno())
            self.path.unlink()
            self.path.parent.rmdir()
        except OSError as error:
            log.warning(f"Could not erase {self.path}: {error}")
        else:
            log.debug(f"Erased {self.path}")


@attr.s
class Workspace:
    store: 'EntryStore' = attr.ib(repr=False)
    name: str = attr.ib()
    transient: TransientFile = attr.ib()
    dirty: bool = attr.ib(default=False)
    commit_message: typing.Optional[str] = attr.ib(default=None)
    closed: bool = attr.ib(default=False, init=False)

    @classmethod
    def holding(
            cls,
            store: 'EntryStore',
            name: str,
            content: bytes,
            dirty: bool = False) -> 'Workspace':
        transient = TransientFile.create(
            volatile=store.volatile,
            confirm=store.confirm,
            filename=f'{names.parse(name).name}.txt',
            content=content)
        log.debug(f"Opened {name} in {transient.path}")
        return cls(store=store, name=name, transient=transient, dirty=dirty)

    def __enter__(self) -> 'Workspace':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def path(self) -> pathlib.Path:
        """The durable file this workspace will be encrypted to."""
        return self.store.path(self.name)

    @property
    def editable_path(self) -> pathlib.Path:
        """The decrypted file, for editing by another program. Call touch() afterwards."""
        self.check_open()
        return self.transient.path

    def check_open(self) -> None:
        if self.closed:
            raise ValueError(f"Workspace for {self.name} is closed")

    def read(self) -> typing.BinaryIO:
        self.check_open()
        return self.transient.path.open('rb')

    def write(self) -> typing.BinaryIO:
        self.check_open()
        self.dirty = True
        return self.transient.path.open('wb')

    def read_bytes(self) -> bytes:
        with self.read() as f:
            return f.read()

    def write_bytes(self, data: bytes) -> None:
        with self.write() as f:
            f.write(data)

    def read_text(self) -> str:
        return self.read_bytes().decode('utf-8')

    def write_text(self, text: str) -> None:
        self.write_bytes(text.encode('utf-8'))

    def touch(self) -> None:
        """Mark the workspace as changed so that the next flush re-encrypts it."""
        self.check_open()
        self.dirty = True

    def discard(self) -> None:
        """Stop the next flush from writing, leaving the durable file as it is."""
        self.check_open()
        self.dirty = False

    def set_commit_message(self, message: str) -> None:
        self.commit_message = message

    def may_overwrite(self, name: str, force: bool) -> bool:
        path = self.store.path(name)
        if force or not path.exists():
            return True
        return self.store.confirm(f"An entry already exists for {path}. Overwrite it?", False)

    def copy(self, name: str, force: bool = False) -> bool:
        """
        Bind the workspace to a new name, leaving the current entry in place.

        Nothing is written until the workspace is flushed. Returns False if
        the user declined to overwrite an existing entry.
        """
        self.check_open()
        names.parse(name)
        if not self.may_overwrite(name, force):
            log.info(f"Not copying {self.name} over {name}")
            return False
        self.name = name
        self.dirty = True
        return True

    def rename(self, name: str, force: bool = False) -> bool:
        """
        Move the workspace to a new name and remove the entry it came from.

        The new entry is written before the old one is removed, so there is
        always at least one encrypted copy. If writing fails the workspace is
        still bound to its old name. Returns False if the user declined to
        overwrite an existing entry.
        """
        self.check_open()
        if names.parse(name) == names.parse(self.name):
            log.info(f"Not renaming {self.name} to itself")
            return True
        if not self.may_overwrite(name, force):
            log.info(f"Not renaming {self.name} over {name}")
            return False

        previous, was_dirty = self.name, self.dirty
        self.name = name
        try:
            self.encrypt()
        except Exception:
            self.name, self.dirty = previous, was_dirty
            raise
        self.dirty = False

        previous_path = self.store.path(previous)
        if previous_path.exists():
            previous_path.unlink()
            log.debug(f"Removed {previous_path}")
        self.commit([names.relative_file(self.name), names.relative_file(previous)])
        return True

    def flush(self) -> None:
        """Encrypt the plaintext to the durable file if it may have changed."""
        self.check_open()
        if not self.dirty:
            log.debug(f"Not flushing {self.name} as it has not changed")
            return
        self.encrypt()
        self.dirty = False
        self.commit([names.relative_file(self.name)])

    def flush_or_discard(self) -> None:
        """
        Flush now, dropping the changes if that fails.

        Only for changes that can be made again from an untouched durable
        file, such as a copy or a re-encryption. After a failure close() erases
        the plaintext instead of keeping it for recovery.
        """
        try:
            self.flush()
        except Exception:
            self.discard()
            raise

    def encrypt(self) -> None:
        plaintext = self.transient.path.read_bytes()
        identifiers = self.store.recipients.resolve(self.name)
        keys = self.store.gpg.resolve_recipients(identifiers)
        ciphertext = self.store.gpg.encrypt(keys, plaintext)
        replace_file(self.path, ciphertext)
        log.info(f"Encrypted {self.name} to {self.path}")

    def commit(self, paths: typing.Sequence[str]) -> None:
        if self.commit_message is None:
            log.warning(f"NOTE: {self.name} was not added to git because no commit message was set")
            return
        self.store.commit(paths, self.commit_message)

    def close(self) -> None:
        """
        Flush any changes and erase the plaintext.

        If the final flush fails the plaintext is left in place, as it is the
        only remaining copy of the changes, and WorkspaceLost is raised.
        """
        if self.closed:
            return
        try:
            self.flush()
        except Exception as error:
            self.closed = True
            log.critical(
                f"Could not encrypt {self.name} to {self.path}. Its decrypted contents "
                f"are still in {self.transient.path} - save them and delete it manually")
            if self.store.volatile.resolve() not in self.transient.path.resolve().parents:
                log.critical(
                    f"{self.transient.path} is outside {self.store.volatile} and may be "
                    f"on persistent storage, so deleting it may not erase it from the disk")
            raise WorkspaceLost(
                f"Changes to {self.name} were not saved; decrypted contents "
                f"left in {self.transient.path}") from error
        self.closed = True
        self.transient.erase()
