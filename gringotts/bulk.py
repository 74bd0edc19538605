"""
Copy and move entries, re-encrypting each one for its destination.

Every entry is decrypted and encrypted again rather than copied as a file, so
entries moved below a different '.gpg-id' are readable by the new recipients.
"""

import enum
import logging
import shutil
import typing

import attr

from . import names
from .store import EntryStore
from .utils import (EntryNotFound, GringottsException, PartialTreeFailure,
                    WorkspaceLost)

log = logging.getLogger(__name__)

Pair = typing.Tuple[str, str]
Plan = typing.Sequence[Pair]


class Transfer(enum.Enum):
    COPY = 'copy'
    MOVE = 'move'

    @property
    def verb(self) -> str:
        return 'Copy' if self is Transfer.COPY else 'Rename'


@attr.s(frozen=True)
class BulkReencryptor:
    store: EntryStore = attr.ib()

    def plan(self, old_root: str, new_root: str) -> typing.Tuple[Pair, ...]:
        """Pair every entry below 'old_root' with the same entry below 'new_root'."""
        directory = self.store.directory(old_root)
        log.info(f"Searching for entries in {directory}")
        pairs = tuple(
            (name, names.transpose(name, from_dir=old_root, to_dir=new_root))
            for name in self.store.entries(old_root))
        log.info(f"Found {len(pairs)} entries to move from {old_root} to {new_root}")
        return pairs

    def apply(self, transfer: Transfer, plan: Plan, force: bool = False) -> typing.List[Pair]:
        """
        Copy or rename each entry in the plan, one at a time.

        Each entry is written before the next is started. If one fails the
        rest of the plan is abandoned and entries that were already done are
        left in place. Returns the pairs that were done; pairs the user
        declined to overwrite are skipped.
        """
        completed: typing.List[Pair] = []
        for old, new in plan:
            try:
                with self.store.open(old) as workspace:
                    workspace.set_commit_message(f"{transfer.verb} {old} to {new}.")
                    if transfer is Transfer.COPY:
                        done = workspace.copy(new, force)
                        if done:
                            workspace.flush_or_discard()
                    else:
                        done = workspace.rename(new, force)
            except WorkspaceLost:
                raise
            except (GringottsException, OSError) as error:
                log.error(f"Failed to {transfer.value} {old} to {new}: {error}")
                raise PartialTreeFailure(old, completed) from error
            if done:
                log.info(f"{transfer.verb} {old} to {new}")
                completed.append((old, new))
        return completed

    def transfer(
            self,
            transfer: Transfer,
            old: str,
            new: str,
            force: bool = False) -> typing.List[Pair]:
        """Copy or move a single entry, or every entry in a directory."""
        self.store.check_initialized()

        if self.store.is_directory(old):
            if not names.parse_directory(old).parts:
                raise GringottsException("Can't copy or move the root of the store")
            if names.is_within(new, old):
                raise GringottsException(f"Can't {transfer.value} {old} into itself")
            completed = self.apply(transfer, self.plan(old, new), force)
            if transfer is Transfer.MOVE:
                self.prune(old, f"{transfer.verb} {old} to {new}.")
            return completed

        if self.store.exists(old):
            return self.apply(transfer, [(old, new)], force)

        raise EntryNotFound(old, self.store.path(old))

    def prune(self, old_root: str, message: str) -> None:
        """Remove a directory once every entry has been moved out of it."""
        directory = self.store.directory(old_root)
        remaining = self.store.entries(old_root)
        if remaining:
            log.warning(f"Not removing {directory} as it still contains {len(remaining)} entries")
            return

        leftovers = [path for path in directory.rglob('*') if path.is_file()]
        shutil.rmtree(directory)
        log.info(f"Removed {directory}")
        if leftovers:
            self.store.commit([names.parse(old_root).as_posix()], message)
