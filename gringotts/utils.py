import os
import pathlib
import typing

import click

DEFAULT_STORE = '~/.password-store'

Confirm = typing.Callable[[str, bool], bool]


def find_store_directory() -> pathlib.Path:
    return pathlib.Path(os.path.expanduser(DEFAULT_STORE))


def confirm(prompt: str, default: bool = False) -> bool:
    """Ask a yes/no question, reading a single line from the terminal."""
    return click.confirm(prompt, default=default)


class GringottsException(click.ClickException):
    pass


class StoreUninitialized(GringottsException):
    def __init__(self, root: pathlib.Path):
        super().__init__(
            f"The password store at {root} is not initialized - "
            f"run 'gringotts init <gpg-id>' before using it")
        self.root = root


class InvalidEntryName(GringottsException):
    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid entry name {name!r}: {reason}")
        self.name = name


class EntryNotFound(GringottsException):
    def __init__(self, name: str, path: pathlib.Path):
        super().__init__(
            f"{name} is not in the password store (expected {path})")
        self.name = name
        self.path = path


class OverwriteDeclined(GringottsException):
    pass


class PartialTreeFailure(GringottsException):
    def __init__(
            self,
            failed: str,
            completed: typing.Sequence[typing.Tuple[str, str]]):
        done = ', '.join(f'{old} -> {new}' for old, new in completed) or 'none'
        super().__init__(
            f"Stopped at {failed}; entries already processed "
            f"were not rolled back: {done}")
        self.failed = failed
        self.completed = tuple(completed)


class InsecureTempStorage(GringottsException):
    pass


class WorkspaceLost(GringottsException):
    exit_code = 70


class GPGError(GringottsException):
    pass


class DecryptError(GPGError):
    pass


class EncryptError(GPGError):
    pass


class UnknownRecipient(GPGError):
    def __init__(self, recipient: str):
        super().__init__(f"No public key found for recipient {recipient!r}")
        self.recipient = recipient


class VersionControlError(GringottsException):
    pass


class NotARepo(VersionControlError):
    pass


class CommitFailed(VersionControlError):
    pass
