import pathlib
import typing

from .store import EntryStore
from .utils import find_store_directory


def vault(directory: typing.Optional[pathlib.Path] = None, **kwargs) -> EntryStore:
    """Open the password store in a directory, defaulting to ~/.password-store."""
    return EntryStore(root=directory or find_store_directory(), **kwargs)
