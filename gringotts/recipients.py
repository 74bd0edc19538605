import logging
import pathlib
import typing

import attr

from .names import MARKER, entry_path
from .utils import StoreUninitialized

log = logging.getLogger(__name__)

Recipients = typing.Tuple[str, ...]


@attr.s(frozen=True)
class RecipientResolver:
    """
    Find the recipients an entry should be encrypted for.

    The nearest '.gpg-id' file to an entry wins, searching from the entry's
    directory up to and including the root of the store. Markers in deeper
    directories replace the recipients of their parents - they are never
    merged. Nothing is cached, so changes to a marker apply immediately.
    """

    root: pathlib.Path = attr.ib()

    def marker_for(self, name: str) -> pathlib.Path:
        directory = entry_path(self.root, name).parent
        while True:
            marker = directory / MARKER
            if marker.is_file():
                return marker
            if directory == self.root:
                raise StoreUninitialized(self.root)
            directory = directory.parent

    def resolve(self, name: str) -> Recipients:
        marker = self.marker_for(name)
        recipients = self.read(marker)
        log.debug(f"Recipients for {name} from {marker}: {', '.join(recipients)}")
        return recipients

    @staticmethod
    def read(marker: pathlib.Path) -> Recipients:
        lines = (line.strip() for line in marker.read_text().splitlines())
        return tuple(line for line in lines if line)

    @staticmethod
    def write(directory: pathlib.Path, recipients: typing.Iterable[str]) -> pathlib.Path:
        marker = directory / MARKER
        directory.mkdir(parents=True, exist_ok=True)
        marker.write_text(''.join(f'{recipient}\n' for recipient in recipients))
        log.info(f"Wrote recipients to {marker}")
        return marker
