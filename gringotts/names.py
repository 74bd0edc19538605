"""
Entry names are relative POSIX paths within the store.

Conversions between names and filesystem paths all go through this module so
that the '.gpg' suffix is added and removed in exactly one place.
"""

import pathlib
import typing

from .utils import InvalidEntryName

SUFFIX = '.gpg'
MARKER = '.gpg-id'

Name = pathlib.PurePosixPath


def parse(name: str) -> Name:
    """Validate an entry name and return it as a relative path."""
    if not name or not name.strip('/'):
        raise InvalidEntryName(name, "names can't be empty")
    if name.startswith('/'):
        raise InvalidEntryName(name, "names must be relative to the store")

    parts = name.rstrip('/').split('/')
    if any(part in ('', '.', '..') for part in parts):
        raise InvalidEntryName(name, "names can't contain '', '.' or '..' segments")

    return Name(*parts)


def parse_directory(name: str) -> Name:
    """Like parse(), but an empty name refers to the root of the store."""
    if not name.strip('/'):
        return Name()
    return parse(name)


def entry_path(root: pathlib.Path, name: str) -> pathlib.Path:
    """The durable file for an entry: '<root>/<name>.gpg'."""
    relative = parse(name)
    return root.joinpath(relative.parent, relative.name + SUFFIX)


def directory_path(root: pathlib.Path, name: str) -> pathlib.Path:
    return root.joinpath(parse_directory(name))


def entry_name(root: pathlib.Path, path: pathlib.Path) -> str:
    """The inverse of entry_path()."""
    relative = Name(path.relative_to(root).as_posix())
    if relative.suffix != SUFFIX:
        raise InvalidEntryName(str(relative), f"encrypted files end in {SUFFIX}")
    return relative.with_name(relative.name[:-len(SUFFIX)]).as_posix()


def relative_file(name: str) -> str:
    """The durable file for an entry relative to the root, used for git."""
    relative = parse(name)
    return (relative.parent / (relative.name + SUFFIX)).as_posix()


def transpose(name: str, *, from_dir: str, to_dir: str) -> str:
    """Replace the leading 'from_dir' of a name with 'to_dir'."""
    relative = parse(name).relative_to(parse_directory(from_dir))
    return (parse_directory(to_dir) / relative).as_posix()


def is_within(name: str, directory: str) -> bool:
    try:
        parse(name).relative_to(parse_directory(directory))
    except ValueError:
        return False
    else:
        return True


def sort_key(name: str) -> typing.Tuple[str, ...]:
    return parse(name).parts
