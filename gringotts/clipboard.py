import logging
import os
import pathlib
import shutil
import signal
import subprocess
import sys
import time
import typing

import attr
import click

from .utils import GringottsException

log = logging.getLogger(__name__)

DEFAULT_CLIP_TIME = 45


@attr.s(frozen=True)
class Clipboard:
    command: typing.Tuple[str, ...] = attr.ib(converter=tuple)

    @classmethod
    def detect(cls) -> 'Clipboard':
        """Pick a clipboard tool for the current desktop environment."""
        version = pathlib.Path('/proc/version')
        if version.exists() and 'microsoft' in version.read_text().lower():
            candidates = [('clip.exe',)]
        elif sys.platform == 'darwin':
            candidates = [('pbcopy',)]
        elif os.environ.get('WAYLAND_DISPLAY'):
            candidates = [('wl-copy',), ('xclip', '-selection', 'clipboard')]
        else:
            candidates = [('xclip', '-selection', 'clipboard'), ('xsel', '--clipboard', '--input')]

        for command in candidates:
            if shutil.which(command[0]):
                return cls(command)
        raise GringottsException(
            f"No clipboard tool found, tried {', '.join(c[0] for c in candidates)}")

    def set(self, text: str) -> None:
        log.debug(f"Setting clipboard with {self.command[0]}")
        try:
            subprocess.run(self.command, input=text.encode('utf-8'), check=True)
        except (OSError, subprocess.CalledProcessError) as error:
            raise GringottsException(f"Could not use the clipboard: {error}") from error

    def clear(self) -> None:
        self.set('')


def copy_temporarily(
        text: str,
        name: str,
        timeout: int = DEFAULT_CLIP_TIME,
        clipboard: typing.Optional[Clipboard] = None,
        sleep: typing.Callable[[float], None] = time.sleep) -> None:
    """
    Put text on the clipboard and clear it after a timeout.

    Blocks until the clipboard is cleared. Interrupting or terminating the
    process clears the clipboard early.
    """
    clipboard = clipboard or Clipboard.detect()
    clipboard.set(text)
    click.echo(f"Copied {name} to clipboard. Will clear in {timeout} seconds.")

    previous = signal.signal(signal.SIGTERM, signal.default_int_handler)
    try:
        sleep(timeout)
    finally:
        signal.signal(signal.SIGTERM, previous)
        clipboard.clear()
        click.echo("Clipboard cleared.")
