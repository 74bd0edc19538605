import logging
import os
import pathlib
import typing

import click

from . import __doc__, __version__, passwords
from .api import vault
from .bulk import BulkReencryptor, Transfer
from .clipboard import DEFAULT_CLIP_TIME, copy_temporarily
from .gpg import GPG
from .store import EntryStore
from .utils import GringottsException, OverwriteDeclined, find_store_directory
from .workspace import VOLATILE

log = logging.getLogger(__name__)


def entry(name: str) -> str:
    """Style an entry name."""
    return click.style(name, fg='green')


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


force_option = click.option(
    '-f', '--force',
    default=False,
    is_flag=True,
    help="Don't prompt before overwriting an existing entry.")

clip_time_option = click.option(
    '--clip-time',
    envvar='PASSWORD_STORE_CLIP_TIME',
    default=DEFAULT_CLIP_TIME,
    show_default=True,
    type=click.IntRange(min=1),
    help="Seconds to wait before clearing the clipboard.")

name_argument = click.argument('name', type=click.STRING, required=True)


class ClipCommand(click.Command):
    """Treat a bare '-c' or '--clip' as '--clip=1', so the value is optional."""

    def parse_args(self, ctx, args):
        rewritten = []
        for arg, following in zip(args, [*args[1:], '']):
            if arg in ('-c', '--clip') and not following.isdigit():
                arg = '--clip=1'
            rewritten.append(arg)
        return super().parse_args(ctx, rewritten)


def may_overwrite(store: EntryStore, name: str, force: bool) -> bool:
    """Ask before replacing an entry, before the user is asked for any secrets."""
    if force or not store.exists(name):
        return True
    return store.confirm(f"An entry already exists for {name}. Overwrite it?", False)


@click.group(help=__doc__)
@click.option(
    '-s', '--store', 'root',
    type=PathType(file_okay=False, dir_okay=True),
    envvar='PASSWORD_STORE_DIR',
    default=find_store_directory,
    required=True,
    help="Defaults to ~/.password-store.")
@click.option(
    '--gnupg-home',
    type=PathType(file_okay=False, dir_okay=True),
    envvar='GNUPGHOME',
    default=None,
    help="GnuPG home directory used for all encryption.")
@click.option(
    '--gpg-option', 'gpg_options',
    envvar='PASSWORD_STORE_GPG_OPTS',
    multiple=True,
    help="Extra options passed to every gpg command.")
@click.option(
    '--volatile-dir',
    type=PathType(file_okay=False, dir_okay=True),
    envvar='GRINGOTTS_VOLATILE_DIR',
    default=VOLATILE,
    show_default=True,
    help="Where decrypted files are kept while they are in use.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'gpg_verbose',
    default=False,
    is_flag=True,
    help="Display GPG's normal STDERR output.")
@click.pass_context
def main(
        ctx,
        root: pathlib.Path,
        gnupg_home: typing.Optional[pathlib.Path],
        gpg_options: typing.Sequence[str],
        volatile_dir: pathlib.Path,
        debug: bool,
        gpg_verbose: bool):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    if ctx.obj is None:
        gpg = GPG(verbose=gpg_verbose, home=gnupg_home, options=gpg_options)
        ctx.obj = vault(root, gpg=gpg, volatile=volatile_dir)


@main.command()
def version():
    """Show the application version."""
    click.echo(f"gringotts {__version__}")


@main.command()
@click.option(
    '-p', '--path', 'subfolder',
    default='',
    help="Set the recipients for a subdirectory of the store.")
@click.argument('gpg_ids', nargs=-1, required=True)
@click.pass_obj
def init(store: EntryStore, subfolder: str, gpg_ids: typing.Sequence[str]):
    """
    Initialize the store for one or more GPG ids.

    Existing entries that the new ids apply to are re-encrypted.
    """
    store.init(gpg_ids, subfolder)
    where = f" ({subfolder})" if subfolder else ''
    click.echo(f"Password store initialized for {', '.join(gpg_ids)}{where}")


@main.command(name='list')
@click.argument('subfolder', default='', required=False)
@click.pass_obj
def ls(store: EntryStore, subfolder: str):
    """List entries."""
    store.check_initialized()
    click.echo(subfolder or "Password Store")
    for name in store.entries(subfolder):
        click.echo(entry(name))


@main.command()
@click.argument('terms', nargs=-1, required=True)
@click.pass_obj
def find(store: EntryStore, terms: typing.Sequence[str]):
    """List entries with names that match any of the search terms."""
    store.check_initialized()
    click.echo(f"Search Terms: {','.join(terms)}")
    for name in store.find(terms):
        click.echo(entry(name))


@main.command(cls=ClipCommand)
@click.option(
    '-c', '--clip', 'clip_line',
    type=click.IntRange(min=1),
    default=None,
    help="Copy a line to the clipboard instead of printing (--clip=N, default 1).")
@clip_time_option
@name_argument
@click.pass_obj
def show(store: EntryStore, clip_line: typing.Optional[int], clip_time: int, name: str):
    """Show an existing entry."""
    if store.is_directory(name) and not store.exists(name):
        return click.get_current_context().invoke(ls, subfolder=name)

    with store.open(name) as workspace:
        contents = workspace.read_bytes()

    if clip_line is None:
        click.echo(contents, nl=False)
        return

    lines = contents.decode('utf-8').splitlines()
    if clip_line > len(lines):
        raise GringottsException(
            f"There is no password to put on the clipboard at line {clip_line}")
    copy_temporarily(lines[clip_line - 1], name, timeout=clip_time)


@main.command()
@click.option(
    '-e', '--echo',
    default=False,
    is_flag=True,
    help="Echo the password back to the console during entry.")
@click.option(
    '-m', '--multiline',
    default=False,
    is_flag=True,
    help="Read lines until end of file.")
@force_option
@name_argument
@click.pass_obj
def insert(store: EntryStore, echo: bool, multiline: bool, force: bool, name: str):
    """Insert a new entry."""
    if echo and multiline:
        raise click.UsageError("--echo and --multiline can't be used together")

    if not may_overwrite(store, name, force):
        click.echo(f"Not overwriting {name}")
        return

    if multiline:
        click.echo(f"Enter contents of {name} and press Ctrl+D when finished:")
        contents = click.get_text_stream('stdin').read()
    elif echo:
        contents = click.prompt(f"Enter password for {name}", hide_input=False) + '\n'
    else:
        contents = click.prompt(
            f"Enter password for {name}",
            hide_input=True,
            confirmation_prompt=f"Retype password for {name}") + '\n'

    with store.create(name, force=True) as workspace:
        workspace.set_commit_message(f"Add given password for {name} to store.")
        workspace.write_text(contents)


@main.command()
@name_argument
@click.pass_obj
def edit(store: EntryStore, name: str):
    """Insert a new entry or edit an existing one using $EDITOR."""
    existed = store.exists(name)
    workspace = store.open(name) if existed else store.create(name)
    with workspace:
        # only save what the editor changes
        workspace.discard()
        before = workspace.read_bytes()
        click.edit(filename=workspace.editable_path.as_posix())
        if workspace.read_bytes() == before:
            click.echo(f"Entry for {name} unchanged." if existed else f"New entry {name} not saved.")
            return
        editor = os.environ.get('VISUAL') or os.environ.get('EDITOR') or 'vi'
        action = 'Edit' if existed else 'Add'
        workspace.set_commit_message(f"{action} password for {name} using {editor}.")
        workspace.touch()


@main.command()
@click.option(
    '-n', '--no-symbols',
    default=False,
    is_flag=True,
    help="Only use letters and digits.")
@click.option(
    '-c', '--clip',
    default=False,
    is_flag=True,
    help="Copy the password to the clipboard instead of printing it.")
@click.option(
    '-i', '--in-place',
    default=False,
    is_flag=True,
    help="Replace only the first line of an existing entry.")
@force_option
@click.option(
    '-l', '--length',
    envvar='PASSWORD_STORE_GENERATED_LENGTH',
    default=passwords.DEFAULT_LENGTH,
    show_default=True,
    type=click.IntRange(min=1))
@clip_time_option
@name_argument
@click.pass_obj
def generate(
        store: EntryStore,
        no_symbols: bool,
        clip: bool,
        in_place: bool,
        force: bool,
        length: int,
        clip_time: int,
        name: str):
    """Generate a new password."""
    if in_place and force:
        raise click.UsageError("--in-place and --force can't be used together")

    password = passwords.generate(length, symbols=not no_symbols)

    if in_place:
        with store.open(name) as workspace:
            workspace.set_commit_message(f"Replace generated password for {name}.")
            workspace.write_text(passwords.replace_first_line(workspace.read_text(), password))
    else:
        if not may_overwrite(store, name, force):
            click.echo(f"Not overwriting {name}")
            return
        with store.create(name, force=True) as workspace:
            workspace.set_commit_message(f"Add generated password for {name}.")
            workspace.write_text(f'{password}\n')

    if clip:
        copy_temporarily(password, name, timeout=clip_time)
    else:
        click.echo(f"The generated password for {entry(name)} is:")
        click.echo(password)


@main.command()
@click.option(
    '-r', '--recursive',
    default=False,
    is_flag=True,
    help="Remove a directory of entries.")
@click.option(
    '-f', '--force',
    default=False,
    is_flag=True,
    help="Don't ask for confirmation.")
@name_argument
@click.pass_obj
def remove(store: EntryStore, recursive: bool, force: bool, name: str):
    """Remove an entry or a directory of entries."""
    try:
        store.remove(name, recursive=recursive, force=force)
    except OverwriteDeclined as declined:
        click.echo(declined.format_message())
    else:
        click.echo(f"Removed {name}")


@main.command()
@force_option
@click.argument('old', type=click.STRING)
@click.argument('new', type=click.STRING)
@click.pass_obj
def rename(store: EntryStore, force: bool, old: str, new: str):
    """Rename or move an entry or directory, re-encrypting for its new location."""
    for source, destination in BulkReencryptor(store).transfer(Transfer.MOVE, old, new, force):
        click.echo(f"Renamed {entry(source)} to {entry(destination)}")


@main.command()
@force_option
@click.argument('old', type=click.STRING)
@click.argument('new', type=click.STRING)
@click.pass_obj
def copy(store: EntryStore, force: bool, old: str, new: str):
    """Copy an entry or directory, re-encrypting for its new location."""
    for source, destination in BulkReencryptor(store).transfer(Transfer.COPY, old, new, force):
        click.echo(f"Copied {entry(source)} to {entry(destination)}")


@main.command(context_settings={'ignore_unknown_options': True})
@click.argument('arguments', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def git(ctx, arguments: typing.Sequence[str]):
    """Run a git command in the store, or 'git init' to start tracking it."""
    store: EntryStore = ctx.obj
    if arguments and arguments[0] == 'init':
        store.git.init(store.root, arguments[1:])
        click.echo(f"Initialized a git repository for {store.root}")
        return
    ctx.exit(store.git.command(store.root, arguments))


for command, aliases in (
        (ls, ['ls']),
        (find, ['search']),
        (insert, ['add']),
        (remove, ['rm', 'delete']),
        (rename, ['mv']),
        (copy, ['cp'])):
    for alias in aliases:
        main.add_command(command, name=alias)
