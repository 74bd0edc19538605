import base64
import pathlib
import typing

import attr
import click.testing
import pytest

import gringotts.cli
from gringotts.git import Git
from gringotts.gpg import CryptoBackend
from gringotts.recipients import RecipientResolver
from gringotts.store import EntryStore
from gringotts.utils import DecryptError, EncryptError, UnknownRecipient

HEADER = b'fake-pgp'


@attr.s(frozen=True)
class FakeCrypto(CryptoBackend):
    """Reversible stand-in for gpg that records the keys each entry was encrypted for."""

    unknown: typing.FrozenSet[str] = attr.ib(default=frozenset(), converter=frozenset)
    encrypted: typing.List[typing.Tuple[str, ...]] = attr.ib(factory=list)

    def decrypt(self, ciphertext: bytes) -> bytes:
        header, _, body = ciphertext.partition(b'\n')
        if not header.startswith(HEADER):
            raise DecryptError("not a fake-pgp message")
        _, _, body = body.partition(b'\n')
        return base64.b64decode(body)

    def encrypt(self, recipients: typing.Sequence[str], plaintext: bytes) -> bytes:
        if not recipients:
            raise EncryptError("no recipients")
        self.encrypted.append(tuple(recipients))
        keys = ','.join(recipients).encode('utf-8')
        return b'\n'.join([HEADER, keys, base64.b64encode(plaintext)])

    def resolve_recipients(self, identifiers: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        for identifier in identifiers:
            if identifier in self.unknown:
                raise UnknownRecipient(identifier)
        return tuple(f'KEY:{identifier}' for identifier in identifiers)

    @staticmethod
    def keys(path: pathlib.Path) -> typing.Tuple[str, ...]:
        """The keys a durable file was encrypted for."""
        return tuple(path.read_bytes().split(b'\n')[1].decode('utf-8').split(','))


@attr.s(frozen=True)
class ScriptedConfirm:
    """Answers confirmation prompts from a script, recording each prompt."""

    answers: typing.List[bool] = attr.ib(factory=list)
    prompts: typing.List[str] = attr.ib(factory=list)

    def __call__(self, prompt: str, default: bool = False) -> bool:
        self.prompts.append(prompt)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {prompt}")
        return self.answers.pop(0)


@attr.s(frozen=True)
class RecordingGit(Git):
    """Records commits instead of running git; behaves like a plain directory by default."""

    commits: typing.List[typing.Tuple[typing.Tuple[str, ...], str]] = attr.ib(factory=list)
    error: typing.Optional[Exception] = attr.ib(default=None)

    def commit_paths(self, root, relative_paths, message):
        if self.error is not None:
            raise self.error
        self.commits.append((tuple(relative_paths), message))


@pytest.fixture()
def root(tmp_path) -> pathlib.Path:
    root = tmp_path / 'store'
    RecipientResolver.write(root, ['alice@example.com'])
    return root


@pytest.fixture()
def volatile(tmp_path) -> pathlib.Path:
    volatile = tmp_path / 'shm'
    volatile.mkdir()
    return volatile


@pytest.fixture()
def crypto() -> FakeCrypto:
    """Entries below a directory for mallory@example.com can never be encrypted."""
    return FakeCrypto(unknown=['mallory@example.com'])


@pytest.fixture()
def confirm() -> ScriptedConfirm:
    return ScriptedConfirm()


@pytest.fixture()
def recording_git() -> RecordingGit:
    return RecordingGit()


@pytest.fixture()
def store(root, volatile, crypto, confirm, recording_git) -> EntryStore:
    return EntryStore(
        root=root,
        gpg=crypto,
        git=recording_git,
        confirm=confirm,
        volatile=volatile)


@pytest.fixture()
def make_store(store):
    """Build a store like the default one, replacing some of its collaborators."""
    def make_store_func(**changes) -> EntryStore:
        return attr.evolve(store, **changes)

    return make_store_func


@pytest.fixture()
def put(store):
    """Write an entry directly, without going through the CLI."""
    def put_func(name: str, text: str) -> pathlib.Path:
        with store.create(name, force=True) as workspace:
            workspace.set_commit_message(f"Add {name}")
            workspace.write_text(text)
        return store.path(name)

    return put_func


@pytest.fixture()
def invoke(store):
    def invoke_func(arguments: typing.Sequence[str], input: typing.Optional[str] = None):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        result = runner.invoke(gringotts.cli.main, arguments, input=input, obj=store)
        if result.exit_code != 0:
            message = f"Command gringotts {' '.join(arguments)} failed: {result.output}"
            raise Exception(message) from result.exception
        return result.output.splitlines()

    return invoke_func


@attr.s(frozen=True)
class ExampleEntry:
    name: str = attr.ib()
    recipients: typing.Tuple[str, ...] = attr.ib(converter=tuple)

    def __str__(self):
        return self.name


@pytest.fixture()
def shadowed(root) -> pathlib.Path:
    """A store with different recipients for everything below 'a/'."""
    RecipientResolver.write(root / 'a', ['bob@example.com', 'carol@example.com'])
    return root


@pytest.fixture(params=[
    ExampleEntry('secret', ['alice@example.com']),
    ExampleEntry('c/secret', ['alice@example.com']),
    ExampleEntry('a/secret', ['bob@example.com', 'carol@example.com']),
    ExampleEntry('a/b/secret', ['bob@example.com', 'carol@example.com']),
    ExampleEntry('a/b/c/d/secret', ['bob@example.com', 'carol@example.com']),
], ids=str)
def example(request):
    return request.param

