import attr
import pytest

from gringotts.recipients import RecipientResolver
from gringotts.store import EntryStore
from gringotts.utils import (DecryptError, EncryptError, EntryNotFound,
                             GringottsException, NotARepo, OverwriteDeclined,
                             StoreUninitialized, UnknownRecipient)


def test_open_missing_entry(store):
    with pytest.raises(EntryNotFound) as error:
        store.open('web/bank')
    assert error.value.path == store.root / 'web' / 'bank.gpg'
    assert str(store.root / 'web' / 'bank.gpg') in error.value.format_message()


def test_open_corrupt_entry(store):
    store.path('web/bank').parent.mkdir()
    store.path('web/bank').write_bytes(b'garbage')
    with pytest.raises(DecryptError):
        store.open('web/bank')


@pytest.mark.parametrize('setup', ['missing', 'empty'])
def test_uninitialized_store(tmp_path, volatile, crypto, setup):
    root = tmp_path / 'store'
    if setup == 'empty':
        root.mkdir()
    store = EntryStore(root=root, gpg=crypto, volatile=volatile)
    with pytest.raises(StoreUninitialized):
        store.open('web/bank')
    with pytest.raises(StoreUninitialized):
        store.create('web/bank')


def test_create_does_not_touch_an_existing_entry(store, put, confirm):
    path = put('web/bank', 'one\n')
    before = path.read_bytes()
    confirm.answers.append(True)
    workspace = store.create('web/bank')
    assert workspace.dirty
    assert workspace.read_bytes() == b''
    assert path.read_bytes() == before
    workspace.discard()
    workspace.close()


def test_create_declined(store, put, confirm, volatile):
    path = put('web/bank', 'one\n')
    before = path.read_bytes()
    confirm.answers.append(False)
    with pytest.raises(OverwriteDeclined):
        store.create('web/bank')
    assert path.read_bytes() == before
    assert list(volatile.iterdir()) == []


def test_create_forced(store, put, confirm):
    put('web/bank', 'one\n')
    with store.create('web/bank', force=True) as workspace:
        workspace.write_text('two\n')
    assert confirm.prompts == []
    with store.open('web/bank') as workspace:
        assert workspace.read_text() == 'two\n'


def test_entries(store, put):
    for name in ('web/bank', 'email/work', 'email/home', 'root-entry', 'web/deep/x'):
        put(name, 'x\n')
    assert store.entries() == ['email/home', 'email/work', 'root-entry', 'web/bank', 'web/deep/x']
    assert store.entries('web') == ['web/bank', 'web/deep/x']
    assert store.entries('missing') == []


def test_find(store, put):
    for name in ('web/Bank', 'email/work', 'finance/banking'):
        put(name, 'x\n')
    assert store.find(['bank']) == ['finance/banking', 'web/Bank']
    assert store.find(['WORK', 'nothing']) == ['email/work']


def test_remove(store, put, confirm, recording_git):
    put('web/bank', 'x\n')
    confirm.answers.append(True)
    store.remove('web/bank')
    assert not store.path('web/bank').exists()
    assert confirm.prompts == ["Are you sure you would like to delete web/bank?"]
    assert recording_git.commits[-1] == (('web/bank.gpg',), "Remove web/bank from store.")


def test_remove_declined(store, put, confirm):
    put('web/bank', 'x\n')
    confirm.answers.append(False)
    with pytest.raises(OverwriteDeclined):
        store.remove('web/bank')
    assert store.path('web/bank').exists()


def test_remove_recursive(store, put, recording_git):
    put('web/bank', 'x\n')
    put('web/deep/x', 'x\n')
    put('other', 'x\n')
    store.remove('web', recursive=True, force=True)
    assert not (store.root / 'web').exists()
    assert store.entries() == ['other']
    assert recording_git.commits[-1] == (('web',), "Remove web from store.")


def test_remove_missing(store):
    with pytest.raises(EntryNotFound):
        store.remove('web/bank', force=True)


def test_remove_recursive_requires_a_directory(store, put):
    put('bank', 'x\n')
    (store.root / 'bank').write_text('not a directory')
    with pytest.raises(GringottsException):
        store.remove('bank', recursive=True, force=True)


def test_init_writes_the_marker(tmp_path, volatile, crypto, recording_git):
    store = EntryStore(root=tmp_path / 'new', gpg=crypto, git=recording_git, volatile=volatile)
    marker = store.init(['alice@example.com', 'bob@example.com'])
    assert marker.read_text() == 'alice@example.com\nbob@example.com\n'
    assert recording_git.commits == [
        (('.gpg-id',), "Set GPG id to alice@example.com, bob@example.com.")]


def test_init_re_encrypts_affected_entries(store, shadowed, put, crypto, recording_git):
    put('c/secret', 'one\n')
    put('a/secret', 'two\n')
    put('a/b/secret', 'three\n')
    RecipientResolver.write(store.root / 'a' / 'b', ['erin@example.com'])

    store.init(['dave@example.com'], 'a')

    assert crypto.keys(store.path('a/secret')) == ('KEY:dave@example.com',)
    assert crypto.keys(store.path('a/b/secret')) == ('KEY:bob@example.com', 'KEY:carol@example.com')
    assert crypto.keys(store.path('c/secret')) == ('KEY:alice@example.com',)
    assert recording_git.commits[-2:] == [
        (('a/.gpg-id',), "Set GPG id to dave@example.com."),
        (('a/secret.gpg',), "Reencrypt password store using new GPG id dave@example.com."),
    ]
    with store.open('a/secret') as workspace:
        assert workspace.read_text() == 'two\n'


def test_commit_ignores_stores_without_git(make_store, recording_git, put):
    store = make_store(git=attr.evolve(recording_git, error=NotARepo("not a repository")))
    with store.create('web/bank') as workspace:
        workspace.set_commit_message("Add web/bank")
        workspace.write_text('x\n')
    assert store.exists('web/bank')


def test_entries_skip_files_without_a_name(store, put):
    put('web/bank', 'x\n')
    (store.root / '.gpg').write_bytes(b'stray')
    (store.root / 'web' / '.gpg').write_bytes(b'stray')
    assert store.entries() == ['web/bank']
    assert store.find(['bank']) == ['web/bank']


def test_init_with_an_unknown_recipient(store, root, put, volatile, recording_git):
    put('web/bank', 'x\n')
    before = (root / '.gpg-id').read_text()
    commits = list(recording_git.commits)

    with pytest.raises(UnknownRecipient):
        store.init(['mallory@example.com'])

    assert (root / '.gpg-id').read_text() == before
    assert recording_git.commits == commits
    assert list(volatile.iterdir()) == []


def test_init_re_encryption_failure_keeps_entries(make_store, crypto, put, volatile):
    class Broken(type(crypto)):
        def encrypt(self, recipients, plaintext):
            raise EncryptError("broken")

    path = put('web/bank', 'x\n')
    before = path.read_bytes()
    store = make_store(gpg=Broken())

    with pytest.raises(EncryptError):
        store.init(['dave@example.com'])

    assert path.read_bytes() == before
    assert list(volatile.iterdir()) == []
