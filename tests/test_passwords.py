import pytest

from gringotts import passwords


def test_generate():
    password = passwords.generate()
    assert len(password) == passwords.DEFAULT_LENGTH
    assert set(password) <= set(passwords.LETTERS + passwords.DIGITS + passwords.SYMBOLS)


def test_generate_without_symbols():
    password = passwords.generate(200, symbols=False)
    assert set(password) <= set(passwords.LETTERS + passwords.DIGITS)


def test_generate_is_random():
    assert passwords.generate() != passwords.generate()


@pytest.mark.parametrize('content, expected', [
    ('old\nuser: me\n', 'new\nuser: me\n'),
    ('old\n', 'new\n'),
    ('old', 'new\n'),
    ('', 'new\n'),
    ('old\n\nnotes\n', 'new\n\nnotes\n'),
])
def test_replace_first_line(content, expected):
    assert passwords.replace_first_line(content, 'new') == expected
