import secrets
import string

LETTERS = string.ascii_letters
DIGITS = string.digits
SYMBOLS = string.punctuation

DEFAULT_LENGTH = 25


def generate(length: int = DEFAULT_LENGTH, symbols: bool = True) -> str:
    alphabet = LETTERS + DIGITS + (SYMBOLS if symbols else '')
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def replace_first_line(content: str, password: str) -> str:
    """Replace the password on the first line of an entry, keeping the rest."""
    _, newline, rest = content.partition('\n')
    return f'{password}\n{rest}' if newline else f'{password}\n'
