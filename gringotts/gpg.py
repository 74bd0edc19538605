import logging
import os
import pathlib
import subprocess
import typing

import attr

from .utils import DecryptError, EncryptError, GPGError, UnknownRecipient

log = logging.getLogger(__name__)


class CryptoBackend:
    """Encrypts and decrypts entries in memory."""

    def decrypt(self, ciphertext: bytes) -> bytes:
        raise NotImplementedError

    def encrypt(self, recipients: typing.Sequence[str], plaintext: bytes) -> bytes:
        raise NotImplementedError

    def resolve_recipients(self, identifiers: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        """Resolve recipient identifiers to the keys encrypt() should use."""
        raise NotImplementedError


@attr.s(frozen=True)
class GPG(CryptoBackend):
    verbose: bool = attr.ib(default=False)
    home: typing.Optional[pathlib.Path] = attr.ib(default=None)
    options: typing.Tuple[str, ...] = attr.ib(default=(), converter=tuple)
    binary: str = attr.ib(default='gpg')

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = (
            self.binary, '--yes', '--batch', '--compress-algo=none', '--no-encrypt-to')
        if self.verbose:
            command = (*command, '--verbose')
        else:
            command = (*command, '--quiet')
        return (*command, *self.options, *arguments)

    def env(self) -> typing.Dict[str, str]:
        env = dict(os.environ)
        if self.home:
            env['GNUPGHOME'] = self.home.as_posix()
        return env

    def run(self,
            arguments: typing.Sequence[str],
            stdin: typing.Optional[bytes] = None,
            error: typing.Type[GPGError] = GPGError) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                self.command(arguments),
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self.env(),
                check=True)
        except subprocess.CalledProcessError as exception:
            stderr = exception.stderr.decode('utf-8', errors='replace')
            for line in stderr.splitlines():
                log.error(line)
            raise error(
                f"{self.binary} exited with status {exception.returncode}"
                + (f": {stderr.strip()}" if stderr.strip() else "")) from exception
        except FileNotFoundError as exception:
            raise error(f"Could not run {self.binary} - is GnuPG installed?") from exception

    def decrypt(self, ciphertext: bytes) -> bytes:
        log.debug(f"Decrypting {len(ciphertext)} bytes")
        return self.run(['--decrypt'], stdin=ciphertext, error=DecryptError).stdout

    def encrypt(self, recipients: typing.Sequence[str], plaintext: bytes) -> bytes:
        log.debug(f"Encrypting {len(plaintext)} bytes for {', '.join(recipients)}")
        if not recipients:
            raise EncryptError("Refusing to encrypt without any recipients")
        args: typing.List[str] = []
        for recipient in recipients:
            args += ['--recipient', recipient]
        args += ['--encrypt']
        return self.run(args, stdin=plaintext, error=EncryptError).stdout

    def resolve_recipients(self, identifiers: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        """Find the fingerprint of the primary key for each identifier."""
        fingerprints: typing.List[str] = []
        for identifier in identifiers:
            try:
                result = self.run(['--with-colons', '--list-keys', '--', identifier])
            except GPGError as exception:
                raise UnknownRecipient(identifier) from exception
            fingerprint = self.primary_fingerprint(result.stdout.decode('utf-8'))
            if fingerprint is None:
                raise UnknownRecipient(identifier)
            log.debug(f"Resolved recipient {identifier} to {fingerprint}")
            fingerprints.append(fingerprint)
        return tuple(fingerprints)

    @staticmethod
    def primary_fingerprint(listing: str) -> typing.Optional[str]:
        """Read the first 'fpr' record following a 'pub' record."""
        seen_pub = False
        for line in listing.splitlines():
            fields = line.split(':')
            if fields[0] == 'pub':
                seen_pub = True
            elif fields[0] == 'fpr' and seen_pub and len(fields) > 9:
                return fields[9]
        return None
