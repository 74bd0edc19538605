"""
Gringotts keeps GPG encrypted secrets in a password store directory.

Each entry is a file named '<name>.gpg' under the store. Entries are encrypted
to the recipients listed in the nearest '.gpg-id' file, searching from the
entry's directory up to the root of the store. The gpg command is used to
perform all encryption and decryption.

Decrypted text only ever exists in a private directory on volatile storage
(/dev/shm by default) and is erased once the entry has been encrypted again.

Initialize a store for a recipient:

\b
    $ gringotts init "gringotts@example.invalid"

Insert, show and edit a secret:

\b
    $ gringotts insert email/work
    $ gringotts show email/work
    $ gringotts edit email/work

Move a directory of secrets under a different set of recipients:

\b
    $ gringotts init --path finance "accountant@example.invalid"
    $ gringotts rename bank finance/bank
"""

__version__ = '1.0.0'
