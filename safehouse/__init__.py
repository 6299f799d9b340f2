"""
Safehouse keeps GPG encrypted files in a repository, tracked by a safe.yml manifest.

Every protected file is stored as '<name>.gpg.asc' and listed in the 'files' section of the
nearest safe.yml, searching upwards from the current directory. The gpg command is used to
perform all encryption and decryption, and changes can be committed to git as they are made.

An example manifest:

\b
    recipients: [alice@example.invalid, bob@example.invalid]
    overrides:
      deploy/prod.yml.gpg.asc: [ops@example.invalid]
    files: []

Protect an existing plaintext file, replacing it with 'notes.md.gpg.asc':

\b
    $ safehouse protect notes.md --commit

Edit a protected file (or create a new one) in your $EDITOR:

\b
    $ safehouse edit notes.md

Run a command with the keys of a protected YAML file as environment variables:

\b
    $ safehouse exec deploy/prod.yml -- ./deploy.sh

Re-encrypt every file after changing the recipients:

\b
    $ safehouse reencrypt --commit
"""

__version__ = '1.0.0'
