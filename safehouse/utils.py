import click


class SafehouseException(click.ClickException):
    pass


class ConfigNotFound(SafehouseException):
    pass


class InvalidConfig(SafehouseException):
    pass


class PathResolutionError(SafehouseException):
    pass


class AlreadyProtected(SafehouseException):
    pass


class NotProtected(SafehouseException):
    pass


class SecretNotFound(SafehouseException):
    pass


class DecryptError(SafehouseException):
    pass


class EncryptError(SafehouseException):
    pass


class UnsupportedFormat(SafehouseException):
    pass


class CommitError(SafehouseException):
    pass


class StorageError(SafehouseException):
    """Reading or writing a file on disk failed."""


class CommandError(SafehouseException):
    pass
