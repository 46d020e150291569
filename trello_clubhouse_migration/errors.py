"""Exceptions raised by the service clients."""


class MigrationError(Exception):
    """Base class for failures talking to one of the three services."""


class TrelloError(MigrationError):
    pass


class DropboxError(MigrationError):
    pass


class ClubhouseError(MigrationError):
    pass
