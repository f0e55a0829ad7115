class UsageTallyError(Exception):
    """
    base class for errors raised by usagetally itself.
    """


class SnapshotError(UsageTallyError):
    """
    raised when a database snapshot cannot be created.
    """
