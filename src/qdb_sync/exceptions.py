"""A submodule for custom qdb-sync Exceptions."""


# An __all__ for this module is less than helpful, unless we have an
# automated check that everything's included.


class QdbError(Exception):
    """Base class for errors raised by qdb-sync."""


class TransportError(QdbError):
    """The transport could not complete a request.

    This covers network failures, error responses from the database service,
    and responses that could not be understood. Malformed payloads are
    converted to this error rather than leaking `KeyError` or `ValueError`
    from the parsing code.
    """


class AuthenticationError(TransportError):
    """The database service did not accept our client ID.

    The REST transport re-authenticates and retries a limited number of times
    before raising this error.
    """


class FieldTypeError(QdbError, TypeError):
    """A `.Value` was accessed or updated as the wrong variant.

    For example, calling ``as_int()`` on a value holding a string. Values
    are never silently coerced between variants.
    """


class NotificationError(QdbError):
    """The subscription registry and the database service disagree.

    This is raised if a notification arrives for a token we have no record
    of, or if the registry finds its own mappings inconsistent.
    """


class NotificationNotFoundError(NotificationError, KeyError):
    """A notification token is not known to the registry.

    Raised by `.SubscriptionRegistry.unsubscribe` for tokens that were never
    registered, or that have already been removed.
    """

    def __str__(self) -> str:
        """Format the message without `KeyError`'s quoting.

        :return: the message the error was raised with.
        """
        return Exception.__str__(self)
