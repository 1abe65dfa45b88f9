"""Port-level exceptions for the tenancy bounded context.

Repositories translate database constraint violations into these, and the
identity provider adapter translates HTTP failures into them. The
application layer maps them onto the caller-facing error taxonomy.
"""


class DuplicateSlugError(Exception):
    """Raised when a tenant slug collides with the unique constraint.

    This is the authoritative slug conflict signal; the availability check
    that precedes it is advisory only.
    """

    pass


class DuplicateOwnerEmailError(Exception):
    """Raised when an owner email is already reserved or owned."""

    pass


class OwnerAlreadyLinkedError(Exception):
    """Raised when an owner id is already referenced by another tenant."""

    pass


class DuplicateIdempotencyKeyError(Exception):
    """Raised when a provisioning request with the same key already exists.

    The first writer wins; the loser re-reads the existing record.
    """

    pass


class EmailAlreadyExistsError(Exception):
    """Raised by the identity provider when the email is already registered."""

    pass


class IdentityNotFoundError(Exception):
    """Raised by the identity provider when the user id does not exist."""

    pass


class IdentityProviderUnavailableError(Exception):
    """Raised when the identity provider cannot be reached or errors out.

    The outcome of the call is unknown: a create may or may not have
    happened on the provider side.
    """

    pass


class IdentityRequestRejectedError(Exception):
    """Raised when the identity provider refuses a request as invalid.

    The provider answered with a client error that is not an email
    conflict, e.g. a password that fails its strength policy. Nothing was
    changed on the provider side and retrying the same request is futile.
    """

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason
