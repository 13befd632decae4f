"""Typed failures raised by the Merch domain.

They extend protean's exception hierarchy so callers that already handle
``ValidationError`` / ``ObjectNotFoundError`` keep working, while the API
layer can map each type to its own response.
"""

from protean.exceptions import ObjectNotFoundError, ProteanExceptionWithMessage, ValidationError


class IllegalTransition(ValidationError):
    """A status change that the order state machine does not allow."""


class MalformedCallback(ValidationError):
    """A provider callback that cannot be decoded."""


class InsufficientBalance(ValidationError):
    """Available balance is below the minimum payout amount."""


class PayoutMethodMissing(ValidationError):
    """The creator has not configured a payout method."""


class InvalidPayoutDetails(ValidationError):
    """Payout details are incomplete for the chosen method."""


class OrderNotFound(ObjectNotFoundError):
    """No local order matches a provider order id."""


class PersistenceConflict(ProteanExceptionWithMessage):
    """A lock or version check kept failing after bounded retries."""


class ProviderUnavailable(ProteanExceptionWithMessage):
    """The fulfillment provider could not produce a quote."""
