"""Error taxonomy shared by the Ember stores and surfaces."""
from __future__ import annotations


class EmberError(Exception):
    """Base class for every failure an Ember store reports to its caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DuplicateIdentity(EmberError):
    """An email address is already bound to an existing profile."""


class NotFound(EmberError, LookupError):
    """A referenced identity does not exist."""


class AuthenticationFailed(EmberError):
    """No profile matches the supplied credential."""


class EmptyContent(EmberError, ValueError):
    """A post body is blank after trimming."""


class EmptyText(EmberError, ValueError):
    """A message body is blank after trimming."""


class NotParticipant(EmberError, ValueError):
    """A message sender is not one of the conversation's two participants."""


class InternalInconsistency(EmberError):
    """A stored record references an identity that no longer resolves.

    Never surfaced to callers: queries log it and drop the offending record.
    """
