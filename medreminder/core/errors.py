"""Credential and identity error taxonomy.

Validation of session tokens and ephemeral codes does not raise these for
the ordinary "invalid" outcome; those paths return ``None``. An expired
token or code is indistinguishable from an unknown one. The exceptions
cover operations that cannot proceed at all (unknown user, identity already
claimed, missing credential at a boundary).
"""


class CredentialError(Exception):
    """Base class for session, code and identity failures."""


class NotFoundError(CredentialError):
    """The referenced user, token or code does not exist."""


class ConflictError(CredentialError):
    """An external identity is already linked to a different user."""


class UnauthenticatedError(CredentialError):
    """A boundary received no credential, or one that failed validation."""


class CodeGenerationError(CredentialError):
    """Could not generate a unique code after several attempts."""
