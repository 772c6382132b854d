from __future__ import annotations


class ValidationError(ValueError):
    """Input breaks a business rule; nothing was written."""


class NotFoundError(ValueError):
    """A referenced record does not exist."""


class ConfirmationRequired(ValueError):
    """The operation is allowed but must be re-submitted with confirm=True."""


class AuthError(ValueError):
    pass


class ImageUploadError(RuntimeError):
    pass
