from __future__ import annotations


class MissingFieldError(ValueError):
    """A required request value (field key or chosen value) is absent or blank."""


class CreationNotFoundError(ValueError):
    pass
