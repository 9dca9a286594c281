"""Error taxonomy shared by the discovery core."""
from __future__ import annotations


class DataSourceError(RuntimeError):
    """The hosted data service could not be reached or answered with an error."""


class PermissionDeniedError(RuntimeError):
    """The location provider refused to report the viewer's position."""


class InvalidTransitionError(RuntimeError):
    pass


class PayloadError(ValueError):
    pass
