"""Error taxonomy shared by the pipeline and its collaborators."""


class DigestError(Exception):
    """Base class for digestbot errors."""


class InvalidRequest(DigestError):
    """Bad caller input; raised before any state is written."""


class UpstreamUnavailable(DigestError):
    """Listing or detail service failed (transport error, bad status, missing data)."""


class NotFound(UpstreamUnavailable):
    """The upstream could not resolve the requested id."""


class ModelUnavailable(DigestError):
    """Inference call failed at the transport level."""


class PersistenceError(DigestError):
    """Store operation failed; fatal to the enclosing request."""
