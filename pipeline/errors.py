"""
MRV Pipeline - Error Taxonomy
Exceptions raised by collaborators and stage helpers. Stages never let these
escape; they are converted into `errors` entries on the workflow state.
"""

from typing import Optional


class MRVError(Exception):
    """Base class for pipeline failures."""

    kind = "MRVError"
    retryable = False

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class MissingRecord(MRVError):
    """Farm or season not found. Fatal, never retried."""

    kind = "MissingRecord"


class CollaboratorTimeout(MRVError):
    """An external call exceeded its timeout. Transient."""

    kind = "CollaboratorTimeout"
    retryable = True


class QualityRejected(MRVError):
    """Quality assessment scored below the retry floor."""

    kind = "QualityRejected"


class SignatureMismatch(MRVError):
    """Attestation signature does not verify against the report hash."""

    kind = "SignatureMismatch"


class MintFailure(MRVError):
    """Mint transaction was not confirmed."""

    kind = "MintFailure"


class ConfigError(ValueError):
    """Missing or invalid configuration."""
