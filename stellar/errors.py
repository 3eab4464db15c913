"""Errors raised while provisioning functions for an experiment.

Every error aborts the whole provisioning run. `UserDeclined` is the only
neutral outcome: the user chose not to continue after a threshold warning.
"""

from contextlib import contextmanager
from typing import Iterator, Optional


class ProvisioningError(Exception):
    """Base class of all provisioning errors."""

    pass


class UserDeclined(ProvisioningError):
    """The user declined to continue after a threshold warning."""

    def __init__(self, index: int, reason: str):
        super().__init__(f"Provisioning stopped by the user at experiment {index}: {reason}")
        self.index = index
        self.reason = reason


class UnsupportedPackagingKind(ProvisioningError):
    def __init__(self, package_type: str, index: Optional[int] = None):
        if index is None:
            message = f"Package type {package_type} is not supported"
        else:
            message = f"Package type {package_type} of experiment {index} is not supported"
        super().__init__(message)
        self.package_type = package_type
        self.index = index


class UnsupportedProvider(ProvisioningError):
    def __init__(self, provider: str, operation: str):
        super().__init__(f"{operation} for provider {provider} is not supported")
        self.provider = provider
        self.operation = operation


class CollaboratorFailure(ProvisioningError):
    """
    An external collaborator (build, packaging, endpoint service, deploy
    invocation) failed. The original exception is chained as `__cause__`.
    """

    def __init__(self, collaborator: str, message: str):
        super().__init__(f"{collaborator} failed: {message}")
        self.collaborator = collaborator


@contextmanager
def collaborator_call(collaborator: str) -> Iterator[None]:
    """
    Convert any non-provisioning exception raised inside the block
    into a `CollaboratorFailure` naming the collaborator.
    """
    try:
        yield
    except ProvisioningError:
        raise
    except Exception as e:
        raise CollaboratorFailure(collaborator, str(e)) from e
