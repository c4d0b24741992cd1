"""
Exception types raised by resource handlers and the hosts that drive them.
"""
from typing import TYPE_CHECKING, List, Optional

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

if TYPE_CHECKING:
    from azprovider.models.schema import Diagnostic


class ProviderError(Exception):
    """Base class for every error surfaced to the user."""


class ResourceIdParseError(ProviderError, ValueError):
    pass


class ConfigValidationError(ProviderError):
    def __init__(self, address: str, diagnostics: List["Diagnostic"]):
        self.address = address
        self.diagnostics = diagnostics
        lines = "\n".join(f"  - {d}" for d in diagnostics)
        super().__init__(f"invalid configuration for {address}:\n{lines}")


class RequiresImportError(ProviderError):
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"A resource with the ID {resource_id!r} already exists - to be managed via "
            f"Terraform this resource needs to be imported into the State. Please see the "
            f"resource documentation for {resource_type!r} for more information."
        )


class InvalidTimeoutError(ProviderError, ValueError):
    pass


class OperationTimeoutError(ProviderError, TimeoutError):
    pass


def response_was_not_found(exc: Optional[BaseException]) -> bool:
    """True when an SDK error means the remote object does not exist."""
    if exc is None:
        return False
    if isinstance(exc, ResourceNotFoundError):
        return True
    if isinstance(exc, HttpResponseError):
        return exc.status_code == 404
    return False


def requires_import_error(resource_type: str, resource_id: str) -> RequiresImportError:
    return RequiresImportError(resource_type, resource_id)
