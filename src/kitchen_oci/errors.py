"""Error taxonomy for provisioning and teardown"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import oci


class KitchenOciError(Exception):
    """Base class for every error raised by kitchen_oci"""


class ValidationError(KitchenOciError):
    """Missing or contradictory required request fields"""


class ResolutionError(KitchenOciError):
    """A name lookup found zero or an unresolvable set of candidates"""


class WaitTimeoutError(KitchenOciError, TimeoutError):
    """A lifecycle wait exceeded its budget"""

    def __init__(self, kind: str, identifier: str | None, target: Any, last_state: Any, waited: float) -> None:
        self.kind: str = kind
        self.identifier: str | None = identifier
        self.target: Any = target
        self.last_state: Any = last_state
        self.waited: float = waited
        super().__init__(
            f"Timed out after {waited:.0f}s waiting for {kind} <{identifier}> "
            f"to reach {target}; last state was {last_state}"
        )


class TransportError(KitchenOciError):
    """The OCI client raised while talking to the control plane"""

    def __init__(self, kind: str, identifier: str | None, cause: Exception) -> None:
        self.kind: str = kind
        self.identifier: str | None = identifier
        self.status: int | None = getattr(cause, "status", None)
        self.cause: Exception = cause
        super().__init__(f"{kind} <{identifier}>: {cause.__class__.__name__}: {cause}")


def is_not_found(error: Exception) -> bool:
    """True when the control plane reported the resource as gone"""
    if isinstance(error, TransportError):
        return error.status == 404
    return isinstance(error, oci.exceptions.ServiceError) and error.status == 404


@contextmanager
def translate_errors(kind: str, identifier: str | None = None) -> Iterator[None]:
    """Re-raise OCI client failures as TransportError with resource context"""
    try:
        yield
    except (oci.exceptions.ServiceError, oci.exceptions.ClientError, oci.exceptions.RequestException) as e:
        raise TransportError(kind, identifier, e) from e
