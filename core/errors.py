"""
Relay Error Taxonomy

Every failure surfaced to the HTTP layer is one of four kinds:

    - ConfigurationError: credentials missing; raised before any network call (500)
    - ValidationError:    request fields missing or malformed; raised before any remote call (400)
    - TransportError:     network/DNS/timeout failure talking to the exchange (503)
    - RemoteApiError:     exchange answered with an error body, passed through unchanged

None of them are retried. The FastAPI exception handlers in app.main render
them with `to_response()`.
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """
    Base class for all errors surfaced by the relay.

    Attributes:
        message: Human-readable description
        status_code: HTTP status the error maps to
        body: Remote error payload (decoded JSON or raw text), if any
    """

    kind = "error"
    default_status = 500

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status
        self.body = body

    def to_response(self) -> Dict[str, Any]:
        content: Dict[str, Any] = {
            "success": False,
            "message": self.message,
            "kind": self.kind,
        }
        if self.body is not None:
            content["error"] = self.body
        return content

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class ConfigurationError(RelayError):
    kind = "configuration"
    default_status = 500


class ValidationError(RelayError):
    kind = "validation"
    default_status = 400


class TransportError(RelayError):
    kind = "transport"
    default_status = 503


class RemoteApiError(RelayError):
    """
    Structured rejection from the exchange (bad signature, insufficient margin, ...).

    The status code and body are the exchange's own, e.g.
    status_code=400, body={"code": -2019, "msg": "Margin is insufficient."}
    """

    kind = "remote"
    default_status = 502

    @property
    def exchange_code(self) -> Optional[int]:
        if isinstance(self.body, dict):
            return self.body.get("code")
        return None
