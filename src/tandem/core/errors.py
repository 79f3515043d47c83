"""
Gateway errors.

Request-level errors (InvalidRequest, MissingCredential, UnsupportedModel)
are raised before any upstream call and turned into a JSON error by the
router. Upstream failures travel through the pipeline as ProviderError
events tagged with the same ``kind`` strings, so the HTTP status for either
path comes from one table.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for everything the gateway reports to a client."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"type": self.kind, "message": self.message}}


class InvalidRequest(GatewayError):
    kind = "invalid_request"
    status_code = 400


class MissingCredential(GatewayError):
    kind = "missing_credential"
    status_code = 401

    def __init__(self, provider: str):
        super().__init__(
            f"Missing API token for provider '{provider}' "
            f"(send header {credential_header(provider)})"
        )
        self.provider = provider


class UnsupportedModel(GatewayError):
    kind = "unsupported_model"
    status_code = 400

    def __init__(self, model: str):
        super().__init__(f"No generation provider configured for model '{model}'")
        self.model = model


class UpstreamTimeout(GatewayError):
    kind = "upstream_timeout"
    status_code = 504


class UpstreamUnreachable(GatewayError):
    kind = "upstream_unreachable"
    status_code = 502


class UpstreamMalformedFrame(GatewayError):
    """One upstream frame matched none of the adapter's decoders."""

    kind = "malformed_frame"
    status_code = 502


class UpstreamFatalError(GatewayError):
    """Upstream rejected the call (auth, quota, bad request, 5xx)."""

    kind = "upstream_error"
    status_code = 502


_STATUS_BY_KIND = {
    cls.kind: cls.status_code
    for cls in (
        GatewayError,
        InvalidRequest,
        MissingCredential,
        UnsupportedModel,
        UpstreamTimeout,
        UpstreamUnreachable,
        UpstreamMalformedFrame,
        UpstreamFatalError,
    )
}


def status_for_kind(kind: str) -> int:
    """HTTP status for an error kind carried by a ProviderError event."""
    return _STATUS_BY_KIND.get(kind, 500)


def credential_header(provider: str) -> str:
    """Request header carrying the API token for ``provider``."""
    special = {"deepseek": "DeepSeek", "openai": "OpenAI"}
    label = special.get(provider.lower(), provider.capitalize())
    return f"X-{label}-API-Token"
