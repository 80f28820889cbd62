"""Exceptions raised inside the gateway and recovered by the dispatcher."""

from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    kind = "transient_error"

    def __init__(self, message: str, *, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequestError(GatewayError, ValueError):
    """The request cannot be sent as given (bad field, unusable image input)."""

    kind = "client_error"


class ProviderCallError(GatewayError):
    """The provider could not be reached or the call did not complete."""

    kind = "transient_error"
