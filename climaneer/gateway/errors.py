"""
Gateway error hierarchy.

Callers catch :class:`GatewayError` to handle every gateway failure; the two
subclasses distinguish "could not talk to the store" from "the store answered
with something that is not JSON".
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for all remote state gateway failures."""


class GatewayTransportError(GatewayError):
    """
    The request did not complete with a 2xx response.

    Covers connection errors, timeouts and HTTP error statuses.

    Attributes
    ----------
    status_code
        HTTP status of the response, or None if no response was received.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GatewayPayloadError(GatewayError):
    """The response body could not be decoded as a JSON document."""
