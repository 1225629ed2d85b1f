# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from http import HTTPStatus
from typing import TYPE_CHECKING, Protocol

from ..exceptions import APIError

if TYPE_CHECKING:
    from ..pipeline import RequestContext


class ClientProtocol(Protocol):
    """A wire protocol that moves typed values onto and off of HTTP messages."""

    def build(self, context: "RequestContext") -> None:
        """Serialize ``context.params`` into ``context.http_request``.

        :raises SerializationError: If a value cannot be encoded.
        """
        ...

    def unmarshal(self, context: "RequestContext") -> None:
        """Deserialize a successful ``context.http_response`` into ``context.result``.

        :raises DeserializationError: If the body is malformed.
        """
        ...

    def unmarshal_error(self, context: "RequestContext") -> APIError:
        """Decode an error response into an :py:class:`APIError`.

        Must not raise for unreadable bodies. An error carrying only the status is
        returned instead.
        """
        ...


def status_error(status_code: int, body: bytes = b"") -> APIError:
    """Build an error for a response whose body could not be decoded."""
    try:
        code = HTTPStatus(status_code).phrase.replace(" ", "")
    except ValueError:
        code = f"HTTP{status_code}"
    message = body.decode("utf-8", errors="replace").strip()
    return APIError(message, code=code, status_code=status_code)
