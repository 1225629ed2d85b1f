# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""A blocking :py:class:`HTTPClient` built on the AWS Common Runtime."""

import logging
from collections import defaultdict
from concurrent.futures import TimeoutError as FutureTimeoutError
from io import BytesIO
from threading import Lock
from typing import Any, Final, TypeAlias

from awscrt import http as crt_http
from awscrt import io as crt_io
from awscrt.exceptions import AwsCrtError

from ._http import AWSResponse, tuples_to_fields
from .exceptions import TransportError
from .interfaces.http import HTTPClient, Request
from .interfaces.io import ByteStream

logger: Final = logging.getLogger(__name__)

HeadersList: TypeAlias = list[tuple[str, str]]
ConnectionPoolKey: TypeAlias = tuple[str, str, int]


def _default_bootstrap() -> crt_io.ClientBootstrap:
    event_loop_group = crt_io.EventLoopGroup(1)
    host_resolver = crt_io.DefaultHostResolver(event_loop_group)
    return crt_io.ClientBootstrap(event_loop_group, host_resolver)


class _CRTResponse:
    """Collects the status, headers and body chunks of a stream."""

    def __init__(self) -> None:
        self.status = 0
        self.headers: HeadersList = []
        self._chunks: list[bytes] = []
        self._chunk_lock = Lock()

    @property
    def body(self) -> bytes:
        with self._chunk_lock:
            return b"".join(self._chunks)

    def on_response(
        self, status_code: int, headers: HeadersList, **kwargs: Any
    ) -> None:
        self.status = status_code
        self.headers = list(headers)

    def on_body(self, chunk: bytes, **kwargs: Any) -> None:
        with self._chunk_lock:
            self._chunks.append(chunk)


class AWSCRTHTTPClient(HTTPClient):
    """Sends requests over HTTP/1.1 connections kept in a simple idle pool."""

    _HTTP_PORT = 80
    _HTTPS_PORT = 443

    def __init__(
        self,
        *,
        bootstrap: crt_io.ClientBootstrap | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        :param bootstrap: The event loop and host resolver to connect with.
        :param timeout: Seconds to wait for a connection or a complete response.
        """
        self._bootstrap = bootstrap or _default_bootstrap()
        self._timeout = timeout
        self._tls_ctx = crt_io.ClientTlsContext(crt_io.TlsContextOptions())
        self._socket_options = crt_io.SocketOptions()
        self._idle: defaultdict[
            ConnectionPoolKey, list[crt_http.HttpClientConnection]
        ] = defaultdict(list)
        self._pool_lock = Lock()

    def send(self, request: Request) -> AWSResponse:
        """Send ``request`` and wait for the full response.

        :raises TransportError: If the connection or the exchange fails.
        """
        key = self._pool_key(request)
        connection: crt_http.HttpClientConnection | None = None
        completed = False
        try:
            connection = self._get_connection(key)
            crt_request = self._marshal_request(request)
            response = _CRTResponse()
            stream = connection.request(
                crt_request, response.on_response, response.on_body
            )
            stream.activate()
            stream.completion_future.result(self._timeout)
            completed = True
        except AwsCrtError as e:
            raise TransportError(f"{e.name}: {e.message}") from e
        except FutureTimeoutError as e:
            raise TransportError(
                f"Timed out after {self._timeout} seconds waiting for a response."
            ) from e
        finally:
            # A connection with an unfinished exchange can't be reused.
            if connection is not None and not completed:
                logger.debug("Closing connection to %s://%s:%s", *key)
                connection.close()

        self._release_connection(key, connection)
        return AWSResponse(
            status=response.status,
            fields=tuples_to_fields(response.headers),
            body=response.body,
        )

    def _pool_key(self, request: Request) -> ConnectionPoolKey:
        destination = request.destination
        if not destination.host:
            raise TransportError(f"Invalid host name: {destination.host!r}")
        port = destination.port
        if port is None:
            port = self._HTTP_PORT if destination.scheme == "http" else self._HTTPS_PORT
        return (destination.scheme, destination.host, port)

    def _get_connection(
        self, key: ConnectionPoolKey
    ) -> crt_http.HttpClientConnection:
        with self._pool_lock:
            idle = self._idle[key]
            while idle:
                connection = idle.pop()
                if connection.is_open():
                    return connection
        return self._create_connection(key)

    def _release_connection(
        self, key: ConnectionPoolKey, connection: crt_http.HttpClientConnection
    ) -> None:
        if connection.is_open():
            with self._pool_lock:
                self._idle[key].append(connection)

    def _create_connection(
        self, key: ConnectionPoolKey
    ) -> crt_http.HttpClientConnection:
        scheme, host, port = key
        tls_connection_options = None
        if scheme != "http":
            tls_connection_options = self._tls_ctx.new_connection_options()
            tls_connection_options.set_server_name(host)
            tls_connection_options.set_alpn_list(["http/1.1"])

        logger.debug("Opening connection to %s://%s:%s", scheme, host, port)
        connect_future = crt_http.HttpClientConnection.new(
            bootstrap=self._bootstrap,
            host_name=host,
            port=port,
            socket_options=self._socket_options,
            tls_connection_options=tls_connection_options,
        )
        return connect_future.result(self._timeout)

    def _render_path(self, request: Request) -> str:
        destination = request.destination
        path = destination.path or "/"
        if destination.query:
            path = f"{path}?{destination.query}"
        return path

    def _marshal_request(self, request: Request) -> crt_http.HttpRequest:
        headers = crt_http.HttpHeaders()
        for field in request.fields:
            for name, value in field.as_tuples():
                headers.add(name, value)

        return crt_http.HttpRequest(
            method=request.method,
            path=self._render_path(request),
            headers=headers,
            body_stream=self._body_stream(request.body),
        )

    def _body_stream(self, body: Any) -> BytesIO | None:
        match body:
            case None:
                return None
            case bytes() | bytearray():
                return BytesIO(body)
            case ByteStream():
                return BytesIO(body.read())
            case _:
                return BytesIO(b"".join(body))
