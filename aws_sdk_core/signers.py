# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import hmac
import io
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from hashlib import sha256
from typing import Final, Required, TypedDict
from urllib.parse import parse_qsl, quote

from ._http import URI, AWSRequest, Field
from .exceptions import MissingExpectedParameterError, SigningError
from .interfaces.identity import AWSCredentialsIdentity
from .interfaces.io import ByteStream, Seekable
from .utils import clean_path

logger: Final = logging.getLogger(__name__)

DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
SIGV4_ALGORITHM: str = "AWS4-HMAC-SHA256"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    service: Required[str]


class SigV4Signer:
    """Request signer for applying the AWS Signature Version 4 algorithm."""

    def sign(
        self,
        *,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
        properties: SigV4SigningProperties,
    ) -> AWSRequest:
        """Sign the supplied request in place and return it.

        Sets the ``Host``, ``X-Amz-Content-Sha256``, ``Authorization`` and, when
        needed, ``X-Amz-Date`` and ``X-Amz-Security-Token`` headers.

        :param request: The request to sign prior to sending it to the service.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity.
        :param properties: The region and service to scope the signature to.
        :raises SigningError: If the body could not be read.
        """
        self._validate_identity(identity=identity)
        self._validate_properties(properties=properties)
        fields = request.fields
        for stale in ("Authorization", "X-Amz-Security-Token"):
            if stale in fields:
                del fields[stale]

        fields.set_field(
            Field(name="Host", values=[self._normalize_host_field(request.destination)])
        )
        payload_hash = self._compute_payload_hash(request=request)
        fields.set_field(Field(name="X-Amz-Content-Sha256", values=[payload_hash]))
        timestamp = self._resolve_request_time(request=request)

        canonical_request = self.canonical_request(
            request=request, payload_hash=payload_hash
        )
        logger.debug("Calculated canonical request:\n%s", canonical_request)
        scope = self._scope(timestamp=timestamp, properties=properties)
        string_to_sign = self.string_to_sign(
            canonical_request=canonical_request, timestamp=timestamp, scope=scope
        )
        signature = self._signature(
            string_to_sign=string_to_sign,
            secret_key=identity.secret_access_key,
            timestamp=timestamp,
            properties=properties,
        )

        fields.set_field(
            self.generate_authorization_field(
                credential=f"{identity.access_key_id}/{scope}",
                signed_headers=self.signed_headers(request=request),
                signature=signature,
            )
        )
        if identity.session_token:
            fields.set_field(
                Field(name="X-Amz-Security-Token", values=[identity.session_token])
            )
        return request

    def generate_authorization_field(
        self, *, credential: str, signed_headers: str, signature: str
    ) -> Field:
        """Generate the `Authorization` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<date>/<region>/<service>/aws4_request
        :param signed_headers:
            The ``;`` separated field names used in signing.
        :param signature:
            Final hash of the SigV4 signing algorithm generated from the
            canonical request and string to sign.
        """
        auth_str = (
            f"{SIGV4_ALGORITHM} Credential={credential}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        return Field(name="Authorization", values=[auth_str])

    def canonical_request(self, *, request: AWSRequest, payload_hash: str) -> str:
        """The canonical request is a standardized string laying out the components used
        in the SigV4 signing algorithm. This is useful to quickly compare inputs to find
        signature mismatches and unintended variances.

        SigV4 defines the canonical request as:
            <HTTPMethod>\n
            <CanonicalURI>\n
            <CanonicalQueryString>\n
            <CanonicalHeaders>\n
            <SignedHeaders>\n
            <HashedPayload>
        """
        return (
            f"{request.method.upper()}\n"
            f"{self._format_canonical_path(path=request.destination.path)}\n"
            f"{self._format_canonical_query(query=request.destination.query)}\n"
            f"{self.canonical_headers(request=request)}\n"
            f"{self.signed_headers(request=request)}\n"
            f"{payload_hash}"
        )

    def string_to_sign(
        self, *, canonical_request: str, timestamp: str, scope: str
    ) -> str:
        """SigV4 defines the string to sign as:
        Algorithm \n
        RequestDateTime \n
        CredentialScope  \n
        HashedCanonicalRequest
        """
        return (
            f"{SIGV4_ALGORITHM}\n"
            f"{timestamp}\n"
            f"{scope}\n"
            f"{sha256(canonical_request.encode()).hexdigest()}"
        )

    def canonical_headers(self, *, request: AWSRequest) -> str:
        """Lower-cased ``name:value`` lines sorted by name, each ending in a newline.

        Values are trimmed, runs of whitespace are collapsed to one space, and multiple
        values are joined with commas.
        """
        fields = self._normalize_signing_fields(request=request)
        return "".join(f"{name}:{value}\n" for name, value in fields.items())

    def signed_headers(self, *, request: AWSRequest) -> str:
        """Sorted lower-cased header names joined with ``;``."""
        return ";".join(self._normalize_signing_fields(request=request))

    def _signature(
        self,
        *,
        string_to_sign: str,
        secret_key: str,
        timestamp: str,
        properties: SigV4SigningProperties,
    ) -> str:
        # DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
        # DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
        # DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
        # SigningKey = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")
        k_date = self._hash(key=f"AWS4{secret_key}".encode(), value=timestamp[0:8])
        k_region = self._hash(key=k_date, value=properties["region"])
        k_service = self._hash(key=k_region, value=properties["service"])
        k_signing = self._hash(key=k_service, value="aws4_request")

        return self._hash(key=k_signing, value=string_to_sign).hex()

    def _hash(self, key: bytes, value: str) -> bytes:
        return hmac.new(key=key, msg=value.encode(), digestmod=sha256).digest()

    def _validate_identity(self, *, identity: AWSCredentialsIdentity) -> None:
        if not isinstance(identity, AWSCredentialsIdentity):
            raise SigningError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        elif identity.is_expired:
            raise SigningError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _validate_properties(self, *, properties: SigV4SigningProperties) -> None:
        for key in ("region", "service"):
            if not properties.get(key):
                raise MissingExpectedParameterError(
                    f"Cannot sign a request without a {key} in the signing properties."
                )

    def _scope(self, *, timestamp: str, properties: SigV4SigningProperties) -> str:
        # Scope format: <YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request
        region, service = properties["region"], properties["service"]
        return f"{timestamp[0:8]}/{region}/{service}/aws4_request"

    def _resolve_request_time(self, *, request: AWSRequest) -> str:
        """Find the signing time in the request's headers, adding one if absent.

        Checked in order: ``X-Amz-Date`` in basic format, ``X-Amz-Date`` in HTTP date
        format (rewritten to basic format), ``Date`` in HTTP date format, then the
        current time, which is written to ``X-Amz-Date``.
        """
        fields = request.fields
        if (amz_date := fields.get_value("X-Amz-Date")) is not None:
            try:
                datetime.strptime(amz_date, SIGV4_TIMESTAMP_FORMAT)
                return amz_date
            except ValueError:
                pass
            if (parsed := _parse_http_date(amz_date)) is not None:
                timestamp = parsed.strftime(SIGV4_TIMESTAMP_FORMAT)
                fields.set_field(Field(name="X-Amz-Date", values=[timestamp]))
                return timestamp

        if (date := fields.get_value("Date")) is not None:
            if (parsed := _parse_http_date(date)) is not None:
                return parsed.strftime(SIGV4_TIMESTAMP_FORMAT)

        timestamp = datetime.now(UTC).strftime(SIGV4_TIMESTAMP_FORMAT)
        fields.set_field(Field(name="X-Amz-Date", values=[timestamp]))
        return timestamp

    def _format_canonical_path(self, *, path: str | None) -> str:
        # Paths are already in wire form, so existing escapes are kept as-is.
        return quote(clean_path(path or "/"), safe="/%")

    def _format_canonical_query(self, *, query: str | None) -> str:
        if not query:
            return ""

        query_params = parse_qsl(qs=query, keep_blank_values=True)
        query_parts = (
            (quote(string=key, safe=""), quote(string=value, safe=""))
            for key, value in query_params
        )
        # key-value pairs must be in sorted order for their encoded forms.
        return "&".join(f"{key}={value}" for key, value in sorted(query_parts))

    def _normalize_signing_fields(self, *, request: AWSRequest) -> dict[str, str]:
        normalized_fields = {
            field.name.lower(): ",".join(" ".join(val.split()) for val in field.values)
            for field in request.fields
        }
        return dict(sorted(normalized_fields.items()))

    def _normalize_host_field(self, uri: URI) -> str:
        if uri.port is not None and DEFAULT_PORTS.get(uri.scheme) == uri.port:
            return uri.host
        return uri.netloc

    def _compute_payload_hash(self, *, request: AWSRequest) -> str:
        body = request.body
        if body is None:
            return EMPTY_SHA256_HASH
        if isinstance(body, bytes | bytearray):
            return sha256(body).hexdigest()

        checksum = sha256()
        try:
            if isinstance(body, ByteStream) and isinstance(body, Seekable):
                position = body.tell()
                checksum.update(body.read())
                body.seek(position)
            elif isinstance(body, ByteStream):
                buffer = io.BytesIO(body.read())
                checksum.update(buffer.getvalue())
                request.body = buffer
            elif isinstance(body, Iterable):
                # Single-read iterables are buffered so the transport still sees them.
                buffer = io.BytesIO()
                for chunk in body:
                    buffer.write(chunk)
                    checksum.update(chunk)
                buffer.seek(0)
                request.body = buffer
            else:
                raise SigningError(
                    f"Unable to read request body of type {type(body).__name__}."
                )
        except OSError as e:
            raise SigningError(f"Unable to read request body: {e}") from e
        return checksum.hexdigest()


def _parse_http_date(value: str) -> datetime | None:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
