# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import json
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any, Final, Literal

from .. import __version__
from .._http import URI, AWSRequest, Field, Fields
from ..exceptions import (
    AWSSDKError,
    CredentialsUnavailableError,
    NoDefaultCredentialsError,
)
from ..identity import AWSCredentialIdentity
from ..interfaces.http import HTTPClient
from ..interfaces.identity import CredentialsResolver
from ..utils import parse_timestamp

logger: Final = logging.getLogger(__name__)

_USER_AGENT: Final = f"aws-sdk-core-imds-client/{__version__}"


@dataclass(init=False)
class Config:
    """Configuration for EC2Metadata."""

    _HOST_MAPPING = MappingProxyType(
        {"IPv4": "169.254.169.254", "IPv6": "[fd00:ec2::254]"}
    )

    endpoint_uri: URI
    endpoint_mode: Literal["IPv4", "IPv6"]
    ec2_instance_profile_name: str | None

    def __init__(
        self,
        *,
        endpoint_uri: URI | None = None,
        endpoint_mode: Literal["IPv4", "IPv6"] = "IPv4",
        ec2_instance_profile_name: str | None = None,
    ):
        self.endpoint_mode = endpoint_mode
        self.endpoint_uri = self._resolve_endpoint(endpoint_uri, endpoint_mode)
        self.ec2_instance_profile_name = ec2_instance_profile_name

    def _resolve_endpoint(
        self, endpoint_uri: URI | None, endpoint_mode: Literal["IPv4", "IPv6"]
    ) -> URI:
        if endpoint_uri is not None:
            return endpoint_uri

        return URI(
            scheme="http",
            host=self._HOST_MAPPING.get(endpoint_mode, self._HOST_MAPPING["IPv4"]),
        )


class EC2Metadata:
    """Minimal client for the EC2 instance metadata service."""

    def __init__(self, http_client: HTTPClient, config: Config | None = None):
        self._http_client = http_client
        self._config = config or Config()

    def get(self, *, path: str) -> str:
        """Fetch a metadata path and return the body as text.

        :raises CredentialsUnavailableError: If the request failed or the service
            returned a non-success status.
        """
        endpoint = self._config.endpoint_uri
        request = AWSRequest(
            method="GET",
            destination=URI(
                scheme=endpoint.scheme,
                host=endpoint.host,
                port=endpoint.port,
                path=path,
            ),
            fields=Fields([Field(name="User-Agent", values=[_USER_AGENT])]),
        )
        try:
            response = self._http_client.send(request)
        except AWSSDKError as e:
            raise CredentialsUnavailableError(
                f"Unable to reach instance metadata at {path}: {e}"
            ) from e
        if not 200 <= response.status < 300:
            raise CredentialsUnavailableError(
                f"Instance metadata request for {path} failed with status "
                f"{response.status}"
            )
        return response.body.decode("utf-8")


class IMDSCredentialsResolver(CredentialsResolver):
    """Resolves AWS Credentials from an EC2 Instance Metadata Service (IMDS) client.

    The role name is read first, then the role's credentials. They are cached until
    the expiration the service reports.
    """

    _METADATA_PATH_BASE = "/latest/meta-data/iam/security-credentials/"

    def __init__(self, http_client: HTTPClient, config: Config | None = None):
        self._config = config or Config()
        self._ec2_metadata_client = EC2Metadata(
            http_client=http_client, config=self._config
        )
        self._refresh_lock = threading.Lock()
        self._credentials: AWSCredentialIdentity | None = None

    def get_identity(self) -> AWSCredentialIdentity:
        credentials = self._credentials
        if credentials is not None and not credentials.is_expired:
            return credentials

        with self._refresh_lock:
            # Another thread may have refreshed while this one waited on the lock.
            credentials = self._credentials
            if credentials is not None and not credentials.is_expired:
                return credentials
            self._credentials = self._fetch()
            return self._credentials

    def _fetch(self) -> AWSCredentialIdentity:
        profile = self._config.ec2_instance_profile_name
        if profile is None:
            listing = self._ec2_metadata_client.get(path=self._METADATA_PATH_BASE)
            lines = listing.splitlines()
            profile = lines[0].strip() if lines else ""
            if not profile:
                raise NoDefaultCredentialsError(
                    "No IAM role is associated with this instance."
                )

        logger.debug("Fetching instance metadata credentials for role %s.", profile)
        creds_str = self._ec2_metadata_client.get(
            path=f"{self._METADATA_PATH_BASE}{profile}"
        )
        try:
            creds: Any = json.loads(creds_str)
            if not isinstance(creds, dict):
                raise ValueError("expected a JSON object")
            expiration = creds.get("Expiration")
            if expiration is not None:
                expiration = parse_timestamp(expiration)
        except (ValueError, AWSSDKError) as e:
            raise CredentialsUnavailableError(
                f"Unable to decode {profile} IAM credentials: {e}"
            ) from e

        # The service spells this AccessKeyId; AccessKeyID is accepted as well.
        access_key_id = creds.get("AccessKeyId") or creds.get("AccessKeyID")
        secret_access_key = creds.get("SecretAccessKey")
        if not access_key_id or not secret_access_key:
            raise CredentialsUnavailableError(
                "AccessKeyId and SecretAccessKey are required"
            )
        if expiration is not None and expiration <= datetime.now(UTC):
            raise CredentialsUnavailableError(
                f"Instance metadata returned credentials that expired at {expiration}"
            )

        return AWSCredentialIdentity(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=creds.get("Token"),
            expiration=expiration,
        )
