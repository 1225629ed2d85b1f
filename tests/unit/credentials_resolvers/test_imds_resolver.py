# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

# pyright: reportPrivateUsage=false
import json
import threading
import time
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest

from aws_sdk_core._http import URI
from aws_sdk_core.credentials_resolvers import IMDSCredentialsResolver
from aws_sdk_core.credentials_resolvers.imds import Config, EC2Metadata
from aws_sdk_core.exceptions import (
    CredentialsUnavailableError,
    NoDefaultCredentialsError,
    TransportError,
)
from aws_sdk_core.identity import AWSCredentialIdentity
from aws_sdk_core.testing import MockHTTPClient

ROLE_PATH = "/latest/meta-data/iam/security-credentials/"


def _credentials_body(
    expiration: datetime | None = None, access_key_field: str = "AccessKeyId"
) -> bytes:
    expiration = expiration or datetime.now(UTC) + timedelta(hours=1)
    return json.dumps(
        {
            "Code": "Success",
            "Type": "AWS-HMAC",
            access_key_field: "imds-akid",
            "SecretAccessKey": "imds-secret",
            "Token": "imds-token",
            "Expiration": expiration.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
    ).encode()


def test_config_defaults():
    config = Config()
    assert config.endpoint_uri == URI(scheme="http", host="169.254.169.254")
    assert config.endpoint_mode == "IPv4"
    assert config.ec2_instance_profile_name is None


def test_endpoint_resolution():
    assert Config(endpoint_mode="IPv6").endpoint_uri.host == "[fd00:ec2::254]"
    custom = URI(scheme="http", host="localhost", port=1338)
    assert Config(endpoint_uri=custom, endpoint_mode="IPv6").endpoint_uri == custom


def test_ec2_metadata_get():
    client = MockHTTPClient()
    client.add_response(body=b"some-value")
    metadata = EC2Metadata(client, Config(endpoint_uri=URI(scheme="http", host="md")))

    assert metadata.get(path="/latest/meta-data/thing") == "some-value"

    request = client.captured_requests[0]
    assert request.method == "GET"
    assert request.destination.build() == "http://md/latest/meta-data/thing"
    user_agent = request.fields.get_value("User-Agent")
    assert user_agent is not None
    assert user_agent.startswith("aws-sdk-core-imds-client/")


def test_ec2_metadata_error_status():
    client = MockHTTPClient()
    client.add_response(status=404, body=b"not found")
    with pytest.raises(CredentialsUnavailableError, match="404"):
        EC2Metadata(client).get(path=ROLE_PATH)


def test_ec2_metadata_transport_error():
    client = MockHTTPClient()
    client.add_error(TransportError("connection refused"))
    with pytest.raises(CredentialsUnavailableError):
        EC2Metadata(client).get(path=ROLE_PATH)


def test_resolves_role_then_credentials():
    expiration = datetime(2099, 1, 1, tzinfo=UTC)
    client = MockHTTPClient()
    client.add_response(body=b"my-role\nother-role\n")
    client.add_response(body=_credentials_body(expiration))

    credentials = IMDSCredentialsResolver(http_client=client).get_identity()

    assert credentials.access_key_id == "imds-akid"
    assert credentials.secret_access_key == "imds-secret"
    assert credentials.session_token == "imds-token"
    assert credentials.expiration == expiration
    paths = [request.destination.path for request in client.captured_requests]
    assert paths == [ROLE_PATH, f"{ROLE_PATH}my-role"]


def test_credentials_cached_until_expiration():
    client = MockHTTPClient()
    client.add_response(body=b"my-role")
    client.add_response(body=_credentials_body())
    resolver = IMDSCredentialsResolver(http_client=client)

    first = resolver.get_identity()
    second = resolver.get_identity()

    assert first is second
    assert client.call_count == 2


def test_expired_cache_is_refreshed():
    client = MockHTTPClient()
    client.add_response(body=b"my-role")
    client.add_response(body=_credentials_body())
    client.add_response(body=b"my-role")
    client.add_response(body=_credentials_body(access_key_field="AccessKeyID"))
    resolver = IMDSCredentialsResolver(http_client=client)
    resolver.get_identity()

    resolver._credentials = AWSCredentialIdentity(
        access_key_id="stale",
        secret_access_key="stale",
        expiration=datetime.now(UTC) - timedelta(seconds=1),
    )

    assert resolver.get_identity().access_key_id == "imds-akid"
    assert client.call_count == 4


def test_configured_profile_name_skips_listing():
    client = MockHTTPClient()
    client.add_response(body=_credentials_body())
    resolver = IMDSCredentialsResolver(
        http_client=client, config=Config(ec2_instance_profile_name="fixed")
    )

    resolver.get_identity()

    assert client.call_count == 1
    assert client.captured_requests[0].destination.path == f"{ROLE_PATH}fixed"


def test_empty_role_listing():
    client = MockHTTPClient()
    client.add_response(body=b"")
    with pytest.raises(NoDefaultCredentialsError):
        IMDSCredentialsResolver(http_client=client).get_identity()


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"[1, 2]",
        b'{"AccessKeyId": "a", "SecretAccessKey": "s", "Expiration": "whenever"}',
    ],
)
def test_malformed_credentials(body: bytes):
    client = MockHTTPClient()
    client.add_response(body=b"my-role")
    client.add_response(body=body)
    with pytest.raises(CredentialsUnavailableError, match="Unable to decode"):
        IMDSCredentialsResolver(http_client=client).get_identity()


def test_missing_required_fields():
    client = MockHTTPClient()
    client.add_response(body=b"my-role")
    client.add_response(body=b'{"SecretAccessKey": "s"}')
    with pytest.raises(CredentialsUnavailableError, match="AccessKeyId"):
        IMDSCredentialsResolver(http_client=client).get_identity()


def test_already_expired_credentials():
    client = MockHTTPClient()
    client.add_response(body=b"my-role")
    client.add_response(
        body=_credentials_body(datetime.now(UTC) - timedelta(minutes=5))
    )
    with pytest.raises(CredentialsUnavailableError, match="expired"):
        IMDSCredentialsResolver(http_client=client).get_identity()


def test_concurrent_callers_share_one_fetch():
    client = MockHTTPClient()
    client.add_response(body=b"my-role")
    client.add_response(body=_credentials_body())
    resolver = IMDSCredentialsResolver(http_client=client)
    fetch = resolver._fetch

    def slow_fetch() -> AWSCredentialIdentity:
        time.sleep(0.05)
        return fetch()

    resolver._fetch = Mock(side_effect=slow_fetch)
    barrier = threading.Barrier(8)
    results: list[AWSCredentialIdentity] = []

    def resolve() -> None:
        barrier.wait()
        results.append(resolver.get_identity())

    threads = [threading.Thread(target=resolve) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert resolver._fetch.call_count == 1
    assert client.call_count == 2
    assert len(results) == 8
    assert all(result is results[0] for result in results)
