# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass
from typing import Any
from unittest.mock import MagicMock

import pytest

from aws_sdk_core.client import ServiceClient, ServiceMetadata
from aws_sdk_core.config import Config
from aws_sdk_core.credentials_resolvers import StaticCredentialsResolver
from aws_sdk_core.exceptions import (
    APIError,
    CredentialsUnavailableError,
    MissingExpectedParameterError,
    TransportError,
)
from aws_sdk_core.identity import AWSCredentialIdentity
from aws_sdk_core.pipeline import NamedStage, RequestContext
from aws_sdk_core.prelude import INTEGER, STRING
from aws_sdk_core.protocols.awsjson import AWSJSONClientProtocol
from aws_sdk_core.protocols.query import AWSQueryClientProtocol
from aws_sdk_core.retries import ExponentialBackoffJitterType as EBJT
from aws_sdk_core.retries import ExponentialRetryBackoffStrategy
from aws_sdk_core.schemas import MemberSchema, OperationDescriptor, Schema
from aws_sdk_core.testing import MockHTTPClient

CREDENTIALS = AWSCredentialIdentity(
    access_key_id="AKIDEXAMPLE",
    secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
    session_token="session",
)


@dataclass
class GetQueueInput:
    queue_name: str | None = None


@dataclass
class GetQueueOutput:
    queue_url: str | None = None
    count: int | None = None


GET_QUEUE = OperationDescriptor(
    name="GetQueueUrl",
    input_schema=Schema.structure(
        name="GetQueueUrlRequest",
        shape_class=GetQueueInput,
        members=[
            MemberSchema(name="queue_name", target=STRING, location_name="QueueName")
        ],
    ),
    output_schema=Schema.structure(
        name="GetQueueUrlResult",
        shape_class=GetQueueOutput,
        members=[
            MemberSchema(name="queue_url", target=STRING, location_name="QueueUrl"),
            MemberSchema(name="count", target=INTEGER, location_name="Count"),
        ],
    ),
)

SUCCESS_BODY = b"""\
<GetQueueUrlResponse>
  <GetQueueUrlResult><QueueUrl>https://queue/q</QueueUrl></GetQueueUrlResult>
  <ResponseMetadata><RequestId>req-ok</RequestId></ResponseMetadata>
</GetQueueUrlResponse>
"""

ERROR_BODY = b"""\
<ErrorResponse>
  <Error><Type>Receiver</Type><Code>InternalError</Code><Message>oops</Message></Error>
  <RequestId>req-err</RequestId>
</ErrorResponse>
"""

METADATA = ServiceMetadata(signing_name="sqs")


def _client(
    http_client: MockHTTPClient,
    sleeps: list[float] | None = None,
    **config: Any,
) -> ServiceClient:
    config.setdefault("region", "us-west-2")
    config.setdefault(
        "credentials_resolver", StaticCredentialsResolver(credentials=CREDENTIALS)
    )
    config.setdefault(
        "retry_backoff_strategy",
        ExponentialRetryBackoffStrategy(backoff_scale_value=1, jitter_type=EBJT.NONE),
    )
    return ServiceClient(
        metadata=METADATA,
        protocol=AWSQueryClientProtocol(api_version="2012-11-05"),
        config=Config(
            http_client=http_client,
            sleep=(sleeps if sleeps is not None else []).append,
            **config,
        ),
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("AWS_REGION", "AWS_DEFAULT_REGION", "AWS_ENDPOINT_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("AWS_MAX_ATTEMPTS", raising=False)


def test_invoke_success() -> None:
    http_client = MockHTTPClient()
    http_client.add_response(body=SUCCESS_BODY)
    client = _client(http_client, user_agent_extra="my-app/1.0")

    result = client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    assert result == GetQueueOutput(queue_url="https://queue/q")
    request = http_client.captured_requests[0]
    assert request.method == "POST"
    assert request.destination.build() == "https://sqs.us-west-2.amazonaws.com/"
    assert request.body == b"Action=GetQueueUrl&QueueName=q&Version=2012-11-05"
    fields = request.fields
    assert fields.get_value("Content-Length") == str(len(request.body))
    assert fields.get_value("Host") == "sqs.us-west-2.amazonaws.com"
    assert fields.get_value("X-Amz-Security-Token") == "session"
    assert fields.get_value("X-Amz-Date") is not None
    user_agent = fields.get_value("User-Agent")
    assert user_agent is not None
    assert user_agent.startswith("aws-sdk-core/")
    assert user_agent.endswith(" my-app/1.0")
    authorization = fields.get_value("Authorization")
    assert authorization is not None
    assert authorization.startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
    assert "/us-west-2/sqs/aws4_request" in authorization
    assert "content-length;content-type;host;user-agent;" in authorization


def test_retries_until_max_retries() -> None:
    http_client = MockHTTPClient()
    for _ in range(3):
        http_client.add_response(status=500, body=ERROR_BODY)
    sleeps: list[float] = []
    client = _client(http_client, sleeps, max_retries=2)

    with pytest.raises(APIError) as exc_info:
        client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    error = exc_info.value
    assert http_client.call_count == 3
    assert error.code == "InternalError"
    assert error.status_code == 500
    assert error.request_id == "req-err"
    assert error.retryable
    assert error.retry_count == 2
    assert sleeps == [1.0, 2.0]


def test_retry_then_success() -> None:
    http_client = MockHTTPClient()
    http_client.add_response(status=503, body=b"")
    http_client.add_response(body=SUCCESS_BODY)
    sleeps: list[float] = []
    client = _client(http_client, sleeps)

    result = client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    assert result.queue_url == "https://queue/q"
    assert http_client.call_count == 2
    assert sleeps == [1.0]
    first, second = http_client.captured_requests
    assert first is not second
    assert second.fields.get_value("Authorization") is not None


def test_non_retryable_error() -> None:
    http_client = MockHTTPClient()
    http_client.add_response(
        status=400,
        body=(
            b"<ErrorResponse><Error><Code>QueueDoesNotExist</Code>"
            b"<Message>missing</Message></Error></ErrorResponse>"
        ),
    )
    client = _client(http_client)

    with pytest.raises(APIError) as exc_info:
        client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    assert exc_info.value.code == "QueueDoesNotExist"
    assert not exc_info.value.retryable
    assert http_client.call_count == 1


def test_transport_errors_are_not_retried() -> None:
    http_client = MockHTTPClient()
    http_client.add_error(ConnectionResetError("reset"))
    client = _client(http_client)

    with pytest.raises(TransportError) as exc_info:
        client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    assert isinstance(exc_info.value.__cause__, ConnectionResetError)
    assert http_client.call_count == 1


def test_credential_errors_abort_before_sending() -> None:
    resolver = MagicMock()
    resolver.get_identity.side_effect = CredentialsUnavailableError("none")
    http_client = MockHTTPClient()
    client = _client(http_client, credentials_resolver=resolver)

    with pytest.raises(CredentialsUnavailableError):
        client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    assert http_client.call_count == 0


def test_max_attempts_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_MAX_ATTEMPTS", "2")
    http_client = MockHTTPClient()
    http_client.add_response(status=500, body=ERROR_BODY)
    http_client.add_response(status=500, body=ERROR_BODY)
    client = _client(http_client)

    with pytest.raises(APIError):
        client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    assert http_client.call_count == 2


def test_region_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    client = _client(MockHTTPClient(), region=None)
    assert client.endpoint.host == "sqs.eu-west-1.amazonaws.com"


def test_missing_region() -> None:
    with pytest.raises(MissingExpectedParameterError):
        _client(MockHTTPClient(), region=None)


@pytest.mark.parametrize(
    "endpoint_url, disable_ssl, expected",
    [
        ("http://localhost:4566", False, "http://localhost:4566/"),
        ("localhost:4566", True, "http://localhost:4566/"),
        ("https://proxy.example.com/base/", False, "https://proxy.example.com/base/"),
    ],
)
def test_endpoint_override(
    endpoint_url: str, disable_ssl: bool, expected: str
) -> None:
    http_client = MockHTTPClient()
    http_client.add_response(body=SUCCESS_BODY)
    client = _client(http_client, endpoint_url=endpoint_url, disable_ssl=disable_ssl)

    client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    assert http_client.captured_requests[0].destination.build() == expected


def test_custom_stage() -> None:
    http_client = MockHTTPClient()
    http_client.add_response(body=SUCCESS_BODY)
    client = _client(http_client)

    def add_header(context: RequestContext) -> None:
        context.request.fields.set_value("X-Custom", "yes")

    client.pipeline.build.add_after(NamedStage("custom", add_header), "user_agent")
    client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    request = http_client.captured_requests[0]
    assert request.fields.get_value("X-Custom") == "yes"
    authorization = request.fields.get_value("Authorization")
    assert authorization is not None
    assert ";x-amz-security-token" not in authorization
    assert "user-agent;x-amz-content-sha256;x-amz-date;x-custom" in authorization


def test_per_call_pipeline() -> None:
    http_client = MockHTTPClient()
    http_client.add_response(body=SUCCESS_BODY)
    client = _client(http_client)
    pipeline = client.copy_pipeline()
    pipeline.unmarshal.remove("codec_unmarshal")

    assert client.invoke(GET_QUEUE, GetQueueInput(), pipeline=pipeline) is None
    assert client.pipeline.unmarshal.names == ["codec_unmarshal"]


def test_json_client() -> None:
    http_client = MockHTTPClient()
    http_client.add_response(
        headers=[("x-amzn-RequestId", "req-json")],
        body=b'{"QueueUrl": "https://queue/q", "Count": 4}',
    )
    client = ServiceClient(
        metadata=ServiceMetadata(signing_name="sqs"),
        protocol=AWSJSONClientProtocol(target_prefix="AmazonSQS", json_version="1.0"),
        config=Config(
            region="us-east-1",
            http_client=http_client,
            credentials_resolver=StaticCredentialsResolver(credentials=CREDENTIALS),
        ),
    )

    result = client.invoke(GET_QUEUE, GetQueueInput(queue_name="q"))

    assert result == GetQueueOutput(queue_url="https://queue/q", count=4)
    request = http_client.captured_requests[0]
    assert request.body == b'{"QueueName":"q"}'
    assert request.fields.get_value("X-Amz-Target") == "AmazonSQS.GetQueueUrl"
