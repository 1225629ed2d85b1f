# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from aws_sdk_core.credentials_resolvers import (
    ChainedCredentialsResolver,
    StaticCredentialsResolver,
    create_default_chain,
)
from aws_sdk_core.exceptions import (
    CredentialsUnavailableError,
    NoDefaultCredentialsError,
)
from aws_sdk_core.identity import AWSCredentialIdentity
from aws_sdk_core.testing import MockHTTPClient

STATIC = AWSCredentialIdentity(access_key_id="static", secret_access_key="secret")


def _unavailable() -> MagicMock:
    resolver = MagicMock()
    resolver.get_identity.side_effect = CredentialsUnavailableError("nope")
    return resolver


def test_static_resolver():
    assert StaticCredentialsResolver(credentials=STATIC).get_identity() is STATIC


def test_chain_returns_first_available():
    first = _unavailable()
    chain = ChainedCredentialsResolver(
        [first, StaticCredentialsResolver(credentials=STATIC), _unavailable()]
    )
    assert chain.get_identity() is STATIC
    first.get_identity.assert_called_once()


def test_chain_exhausted():
    chain = ChainedCredentialsResolver([_unavailable(), _unavailable()])
    with pytest.raises(CredentialsUnavailableError):
        chain.get_identity()


def test_chain_propagates_other_errors():
    broken = MagicMock()
    broken.get_identity.side_effect = RuntimeError("bug")
    chain = ChainedCredentialsResolver(
        [broken, StaticCredentialsResolver(credentials=STATIC)]
    )
    with pytest.raises(RuntimeError):
        chain.get_identity()


def test_chain_skips_missing_instance_role():
    imds = MagicMock()
    imds.get_identity.side_effect = NoDefaultCredentialsError("no role")
    chain = ChainedCredentialsResolver([imds])
    with pytest.raises(CredentialsUnavailableError):
        chain.get_identity()


def test_default_chain_prefers_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "env-akid")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "env-secret")
    client = MockHTTPClient()

    credentials = create_default_chain(client).get_identity()

    assert credentials.access_key_id == "env-akid"
    assert client.call_count == 0


def test_default_chain_falls_back_to_imds(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
):
    for name in (
        "AWS_ACCESS_KEY_ID",
        "AWS_ACCESS_KEY",
        "AWS_SECRET_ACCESS_KEY",
        "AWS_SECRET_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    client = MockHTTPClient()
    client.add_response(body=b"role")
    client.add_response(
        body=b'{"AccessKeyId": "imds-akid", "SecretAccessKey": "imds-secret"}'
    )

    credentials = create_default_chain(client).get_identity()

    assert credentials.access_key_id == "imds-akid"
    assert client.call_count == 2
