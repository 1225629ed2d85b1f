# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import os

from ..exceptions import CredentialsUnavailableError
from ..identity import AWSCredentialIdentity
from ..interfaces.identity import CredentialsResolver


class EnvironmentCredentialsResolver(CredentialsResolver):
    """Resolves AWS Credentials from system environment variables.

    The variables are read once, when the resolver is created.
    """

    def __init__(self) -> None:
        access_key_id = os.getenv("AWS_ACCESS_KEY_ID") or os.getenv("AWS_ACCESS_KEY")
        if not access_key_id:
            raise CredentialsUnavailableError(
                "AWS_ACCESS_KEY_ID or AWS_ACCESS_KEY not found in environment"
            )

        secret_access_key = os.getenv("AWS_SECRET_ACCESS_KEY") or os.getenv(
            "AWS_SECRET_KEY"
        )
        if not secret_access_key:
            raise CredentialsUnavailableError(
                "AWS_SECRET_ACCESS_KEY or AWS_SECRET_KEY not found in environment"
            )

        self._credentials = AWSCredentialIdentity(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=os.getenv("AWS_SESSION_TOKEN") or None,
        )

    def get_identity(self) -> AWSCredentialIdentity:
        return self._credentials
