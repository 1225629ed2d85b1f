# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass
from datetime import datetime

from .interfaces.identity import AWSCredentialsIdentity


@dataclass(kw_only=True, frozen=True)
class AWSCredentialIdentity(AWSCredentialsIdentity):
    """Immutable AWS credentials.

    Resolvers replace the whole value on refresh rather than mutating it.
    """

    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    expiration: datetime | None = None

    def __repr__(self) -> str:
        return (
            f"AWSCredentialIdentity(access_key_id={self.access_key_id!r}, "
            f"expiration={self.expiration!r})"
        )
