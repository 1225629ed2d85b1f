# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
from collections.abc import Sequence
from typing import Final

from ..exceptions import CredentialsUnavailableError
from ..interfaces.http import HTTPClient
from ..interfaces.identity import AWSCredentialsIdentity, CredentialsResolver
from .environment import EnvironmentCredentialsResolver
from .imds import IMDSCredentialsResolver
from .profile import ProfileCredentialsResolver

logger: Final = logging.getLogger(__name__)


class ChainedCredentialsResolver(CredentialsResolver):
    """Attempts to resolve credentials by checking a sequence of sub-resolvers.

    If a nested resolver raises a :py:class:`CredentialsUnavailableError`, the next
    resolver in the chain will be attempted. Each sub-resolver keeps its own cache.
    """

    def __init__(self, resolvers: Sequence[CredentialsResolver]) -> None:
        """Construct a ChainedCredentialsResolver.

        :param resolvers: The sequence of resolvers to resolve credentials from.
        """
        self._resolvers = resolvers

    def get_identity(self) -> AWSCredentialsIdentity:
        logger.debug("Attempting to resolve credentials from resolver chain.")
        for resolver in self._resolvers:
            try:
                logger.debug(
                    "Attempting to resolve credentials from %s.", type(resolver)
                )
                return resolver.get_identity()
            except CredentialsUnavailableError as e:
                logger.debug(
                    "Failed to resolve credentials from %s: %s", type(resolver), e
                )

        raise CredentialsUnavailableError(
            "Failed to resolve credentials from resolver chain."
        )


def create_default_chain(http_client: HTTPClient) -> ChainedCredentialsResolver:
    """Build the standard chain: environment, shared credentials file, then IMDS.

    :param http_client: Client used to reach the instance metadata service.
    """
    resolvers: list[CredentialsResolver] = []
    try:
        resolvers.append(EnvironmentCredentialsResolver())
    except CredentialsUnavailableError as e:
        logger.debug("Skipping environment credentials: %s", e)
    resolvers.append(ProfileCredentialsResolver())
    resolvers.append(IMDSCredentialsResolver(http_client=http_client))
    return ChainedCredentialsResolver(resolvers)
