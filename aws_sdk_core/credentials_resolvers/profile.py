# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import configparser
import logging
import os
import threading
from datetime import UTC, datetime, timedelta
from typing import Final

from ..exceptions import CredentialsUnavailableError, ProfileIncompleteError
from ..identity import AWSCredentialIdentity
from ..interfaces.identity import CredentialsResolver

logger: Final = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_FILE: Final = os.path.join("~", ".aws", "credentials")
DEFAULT_PROFILE: Final = "default"


class ProfileCredentialsResolver(CredentialsResolver):
    """Resolves AWS Credentials from a profile in a shared credentials file.

    The file is INI formatted with one section per profile. Parsed credentials are
    cached for ``ttl`` before the file is read again.
    """

    _REQUIRED_KEYS = ("aws_access_key_id", "aws_secret_access_key", "aws_session_token")

    def __init__(
        self,
        *,
        filename: str | None = None,
        profile: str | None = None,
        ttl: timedelta = timedelta(minutes=5),
    ) -> None:
        """
        :param filename: Path of the credentials file. Defaults to
            ``~/.aws/credentials``.
        :param profile: The section to read. Defaults to ``default``.
        :param ttl: How long parsed credentials are reused before re-reading the file.
        """
        self._filename = os.path.expanduser(filename or DEFAULT_CREDENTIALS_FILE)
        self._profile = profile or DEFAULT_PROFILE
        self._ttl = ttl
        self._refresh_lock = threading.Lock()
        self._cache: tuple[AWSCredentialIdentity, datetime] | None = None

    def get_identity(self) -> AWSCredentialIdentity:
        if (credentials := self._cached()) is not None:
            return credentials

        with self._refresh_lock:
            # Another thread may have refreshed while this one waited on the lock.
            if (credentials := self._cached()) is not None:
                return credentials
            logger.debug(
                "Loading credentials for profile %s from %s.",
                self._profile,
                self._filename,
            )
            credentials = self._load()
            self._cache = (credentials, datetime.now(UTC) + self._ttl)
            return credentials

    def _cached(self) -> AWSCredentialIdentity | None:
        cache = self._cache
        if cache is not None and datetime.now(UTC) < cache[1]:
            return cache[0]
        return None

    def _load(self) -> AWSCredentialIdentity:
        parser = configparser.ConfigParser(interpolation=None)
        try:
            if not parser.read(self._filename, encoding="utf-8"):
                raise CredentialsUnavailableError(
                    f"Unable to read credentials file {self._filename}"
                )
        except configparser.Error as e:
            raise CredentialsUnavailableError(
                f"Unable to parse credentials file {self._filename}: {e}"
            ) from e

        section = parser[self._profile] if parser.has_section(self._profile) else {}
        values: dict[str, str] = {}
        for key in self._REQUIRED_KEYS:
            value = section.get(key)
            if not value:
                raise ProfileIncompleteError(
                    key=key, profile=self._profile, filename=self._filename
                )
            values[key] = value

        return AWSCredentialIdentity(
            access_key_id=values["aws_access_key_id"],
            secret_access_key=values["aws_secret_access_key"],
            session_token=values["aws_session_token"],
        )
