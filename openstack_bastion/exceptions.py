#
# Copyright (C) 2023 Canonical Ltd.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as
# published by the Free Software Foundation, either version 3 of the
# License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#

"""Exceptions raised while reconciling bastions."""

from typing import Optional


class BastionError(Exception):
    """Base class for all bastion errors."""


class ConfigurationError(BastionError):
    """The bastion can not be reconciled with the given configuration.

    These errors can not heal by themselves and must not be retried.
    """


class AmbiguousResourceError(ConfigurationError):
    """More than one cloud resource matches a name that should be unique."""

    def __init__(self, kind: str, name: str, count: int):
        super().__init__(f"found {count} {kind}s named '{name}', expected at most one")
        self.kind = kind
        self.name = name
        self.count = count


class NotReadyError(BastionError):
    """The bastion has not converged yet and should be checked again later.

    :param cause: a human readable reason for the bastion not being ready.
    :param retry_after: the suggested delay, in seconds, before re-checking.
    """

    def __init__(self, cause: str, retry_after: float = 5):
        super().__init__(cause)
        self.cause = cause
        self.retry_after = retry_after

    def __str__(self):
        return f"{self.cause} (retry after {self.retry_after}s)"


class CancelledError(BastionError):
    """Polling was aborted because the caller cancelled the operation."""


class CloudError(BastionError):
    """An error reported by the cloud provider API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConflictError(CloudError):
    """The resource to create already exists."""


class NotFoundError(CloudError):
    """The resource to operate on does not exist."""
