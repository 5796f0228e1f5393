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

"""Bounded polling of asynchronous cloud state transitions."""

import time
from typing import Callable, Optional, TypeVar

from openstack_bastion.exceptions import CancelledError, NotReadyError

T = TypeVar("T")


def _never_cancelled() -> bool:
    return False


class Poller:
    """Re-fetch a resource at a fixed interval for a bounded number of attempts.

    The poller never blocks longer than attempts * interval seconds. When the
    attempts are exhausted it raises NotReadyError, and the caller re-invokes
    the reconcile later.

    :param attempts: the number of times the resource is fetched
    :param interval: the number of seconds to sleep between two attempts
    :param retry_after: the delay suggested to the caller once exhausted
    :param cancelled: returns True when the caller wants to abort polling
    :param heartbeat: called before every attempt
    :param sleep: the function used to wait between attempts
    """

    def __init__(self, attempts: int = 6, interval: float = 5, retry_after: float = 5,
                 cancelled: Callable[[], bool] = _never_cancelled,
                 heartbeat: Optional[Callable[..., None]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.attempts = attempts
        self.interval = interval
        self.retry_after = retry_after
        self.cancelled = cancelled
        self.heartbeat = heartbeat
        self.sleep = sleep

    def wait_for(self, fetch: Callable[[], T], done: Callable[[T], bool],
                 description: str) -> T:
        """Fetch until done returns True.

        :param fetch: returns the current state of the resource
        :param done: returns True when the state is the wanted one. It may
                     raise to abort polling on a terminal failure.
        :param description: what is being waited for, used in messages
        :return: the last fetched state
        :raises NotReadyError: when the attempts are exhausted
        :raises CancelledError: when cancelled before an attempt
        """
        for attempt in range(self.attempts):
            if self.cancelled():
                raise CancelledError(f"cancelled while waiting for {description}")
            if self.heartbeat is not None:
                self.heartbeat(description, attempt)

            state = fetch()
            if done(state):
                return state

            if attempt + 1 < self.attempts:
                self.sleep(self.interval)

        raise NotReadyError(f"{description} not ready yet", retry_after=self.retry_after)
