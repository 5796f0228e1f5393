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

"""Activities reconciling and deleting bastions.

The activities are synchronous because openstacksdk is. The worker runs
them in a thread pool, and they heartbeat while waiting on the cloud so
that a cancellation of the workflow reaches them.
"""

import contextlib
from datetime import timedelta
from typing import Iterator

from temporalio import activity, workflow
from temporalio.exceptions import ApplicationError
from temporalio.exceptions import CancelledError as TemporalCancelledError

import openstack_bastion.conf

with workflow.unsafe.imports_passed_through():
    from oslo_log import log as logging
    from openstack_bastion import config
    from openstack_bastion.bastion.actuator import Actuator, BastionConfig
    from openstack_bastion.clients.openstack import OpenStackClient
    from openstack_bastion.exceptions import (
        CancelledError,
        CloudError,
        ConfigurationError,
        NotReadyError,
    )
    from openstack_bastion.resources.openstack import BastionEndpoints, BastionRequest


LOG = logging.getLogger(__name__)
CONF = openstack_bastion.conf.CONF


@contextlib.contextmanager
def application_errors() -> Iterator[None]:
    """Translate bastion errors into errors understood by Temporal.

    Configuration errors are never retried. Bastions which are not ready yet
    are retried after the delay they suggest.
    """
    try:
        yield
    except ConfigurationError as e:
        LOG.error(f"Bastion can not be reconciled: {e}")
        raise ApplicationError(str(e), type=type(e).__name__, non_retryable=True) from e
    except NotReadyError as e:
        LOG.info(f"Bastion not ready: {e}")
        raise ApplicationError(
            e.cause,
            type=type(e).__name__,
            next_retry_delay=timedelta(seconds=e.retry_after),
        ) from e
    except CancelledError as e:
        LOG.info(f"Bastion operation cancelled: {e}")
        raise TemporalCancelledError(str(e)) from e
    except CloudError as e:
        LOG.exception("Cloud provider request failed.")
        raise ApplicationError(str(e), e.status_code, type=type(e).__name__) from e


def build_actuator(request: BastionRequest) -> Actuator:
    """Create an actuator for the cloud of the request.

    :param request: the bastion request
    :return: an actuator connected to the request's cloud
    :raises ConfigurationError: if the request's cloud is not configured
    """
    if not request.cloud:
        raise ConfigurationError(f"bastion {request.name} names no cloud")

    cloud_config = config.get_cloud_config(request.cloud)
    client = OpenStackClient.connect(
        config.cloud_entry(request.cloud),
        region=request.region or cloud_config.region,
    )

    return Actuator(
        compute=client,
        networking=client,
        config=BastionConfig.from_conf(CONF),
        cancelled=activity.is_cancelled,
        heartbeat=activity.heartbeat,
        sleep=activity.wait_for_cancelled_sync,
    )


@activity.defn
def reconcile_bastion(request: BastionRequest) -> BastionEndpoints:
    """Create or update a bastion and return its endpoints.

    :param request: the bastion request
    :return: the endpoints of the ready bastion
    """
    LOG.info(f"Reconciling bastion {request.name} of cluster {request.cluster}")
    with application_errors():
        return build_actuator(request).reconcile(request)


@activity.defn
def delete_bastion(request: BastionRequest) -> None:
    """Delete every resource of a bastion.

    :param request: the bastion request
    """
    LOG.info(f"Deleting bastion {request.name} of cluster {request.cluster}")
    with application_errors():
        build_actuator(request).delete(request)
