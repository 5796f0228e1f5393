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

"""Temporal Workflows for the lifecycle of bastions."""

import argparse
import asyncio
import sys
from datetime import timedelta
from typing import List, Optional

from temporalio import workflow
from temporalio.client import Client
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from oslo_log import log as logging

    import openstack_bastion.conf
    from openstack_bastion import config
    from openstack_bastion.activities.bastion import delete_bastion, reconcile_bastion
    from openstack_bastion.converters import pydantic_data_converter
    from openstack_bastion.resources.openstack import BastionEndpoints, BastionRequest


CONF = openstack_bastion.conf.CONF
LOG = logging.getLogger(__name__)

# The activities suggest their own delay when a bastion is not ready yet,
# this policy only applies to failures of the cloud itself.
RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=5),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(minutes=1),
    non_retryable_error_types=["ConfigurationError", "AmbiguousResourceError"],
)

ACTIVITY_TIMEOUT = timedelta(minutes=2)
HEARTBEAT_TIMEOUT = timedelta(seconds=30)
PROVISION_TIMEOUT = timedelta(minutes=20)
DELETE_TIMEOUT = timedelta(minutes=16)


@workflow.defn
class ProvisionBastionWorkflow:
    """Workflow provisioning a bastion until its endpoints are ready."""

    @workflow.run
    async def run(self, request: BastionRequest) -> BastionEndpoints:
        """Provision the bastion.

        The reconcile activity is retried until the bastion is ready. Each
        attempt resumes from whatever state the previous one left behind.

        :param request: the bastion request
        :return: the endpoints of the bastion
        """
        workflow.logger.info(f"Provisioning bastion {request.name} of cluster {request.cluster}")
        return await workflow.execute_activity(
            reconcile_bastion,
            request,
            start_to_close_timeout=ACTIVITY_TIMEOUT,
            schedule_to_close_timeout=PROVISION_TIMEOUT,
            heartbeat_timeout=HEARTBEAT_TIMEOUT,
            retry_policy=RETRY_POLICY,
        )


@workflow.defn
class DeleteBastionWorkflow:
    """Workflow removing every resource of a bastion."""

    @workflow.run
    async def run(self, request: BastionRequest) -> None:
        """Delete the bastion.

        :param request: the bastion request
        """
        workflow.logger.info(f"Deleting bastion {request.name} of cluster {request.cluster}")
        await workflow.execute_activity(
            delete_bastion,
            request,
            start_to_close_timeout=ACTIVITY_TIMEOUT,
            schedule_to_close_timeout=DELETE_TIMEOUT,
            heartbeat_timeout=HEARTBEAT_TIMEOUT,
            retry_policy=RETRY_POLICY,
        )


def workflow_id(request: BastionRequest, operation: str) -> str:
    """Return the id of the workflow operating on the bastion."""
    return f"bastion-{request.cluster}-{request.name}-{operation}"


def setup_opts(argv: Optional[List[str]]):
    """Parse CLI arguments.

    :param argv: list of arguments to parse
    """
    parser = argparse.ArgumentParser(description="Manage bastion hosts.")
    parser.add_argument("operation", choices=["create", "delete"],
                        help="Whether to create or delete the bastion.")
    parser.add_argument("--name", required=True, help="Name of the bastion.")
    parser.add_argument("--cluster", required=True,
                        help="Name of the cluster the bastion grants access to.")
    parser.add_argument("--cloud", required=True, help="Name of the cloud of the cluster.")
    parser.add_argument("--region", default=None, help="Region of the cluster.")
    parser.add_argument("--ingress", action="append", default=[], metavar="CIDR",
                        help="CIDR allowed to connect to the bastion. May be repeated.")
    parser.add_argument("--user-data", dest="user_data", type=argparse.FileType("rb"),
                        default=None, help="File holding the user data for the bastion.")
    return parser.parse_known_args(argv)


def build_request(options: argparse.Namespace) -> BastionRequest:
    """Build the bastion request described by the CLI options."""
    user_data = b""
    if options.user_data is not None:
        with options.user_data as f:
            user_data = f.read()

    return BastionRequest(
        name=options.name,
        cluster=options.cluster,
        cloud=options.cloud,
        region=options.region,
        ingress=options.ingress,
        user_data=user_data,
    )


async def async_main(argv: Optional[List[str]] = None):
    """Async entry point for the bastion workflows.

    :param argv: list of CLI arguments
    """
    if argv is None:
        argv = sys.argv

    (options, args) = setup_opts(argv[1:])
    config.parse_args([argv[0]] + args)

    request = build_request(options)

    # Create client connected to server at the given address.
    client = await Client.connect(
        f"{CONF.temporal.host}:{CONF.temporal.port}", namespace=CONF.temporal.namespace,
        data_converter=pydantic_data_converter,
    )

    if options.operation == "create":
        result = await client.execute_workflow(
            ProvisionBastionWorkflow.run,
            request,
            id=workflow_id(request, options.operation),
            task_queue=CONF.temporal.task_queue,
        )
        print(f"Bastion {request.name} ready: public {result.public.ip}, "
              f"private {result.private.ip}")
    else:
        await client.execute_workflow(
            DeleteBastionWorkflow.run,
            request,
            id=workflow_id(request, options.operation),
            task_queue=CONF.temporal.task_queue,
        )
        print(f"Bastion {request.name} deleted")


def main(argv: Optional[List[str]] = None):
    """Entry point for the bastion workflows.

    :param argv: list of CLI arguments.
    """
    return asyncio.run(async_main(argv))
