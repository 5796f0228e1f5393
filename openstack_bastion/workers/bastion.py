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

"""Logic for the bastion worker daemon."""
import asyncio
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from temporalio import workflow
from temporalio.client import Client
from temporalio.worker import Worker

import openstack_bastion.conf
from openstack_bastion.activities.bastion import delete_bastion, reconcile_bastion
from openstack_bastion.workflows import bastion

# Import activity, passing it through the sandbox without reloading the module
with workflow.unsafe.imports_passed_through():
    from oslo_log import log as logging
    from openstack_bastion import config
    from openstack_bastion.converters import pydantic_data_converter


CONF = openstack_bastion.conf.CONF
LOG = logging.getLogger(__name__)


async def async_main(argv: Optional[List[str]] = None):
    """Async entry point for the bastion worker.

    :param argv: list of CLI arguments.
    """
    if argv is None:
        argv = sys.argv

    config.parse_args(argv)
    logging.setup(CONF, "openstack-bastion")

    CONF.log_opt_values(LOG, logging.DEBUG)

    client = await Client.connect(
        f"{CONF.temporal.host}:{CONF.temporal.port}",
        namespace=CONF.temporal.namespace,
        data_converter=pydantic_data_converter,
    )

    # The activities block on openstacksdk, so they run in their own threads.
    with ThreadPoolExecutor(max_workers=CONF.temporal.activity_workers) as executor:
        worker = Worker(
            client,
            task_queue=CONF.temporal.task_queue,
            workflows=[
                bastion.ProvisionBastionWorkflow,
                bastion.DeleteBastionWorkflow,
            ],
            activities=[
                reconcile_bastion,
                delete_bastion,
            ],
            activity_executor=executor,
        )
        LOG.info(f"Starting bastion worker on task queue {CONF.temporal.task_queue}")
        await worker.run()


def main(argv: Optional[List[str]] = None):
    """Entry point for the bastion worker.

    :param argv: list of CLI arguments.
    """
    return asyncio.run(async_main(argv))
