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

"""Removal of bastion resources.

Nova deletes servers asynchronously. The security group is only removed
once the server is confirmed to be gone, otherwise the group would still be
referenced by the server's port.
"""

from openstack_bastion.bastion.addresses import remove_public_ip_address
from openstack_bastion.bastion.options import Options
from openstack_bastion.bastion.security import remove_security_group
from openstack_bastion.clients import Compute, Networking
from openstack_bastion.exceptions import CloudError, NotFoundError, NotReadyError


def remove_bastion_instance(compute: Compute, opt: Options, log) -> None:
    """Request the deletion of every server named after the bastion."""
    for server in compute.find_servers_by_name(opt.instance_name):
        if server.is_deleting:
            log.debug(f"Instance {server.name} ({server.id}) is already being deleted")
            continue

        try:
            compute.delete_server(server.id)
        except NotFoundError:
            continue
        except CloudError as e:
            raise CloudError(f"failed to terminate bastion instance: {e}",
                             status_code=e.status_code) from e
        log.info(f"Instance {server.name} removed ({server.id})")


def is_instance_deleted(compute: Compute, opt: Options) -> bool:
    return not compute.find_servers_by_name(opt.instance_name)


def teardown(compute: Compute, networking: Networking, opt: Options, log,
             retry_after: float = 10) -> None:
    """Remove all resources of a bastion.

    Every step tolerates resources which are already gone, so the teardown
    may be repeated until it succeeds.

    :param compute: the compute client
    :param networking: the networking client
    :param opt: the bastion options
    :param log: the logger to report to
    :param retry_after: the delay suggested while the server is still deleting
    :raises NotReadyError: while the server is still deleting
    """
    remove_bastion_instance(compute, opt, log)
    remove_public_ip_address(networking, opt, log)

    if not is_instance_deleted(compute, opt):
        raise NotReadyError("bastion instance is still deleting", retry_after=retry_after)

    remove_security_group(networking, opt, log)
