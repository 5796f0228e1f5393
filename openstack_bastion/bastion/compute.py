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

"""Compute instance handling for bastions."""

from typing import Optional

from openstack_bastion.bastion.options import Options
from openstack_bastion.bastion.polling import Poller
from openstack_bastion.clients import Compute, Networking
from openstack_bastion.exceptions import (
    AmbiguousResourceError,
    BastionError,
    CloudError,
    ConfigurationError,
)
from openstack_bastion.resources.openstack import STATUS_ERROR, Server


def get_bastion_instance(compute: Compute, name: str) -> Optional[Server]:
    """Return the bastion server with the given name, or None.

    :raises AmbiguousResourceError: if more than one server has the name
    """
    servers = compute.find_servers_by_name(name)
    if len(servers) > 1:
        raise AmbiguousResourceError("server", name, len(servers))
    return servers[0] if servers else None


def _is_active(server: Optional[Server]) -> bool:
    if server is None:
        raise BastionError("bastion instance disappeared while waiting for it")
    if server.status == STATUS_ERROR:
        raise BastionError(
            f"bastion instance {server.name} failed: {server.fault or 'unknown error'}")
    return server.is_active


def wait_for_instance(compute: Compute, server: Server, poller: Poller) -> Server:
    """Poll the server until it is active.

    :raises BastionError: if the server goes into error
    :raises NotReadyError: if the server is still building after the poll budget
    """
    if _is_active(server):
        return server
    return poller.wait_for(lambda: compute.get_server(server.id), _is_active,
                           f"bastion instance {server.name}")


def ensure_compute_instance(compute: Compute, networking: Networking, opt: Options,
                            flavor_ref: str, image_ref: str, poller: Poller, log) -> Server:
    """Get or create the bastion server and wait for it to become active.

    :param compute: the compute client
    :param networking: the networking client
    :param opt: the bastion options
    :param flavor_ref: the name or id of the flavor for the bastion
    :param image_ref: the name or id of the image for the bastion
    :param poller: the poller used to wait for the server
    :param log: the logger to report to
    :return: the active server
    """
    server = get_bastion_instance(compute, opt.instance_name)
    if server is not None:
        log.debug(f"Bastion instance {server.name} already exists ({server.id}, {server.status})")
        return wait_for_instance(compute, server, poller)

    networks = networking.find_networks_by_name(opt.network_name)
    if not networks:
        raise ConfigurationError(f"network {opt.network_name} not found")

    flavor = compute.find_flavor(flavor_ref)
    if flavor is None:
        raise ConfigurationError(f"flavor {flavor_ref} not found")

    image = compute.find_image(image_ref)
    if image is None:
        raise ConfigurationError(f"image {image_ref} not found")

    log.info(f"Creating new bastion compute instance {opt.instance_name}")
    try:
        server = compute.create_server(
            name=opt.instance_name,
            flavor_id=flavor.id,
            image_id=image.id,
            security_groups=[opt.security_group_name],
            network_id=networks[0].id,
            user_data=opt.user_data,
        )
    except CloudError as e:
        raise CloudError(f"failed to create bastion compute instance: {e}",
                         status_code=e.status_code) from e
    return wait_for_instance(compute, server, poller)
