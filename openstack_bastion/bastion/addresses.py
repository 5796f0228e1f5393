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

"""Floating IP handling for bastions."""

import ipaddress
from typing import Optional, Tuple

from openstack_bastion.bastion.options import Options
from openstack_bastion.bastion.polling import Poller
from openstack_bastion.clients import Networking
from openstack_bastion.exceptions import (
    AmbiguousResourceError,
    BastionError,
    CloudError,
    ConfigurationError,
    NotFoundError,
    NotReadyError,
)
from openstack_bastion.resources.openstack import (
    STATUS_ACTIVE,
    STATUS_ERROR,
    FloatingIP,
    Server,
)


def get_fip_by_name(networking: Networking, name: str) -> Optional[FloatingIP]:
    """Return the floating IP described by the given name, or None.

    Floating IPs carry no name of their own, the bastion's instance name is
    stored in their description instead.

    :raises AmbiguousResourceError: if more than one floating ip matches
    """
    fips = networking.find_floating_ips_by_description(name)
    if len(fips) > 1:
        raise AmbiguousResourceError("floating ip", name, len(fips))
    return fips[0] if fips else None


def get_external_network_info(networking: Networking, router_name: str) -> Tuple[str, str]:
    """Resolve the external network and subnet through the tenant's router.

    :param networking: the networking client
    :param router_name: the name of the tenant's router
    :return: a tuple of the external network id and the id of the subnet
             holding the router's first IPv4 external address
    :raises ConfigurationError: if the router or a usable address is missing
    """
    routers = networking.find_routers_by_name(router_name)
    if not routers:
        raise ConfigurationError(f"router {router_name} not found")
    if len(routers) > 1:
        raise AmbiguousResourceError("router", router_name, len(routers))

    gateway = routers[0].external_gateway_info
    if gateway is None or not gateway.external_fixed_ips:
        raise ConfigurationError(f"router {router_name} has no external fixed ips")

    for fixed_ip in gateway.external_fixed_ips:
        try:
            address = ipaddress.ip_address(fixed_ip.ip_address or "")
        except ValueError:
            continue
        if address.version == 4:
            return gateway.network_id, fixed_ip.subnet_id

    raise ConfigurationError(f"router {router_name} has no external IPv4 address")


def _is_active(fip: Optional[FloatingIP]) -> bool:
    if fip is None:
        raise BastionError("floating ip disappeared while waiting for it")
    if fip.status == STATUS_ERROR:
        raise BastionError(f"floating ip {fip.floating_ip_address} failed")
    return fip.is_active


def ensure_public_ip_address(networking: Networking, opt: Options, poller: Poller,
                             log) -> FloatingIP:
    """Get or create the floating IP of the bastion and wait for it to become active.

    :param networking: the networking client
    :param opt: the bastion options
    :param poller: the poller used to wait for a new floating ip
    :param log: the logger to report to
    :return: the active floating ip
    :raises NotReadyError: if the floating ip is not active yet
    """
    fip = get_fip_by_name(networking, opt.instance_name)
    if fip is not None:
        if fip.status == STATUS_ACTIVE:
            return fip
        raise NotReadyError(f"public ip address {fip.floating_ip_address} not active yet",
                            retry_after=poller.retry_after)

    network_id, subnet_id = get_external_network_info(networking, opt.router_name)

    log.info(f"Creating new bastion public ip address on network {network_id}")
    try:
        fip = networking.create_floating_ip(
            floating_network_id=network_id,
            subnet_id=subnet_id,
            description=opt.instance_name,
        )
    except CloudError as e:
        raise CloudError(f"failed to get (create) public ip address: {e}",
                         status_code=e.status_code) from e

    if _is_active(fip):
        return fip
    return poller.wait_for(lambda: networking.get_floating_ip(fip.id), _is_active,
                           f"public ip address {fip.floating_ip_address}")


def ensure_associate_fip_with_instance(networking: Networking, server: Server,
                                       fip: FloatingIP, log,
                                       retry_after: float = 5) -> FloatingIP:
    """Bind the floating IP to the first active port of the server.

    :param networking: the networking client
    :param server: the bastion server
    :param fip: the bastion floating ip
    :param log: the logger to report to
    :param retry_after: the delay suggested when the server has no active port
    :return: the bound floating ip
    :raises NotReadyError: if the server has no active port yet
    """
    if fip.port_id:
        log.debug(f"Public ip address {fip.floating_ip_address} already bound to {fip.port_id}")
        return fip

    ports = [port for port in networking.list_ports(server.id) if port.status == STATUS_ACTIVE]
    if not ports:
        raise NotReadyError(f"bastion instance {server.name} has no active port yet",
                            retry_after=retry_after)

    try:
        fip = networking.associate_floating_ip(fip.id, ports[0].id)
    except CloudError as e:
        raise CloudError(f"failed to associate public ip address {fip.floating_ip_address} "
                         f"to instance {server.name}: {e}", status_code=e.status_code) from e

    log.info(f"Public ip address {fip.floating_ip_address} associated with {server.name}")
    return fip


def remove_public_ip_address(networking: Networking, opt: Options, log) -> None:
    """Delete every floating IP described by the bastion's instance name.

    Duplicates left behind by an interrupted create are removed as well.
    """
    for fip in networking.find_floating_ips_by_description(opt.instance_name):
        try:
            networking.delete_floating_ip(fip.id)
        except NotFoundError:
            continue
        log.info(f"Public ip address {fip.floating_ip_address} removed ({fip.id})")
