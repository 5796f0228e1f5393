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

"""Endpoint resolution for bastions."""

from typing import Optional, Tuple

from openstack_bastion.bastion.options import Options
from openstack_bastion.exceptions import BastionError, NotReadyError
from openstack_bastion.resources.openstack import (
    ADDRESS_TYPE_FIXED,
    BastionEndpoints,
    Endpoint,
    Server,
)


def get_ips(server: Server, opt: Options,
            retry_after: float = 5) -> Tuple[Optional[str], Optional[str]]:
    """Return the private and the public address of the server on the cluster network.

    Addresses are classified by their OS-EXT-IPS:type marker: fixed
    addresses are private, all others (floating) are public.

    :raises NotReadyError: if the server reports no addresses yet
    """
    if not server.addresses:
        raise NotReadyError("NIC not ready yet", retry_after=retry_after)

    private_ip = public_ip = None
    for address in server.addresses.get(opt.network_name, []):
        if address.type == ADDRESS_TYPE_FIXED:
            private_ip = address.addr
        else:
            public_ip = address.addr

    return private_ip, public_ip


def address_to_endpoint(hostname: Optional[str] = None,
                        ip: Optional[str] = None) -> Optional[Endpoint]:
    """Return an Endpoint, or None when neither hostname nor ip is known."""
    if not hostname and not ip:
        return None
    return Endpoint(hostname=hostname or None, ip=ip or None)


def get_instance_endpoints(server: Optional[Server], opt: Options,
                           retry_after: float = 5) -> BastionEndpoints:
    """Resolve the endpoints of an active bastion server.

    :param server: the bastion server
    :param opt: the bastion options
    :param retry_after: the delay suggested when the server is not active yet
    :return: the endpoints, which may not be ready yet
    :raises NotReadyError: if the server is not active yet
    """
    if server is None:
        raise BastionError("compute instance can't be None")

    if not server.is_active:
        raise NotReadyError("compute instance not active yet", retry_after=retry_after)

    private_ip, public_ip = get_ips(server, opt, retry_after)
    return BastionEndpoints(private=address_to_endpoint(ip=private_ip),
                            public=address_to_endpoint(ip=public_ip))
