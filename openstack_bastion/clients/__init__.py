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

"""Capabilities the bastion reconciler needs from a cloud.

The reconciler only depends on these protocols, which allows it to run
against the OpenStack implementation as well as against an in-memory
double in tests. Implementations raise ConflictError when a created
resource already exists and NotFoundError when an operated-on resource
is missing.
"""

from typing import List, Optional, Protocol

from openstack_bastion.resources.openstack import (
    Flavor,
    FloatingIP,
    Image,
    Network,
    Port,
    Router,
    SecurityGroup,
    SecurityGroupRule,
    Server,
)


class Compute(Protocol):
    """Compute instances, flavors and images."""

    def find_servers_by_name(self, name: str) -> List[Server]:
        ...

    def get_server(self, server_id: str) -> Optional[Server]:
        ...

    def create_server(self, name: str, flavor_id: str, image_id: str,
                      security_groups: List[str], network_id: str,
                      user_data: str) -> Server:
        ...

    def delete_server(self, server_id: str) -> None:
        ...

    def find_flavor(self, name_or_id: str) -> Optional[Flavor]:
        ...

    def find_image(self, name_or_id: str) -> Optional[Image]:
        ...


class Networking(Protocol):
    """Security groups, networks, routers, ports and floating IPs."""

    def find_security_groups_by_name(self, name: str) -> List[SecurityGroup]:
        ...

    def create_security_group(self, name: str, description: str) -> SecurityGroup:
        ...

    def delete_security_group(self, group_id: str) -> None:
        ...

    def list_rules(self, security_group_id: str) -> List[SecurityGroupRule]:
        ...

    def create_rule(self, rule: SecurityGroupRule) -> SecurityGroupRule:
        ...

    def delete_rule(self, rule_id: str) -> None:
        ...

    def find_networks_by_name(self, name: str) -> List[Network]:
        ...

    def find_routers_by_name(self, name: str) -> List[Router]:
        ...

    def list_ports(self, device_id: str) -> List[Port]:
        ...

    def find_floating_ips_by_description(self, description: str) -> List[FloatingIP]:
        ...

    def get_floating_ip(self, floating_ip_id: str) -> Optional[FloatingIP]:
        ...

    def create_floating_ip(self, floating_network_id: str, subnet_id: str,
                           description: str) -> FloatingIP:
        ...

    def delete_floating_ip(self, floating_ip_id: str) -> None:
        ...

    def associate_floating_ip(self, floating_ip_id: str, port_id: str) -> FloatingIP:
        ...
