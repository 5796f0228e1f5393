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

"""OpenStack implementation of the cloud capabilities, using openstacksdk."""

import contextlib
from typing import Any, Dict, Iterator, List, Optional

import openstack
from openstack import exceptions as sdk_exceptions
from oslo_log import log as logging

from openstack_bastion.exceptions import CloudError, ConflictError, NotFoundError
from openstack_bastion.resources.openstack import (
    ExternalFixedIP,
    ExternalGatewayInfo,
    Flavor,
    FloatingIP,
    Image,
    Network,
    Port,
    Router,
    SecurityGroup,
    SecurityGroupRule,
    Server,
    ServerAddress,
)


LOG = logging.getLogger(__name__)


@contextlib.contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Translate openstacksdk exceptions into CloudErrors.

    :param action: a description of the call, used in error messages
    """
    try:
        yield
    except sdk_exceptions.ConflictException as e:
        raise ConflictError(f"{action}: {e}", status_code=409) from e
    except sdk_exceptions.ResourceNotFound as e:
        raise NotFoundError(f"{action}: {e}", status_code=404) from e
    except sdk_exceptions.HttpException as e:
        raise CloudError(f"{action}: {e}", status_code=e.status_code) from e
    except sdk_exceptions.SDKException as e:
        raise CloudError(f"{action}: {e}") from e


def to_server(server: Any) -> Server:
    addresses: Dict[str, List[ServerAddress]] = {}
    for network, entries in (server.addresses or {}).items():
        addresses[network] = [ServerAddress.model_validate(entry) for entry in entries]

    fault = server.fault.get("message") if server.fault else None
    return Server(id=server.id, name=server.name, status=server.status,
                  task_state=server.task_state, addresses=addresses, fault=fault)


def to_security_group(group: Any) -> SecurityGroup:
    return SecurityGroup(id=group.id, name=group.name, description=group.description)


def to_rule(rule: Any) -> SecurityGroupRule:
    return SecurityGroupRule(
        id=rule.id,
        direction=rule.direction,
        ether_type=rule.ether_type,
        protocol=rule.protocol,
        port_range_min=rule.port_range_min,
        port_range_max=rule.port_range_max,
        security_group_id=rule.security_group_id,
        remote_ip_prefix=rule.remote_ip_prefix,
        remote_group_id=rule.remote_group_id,
        description=rule.description,
    )


def to_floating_ip(fip: Any) -> FloatingIP:
    return FloatingIP(
        id=fip.id,
        name=fip.name,
        floating_ip_address=fip.floating_ip_address,
        floating_network_id=fip.floating_network_id,
        subnet_id=fip.subnet_id,
        status=fip.status,
        port_id=fip.port_id,
        description=fip.description,
    )


def to_router(router: Any) -> Router:
    gateway = None
    if router.external_gateway_info:
        info = router.external_gateway_info
        gateway = ExternalGatewayInfo(
            network_id=info.get("network_id"),
            external_fixed_ips=[
                ExternalFixedIP.model_validate(ip) for ip in info.get("external_fixed_ips") or []
            ],
        )
    return Router(id=router.id, name=router.name, external_gateway_info=gateway)


class OpenStackClient:
    """Compute and Networking capabilities backed by an openstacksdk connection.

    Name based lookups filter the results again on the exact name, because
    some services treat the name filter as a regular expression.
    """

    def __init__(self, connection: openstack.connection.Connection):
        self.connection = connection

    @classmethod
    def connect(cls, cloud: str, region: Optional[str] = None) -> 'OpenStackClient':
        """Connect to the cloud named in clouds.yaml.

        :param cloud: the name of the cloud in clouds.yaml
        :param region: the region to connect to, if not the cloud's default
        :return: a client for the cloud
        """
        LOG.debug(f"Connecting to cloud {cloud} (region {region})")
        with translate_errors(f"connect to cloud {cloud}"):
            return cls(openstack.connect(cloud=cloud, region_name=region))

    # Compute

    def find_servers_by_name(self, name: str) -> List[Server]:
        with translate_errors(f"list servers named {name}"):
            return [to_server(s) for s in self.connection.compute.servers(name=name)
                    if s.name == name]

    def get_server(self, server_id: str) -> Optional[Server]:
        try:
            with translate_errors(f"get server {server_id}"):
                return to_server(self.connection.compute.get_server(server_id))
        except NotFoundError:
            return None

    def create_server(self, name: str, flavor_id: str, image_id: str,
                      security_groups: List[str], network_id: str,
                      user_data: str) -> Server:
        with translate_errors(f"create server {name}"):
            server = self.connection.compute.create_server(
                name=name,
                flavor_id=flavor_id,
                image_id=image_id,
                security_groups=[{"name": group} for group in security_groups],
                networks=[{"uuid": network_id}],
                user_data=user_data,
            )
        return to_server(server)

    def delete_server(self, server_id: str) -> None:
        with translate_errors(f"delete server {server_id}"):
            self.connection.compute.delete_server(server_id, ignore_missing=False)

    def find_flavor(self, name_or_id: str) -> Optional[Flavor]:
        with translate_errors(f"find flavor {name_or_id}"):
            flavor = self.connection.compute.find_flavor(name_or_id, ignore_missing=True)
        return Flavor(id=flavor.id, name=flavor.name) if flavor else None

    def find_image(self, name_or_id: str) -> Optional[Image]:
        with translate_errors(f"find image {name_or_id}"):
            image = self.connection.image.find_image(name_or_id, ignore_missing=True)
        return Image(id=image.id, name=image.name) if image else None

    # Networking

    def find_security_groups_by_name(self, name: str) -> List[SecurityGroup]:
        with translate_errors(f"list security groups named {name}"):
            return [to_security_group(g) for g in self.connection.network.security_groups(name=name)
                    if g.name == name]

    def create_security_group(self, name: str, description: str) -> SecurityGroup:
        with translate_errors(f"create security group {name}"):
            group = self.connection.network.create_security_group(
                name=name, description=description)
        return to_security_group(group)

    def delete_security_group(self, group_id: str) -> None:
        with translate_errors(f"delete security group {group_id}"):
            self.connection.network.delete_security_group(group_id, ignore_missing=False)

    def list_rules(self, security_group_id: str) -> List[SecurityGroupRule]:
        with translate_errors(f"list rules of security group {security_group_id}"):
            return [to_rule(r) for r in self.connection.network.security_group_rules(
                security_group_id=security_group_id)]

    def create_rule(self, rule: SecurityGroupRule) -> SecurityGroupRule:
        attrs = rule.model_dump(exclude={"id"}, exclude_none=True)
        with translate_errors(f"create security group rule {rule.description}"):
            return to_rule(self.connection.network.create_security_group_rule(**attrs))

    def delete_rule(self, rule_id: str) -> None:
        with translate_errors(f"delete security group rule {rule_id}"):
            self.connection.network.delete_security_group_rule(rule_id, ignore_missing=False)

    def find_networks_by_name(self, name: str) -> List[Network]:
        with translate_errors(f"list networks named {name}"):
            networks = self.connection.network.networks(name=name)
            return [Network(id=n.id, name=n.name) for n in networks
                    if n.name == name]

    def find_routers_by_name(self, name: str) -> List[Router]:
        with translate_errors(f"list routers named {name}"):
            return [to_router(r) for r in self.connection.network.routers(name=name)
                    if r.name == name]

    def list_ports(self, device_id: str) -> List[Port]:
        with translate_errors(f"list ports of device {device_id}"):
            return [Port(id=p.id, name=p.name, status=p.status, device_id=p.device_id,
                         network_id=p.network_id)
                    for p in self.connection.network.ports(device_id=device_id)]

    def find_floating_ips_by_description(self, description: str) -> List[FloatingIP]:
        with translate_errors(f"list floating ips described as {description}"):
            fips = self.connection.network.ips(description=description)
            return [to_floating_ip(ip) for ip in fips
                    if ip.description == description]

    def get_floating_ip(self, floating_ip_id: str) -> Optional[FloatingIP]:
        try:
            with translate_errors(f"get floating ip {floating_ip_id}"):
                return to_floating_ip(self.connection.network.get_ip(floating_ip_id))
        except NotFoundError:
            return None

    def create_floating_ip(self, floating_network_id: str, subnet_id: str,
                           description: str) -> FloatingIP:
        with translate_errors(f"create floating ip {description}"):
            fip = self.connection.network.create_ip(
                floating_network_id=floating_network_id,
                subnet_id=subnet_id,
                description=description,
            )
        return to_floating_ip(fip)

    def delete_floating_ip(self, floating_ip_id: str) -> None:
        with translate_errors(f"delete floating ip {floating_ip_id}"):
            self.connection.network.delete_ip(floating_ip_id, ignore_missing=False)

    def associate_floating_ip(self, floating_ip_id: str, port_id: str) -> FloatingIP:
        with translate_errors(f"associate floating ip {floating_ip_id} with port {port_id}"):
            fip = self.connection.network.update_ip(floating_ip_id, port_id=port_id)
        return to_floating_ip(fip)
