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

"""OpenStack Resource Definitions."""

import base64
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, ValidationInfo, field_serializer, field_validator

from openstack_bastion.objects import Object
from openstack_bastion.resources import Resource
from openstack_bastion.resources.profile import CloudProfile

DIRECTION_INGRESS = "ingress"
DIRECTION_EGRESS = "egress"

ETHER_TYPE_IPV4 = "IPv4"
ETHER_TYPE_IPV6 = "IPv6"

PROTOCOL_TCP = "tcp"

STATUS_ACTIVE = "ACTIVE"
STATUS_BUILD = "BUILD"
STATUS_DELETED = "DELETED"
STATUS_DOWN = "DOWN"
STATUS_ERROR = "ERROR"

# OpenStack reports this task state while a server deletion is in flight.
TASK_STATE_DELETING = "deleting"

ADDRESS_TYPE_FIXED = "fixed"
ADDRESS_TYPE_FLOATING = "floating"


class BastionRequest(Object):
    """A request for a short-lived SSH jump host into a cluster network."""

    model_config = ConfigDict(frozen=True)

    name: str
    cluster: str
    ingress: List[str] = []
    user_data: bytes = b""
    region: Optional[str] = None
    cloud: Optional[str] = None
    cloud_profile: Optional[CloudProfile] = None

    @field_validator("user_data", mode="before")
    @classmethod
    def _decode_user_data(cls, value, info: ValidationInfo):
        # JSON payloads carry the user data as base64 text.
        if info.mode == "json" and isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_serializer("user_data", when_used="json")
    def _encode_user_data(self, value: bytes) -> str:
        return base64.b64encode(value).decode()


class SecurityGroup(Resource):
    """A named set of allow rules."""
    description: Optional[str] = None


class SecurityGroupRule(Object):
    """A single security group rule.

    Rules that are wanted but not yet created carry no id.
    """
    id: Optional[str] = None
    direction: str
    ether_type: str = ETHER_TYPE_IPV4
    protocol: Optional[str] = None
    port_range_min: Optional[int] = None
    port_range_max: Optional[int] = None
    security_group_id: Optional[str] = None
    remote_ip_prefix: Optional[str] = None
    remote_group_id: Optional[str] = None
    description: Optional[str] = None

    def __hash__(self):
        return hash((self.direction, self.description, self.ether_type,
                     self.remote_ip_prefix, self.remote_group_id))


class ServerAddress(Object):
    """An address reported for a server on one of its networks."""

    model_config = ConfigDict(populate_by_name=True)

    addr: str
    version: int = 4
    type: Optional[str] = Field(default=None, alias="OS-EXT-IPS:type")
    mac_addr: Optional[str] = Field(default=None, alias="OS-EXT-IPS-MAC:mac_addr")


class Server(Resource):
    """A compute instance."""
    status: Optional[str] = None
    task_state: Optional[str] = None
    addresses: Dict[str, List[ServerAddress]] = {}
    fault: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def is_deleting(self) -> bool:
        return self.status == STATUS_DELETED or self.task_state == TASK_STATE_DELETING


class FloatingIP(Resource):
    """A publicly routable address which can be bound to a port."""
    floating_ip_address: Optional[str] = None
    floating_network_id: Optional[str] = None
    subnet_id: Optional[str] = None
    status: Optional[str] = None
    port_id: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE


class Port(Resource):
    """A network attachment point of a server."""
    status: Optional[str] = None
    device_id: Optional[str] = None
    network_id: Optional[str] = None


class Network(Resource):
    """A tenant network."""


class Flavor(Resource):
    """A compute flavor."""


class Image(Resource):
    """A compute image."""


class ExternalFixedIP(Object):
    """An address of a router on its external network."""
    subnet_id: Optional[str] = None
    ip_address: Optional[str] = None


class ExternalGatewayInfo(Object):
    """The gateway of a router to the external network."""
    network_id: Optional[str] = None
    external_fixed_ips: List[ExternalFixedIP] = []


class Router(Resource):
    """A tenant router."""
    external_gateway_info: Optional[ExternalGatewayInfo] = None


class Endpoint(Object):
    """A reachability record for the bastion."""
    hostname: Optional[str] = None
    ip: Optional[str] = None

    def ready(self) -> bool:
        return bool(self.hostname or self.ip)


class BastionEndpoints(Object):
    """The private and public endpoints of a bastion."""
    private: Optional[Endpoint] = None
    public: Optional[Endpoint] = None

    def ready(self) -> bool:
        """Return True once both the private and the public endpoint are known."""
        return (self.private is not None and self.private.ready()
                and self.public is not None and self.public.ready())
