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

"""Deterministic naming and options for bastion resources.

Every resource that belongs to a bastion is looked up by a name which is
derived from the cluster and the bastion name only. Re-running a reconcile
therefore always finds the resources created by an earlier attempt.
"""

import base64
import hashlib
import ipaddress
from typing import List, Optional

from pydantic import ConfigDict

from openstack_bastion.exceptions import ConfigurationError
from openstack_bastion.objects import Object
from openstack_bastion.resources.openstack import (
    BastionRequest,
    ETHER_TYPE_IPV4,
    ETHER_TYPE_IPV6,
)

# The base name is used to derive the names of the other resources, so it
# has to leave room for their suffixes.
MAX_LENGTH_FOR_BASE_NAME = 33

# The longest name accepted for any bastion resource.
MAX_LENGTH_FOR_RESOURCE_NAME = 63

HASH_LENGTH = 5


class Options(Object):
    """Options derived from a BastionRequest.

    The options are never persisted. They are recomputed on every reconcile
    and identical requests always result in identical options.
    """

    model_config = ConfigDict(frozen=True)

    instance_name: str
    security_group_name: str
    cluster_name: str
    network_name: str
    router_name: str
    region: Optional[str] = None
    cloud: Optional[str] = None
    user_data: str = ""

    def __hash__(self):
        return hash(self.instance_name)


class IngressPermission(Object):
    """A normalised CIDR allowed to reach the bastion."""

    model_config = ConfigDict(frozen=True)

    ether_type: str
    cidr: str

    def __hash__(self):
        return hash((self.ether_type, self.cidr))


def generate_base_resource_name(cluster_name: str, bastion_name: str) -> str:
    """Return the base name used for all resources of a bastion.

    The name is the cluster and bastion names joined by a dash, truncated to
    MAX_LENGTH_FOR_BASE_NAME and suffixed with the first characters of the
    sha256 of the untruncated name.

    :param cluster_name: the name of the cluster the bastion belongs to
    :param bastion_name: the name of the bastion
    :return: the base resource name
    :raises ConfigurationError: if either name is empty
    """
    if not cluster_name:
        raise ConfigurationError("cluster name can't be empty")
    if not bastion_name:
        raise ConfigurationError("bastion name can't be empty")

    static_name = f"{cluster_name}-{bastion_name}"
    digest = hashlib.sha256(static_name.encode()).hexdigest()
    return f"{static_name[:MAX_LENGTH_FOR_BASE_NAME]}-bastion-{digest[:HASH_LENGTH]}"


def security_group_name(base_name: str) -> str:
    return f"{base_name}-sg"


def ingress_allow_ssh_resource_name(base_name: str) -> str:
    return f"{base_name}-allow-ssh"


def egress_allow_only_resource_name(base_name: str) -> str:
    return f"{base_name}-egress-worker"


def determine_options(request: BastionRequest, cloud: Optional[str] = None) -> Options:
    """Derive the Options for a bastion request.

    The cluster network and router carry the name of the cluster.

    :param request: the bastion request
    :param cloud: the clouds.yaml entry to use when the request names none
    :return: the options for the request
    """
    base_name = generate_base_resource_name(request.cluster, request.name)

    return Options(
        instance_name=base_name,
        security_group_name=security_group_name(base_name),
        cluster_name=request.cluster,
        network_name=request.cluster,
        router_name=request.cluster,
        region=request.region,
        cloud=request.cloud or cloud,
        user_data=base64.b64encode(request.user_data).decode(),
    )


def ingress_permissions(request: BastionRequest) -> List[IngressPermission]:
    """Classify and normalise the ingress CIDRs of a request.

    :param request: the bastion request
    :return: an IngressPermission per CIDR, in request order
    :raises ConfigurationError: if a CIDR can not be parsed
    """
    permissions = []
    for cidr in request.ingress:
        try:
            network = ipaddress.ip_network(cidr, strict=False)
        except ValueError as e:
            raise ConfigurationError(f"invalid ingress CIDR {cidr!r}: {e}") from e

        ether_type = ETHER_TYPE_IPV4 if network.version == 4 else ETHER_TYPE_IPV6
        permissions.append(IngressPermission(ether_type=ether_type, cidr=str(network)))

    return permissions
