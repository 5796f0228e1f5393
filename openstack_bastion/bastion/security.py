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

"""Security group and rule reconciliation for bastions."""

from typing import List, Optional, Tuple

from openstack_bastion.bastion.options import (
    IngressPermission,
    Options,
    egress_allow_only_resource_name,
    ingress_allow_ssh_resource_name,
)
from openstack_bastion.clients import Networking
from openstack_bastion.exceptions import (
    AmbiguousResourceError,
    CloudError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
)
from openstack_bastion.resources.openstack import (
    DIRECTION_EGRESS,
    DIRECTION_INGRESS,
    ETHER_TYPE_IPV4,
    PROTOCOL_TCP,
    SecurityGroup,
    SecurityGroupRule,
)

SSH_PORT = 22

# The fields which identify a rule. The id is assigned by the cloud and is
# not part of it.
RULE_IDENTITY = (
    "direction",
    "description",
    "ether_type",
    "security_group_id",
    "port_range_min",
    "port_range_max",
    "protocol",
    "remote_group_id",
    "remote_ip_prefix",
)


def ingress_allow_ssh(opt: Options, permission: IngressPermission, security_group_id: str,
                      port: int = SSH_PORT) -> SecurityGroupRule:
    """Rule allowing SSH to the bastion from the permitted CIDR."""
    return SecurityGroupRule(
        direction=DIRECTION_INGRESS,
        description=ingress_allow_ssh_resource_name(opt.instance_name),
        ether_type=permission.ether_type,
        protocol=PROTOCOL_TCP,
        port_range_min=port,
        port_range_max=port,
        security_group_id=security_group_id,
        remote_ip_prefix=permission.cidr,
    )


def egress_allow_ssh_to_worker(opt: Options, security_group_id: str, worker_group_id: str,
                               port: int = SSH_PORT) -> SecurityGroupRule:
    """Rule allowing SSH from the bastion to the cluster's workers only."""
    return SecurityGroupRule(
        direction=DIRECTION_EGRESS,
        description=egress_allow_only_resource_name(opt.instance_name),
        ether_type=ETHER_TYPE_IPV4,
        protocol=PROTOCOL_TCP,
        port_range_min=port,
        port_range_max=port,
        security_group_id=security_group_id,
        remote_group_id=worker_group_id,
    )


def rule_equal(a: SecurityGroupRule, b: SecurityGroupRule) -> bool:
    """Return True if both rules allow the same traffic under the same description."""
    return all(getattr(a, field) == getattr(b, field) for field in RULE_IDENTITY)


def _contains(rules: List[SecurityGroupRule], rule: SecurityGroupRule) -> bool:
    return any(rule_equal(rule, other) for other in rules)


def rules_symmetric_difference(
    wanted: List[SecurityGroupRule], current: List[SecurityGroupRule]
) -> Tuple[List[SecurityGroupRule], List[SecurityGroupRule]]:
    """Compute the rules to add and the rules to delete.

    :param wanted: the rules which should exist
    :param current: the rules which exist
    :return: a tuple of the wanted rules missing from current, and the
             current rules which are not wanted
    """
    to_add = [rule for rule in wanted if not _contains(current, rule)]
    to_delete = [rule for rule in current if not _contains(wanted, rule)]
    return to_add, to_delete


def find_security_group(networking: Networking, name: str) -> Optional[SecurityGroup]:
    """Return the security group with the given name, or None.

    :raises AmbiguousResourceError: if more than one group has the name
    """
    groups = networking.find_security_groups_by_name(name)
    if len(groups) > 1:
        raise AmbiguousResourceError("security group", name, len(groups))
    return groups[0] if groups else None


def ensure_security_group(networking: Networking, name: str, log) -> SecurityGroup:
    """Get or create the security group of the bastion.

    :param networking: the networking client
    :param name: the name of the security group
    :param log: the logger to report to
    :return: the existing or newly created security group
    """
    group = find_security_group(networking, name)
    if group is not None:
        log.debug(f"Security group {name} already exists ({group.id})")
        return group

    group = networking.create_security_group(name=name, description=name)
    log.info(f"Security group {name} created ({group.id})")
    return group


def create_security_group_rule_if_not_exist(networking: Networking, rule: SecurityGroupRule,
                                            log) -> None:
    try:
        networking.create_rule(rule)
    except ConflictError:
        log.debug(f"Security group rule {rule.description} already exists")
        return
    except CloudError as e:
        raise CloudError(
            f"failed to create security group rule {rule.description}: {e}",
            status_code=e.status_code) from e
    log.info(f"Security group rule {rule.description} created")


def delete_security_group_rule_if_exist(networking: Networking, rule: SecurityGroupRule,
                                        log) -> None:
    try:
        networking.delete_rule(rule.id)
    except NotFoundError:
        log.debug(f"Security group rule {rule.description} ({rule.id}) already deleted")
        return
    except CloudError as e:
        raise CloudError(
            f"failed to delete security group rule {rule.description} ({rule.id}): {e}",
            status_code=e.status_code) from e
    log.info(f"Unwanted security group rule {rule.description} ({rule.id}) deleted")


def ensure_security_group_rules(networking: Networking, opt: Options,
                                permissions: List[IngressPermission], security_group_id: str,
                                log, port: int = SSH_PORT) -> None:
    """Reconcile the rules of the bastion security group.

    The bastion accepts SSH from every ingress permission and may only open
    SSH connections to the workers of its cluster.

    :param networking: the networking client
    :param opt: the bastion options
    :param permissions: the ingress permissions of the bastion
    :param security_group_id: the id of the bastion security group
    :param log: the logger to report to
    :param port: the SSH port
    """
    # The cluster is assumed to use a single security group for its workers.
    worker_group = find_security_group(networking, opt.cluster_name)
    if worker_group is None:
        raise ConfigurationError(f"security group of cluster {opt.cluster_name} not found")

    wanted = [ingress_allow_ssh(opt, permission, security_group_id, port)
              for permission in permissions]
    wanted.append(egress_allow_ssh_to_worker(opt, security_group_id, worker_group.id, port))

    current = networking.list_rules(security_group_id)
    to_add, to_delete = rules_symmetric_difference(wanted, current)

    for rule in to_add:
        create_security_group_rule_if_not_exist(networking, rule, log)

    for rule in to_delete:
        delete_security_group_rule_if_exist(networking, rule, log)


def remove_security_group(networking: Networking, opt: Options, log) -> None:
    """Delete every security group named after the bastion."""
    for group in networking.find_security_groups_by_name(opt.security_group_name):
        try:
            networking.delete_security_group(group.id)
        except NotFoundError:
            continue
        log.info(f"Security group {group.name} removed ({group.id})")
