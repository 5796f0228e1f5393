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

"""Reconciliation and deletion of bastions.

The actuator drives the cloud from whatever state it is in towards the
requested bastion. It keeps no state between calls: every call re-derives
the resource names and re-reads the cloud, so it can be invoked again at
any time, for instance after a failed or cancelled attempt.
"""

from typing import Callable, Optional, Tuple

from oslo_config import cfg
from oslo_log import log as logging

from openstack_bastion.bastion import vmdetails
from openstack_bastion.bastion.addresses import (
    ensure_associate_fip_with_instance,
    ensure_public_ip_address,
)
from openstack_bastion.bastion.compute import ensure_compute_instance, get_bastion_instance
from openstack_bastion.bastion.endpoints import get_instance_endpoints
from openstack_bastion.bastion.options import Options, determine_options, ingress_permissions
from openstack_bastion.bastion.polling import Poller
from openstack_bastion.bastion.security import (
    SSH_PORT,
    ensure_security_group,
    ensure_security_group_rules,
)
from openstack_bastion.bastion.teardown import teardown
from openstack_bastion.clients import Compute, Networking
from openstack_bastion.exceptions import BastionError, ConfigurationError, NotReadyError
from openstack_bastion.objects import Object
from openstack_bastion.resources.openstack import BastionEndpoints, BastionRequest


LOG = logging.getLogger(__name__)


class BastionConfig(Object):
    """Settings shared by all bastions."""
    flavor_ref: Optional[str] = None
    image_ref: Optional[str] = None
    ssh_port: int = SSH_PORT
    poll_attempts: int = 6
    poll_interval: float = 5
    ready_requeue_after: float = 5
    delete_requeue_after: float = 10

    @classmethod
    def from_conf(cls, conf: cfg.ConfigOpts) -> 'BastionConfig':
        """Read the settings from the [bastion] section of the configuration."""
        group = conf.bastion
        return cls(
            flavor_ref=group.flavor_ref,
            image_ref=group.image_ref,
            ssh_port=group.ssh_port,
            poll_attempts=group.poll_attempts,
            poll_interval=group.poll_interval,
            ready_requeue_after=group.ready_requeue_after,
            delete_requeue_after=group.delete_requeue_after,
        )


def bastion_config_check(config: Optional[BastionConfig], request: BastionRequest) -> None:
    """Check that a machine can be chosen for the bastion.

    :raises ConfigurationError: if neither the configuration nor the cloud
                                profile of the request name a flavor and image
    """
    if config is None:
        raise ConfigurationError("bastionConfig must not be empty")

    if request.cloud_profile is not None:
        return

    if not config.flavor_ref:
        raise ConfigurationError(
            "bastion not supported as no flavor is configured for the bastion host machine")

    if not config.image_ref:
        raise ConfigurationError(
            "bastion not supported as no image is configured for the bastion host machine")


def machine_references(config: BastionConfig, request: BastionRequest) -> Tuple[str, str]:
    """Return the flavor and image references for the bastion machine.

    Configured references take precedence over the cloud profile.
    """
    bastion_config_check(config, request)
    if config.flavor_ref and config.image_ref:
        return config.flavor_ref, config.image_ref

    details = vmdetails.determine_vm_details(request.cloud_profile)
    flavor_ref = config.flavor_ref or details.machine_name
    image_ref = config.image_ref or vmdetails.image_reference(request.cloud_profile, details)
    return flavor_ref, image_ref


class Actuator:
    """Reconciles and deletes bastions in one cloud.

    :param compute: the compute client of the cloud
    :param networking: the networking client of the cloud
    :param config: settings shared by all bastions
    :param cancelled: returns True once the caller gave up on the operation
    :param heartbeat: called while waiting on the cloud
    :param sleep: the function used to wait between two polls
    """

    def __init__(self, compute: Compute, networking: Networking,
                 config: Optional[BastionConfig] = None,
                 cancelled: Optional[Callable[[], bool]] = None,
                 heartbeat: Optional[Callable[..., None]] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        self.compute = compute
        self.networking = networking
        self.config = config or BastionConfig()
        self.cancelled = cancelled
        self.heartbeat = heartbeat
        self.sleep = sleep

    def _poller(self) -> Poller:
        kwargs = {}
        if self.cancelled is not None:
            kwargs["cancelled"] = self.cancelled
        if self.sleep is not None:
            kwargs["sleep"] = self.sleep
        return Poller(attempts=self.config.poll_attempts,
                      interval=self.config.poll_interval,
                      retry_after=self.config.ready_requeue_after,
                      heartbeat=self.heartbeat, **kwargs)

    @staticmethod
    def _logger(opt: Options, operation: str):
        return logging.KeywordArgumentAdapter(
            LOG.logger, {"bastion": opt.instance_name, "operation": operation})

    def reconcile(self, request: BastionRequest) -> BastionEndpoints:
        """Create or update the bastion and return its endpoints.

        :param request: the bastion request
        :return: the private and public endpoints of the bastion
        :raises ConfigurationError: if the bastion can never be created as requested
        :raises NotReadyError: if the bastion is not ready yet
        """
        opt = determine_options(request)
        log = self._logger(opt, "reconcile")

        flavor_ref, image_ref = machine_references(self.config, request)
        permissions = ingress_permissions(request)
        poller = self._poller()

        security_group = ensure_security_group(self.networking, opt.security_group_name, log)
        ensure_security_group_rules(self.networking, opt, permissions, security_group.id, log,
                                    port=self.config.ssh_port)

        instance = ensure_compute_instance(self.compute, self.networking, opt, flavor_ref,
                                           image_ref, poller, log)

        fip = ensure_public_ip_address(self.networking, opt, poller, log)
        ensure_associate_fip_with_instance(self.networking, instance, fip, log,
                                           retry_after=self.config.ready_requeue_after)

        # refresh instance after public ip attached/created
        instance = get_bastion_instance(self.compute, opt.instance_name)
        if instance is None:
            raise BastionError(f"bastion instance {opt.instance_name} disappeared")

        endpoints = get_instance_endpoints(instance, opt,
                                           retry_after=self.config.ready_requeue_after)
        if not endpoints.ready():
            # requeue rather soon, so that the user doesn't have to wait too
            # long for the public endpoint to become available
            raise NotReadyError("bastion instance has no public/private endpoints yet",
                                retry_after=self.config.ready_requeue_after)

        log.info(f"Bastion {opt.instance_name} is ready at {endpoints.public.ip}")
        return endpoints

    def delete(self, request: BastionRequest) -> None:
        """Remove every resource of the bastion.

        :param request: the bastion request
        :raises NotReadyError: while the bastion instance is still deleting
        """
        opt = determine_options(request)
        log = self._logger(opt, "delete")

        teardown(self.compute, self.networking, opt, log,
                 retry_after=self.config.delete_requeue_after)
        log.info(f"Bastion {opt.instance_name} deleted")
