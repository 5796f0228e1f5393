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

"""Configuration options for the bastion hosts."""

from oslo_config import cfg

bastion_group = cfg.OptGroup(
    "bastion",
    title="Bastion host options",
    help="""Options under this group define the machine used for bastion
            hosts and how long to wait for it to become reachable.""",
)

opts = [
    cfg.StrOpt(
        "flavor_ref",
        help="Name or ID of the flavor used for bastion hosts. When unset, the "
        "flavor is chosen from the cloud profile of the request.",
    ),
    cfg.StrOpt(
        "image_ref",
        help="Name or ID of the image used for bastion hosts. When unset, the "
        "image is chosen from the cloud profile of the request.",
    ),
    cfg.PortOpt("ssh_port", default=22, help="The port bastion hosts accept SSH on."),
    cfg.IntOpt(
        "poll_attempts",
        default=6,
        min=0,
        help="How many times a new instance or public ip address is checked "
        "for activity before the reconcile is handed back to be retried later.",
    ),
    cfg.FloatOpt(
        "poll_interval",
        default=5,
        min=0,
        help="Seconds to wait between two checks of a new instance or public ip address.",
    ),
    cfg.FloatOpt(
        "ready_requeue_after",
        default=5,
        min=0,
        help="Seconds to wait before reconciling a bastion which is not ready yet.",
    ),
    cfg.FloatOpt(
        "delete_requeue_after",
        default=10,
        min=0,
        help="Seconds to wait before checking again on a bastion instance which "
        "is still deleting.",
    ),
]


def register_opts(conf: cfg.CONF):
    """Register configuration options.

    :param conf: configuration option manager
    """
    conf.register_group(bastion_group)
    conf.register_opts(opts, group=bastion_group)
