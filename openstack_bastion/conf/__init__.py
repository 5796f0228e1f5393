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

"""Configuration options for openstack_bastion."""

from oslo_config import cfg

from openstack_bastion.conf import bastion
from openstack_bastion.conf import cloud
from openstack_bastion.conf import temporal

CONF = cfg.CONF

bastion.register_opts(CONF)
cloud.register_opts(CONF)
temporal.register_opts(CONF)
