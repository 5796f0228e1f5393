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

"""Configuration definition and parsing."""
from typing import List, Optional, Tuple

from oslo_config import cfg
from oslo_log import log

import openstack_bastion.conf
from openstack_bastion import version
from openstack_bastion.conf.cloud import cloud_opts
from openstack_bastion.exceptions import ConfigurationError

CONF = openstack_bastion.conf.CONF

LOG = log.getLogger(__name__)


def parse_args(argv: List[str], default_config_files: Optional[List[str]] = None):
    """Parse command line arguments to load the configuration.

    :param argv: list of arguments to parse.
    :param default_config_files: Paths to configuration files to use.
    """
    log.register_options(CONF)

    CONF(
        argv[1:],
        project="openstack_bastion",
        version=version.version_string(),
        default_config_files=default_config_files,
    )

    register_cloud_groups(CONF)


def register_cloud_groups(conf: cfg.ConfigOpts):
    """Register a configuration section for every configured cloud.

    :param conf: configuration option manager
    """
    # Dynamic cloud sections calls for this bit here.
    for cloud in conf.clouds:
        conf.register_group(cfg.OptGroup(cloud, dynamic_group_owner="clouds"))
        conf.register_opts(cloud_opts, cloud)


def _find_cloud(name: str, conf: cfg.ConfigOpts) -> Tuple[str, cfg.ConfigOpts.GroupAttr]:
    for section in conf.clouds:
        cloud_config = conf.get(section)
        if section == name or cloud_config.name == name:
            LOG.debug(f"Found cloud config {section} for {name}")
            return section, cloud_config

    LOG.error(f"Unable to find configuration for cloud {name}")
    raise ConfigurationError(f"Unable to find configuration for cloud {name}")


def get_cloud_config(name: str, conf: cfg.ConfigOpts = CONF) -> cfg.ConfigOpts.GroupAttr:
    """Return the configuration section of the cloud with the given name.

    A cloud is found either by its section or by its friendly name.

    :param name: the section or friendly name of the cloud
    :param conf: configuration option manager
    :raises ConfigurationError: if no cloud matches
    """
    return _find_cloud(name, conf)[1]


def cloud_entry(name: str, conf: cfg.ConfigOpts = CONF) -> str:
    """Return the clouds.yaml entry for the cloud with the given name.

    :param name: the section or friendly name of the cloud
    :param conf: configuration option manager
    :raises ConfigurationError: if no cloud matches
    """
    section, cloud_config = _find_cloud(name, conf)
    return cloud_config.cloud or section
