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

"""Cloud profile definitions used to pick the machine for a bastion."""

from typing import List, Optional

from openstack_bastion.objects import Object

CLASSIFICATION_SUPPORTED = "supported"
CLASSIFICATION_PREVIEW = "preview"
CLASSIFICATION_DEPRECATED = "deprecated"


class MachineType(Object):
    """A machine type (flavor) offered by the cloud."""
    name: str
    cpu: int
    architecture: Optional[str] = None


class MachineImageVersion(Object):
    """A version of a machine image.

    The image is the name or id of the OpenStack image for this version.
    """
    version: str
    architectures: List[str] = ["amd64"]
    classification: Optional[str] = None
    image: Optional[str] = None

    @property
    def supported(self) -> bool:
        return self.classification == CLASSIFICATION_SUPPORTED


class MachineImage(Object):
    """A machine image offered by the cloud."""
    name: str
    versions: List[MachineImageVersion] = []


class BastionMachineImage(Object):
    """The image pinned for bastions."""
    name: str
    version: Optional[str] = None


class BastionMachineType(Object):
    """The machine type pinned for bastions."""
    name: str


class BastionProfile(Object):
    """Bastion specific settings of a cloud profile."""
    machine_type: Optional[BastionMachineType] = None
    machine_image: Optional[BastionMachineImage] = None


class CloudProfile(Object):
    """The machine types and images available in a cloud."""
    machine_types: List[MachineType] = []
    machine_images: List[MachineImage] = []
    bastion: Optional[BastionProfile] = None
