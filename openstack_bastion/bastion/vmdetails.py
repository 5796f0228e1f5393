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

"""Selection of the machine type and image for a bastion from a cloud profile."""

from typing import List, Optional, Set, Tuple

from packaging.version import InvalidVersion, Version

from openstack_bastion.exceptions import ConfigurationError
from openstack_bastion.objects import Object
from openstack_bastion.resources.profile import (
    BastionProfile,
    CloudProfile,
    MachineImage,
    MachineImageVersion,
    MachineType,
)


class VmDetails(Object):
    """The machine chosen for a bastion."""
    machine_name: str
    architecture: str
    image_base_name: str
    image_version: str


def determine_vm_details(profile: CloudProfile) -> VmDetails:
    """Choose the machine type, architecture and image for a bastion.

    Without pinned settings, the machine type with the fewest CPUs and the
    newest supported image version for its architecture are chosen.

    :param profile: the cloud profile
    :return: the chosen details
    :raises ConfigurationError: if the profile offers no suitable machine
    """
    archs = get_architectures(profile.bastion, profile.machine_images)
    machine_name, architecture = get_machine(profile.bastion, profile.machine_types, archs)
    image_name = get_image_name(profile.bastion, profile.machine_images, architecture)
    image_version = get_image_version(image_name, architecture, profile.bastion,
                                      profile.machine_images)
    return VmDetails(machine_name=machine_name, architecture=architecture,
                     image_base_name=image_name, image_version=image_version)


def _find_image(images: List[MachineImage], name: str) -> Optional[MachineImage]:
    return next((image for image in images if image.name == name), None)


def get_machine(bastion: Optional[BastionProfile], machine_types: List[MachineType],
                possible_archs: Optional[List[str]]) -> Tuple[str, str]:
    """Return the name and architecture of the bastion machine type.

    :param possible_archs: the architectures to choose from, None for any
    """
    if bastion is not None and bastion.machine_type is not None:
        name = bastion.machine_type.name
        machine = next((m for m in machine_types if m.name == name), None)
        if machine is None:
            raise ConfigurationError(f"bastion machine with name {name} not found in cloudProfile")
        if machine.architecture is None:
            raise ConfigurationError(f"bastion machine {name} has no architecture")
        return machine.name, machine.architecture

    smallest = None
    for machine in machine_types:
        if machine.architecture is None:
            continue
        if possible_archs is not None and machine.architecture not in possible_archs:
            continue
        if smallest is None or machine.cpu < smallest.cpu:
            smallest = machine

    if smallest is None:
        raise ConfigurationError("no suitable machine found")
    return smallest.name, smallest.architecture


def _supported_archs(versions: List[MachineImageVersion],
                     pinned_version: Optional[str]) -> Set[str]:
    archs: Set[str] = set()
    for version in versions:
        if pinned_version is not None and version.version == pinned_version:
            return set(version.architectures)
        if version.supported:
            archs.update(version.architectures)
    return archs


def get_architectures(bastion: Optional[BastionProfile],
                      images: List[MachineImage]) -> Optional[List[str]]:
    """Return the architectures the bastion image is available for.

    :return: the sorted architectures, or None when both the machine type
             and the image are pinned
    """
    if bastion is None or bastion.machine_image is None:
        archs: Set[str] = set()
        for image in images:
            archs |= _supported_archs(image.versions, None)
        return sorted(archs)

    if bastion.machine_type is None:
        name = bastion.machine_image.name
        image = _find_image(images, name)
        if image is None:
            raise ConfigurationError(f"bastion image with name {name} not found in cloudProfile")
        return sorted(_supported_archs(image.versions, bastion.machine_image.version))

    return None


def get_image_name(bastion: Optional[BastionProfile], images: List[MachineImage],
                   arch: str) -> str:
    """Return the name of the bastion image."""
    if bastion is not None and bastion.machine_image is not None:
        name = bastion.machine_image.name
        if _find_image(images, name) is None:
            raise ConfigurationError(f"bastion image {name} not found in cloudProfile")
        return name

    # take the first image that is supported and arch compatible
    for image in images:
        for version in image.versions:
            if version.supported and arch in version.architectures:
                return image.name

    raise ConfigurationError(f"could not find any supported bastion image for arch {arch}")


def get_image_version(image_name: str, arch: str, bastion: Optional[BastionProfile],
                      images: List[MachineImage]) -> str:
    """Return the version of the bastion image."""
    image = _find_image(images, image_name)
    if image is None:
        raise ConfigurationError(f"machine image with name {image_name} not found in cloudProfile")

    if bastion is not None and bastion.machine_image is not None \
            and bastion.machine_image.version is not None:
        pinned = bastion.machine_image.version
        if not any(version.version == pinned for version in image.versions):
            raise ConfigurationError(f"image version {pinned} not found in cloudProfile")
        return pinned

    newest: Optional[Version] = None
    newest_name = None
    for version in image.versions:
        if not version.supported or arch not in version.architectures:
            continue
        try:
            parsed = Version(version.version)
        except InvalidVersion as e:
            raise ConfigurationError(
                f"invalid version {version.version} of image {image_name}: {e}") from e
        if newest is None or parsed > newest:
            newest = parsed
            newest_name = version.version

    if newest_name is None:
        raise ConfigurationError(
            f"could not find any supported image version for {image_name} and arch {arch}")
    return newest_name


def image_reference(profile: CloudProfile, details: VmDetails) -> str:
    """Return the OpenStack image reference for the chosen image version.

    :raises ConfigurationError: if the version names no image
    """
    image = _find_image(profile.machine_images, details.image_base_name)
    for version in image.versions if image else []:
        if version.version == details.image_version and version.image:
            return version.image

    raise ConfigurationError(f"no image configured for {details.image_base_name} "
                             f"version {details.image_version}")
