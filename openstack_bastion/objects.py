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

"""Shared objects for the bastion activities and workflows."""

from pydantic import BaseModel, ConfigDict


class Object(BaseModel):
    """An Object exchanged between the cloud, the activities and the workflows."""

    model_config = ConfigDict(extra="ignore")

    def __hash__(self):
        for attr in ("id", "name"):
            value = getattr(self, attr, None)
            if value is not None:
                return hash((type(self).__name__, value))

        raise TypeError(f"unhashable type: {type(self)}")
