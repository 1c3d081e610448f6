#!/usr/bin/python3
# Copyright (C) 2024 Jelmer Vernooij
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston, MA 02110-1301 USA

"""Helpers for integrating systemd units with Debian packaging."""

__version__ = (1, 66)
version_string = ".".join(map(str, __version__))


class UnitFileNotFound(Exception):
    """The unit file could not be found in any unit directory."""

    def __init__(self, name, path=None):
        super().__init__(name, path)
        self.name = name
        self.path = path

    def __str__(self):
        if self.path:
            return "unable to read unit file %s for %s" % (
                self.path, self.name)
        return "unable to find unit file for %s" % self.name


class DebhelperError(Exception):
    """A debhelper-style tool could not continue."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message
