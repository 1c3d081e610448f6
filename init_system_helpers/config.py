#!/usr/bin/python
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

"""Configuration for deb-systemd-helper and dh_systemd_enable."""

import os
import posixpath
from typing import List, Optional


SYSTEM_UNIT_DIRS = [
    "/etc/systemd/system",
    "/lib/systemd/system",
    "/usr/lib/systemd/system",
]

USER_UNIT_DIRS = [
    "/etc/systemd/user",
    "/usr/lib/systemd/user",
]

STATE_DIR = "/var/lib/systemd"


def _env_flag(value: Optional[str]) -> bool:
    return value not in (None, "", "0")


class HelperConfig:
    """Where deb-systemd-helper looks for units and keeps its state.

    All paths are paths inside the target system; use host_path() to
    find them on the filesystem when DPKG_ROOT is set.
    """

    def __init__(self, root: str = "", user: bool = False,
                 debug: bool = False):
        self.root = root.rstrip("/")
        self.user = user
        self.debug = debug
        if user:
            self.unit_dirs: List[str] = list(USER_UNIT_DIRS)
            self.link_dir = "/etc/systemd/user"
            prefix = "deb-systemd-user-helper"
        else:
            self.unit_dirs = list(SYSTEM_UNIT_DIRS)
            self.link_dir = "/etc/systemd/system"
            prefix = "deb-systemd-helper"
        self.enabled_state_dir = posixpath.join(STATE_DIR, prefix + "-enabled")
        self.masked_state_dir = posixpath.join(STATE_DIR, prefix + "-masked")

    @classmethod
    def from_environ(cls, environ=None, user=False):
        if environ is None:
            environ = os.environ
        return cls(
            root=environ.get("DPKG_ROOT", ""),
            user=user,
            debug=_env_flag(environ.get("_DEB_SYSTEMD_HELPER_DEBUG")))

    def host_path(self, path: str) -> str:
        """Translate a path inside the target system to a filesystem path."""
        if not self.root:
            return path
        return self.root + path

    def may_reload(self) -> bool:
        """Whether a running service manager should be told to reload."""
        return not self.user and not self.root


class DebhelperConfig:
    """Settings shared by the debhelper-style tools."""

    def __init__(self, verbose=False, no_act=False, debian_dir="debian"):
        self.verbose = verbose
        self.no_act = no_act
        self.debian_dir = debian_dir

    @classmethod
    def from_environ(cls, environ=None, **kwargs):
        if environ is None:
            environ = os.environ
        kwargs.setdefault("verbose", _env_flag(environ.get("DH_VERBOSE")))
        kwargs.setdefault("no_act", _env_flag(environ.get("DH_NO_ACT")))
        return cls(**kwargs)
