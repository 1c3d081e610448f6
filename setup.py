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

from setuptools import setup

setup(
    name="init-system-helpers",
    version="1.66",
    description="helper tools for integrating systemd units with Debian packages",
    author="Jelmer Vernooij",
    author_email="jelmer@debian.org",
    license="GPL-2.0-or-later",
    packages=["init_system_helpers", "init_system_helpers.tests"],
    package_data={"init_system_helpers": ["autoscripts/*"]},
    python_requires=">=3.7",
    install_requires=[
        "python-debian",
        "iniparse",
    ],
    extras_require={
        "testing": ["breezy[testing]"],
    },
    entry_points={
        "console_scripts": [
            "deb-systemd-helper=init_system_helpers.helper:main",
            "dh_systemd_enable=init_system_helpers.dh_systemd_enable:main",
        ],
    },
    test_suite="init_system_helpers.tests.test_suite",
)
