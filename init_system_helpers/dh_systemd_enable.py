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

"""Install systemd unit files and enable them in maintainer scripts."""

import logging
import os
import shutil
import sys
from typing import List, Optional

from . import DebhelperError, version_string
from .config import DebhelperConfig
from .debhelper import (
    addsubstvar,
    autoscript,
    pkgfile,
    read_binary_packages,
    select_packages,
    tmpdir as default_tmpdir,
    )
from .systemd import has_install_section, systemd_unit_files

TOOL_NAME = 'dh_systemd_enable'

UNIT_TYPES = ['service', 'target', 'socket', 'path', 'timer', 'tmpfile']

UNIT_DIRS = ['lib/systemd/system', 'usr/lib/systemd/system']

MISC_DEPENDS = 'init-system-helpers (>= 1.18~)'


def install_unit_files(package: str, tmpdir: str, script: str,
                       main_package: Optional[str] = None,
                       name: Optional[str] = None,
                       config: Optional[DebhelperConfig] = None) -> List[str]:
    """Install debian/<package>.<type> files into the package tmpdir.

    Returns:
      list of installed paths
    """
    if config is None:
        config = DebhelperConfig()
    installed = []
    for unit_type in UNIT_TYPES:
        source = pkgfile(
            package, unit_type, main_package=main_package, name=name,
            debian_dir=config.debian_dir)
        if source is None:
            continue
        if unit_type == 'tmpfile':
            target_dir = os.path.join(tmpdir, 'usr/lib/tmpfiles.d')
            target = os.path.join(target_dir, '%s.conf' % script)
        else:
            target_dir = os.path.join(tmpdir, 'lib/systemd/system')
            target = os.path.join(target_dir, '%s.%s' % (script, unit_type))
        if config.verbose:
            logging.info('\tinstall -p -m0644 %s %s', source, target)
        if config.no_act:
            continue
        os.makedirs(target_dir, exist_ok=True)
        shutil.copy2(source, target)
        os.chmod(target, 0o644)
        installed.append(target)
    return installed


def find_installed_units(tmpdir: str) -> List[str]:
    """List the unit files shipped in a package tmpdir."""
    units = []
    seen = set()
    for unit_dir in UNIT_DIRS:
        for path in systemd_unit_files(os.path.join(tmpdir, unit_dir)):
            if os.path.basename(path) in seen:
                continue
            seen.add(os.path.basename(path))
            units.append(path)
    return units


def select_units(requested: List[str], installed: List[str],
                 package: str) -> List[str]:
    """Determine the units to enable.

    Args:
      requested: Units given on the command line
      installed: Units shipped in the package
      package: Name of the package, for messages
    Returns:
      paths of units that can be enabled
    """
    units = []
    for name in (requested or installed):
        base = os.path.basename(name)
        if base == name:
            for path in installed:
                if os.path.basename(path) == base:
                    name = path
                    break
            else:
                logging.warning(
                    'Could not find "%s" in the unit directories of %s. '
                    'This could be a typo, or using Also= with a service '
                    'file from another package. Please check carefully '
                    'that this message is harmless.', name, package)
                continue
        # Templates can only be enabled with an instance.
        if '@' in base:
            continue
        try:
            if not has_install_section(name):
                logging.debug('%s has no [Install] section', name)
                continue
        except OSError as e:
            logging.warning(
                'Cannot read %s to look for an [Install] section: %s',
                name, e)
            continue
        if name not in units:
            units.append(name)
    return units


def _quote(name):
    return "'%s'" % os.path.basename(name)


def add_maintscript_snippets(package: str, units: List[str],
                             enable: bool = True,
                             config: Optional[DebhelperConfig] = None
                             ) -> None:
    if config is None:
        config = DebhelperConfig()
    if enable:
        template = 'postinst-systemd-enable'
    else:
        template = 'postinst-systemd-dont-enable'
    for unit in sorted(units, key=os.path.basename):
        autoscript(
            package, 'postinst', template, {'UNITFILE': _quote(unit)},
            TOOL_NAME, debian_dir=config.debian_dir)
    unitargs = ' '.join(sorted(_quote(unit) for unit in units))
    autoscript(
        package, 'postrm', 'postrm-systemd', {'UNITFILES': unitargs},
        TOOL_NAME, debian_dir=config.debian_dir)


def process_package(package: str, requested: List[str],
                    main_package: Optional[str] = None,
                    tmpdir: Optional[str] = None,
                    name: Optional[str] = None, enable: bool = True,
                    noscripts: bool = False,
                    config: Optional[DebhelperConfig] = None) -> List[str]:
    """Install and enable the units of a single package.

    Returns:
      list of units that maintainer script snippets were added for
    """
    if config is None:
        config = DebhelperConfig()
    if tmpdir is None:
        tmpdir = default_tmpdir(package, debian_dir=config.debian_dir)
    install_unit_files(
        package, tmpdir, name or package, main_package=main_package,
        name=name, config=config)
    units = select_units(requested, find_installed_units(tmpdir), package)
    if not units:
        return []
    if config.no_act:
        logging.info(
            'would enable %s in %s', ', '.join(map(_quote, units)), package)
        return units
    if not noscripts:
        add_maintscript_snippets(package, units, enable=enable, config=config)
    addsubstvar(package, 'misc:Depends', MISC_DEPENDS,
                debian_dir=config.debian_dir)
    return units


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(prog=TOOL_NAME)
    parser.add_argument(
        '-p', '--package', action='append', dest='packages', default=[],
        help='act on the specified binary package')
    parser.add_argument(
        '-N', '--no-package', action='append', dest='excluded', default=[],
        help='do not act on the specified binary package')
    parser.add_argument(
        '-i', '--indep', action='store_true',
        help='act on all architecture independent packages')
    parser.add_argument(
        '-a', '--arch', action='store_true',
        help='act on all architecture dependent packages')
    parser.add_argument(
        '-P', '--tmpdir', metavar='TMPDIR',
        help='use TMPDIR as package build directory')
    parser.add_argument(
        '-n', '--no-scripts', action='store_true', dest='noscripts',
        help='do not modify maintainer scripts')
    parser.add_argument(
        '--name', help='install unit files as NAME.service and friends')
    parser.add_argument(
        '--no-enable', action='store_false', dest='enable',
        help='only enable units that were enabled before')
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help='show the commands that modify the package build directory')
    parser.add_argument(
        '--no-act', action='store_true', help='do not modify any files')
    parser.add_argument(
        '--version', action='version', version='%(prog)s ' + version_string)
    parser.add_argument('units', nargs='*', metavar='UNIT')
    args = parser.parse_args(argv)

    config = DebhelperConfig.from_environ()
    config.verbose = config.verbose or args.verbose
    config.no_act = config.no_act or args.no_act
    if config.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(message)s')
    else:
        logging.basicConfig(level=logging.INFO, format='%(message)s')

    try:
        binary_packages = read_binary_packages(
            os.path.join(config.debian_dir, 'control'))
        packages = select_packages(
            binary_packages, include=args.packages, exclude=args.excluded,
            arch=args.arch, indep=args.indep)
        if not packages:
            raise DebhelperError('no packages to act on')
        if args.tmpdir and len(packages) > 1:
            raise DebhelperError(
                '-P/--tmpdir can only be used when acting on a single '
                'package')
    except DebhelperError as e:
        logging.error('%s: %s', TOOL_NAME, e)
        return 1

    main_package = binary_packages[0]['Package']
    for package in packages:
        try:
            process_package(
                package, args.units, main_package=main_package,
                tmpdir=args.tmpdir, name=args.name, enable=args.enable,
                noscripts=args.noscripts, config=config)
        except OSError as e:
            logging.error('%s: %s: %s', TOOL_NAME, package, e)
            return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
