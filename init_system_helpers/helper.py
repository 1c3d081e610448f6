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

"""Enable and disable systemd units without a running systemd.

Links are created and removed directly on the filesystem. What was done
is recorded below the state directory, so that later invocations from
maintainer scripts can undo it and do not override decisions made by the
administrator in the meantime.
"""

import logging
import os
import posixpath
import subprocess
import sys
import tempfile
from typing import List, NamedTuple, Optional, Set, Tuple

from . import UnitFileNotFound, version_string
from .config import HelperConfig
from .systemd import read_unit_file


ACTIONS = [
    'enable',
    'disable',
    'purge',
    'reenable',
    'mask',
    'unmask',
    'is-enabled',
    'was-enabled',
    'debian-installed',
    'update-state',
]

SYSTEMD_RUNTIME_DIR = '/run/systemd/system'

DEPENDENCY_DIRECTIVES = [
    ('WantedBy', '.wants'),
    ('RequiredBy', '.requires'),
    ('UpheldBy', '.upholds'),
]

logger = logging.getLogger(__name__)


class Link(NamedTuple):

    source: str
    dest: str


def split_instance(name: str) -> Tuple[str, Optional[str]]:
    """Split a unit name into its template name and instance.

    Returns:
      tuple with template name and instance; the instance is None for
      names that are not templates and '' for uninstantiated templates
    """
    if '@' not in name:
        return name, None
    prefix, rest = name.split('@', 1)
    instance, dot, suffix = rest.rpartition('.')
    if not dot:
        return name, None
    return '%s@.%s' % (prefix, suffix), instance


def instantiate(name: str, instance: Optional[str]) -> str:
    template, current = split_instance(name)
    if not instance or current != '':
        return name
    prefix, suffix = template.split('@.', 1)
    return '%s@%s.%s' % (prefix, instance, suffix)


class StateFile(object):
    """List of links created on behalf of a unit (the .dsh-also file)."""

    def __init__(self, path: str):
        self.path = path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def entries(self) -> List[str]:
        try:
            with open(self.path, 'r') as f:
                return [line.rstrip('\n') for line in f if line.strip()]
        except FileNotFoundError:
            return []

    def write(self, entries: List[str]) -> None:
        dirname = os.path.dirname(self.path)
        os.makedirs(dirname, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=dirname, prefix='.' + os.path.basename(self.path))
        try:
            with os.fdopen(fd, 'w') as f:
                f.writelines(entry + '\n' for entry in entries)
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def record(self, entry: str) -> None:
        entries = self.entries()
        if entry in entries:
            return
        entries.append(entry)
        self.write(entries)

    def touch(self) -> None:
        if not self.exists():
            self.write([])

    def remove(self) -> None:
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass


def _touch(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'a'):
        pass


def _unlink_if_exists(path: str) -> bool:
    try:
        os.unlink(path)
    except FileNotFoundError:
        return False
    return True


class SystemdHelper(object):
    """Performs deb-systemd-helper actions against a configuration.

    Attributes:
      changed: whether any link was created or removed
    """

    def __init__(self, config: HelperConfig):
        self.config = config
        self.changed = False

    def _host(self, path: str) -> str:
        return self.config.host_path(path)

    def find_unit_file(self, name: str) -> Optional[str]:
        """Find the unit file for a unit.

        Args:
          name: Unit name or path to a unit file
        Returns:
          path to the unit file inside the target system, or None
        """
        if '/' in name:
            if os.path.isfile(self._host(name)):
                return name
            return None
        candidates = [name]
        template, instance = split_instance(name)
        if instance:
            candidates.append(template)
        for candidate in candidates:
            for unit_dir in self.config.unit_dirs:
                path = posixpath.join(unit_dir, candidate)
                if os.path.isfile(self._host(path)):
                    return path
        return None

    def state_file(self, name: str) -> StateFile:
        return StateFile(self._host(posixpath.join(
            self.config.enabled_state_dir,
            posixpath.basename(name) + '.dsh-also')))

    def link_marker(self, link: str) -> str:
        """Path of the marker recording that a link was created by us."""
        relpath = posixpath.relpath(link, self.config.link_dir)
        return self._host(
            posixpath.join(self.config.enabled_state_dir, relpath))

    def mask_marker(self, name: str) -> str:
        return self._host(posixpath.join(
            self.config.masked_state_dir, posixpath.basename(name)))

    def link_closure(self, name: str,
                     _seen: Optional[Set[str]] = None) -> List[Link]:
        """Determine the links that enabling a unit creates.

        Follows Also= directives recursively.

        Raises:
          UnitFileNotFound: if the unit file of name can not be found
        """
        if _seen is None:
            _seen = set()
        unit_name = posixpath.basename(name)
        _seen.add(unit_name)
        unit_path = self.find_unit_file(name)
        if unit_path is None:
            raise UnitFileNotFound(unit_name)
        try:
            unit = read_unit_file(self._host(unit_path))
        except OSError as e:
            raise UnitFileNotFound(unit_name, unit_path) from e
        install = unit.install
        links: List[Link] = []
        if install is None:
            logger.debug('%s has no [Install] section', unit_path)
            return links

        _, instance = split_instance(unit_name)
        if instance == '':
            instance = install.get('DefaultInstance') or None
        link_name = instantiate(unit_name, instance)

        for directive, suffix in DEPENDENCY_DIRECTIVES:
            for target in install[directive]:
                links.append(Link(unit_path, posixpath.join(
                    self.config.link_dir, target + suffix, link_name)))

        for alias in install['Alias']:
            alias = instantiate(alias, instance)
            if alias == unit_name:
                logger.warning(
                    'skipping alias %s: it is the name of the unit itself',
                    alias)
                continue
            links.append(
                Link(unit_path, posixpath.join(self.config.link_dir, alias)))

        for also in install['Also']:
            if also in _seen:
                continue
            try:
                links.extend(self.link_closure(also, _seen))
            except UnitFileNotFound as e:
                logger.warning(
                    'ignoring Also=%s in %s: %s', also, unit_path, e)
        logger.debug('link closure for %s: %r', unit_name, links)
        return links

    def is_enabled(self, name: str) -> bool:
        try:
            links = self.link_closure(name)
        except UnitFileNotFound as e:
            logger.debug('%s', e)
            return False
        if not links:
            return False
        for link in links:
            if not os.path.islink(self._host(link.dest)):
                logger.debug('link %s is missing', link.dest)
                return False
        return True

    def was_enabled(self, name: str) -> bool:
        """Check whether all links we ever created for a unit are present.

        A unit that was never enabled counts as enabled, so that new
        installations enable it.
        """
        for link in self.state_file(name).entries():
            if not os.path.islink(self._host(link)):
                logger.debug(
                    'link %s is missing, considering %s was-disabled',
                    link, name)
                return False
        logger.debug('all links present, considering %s was-enabled', name)
        return True

    def debian_installed(self, name: str) -> bool:
        return self.state_file(name).exists()

    def enable(self, name: str) -> None:
        state = self.state_file(name)
        for link in self.link_closure(name):
            marker = self.link_marker(link.dest)
            if os.path.exists(marker):
                logger.debug(
                    'not creating %s, it was created before', link.dest)
                continue
            dest = self._host(link.dest)
            if os.path.islink(dest):
                logger.debug('%s already exists', link.dest)
            elif os.path.exists(dest):
                logger.warning(
                    'not creating link %s: file exists', link.dest)
            else:
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                logger.debug('ln -s %s %s', link.source, link.dest)
                os.symlink(link.source, dest)
                self.changed = True
            _touch(marker)
            state.record(link.dest)
        state.touch()

    def disable(self, name: str, purge: bool = False,
                _seen: Optional[Set[str]] = None) -> None:
        if _seen is None:
            _seen = set()
        unit_name = posixpath.basename(name)
        _seen.add(unit_name)
        state = self.state_file(name)
        entries = state.entries()
        if purge:
            state.remove()
        for entry in entries:
            dest = self._host(entry)
            # Markers of links removed by the administrator are kept.
            if purge or os.path.islink(dest):
                _unlink_if_exists(self.link_marker(entry))
            if not os.path.islink(dest):
                continue
            logger.debug('rm %s', entry)
            os.unlink(dest)
            self.changed = True

        unit_path = self.find_unit_file(name)
        if unit_path is None:
            return
        try:
            unit = read_unit_file(self._host(unit_path))
        except OSError as e:
            logger.debug('unable to read %s: %s', unit_path, e)
            return
        if unit.install is None:
            return
        for also in unit.install['Also']:
            if also not in _seen:
                self.disable(also, purge=purge, _seen=_seen)

    def reenable(self, name: str) -> None:
        """Disable and enable a unit, recreating links removed earlier."""
        self.disable(name, purge=True)
        self.enable(name)

    def update_state(self, name: str) -> None:
        state = self.state_file(name)
        new_links = []
        for link in self.link_closure(name):
            if link.dest not in new_links:
                new_links.append(link.dest)
        for entry in state.entries():
            if entry in new_links:
                continue
            logger.debug('%s is no longer part of %s', entry, name)
            _unlink_if_exists(self.link_marker(entry))
            dest = self._host(entry)
            if os.path.islink(dest):
                os.unlink(dest)
                self.changed = True
        state.write(new_links)

    def mask(self, name: str) -> None:
        unit_name = posixpath.basename(name)
        link = posixpath.join(self.config.link_dir, unit_name)
        dest = self._host(link)
        if os.path.lexists(dest):
            if os.path.islink(dest) and os.readlink(dest) == '/dev/null':
                logger.debug('%s is already masked', unit_name)
            else:
                logger.debug(
                    'not masking %s, %s exists', unit_name, link)
            return
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        os.symlink('/dev/null', dest)
        _touch(self.mask_marker(unit_name))
        self.changed = True

    def unmask(self, name: str) -> None:
        unit_name = posixpath.basename(name)
        marker = self.mask_marker(unit_name)
        if not os.path.exists(marker):
            logger.debug('%s was not masked by us', unit_name)
            return
        dest = self._host(posixpath.join(self.config.link_dir, unit_name))
        if os.path.islink(dest) and os.readlink(dest) == '/dev/null':
            os.unlink(dest)
            self.changed = True
        os.unlink(marker)

    def daemon_reload(self) -> bool:
        """Tell a running systemd to pick up changed links.

        Returns:
          whether a reload was requested
        """
        if not self.changed or not self.config.may_reload():
            return False
        if not os.path.isdir(SYSTEMD_RUNTIME_DIR):
            return False
        try:
            subprocess.check_call(['systemctl', 'daemon-reload'])
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            logger.warning('systemctl daemon-reload failed: %s', e)
        return True


def run_action(helper: SystemdHelper, action: str, units: List[str],
               quiet: bool = False) -> int:
    """Run an action for a list of units.

    Returns:
      exit code
    """
    if action == 'is-enabled':
        any_enabled = False
        for unit in units:
            enabled = helper.is_enabled(unit)
            if not quiet:
                print('enabled' if enabled else 'disabled')
            any_enabled = any_enabled or enabled
        return 0 if any_enabled else 1
    if action == 'was-enabled':
        return 0 if all(helper.was_enabled(unit) for unit in units) else 1
    if action == 'debian-installed':
        return 0 if all(
            helper.debian_installed(unit) for unit in units) else 1

    handlers = {
        'enable': helper.enable,
        'disable': helper.disable,
        'purge': lambda unit: helper.disable(unit, purge=True),
        'reenable': helper.reenable,
        'mask': helper.mask,
        'unmask': helper.unmask,
        'update-state': helper.update_state,
    }
    ret = 0
    for unit in units:
        logger.debug('action = %s, unit = %s', action, unit)
        try:
            handlers[action](unit)
        except UnitFileNotFound as e:
            logging.error('%s', e)
            ret = 1
        except OSError as e:
            logging.error('%s %s failed: %s', action, unit, e)
            ret = 1
    helper.daemon_reload()
    return ret


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(prog='deb-systemd-helper')
    parser.add_argument(
        '--quiet', action='store_true',
        help='do not print the result of is-enabled')
    parser.add_argument(
        '--user', action='store_true',
        help='operate on user units rather than system units')
    parser.add_argument(
        '--debug', action='store_true', help='print debug output')
    parser.add_argument(
        '--version', action='version', version='%(prog)s ' + version_string)
    parser.add_argument('action', choices=ACTIONS, metavar='ACTION')
    parser.add_argument('units', nargs='+', metavar='UNIT')
    args = parser.parse_args(argv)

    config = HelperConfig.from_environ(user=args.user)
    if args.debug or config.debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format='%(message)s')

    return run_action(
        SystemdHelper(config), args.action, args.units, quiet=args.quiet)


if __name__ == '__main__':
    sys.exit(main())
