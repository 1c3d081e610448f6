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


"""Debhelper utility functions."""

import logging
import os
from typing import Dict, List, Optional

from debian.deb822 import Deb822, PkgRelation

from . import DebhelperError, version_string

AUTOSCRIPTS_DIR = os.path.join(os.path.dirname(__file__), 'autoscripts')

# Snippets for these scripts run in reverse order of installation.
PREPEND_SCRIPTS = ['postrm', 'prerm']


def read_binary_packages(path: str = 'debian/control') -> List[Deb822]:
    """Read the binary package paragraphs from a control file.

    Raises:
      DebhelperError: if the control file does not exist
    """
    try:
        with open(path, 'r') as f:
            paragraphs = list(Deb822.iter_paragraphs(f))
    except FileNotFoundError:
        raise DebhelperError('cannot read %s' % path)
    return [p for p in paragraphs if 'Package' in p]


def select_packages(
        packages: List[Deb822], include: Optional[List[str]] = None,
        exclude: Optional[List[str]] = None, arch: bool = False,
        indep: bool = False) -> List[str]:
    """Select the binary packages to act on.

    Args:
      packages: Binary package paragraphs
      include: Only act on these packages (-p)
      exclude: Do not act on these packages (-N)
      arch: Only act on architecture dependent packages (-a)
      indep: Only act on architecture independent packages (-i)
    Returns:
      list of package names, in control file order
    """
    known = [p['Package'] for p in packages]
    for name in include or []:
        if name not in known:
            raise DebhelperError(
                'requested unknown package %s via -p/--package' % name)
    ret = []
    for paragraph in packages:
        name = paragraph['Package']
        if include and name not in include:
            continue
        if exclude and name in exclude:
            continue
        is_indep = paragraph.get('Architecture', 'any').strip() == 'all'
        if (arch or indep) and not ((indep and is_indep) or
                                    (arch and not is_indep)):
            continue
        ret.append(name)
    return ret


def pkgfile(package: str, filetype: str, main_package: Optional[str] = None,
            name: Optional[str] = None,
            debian_dir: str = 'debian') -> Optional[str]:
    """Find a package file like debian/foo.service.

    Args:
      package: Binary package name
      filetype: File type, e.g. "service"
      main_package: First package in the control file; it also picks up
        files without package prefix
      name: Name given with --name
    Returns:
      path to the file, or None
    """
    if name is not None:
        candidates = ['%s.%s.%s' % (package, name, filetype)]
        if package == main_package:
            candidates.append('%s.%s' % (name, filetype))
    else:
        candidates = ['%s.%s' % (package, filetype)]
        if package == main_package:
            candidates.append(filetype)
    for candidate in candidates:
        path = os.path.join(debian_dir, candidate)
        if os.path.isfile(path):
            return path
    return None


def tmpdir(package: str, debian_dir: str = 'debian') -> str:
    return os.path.join(debian_dir, package)


def load_autoscript(template: str) -> str:
    with open(os.path.join(AUTOSCRIPTS_DIR, template), 'r') as f:
        return f.read()


def autoscript(package: str, script: str, template: str,
               replacements: Dict[str, str], tool: str,
               debian_dir: str = 'debian') -> str:
    """Add a maintainer script snippet to debian/<package>.<script>.debhelper.

    Args:
      package: Binary package name
      script: Maintainer script name, e.g. "postinst"
      template: Name of the autoscript template
      replacements: Placeholders (without #) and their values
      tool: Name of the tool adding the snippet
    Returns:
      path of the updated file
    """
    text = load_autoscript(template)
    for key, value in replacements.items():
        text = text.replace('#%s#' % key, value)
    if not text.endswith('\n'):
        text += '\n'
    block = (
        '# Automatically added by %s/%s\n' % (tool, version_string)
        + text + '# End automatically added section\n')
    path = os.path.join(debian_dir, '%s.%s.debhelper' % (package, script))
    try:
        with open(path, 'r') as f:
            existing = f.read()
    except FileNotFoundError:
        existing = ''
    if script in PREPEND_SCRIPTS:
        updated = block + existing
    else:
        updated = existing + block
    with open(path, 'w') as f:
        f.write(updated)
    logging.debug('added %s snippet %s to %s', script, template, path)
    return path


def _parse_relations(value: str):
    if not value.strip():
        return []
    return PkgRelation.parse_relations(value)


def _merge_relations(value: str, relation: str) -> str:
    existing = _parse_relations(value)
    seen = [PkgRelation.str([group]) for group in existing]
    for group in _parse_relations(relation):
        if PkgRelation.str([group]) not in seen:
            existing.append(group)
            seen.append(PkgRelation.str([group]))
    return PkgRelation.str(existing)


def addsubstvar(package: str, substvar: str, relation: str,
                debian_dir: str = 'debian') -> bool:
    """Add a relation to a substitution variable in the substvars file.

    Returns:
      whether the substvars file was changed
    """
    path = os.path.join(debian_dir, '%s.substvars' % package)
    try:
        with open(path, 'r') as f:
            lines = f.readlines()
    except FileNotFoundError:
        lines = []
    for i, line in enumerate(lines):
        key, sep, value = line.rstrip('\n').partition('=')
        if not sep or key.rstrip('?') != substvar:
            continue
        merged = _merge_relations(value, relation)
        if merged == value.strip():
            return False
        lines[i] = '%s=%s\n' % (key, merged)
        break
    else:
        lines.append('%s=%s\n' % (substvar, _merge_relations('', relation)))
    with open(path, 'w') as f:
        f.writelines(lines)
    return True
