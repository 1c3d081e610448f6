#!/usr/bin/python3

# Copyright (C) 2024 Jelmer Vernooij
#
# Parts imported from python3-iniparse:
# Copyright (c) 2001, 2002, 2003 Python Software Foundation
# Copyright (c) 2004-2008 Paramjit Oberoi <param.cs.wisc.edu>
# Copyright (c) 2007 Tim Lauridsen <tla@rasmil.dk>
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

"""Utility functions for reading systemd unit files."""

__all__ = [
    'MissingSectionHeaderError',
    'ParsingError',
    'UnitFile',
    'logical_lines',
    'read_unit_file',
    'has_install_section',
    'systemd_unit_files',
    ]

import logging
import os

from iniparse.config import ConfigNamespace
from iniparse.ini import (
    LineContainer,
    SectionLine,
    OptionLine,
    MissingSectionHeaderError,
    ParsingError,
    EmptyLine,
    CommentLine,
    make_comment,
    readline_iterator,
    )

LIST_KEYS = [
    'Before', 'After', 'Documentation', 'Wants', 'Alias', 'WantedBy',
    'Requires', 'RequiredBy', 'UpheldBy', 'Also', 'Conflicts']

UNIT_SUFFIXES = (
    '.service', '.socket', '.device', '.mount', '.automount', '.swap',
    '.target', '.path', '.timer', '.slice', '.scope')

logger = logging.getLogger(__name__)


def logical_lines(fp):
    """Iterate over the lines of a unit file as systemd reads them.

    Leading whitespace is insignificant. A line ending in a backslash
    continues on the next line, with the backslash replaced by a space.
    """
    pending = None
    for line in readline_iterator(fp):
        line = line.lstrip()
        if pending is None and line.startswith(('#', ';')):
            yield line
            continue
        content = line.rstrip('\r\n')
        if content.endswith('\\'):
            pending = (pending or '') + content[:-1] + ' '
            continue
        if pending is not None:
            line = pending + line
            pending = None
        yield line
    if pending is not None:
        yield pending.rstrip() + '\n'


class Section(ConfigNamespace):
    _lines = None
    _options = None

    def __init__(self, lineobj):
        self._lines = [lineobj]
        self._options = {}

    def _getitem(self, key):
        if key == '__name__':
            return self._lines[-1].name
        try:
            option = self._options[key]
        except KeyError:
            if key in LIST_KEYS:
                return OptionList([])
            raise
        if isinstance(option, list):
            return OptionList(option)
        else:
            return option.value

    def get(self, key, default=None):
        try:
            return self._getitem(key)
        except KeyError:
            return default

    def __iter__(self):
        d = set()
        for line in self._lines:
            for x in line.contents:
                if isinstance(x, LineContainer):
                    ans = x.name
                    if ans not in d:
                        yield ans
                        d.add(ans)


class OptionList(object):
    """Whitespace separated values of a list directive."""

    def __init__(self, options):
        self._options = options

    def _items(self):
        ret = []
        for o in self._options:
            ret.extend(o.value.split())
        return ret

    def __getitem__(self, i):
        return self._items()[i]

    def __iter__(self):
        return iter(self._items())

    def __len__(self):
        return len(self._items())

    def __contains__(self, v):
        return v in self._items()


class UnitFile(ConfigNamespace):
    """A parsed unit file.

    Args:
      fp: File-like object to read from
      strict: Whether to raise on lines that can not be parsed, rather
        than ignoring them like systemd does
    """

    _data = None
    _sections = None
    strict = True

    def __init__(self, fp=None, strict=True):
        self._data = LineContainer()
        self._sections = {}
        self.strict = strict
        if fp is not None:
            self._readfp(fp)

    def _getitem(self, key):
        return self._sections[key]

    def __iter__(self):
        d = set()
        for x in self._data.contents:
            if isinstance(x, LineContainer):
                if x.name not in d:
                    yield x.name
                    d.add(x.name)

    _line_types = [EmptyLine, CommentLine,
                   SectionLine, OptionLine]

    def _parse(self, line):
        for linetype in self._line_types:
            lineobj = linetype.parse(line)
            if lineobj:
                return lineobj
        else:
            # can't parse line
            return None

    def _invalid_line(self, exc, fname, linecount, line):
        if self.strict:
            if exc is None:
                exc = ParsingError(fname)
            exc.append(linecount, line)
        else:
            logger.debug(
                '%s:%d: ignoring invalid line %r', fname, linecount, line)
        return exc, make_comment(line)

    def _readfp(self, fp):
        cur_section = None
        cur_section_name = None
        pending_lines = []
        try:
            fname = fp.name
        except AttributeError:
            fname = '<???>'
        linecount = 0
        exc = None
        line = None
        optobj = None

        for line in logical_lines(fp):
            lineobj = self._parse(line)
            linecount += 1

            if not cur_section and not isinstance(
                    lineobj, (CommentLine, EmptyLine, SectionLine)):
                if self.strict:
                    raise MissingSectionHeaderError(fname, linecount, line)
                logger.debug(
                    '%s:%d: ignoring assignment outside of section',
                    fname, linecount)
                lineobj = make_comment(line)

            if lineobj is None:
                exc, lineobj = self._invalid_line(exc, fname, linecount, line)

            if isinstance(lineobj, OptionLine):
                if pending_lines:
                    cur_section.extend(pending_lines)
                    pending_lines = []
                cur_option = LineContainer(lineobj)
                cur_section.add(cur_option)
                cur_option_name = cur_option.name
                optobj = self._sections[cur_section_name]
                if cur_option_name in LIST_KEYS:
                    if not cur_option.value.split():
                        # Reset list.
                        optobj._options[cur_option_name] = []
                    else:
                        optobj._options.setdefault(cur_option_name, []).append(
                            cur_option)
                else:
                    optobj._options[cur_option_name] = cur_option

            if isinstance(lineobj, SectionLine):
                self._data.extend(pending_lines)
                pending_lines = []
                cur_section = LineContainer(lineobj)
                self._data.add(cur_section)
                cur_section_name = cur_section.name
                if cur_section_name not in self._sections:
                    self._sections[cur_section_name] = Section(cur_section)
                else:
                    self._sections[cur_section_name]._lines.append(
                        cur_section)

            if isinstance(lineobj, (CommentLine, EmptyLine)):
                pending_lines.append(lineobj)

        self._data.extend(pending_lines)

        if exc:
            raise exc

    @property
    def install(self):
        """The [Install] section, or None if there is none."""
        try:
            return self._sections['Install']
        except KeyError:
            return None


def read_unit_file(path):
    """Read a unit file from disk, ignoring lines systemd would ignore."""
    with open(path, 'r') as f:
        return UnitFile(f, strict=False)


def has_install_section(path):
    """Check whether a unit file has an [Install] section.

    Raises:
      OSError: if the file can not be read
    """
    return read_unit_file(path).install is not None


def systemd_unit_files(path, exclude_links=True):
    """List paths to systemd unit files in a directory."""
    try:
        names = sorted(os.listdir(path))
    except FileNotFoundError:
        return
    for name in names:
        if not name.endswith(UNIT_SUFFIXES):
            continue
        subpath = os.path.join(path, name)
        if exclude_links and os.path.islink(subpath):
            continue
        if not os.path.isfile(subpath):
            continue
        yield subpath
