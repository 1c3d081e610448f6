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

"""Tests for init_system_helpers.debhelper."""

from breezy.tests import (
    TestCaseWithTransport,
    )

from .. import DebhelperError, version_string
from ..debhelper import (
    addsubstvar,
    autoscript,
    pkgfile,
    read_binary_packages,
    select_packages,
    )


CONTROL = """\
Source: foo
Maintainer: Jane Example <jane@example.com>
Build-Depends: debhelper-compat (= 13)

Package: foo
Architecture: any
Description: Foo daemon

Package: foo-data
Architecture: all
Description: Foo daemon data

Package: foo-utils
Architecture: linux-any
Description: Foo utilities
"""


class ReadBinaryPackagesTests(TestCaseWithTransport):

    def test_read(self):
        self.build_tree_contents([
            ('debian/', ), ('debian/control', CONTROL)])
        self.assertEqual(
            ['foo', 'foo-data', 'foo-utils'],
            [p['Package'] for p in read_binary_packages()])

    def test_missing(self):
        self.assertRaises(DebhelperError, read_binary_packages)


class SelectPackagesTests(TestCaseWithTransport):

    def setUp(self):
        super(SelectPackagesTests, self).setUp()
        self.build_tree_contents([
            ('debian/', ), ('debian/control', CONTROL)])
        self.packages = read_binary_packages()

    def test_all(self):
        self.assertEqual(
            ['foo', 'foo-data', 'foo-utils'], select_packages(self.packages))

    def test_include(self):
        self.assertEqual(
            ['foo-data'], select_packages(self.packages, include=['foo-data']))

    def test_include_unknown(self):
        self.assertRaises(
            DebhelperError, select_packages, self.packages, include=['bar'])

    def test_exclude(self):
        self.assertEqual(
            ['foo', 'foo-utils'],
            select_packages(self.packages, exclude=['foo-data']))

    def test_indep(self):
        self.assertEqual(
            ['foo-data'], select_packages(self.packages, indep=True))

    def test_arch(self):
        self.assertEqual(
            ['foo', 'foo-utils'], select_packages(self.packages, arch=True))


class PkgfileTests(TestCaseWithTransport):

    def setUp(self):
        super(PkgfileTests, self).setUp()
        self.build_tree_contents([
            ('debian/', ),
            ('debian/service', ''),
            ('debian/foo-utils.socket', ''),
            ('debian/foo.bar.service', ''),
            ])

    def test_package_specific(self):
        self.assertEqual(
            'debian/foo-utils.socket',
            pkgfile('foo-utils', 'socket', main_package='foo'))

    def test_main_package(self):
        self.assertEqual(
            'debian/service', pkgfile('foo', 'service', main_package='foo'))
        self.assertIs(
            None, pkgfile('foo-utils', 'service', main_package='foo'))

    def test_name(self):
        self.assertEqual(
            'debian/foo.bar.service',
            pkgfile('foo', 'service', main_package='foo', name='bar'))
        self.assertIs(
            None, pkgfile('foo', 'service', main_package='foo', name='baz'))

    def test_missing(self):
        self.assertIs(None, pkgfile('foo', 'timer', main_package='foo'))


class AutoscriptTests(TestCaseWithTransport):

    def setUp(self):
        super(AutoscriptTests, self).setUp()
        self.build_tree_contents([('debian/', )])

    def test_postinst(self):
        path = autoscript(
            'foo', 'postinst', 'postinst-systemd-enable',
            {'UNITFILE': "'foo.service'"}, 'dh_systemd_enable')
        self.assertEqual('debian/foo.postinst.debhelper', path)
        with open(path) as f:
            content = f.read()
        self.assertTrue(content.startswith(
            '# Automatically added by dh_systemd_enable/%s\n'
            % version_string))
        self.assertTrue(content.endswith(
            '# End automatically added section\n'))
        self.assertIn(
            "deb-systemd-helper enable 'foo.service' >/dev/null || true",
            content)
        self.assertNotIn('#UNITFILE#', content)

    def test_postinst_appends(self):
        self.build_tree_contents([
            ('debian/foo.postinst.debhelper', 'echo first\n')])
        autoscript(
            'foo', 'postinst', 'postinst-systemd-enable',
            {'UNITFILE': "'foo.service'"}, 'dh_systemd_enable')
        with open('debian/foo.postinst.debhelper') as f:
            self.assertTrue(f.read().startswith('echo first\n'))

    def test_postrm_prepends(self):
        self.build_tree_contents([
            ('debian/foo.postrm.debhelper', 'echo last\n')])
        autoscript(
            'foo', 'postrm', 'postrm-systemd',
            {'UNITFILES': "'a.service' 'b.service'"}, 'dh_systemd_enable')
        with open('debian/foo.postrm.debhelper') as f:
            content = f.read()
        self.assertTrue(content.endswith(
            '# End automatically added section\necho last\n'))
        self.assertIn(
            "deb-systemd-helper purge 'a.service' 'b.service' >/dev/null",
            content)


class AddSubstvarTests(TestCaseWithTransport):

    def setUp(self):
        super(AddSubstvarTests, self).setUp()
        self.build_tree_contents([('debian/', )])

    def test_new_file(self):
        self.assertTrue(addsubstvar(
            'foo', 'misc:Depends', 'init-system-helpers (>= 1.18~)'))
        self.assertFileEqual(
            'misc:Depends=init-system-helpers (>= 1.18~)\n',
            'debian/foo.substvars')

    def test_merge(self):
        self.build_tree_contents([('debian/foo.substvars', """\
shlibs:Depends=libc6 (>= 2.34)
misc:Depends=adduser
""")])
        self.assertTrue(addsubstvar(
            'foo', 'misc:Depends', 'init-system-helpers (>= 1.18~)'))
        self.assertFileEqual("""\
shlibs:Depends=libc6 (>= 2.34)
misc:Depends=adduser, init-system-helpers (>= 1.18~)
""", 'debian/foo.substvars')

    def test_already_present(self):
        self.build_tree_contents([('debian/foo.substvars', """\
misc:Depends=init-system-helpers (>= 1.18~)
""")])
        self.assertFalse(addsubstvar(
            'foo', 'misc:Depends', 'init-system-helpers (>= 1.18~)'))
