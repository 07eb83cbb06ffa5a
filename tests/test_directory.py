"""
RCDirectory 单元测试
"""
import unittest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rcsdk.models import ControlPermission, RCIdentity
from rcsdk.services.directory import RCDirectory


class TestRCDirectory(unittest.TestCase):

    def setUp(self):
        self.directory = RCDirectory()

    def test_upsert_and_get(self):
        self.directory.upsert(RCIdentity(7, name="RC-A", signal_quality=80))

        self.assertIn(7, self.directory)
        self.assertEqual(self.directory.get(7).name, "RC-A")
        self.assertIsNone(self.directory.get(8))

    def test_upsert_ignores_reported_gimbal_flags(self):
        """新记录的云台位由仲裁器决定"""
        reported = RCIdentity(7, permissions=ControlPermission(capture=True).with_gimbal(True))

        stored = self.directory.upsert(reported)

        self.assertFalse(stored.permissions.has_gimbal_control)
        self.assertTrue(stored.permissions.capture)

    def test_upsert_keeps_held_gimbal(self):
        self.directory.set_gimbal_permission(7, True)

        stored = self.directory.upsert(RCIdentity(7, name="RC-A", signal_quality=30))

        self.assertTrue(stored.permissions.has_gimbal_control)
        self.assertEqual(stored.signal_quality, 30)

    def test_unknown_permissions(self):
        self.assertEqual(self.directory.permissions_of(99), ControlPermission())

    def test_set_gimbal_permission_creates_record(self):
        self.directory.set_gimbal_permission(5, True)

        self.assertTrue(self.directory.permissions_of(5).has_gimbal_control)
        self.directory.set_gimbal_permission(5, False)
        self.assertFalse(self.directory.permissions_of(5).has_gimbal_control)

    def test_rename(self):
        self.directory.upsert(RCIdentity(3, name="old", password="1111"))

        self.directory.rename(3, name="new")

        self.assertEqual(self.directory.get(3).name, "new")
        self.assertEqual(self.directory.get(3).password, "1111")

    def test_remove_and_all(self):
        self.directory.upsert_many([RCIdentity(1), RCIdentity(2)])

        self.assertEqual(self.directory.remove(1).id, 1)
        self.assertIsNone(self.directory.remove(1))
        self.assertEqual([i.id for i in self.directory.all()], [2])


if __name__ == '__main__':
    unittest.main()
