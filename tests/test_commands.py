"""
设置服务单元测试

测试内容：
- 各 get/set 的方法名与参数
- 本地参数校验（不发请求）
- ValueCache 的 "unchanged" 优化
"""
import unittest
from unittest.mock import Mock, patch
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rcsdk.core import CommandRejected, ServiceCaller
from rcsdk.models import (
    ChannelName,
    ControlChannel,
    ControlMode,
    ControlStyle,
    GimbalControlDirection,
    GimbalControlSpeed,
)
from rcsdk.services import commands
from rcsdk.services.commands import ValueCache


def ok(output=None):
    return {"result": 0, "output": output or {}}


CUSTOM_CHANNELS = (
    ControlChannel(ChannelName.YAW),
    ControlChannel(ChannelName.THROTTLE, True),
    ControlChannel(ChannelName.ROLL),
    ControlChannel(ChannelName.PITCH),
)


@patch('rcsdk.core.service_caller.console')
@patch('rcsdk.services.commands.console')
class TestSetters(unittest.TestCase):

    def setUp(self):
        self.caller = Mock(spec=ServiceCaller)
        self.caller.call.return_value = ok()

    def test_set_rc_name(self, *mocks):
        commands.set_rc_name(self.caller, "RC-A")
        self.caller.call.assert_called_once_with("rc_name_set", {"name": "RC-A"})

    def test_set_rc_name_too_long(self, *mocks):
        with self.assertRaises(ValueError):
            commands.set_rc_name(self.caller, "ABCDEFG")
        with self.assertRaises(ValueError):
            commands.set_rc_name(self.caller, "")
        self.caller.call.assert_not_called()

    def test_set_rc_password(self, *mocks):
        commands.set_rc_password(self.caller, "1234")
        self.caller.call.assert_called_once_with("rc_password_set", {"password": "1234"})

    def test_set_rc_password_invalid(self, *mocks):
        for password in ("123", "12345", "12a4", None):
            with self.assertRaises(ValueError):
                commands.set_rc_password(self.caller, password)
        self.caller.call.assert_not_called()

    def test_set_control_mode(self, *mocks):
        mode = ControlMode(ControlStyle.CUSTOM, CUSTOM_CHANNELS)

        commands.set_control_mode(self.caller, mode)

        method, data = self.caller.call.call_args.args
        self.assertEqual(method, "rc_control_mode_set")
        self.assertEqual(data['style'], int(ControlStyle.CUSTOM))
        self.assertEqual(data['channels'][1], {'name': int(ChannelName.THROTTLE), 'reverse': True})

    def test_set_control_mode_rejects_slave_style(self, *mocks):
        with self.assertRaises(ValueError):
            commands.set_control_mode(self.caller, ControlMode(ControlStyle.SLAVE_DEFAULT))
        self.caller.call.assert_not_called()

    def test_set_slave_control_mode(self, *mocks):
        commands.set_slave_control_mode(self.caller, ControlMode(ControlStyle.SLAVE_DEFAULT))
        self.assertEqual(self.caller.call.call_args.args[0], "rc_slave_control_mode_set")

        with self.assertRaises(ValueError):
            commands.set_slave_control_mode(self.caller, ControlMode(ControlStyle.AMERICAN))

    def test_set_wheel_gimbal_speed(self, *mocks):
        commands.set_wheel_gimbal_speed(self.caller, 50)
        self.caller.call.assert_called_once_with("rc_wheel_gimbal_speed_set", {"speed": 50})

        with self.assertRaises(ValueError):
            commands.set_wheel_gimbal_speed(self.caller, 101)

    def test_set_gimbal_dial_direction(self, *mocks):
        commands.set_gimbal_dial_direction(self.caller, GimbalControlDirection.YAW)
        self.caller.call.assert_called_once_with("rc_gimbal_direction_set", {"direction": 2})

    def test_set_custom_button_tags(self, *mocks):
        commands.set_custom_button_tags(self.caller, 1, 255)
        self.caller.call.assert_called_once_with("rc_custom_button_tags_set",
                                                 {"tag1": 1, "tag2": 255})

        with self.assertRaises(ValueError):
            commands.set_custom_button_tags(self.caller, 256, 0)

    def test_set_c1_button_binding(self, *mocks):
        commands.set_c1_button_binding(self.caller, True)
        self.caller.call.assert_called_once_with("rc_c1_binding_set", {"enabled": True})

    def test_set_slave_joystick_gimbal_speed(self, *mocks):
        commands.set_slave_joystick_gimbal_speed(self.caller, GimbalControlSpeed(10, 20, 30))
        self.caller.call.assert_called_once_with("rc_slave_gimbal_speed_set",
                                                 {"pitch": 10, "roll": 20, "yaw": 30})

        with self.assertRaises(ValueError):
            commands.set_slave_joystick_gimbal_speed(self.caller, GimbalControlSpeed(-1, 0, 0))

    def test_rejected_setter(self, *mocks):
        self.caller.call.return_value = {"result": 7}

        with self.assertRaises(CommandRejected):
            commands.set_rc_name(self.caller, "RC-A")


@patch('rcsdk.core.service_caller.console')
@patch('rcsdk.services.commands.console')
class TestGetters(unittest.TestCase):

    def setUp(self):
        self.caller = Mock(spec=ServiceCaller)

    def test_get_rc_name(self, *mocks):
        self.caller.call.return_value = ok({"name": "RC-A"})

        self.assertEqual(commands.get_rc_name(self.caller), "RC-A")
        self.caller.call.assert_called_once_with("rc_name_get", {})

    def test_get_control_mode(self, *mocks):
        self.caller.call.return_value = ok(ControlMode(ControlStyle.CUSTOM, CUSTOM_CHANNELS).to_dict())

        mode = commands.get_control_mode(self.caller)

        self.assertEqual(mode.style, ControlStyle.CUSTOM)
        self.assertEqual(mode.channels, CUSTOM_CHANNELS)

    def test_get_custom_button_tags(self, *mocks):
        self.caller.call.return_value = ok({"tag1": 3, "tag2": 4})
        self.assertEqual(commands.get_custom_button_tags(self.caller), (3, 4))

    def test_get_slave_joystick_gimbal_speed(self, *mocks):
        self.caller.call.return_value = ok({"pitch": 1, "roll": 2, "yaw": 3})
        self.assertEqual(commands.get_slave_joystick_gimbal_speed(self.caller),
                         GimbalControlSpeed(1, 2, 3))

    def test_get_gimbal_dial_direction(self, *mocks):
        self.caller.call.return_value = ok({"direction": 1})
        self.assertEqual(commands.get_gimbal_dial_direction(self.caller),
                         GimbalControlDirection.ROLL)

    def test_get_capabilities(self, *mocks):
        self.caller.call.return_value = ok({"master_slave_supported": True, "max_slaves": 2})

        caps = commands.get_capabilities(self.caller)

        self.assertTrue(caps.master_slave_supported)
        self.assertEqual(caps.max_slaves, 2)
        self.caller.call.assert_called_once_with("rc_capability_get", {})


@patch('rcsdk.core.service_caller.console')
@patch('rcsdk.services.commands.console')
class TestValueCache(unittest.TestCase):

    def setUp(self):
        self.caller = Mock(spec=ServiceCaller)
        self.cache = ValueCache()

    def test_first_get_always_round_trips(self, *mocks):
        self.caller.call.return_value = ok({"speed": 40})

        self.assertEqual(commands.get_wheel_gimbal_speed(self.caller, self.cache), 40)
        self.caller.call.assert_called_once_with("rc_wheel_gimbal_speed_get", {})

    def test_unchanged_served_from_cache(self, *mocks):
        self.caller.call.return_value = ok({"speed": 40})
        commands.get_wheel_gimbal_speed(self.caller, self.cache)
        self.caller.call.return_value = ok({"unchanged": True})

        self.assertEqual(commands.get_wheel_gimbal_speed(self.caller, self.cache), 40)
        self.caller.call.assert_called_with("rc_wheel_gimbal_speed_get", {"if_changed": True})
        self.assertEqual(self.caller.call.call_count, 2)

    def test_changed_value_replaces_cache(self, *mocks):
        self.caller.call.return_value = ok({"speed": 40})
        commands.get_wheel_gimbal_speed(self.caller, self.cache)
        self.caller.call.return_value = ok({"speed": 60})

        self.assertEqual(commands.get_wheel_gimbal_speed(self.caller, self.cache), 60)
        self.assertEqual(self.cache.get("wheel_gimbal_speed"), 60)

    def test_setter_updates_cache(self, *mocks):
        self.caller.call.return_value = ok()
        commands.set_c1_button_binding(self.caller, True, self.cache)
        self.caller.call.return_value = ok({"unchanged": True})

        self.assertTrue(commands.get_c1_button_binding(self.caller, self.cache))

    def test_without_cache_unchanged_flag_ignored(self, *mocks):
        self.caller.call.return_value = ok({"name": "RC-B", "unchanged": True})
        self.assertEqual(commands.get_rc_name(self.caller), "RC-B")

    def test_invalidate(self, *mocks):
        self.cache.put("name", "RC-A")
        self.cache.invalidate("name")
        self.assertNotIn("name", self.cache)


if __name__ == '__main__':
    unittest.main()
