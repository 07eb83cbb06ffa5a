"""
遥控器服务模块
"""
from .directory import RCDirectory
from .pairing import PairingStateMachine
from .session import RoleSessionManager
from .arbiter import GimbalControlArbiter
from .telemetry import TelemetryFanout
from .commands import (
    ValueCache,
    get_capabilities,
    set_rc_name,
    get_rc_name,
    set_rc_password,
    get_rc_password,
    set_control_mode,
    get_control_mode,
    set_slave_control_mode,
    get_slave_control_mode,
    set_wheel_gimbal_speed,
    get_wheel_gimbal_speed,
    set_gimbal_dial_direction,
    get_gimbal_dial_direction,
    set_custom_button_tags,
    get_custom_button_tags,
    set_c1_button_binding,
    get_c1_button_binding,
    set_slave_joystick_gimbal_speed,
    get_slave_joystick_gimbal_speed,
)

__all__ = [
    # 组件
    'RCDirectory',
    'PairingStateMachine',
    'RoleSessionManager',
    'GimbalControlArbiter',
    'TelemetryFanout',
    # 设置
    'ValueCache',
    'get_capabilities',
    'set_rc_name',
    'get_rc_name',
    'set_rc_password',
    'get_rc_password',
    'set_control_mode',
    'get_control_mode',
    'set_slave_control_mode',
    'get_slave_control_mode',
    'set_wheel_gimbal_speed',
    'get_wheel_gimbal_speed',
    'set_gimbal_dial_direction',
    'get_gimbal_dial_direction',
    'set_custom_button_tags',
    'get_custom_button_tags',
    'set_c1_button_binding',
    'get_c1_button_binding',
    'set_slave_joystick_gimbal_speed',
    'get_slave_joystick_gimbal_speed',
]
