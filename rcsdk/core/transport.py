"""
传输层接口 - 核心组件只依赖这两个原语
"""
from concurrent.futures import Future
from enum import Enum
from typing import Any, Dict, Iterator, Protocol


class TelemetryKind(Enum):
    """上行推送类型（值即推送消息的 method 字段）"""
    HARDWARE_STATE = "rc_hardware_state_push"
    GPS = "rc_gps_push"
    BATTERY = "rc_battery_push"
    FOCUS_STATE = "rc_focus_state_push"
    # 事件类推送
    GIMBAL_CONTROL_REQUEST = "gimbal_control_request"
    PAIRING_STATE = "rc_pairing_state_push"
    SLAVE_JOINED = "slave_joined"
    SLAVE_LEFT = "slave_left"
    GIMBAL_PERMISSION = "rc_gimbal_permission_push"


class Transport(Protocol):
    """遥控器链路"""

    def send_request(self, command: str, payload: Dict[str, Any]) -> Future:
        """发送请求，返回 Future（结果为回包 data 字典）"""
        ...

    def subscribe_telemetry(self, kind: TelemetryKind) -> Iterator[Dict[str, Any]]:
        """订阅某类推送：惰性、无限、不可重启，传输层关闭时结束"""
        ...
