"""
遥控器设置服务 - 统一接口

所有 get/set 都是一次请求/响应往返；可选的 ValueCache 仅在设备回包
声明 "unchanged" 时用来直接返回上次取到的值。
"""
import re
import threading
from typing import Any, Callable, Dict, Optional, Tuple
from rich.console import Console

from .. import config
from ..core import ServiceCaller, call_service
from ..models import (
    ControlMode,
    GimbalControlDirection,
    GimbalControlSpeed,
    RCCapabilities,
)

console = Console()

_PASSWORD_RE = re.compile(r"^\d{%d}$" % config.RC_PASSWORD_LENGTH)


class ValueCache:
    """最近一次确认的设置值"""

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def get(self, key: str) -> Any:
        with self._lock:
            return self._values.get(key)

    def put(self, key: str, value: Any):
        with self._lock:
            self._values[key] = value

    def invalidate(self, key: Optional[str] = None):
        with self._lock:
            if key is None:
                self._values.clear()
            else:
                self._values.pop(key, None)


def _get_value(
    caller: ServiceCaller,
    method: str,
    key: str,
    parse: Callable[[Dict[str, Any]], Any],
    cache: Optional[ValueCache] = None
) -> Any:
    """取值往返；带缓存时告知设备本地已有值"""
    known = cache is not None and key in cache
    output = call_service(caller, method, {"if_changed": True} if known else {})
    if known and output.get('unchanged'):
        return cache.get(key)
    value = parse(output)
    if cache is not None:
        cache.put(key, value)
    return value


def _set_value(
    caller: ServiceCaller,
    method: str,
    key: str,
    data: Dict[str, Any],
    value: Any,
    success_msg: str,
    cache: Optional[ValueCache] = None
):
    call_service(caller, method, data, success_msg)
    if cache is not None:
        cache.put(key, value)


# ========== 参数校验 ==========

def validate_rc_name(name: str):
    if not name or len(name) > config.RC_NAME_MAX_LENGTH:
        raise ValueError(
            f"rc name must be 1-{config.RC_NAME_MAX_LENGTH} characters, got {name!r}")


def validate_rc_password(password: str):
    if not _PASSWORD_RE.match(password or ""):
        raise ValueError(
            f"rc password must be {config.RC_PASSWORD_LENGTH} digits, got {password!r}")


def _check_percent(name: str, value: int):
    if not 0 <= value <= 100:
        raise ValueError(f"{name} must be in range [0, 100], got {value}")


def _check_uint8(name: str, value: int):
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be in range [0, 255], got {value}")


# ========== 能力 ==========

def get_capabilities(
    caller: ServiceCaller,
    default_max_slaves: int = config.DEFAULT_MAX_SLAVES
) -> RCCapabilities:
    """查询主从模式 / 遥控对焦支持情况及从机上限"""
    output = call_service(caller, "rc_capability_get")
    return RCCapabilities.from_dict(output, default_max_slaves)


# ========== 名称与密码 ==========

def set_rc_name(caller: ServiceCaller, name: str, cache: Optional[ValueCache] = None):
    """设置遥控器名称（最多 6 个字符）"""
    validate_rc_name(name)
    console.print(f"[cyan]设置遥控器名称: {name}[/cyan]")
    _set_value(caller, "rc_name_set", "name", {"name": name}, name, "名称已设置", cache)


def get_rc_name(caller: ServiceCaller, cache: Optional[ValueCache] = None) -> Optional[str]:
    return _get_value(caller, "rc_name_get", "name", lambda o: o.get('name'), cache)


def set_rc_password(caller: ServiceCaller, password: str, cache: Optional[ValueCache] = None):
    """设置遥控器密码（4 位数字）"""
    validate_rc_password(password)
    console.print("[cyan]设置遥控器密码...[/cyan]")
    _set_value(caller, "rc_password_set", "password", {"password": password}, password,
               "密码已设置", cache)


def get_rc_password(caller: ServiceCaller, cache: Optional[ValueCache] = None) -> Optional[str]:
    return _get_value(caller, "rc_password_get", "password", lambda o: o.get('password'), cache)


# ========== 操控方式 ==========

def set_control_mode(caller: ServiceCaller, mode: ControlMode,
                     cache: Optional[ValueCache] = None):
    """设置主控操控方式（日本手/美国手/中国手/自定义）"""
    if mode.style.is_slave_style:
        raise ValueError(f"{mode.style.name} is a slave control style")
    mode.validate()
    console.print(f"[cyan]设置操控方式: {mode.style.name}[/cyan]")
    _set_value(caller, "rc_control_mode_set", "control_mode", mode.to_dict(), mode,
               "操控方式已设置", cache)


def get_control_mode(caller: ServiceCaller, cache: Optional[ValueCache] = None) -> ControlMode:
    return _get_value(caller, "rc_control_mode_get", "control_mode", ControlMode.from_dict, cache)


def set_slave_control_mode(caller: ServiceCaller, mode: ControlMode,
                           cache: Optional[ValueCache] = None):
    """设置从机操控方式，仅接受 SLAVE_* 风格"""
    if not mode.style.is_slave_style:
        raise ValueError(f"{mode.style.name} is not a slave control style")
    mode.validate()
    console.print(f"[cyan]设置从机操控方式: {mode.style.name}[/cyan]")
    _set_value(caller, "rc_slave_control_mode_set", "slave_control_mode", mode.to_dict(), mode,
               "从机操控方式已设置", cache)


def get_slave_control_mode(caller: ServiceCaller,
                           cache: Optional[ValueCache] = None) -> ControlMode:
    return _get_value(caller, "rc_slave_control_mode_get", "slave_control_mode",
                      ControlMode.from_dict, cache)


# ========== 云台拨轮 ==========

def set_wheel_gimbal_speed(caller: ServiceCaller, speed: int,
                           cache: Optional[ValueCache] = None):
    """设置左上拨轮控制云台的速度 [0, 100]"""
    _check_percent("wheel gimbal speed", speed)
    _set_value(caller, "rc_wheel_gimbal_speed_set", "wheel_gimbal_speed", {"speed": speed},
               speed, f"拨轮云台速度已设置为 {speed}", cache)


def get_wheel_gimbal_speed(caller: ServiceCaller, cache: Optional[ValueCache] = None) -> int:
    return _get_value(caller, "rc_wheel_gimbal_speed_get", "wheel_gimbal_speed",
                      lambda o: int(o.get('speed', 0)), cache)


def set_gimbal_dial_direction(caller: ServiceCaller, direction: GimbalControlDirection,
                              cache: Optional[ValueCache] = None):
    """设置左上拨轮控制的云台轴"""
    _set_value(caller, "rc_gimbal_direction_set", "gimbal_direction",
               {"direction": int(direction)}, direction,
               f"拨轮控制轴已设置为 {direction.name}", cache)


def get_gimbal_dial_direction(caller: ServiceCaller,
                              cache: Optional[ValueCache] = None) -> GimbalControlDirection:
    return _get_value(caller, "rc_gimbal_direction_get", "gimbal_direction",
                      lambda o: GimbalControlDirection(o.get('direction', 0)), cache)


# ========== 自定义按键 ==========

def set_custom_button_tags(caller: ServiceCaller, tag1: int, tag2: int,
                           cache: Optional[ValueCache] = None):
    """设置背部自定义按键标签（仅用于 App 记录用户偏好）"""
    _check_uint8("tag1", tag1)
    _check_uint8("tag2", tag2)
    _set_value(caller, "rc_custom_button_tags_set", "custom_button_tags",
               {"tag1": tag1, "tag2": tag2}, (tag1, tag2), "自定义按键标签已设置", cache)


def get_custom_button_tags(caller: ServiceCaller,
                           cache: Optional[ValueCache] = None) -> Tuple[int, int]:
    return _get_value(caller, "rc_custom_button_tags_get", "custom_button_tags",
                      lambda o: (int(o.get('tag1', 0)), int(o.get('tag2', 0))), cache)


def set_c1_button_binding(caller: ServiceCaller, enabled: bool,
                          cache: Optional[ValueCache] = None):
    """C1 按键是否绑定唤起官方 App"""
    _set_value(caller, "rc_c1_binding_set", "c1_binding", {"enabled": enabled}, enabled,
               f"C1 绑定已{'启用' if enabled else '关闭'}", cache)


def get_c1_button_binding(caller: ServiceCaller, cache: Optional[ValueCache] = None) -> bool:
    return _get_value(caller, "rc_c1_binding_get", "c1_binding",
                      lambda o: bool(o.get('enabled', False)), cache)


# ========== 从机摇杆云台速度 ==========

def set_slave_joystick_gimbal_speed(caller: ServiceCaller, speed: GimbalControlSpeed,
                                    cache: Optional[ValueCache] = None):
    """从机摇杆控制云台的三轴速度"""
    speed.validate()
    _set_value(caller, "rc_slave_gimbal_speed_set", "slave_gimbal_speed",
               {"pitch": speed.pitch, "roll": speed.roll, "yaw": speed.yaw}, speed,
               "从机云台速度已设置", cache)


def get_slave_joystick_gimbal_speed(caller: ServiceCaller,
                                    cache: Optional[ValueCache] = None) -> GimbalControlSpeed:
    return _get_value(
        caller, "rc_slave_gimbal_speed_get", "slave_gimbal_speed",
        lambda o: GimbalControlSpeed(int(o.get('pitch', 0)), int(o.get('roll', 0)),
                                     int(o.get('yaw', 0))),
        cache)
