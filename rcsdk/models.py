"""遥控器数据类型定义 - 纯结构，枚举值与设备协议一致"""
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

CONTROL_CHANNEL_SIZE = 4


# ========== 枚举 ==========

class RCMode(IntEnum):
    """遥控器主从角色"""
    MASTER = 0
    SLAVE = 1
    NORMAL = 2      # 单遥控器，未建立主从
    UNKNOWN = 3     # 尚未从设备获取


class PairingState(IntEnum):
    """遥控器与飞机的对频状态"""
    NOT_PAIRING = 0
    PAIRING = 1
    COMPLETED = 2
    UNKNOWN = 3


class ControlStyle(IntEnum):
    """摇杆操控方式"""
    JAPANESE = 0        # 日本手（Mode 1）
    AMERICAN = 1        # 美国手（Mode 2）
    CHINESE = 2         # 中国手（Mode 3）
    CUSTOM = 3
    SLAVE_DEFAULT = 4
    SLAVE_CUSTOM = 5
    UNKNOWN = 6

    @property
    def is_custom(self) -> bool:
        return self in (ControlStyle.CUSTOM, ControlStyle.SLAVE_CUSTOM)

    @property
    def is_slave_style(self) -> bool:
        return self in (ControlStyle.SLAVE_DEFAULT, ControlStyle.SLAVE_CUSTOM)


class ChannelName(IntEnum):
    """摇杆通道"""
    THROTTLE = 0
    PITCH = 1
    ROLL = 2
    YAW = 3


class JoinMasterResult(IntEnum):
    """从机加入主控的结果"""
    SUCCESSFUL = 0
    PASSWORD_ERROR = 1
    REJECTED = 2
    REACHED_MAXIMUM = 3
    TIMEOUT = 4
    UNKNOWN = 5

    @classmethod
    def from_code(cls, code: Any) -> "JoinMasterResult":
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class GimbalControlResult(IntEnum):
    """从机请求云台控制权的结果"""
    GRANTED = 0
    DENIED = 1
    TIMEOUT = 2
    AUTHORIZED = 3      # 请求方已持有控制权
    UNKNOWN = 4         # 请求方在答复前被移除

    @classmethod
    def from_code(cls, code: Any) -> "GimbalControlResult":
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class GimbalControlDirection(IntEnum):
    """左上拨轮控制的云台轴"""
    PITCH = 0
    ROLL = 1
    YAW = 2


class FlightModeSwitchState(IntEnum):
    F = 0
    A = 1
    P = 2
    S = 3


class TransformationSwitchState(IntEnum):
    RETRACT = 0
    DEPLOY = 1


class FocusControlType(IntEnum):
    APERTURE = 0
    FOCAL_LENGTH = 1


class FocusControlDirection(IntEnum):
    CLOCKWISE = 0
    COUNTER_CLOCKWISE = 1


# ========== 权限与身份 ==========

@dataclass(frozen=True)
class ControlPermission:
    """六项互相独立的控制权限"""
    gimbal_yaw: bool = False
    gimbal_roll: bool = False
    gimbal_pitch: bool = False
    playback: bool = False
    record: bool = False
    capture: bool = False

    @property
    def has_gimbal_control(self) -> bool:
        """云台三轴作为整体授予"""
        return self.gimbal_yaw and self.gimbal_roll and self.gimbal_pitch

    def with_gimbal(self, granted: bool) -> "ControlPermission":
        return replace(self, gimbal_yaw=granted, gimbal_roll=granted, gimbal_pitch=granted)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ControlPermission":
        data = data or {}
        return cls(**{name: bool(data.get(name, False)) for name in cls.__dataclass_fields__})

    def to_dict(self) -> Dict[str, bool]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass(frozen=True)
class RCIdentity:
    """一台遥控器的信息；id 出厂写入，不可修改"""
    id: int
    name: Optional[str] = None
    password: Optional[str] = None
    signal_quality: int = 0     # [0, 100]
    permissions: ControlPermission = field(default_factory=ControlPermission)

    def __post_init__(self):
        if not 0 <= self.id <= 0xFFFFFFFF:
            raise ValueError(f"rc id must be uint32, got {self.id}")
        if not 0 <= self.signal_quality <= 100:
            raise ValueError(f"signal_quality must be in range [0, 100], got {self.signal_quality}")

    @property
    def rc_identifier(self) -> str:
        return str(self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RCIdentity":
        return cls(
            id=int(data['id']),
            name=data.get('name'),
            password=data.get('password'),
            signal_quality=max(0, min(100, int(data.get('signal_quality', 0)))),
            permissions=ControlPermission.from_dict(data.get('permissions')),
        )


@dataclass(frozen=True)
class RCCapabilities:
    """设备能力"""
    master_slave_supported: bool = False
    remote_focus_supported: bool = False
    max_slaves: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_max_slaves: int) -> "RCCapabilities":
        return cls(
            master_slave_supported=bool(data.get('master_slave_supported', False)),
            remote_focus_supported=bool(data.get('remote_focus_supported', False)),
            max_slaves=int(data.get('max_slaves', default_max_slaves)),
        )


@dataclass(frozen=True)
class GimbalControlRequest:
    """一次未决的云台控制权请求"""
    requester_id: int
    issued_at: float


# ========== 操控设置 ==========

@dataclass(frozen=True)
class ControlChannel:
    name: ChannelName
    reverse: bool = False


@dataclass(frozen=True)
class ControlMode:
    """操控方式 + 4 个通道映射（油门/俯仰/横滚/偏航）"""
    style: ControlStyle
    channels: Tuple[ControlChannel, ...] = ()

    def validate(self):
        """自定义方式下通道名必须两两不同且恰好覆盖 4 个通道"""
        if self.channels and len(self.channels) != CONTROL_CHANNEL_SIZE:
            raise ValueError(
                f"control mode needs {CONTROL_CHANNEL_SIZE} channels, got {len(self.channels)}")
        if self.style.is_custom:
            names = [c.name for c in self.channels]
            if sorted(names) != sorted(ChannelName):
                raise ValueError(f"custom control mode must map each channel once, got {names}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'style': int(self.style),
            'channels': [{'name': int(c.name), 'reverse': c.reverse} for c in self.channels],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ControlMode":
        try:
            style = ControlStyle(data.get('style', ControlStyle.UNKNOWN))
        except ValueError:
            style = ControlStyle.UNKNOWN
        channels = tuple(
            ControlChannel(ChannelName(c['name']), bool(c.get('reverse', False)))
            for c in data.get('channels', [])
        )
        return cls(style, channels)


@dataclass(frozen=True)
class GimbalControlSpeed:
    """从机摇杆控制云台的速度，各轴 [0, 100]"""
    pitch: int
    roll: int
    yaw: int

    def validate(self):
        for name in ('pitch', 'roll', 'yaw'):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} speed must be in range [0, 100], got {value}")


# ========== 遥测 ==========

@dataclass
class BatteryInfo:
    remaining_energy_mah: int
    remaining_energy_percent: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatteryInfo":
        return cls(int(data.get('remaining_energy_mah', 0)),
                   int(data.get('remaining_energy_percent', 0)))


@dataclass
class GpsTime:
    year: int = 0
    month: int = 0
    day: int = 0
    hour: int = 0
    minute: int = 0
    second: int = 0


@dataclass
class GPSData:
    """遥控器 GPS（仅部分机型具备）"""
    time: GpsTime
    latitude: float
    longitude: float
    speed_east: float       # m/s，负值向西
    speed_north: float      # m/s，负值向南
    satellite_count: int
    accuracy: float         # 米
    is_valid: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GPSData":
        return cls(
            time=GpsTime(**(data.get('time') or {})),
            latitude=float(data.get('latitude', 0.0)),
            longitude=float(data.get('longitude', 0.0)),
            speed_east=float(data.get('speed_east', 0.0)),
            speed_north=float(data.get('speed_north', 0.0)),
            satellite_count=int(data.get('satellite_count', 0)),
            accuracy=float(data.get('accuracy', 0.0)),
            is_valid=bool(data.get('is_valid', False)),
        )


@dataclass
class HardwareButton:
    is_present: bool = False
    button_down: bool = False


@dataclass
class RightWheel:
    """右上拨轮（相机设置拨轮）"""
    is_present: bool = False
    wheel_changed: bool = False
    wheel_button_down: bool = False
    clockwise: bool = False
    value: int = 0


@dataclass
class HardwareState:
    """摇杆 [-660, 660]，左拨轮 [-660, 660]"""
    left_horizontal: int = 0
    left_vertical: int = 0
    right_vertical: int = 0
    right_horizontal: int = 0
    left_wheel: int = 0
    right_wheel: RightWheel = field(default_factory=RightWheel)
    transformation_switch_present: bool = False
    transformation_switch: TransformationSwitchState = TransformationSwitchState.RETRACT
    flight_mode_switch: FlightModeSwitchState = FlightModeSwitchState.P
    go_home_button: HardwareButton = field(default_factory=HardwareButton)
    record_button: HardwareButton = field(default_factory=HardwareButton)
    shutter_button: HardwareButton = field(default_factory=HardwareButton)
    playback_button: HardwareButton = field(default_factory=HardwareButton)
    pause_button: HardwareButton = field(default_factory=HardwareButton)
    custom_button1: HardwareButton = field(default_factory=HardwareButton)
    custom_button2: HardwareButton = field(default_factory=HardwareButton)

    BUTTONS = ('go_home_button', 'record_button', 'shutter_button', 'playback_button',
               'pause_button', 'custom_button1', 'custom_button2')
    STICKS = ('left_horizontal', 'left_vertical', 'right_vertical', 'right_horizontal',
              'left_wheel')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HardwareState":
        state = cls(
            right_wheel=RightWheel(**(data.get('right_wheel') or {})),
            transformation_switch_present=bool(data.get('transformation_switch_present', False)),
            transformation_switch=TransformationSwitchState(data.get('transformation_switch', 0)),
            flight_mode_switch=FlightModeSwitchState(data.get('flight_mode_switch', 2)),
        )
        for name in cls.STICKS:
            setattr(state, name, int(data.get(name, 0)))
        for name in cls.BUTTONS:
            setattr(state, name, HardwareButton(**(data.get(name) or {})))
        return state


@dataclass
class RemoteFocusState:
    is_focus_control_works: bool
    control_type: FocusControlType
    direction: FocusControlDirection

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteFocusState":
        return cls(bool(data.get('is_focus_control_works', False)),
                   FocusControlType(data.get('control_type', 0)),
                   FocusControlDirection(data.get('direction', 0)))


def identities_from_list(items: Optional[List[Dict[str, Any]]]) -> List[RCIdentity]:
    """回包中的遥控器列表 -> RCIdentity 列表"""
    return [RCIdentity.from_dict(item) for item in (items or [])]
