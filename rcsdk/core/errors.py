"""
错误分类

- TransportUnavailable: 链路/设备不可达，调用方可重试（内部从不自动重试）
- UnsupportedByProduct: 产品不支持该能力，不可重试
- AlreadyPairing / SearchAlreadyActive / RequestAlreadyPending: 前置条件违反（调用方逻辑错误）
- NotAttached: 引用了未挂载的遥控器

JoinMasterResult / GimbalControlResult 这类业务结果不走异常，见 models。
"""
from typing import Optional

# 设备回包中 result / info.code 的约定值
RESULT_OK = 0
RESULT_UNSUPPORTED_BY_PRODUCT = 314001


class RCError(Exception):
    """所有 rcsdk 错误的基类"""


class TransportUnavailable(RCError):
    """遥控器不可达（连接断开或请求超时）"""


class UnsupportedByProduct(RCError):
    """当前产品不支持该操作"""


class AlreadyPairing(RCError):
    """已处于对频状态时再次进入对频"""


class SearchAlreadyActive(RCError):
    """主控搜索已在进行中"""


class RequestAlreadyPending(RCError):
    """同一请求方已有未决的云台控制权请求"""

    def __init__(self, requester_id: int):
        super().__init__(f"遥控器 {requester_id} 已有未决的云台控制权请求")
        self.requester_id = requester_id


class NotAttached(RCError):
    """请求方不在当前主控的从机列表中"""

    def __init__(self, rc_id: int):
        super().__init__(f"遥控器 {rc_id} 未挂载到当前主控")
        self.rc_id = rc_id


class DeviceError(RCError):
    """设备回包 info.code != 0"""

    def __init__(self, code: int, message: Optional[str] = None):
        super().__init__(message or f"设备错误 (code={code})")
        self.code = code
        self.message = message


class CommandRejected(RCError):
    """设备执行了请求但返回非 0 的 result"""

    def __init__(self, method: str, code: int, message: Optional[str] = None):
        super().__init__(f"{method} 失败: {message or code}")
        self.method = method
        self.code = code
        self.message = message
