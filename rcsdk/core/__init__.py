"""
核心层：传输、服务调用与错误定义
"""
from .errors import (
    RESULT_OK,
    RESULT_UNSUPPORTED_BY_PRODUCT,
    RCError,
    TransportUnavailable,
    UnsupportedByProduct,
    AlreadyPairing,
    SearchAlreadyActive,
    RequestAlreadyPending,
    NotAttached,
    DeviceError,
    CommandRejected,
)
from .transport import TelemetryKind, Transport
from .mqtt_client import MQTTClient
from .service_caller import ServiceCaller, call_service

__all__ = [
    'RESULT_OK',
    'RESULT_UNSUPPORTED_BY_PRODUCT',
    'MQTTClient',
    'ServiceCaller',
    'call_service',
    'Transport',
    'TelemetryKind',
    'RCError',
    'TransportUnavailable',
    'UnsupportedByProduct',
    'AlreadyPairing',
    'SearchAlreadyActive',
    'RequestAlreadyPending',
    'NotAttached',
    'DeviceError',
    'CommandRejected',
]
