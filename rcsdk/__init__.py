"""
DJI 遥控器 Python SDK

对频、主从会话与云台控制权协同
"""
from .core import MQTTClient, ServiceCaller, TelemetryKind
from .models import (
    ControlPermission,
    GimbalControlResult,
    JoinMasterResult,
    PairingState,
    RCIdentity,
    RCMode,
)
from .remote_controller import RemoteController

__version__ = '1.0.0'

__all__ = [
    # Core
    'MQTTClient',
    'ServiceCaller',
    'TelemetryKind',
    # Models
    'ControlPermission',
    'GimbalControlResult',
    'JoinMasterResult',
    'PairingState',
    'RCIdentity',
    'RCMode',
    # Facade
    'RemoteController',
]
