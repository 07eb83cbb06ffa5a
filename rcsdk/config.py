"""
配置参数模块
所有可调参数集中在此文件
"""

# ========== 遥控器配置 ==========
GATEWAY_SN = '9N9CN2J0012CXY'
LOCAL_RC_ID = 0                 # 本机遥控器出厂 ID（CLI 可覆盖）

# ========== MQTT配置 ==========
MQTT_CONFIG = {
    'host': '127.0.0.1',
    'port': 1883,
    'username': 'dji',
    'password': 'dji',
}

# ========== 超时 ==========
SERVICE_TIMEOUT = 10            # 单次服务调用等待回包（秒）
GIMBAL_REQUEST_TIMEOUT = 10.0   # 云台控制权请求等待主控答复（秒）

# ========== 主从模式 ==========
DEFAULT_MAX_SLAVES = 1          # 设备未上报时的从机上限

# ========== 遥测 ==========
TELEMETRY_QUEUE_SIZE = 64       # 每个订阅者的缓冲深度，满则丢弃

# ========== 参数约束 ==========
RC_NAME_MAX_LENGTH = 6
RC_PASSWORD_LENGTH = 4
