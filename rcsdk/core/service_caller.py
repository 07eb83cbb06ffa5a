"""
服务调用器 - 在 Transport 的 Future 之上提供带超时的请求/响应
"""
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Any, Dict, Optional
from rich.console import Console

from .. import config
from .errors import (
    RESULT_OK,
    RESULT_UNSUPPORTED_BY_PRODUCT,
    CommandRejected,
    DeviceError,
    TransportUnavailable,
    UnsupportedByProduct,
)
from .transport import Transport

console = Console()


class ServiceCaller:
    """服务调用器：超时即视为链路不可用，不做重试"""

    def __init__(self, transport: Transport, timeout: float = config.SERVICE_TIMEOUT):
        self.transport = transport
        self.timeout = timeout

    def call_async(self, method: str, data: Optional[Dict[str, Any]] = None) -> Future:
        """发出请求，立即返回 Future"""
        return self.transport.send_request(method, data or {})

    def call(self, method: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        调用服务并等待回包

        Raises:
            TransportUnavailable: 未连接或等待超时
            UnsupportedByProduct: 设备报告不支持
            DeviceError: 其他设备错误
        """
        future = self.call_async(method, data)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            raise TransportUnavailable(f"服务调用超时: {method}")
        except DeviceError as e:
            if e.code == RESULT_UNSUPPORTED_BY_PRODUCT:
                raise UnsupportedByProduct(f"{method}: {e}") from e
            raise


def call_service(
    caller: ServiceCaller,
    method: str,
    data: Optional[Dict[str, Any]] = None,
    success_msg: Optional[str] = None
) -> Dict[str, Any]:
    """
    通用服务调用包装

    Args:
        caller: 服务调用器
        method: 服务方法名
        data: 请求数据
        success_msg: 成功时的提示信息

    Returns:
        回包中的 output 字典

    Raises:
        CommandRejected: 设备返回非 0 result
        UnsupportedByProduct: 设备不支持该操作
        TransportUnavailable: 链路不可用
    """
    try:
        result = caller.call(method, data or {})

        code = result.get('result', RESULT_OK)
        if code == RESULT_OK:
            if success_msg:
                console.print(f"[green]✓ {success_msg}[/green]")
            return result.get('output') or {}
        if code == RESULT_UNSUPPORTED_BY_PRODUCT:
            raise UnsupportedByProduct(f"{method}: 产品不支持")
        raise CommandRejected(method, code, result.get('message'))

    except Exception as e:
        console.print(f"[red]✗ {method}: {e}[/red]")
        raise
