"""
云台控制权仲裁（主控侧）

每个请求方: IDLE -> REQUESTED -> GRANTED / DENIED / TIMEOUT -> IDLE

- 同一请求方同时只能有一个未决请求
- 主控答复与超时互斥：谁先原子地取走未决请求谁生效，另一方为空操作
- 同意即把云台三轴权限从当前持有者（包括主控自己）转给请求方
- 从机被移除时立即收回其权限，回落到主控
"""
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from rich.console import Console

from .. import config
from ..core import NotAttached, RequestAlreadyPending, ServiceCaller, call_service
from ..models import ControlPermission, GimbalControlRequest, GimbalControlResult, RCIdentity
from .directory import RCDirectory
from .session import RoleSessionManager

console = Console()

RequestHandler = Callable[[RCIdentity], None]

# 本地拒绝原因（随拒绝答复发给设备）
DENY_NOT_ATTACHED = "not_attached"
DENY_ALREADY_PENDING = "already_pending"
DENY_TIMEOUT = "timeout"


@dataclass
class _Pending:
    request: GimbalControlRequest
    future: Future
    timer: Optional[threading.Timer] = None


class GimbalControlArbiter:
    """主控侧的云台控制权状态机"""

    def __init__(
        self,
        caller: ServiceCaller,
        session: RoleSessionManager,
        directory: RCDirectory,
        master_id: int,
        timeout: float = config.GIMBAL_REQUEST_TIMEOUT
    ):
        self.caller = caller
        self.session = session
        self.directory = directory
        self.master_id = master_id
        self.timeout = timeout

        self._pending: Dict[int, _Pending] = {}
        self._holder = master_id
        self._lock = threading.Lock()
        self._handlers: List[RequestHandler] = []

        # 默认由主控持有云台
        self.directory.set_gimbal_permission(master_id, True)

    # ========== 查询 ==========

    @property
    def holder(self) -> int:
        """当前持有云台控制权的遥控器 id"""
        with self._lock:
            return self._holder

    def is_pending(self, requester_id: int) -> bool:
        with self._lock:
            return requester_id in self._pending

    def pending_requests(self) -> List[GimbalControlRequest]:
        with self._lock:
            return [p.request for p in self._pending.values()]

    def permissions_of(self, rc_id: int) -> ControlPermission:
        return self.directory.permissions_of(rc_id)

    # ========== 观察者 ==========

    def on_request(self, handler: RequestHandler) -> Callable[[], None]:
        """注册请求通知 handler(slave)，返回注销函数"""
        self._handlers.append(handler)
        return lambda: self._handlers.remove(handler)

    def _notify_request(self, requester_id: int):
        slave = self.directory.get(requester_id) or RCIdentity(requester_id)
        console.print(f"[bold cyan]从机 {requester_id} 请求云台控制权[/bold cyan]")
        for handler in list(self._handlers):
            try:
                handler(slave)
            except Exception as e:
                console.print(f"[red]云台请求回调异常: {e}[/red]")

    # ========== 协议 ==========

    def request_gimbal_control(self, requester_id: int) -> Future:
        """
        从机请求云台控制权

        Returns:
            Future，结果为 GimbalControlResult

        Raises:
            NotAttached: 请求方不在从机名单中
            RequestAlreadyPending: 请求方已有未决请求
        """
        future: Future = Future()
        with self._lock:
            if not self.session.is_attached(requester_id):
                raise NotAttached(requester_id)
            if requester_id in self._pending:
                raise RequestAlreadyPending(requester_id)
            if self._holder == requester_id:
                future.set_result(GimbalControlResult.AUTHORIZED)
                return future

            pending = _Pending(GimbalControlRequest(requester_id, time.time()), future)
            pending.timer = threading.Timer(self.timeout, self._expire, args=(pending,))
            pending.timer.daemon = True
            self._pending[requester_id] = pending
            pending.timer.start()

        self._notify_request(requester_id)
        return future

    def respond_to_request(self, requester_id: int, agree: bool) -> Optional[GimbalControlResult]:
        """
        主控答复

        Returns:
            生效的结果；请求已超时/已处理时返回 None（空操作）

        Raises:
            TransportUnavailable: 主控不可达，请求保持未决（仍可能超时）
        """
        with self._lock:
            pending = self._pending.get(requester_id)
        if pending is None:
            console.print(f"[yellow]从机 {requester_id} 没有未决请求，忽略答复[/yellow]")
            return None

        call_service(self.caller, "rc_gimbal_control_response",
                     {"requester_id": requester_id, "agree": agree})

        result = GimbalControlResult.GRANTED if agree else GimbalControlResult.DENIED
        with self._lock:
            if self._pending.get(requester_id) is not pending:
                console.print(f"[yellow]从机 {requester_id} 的请求已超时，答复作废[/yellow]")
                return None
            del self._pending[requester_id]
            previous = self._holder
            if agree:
                self._holder = requester_id
                self._transfer(previous, requester_id)

        pending.timer.cancel()
        if agree:
            console.print(f"[green]✓ 云台控制权: {previous} -> {requester_id}[/green]")
        else:
            console.print(f"[yellow]已拒绝从机 {requester_id} 的云台请求[/yellow]")
        pending.future.set_result(result)
        return result

    def _expire(self, pending: _Pending):
        requester_id = pending.request.requester_id
        with self._lock:
            if self._pending.get(requester_id) is not pending:
                return
            del self._pending[requester_id]
        console.print(f"[yellow]从机 {requester_id} 的云台请求超时[/yellow]")
        self.deny_on_device(requester_id, DENY_TIMEOUT)
        pending.future.set_result(GimbalControlResult.TIMEOUT)

    def deny_on_device(self, requester_id: int, reason: str):
        """
        向设备发送拒绝答复，结束从机一侧的等待

        用于本地直接拒绝的请求（未挂载、重复请求）和超时。不等待回包。
        """
        try:
            reply = self.caller.call_async("rc_gimbal_control_response", {
                "requester_id": requester_id,
                "agree": False,
                "reason": reason,
            })
        except Exception as e:
            console.print(f"[red]✗ 拒绝答复发送失败 (从机 {requester_id}): {e}[/red]")
            return

        def on_reply(f: Future):
            if not f.cancelled() and f.exception() is not None:
                console.print(f"[red]✗ 拒绝答复发送失败 (从机 {requester_id}): "
                              f"{f.exception()}[/red]")

        reply.add_done_callback(on_reply)

    def revoke_gimbal_control(self) -> Optional[int]:
        """
        主控主动收回云台控制权

        Returns:
            原持有者 id；主控本就持有时返回 None
        """
        with self._lock:
            previous = self._holder
        if previous == self.master_id:
            return None

        call_service(self.caller, "rc_gimbal_control_revoke", {"holder_id": previous},
                     "已收回云台控制权")
        with self._lock:
            if self._holder != previous:
                return None
            self._holder = self.master_id
            self._transfer(previous, self.master_id)
        return previous

    def handle_detach(self, rc_id: int) -> bool:
        """
        遥控器被移除：结束其未决请求，收回其权限

        Returns:
            是否发生了权限回落
        """
        with self._lock:
            pending = self._pending.pop(rc_id, None)
            revoked = self._holder == rc_id
            if revoked:
                self._holder = self.master_id
                self._transfer(rc_id, self.master_id)

        if pending is not None:
            pending.timer.cancel()
            pending.future.set_result(GimbalControlResult.UNKNOWN)
        if revoked:
            console.print(f"[yellow]云台控制权已从 {rc_id} 回落到主控[/yellow]")
        return revoked

    def _transfer(self, from_id: int, to_id: int):
        """调用方须持有 self._lock"""
        self.directory.set_gimbal_permission(from_id, False)
        self.directory.set_gimbal_permission(to_id, True)

    def close(self):
        """结束全部未决请求（视为超时）"""
        with self._lock:
            pending, self._pending = list(self._pending.values()), {}
        for item in pending:
            item.timer.cancel()
            item.future.set_result(GimbalControlResult.TIMEOUT)
