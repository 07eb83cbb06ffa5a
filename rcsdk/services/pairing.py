"""
遥控器与飞机对频状态机

NOT_PAIRING --enter--> PAIRING --设备完成--> COMPLETED
PAIRING / COMPLETED --exit--> NOT_PAIRING
查询失败 -> UNKNOWN
"""
import threading
from typing import Callable, List
from rich.console import Console

from ..core import AlreadyPairing, ServiceCaller, TransportUnavailable, call_service
from ..models import PairingState

console = Console()

StateHandler = Callable[[PairingState, PairingState], None]


class PairingStateMachine:
    """对频生命周期；状态在设备确认后才迁移"""

    def __init__(self, caller: ServiceCaller):
        self.caller = caller
        self._state = PairingState.UNKNOWN
        self._lock = threading.Lock()
        # 串行化对频指令
        self._op_lock = threading.Lock()
        self._handlers: List[StateHandler] = []

    @property
    def state(self) -> PairingState:
        with self._lock:
            return self._state

    def on_state_change(self, handler: StateHandler) -> Callable[[], None]:
        """注册状态变化回调 handler(old, new)，返回注销函数"""
        self._handlers.append(handler)
        return lambda: self._handlers.remove(handler)

    def enter_pairing(self):
        """进入对频模式"""
        with self._op_lock:
            if self.state == PairingState.PAIRING:
                raise AlreadyPairing("遥控器已在对频中")
            console.print("[cyan]进入对频模式...[/cyan]")
            call_service(self.caller, "rc_pairing_enter", success_msg="已进入对频模式")
            self._set_state(PairingState.PAIRING)

    def exit_pairing(self):
        """退出对频模式（未在对频时为空操作）"""
        with self._op_lock:
            if self.state == PairingState.NOT_PAIRING:
                console.print("[yellow]未在对频，无需退出[/yellow]")
                return
            console.print("[cyan]退出对频模式...[/cyan]")
            call_service(self.caller, "rc_pairing_exit", success_msg="已退出对频模式")
            self._set_state(PairingState.NOT_PAIRING)

    def query_state(self) -> PairingState:
        """
        从设备读取对频状态

        Raises:
            TransportUnavailable: 遥控器不可达，本地状态同时置为 UNKNOWN
        """
        try:
            output = call_service(self.caller, "rc_pairing_state_get")
        except TransportUnavailable:
            self._set_state(PairingState.UNKNOWN)
            raise
        state = _parse_state(output.get('state'))
        self._set_state(state)
        return state

    def handle_device_state(self, data: dict):
        """设备推送的对频状态（对频完成等）"""
        state = _parse_state(data.get('state'))
        if state == PairingState.UNKNOWN:
            console.print(f"[yellow]忽略无法识别的对频状态: {data}[/yellow]")
            return
        self._set_state(state)

    def _set_state(self, state: PairingState):
        with self._lock:
            old, self._state = self._state, state
        if old == state:
            return
        console.print(f"[dim]对频状态: {old.name} -> {state.name}[/dim]")
        for handler in list(self._handlers):
            try:
                handler(old, state)
            except Exception as e:
                console.print(f"[red]对频状态回调异常: {e}[/red]")


def _parse_state(value) -> PairingState:
    try:
        return PairingState(value)
    except ValueError:
        return PairingState.UNKNOWN
