"""
遥测分发 - 把 Transport 的推送流转发给各类订阅者

每类推送一个泵线程：同类按到达顺序投递，不同类之间互不等待；
不缓存、不重放，订阅之前的样本不会补发。
"""
import threading
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional
from rich.console import Console

from ..core import TelemetryKind, Transport
from ..models import BatteryInfo, GPSData, HardwareState, RemoteFocusState

console = Console()

Handler = Callable[[Any], None]

# 推送 data -> 数据类；事件类推送以原始字典投递
DECODERS: Dict[TelemetryKind, Callable[[Dict[str, Any]], Any]] = {
    TelemetryKind.HARDWARE_STATE: HardwareState.from_dict,
    TelemetryKind.GPS: GPSData.from_dict,
    TelemetryKind.BATTERY: BatteryInfo.from_dict,
    TelemetryKind.FOCUS_STATE: RemoteFocusState.from_dict,
}


class TelemetryFanout:
    """按推送类型独立订阅的观察者集合"""

    def __init__(self, transport: Transport):
        self.transport = transport
        self.running = False
        self._handlers: Dict[TelemetryKind, List[Handler]] = {}
        self._threads: Dict[TelemetryKind, threading.Thread] = {}
        self._lock = threading.Lock()

    def subscribe(self, kind: TelemetryKind, handler: Handler) -> Callable[[], None]:
        """订阅一类推送，返回注销函数"""
        with self._lock:
            self._handlers.setdefault(kind, []).append(handler)

        def unsubscribe():
            with self._lock:
                handlers = self._handlers.get(kind, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def on_hardware_state(self, handler: Callable[[HardwareState], None]):
        return self.subscribe(TelemetryKind.HARDWARE_STATE, handler)

    def on_gps(self, handler: Callable[[GPSData], None]):
        return self.subscribe(TelemetryKind.GPS, handler)

    def on_battery(self, handler: Callable[[BatteryInfo], None]):
        return self.subscribe(TelemetryKind.BATTERY, handler)

    def on_focus_state(self, handler: Callable[[RemoteFocusState], None]):
        return self.subscribe(TelemetryKind.FOCUS_STATE, handler)

    def start(self, kinds: Optional[Iterable[TelemetryKind]] = None):
        """为每类推送启动一个泵线程（重复调用只补齐缺失的类型）"""
        self.running = True
        for kind in kinds or list(TelemetryKind):
            with self._lock:
                thread = self._threads.get(kind)
                if thread and thread.is_alive():
                    continue
                stream = self.transport.subscribe_telemetry(kind)
                thread = threading.Thread(target=self._pump, args=(kind, stream),
                                          name=f"telemetry-{kind.name.lower()}", daemon=True)
                self._threads[kind] = thread
            thread.start()

    def stop(self):
        """停止投递；泵线程在下一个样本或流结束时退出"""
        self.running = False

    def _pump(self, kind: TelemetryKind, stream: Iterator[Dict[str, Any]]):
        for sample in stream:
            if not self.running:
                break
            self.publish(kind, sample)

    def publish(self, kind: TelemetryKind, data: Dict[str, Any]) -> int:
        """
        解码并投递一个样本

        Returns:
            成功处理该样本的订阅者数量
        """
        decoder = DECODERS.get(kind)
        try:
            value = decoder(data) if decoder else data
        except (KeyError, TypeError, ValueError) as e:
            console.print(f"[red]✗ {kind.value} 解码失败: {e}[/red]")
            return 0

        with self._lock:
            handlers = list(self._handlers.get(kind, []))

        delivered = 0
        for handler in handlers:
            try:
                handler(value)
                delivered += 1
            except Exception as e:
                console.print(f"[red]{kind.value} 回调异常: {e}[/red]")
        return delivered
