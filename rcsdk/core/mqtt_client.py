"""
MQTT 客户端 - 负责连接管理和消息收发（Transport 的 MQTT 实现）
"""
import json
import queue
import threading
import time
import uuid
from typing import Any, Dict, Iterator, List, Optional
from concurrent.futures import Future
import paho.mqtt.client as mqtt
from rich.console import Console

from .. import config
from .errors import DeviceError, TransportUnavailable
from .transport import TelemetryKind

console = Console()

# 订阅流结束标记
_CLOSED = object()

_KIND_BY_METHOD = {kind.value: kind for kind in TelemetryKind}


class MQTTClient:
    """简单的 MQTT 客户端封装"""

    def __init__(self, gateway_sn: str, mqtt_config: Dict[str, Any],
                 queue_size: int = config.TELEMETRY_QUEUE_SIZE):
        self.gateway_sn = gateway_sn
        self.config = mqtt_config
        self.client: Optional[mqtt.Client] = None
        self.connected = False
        self.pending_requests: Dict[str, Future] = {}
        self.lock = threading.Lock()
        # 推送订阅：每个订阅者一个有界队列
        self.queue_size = queue_size
        self.subscribers: Dict[TelemetryKind, List[queue.Queue]] = {}
        self.dropped_samples = 0
        self.closed = False

    @property
    def services_topic(self) -> str:
        return f"thing/product/{self.gateway_sn}/services"

    @property
    def reply_topic(self) -> str:
        return f"thing/product/{self.gateway_sn}/services_reply"

    @property
    def up_topic(self) -> str:
        return f"thing/product/{self.gateway_sn}/rc/up"

    @property
    def events_topic(self) -> str:
        return f"thing/product/{self.gateway_sn}/events"

    def connect(self):
        """建立 MQTT 连接"""
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2,
                                  client_id=f"python-rc-{self.gateway_sn}")
        self.client.username_pw_set(self.config['username'], self.config['password'])
        self.client.on_message = self._on_message
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        console.print(f"[cyan]连接 MQTT: {self.config['host']}:{self.config['port']}[/cyan]")
        self.client.connect(self.config['host'], self.config['port'], 60)
        self.client.loop_start()
        with self.lock:
            self.connected = True
            self.closed = False

        # 服务回包
        self.client.subscribe(self.reply_topic, qos=1)
        console.print(f"[green]✓[/green] 已订阅: {self.reply_topic}")

        # 遥测推送（尽力而为）
        self.client.subscribe(self.up_topic, qos=0)
        console.print(f"[green]✓[/green] 已订阅: {self.up_topic}")

        # 事件推送
        self.client.subscribe(self.events_topic, qos=1)
        console.print(f"[green]✓[/green] 已订阅: {self.events_topic}")

    def disconnect(self):
        """断开连接，结束所有订阅流并让挂起请求失败"""
        if self.client:
            self.client.loop_stop()
            self.client.disconnect()
            console.print("[yellow]MQTT 连接已断开[/yellow]")

        with self.lock:
            self.connected = False
            self.closed = True
            pending = list(self.pending_requests.values())
            self.pending_requests.clear()
            streams = [q for queues in self.subscribers.values() for q in queues]
            self.subscribers.clear()

        for future in pending:
            if not future.done():
                future.set_exception(TransportUnavailable("MQTT 连接已断开"))
        for q in streams:
            self._offer(q, _CLOSED, force=True)

    def cleanup_request(self, tid: str):
        """清理挂起的请求（用于超时/取消）"""
        with self.lock:
            self.pending_requests.pop(tid, None)

    def send_request(self, command: str, payload: Dict[str, Any]) -> Future:
        """Transport 原语：发送请求并返回 Future"""
        with self.lock:
            connected = self.connected and self.client is not None
        if not connected:
            raise TransportUnavailable("MQTT 未连接")
        return self.publish(command, payload, str(uuid.uuid4()))

    def publish(self, method: str, data: Dict[str, Any], tid: str) -> Future:
        """
        发布消息并返回 Future 等待响应

        Args:
            method: 服务方法名
            data: 请求数据
            tid: 事务 ID

        Returns:
            Future 对象，可通过 result() 获取响应
        """
        payload = {
            "tid": tid,
            "bid": tid,
            "timestamp": int(time.time() * 1000),
            "method": method,
            "data": data
        }

        future = Future()
        with self.lock:
            self.pending_requests[tid] = future
        # 调用方取消（超时）后不再保留 tid
        future.add_done_callback(lambda f: self.cleanup_request(tid))

        msg_json = json.dumps(payload)
        self.client.publish(self.services_topic, msg_json, qos=1)
        console.print(f"[blue]→[/blue] 发送 {method} (tid: {tid[:8]}...)")

        return future

    def subscribe_telemetry(self, kind: TelemetryKind) -> Iterator[Dict[str, Any]]:
        """Transport 原语：订阅一类推送，返回惰性迭代器"""
        q: queue.Queue = queue.Queue(maxsize=self.queue_size)
        with self.lock:
            if self.closed:
                return iter(())
            self.subscribers.setdefault(kind, []).append(q)
        return self._drain(kind, q)

    def _drain(self, kind: TelemetryKind, q: queue.Queue) -> Iterator[Dict[str, Any]]:
        try:
            while True:
                sample = q.get()
                if sample is _CLOSED:
                    return
                yield sample
        finally:
            with self.lock:
                queues = self.subscribers.get(kind, [])
                if q in queues:
                    queues.remove(q)

    def _offer(self, q: queue.Queue, sample: Any, force: bool = False):
        """非阻塞入队；队列满时丢弃最新样本（结束标记则挤掉最旧样本）"""
        try:
            q.put_nowait(sample)
        except queue.Full:
            if not force:
                self.dropped_samples += 1
                return
            try:
                q.get_nowait()
            except queue.Empty:
                pass
            q.put_nowait(sample)

    def _dispatch(self, kind: TelemetryKind, data: Dict[str, Any]):
        with self.lock:
            queues = list(self.subscribers.get(kind, []))
        for q in queues:
            self._offer(q, data)

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        with self.lock:
            self.connected = True

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        with self.lock:
            self.connected = False
        console.print(f"[yellow]MQTT 连接中断 ({reason_code})[/yellow]")

    def _on_message(self, client, userdata, msg):
        """处理收到的消息"""
        try:
            payload = json.loads(msg.payload.decode())

            # 遥测 / 事件推送（回包主题之外的消息）
            kind = _KIND_BY_METHOD.get(payload.get('method'))
            if kind is not None and msg.topic != self.reply_topic:
                self._dispatch(kind, payload.get('data') or {})
                return

            # 处理服务响应
            tid = payload.get('tid')
            if not tid:
                return

            with self.lock:
                future = self.pending_requests.pop(tid, None)

            if future is None or future.done():
                return

            # info.code != 0 表示错误
            info = payload.get('info', {})
            if info and info.get('code') != 0:
                error_msg = info.get('message', 'Unknown error')
                console.print(f"[red]✗[/red] 错误: {error_msg}")
                future.set_exception(DeviceError(info.get('code'), error_msg))
            else:
                console.print(f"[green]←[/green] 收到响应 (tid: {tid[:8]}...)")
                future.set_result(payload.get('data', {}))

        except Exception as e:
            console.print(f"[red]消息处理异常: {e}[/red]")
