"""
遥控器门面 - 应用层持有的唯一对象

组装目录、对频状态机、主从会话、云台仲裁、设置服务和遥测分发，
并把设备推送的事件路由到对应组件。
"""
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional, Tuple
from rich.console import Console

from . import config
from .core import (
    CommandRejected,
    NotAttached,
    RESULT_OK,
    RequestAlreadyPending,
    ServiceCaller,
    TelemetryKind,
    Transport,
)
from .models import (
    ControlMode,
    ControlPermission,
    GimbalControlDirection,
    GimbalControlResult,
    GimbalControlSpeed,
    JoinMasterResult,
    PairingState,
    RCCapabilities,
    RCIdentity,
    RCMode,
)
from .services import (
    GimbalControlArbiter,
    PairingStateMachine,
    RCDirectory,
    RoleSessionManager,
    TelemetryFanout,
    ValueCache,
)
from .services import commands
from .services.arbiter import DENY_ALREADY_PENDING, DENY_NOT_ATTACHED

console = Console()


class RemoteController:
    """
    一台本地遥控器

    Args:
        transport: Transport 实现（通常是已连接的 MQTTClient）
        local_id: 本机遥控器出厂 ID
        timeout: 单次服务调用超时（秒）
        gimbal_timeout: 云台请求等待主控答复的时长（秒）
        max_slaves: 设备未上报上限时使用的从机数量上限
    """

    def __init__(
        self,
        transport: Transport,
        local_id: int = config.LOCAL_RC_ID,
        timeout: float = config.SERVICE_TIMEOUT,
        gimbal_timeout: float = config.GIMBAL_REQUEST_TIMEOUT,
        max_slaves: int = config.DEFAULT_MAX_SLAVES
    ):
        self.transport = transport
        self.local_id = local_id
        self.caller = ServiceCaller(transport, timeout=timeout)
        self.cache = ValueCache()

        self.directory = RCDirectory()
        self.pairing = PairingStateMachine(self.caller)
        self.session = RoleSessionManager(self.caller, self.directory, local_id, max_slaves)
        self.arbiter = GimbalControlArbiter(self.caller, self.session, self.directory,
                                            local_id, gimbal_timeout)
        self.telemetry = TelemetryFanout(transport)
        self.gimbal_timeout = gimbal_timeout

        # 从机侧未决的云台请求及其本地超时
        self._slave_request: Optional[Future] = None
        self._slave_timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

        self.session.on_detach(self._on_detach)
        self.telemetry.subscribe(TelemetryKind.GIMBAL_CONTROL_REQUEST, self._on_gimbal_request)
        self.telemetry.subscribe(TelemetryKind.PAIRING_STATE, self.pairing.handle_device_state)
        self.telemetry.subscribe(TelemetryKind.SLAVE_JOINED, self._on_slave_joined)
        self.telemetry.subscribe(TelemetryKind.SLAVE_LEFT, self._on_slave_left)
        self.telemetry.subscribe(TelemetryKind.GIMBAL_PERMISSION, self._on_gimbal_permission)

    # ========== 生命周期 ==========

    def start(self):
        """启动遥测与事件泵"""
        self.telemetry.start()
        console.print(f"[green]✓ 遥控器 {self.local_id} 已就绪[/green]")

    def close(self):
        """停止投递并结束全部未决云台请求"""
        self.telemetry.stop()
        self.arbiter.close()
        self._settle_slave_request(GimbalControlResult.TIMEOUT)

    # ========== 事件路由 ==========

    def _on_detach(self, rc_id: int):
        if rc_id == self.local_id:
            # 本机离开主控：未决请求作废，云台回到本机
            self._settle_slave_request(GimbalControlResult.UNKNOWN)
            self.directory.set_gimbal_permission(self.local_id, True)
            return
        self.arbiter.handle_detach(rc_id)

    def _on_gimbal_request(self, data: Dict[str, Any]):
        requester_id = int(data['requester_id'])
        try:
            self.arbiter.request_gimbal_control(requester_id)
        except NotAttached as e:
            console.print(f"[yellow]拒绝云台请求: {e}[/yellow]")
            self.arbiter.deny_on_device(requester_id, DENY_NOT_ATTACHED)
        except RequestAlreadyPending as e:
            console.print(f"[yellow]拒绝云台请求: {e}[/yellow]")
            self.arbiter.deny_on_device(requester_id, DENY_ALREADY_PENDING)

    def _on_slave_joined(self, data: Dict[str, Any]):
        self.session.admit_slave(RCIdentity.from_dict(data.get('slave') or data), confirmed=True)

    def _on_slave_left(self, data: Dict[str, Any]):
        self.session.handle_slave_left(int(data['slave_id']))

    def _on_gimbal_permission(self, data: Dict[str, Any]):
        """从机侧：主控收回或转授云台时，设备推送当前持有者"""
        if not self.session.is_joined:
            return
        has_control = data.get('holder_id') == self.local_id
        self.directory.set_gimbal_permission(self.local_id, has_control)
        if not has_control:
            console.print("[yellow]云台控制权已被主控收回[/yellow]")

    # ========== 对频 ==========

    @property
    def pairing_state(self) -> PairingState:
        return self.pairing.state

    def enter_pairing(self):
        self.pairing.enter_pairing()

    def exit_pairing(self):
        self.pairing.exit_pairing()

    def get_pairing_state(self) -> PairingState:
        return self.pairing.query_state()

    def on_pairing_state_change(self, handler: Callable[[PairingState, PairingState], None]):
        return self.pairing.on_state_change(handler)

    # ========== 角色与会话 ==========

    @property
    def role(self) -> RCMode:
        return self.session.role

    def get_capabilities(self) -> RCCapabilities:
        return self.session.refresh_capabilities()

    def get_role(self) -> Tuple[RCMode, bool]:
        return self.session.get_role()

    def set_role(self, role: RCMode) -> List[int]:
        return self.session.set_role(role)

    def start_master_search(self):
        self.session.start_search()

    def stop_master_search(self):
        self.session.stop_search()

    def get_master_search_results(self) -> List[RCIdentity]:
        return self.session.get_results()

    def get_master_search_state(self) -> bool:
        return self.session.get_search_state()

    def join_master(self, master_id: int, name: str, password: str) -> JoinMasterResult:
        result = self.session.join_master(master_id, name, password)
        if result == JoinMasterResult.SUCCESSFUL:
            # 作为从机时云台权限需向主控申请
            self.directory.set_gimbal_permission(self.local_id, False)
        return result

    def get_joined_master_info(self) -> Optional[RCIdentity]:
        return self.session.get_joined_master_info()

    def remove_master(self, master_id: int) -> bool:
        return self.session.remove_master(master_id)

    def get_slave_list(self) -> List[RCIdentity]:
        return self.session.get_slave_list()

    def attached_slaves(self) -> List[RCIdentity]:
        return self.session.attached_slaves()

    def remove_slave(self, slave_id: int) -> bool:
        return self.session.remove_slave(slave_id)

    # ========== 云台控制权 ==========

    def permissions_of(self, rc_id: Optional[int] = None) -> ControlPermission:
        """某台遥控器（默认本机）的控制权限"""
        return self.directory.permissions_of(self.local_id if rc_id is None else rc_id)

    def on_gimbal_request(self, handler: Callable[[RCIdentity], None]):
        """主控侧：从机请求云台控制权时回调 handler(slave)"""
        return self.arbiter.on_request(handler)

    def respond_to_gimbal_request(self, requester_id: int,
                                  agree: bool) -> Optional[GimbalControlResult]:
        return self.arbiter.respond_to_request(requester_id, agree)

    def revoke_gimbal_control(self) -> Optional[int]:
        return self.arbiter.revoke_gimbal_control()

    def request_gimbal_control(self) -> Future:
        """
        从机侧：向已加入的主控请求云台控制权

        Returns:
            Future，结果为 GimbalControlResult；设备回包失败时 Future 携带异常。
            离开主控时结果为 UNKNOWN，超过 gimbal_timeout + 服务超时仍无回包时为 TIMEOUT

        Raises:
            NotAttached: 本机未加入任何主控
            RequestAlreadyPending: 上一次请求尚未有结果
            TransportUnavailable: 链路未连接
        """
        master = self.session.get_joined_master_info()
        if master is None:
            raise NotAttached(self.local_id)

        with self._lock:
            if self._slave_request is not None:
                raise RequestAlreadyPending(self.local_id)
            result: Future = Future()
            self._slave_request = result

        console.print(f"[cyan]向主控 {master.id} 请求云台控制权...[/cyan]")
        try:
            reply = self.caller.call_async("rc_gimbal_control_request",
                                           {"requester_id": self.local_id})
        except Exception as e:
            if self._claim_slave_request(result) is not None:
                result.set_exception(e)
            raise

        def on_timeout():
            if self._claim_slave_request(result) is None:
                return
            reply.cancel()
            console.print("[yellow]云台请求超时，未收到主控答复[/yellow]")
            result.set_result(GimbalControlResult.TIMEOUT)

        timer = threading.Timer(self.gimbal_timeout + self.caller.timeout, on_timeout)
        timer.daemon = True
        with self._lock:
            if self._slave_request is result:
                self._slave_timer = timer
                timer.start()

        def on_reply(f: Future):
            if self._claim_slave_request(result) is None:
                console.print("[dim]云台请求已结束，忽略迟到的回包[/dim]")
                return
            try:
                data = f.result()
                code = data.get('result', RESULT_OK)
                if code != RESULT_OK:
                    raise CommandRejected("rc_gimbal_control_request", code, data.get('message'))
                value = GimbalControlResult.from_code(
                    (data.get('output') or {}).get('gimbal_result'))
            except Exception as e:
                console.print(f"[red]✗ 云台请求失败: {e}[/red]")
                result.set_exception(e)
                return

            if value in (GimbalControlResult.GRANTED, GimbalControlResult.AUTHORIZED):
                self.directory.set_gimbal_permission(self.local_id, True)
                console.print("[green]✓ 已获得云台控制权[/green]")
            else:
                console.print(f"[yellow]云台请求结果: {value.name}[/yellow]")
            result.set_result(value)

        reply.add_done_callback(on_reply)
        return result

    def _claim_slave_request(self, request: Optional[Future] = None) -> Optional[Future]:
        """原子地取走从机侧未决请求（给定 request 时只取走这一个），并停止其超时"""
        with self._lock:
            current = self._slave_request
            if current is None or (request is not None and current is not request):
                return None
            self._slave_request = None
            timer, self._slave_timer = self._slave_timer, None
        if timer is not None:
            timer.cancel()
        return current

    def _settle_slave_request(self, value: GimbalControlResult,
                              request: Optional[Future] = None) -> bool:
        claimed = self._claim_slave_request(request)
        if claimed is None:
            return False
        console.print(f"[yellow]云台请求结束: {value.name}[/yellow]")
        claimed.set_result(value)
        return True

    # ========== 遥测 ==========

    def subscribe(self, kind: TelemetryKind, handler: Callable[[Any], None]):
        return self.telemetry.subscribe(kind, handler)

    # ========== 设置 ==========

    def set_rc_name(self, name: str):
        commands.set_rc_name(self.caller, name, self.cache)
        self.directory.rename(self.local_id, name=name)

    def get_rc_name(self) -> Optional[str]:
        return commands.get_rc_name(self.caller, self.cache)

    def set_rc_password(self, password: str):
        commands.set_rc_password(self.caller, password, self.cache)
        self.directory.rename(self.local_id, password=password)

    def get_rc_password(self) -> Optional[str]:
        return commands.get_rc_password(self.caller, self.cache)

    def set_control_mode(self, mode: ControlMode):
        commands.set_control_mode(self.caller, mode, self.cache)

    def get_control_mode(self) -> ControlMode:
        return commands.get_control_mode(self.caller, self.cache)

    def set_slave_control_mode(self, mode: ControlMode):
        commands.set_slave_control_mode(self.caller, mode, self.cache)

    def get_slave_control_mode(self) -> ControlMode:
        return commands.get_slave_control_mode(self.caller, self.cache)

    def set_wheel_gimbal_speed(self, speed: int):
        commands.set_wheel_gimbal_speed(self.caller, speed, self.cache)

    def get_wheel_gimbal_speed(self) -> int:
        return commands.get_wheel_gimbal_speed(self.caller, self.cache)

    def set_gimbal_dial_direction(self, direction: GimbalControlDirection):
        commands.set_gimbal_dial_direction(self.caller, direction, self.cache)

    def get_gimbal_dial_direction(self) -> GimbalControlDirection:
        return commands.get_gimbal_dial_direction(self.caller, self.cache)

    def set_custom_button_tags(self, tag1: int, tag2: int):
        commands.set_custom_button_tags(self.caller, tag1, tag2, self.cache)

    def get_custom_button_tags(self) -> Tuple[int, int]:
        return commands.get_custom_button_tags(self.caller, self.cache)

    def set_c1_button_binding(self, enabled: bool):
        commands.set_c1_button_binding(self.caller, enabled, self.cache)

    def get_c1_button_binding(self) -> bool:
        return commands.get_c1_button_binding(self.caller, self.cache)

    def set_slave_joystick_gimbal_speed(self, speed: GimbalControlSpeed):
        commands.set_slave_joystick_gimbal_speed(self.caller, speed, self.cache)

    def get_slave_joystick_gimbal_speed(self) -> GimbalControlSpeed:
        return commands.get_slave_joystick_gimbal_speed(self.caller, self.cache)
