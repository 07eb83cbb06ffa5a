"""
主从角色与会话管理

- 角色查询/设置（离开主控角色时级联移除全部从机）
- 主控搜索（start/stop/results 游标）
- 从机加入/离开主控
- 主控侧从机名单，数量不超过设备上限
"""
import threading
from typing import Callable, Dict, List, Optional, Tuple
from rich.console import Console

from .. import config
from ..core import (
    SearchAlreadyActive,
    ServiceCaller,
    TransportUnavailable,
    UnsupportedByProduct,
    call_service,
)
from ..models import (
    JoinMasterResult,
    RCCapabilities,
    RCIdentity,
    RCMode,
    identities_from_list,
)
from .commands import get_capabilities, validate_rc_name, validate_rc_password
from .directory import RCDirectory

console = Console()

DetachHandler = Callable[[int], None]


class RoleSessionManager:
    """主从会话：拥有从机名单与已加入主控的缓存"""

    def __init__(
        self,
        caller: ServiceCaller,
        directory: RCDirectory,
        local_id: int,
        max_slaves: int = config.DEFAULT_MAX_SLAVES
    ):
        self.caller = caller
        self.directory = directory
        self.local_id = local_id
        self.max_slaves = max_slaves

        self._role = RCMode.UNKNOWN
        self._is_connected = False
        self._slave_ids: List[int] = []
        self._joined_master: Optional[RCIdentity] = None

        self._search_active = False
        self._search_results: Dict[int, RCIdentity] = {}

        self._lock = threading.Lock()
        self._op_lock = threading.Lock()
        self._detach_handlers: List[DetachHandler] = []

    # ========== 观察者 ==========

    def on_detach(self, handler: DetachHandler) -> Callable[[], None]:
        """注册移除回调 handler(rc_id)，返回注销函数"""
        self._detach_handlers.append(handler)
        return lambda: self._detach_handlers.remove(handler)

    def _notify_detached(self, rc_ids: List[int]):
        for rc_id in rc_ids:
            console.print(f"[yellow]遥控器 {rc_id} 已移除[/yellow]")
            for handler in list(self._detach_handlers):
                try:
                    handler(rc_id)
                except Exception as e:
                    console.print(f"[red]移除回调异常: {e}[/red]")

    # ========== 角色 ==========

    @property
    def role(self) -> RCMode:
        with self._lock:
            return self._role

    @property
    def is_joined(self) -> bool:
        with self._lock:
            return self._joined_master is not None

    def _apply_role(self, role: RCMode) -> List[int]:
        """
        原子角色迁移

        Returns:
            因本次迁移被级联移除的从机 id
        """
        with self._lock:
            detached: List[int] = []
            if self._role == RCMode.MASTER and role != RCMode.MASTER:
                detached, self._slave_ids = self._slave_ids, []
            if role != RCMode.SLAVE:
                self._joined_master = None
            self._role = role
            return detached

    def refresh_capabilities(self) -> RCCapabilities:
        """查询设备能力并记录设备上报的从机上限"""
        caps = get_capabilities(self.caller, self.max_slaves)
        with self._lock:
            self.max_slaves = caps.max_slaves
        return caps

    def get_role(self) -> Tuple[RCMode, bool]:
        """
        从设备读取角色

        Returns:
            (角色, 是否已与另一台遥控器连接)
        """
        try:
            output = call_service(self.caller, "rc_mode_get")
        except TransportUnavailable:
            with self._lock:
                self._role = RCMode.UNKNOWN
            raise
        try:
            role = RCMode(output.get('mode'))
        except ValueError:
            role = RCMode.UNKNOWN
        is_connected = bool(output.get('is_connected', False))
        if role == RCMode.MASTER:
            self.refresh_capabilities()
        self._notify_detached(self._apply_role(role))
        with self._lock:
            self._is_connected = is_connected
        return role, is_connected

    def set_role(self, role: RCMode) -> List[int]:
        """
        设置角色

        Returns:
            被级联移除的从机 id（主控切到其他角色时）

        Raises:
            UnsupportedByProduct: 产品不支持主从模式
        """
        if role == RCMode.UNKNOWN:
            raise ValueError("cannot set rc mode to UNKNOWN")

        with self._op_lock:
            caps = self.refresh_capabilities()
            if not caps.master_slave_supported:
                raise UnsupportedByProduct("该产品不支持主从模式")

            console.print(f"[cyan]设置遥控器角色: {role.name}[/cyan]")
            call_service(self.caller, "rc_mode_set", {"mode": int(role)},
                         f"角色已设置为 {role.name}")
            detached = self._apply_role(role)

        self._notify_detached(detached)
        return detached

    # ========== 主控搜索 ==========

    @property
    def search_active(self) -> bool:
        with self._lock:
            return self._search_active

    def start_search(self):
        """开始搜索附近主控"""
        with self._op_lock:
            if self.search_active:
                raise SearchAlreadyActive("主控搜索已在进行")
            call_service(self.caller, "rc_master_search_start", success_msg="开始搜索主控")
            with self._lock:
                self._search_active = True
                self._search_results.clear()

    def stop_search(self):
        """停止搜索（可重复调用）"""
        with self._op_lock:
            if not self.search_active:
                return
            call_service(self.caller, "rc_master_search_stop", success_msg="已停止搜索主控")
            with self._lock:
                self._search_active = False

    def get_results(self) -> List[RCIdentity]:
        """
        已发现的主控（按 id 去重）

        搜索进行中时从设备拉取并累积；停止后返回最后一次累积结果。
        """
        if self.search_active:
            output = call_service(self.caller, "rc_available_masters_get")
            masters = [
                item for item in output.get('masters', [])
                if item.get('mode', RCMode.MASTER) == RCMode.MASTER
            ]
            found = self.directory.upsert_many(identities_from_list(masters))
            with self._lock:
                for identity in found:
                    self._search_results[identity.id] = identity
        with self._lock:
            return list(self._search_results.values())

    def get_search_state(self) -> bool:
        """读取设备端搜索状态并同步本地游标（应用重启后恢复）"""
        output = call_service(self.caller, "rc_master_search_state_get")
        is_started = bool(output.get('is_started', False))
        with self._lock:
            self._search_active = is_started
        return is_started

    # ========== 从机侧 ==========

    def join_master(self, master_id: int, name: str, password: str) -> JoinMasterResult:
        """
        加入主控

        Returns:
            JoinMasterResult，仅 SUCCESSFUL 会改变本地会话
        """
        validate_rc_name(name)
        validate_rc_password(password)

        with self._op_lock:
            console.print(f"[cyan]加入主控 {master_id} ({name})...[/cyan]")
            output = call_service(self.caller, "rc_join_master", {
                "master_id": master_id,
                "master_name": name,
                "master_password": password,
            })
            result = JoinMasterResult.from_code(output.get('join_result'))

            if result != JoinMasterResult.SUCCESSFUL:
                console.print(f"[yellow]加入主控失败: {result.name}[/yellow]")
                return result

            master = self.directory.upsert(RCIdentity(master_id, name=name, password=password))
            detached = self._apply_role(RCMode.SLAVE)
            with self._lock:
                self._joined_master = master
            console.print(f"[green]✓ 已加入主控 {master_id}[/green]")

        self._notify_detached(detached)
        return result

    def get_joined_master_info(self) -> Optional[RCIdentity]:
        """已加入主控的缓存信息（不访问设备）"""
        with self._lock:
            return self._joined_master

    def remove_master(self, master_id: int) -> bool:
        """
        离开主控

        Returns:
            False 表示本就未加入该主控（视为已移除）
        """
        with self._op_lock:
            joined = self.get_joined_master_info()
            if joined is None or joined.id != master_id:
                console.print(f"[yellow]未加入主控 {master_id}，无需移除[/yellow]")
                return False
            call_service(self.caller, "rc_master_remove", {"master_id": master_id},
                         f"已离开主控 {master_id}")
            with self._lock:
                self._joined_master = None

        self._notify_detached([self.local_id])
        return True

    # ========== 主控侧 ==========

    def is_attached(self, rc_id: int) -> bool:
        with self._lock:
            return rc_id in self._slave_ids

    def attached_slaves(self) -> List[RCIdentity]:
        """本地从机名单（不访问设备）"""
        with self._lock:
            ids = list(self._slave_ids)
        return [self.directory.get(rc_id) or RCIdentity(rc_id) for rc_id in ids]

    def admit_slave(self, identity: RCIdentity, confirmed: bool = False) -> JoinMasterResult:
        """
        登记从机；名单已满时拒绝

        Args:
            identity: 从机身份
            confirmed: 设备已接纳该从机（slave_joined 事件）。此时本地名单以设备为准，
                上限随之调整
        """
        if confirmed:
            self._apply_role(RCMode.MASTER)
        with self._lock:
            if confirmed and identity.id not in self._slave_ids:
                if len(self._slave_ids) >= self.max_slaves:
                    console.print(f"[yellow]设备已接纳从机 {identity.id}，"
                                  f"上限调整为 {len(self._slave_ids) + 1}[/yellow]")
                    self.max_slaves = len(self._slave_ids) + 1
                self._slave_ids.append(identity.id)
                result = JoinMasterResult.SUCCESSFUL
            elif self._role not in (RCMode.MASTER, RCMode.UNKNOWN):
                result = JoinMasterResult.REJECTED
            elif identity.id in self._slave_ids:
                result = JoinMasterResult.SUCCESSFUL
            elif len(self._slave_ids) >= self.max_slaves:
                result = JoinMasterResult.REACHED_MAXIMUM
            else:
                self._role = RCMode.MASTER
                self._slave_ids.append(identity.id)
                result = JoinMasterResult.SUCCESSFUL

        if result == JoinMasterResult.SUCCESSFUL:
            self.directory.upsert(identity)
            console.print(f"[green]✓ 从机 {identity.id} 已加入[/green]")
        else:
            console.print(f"[yellow]拒绝从机 {identity.id}: {result.name}[/yellow]")
        return result

    def handle_slave_left(self, slave_id: int) -> bool:
        """设备上报从机已断开"""
        with self._lock:
            if slave_id not in self._slave_ids:
                return False
            self._slave_ids.remove(slave_id)
        self._notify_detached([slave_id])
        return True

    def remove_slave(self, slave_id: int) -> bool:
        """
        移除从机

        Returns:
            False 表示该从机本就未挂载（视为已移除）
        """
        with self._op_lock:
            if not self.is_attached(slave_id):
                console.print(f"[yellow]从机 {slave_id} 未挂载，无需移除[/yellow]")
                return False
            call_service(self.caller, "rc_slave_remove", {"slave_id": slave_id},
                         f"已移除从机 {slave_id}")
            with self._lock:
                if slave_id in self._slave_ids:
                    self._slave_ids.remove(slave_id)

        self._notify_detached([slave_id])
        return True

    def get_slave_list(self) -> List[RCIdentity]:
        """从设备刷新从机名单，并与本地名单对齐"""
        output = call_service(self.caller, "rc_slave_list_get")
        reported = self.directory.upsert_many(identities_from_list(output.get('slaves')))
        reported_ids = [identity.id for identity in reported]

        with self._lock:
            vanished = [rc_id for rc_id in self._slave_ids if rc_id not in reported_ids]
            for rc_id in vanished:
                self._slave_ids.remove(rc_id)
            for rc_id in reported_ids:
                if rc_id in self._slave_ids:
                    continue
                if len(self._slave_ids) >= self.max_slaves:
                    console.print(f"[yellow]从机数量已达上限 {self.max_slaves}，忽略 {rc_id}[/yellow]")
                    continue
                self._slave_ids.append(rc_id)

        self._notify_detached(vanished)
        return self.attached_slaves()
