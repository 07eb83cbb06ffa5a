"""
遥控器目录 - 记录已知遥控器（搜索发现或设备上报）
"""
import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from ..models import ControlPermission, RCIdentity


class RCDirectory:
    """按 id 保存 RCIdentity 快照，线程安全"""

    def __init__(self):
        self._records: Dict[int, RCIdentity] = {}
        self._lock = threading.Lock()

    def upsert(self, identity: RCIdentity) -> RCIdentity:
        """
        新增或更新记录

        云台权限只由仲裁器通过 set_gimbal_permission 修改：已有记录保留本地云台位，
        新记录清除云台位；其余字段取新值。
        """
        with self._lock:
            known = self._records.get(identity.id)
            held = known is not None and known.permissions.has_gimbal_control
            identity = replace(identity, permissions=identity.permissions.with_gimbal(held))
            self._records[identity.id] = identity
            return identity

    def upsert_many(self, identities: Iterable[RCIdentity]) -> List[RCIdentity]:
        return [self.upsert(identity) for identity in identities]

    def get(self, rc_id: int) -> Optional[RCIdentity]:
        with self._lock:
            return self._records.get(rc_id)

    def remove(self, rc_id: int) -> Optional[RCIdentity]:
        with self._lock:
            return self._records.pop(rc_id, None)

    def all(self) -> List[RCIdentity]:
        with self._lock:
            return list(self._records.values())

    def __contains__(self, rc_id: int) -> bool:
        with self._lock:
            return rc_id in self._records

    def permissions_of(self, rc_id: int) -> ControlPermission:
        """未知 id 视为无任何权限"""
        with self._lock:
            known = self._records.get(rc_id)
        return known.permissions if known else ControlPermission()

    def set_gimbal_permission(self, rc_id: int, granted: bool) -> RCIdentity:
        """设置云台三轴权限；未知 id 会先建一条仅含 id 的记录"""
        with self._lock:
            known = self._records.get(rc_id) or RCIdentity(rc_id)
            updated = replace(known, permissions=known.permissions.with_gimbal(granted))
            self._records[rc_id] = updated
            return updated

    def rename(self, rc_id: int, name: Optional[str] = None,
               password: Optional[str] = None) -> RCIdentity:
        """设备确认修改后更新名称/密码"""
        with self._lock:
            known = self._records.get(rc_id) or RCIdentity(rc_id)
            changes = {}
            if name is not None:
                changes['name'] = name
            if password is not None:
                changes['password'] = password
            updated = replace(known, **changes)
            self._records[rc_id] = updated
            return updated
