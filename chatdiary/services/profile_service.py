"""
用户档案服务
"""

from typing import Dict, Any
from pydantic import ValidationError
from chatdiary.models.base import merge_updates
from chatdiary.models.profile import UserProfile
from chatdiary.utils.database import KeyValueStore
from chatdiary.utils.exceptions import StorageError
from chatdiary.utils.logger import logger

PROFILE_KEY = "user_profile"


class ProfileService:
    """用户档案服务"""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.profile = self._load()

    def _load(self) -> UserProfile:
        """加载档案并迁移旧字段，失败时返回空档案"""
        raw = self.store.get_json(PROFILE_KEY)
        if not isinstance(raw, dict):
            return UserProfile()
        try:
            return UserProfile.from_storage(raw)
        except ValidationError as e:
            logger.error(f"解析用户档案失败: {e}")
            return UserProfile()

    def _persist(self):
        try:
            self.store.set_json(PROFILE_KEY, self.profile.to_storage())
        except StorageError as e:
            logger.error(f"保存用户档案失败: {e}")
            raise

    def update(self, updates: Dict[str, Any]) -> UserProfile:
        """合并更新档案字段"""
        self.profile = merge_updates(self.profile, updates)
        self._persist()
        logger.info(f"用户档案已更新: {', '.join(updates.keys())}")
        return self.profile

    def replace(self, profile: UserProfile):
        """整体替换档案（导入备份）"""
        self.profile = profile
        self._persist()
