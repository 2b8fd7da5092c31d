"""
日记服务
管理日记集合的保存、查询、更新、删除，以及评论
集合常驻内存，每次修改后整体写回存储
"""

from datetime import datetime
from typing import List, Dict, Any, Optional, Union
from uuid import uuid4
from chatdiary.models.base import merge_updates
from chatdiary.models.chat import ChatMessage, now_ms
from chatdiary.models.diary import Comment, DiaryEntry
from chatdiary.utils.database import KeyValueStore
from chatdiary.utils.exceptions import NotFoundError, StorageError
from chatdiary.utils.logger import logger

DIARIES_KEY = "chatdairy-entries"


def new_diary_id() -> str:
    """毫秒时间戳 + 随机后缀，时间戳部分用于回顾评论时截取聊天记录"""
    return f"{now_ms()}{uuid4().hex[:9]}"


def diary_timestamp(diary: DiaryEntry) -> float:
    """从日记ID开头的数字中取出创建时间戳，取不到时返回无穷大"""
    digits = ""
    for ch in diary.id:
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits else float("inf")


class DiaryService:
    """日记服务"""

    def __init__(self, store: KeyValueStore):
        """
        初始化日记服务

        Args:
            store: 键值存储
        """
        self.store = store
        self._diaries: List[DiaryEntry] = self._load()

    def _load(self) -> List[DiaryEntry]:
        """从存储加载日记，格式不符时返回空集合"""
        raw = self.store.get_json(DIARIES_KEY)
        if not isinstance(raw, list):
            return []
        diaries = []
        for item in raw:
            try:
                diaries.append(DiaryEntry.model_validate(item))
            except ValueError as e:
                logger.error(f"跳过无法解析的日记: {e}")
        return diaries

    def _persist(self):
        try:
            self.store.set_json(DIARIES_KEY, [d.to_storage() for d in self._diaries])
        except StorageError as e:
            logger.error(f"保存日记失败: {e}")
            raise

    def list(self) -> List[DiaryEntry]:
        """全部日记"""
        return list(self._diaries)

    def get(self, diary_id: str) -> Optional[DiaryEntry]:
        """根据ID获取日记"""
        return next((d for d in self._diaries if d.id == str(diary_id)), None)

    def require(self, diary_id: str) -> DiaryEntry:
        diary = self.get(diary_id)
        if diary is None:
            raise NotFoundError(f"日记不存在: {diary_id}")
        return diary

    def get_by_date(self, date: str) -> Optional[DiaryEntry]:
        """指定日期的第一篇日记"""
        return next((d for d in self._diaries if d.date == date), None)

    def get_all_by_date(self, date: str) -> List[DiaryEntry]:
        """指定日期的全部日记（同一天可以有多篇）"""
        return [d for d in self._diaries if d.date == date]

    def add(self, diary: Union[DiaryEntry, Dict[str, Any]]) -> DiaryEntry:
        """
        新增日记

        Args:
            diary: 日记对象或字典，缺少id/createdAt时自动补齐

        Returns:
            保存后的日记
        """
        if isinstance(diary, DiaryEntry):
            diary = diary.model_dump(by_alias=True)
        data = dict(diary)
        data["id"] = data.get("id") or new_diary_id()
        data["createdAt"] = data.get("createdAt") or data.get("created_at") or datetime.now().isoformat()
        entry = DiaryEntry.model_validate(data)

        self._diaries.append(entry)
        self._persist()
        logger.info(f"日记保存成功: {entry.id} ({entry.date})")
        return entry

    def save(self, diary: DiaryEntry) -> DiaryEntry:
        """
        按ID新增或覆盖日记

        覆盖时保留原有的 id 和 createdAt，字段未变时重复保存不产生任何变化
        """
        existing = self.get(diary.id) if diary.id else None
        if existing is None:
            return self.add(diary)

        updated = diary.model_copy(update={"id": existing.id, "created_at": existing.created_at})
        if updated == existing:
            return existing

        self._replace(updated)
        self._persist()
        logger.info(f"日记已更新: {updated.id}")
        return updated

    def update(self, diary_id: str, updates: Dict[str, Any]) -> DiaryEntry:
        """
        合并更新日记字段

        Args:
            diary_id: 日记ID
            updates: 需要更新的字段，id 和 createdAt 不可修改
        """
        existing = self.require(diary_id)
        updated = merge_updates(existing, updates, exclude=("id", "created_at"))

        if updated != existing:
            self._replace(updated)
            self._persist()
            logger.info(f"日记已更新: {diary_id}")
        return updated

    def _replace(self, diary: DiaryEntry):
        self._diaries = [diary if d.id == diary.id else d for d in self._diaries]

    def delete(self, diary_id: str) -> bool:
        """删除日记，按日期保存的聊天记录不受影响"""
        before = len(self._diaries)
        self._diaries = [d for d in self._diaries if d.id != str(diary_id)]
        if len(self._diaries) == before:
            logger.warning(f"日记不存在: {diary_id}")
            return False
        self._persist()
        logger.info(f"日记删除成功: {diary_id}")
        return True

    def delete_chat_history(self, diary_id: str) -> DiaryEntry:
        """清空日记附带的聊天记录"""
        return self.update(diary_id, {"chat_history": []})

    def add_comment(self, diary_id: str, text: str, author: str = "ai") -> Comment:
        """添加评论，自动生成ID和时间"""
        diary = self.require(diary_id)
        comment = Comment(author=author, text=text)
        self.update(diary_id, {"comments": [*diary.comments, comment]})
        return comment

    def delete_comment(self, diary_id: str, comment_id: str) -> bool:
        diary = self.require(diary_id)
        remaining = [c for c in diary.comments if c.id != str(comment_id)]
        if len(remaining) == len(diary.comments):
            return False
        self.update(diary_id, {"comments": remaining})
        return True

    def replace_all(self, diaries: List[DiaryEntry]):
        """整体替换日记集合（导入备份）"""
        self._diaries = list(diaries)
        self._persist()
        logger.info(f"日记集合已替换，共 {len(diaries)} 篇")

    def attach_chat(self, messages: List[ChatMessage]) -> List[ChatMessage]:
        """保存到日记的聊天记录不带附件"""
        return [m.without_attachment() for m in messages]
