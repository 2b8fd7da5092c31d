"""
对话记录管理服务
聊天记录和手动模式草稿都按日期保存
"""

from datetime import datetime
from typing import Callable, List, Dict, Optional
from pydantic import ValidationError
from chatdiary.models.chat import Attachment, ChatMessage, now_ms
from chatdiary.models.diary import Draft
from chatdiary.utils.database import KeyValueStore
from chatdiary.utils.exceptions import NotFoundError, StorageError
from chatdiary.utils.logger import logger

CHAT_KEY_PREFIX = "chat_messages_"
DRAFT_KEY_PREFIX = "diary_draft_"
# 旧版只保存当天的聊天记录
LEGACY_CHAT_KEY = "ai_chat_history"

GREETING = "Hi there! How are you feeling today?"


def today_str() -> str:
    return datetime.now().strftime("%Y-%m-%d")


def chat_key(date: str) -> str:
    return f"{CHAT_KEY_PREFIX}{date}"


def draft_key(date: str) -> str:
    return f"{DRAFT_KEY_PREFIX}{date}"


class ConversationService:
    """对话记录管理服务"""

    def __init__(self, store: KeyValueStore, today: Callable[[], str] = today_str):
        """
        初始化对话服务

        Args:
            store: 键值存储
            today: 返回当天日期的函数
        """
        self.store = store
        self.today = today

    def _parse(self, raw) -> Optional[List[ChatMessage]]:
        if not isinstance(raw, list):
            return None
        try:
            return [ChatMessage.model_validate(m) for m in raw]
        except ValidationError as e:
            logger.error(f"解析聊天记录失败: {e}")
            return None

    def get_stored(self, date: str) -> List[ChatMessage]:
        """存储中该日期的聊天记录，没有记录时返回空列表"""
        return self._parse(self.store.get_json(chat_key(date))) or []

    def get_messages(self, date: str) -> List[ChatMessage]:
        """
        获取某天的聊天记录

        没有记录时：当天优先使用旧版记录，否则返回一条问候消息

        Args:
            date: 日期 YYYY-MM-DD

        Returns:
            消息列表
        """
        messages = self._parse(self.store.get_json(chat_key(date)))
        if messages is not None:
            return messages

        if date == self.today():
            legacy = self._parse(self.store.get_json(LEGACY_CHAT_KEY))
            if legacy:
                return legacy

        return [ChatMessage(id=1, sender="ai", text=GREETING)]

    def save_messages(self, date: str, messages: List[ChatMessage]):
        """保存某天的聊天记录，当天的记录同时写入旧版键"""
        payload = [m.model_dump(mode="json", exclude_none=True) for m in messages]
        try:
            self.store.set_json(chat_key(date), payload)
            if date == self.today():
                self.store.set_json(LEGACY_CHAT_KEY, payload)
        except StorageError as e:
            logger.error(f"保存聊天记录失败: {e}")
            raise

    def add_message(self, date: str, sender: str, text: str,
                    attachment: Optional[Attachment] = None) -> ChatMessage:
        """
        添加消息

        Args:
            date: 日期
            sender: user / ai
            text: 消息内容
            attachment: 附件

        Returns:
            新消息
        """
        messages = self.get_messages(date)
        message_id = now_ms()
        if messages and message_id <= messages[-1].id:
            message_id = messages[-1].id + 1

        message = ChatMessage(
            id=message_id,
            sender=sender,
            text=text,
            attachment=attachment,
            timestamp=datetime.now().isoformat(),
        )
        messages.append(message)
        self.save_messages(date, messages)
        logger.info(f"添加消息: date={date}, sender={sender}")
        return message

    def edit_message(self, date: str, message_id: int, text: str) -> ChatMessage:
        messages = self.get_messages(date)
        target = next((m for m in messages if m.id == message_id), None)
        if target is None:
            raise NotFoundError(f"消息不存在: {message_id}")

        edited = target.model_copy(update={"text": text})
        self.save_messages(date, [edited if m.id == message_id else m for m in messages])
        return edited

    def delete_messages(self, date: str, message_ids: List[int]) -> int:
        """删除多条消息，返回删除数量"""
        ids = set(message_ids)
        messages = self.get_messages(date)
        remaining = [m for m in messages if m.id not in ids]
        self.save_messages(date, remaining)
        return len(messages) - len(remaining)

    def drop_trailing_ai(self, date: str) -> List[ChatMessage]:
        """删除末尾连续的AI消息（重新生成前调用），返回剩余记录"""
        messages = self.get_messages(date)
        while messages and messages[-1].sender == "ai":
            messages.pop()
        self.save_messages(date, messages)
        return messages

    def clear(self, date: str) -> List[ChatMessage]:
        """清空聊天，只保留一条问候"""
        messages = [ChatMessage(id=now_ms(), sender="ai", text=GREETING)]
        self.save_messages(date, messages)
        logger.info(f"清空聊天: {date}")
        return messages

    def chat_dates(self) -> List[str]:
        """所有保存过聊天记录的日期"""
        return [k[len(CHAT_KEY_PREFIX):] for k in self.store.keys(CHAT_KEY_PREFIX)]

    # ---- 草稿 ----

    def get_draft(self, date: str) -> Optional[Draft]:
        raw = self.store.get_json(draft_key(date))
        if not isinstance(raw, dict):
            return None
        try:
            return Draft.model_validate(raw)
        except ValidationError as e:
            logger.error(f"解析草稿失败: {e}")
            return None

    def save_draft(self, date: str, draft: Draft) -> Draft:
        draft = draft.model_copy(update={"timestamp": now_ms()})
        try:
            self.store.set_json(draft_key(date), draft.model_dump(by_alias=True, mode="json"))
        except StorageError as e:
            logger.error(f"保存草稿失败: {e}")
            raise
        return draft

    def remove_draft(self, date: str):
        self.store.remove(draft_key(date))

    def draft_dates(self) -> List[str]:
        return [k[len(DRAFT_KEY_PREFIX):] for k in self.store.keys(DRAFT_KEY_PREFIX)]

    def export_all(self) -> Dict[str, list]:
        """全部聊天记录 {date: [...]}"""
        return {
            date: [m.model_dump(mode="json", exclude_none=True) for m in self.get_stored(date)]
            for date in self.chat_dates()
        }
