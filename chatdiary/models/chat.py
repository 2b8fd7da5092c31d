"""
聊天消息数据模型
聊天记录按日期保存，每条消息的ID为毫秒时间戳
"""

import time
from typing import Optional, Literal
from pydantic import BaseModel, Field


def now_ms() -> int:
    """当前毫秒时间戳"""
    return int(time.time() * 1000)


class Attachment(BaseModel):
    """消息附件，图片附件的url为data URL"""

    type: str = "image"
    url: str = ""
    name: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.type == "image"


class ChatMessage(BaseModel):
    """聊天消息模型"""

    id: int = Field(default_factory=now_ms)
    sender: Literal["user", "ai"]
    text: str = ""
    attachment: Optional[Attachment] = None
    timestamp: Optional[str] = None

    def without_attachment(self) -> "ChatMessage":
        """返回去掉附件的副本，保存到日记时使用以节省空间"""
        return self.model_copy(update={"attachment": None})


class ChatMessageCreate(BaseModel):
    """发送消息请求模型"""
    text: str = ""
    attachment: Optional[Attachment] = None


class ChatMessageUpdate(BaseModel):
    """编辑消息请求模型"""
    text: str
