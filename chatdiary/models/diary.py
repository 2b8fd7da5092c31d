"""
日记数据模型
定义日记、评论、AI简报等数据结构
序列化时使用 camelCase 字段名（chatHistory、createdAt），与备份文件格式一致
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from .chat import ChatMessage


class Mood(str, Enum):
    """心情枚举"""

    HAPPY = "happy"
    EXCITED = "excited"
    NEUTRAL = "neutral"
    SAD = "sad"
    LOVED = "loved"
    CALM = "calm"
    ANXIOUS = "anxious"
    ANGRY = "angry"


def normalize_mood(value: Any) -> Mood:
    """将任意心情值规范化，未知值返回neutral"""
    if isinstance(value, Mood):
        return value
    try:
        return Mood(str(value or "").strip().lower())
    except ValueError:
        return Mood.NEUTRAL


def normalize_tags(value: Any) -> List[str]:
    """标签去重去空，保持原顺序"""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    tags = []
    for tag in value:
        tag = str(tag).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class AIBriefing(BaseModel):
    """AI简报，供之后的对话理解当天的背景"""

    events: str = ""
    atmosphere_or_emotion: str = ""
    unfinished_topics: Optional[str] = None

    @field_validator("events", "atmosphere_or_emotion", mode="before")
    @classmethod
    def _to_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("unfinished_topics", mode="before")
    @classmethod
    def _topics(cls, v):
        if isinstance(v, list):
            return ", ".join(str(i) for i in v) or None
        return v or None


class Comment(BaseModel):
    """日记评论"""

    id: str = Field(default_factory=lambda: str(int(datetime.now().timestamp() * 1000)))
    author: str = "ai"
    text: str
    date: str = Field(default_factory=lambda: datetime.now().isoformat())

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return str(v)


class DiaryEntry(BaseModel):
    """日记模型"""

    id: str
    date: str
    title: str = ""
    content: str = ""
    mood: Mood = Mood.NEUTRAL
    tags: List[str] = Field(default_factory=list)
    category: str = ""
    summary: str = ""
    comments: List[Comment] = Field(default_factory=list)
    chat_history: List[ChatMessage] = Field(default_factory=list, alias="chatHistory")
    ai_briefing: Optional[AIBriefing] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    class Config:
        populate_by_name = True

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return str(v)

    @field_validator("mood", mode="before")
    @classmethod
    def _mood(cls, v):
        return normalize_mood(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v):
        return normalize_tags(v)

    @field_validator("title", "content", "category", "summary", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("comments", "chat_history", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return [] if v is None else v

    def to_storage(self) -> Dict[str, Any]:
        """转换为存储格式"""
        return self.model_dump(by_alias=True, mode="json")


class DiaryUpdate(BaseModel):
    """更新日记请求模型"""

    title: Optional[str] = None
    content: Optional[str] = None
    mood: Optional[Mood] = None
    tags: Optional[List[str]] = None
    category: Optional[str] = None
    summary: Optional[str] = None
    ai_briefing: Optional[AIBriefing] = None

    @field_validator("mood", mode="before")
    @classmethod
    def _mood(cls, v):
        return None if v is None else normalize_mood(v)


class GeneratedDiary(BaseModel):
    """LLM生成的日记（JSON输出契约）"""

    title: str = "Generated Entry"
    content: str = ""
    mood: Mood = Mood.NEUTRAL
    tags: List[str] = Field(default_factory=list)
    category: str = ""
    summary: str = ""
    ai_briefing: Optional[AIBriefing] = None

    @field_validator("mood", mode="before")
    @classmethod
    def _mood(cls, v):
        return normalize_mood(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v):
        return normalize_tags(v)

    @field_validator("title", "content", "category", "summary", mode="before")
    @classmethod
    def _to_text(cls, v):
        return "" if v is None else str(v)


class Draft(BaseModel):
    """手动模式草稿，按日期保存"""

    content: str = ""
    title: str = ""
    mood: Mood = Mood.NEUTRAL
    tags: List[str] = Field(default_factory=list)
    category: str = ""
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    is_assistant_open: bool = Field(default=False, alias="isAssistantOpen")
    timestamp: Optional[int] = None

    class Config:
        populate_by_name = True

    @field_validator("mood", mode="before")
    @classmethod
    def _mood(cls, v):
        return normalize_mood(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v):
        return normalize_tags(v)


class GenerateDiaryRequest(BaseModel):
    """根据聊天生成日记请求模型"""

    date: str
    style: str = "no_ai_trace"


class SaveGeneratedRequest(BaseModel):
    """保存生成日记请求模型"""

    date: str
    diary: GeneratedDiary


class ManualSaveRequest(BaseModel):
    """保存手动模式日记请求模型"""

    date: str
    draft: Draft


class CommentCreate(BaseModel):
    """添加评论请求模型"""

    text: str
    author: str = "user"


class AICommentRequest(BaseModel):
    """AI回顾评论请求模型，active_date 为空时表示今天"""

    active_date: Optional[str] = Field(default=None, alias="activeDate")

    class Config:
        populate_by_name = True
