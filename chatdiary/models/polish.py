"""
手动模式润色结果模型
LLM用 <content>、<title>、<tags> 标签返回需要修改的字段
"""

from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field


class PolishSegment(BaseModel):
    """单个被标签包裹的修改项"""

    kind: Literal["content", "title", "tags"]
    value: Union[str, List[str]]


class PolishResult(BaseModel):
    """润色回复解析结果"""

    segments: List[PolishSegment] = Field(default_factory=list)
    # 标签之外的说明文字
    commentary: str = ""
    raw: str = ""

    def _get(self, kind: str):
        for segment in self.segments:
            if segment.kind == kind:
                return segment.value
        return None

    @property
    def content(self) -> Optional[str]:
        return self._get("content")

    @property
    def title(self) -> Optional[str]:
        return self._get("title")

    @property
    def tags(self) -> Optional[List[str]]:
        return self._get("tags")

    @property
    def has_changes(self) -> bool:
        return bool(self.segments)


class PolishRequest(BaseModel):
    """润色请求：日记日期和助手对话历史 [{role, content}]"""

    date: str
    history: List[dict] = Field(default_factory=list)
