"""
文本工具
把一条回复拆成多条聊天气泡，并计算模拟打字的等待时间
"""

import re
from typing import List

# 单段超过该长度时尝试按句子拆分
LONG_SEGMENT_CHARS = 100

TYPING_MS_PER_CHAR = 30
MIN_TYPING_DELAY_MS = 800
MAX_TYPING_DELAY_MS = 2000
# 多条消息之间的固定间隔
MESSAGE_GAP_MS = 300

_SENTENCE_END = re.compile(r"(?<=[.!?。！？])\s+")


def split_response(text: str) -> List[str]:
    """
    将LLM回复拆分为多条消息

    Args:
        text: LLM原始回复

    Returns:
        消息列表，至少包含一条
    """
    segments = [line for line in text.split("\n") if line.strip()]

    if len(segments) == 1 and len(segments[0]) > LONG_SEGMENT_CHARS:
        sentences = [s for s in _SENTENCE_END.split(segments[0]) if s.strip()]
        if len(sentences) > 1:
            segments = sentences

    return segments if segments else [text]


def typing_delay_ms(text: str) -> int:
    """按消息长度计算打字延迟，限制在 [800, 2000] 毫秒"""
    return min(MAX_TYPING_DELAY_MS, max(MIN_TYPING_DELAY_MS, len(text) * TYPING_MS_PER_CHAR))


def strip_code_fence(text: str) -> str:
    """去掉 ```json ... ``` 包裹，返回内部文本"""
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text, re.IGNORECASE)
    if match and match.group(1):
        return match.group(1)
    return text
