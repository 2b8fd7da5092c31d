"""
LLM回复解析
日记JSON、简报JSON和润色标签三种输出契约的解析器
"""

import json
import re
from typing import Any, Dict, Optional
from pydantic import ValidationError
from chatdiary.models.diary import AIBriefing, GeneratedDiary, Mood
from chatdiary.models.polish import PolishResult, PolishSegment
from chatdiary.utils.logger import logger
from chatdiary.utils.text import strip_code_fence

# <polished> 是旧版的内容标签，与 <content> 同义
_CONTENT_TAGS = ("content", "polished")
_ALL_TAGS = ("content", "polished", "title", "tags")


def _tag_pattern(name: str) -> "re.Pattern":
    return re.compile(rf"<{name}>([\s\S]*?)</{name}>")


def _tag_value(text: str, name: str) -> Optional[str]:
    match = _tag_pattern(name).search(text)
    if not match:
        return None
    return match.group(1).strip() or None


def fallback_diary(text: str) -> GeneratedDiary:
    """JSON解析失败时把原文当作正文"""
    content = re.sub(r"</?(html|body)>", "", text, flags=re.IGNORECASE).strip()
    return GeneratedDiary(
        title="Generated Diary",
        content=content,
        mood=Mood.NEUTRAL,
        tags=["generated"],
        summary="Auto-generated diary entry.",
    )


def parse_diary_response(text: str) -> GeneratedDiary:
    """
    解析日记生成结果

    Args:
        text: LLM回复

    Returns:
        生成的日记，解析失败时返回以原文为正文的默认日记
    """
    body = strip_code_fence(text)
    try:
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("diary JSON is not an object")
        if not isinstance(data.get("ai_briefing"), (dict, type(None))):
            data["ai_briefing"] = None
        return GeneratedDiary.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.error(f"日记JSON解析失败，按纯文本处理: {e}")
        return fallback_diary(body)


def fallback_briefing(content: str) -> AIBriefing:
    return AIBriefing(
        events=content[:100] + "...",
        atmosphere_or_emotion="Unknown",
        unfinished_topics=None,
    )


def parse_briefing_response(text: str, content: str) -> AIBriefing:
    """
    解析简报提取结果

    Args:
        text: LLM回复
        content: 日记正文，解析失败时用于生成默认简报
    """
    body = text.replace("```json", "").replace("```", "").strip()
    try:
        data: Dict[str, Any] = json.loads(body)
        return AIBriefing.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.error(f"简报JSON解析失败: {e}")
        return fallback_briefing(content)


def parse_polish_response(text: str) -> PolishResult:
    """
    解析润色回复中的 <content>/<polished>、<title>、<tags>

    Args:
        text: LLM回复

    Returns:
        修改项列表和标签之外的说明文字
    """
    segments = []

    content = None
    for name in _CONTENT_TAGS:
        content = _tag_value(text, name)
        if content:
            break
    if content:
        segments.append(PolishSegment(kind="content", value=content))

    title = _tag_value(text, "title")
    if title:
        segments.append(PolishSegment(kind="title", value=title))

    tags_text = _tag_value(text, "tags")
    if tags_text:
        tags = [t.strip() for t in tags_text.split(",") if t.strip()]
        if tags:
            segments.append(PolishSegment(kind="tags", value=tags))

    commentary = text
    for name in _ALL_TAGS:
        commentary = _tag_pattern(name).sub("", commentary)

    return PolishResult(segments=segments, commentary=commentary.strip(), raw=text)
