"""
上下文收集
从日记集合和前一天的聊天记录中整理出提供给LLM的背景信息
缺少数据时返回空字符串或空列表
"""

from datetime import date, datetime, timedelta
from typing import List, Iterable
from chatdiary.models.chat import ChatMessage
from chatdiary.models.diary import DiaryEntry

RECENT_BRIEFING_LIMIT = 7
RECENT_SUMMARY_LIMIT = 3
PREVIOUS_DAY_MESSAGE_LIMIT = 20


def parse_date(value: str) -> date:
    """解析 YYYY-MM-DD"""
    return datetime.strptime(value, "%Y-%m-%d").date()


def previous_day(date_str: str) -> str:
    """前一个自然日"""
    return (parse_date(date_str) - timedelta(days=1)).strftime("%Y-%m-%d")


def day_offset(diary_date: str, now_date: str) -> int:
    """now_date 距 diary_date 的天数"""
    return (parse_date(now_date) - parse_date(diary_date)).days


def diaries_before(diaries: Iterable[DiaryEntry], target_date: str, limit: int) -> List[DiaryEntry]:
    """
    目标日期之前的日记，按日期倒序

    Args:
        diaries: 日记集合
        target_date: 目标日期（不含）
        limit: 最多条数

    Returns:
        日记列表
    """
    target = parse_date(target_date)
    earlier = []
    for diary in diaries:
        try:
            if parse_date(diary.date) < target:
                earlier.append(diary)
        except ValueError:
            continue
    earlier.sort(key=lambda d: d.date, reverse=True)
    return earlier[:limit]


def format_briefing(diary: DiaryEntry) -> str:
    """单篇日记的记忆简报，没有简报时用摘要或正文开头代替"""
    briefing = diary.ai_briefing
    if briefing:
        lines = [
            f"### [{diary.date}] Briefing",
            f"- Events: {briefing.events}",
            f"- Atmosphere/Emotion: {briefing.atmosphere_or_emotion}",
        ]
        if briefing.unfinished_topics:
            lines.append(f"- Unfinished Topics: {briefing.unfinished_topics}")
        return "\n".join(lines)
    return f"- [{diary.date}] {diary.title}: {diary.summary or diary.content[:50]}..."


def format_briefings(diaries: Iterable[DiaryEntry]) -> str:
    return "\n\n".join(format_briefing(d) for d in diaries)


def recent_briefings(diaries: Iterable[DiaryEntry], target_date: str,
                     limit: int = RECENT_BRIEFING_LIMIT) -> str:
    """目标日期之前最多7篇日记的简报，最新的在前"""
    return format_briefings(diaries_before(diaries, target_date, limit))


def recent_summaries(diaries: Iterable[DiaryEntry], target_date: str,
                     limit: int = RECENT_SUMMARY_LIMIT) -> str:
    """生成日记时使用的简短摘要列表"""
    return "\n\n".join(
        f"- Date: {d.date}\n- Summary: {d.summary or d.content[:100] + '...'}"
        for d in diaries_before(diaries, target_date, limit)
    )


def latest_briefings(diaries: Iterable[DiaryEntry], exclude_id: str,
                     limit: int = RECENT_BRIEFING_LIMIT) -> str:
    """回顾评论使用：除当前日记外全部日记中最新的几篇"""
    others = sorted((d for d in diaries if d.id != exclude_id), key=lambda d: d.date, reverse=True)
    return format_briefings(others[:limit])


def with_previous_day(history: List[ChatMessage], previous_chat: List[ChatMessage],
                      limit: int = PREVIOUS_DAY_MESSAGE_LIMIT) -> List[ChatMessage]:
    """把前一天最后20条消息接在当前历史之前，保持跨天的连续性"""
    if not previous_chat:
        return list(history)
    return list(previous_chat[-limit:]) + list(history)


def transcript(messages: Iterable[ChatMessage], user_label: str = "User", ai_label: str = "AI") -> str:
    """聊天记录转文本"""
    return "\n".join(
        f"{user_label if m.sender == 'user' else ai_label}: {m.text}" for m in messages
    )
