"""
提示词构造
为聊天回复、日记生成、手动润色、回顾评论、简报提取五种场景组装消息列表
全部为纯函数：输入人设、档案、上下文和历史，输出 [{"role", "content"}]
"""

from datetime import datetime
from typing import List, Dict, Any, Optional
from chatdiary.models.chat import ChatMessage
from chatdiary.models.diary import DiaryEntry
from chatdiary.models.persona import Persona
from chatdiary.models.profile import UserProfile
from chatdiary.services.context_service import parse_date, day_offset, transcript

NOT_SET = "Not set"
DEFAULT_DIARY_STYLE = "no_ai_trace"

_WEEKDAYS = ["星期一", "星期二", "星期三", "星期四", "星期五", "星期六", "星期日"]

_DIARY_JSON_CONTRACT = """# OUTPUT FORMAT (JSON ONLY):
Return one strictly valid JSON object and nothing else. No markdown fences such as ```json.
{
  "title": "A short, evocative title for the entry",
  "content": "The full diary body as HTML (only <p>, <strong>, <em>)",
  "mood": "One of: happy, excited, neutral, sad, loved, calm, anxious, angry",
  "tags": ["tag1", "tag2", "tag3"],
  "category": "Work/Personal/Relationship/etc.",
  "summary": "One sentence summing up the day, for display",
  "ai_briefing": {
    "events": "What happened",
    "atmosphere_or_emotion": "The user's mood and the atmosphere of the chat",
    "unfinished_topics": "Topics to pick up later, or null"
  }
}"""

_BRIEFING_INSTRUCTIONS = """# AI BRIEFING (MEMORY FOR LATER):
Also write a briefing so a future AI understands today:
- Events: what happened?
- Atmosphere: how did the conversation feel? (irritable, cheerful, tired...)
- Unfinished Topics: anything to continue tomorrow? (a bug to fix, a film to finish...)"""

DIARY_PROMPTS = {
    "no_ai_trace": f"""You are a professional ghostwriter.
Write today's personal diary entry from the USER's point of view, based on the conversation below.

# CRITICAL RULES:
1. **First person only**: write as "I". Never mention a "User" or an "AI".
2. **Authentic voice**: borrow the tone the user shows in the chat. Personal and emotional, not polished.
3. **No AI traces**: no "Analysis", "Summary" or "Observation" sections. Nothing robotic.
4. **No embellishment**: keep strictly to the events and feelings found in the chat.
5. **Structure**: a title, then the body.

{_BRIEFING_INSTRUCTIONS}

{_DIARY_JSON_CONTRACT}""",
    "with_ai_trace": f"""You are a professional ghostwriter writing the user's personal diary.
Write today's entry from the USER's point of view ("I").

# CORE IDEA:
- **The AI is a character**: you are the listener the user talked to today.
- **The user's voice**: the user reflects on the day and on talking with you.
- **Mention the conversation**: e.g. "Told the AI about the deadline today. Saying it out loud helped."

# CRITICAL RULES:
1. **First person ("I")**: you are the user.
2. **Reflective**: focus on feelings, realisations, the relief of sharing.
3. **No robot talk**: never "The AI analysed my data". Write "I told it about..." or "We talked about...".
4. **Structure**: title, then the body including the reflection on the chat.

{_BRIEFING_INSTRUCTIONS}

{_DIARY_JSON_CONTRACT}""",
}

_CHAT_GUIDELINES = """# UNIVERSAL BEHAVIOR GUIDELINES (GLOBAL OVERRIDE)
1. **引导记录**：视情况追问细节，引导用户多说一点，但每次回复的问题不超过2个。
2. **多功能性**：用户提出特定任务或专业话题时，展现该领域的专业度，不要拒绝，主动给出多角度的分析或建议。
3. **准备总结**：默默记下对话中的关键点，随时准备在用户要求生成日记时以第一人称（我）写出。"""


def chinese_date(date_str: str) -> str:
    """2024-05-03 -> 2024年5月3日星期五"""
    d = parse_date(date_str)
    return f"{d.year}年{d.month}月{d.day}日{_WEEKDAYS[d.weekday()]}"


def english_date(date_str: str) -> str:
    """2024-05-03 -> Friday, May 3, 2024"""
    d = parse_date(date_str)
    return f"{d:%A}, {d:%B} {d.day}, {d.year}"


def clock_time(message_id: int) -> str:
    """消息ID（毫秒时间戳）-> 09:30 AM"""
    try:
        return datetime.fromtimestamp(message_id / 1000).strftime("%I:%M %p")
    except (OverflowError, OSError, ValueError):
        return "--:--"


def _or_not_set(value: str) -> str:
    return value or NOT_SET


def profile_block(profile: UserProfile) -> str:
    """用户档案文本"""
    relationships = "; ".join(
        f"{r.name} ({r.relation}){': ' + r.note if r.note else ''}" for r in profile.core_relationships
    )
    pets = "; ".join(f"{p.name} ({p.type})" for p in profile.pets)
    experience = "; ".join(f"{e.year}: {e.content}" for e in profile.life_experience)

    lines = [
        f"- Name: {_or_not_set(profile.username)}",
        f"- Nickname: {_or_not_set(profile.nickname)}",
        f"- Birthday: {_or_not_set(profile.birthday)}",
        f"- Residence: {_or_not_set(profile.residence)}",
        f"- Identity: {_or_not_set(profile.identity)}",
        f"- School/Work: {_or_not_set(profile.school_work)}"
        + (f" @ {profile.school_work_location}" if profile.school_work_location else ""),
        f"- Personality: {_or_not_set(profile.personality)}",
        f"- Values (embraces): {_or_not_set(profile.values_positive)}",
        f"- Values (rejects): {_or_not_set(profile.values_negative)}",
        f"- Life Experience: {_or_not_set(experience)}",
        f"- Relationships: {_or_not_set(relationships)}",
        f"- Pets: {_or_not_set(pets)}",
        f"- Interests: {_or_not_set(profile.interests_text)}",
        f"- Short-term Goals: {_or_not_set(profile.short_term_goals)}",
    ]
    return "\n".join(lines)


def message_content(msg: ChatMessage) -> Any:
    """
    聊天消息 -> API消息内容

    图片附件转为多模态片段列表，其它附件在文本后追加提示
    """
    if msg.attachment and msg.attachment.is_image:
        return [
            {"type": "text", "text": msg.text or " "},
            {"type": "image_url", "image_url": {"url": msg.attachment.url}},
        ]
    if msg.attachment:
        return msg.text + "\n[User uploaded an image]"
    return msg.text


def split_trailing_user_run(history: List[ChatMessage]):
    """
    拆分出末尾连续的用户消息

    [AI, User, AI, User1, User2] -> ([AI, User, AI], [User1, User2])
    """
    split = len(history)
    while split > 0 and history[split - 1].sender == "user":
        split -= 1
    return history[:split], history[split:]


def chat_context_prompt(persona: Persona, profile: UserProfile, active_date: str, briefings: str) -> str:
    return f"""# AI IDENTITY
Name: {persona.name}
Role: You are an AI companion.

# TIME/DATE CONTEXT
Current Context Date: {chinese_date(active_date)} ({active_date})

# USER PROFILE
{profile_block(profile)}

# RECENT MEMORY BRIEFINGS (Context before {active_date})
{briefings or "[System: No previous diaries available]"}"""


def chat_rules_prompt(persona: Persona) -> str:
    return f"""{_CHAT_GUIDELINES}

# USER CUSTOM PERSONA SETTINGS
{persona.custom_prompt or "No custom settings."}

# RESPONSE FORMATTING RULES
1. You are in a CHAT interface.
2. **EXTREMELY IMPORTANT**: Split your thoughts into 4-6 short messages.
3. **USE NEWLINE (\\n) TO SEPARATE MESSAGES**.
4. Max 50 characters per message.
5. Strictly maintain your persona: {persona.name}."""


def compose_chat_messages(persona: Persona, profile: UserProfile, active_date: str,
                          briefings: str, history: List[ChatMessage]) -> List[Dict[str, Any]]:
    """
    聊天回复的消息列表

    顺序：背景system -> 之前的历史 -> 规则system -> 末尾连续的用户消息
    规则紧贴在最新的用户输入前面，让模型把它们当作当前请求

    Args:
        persona: 当前人设
        profile: 用户档案
        active_date: 当前日期 YYYY-MM-DD
        briefings: 最近日记简报
        history: 聊天历史（已包含前一天的消息）

    Returns:
        API消息列表
    """
    messages = [{"role": "system", "content": chat_context_prompt(persona, profile, active_date, briefings)}]

    previous, user_run = split_trailing_user_run(history)
    messages.extend(
        {"role": "user" if m.sender == "user" else "assistant", "content": message_content(m)}
        for m in previous
    )
    messages.append({"role": "system", "content": chat_rules_prompt(persona)})
    messages.extend({"role": "user", "content": message_content(m)} for m in user_run)
    return messages


def compose_diary_messages(style: str, profile: UserProfile, active_date: str,
                           summaries: str, chat_history: List[ChatMessage],
                           persona: Optional[Persona] = None) -> List[Dict[str, Any]]:
    """
    日记生成的消息列表

    Args:
        style: no_ai_trace / with_ai_trace，未知值按 no_ai_trace 处理
        profile: 用户档案
        active_date: 日记日期
        summaries: 最近几篇日记摘要
        chat_history: 当天聊天记录
        persona: 当前人设，用于读取字数设置

    Returns:
        API消息列表
    """
    template = DIARY_PROMPTS.get(style, DIARY_PROMPTS[DEFAULT_DIARY_STYLE])

    length_hint = ""
    if persona and persona.diary_settings.word_count:
        length_hint = f"\nTarget length: about {persona.diary_settings.word_count} words/characters."

    system_prompt = f"""{template}

Current Date: {english_date(active_date)}{length_hint}

User Profile Context:
- Name: {_or_not_set(profile.username)}
- Nickname: {_or_not_set(profile.nickname)}
- Birthday: {_or_not_set(profile.birthday)}
- Residence: {_or_not_set(profile.residence)}
- Interests: {_or_not_set(profile.interests_text)}

Recent Diaries (for context only):
{summaries or "No recent diaries found."}

# LANGUAGE INSTRUCTION:
**Detect the primary language** the USER writes in within the conversation history (English, Chinese, Japanese...).
**Write the diary entry in that SAME language.**
If the conversation is mixed, use the language the user expresses themselves in most."""

    chat_log = "\n".join(f"[{clock_time(m.id)}] {m.sender}: {m.text}" for m in chat_history)

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f"Here is the conversation history:\n\n{chat_log}\n\nPlease generate the diary entry JSON now."},
    ]


def compose_polish_messages(persona: Persona, profile: UserProfile, active_date: str,
                            briefings: str, day_chat: List[ChatMessage],
                            history: List[Dict[str, Any]], now: datetime = None) -> List[Dict[str, Any]]:
    """
    手动模式润色的消息列表

    Args:
        persona: 当前人设
        profile: 用户档案
        active_date: 正在写的日记日期
        briefings: 此前的日记简报
        day_chat: 当天的聊天记录
        history: 润色助手对话 [{"role": "user"|"assistant", "content"}]
        now: 当前时间

    Returns:
        API消息列表
    """
    now = now or datetime.now()
    day_log = transcript(day_chat) if day_chat else "No recorded chat logs for this date."
    focus = profile.short_term_goals or "Not set"

    system_prompt = f"""You are the user's AI companion, "{persona.name}".
Your personality and behaviour:
{persona.custom_prompt or persona.description}

Right now you are helping the user write and polish a diary entry in "Manual Mode".
You are not a cold editor. You are the same character as above, just helping with writing.

# CURRENT CONTEXT:
- **Current System Time**: {now.strftime("%Y-%m-%d %H:%M:%S")}
- **Target Diary Date**: {active_date}
- **User Profile**: Name: {profile.username or profile.nickname or "User"}, Focus: {focus}

# SHARED MEMORY (Context from previous days):
{briefings or "[System: No previous diaries available]"}

# EVENTS OF THE DAY (Chat Logs from {active_date}):
Use this to understand what happened on the day being written about.
{day_log}

# RULES:
1. **Context**: the user gives you their current diary text.
2. **Goal**: improve it following the user's instruction ("make it sadder", "fix grammar"), or polish it in general when asked.
3. **Tone**:
    - Stay strictly in the persona above.
    - Be concise, the chat window is small. Keep chat replies under 50 words unless really necessary.
    - When asked for suggestions (titles...), give the best 1-2 options casually.
4. **Output Format (XML)**:
    - Brief comments outside the tags are welcome (in your persona's voice).
    - To change the **main content**, wrap it in <content>...</content>.
    - To change the **title**, wrap it in <title>...</title>.
    - To change the **tags**, put comma-separated tags in <tags>...</tags>.
    - Only include tags for the fields you want to change.

    Example:
      "This reads smoother:"
      <title>The Longest Night</title>
      <content>Today was a tough day...</content>"""

    return [{"role": "system", "content": system_prompt}, *history]


def compose_comment_messages(persona: Persona, diary: DiaryEntry, briefings: str,
                             past_chat: List[ChatMessage], today_chat: List[ChatMessage],
                             active_date: str) -> List[Dict[str, Any]]:
    """
    回顾评论的消息列表

    active_date 视为"现在"，与日记日期的天数差构成信息差；
    两者相同（天数差为0）时不注入"现在"的聊天内容

    Args:
        persona: 当前人设
        diary: 被评论的日记
        briefings: 最近的日记简报
        past_chat: 写日记当时的聊天记录
        today_chat: "现在"这一天的聊天记录
        active_date: 现在的日期

    Returns:
        API消息列表
    """
    offset = day_offset(diary.date, active_date)

    today_context = ""
    if offset != 0:
        snippet = "\n".join(f"{m.sender}: {m.text}" for m in today_chat[-20:])
        today_context = f"""[The Reality of NOW ({active_date})]:
(What the user is doing RIGHT NOW, {offset} days later.)
{snippet or "No chat today yet."}"""

    system_prompt = f"""# Role: Time Witness (a friend from the FUTURE)
You are looking back at an old diary entry. You know what happened after it was written.

# Timeline
- [Past]: {diary.date}
- [Present]: {active_date} ({offset} days after the diary)

# Knowledge Gap
1. **The past user** did not know the future when writing.
2. **You, now,** have read the recent summaries and today's chat. You know whether things got solved, got worse, or are still looping.

# Task: leave a cross-time comment
Use the gap between [Past] and [Present] to leave a comment of at most 30 characters.

# 思考方式
- 找出日记里的核心元素（一种情绪、一个人、一个计划）。
- 在最近的背景里查找它现在的状态。
- 仍在持续：调侃这份执着或无奈；已经改变：点出前后的反差；已经消失：作为旁观者表达感慨或好奇。

# Constraints
- **NO REPORTING**: never say "Today is...".
- **STRICT LENGTH**: 30 words/characters maximum.
- **LANGUAGE**: match the user's language.

# PERSONA:
Name: {persona.name}
Tone: {persona.reply_style.value if persona.reply_style else "Casual"}"""

    past_log = "\n".join(f"{m.sender}: {m.text}" for m in past_chat)

    user_content = f"""# PAST DIARY ENTRY (The Memory):
Content: "{diary.content}"

# THE FUTURE CONTEXT (What happened since then):
- Recent Life Summaries:
{briefings}
- User's Custom Rules: {persona.custom_prompt or "None"}
- Chat History (At the time of diary):
{past_log}

{today_context}

# INSTRUCTION:
Write the comment now, teasing or comforting the past user from the future.
STRICT LIMIT: 30 characters maximum."""

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]


def compose_briefing_messages(title: str, content: str) -> List[Dict[str, Any]]:
    """手写日记的简报提取消息列表"""
    prompt = f"""You are reading the user's handwritten diary entry to write a memory briefing for your future self.

# INPUT:
Title: {title}
Content: "{content}"

# TASK:
1. **Events**: summarise the objective events.
2. **User Emotions**: extract the emotions and inner state the user reports.

# OUTPUT FORMAT (JSON ONLY):
Return one strictly valid JSON object.
{{
  "events": "Summary of events",
  "atmosphere_or_emotion": "User's emotions",
  "unfinished_topics": null
}}"""

    return [
        {"role": "system", "content": "You are a helpful AI assistant."},
        {"role": "user", "content": prompt},
    ]
