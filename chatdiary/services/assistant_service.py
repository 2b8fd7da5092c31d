"""
AI助手编排服务
串联 上下文收集 -> 提示词构造 -> LLM调用 -> 回复解析，并把结果写回各存储
每个调用返回 Result，失败时由调用方决定是否重试（例如"重新生成"按钮）
"""

import asyncio
from typing import Awaitable, Callable, List, Dict, Any, Optional
from chatdiary.models.chat import ChatMessage
from chatdiary.models.diary import AIBriefing, Comment, DiaryEntry, Draft, GeneratedDiary
from chatdiary.models.polish import PolishResult
from chatdiary.models.result import Result
from chatdiary.services.context_service import (
    latest_briefings, previous_day, recent_briefings, recent_summaries, with_previous_day,
)
from chatdiary.services.conversation_service import ConversationService
from chatdiary.services.diary_service import DiaryService, diary_timestamp
from chatdiary.services.llm_service import LLMService
from chatdiary.services.persona_service import PersonaService
from chatdiary.services.profile_service import ProfileService
from chatdiary.services.prompt_service import (
    DEFAULT_DIARY_STYLE, compose_briefing_messages, compose_chat_messages,
    compose_comment_messages, compose_diary_messages, compose_polish_messages,
)
from chatdiary.services.response_parser import (
    fallback_briefing, parse_briefing_response, parse_diary_response, parse_polish_response,
)
from chatdiary.utils.exceptions import ChatDiaryError, NotFoundError, StorageError, error_code
from chatdiary.utils.logger import logger
from chatdiary.utils.text import MESSAGE_GAP_MS, split_response, typing_delay_ms


class AssistantService:
    """AI助手编排服务"""

    def __init__(self, diary_service: DiaryService, persona_service: PersonaService,
                 profile_service: ProfileService, conversation_service: ConversationService,
                 llm_service: LLMService,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """
        初始化编排服务

        Args:
            diary_service: 日记服务
            persona_service: 人设与API配置服务
            profile_service: 用户档案服务
            conversation_service: 对话记录服务
            llm_service: LLM服务
            sleep: 异步等待函数，用于控制多条回复的显示节奏
        """
        self.diary_service = diary_service
        self.persona_service = persona_service
        self.profile_service = profile_service
        self.conversation_service = conversation_service
        self.llm_service = llm_service
        self.sleep = sleep

    def _failure(self, action: str, error: Exception) -> Result:
        logger.error(f"{action}失败: {error}")
        return Result.failure(str(error), code=error_code(error))

    # ---- 聊天 ----

    def build_chat_messages(self, date: str, history: List[ChatMessage]) -> List[Dict[str, Any]]:
        """组装聊天请求：最近简报 + 前一天最后20条消息 + 当前历史"""
        previous_chat = self.conversation_service.get_stored(previous_day(date))
        combined = with_previous_day(history, previous_chat)
        if previous_chat:
            logger.info(f"注入前一天的 {min(len(previous_chat), 20)} 条消息")

        return compose_chat_messages(
            self.persona_service.current_persona,
            self.profile_service.profile,
            date,
            recent_briefings(self.diary_service.list(), date),
            combined,
        )

    async def generate_chat_response(self, date: str,
                                     history: Optional[List[ChatMessage]] = None) -> Result[List[str]]:
        """
        生成聊天回复并拆分为多条消息

        Args:
            date: 聊天日期
            history: 聊天历史，默认读取该日期的记录

        Returns:
            拆分后的回复列表
        """
        if history is None:
            history = self.conversation_service.get_messages(date)

        try:
            messages = self.build_chat_messages(date, history)
            text = await self.llm_service.chat(messages, self.persona_service.current_api_config)
        except ChatDiaryError as e:
            return self._failure("生成聊天回复", e)

        return Result.success(split_response(text))

    async def trigger_ai_response(self, date: str) -> Result[List[ChatMessage]]:
        """
        生成回复并逐条写入聊天记录

        每条消息前按长度等待 800~2000 毫秒，多条消息之间再间隔 300 毫秒；
        生成失败时写入一条 "Error: ..." 消息

        Returns:
            新增的AI消息
        """
        result = await self.generate_chat_response(date)
        parts = result.data if result.ok else [f"Error: {result.msg}"]

        added = []
        try:
            for index, part in enumerate(parts):
                if index > 0:
                    await self.sleep(MESSAGE_GAP_MS / 1000)
                await self.sleep(typing_delay_ms(part) / 1000)
                added.append(self.conversation_service.add_message(date, "ai", part))
        except StorageError as e:
            return self._failure("保存AI回复", e)

        return Result(code=result.code, msg=result.msg, data=added)

    async def regenerate_last_response(self, date: str) -> Result[List[ChatMessage]]:
        """重新生成：去掉末尾连续的AI消息后再次生成；最后一条不是AI消息时不做任何事"""
        messages = self.conversation_service.get_messages(date)
        if not messages or messages[-1].sender != "ai":
            return Result.success([], msg="nothing to regenerate")

        try:
            self.conversation_service.drop_trailing_ai(date)
        except StorageError as e:
            return self._failure("重新生成", e)
        return await self.trigger_ai_response(date)

    # ---- 日记生成 ----

    async def generate_diary(self, date: str, style: str = DEFAULT_DIARY_STYLE) -> Result[GeneratedDiary]:
        """
        根据当天聊天生成日记

        使用该日期保存的聊天记录，其中没有用户消息时失败；JSON解析失败时以原文作为正文

        Args:
            date: 日记日期
            style: no_ai_trace / with_ai_trace

        Returns:
            生成的日记（尚未保存）
        """
        day_messages = self.conversation_service.get_stored(date)
        if not any(m.sender == "user" for m in day_messages):
            return Result.failure("No chat history found for this date to generate a diary.")

        messages = compose_diary_messages(
            style,
            self.profile_service.profile,
            date,
            recent_summaries(self.diary_service.list(), date),
            day_messages,
            persona=self.persona_service.current_persona,
        )
        try:
            text = await self.llm_service.chat(messages, self.persona_service.current_api_config)
        except ChatDiaryError as e:
            return self._failure("生成日记", e)

        return Result.success(parse_diary_response(text))

    def save_generated_diary(self, date: str, generated: GeneratedDiary,
                             messages: Optional[List[ChatMessage]] = None) -> Result[DiaryEntry]:
        """保存生成的日记，附带聊天记录（不含图片附件），默认使用该日期的聊天"""
        if messages is None:
            messages = self.conversation_service.get_stored(date)
        chat = self.diary_service.attach_chat(messages)
        try:
            entry = self.diary_service.add({
                "date": date,
                "title": generated.title or "Daily Reflection",
                "content": generated.content,
                "mood": generated.mood,
                "tags": generated.tags,
                "summary": generated.summary,
                "category": generated.category,
                "ai_briefing": generated.ai_briefing,
                "chatHistory": chat,
            })
        except StorageError as e:
            return self._failure("保存日记", e)
        return Result.success(entry)

    async def generate_briefing(self, content: str, title: str) -> AIBriefing:
        """为手写日记提取简报，调用失败时返回本地生成的简报"""
        messages = compose_briefing_messages(title, content)
        try:
            text = await self.llm_service.chat(messages, self.persona_service.current_api_config)
        except ChatDiaryError as e:
            logger.error(f"简报生成失败: {e}")
            return fallback_briefing(content)
        return parse_briefing_response(text, content)

    async def save_manual_diary(self, date: str, draft: Draft) -> Result[DiaryEntry]:
        """
        保存手动模式日记

        先生成简报再保存，保存成功后删除该日期的草稿
        """
        if not draft.content.strip() and not draft.title.strip():
            return Result.failure("Diary is empty.")

        briefing = await self.generate_briefing(draft.content, draft.title or "Untitled")
        try:
            entry = self.diary_service.add({
                "date": date,
                "title": draft.title or "Untitled Entry",
                "content": draft.content,
                "mood": draft.mood,
                "tags": draft.tags,
                "category": draft.category,
                "ai_briefing": briefing,
                "chatHistory": [],
            })
            self.conversation_service.remove_draft(date)
        except StorageError as e:
            return self._failure("保存日记", e)
        return Result.success(entry)

    # ---- 手动润色 ----

    async def polish_diary(self, date: str, history: List[Dict[str, Any]]) -> Result[PolishResult]:
        """
        手动模式润色

        Args:
            date: 日记日期
            history: 润色助手对话 [{"role": "user"|"assistant", "content"}]

        Returns:
            解析后的修改项和说明
        """
        target = self.diary_service.get_by_date(date)
        day_chat = target.chat_history if target and target.chat_history else \
            self.conversation_service.get_stored(date)

        messages = compose_polish_messages(
            self.persona_service.current_persona,
            self.profile_service.profile,
            date,
            recent_briefings(self.diary_service.list(), date),
            day_chat,
            history,
        )
        try:
            text = await self.llm_service.chat(messages, self.persona_service.current_api_config)
        except ChatDiaryError as e:
            return self._failure("润色", e)

        return Result.success(parse_polish_response(text.strip()))

    # ---- 回顾评论 ----

    async def generate_comment(self, diary_id: str, active_date: Optional[str] = None) -> Result[Comment]:
        """
        以"来自未来的朋友"身份给旧日记写评论，并保存到日记上

        Args:
            diary_id: 日记ID
            active_date: 视为"现在"的日期，默认今天
        """
        active_date = active_date or self.conversation_service.today()
        try:
            diary = self.diary_service.require(diary_id)
        except NotFoundError as e:
            return self._failure("生成评论", e)

        # 只取写日记之前的聊天
        written_at = diary_timestamp(diary)
        past_chat = [m for m in self.conversation_service.get_stored(diary.date) if m.id < written_at]
        today_chat = [] if active_date == diary.date else self.conversation_service.get_stored(active_date)

        messages = compose_comment_messages(
            self.persona_service.current_persona,
            diary,
            latest_briefings(self.diary_service.list(), diary.id),
            past_chat,
            today_chat,
            active_date,
        )
        try:
            text = await self.llm_service.chat(messages, self.persona_service.current_api_config)
            comment = self.diary_service.add_comment(diary.id, text.strip(), author="ai")
        except ChatDiaryError as e:
            return self._failure("生成评论", e)

        return Result.success(comment)

    # ---- 模型列表 ----

    async def list_models(self, config_id: Optional[str] = None) -> Result[List[str]]:
        config = self.persona_service.get_api_config(config_id) if config_id else \
            self.persona_service.current_api_config
        if config is None:
            return Result.failure(f"API配置不存在: {config_id}", code=NotFoundError.code)

        try:
            models = await self.llm_service.list_models(config)
        except ChatDiaryError as e:
            return self._failure("获取模型列表", e)
        return Result.success(models)
