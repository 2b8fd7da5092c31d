"""
备份服务
把日记、人设、API配置、选中ID、用户档案、聊天记录和草稿导出为一个JSON文档
"""

from datetime import datetime
from typing import Dict, Any
from pydantic import ValidationError
from chatdiary.models.chat import ChatMessage
from chatdiary.models.diary import DiaryEntry, Draft
from chatdiary.models.persona import ApiConfig, Persona
from chatdiary.models.profile import UserProfile
from chatdiary.services.conversation_service import ConversationService
from chatdiary.services.diary_service import DiaryService
from chatdiary.services.persona_service import PersonaService
from chatdiary.services.profile_service import ProfileService
from chatdiary.utils.exceptions import BackupFormatError
from chatdiary.utils.logger import logger

BACKUP_VERSION = "1.0"


class BackupService:
    """备份导出/导入服务"""

    def __init__(self, diary_service: DiaryService, persona_service: PersonaService,
                 profile_service: ProfileService, conversation_service: ConversationService):
        self.diary_service = diary_service
        self.persona_service = persona_service
        self.profile_service = profile_service
        self.conversation_service = conversation_service

    def export_backup(self) -> Dict[str, Any]:
        """
        导出全部数据

        Returns:
            备份文档
        """
        drafts = {}
        for date in self.conversation_service.draft_dates():
            draft = self.conversation_service.get_draft(date)
            if draft:
                drafts[date] = draft.model_dump(by_alias=True, mode="json")

        return {
            "diaries": [d.to_storage() for d in self.diary_service.list()],
            "personas": [p.model_dump(by_alias=True, mode="json") for p in self.persona_service.personas],
            "apiConfigs": [c.model_dump(by_alias=True, mode="json") for c in self.persona_service.api_configs],
            "settings": {
                "currentPersonaId": self.persona_service.current_persona_id,
                "currentApiConfigId": self.persona_service.current_api_config_id,
            },
            "profile": self.profile_service.profile.to_storage(),
            "chats": self.conversation_service.export_all(),
            "drafts": drafts,
            "exportDate": datetime.now().isoformat(),
            "version": BACKUP_VERSION,
        }

    def import_backup(self, data: Any) -> Dict[str, int]:
        """
        导入备份，只覆盖文档中存在的部分

        先校验全部内容，校验通过后才写入

        Args:
            data: 备份文档

        Returns:
            各部分导入的条数

        Raises:
            BackupFormatError: 文档格式无效
        """
        if not isinstance(data, dict):
            raise BackupFormatError("Invalid backup: expected a JSON object")

        try:
            diaries = [DiaryEntry.model_validate(d) for d in data["diaries"]] if data.get("diaries") is not None else None
            personas = [Persona.model_validate(p) for p in data["personas"]] if data.get("personas") is not None else None
            configs = [ApiConfig.model_validate(c) for c in data["apiConfigs"]] if data.get("apiConfigs") is not None else None
            profile = UserProfile.from_storage(data["profile"]) if isinstance(data.get("profile"), dict) else None
            chats = {
                date: [ChatMessage.model_validate(m) for m in messages]
                for date, messages in (data.get("chats") or {}).items()
            }
            drafts = {date: Draft.model_validate(d) for date, d in (data.get("drafts") or {}).items()}
        except (TypeError, AttributeError, ValidationError) as e:
            raise BackupFormatError(f"Invalid backup: {e}") from e

        settings_data = data.get("settings") if isinstance(data.get("settings"), dict) else {}
        counts = {}

        if diaries is not None:
            self.diary_service.replace_all(diaries)
            counts["diaries"] = len(diaries)
        if personas is not None:
            self.persona_service.replace_personas(personas, settings_data.get("currentPersonaId"))
            counts["personas"] = len(personas)
        elif settings_data.get("currentPersonaId"):
            self.persona_service.replace_personas(self.persona_service.personas, settings_data["currentPersonaId"])
        if configs is not None:
            self.persona_service.replace_api_configs(configs, settings_data.get("currentApiConfigId"))
            counts["apiConfigs"] = len(configs)
        elif settings_data.get("currentApiConfigId"):
            self.persona_service.replace_api_configs(self.persona_service.api_configs, settings_data["currentApiConfigId"])
        if profile is not None:
            self.profile_service.replace(profile)
            counts["profile"] = 1
        for date, messages in chats.items():
            self.conversation_service.save_messages(date, messages)
        counts["chats"] = len(chats)
        for date, draft in drafts.items():
            self.conversation_service.save_draft(date, draft)
        counts["drafts"] = len(drafts)

        logger.info(f"备份导入完成: {counts}")
        return counts
