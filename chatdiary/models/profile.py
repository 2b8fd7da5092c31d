"""
用户档案数据模型
包含自由文本字段和结构化列表（人生经历、重要关系、宠物、兴趣）
"""

from typing import List, Dict, Any
from pydantic import BaseModel, Field


class LifeEvent(BaseModel):
    """人生经历条目"""
    year: str = ""
    content: str = ""


class Relationship(BaseModel):
    """重要关系"""
    name: str = ""
    relation: str = ""
    note: str = ""


class Pet(BaseModel):
    """宠物"""
    name: str = ""
    type: str = ""
    note: str = ""


class UserProfile(BaseModel):
    """用户档案"""

    # 基本信息
    username: str = ""
    nickname: str = ""
    birthday: str = ""
    identity: str = ""
    school_work: str = Field(default="", alias="schoolWork")
    school_work_location: str = Field(default="", alias="schoolWorkLocation")
    residence: str = ""

    # 深度信息
    personality: str = ""
    values_positive: str = Field(default="", alias="valuesPositive")
    values_negative: str = Field(default="", alias="valuesNegative")
    life_experience: List[LifeEvent] = Field(default_factory=list, alias="lifeExperience")
    short_term_goals: str = Field(default="", alias="shortTermGoals")

    # 关系与兴趣
    core_relationships: List[Relationship] = Field(default_factory=list, alias="coreRelationships")
    interests: List[str] = Field(default_factory=list)
    pets: List[Pet] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @classmethod
    def from_storage(cls, data: Dict[str, Any]) -> "UserProfile":
        """
        从存储数据加载档案，并迁移旧版字段

        Args:
            data: 存储中的原始字典

        Returns:
            用户档案
        """
        migrated = dict(data)

        # 旧字段映射到新字段
        if not migrated.get("residence") and data.get("location"):
            migrated["residence"] = data["location"]
        if not migrated.get("schoolWork") and data.get("workplace"):
            migrated["schoolWork"] = data["workplace"]
        if not migrated.get("identity") and data.get("occupation"):
            migrated["identity"] = data["occupation"]

        experience = migrated.get("lifeExperience")
        if isinstance(experience, str) and experience:
            migrated["lifeExperience"] = [{"year": "Past", "content": experience}]
        elif not isinstance(experience, list):
            migrated["lifeExperience"] = []

        relationships = migrated.get("coreRelationships")
        if isinstance(relationships, str):
            parts = []
            if data.get("family"):
                parts.append({"name": "Family", "relation": "Family", "note": data["family"]})
            if data.get("relationships"):
                parts.append({"name": "Relationships", "relation": "Friends", "note": data["relationships"]})
            if relationships and not data.get("family") and not data.get("relationships"):
                parts.append({"name": "Others", "relation": "General", "note": relationships})
            migrated["coreRelationships"] = parts
        elif not isinstance(relationships, list):
            migrated["coreRelationships"] = []

        interests = migrated.get("interests")
        if isinstance(interests, str):
            migrated["interests"] = [i.strip() for i in interests.split(",") if i.strip()]
        elif not isinstance(interests, list):
            migrated["interests"] = []

        pets = migrated.get("pets")
        if isinstance(pets, str) and pets:
            migrated["pets"] = [{"name": "Pet", "type": "Pet", "note": pets}]
        elif not isinstance(pets, list):
            migrated["pets"] = []

        # 其余字段的None值按空字符串处理
        for key, value in list(migrated.items()):
            if value is None:
                migrated[key] = ""

        return cls.model_validate(migrated)

    def to_storage(self) -> Dict[str, Any]:
        """转换为存储格式"""
        return self.model_dump(by_alias=True, mode="json")

    @property
    def interests_text(self) -> str:
        return ", ".join(self.interests)
