"""
统一结果模型
编排层的每个调用返回一个Result，由调用方决定是否重试
"""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """调用结果，code为0表示成功"""

    code: int = 0
    msg: str = "success"
    data: Optional[T] = None

    @property
    def ok(self) -> bool:
        return self.code == 0

    @classmethod
    def success(cls, data: T = None, msg: str = "success") -> "Result[T]":
        return cls(code=0, msg=msg, data=data)

    @classmethod
    def failure(cls, msg: str, code: int = 1) -> "Result[T]":
        return cls(code=code, msg=msg)
