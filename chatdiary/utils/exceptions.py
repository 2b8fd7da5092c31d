"""
异常定义模块
按错误来源划分：配置错误、传输/HTTP错误、解析错误、存储错误
每类异常带有业务错误码 code 和对应的接口状态码 http_status
"""

from typing import Optional


class ChatDiaryError(Exception):
    """所有应用异常的基类"""
    code = 1
    http_status = 400


class ConfigurationError(ChatDiaryError):
    """配置错误，例如缺少 API Key，在发起任何网络请求前抛出"""
    code = 2


class ProviderHTTPError(ChatDiaryError):
    """
    LLM 服务商返回非 2xx 状态码，或网络请求失败

    Attributes:
        status_code: HTTP 状态码，网络错误时为 None
        body: 响应正文
    """
    code = 3
    http_status = 502

    def __init__(self, status_code: Optional[int], body: str = "", provider: str = "API"):
        self.status_code = status_code
        self.body = body
        self.provider = provider
        if status_code is None:
            message = f"{provider} Network Error: {body}"
        else:
            message = f"{provider} Error ({status_code}): {body}"
        super().__init__(message)


class ResponseParseError(ChatDiaryError):
    """服务商响应无法解析，或缺少预期字段"""
    code = 4
    http_status = 502


class StorageError(ChatDiaryError):
    """存储写入失败（超出配额、数据库错误）"""
    code = 5
    http_status = 507


class NotFoundError(ChatDiaryError):
    """请求的记录不存在"""
    code = 6
    http_status = 404


class ProtectedRecordError(ChatDiaryError):
    """内置的默认人设/API配置不可删除或修改"""
    code = 7
    http_status = 403


class BackupFormatError(ChatDiaryError):
    """备份文件格式无效"""
    code = 8


# 业务错误码 -> 接口状态码
HTTP_STATUS_BY_CODE = {
    cls.code: cls.http_status
    for cls in (ChatDiaryError, ConfigurationError, ProviderHTTPError, ResponseParseError,
                StorageError, NotFoundError, ProtectedRecordError, BackupFormatError)
}


def error_code(error: Exception) -> int:
    return getattr(error, "code", ChatDiaryError.code)
