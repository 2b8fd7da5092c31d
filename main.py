"""
ChatDiary 应用主入口
启动FastAPI应用，提供聊天、日记、设置和媒体接口
"""

from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from chatdiary.api import chat, diaries, media
from chatdiary.api import settings as settings_api
from chatdiary.api.dependencies import ServiceContainer, build_services
from chatdiary.utils.config import settings
from chatdiary.utils.exceptions import ChatDiaryError
from chatdiary.utils.logger import logger


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    创建FastAPI应用

    Args:
        services: 服务容器，为空时在启动时按配置创建（SQLite存储）

    Returns:
        应用实例
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug
    )
    app.state.services = services

    app.include_router(chat.router)
    app.include_router(diaries.router)
    app.include_router(settings_api.router)
    app.include_router(media.router)

    @app.on_event("startup")
    async def startup_event():
        """应用启动时执行"""
        if app.state.services is None:
            app.state.services = build_services()
            logger.info(f"数据库路径: {app.state.services.store.db_path}")
        logger.info(f"{settings.app_name} v{settings.app_version} 启动成功")

    @app.on_event("shutdown")
    async def shutdown_event():
        """应用关闭时执行"""
        logger.info(f"{settings.app_name} 已关闭")

    @app.exception_handler(ChatDiaryError)
    async def chatdiary_error_handler(request: Request, exc: ChatDiaryError):
        logger.error(f"{request.method} {request.url.path} 失败: {exc}")
        return JSONResponse(
            status_code=exc.http_status,
            content={"code": exc.code, "msg": str(exc), "data": None}
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.error(f"{request.method} {request.url.path} 数据校验失败: {exc}")
        return JSONResponse(
            status_code=422,
            content={"code": ChatDiaryError.code, "msg": str(exc), "data": None}
        )

    @app.get("/")
    async def root():
        """根路径，返回应用信息"""
        return {
            "app_name": settings.app_name,
            "version": settings.app_version,
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        """健康检查接口"""
        return {"status": "healthy", "code": 0}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info(f"启动服务器: {settings.host}:{settings.port}")
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
