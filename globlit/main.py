"""FastAPI应用入口"""
import secrets
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from globlit.config import settings
from globlit.routers import news, user
from globlit.database import close_db
from globlit.exceptions import NewsProxyError
from globlit.models.common import ErrorResponse
from globlit.services.cache_service import TTLCache
from globlit.services.news_service import NewsService
from globlit.utils.logger import logger

# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="个性化新闻阅读服务：新闻代理、全文提取、用户资料",
    docs_url="/docs",
    redoc_url="/redoc",
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 会话：未配置密钥时用随机值（重启后所有会话失效）
if not settings.session_secret:
    logger.warning("SESSION_SECRET 未配置，使用随机密钥，重启后会话失效")
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret or secrets.token_urlsafe(32),
    max_age=settings.session_max_age,
    https_only=settings.session_https_only,
    same_site="none" if settings.session_https_only else "lax",
)

# 注册路由
app.include_router(news.router, prefix="/api/news", tags=["新闻代理"])
app.include_router(user.router, prefix="/api", tags=["用户"])
app.include_router(user.auth_router, prefix="/auth", tags=["登录"])

app.add_exception_handler(NewsProxyError, news.news_error_handler)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP 异常统一转成 {error: ...}"""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求体校验失败按 400 返回，不透出校验细节"""
    logger.info(f"请求参数校验失败: {request.url.path}, {exc.errors()}")
    return JSONResponse(status_code=400, content=ErrorResponse(error="Invalid request").model_dump())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常处理器"""
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error").model_dump(),
    )


@app.on_event("startup")
async def startup_event():
    """应用启动事件"""
    logger.info(f"{settings.app_name} v{settings.app_version} 启动成功")
    logger.info(f"API文档地址: http://{settings.host}:{settings.port}/docs")

    if not settings.news_api_key:
        logger.warning("NEWS_API_KEY 未配置，新闻代理接口在配置前都会返回错误")

    app.state.news_cache = TTLCache()
    app.state.news_service = NewsService.from_settings(app.state.news_cache)
    logger.info("新闻代理服务已就绪: /api/news")

    # 初始化数据库（可选，失败不影响服务启动）
    try:
        from globlit.database import init_db
        await init_db()
        logger.info("数据库连接成功，用户功能已启用")
    except Exception as e:
        logger.warning(f"数据库初始化失败（用户功能将不可用）: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    """应用关闭事件"""
    logger.info(f"{settings.app_name} 正在关闭...")
    service = getattr(app.state, "news_service", None)
    if service is not None:
        await service.close()
        app.state.news_service = None
        logger.info("新闻代理服务已关闭")
    await close_db()


@app.get("/")
async def root():
    """根路径"""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health")
async def health_check():
    """健康检查"""
    return {"status": "healthy"}
