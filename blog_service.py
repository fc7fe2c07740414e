import logging
from typing import Any, Optional
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Depends, Query, Form, File, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from prometheus_fastapi_instrumentator import Instrumentator, metrics
from prometheus_fastapi_instrumentator.metrics import Info
from prometheus_client import Counter

from blogcms.config import config, REQUEST_LATENCY_BUCKETS
from blogcms.auth import require_user, AuthClient
from blogcms.attachments import Attachment, attachment_store
from blogcms.database import db
from blogcms.errors import ContentError, UnexpectedError
from blogcms.registries import CategoryRegistry, PostRegistry
from blogcms.repositories import CategoryRepository, PostRepository
from blogcms.schemas import CategoryCreate, CategoryUpdate, SearchRequest
from blogcms.search import SearchQuery

# --- 기본 로깅 ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger('BlogCmsServiceApp')

category_repository = CategoryRepository(db)
post_repository = PostRepository(db)
category_registry = CategoryRegistry(category_repository)
post_registry = PostRegistry(
    post_repository,
    attachment_store,
    delete_replaced_images=config.attachments.delete_replaced_images,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    # Startup
    await db.initialize()
    logger.info("Blog CMS service initialized: database ready")
    yield
    # Shutdown
    await db.close()
    await attachment_store.close()
    await AuthClient.close()
    logger.info("Blog CMS service shutdown: database and ClientSessions closed")

app = FastAPI(lifespan=lifespan)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.server.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# Prometheus 메트릭 설정
# api-gateway와 동일한 형식의 status 레이블(2xx, 4xx, 5xx)을 사용
http_requests_total_custom = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ("method", "status"),
)

def http_requests_total_custom_metric(info: Info) -> None:
    status_code = info.response.status_code if info.response else 500
    status_group = "unknown"
    if 200 <= status_code < 300:
        status_group = "2xx"
    elif 300 <= status_code < 400:
        status_group = "3xx"
    elif 400 <= status_code < 500:
        status_group = "4xx"
    elif 500 <= status_code < 600:
        status_group = "5xx"

    http_requests_total_custom.labels(info.method, status_group).inc()

def configure_metrics(application: FastAPI) -> None:
    """Configure Prometheus request latency metrics with fine-grained buckets."""
    instrumentator = Instrumentator()
    instrumentator.add(metrics.latency(buckets=REQUEST_LATENCY_BUCKETS))
    instrumentator.add(http_requests_total_custom_metric)
    instrumentator.instrument(application).expose(application)


configure_metrics(app)


# --- 응답 envelope 및 예외 처리 ---
def envelope(status_code: int, message: str, data: Any = None, **extra: Any) -> JSONResponse:
    content = {"status": status_code, "message": message}
    if data is not None:
        content["data"] = data
    content.update(extra)
    return JSONResponse(content=content, status_code=status_code)


@app.exception_handler(ContentError)
async def handle_content_error(request: Request, exc: ContentError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return envelope(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return envelope(exc.status_code, message)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in errors
    )
    return envelope(400, f"Invalid request: {detail}")


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=True)
    error = UnexpectedError()
    return envelope(error.status_code, error.message)


# --- 의존성 ---
def get_category_registry() -> CategoryRegistry:
    return category_registry


def get_post_registry() -> PostRegistry:
    return post_registry


def search_query(
    start: int = Query(0, ge=0),
    recordSize: int = Query(10, ge=1, le=100),
    orderType: int = Query(1),
    orderParam: str = Query('createdAt'),
) -> SearchQuery:
    return SearchQuery(start=start, record_size=recordSize, order_type=orderType, order_param=orderParam)


async def read_attachment(image: Optional[UploadFile]) -> Optional[Attachment]:
    """Buffer an uploaded image in memory; an empty file part counts as no image."""
    if image is None or not image.filename:
        return None
    data = await image.read()
    return Attachment(data=data, filename=image.filename, content_type=image.content_type or '')


def present_fields(**fields: Optional[str]) -> dict:
    return {key: value for key, value in fields.items() if value is not None}


# --- Category 핸들러 ---
@app.post("/api/categories", status_code=201)
async def create_category(
    payload: CategoryCreate,
    owner_id: str = Depends(require_user),
    registry: CategoryRegistry = Depends(get_category_registry),
):
    category = await registry.create(
        owner_id, payload.name, payload.title, payload.keywords, payload.description
    )
    return envelope(201, "Category created successfully", category)


@app.post("/api/categories/search")
async def search_categories(
    payload: Optional[SearchRequest] = None,
    query: SearchQuery = Depends(search_query),
    owner_id: str = Depends(require_user),
    registry: CategoryRegistry = Depends(get_category_registry),
):
    search_text = payload.search if payload else ''
    result = await registry.search(owner_id, search_text, query)
    return envelope(200, "Categories fetched successfully", result.records, pagination=result.pagination)


@app.get("/api/categories/list")
async def list_categories(
    owner_id: str = Depends(require_user),
    registry: CategoryRegistry = Depends(get_category_registry),
):
    categories = await registry.list_categories(owner_id)
    return envelope(200, "Categories fetched successfully", categories)


@app.put("/api/categories/{category_id}")
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    owner_id: str = Depends(require_user),
    registry: CategoryRegistry = Depends(get_category_registry),
):
    category = await registry.update(owner_id, category_id, payload.model_dump(exclude_unset=True))
    return envelope(200, "Category updated successfully", category)


@app.delete("/api/categories/{category_id}")
async def delete_category(
    category_id: str,
    owner_id: str = Depends(require_user),
    registry: CategoryRegistry = Depends(get_category_registry),
):
    await registry.delete(owner_id, category_id)
    return envelope(200, "Category deleted successfully")


# --- Post 핸들러 ---
@app.post("/api/posts", status_code=201)
async def create_post(
    title: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None, alias="categoryId"),
    posted_by: Optional[str] = Form(None, alias="postedBy"),
    blog_content: Optional[str] = Form(None, alias="blogContent"),
    keywords: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    owner_id: str = Depends(require_user),
    registry: PostRegistry = Depends(get_post_registry),
):
    fields = present_fields(
        title=title, categoryId=category_id, postedBy=posted_by,
        blogContent=blog_content, keywords=keywords, description=description,
    )
    post = await registry.create(owner_id, fields, await read_attachment(image))
    return envelope(201, "Blog created successfully", post)


@app.post("/api/posts/search")
async def search_posts(
    payload: Optional[SearchRequest] = None,
    query: SearchQuery = Depends(search_query),
    owner_id: str = Depends(require_user),
    registry: PostRegistry = Depends(get_post_registry),
):
    search_text = payload.search if payload else ''
    result = await registry.search(owner_id, search_text, query)
    return envelope(200, "Blogs fetched successfully", result.records, pagination=result.pagination)


@app.post("/api/posts/public/search")
async def public_search_posts(
    payload: Optional[SearchRequest] = None,
    query: SearchQuery = Depends(search_query),
    registry: PostRegistry = Depends(get_post_registry),
):
    search_text = payload.search if payload else ''
    result = await registry.public_search(search_text, query)
    return envelope(200, "Blogs fetched successfully", result.records, pagination=result.pagination)


@app.get("/api/posts/public/view/{post_id}")
async def public_view_post(
    post_id: str,
    registry: PostRegistry = Depends(get_post_registry),
):
    post = await registry.public_view(post_id)
    return envelope(200, "Blog fetched successfully", post)


@app.put("/api/posts/{post_id}")
async def update_post(
    post_id: str,
    title: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None, alias="categoryId"),
    posted_by: Optional[str] = Form(None, alias="postedBy"),
    blog_content: Optional[str] = Form(None, alias="blogContent"),
    keywords: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    owner_id: str = Depends(require_user),
    registry: PostRegistry = Depends(get_post_registry),
):
    fields = present_fields(
        title=title, categoryId=category_id, postedBy=posted_by,
        blogContent=blog_content, keywords=keywords, description=description,
    )
    post = await registry.update(owner_id, post_id, fields, await read_attachment(image))
    return envelope(200, "Blog updated successfully", post)


@app.delete("/api/posts/{post_id}")
async def delete_post(
    post_id: str,
    owner_id: str = Depends(require_user),
    registry: PostRegistry = Depends(get_post_registry),
):
    await registry.delete(owner_id, post_id)
    return envelope(200, "Blog deleted successfully")


@app.get("/health")
async def handle_health():
    """Kubernetes를 위한 헬스 체크 엔드포인트"""
    return {"status": "ok", "service": "blog-cms-service"}


@app.get("/stats")
async def handle_stats():
    """대시보드를 위한 통계 엔드포인트"""
    try:
        post_count = await post_repository.count()
        category_count = await category_repository.count()
    except Exception as e:
        logger.error(f"Failed to get content counts: {e}", exc_info=True)
        post_count = category_count = 0

    return {
        "blog_cms_service": {
            "service_status": "online",
            "post_count": post_count,
            "category_count": category_count,
        }
    }


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Blog CMS Service starting on http://{config.server.host}:{config.server.port}")
    uvicorn.run(app, host=config.server.host, port=config.server.port)
