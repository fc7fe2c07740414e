"""
blog-cms-service 테스트를 위한 pytest fixtures
"""
import os
import sys
import tempfile
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

# 프로젝트 루트를 path에 추가
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# blogcms.config는 import 시점에 환경변수를 읽으므로 먼저 설정
os.environ['USE_POSTGRES'] = 'false'
os.environ['ALLOWED_ORIGINS'] = 'http://localhost:3000'
os.environ['AUTH_SERVICE_URL'] = 'http://test-auth-service:8002'
os.environ['CONTENT_DATABASE_PATH'] = os.path.join(tempfile.gettempdir(), 'blogcms-unused.db')
os.environ['CLOUDINARY_CLOUD_NAME'] = 'demo'
os.environ['CLOUDINARY_API_KEY'] = 'test-key'
os.environ['CLOUDINARY_API_SECRET'] = 'test-secret'
os.environ['CLOUDINARY_BASE_URL'] = 'https://api.test-store.local/v1_1'

from blogcms.attachments import AttachmentStore
from blogcms.config import DatabaseConfig
from blogcms.database import ContentDatabase
from blogcms.registries import CategoryRegistry, PostRegistry
from blogcms.repositories import CategoryRepository, PostRepository

UPLOADED_URL = 'https://res.test-store.local/demo/image/upload/v1700000000/blog_images/sunset.png'


@pytest.fixture
def temp_db_path():
    """테스트용 임시 SQLite 데이터베이스 경로"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.join(tmpdir, 'test_content.db')


@pytest_asyncio.fixture
async def database(temp_db_path):
    """스키마가 초기화된 SQLite ContentDatabase"""
    db = ContentDatabase(DatabaseConfig(use_postgres=False, database_path=temp_db_path))
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def category_repository(database):
    return CategoryRepository(database)


@pytest.fixture
def post_repository(database):
    return PostRepository(database)


@pytest.fixture
def attachment_store():
    """업로드/삭제 호출을 기록하는 AttachmentStore mock"""
    store = AsyncMock(spec=AttachmentStore)
    store.upload.return_value = UPLOADED_URL
    store.delete.return_value = True
    return store


@pytest.fixture
def category_registry(category_repository):
    return CategoryRegistry(category_repository)


@pytest.fixture
def post_registry(post_repository, attachment_store):
    return PostRegistry(post_repository, attachment_store)


@pytest.fixture
def sample_post():
    """테스트용 게시물 필드"""
    return {
        'title': 'Intro',
        'categoryId': 'cat-tech',
        'postedBy': 'A',
        'blogContent': 'Hello world, this is the first post.',
        'keywords': 'k',
        'description': 'd',
    }


@pytest.fixture
def sample_titles():
    """검색/페이지네이션 테스트용 제목 목록"""
    return [
        'Observability Patterns',
        'Async Python',
        'Database Indexing',
        'Caching Strategies',
        'Pattern Matching in Python',
        'Zero Downtime Deploys',
        'Event Sourcing',
    ]
