# blogcms/config.py
import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes')


@dataclass
class ServerConfig:
    """Content service 서버 실행 설정"""
    host: str = field(default_factory=lambda: os.getenv('HOST', '0.0.0.0'))
    port: int = field(default_factory=lambda: int(os.getenv('PORT', '8005')))
    allowed_origins: list = field(default_factory=lambda: os.getenv('ALLOWED_ORIGINS', '*').split(','))


@dataclass
class DatabaseConfig:
    """문서 저장소 설정 (SQLite 또는 PostgreSQL)"""
    use_postgres: bool = field(default_factory=lambda: _env_flag('USE_POSTGRES'))
    database_path: str = field(default_factory=lambda: os.getenv('CONTENT_DATABASE_PATH', '/app/content.db'))
    host: str = field(default_factory=lambda: os.getenv('POSTGRES_HOST', 'postgresql-service'))
    port: int = field(default_factory=lambda: int(os.getenv('POSTGRES_PORT', '5432')))
    database: str = field(default_factory=lambda: os.getenv('POSTGRES_DB', 'titanium'))
    user: str = field(default_factory=lambda: os.getenv('POSTGRES_USER', 'postgres'))
    password: str = field(default_factory=lambda: os.getenv('POSTGRES_PASSWORD', ''))
    ssl_mode: str = field(default_factory=lambda: os.getenv('POSTGRES_SSLMODE', 'disable').lower())

    def postgres_kwargs(self) -> Dict:
        """asyncpg.create_pool 인자 (asyncpg uses ssl parameter, not sslmode)"""
        return {
            'host': self.host,
            'port': self.port,
            'database': self.database,
            'user': self.user,
            'password': self.password,
            'ssl': self.ssl_mode not in ('disable', 'false', 'no', '0'),
        }


@dataclass
class AttachmentConfig:
    """이미지 첨부파일 저장소 (Cloudinary 호환 API) 설정"""
    cloud_name: str = field(default_factory=lambda: os.getenv('CLOUDINARY_CLOUD_NAME', ''))
    api_key: str = field(default_factory=lambda: os.getenv('CLOUDINARY_API_KEY', ''))
    api_secret: str = field(default_factory=lambda: os.getenv('CLOUDINARY_API_SECRET', ''))
    base_url: str = field(default_factory=lambda: os.getenv('CLOUDINARY_BASE_URL', 'https://api.cloudinary.com/v1_1'))
    folder: str = field(default_factory=lambda: os.getenv('ATTACHMENT_FOLDER', 'blog_images'))
    # Off by default: a replaced image stays in the store.
    delete_replaced_images: bool = field(default_factory=lambda: _env_flag('DELETE_REPLACED_IMAGES'))


@dataclass
class ServiceUrls:
    """호출할 다른 Microservice의 주소"""
    auth_service: str = field(default_factory=lambda: os.getenv('AUTH_SERVICE_URL', 'http://auth-service:8002'))


class Config:
    def __init__(self, database: Optional[DatabaseConfig] = None):
        self.server = ServerConfig()
        self.database = database or DatabaseConfig()
        self.attachments = AttachmentConfig()
        self.services = ServiceUrls()
        self.AUTH_SERVICE_URL = self.services.auth_service

        if self.database.use_postgres:
            logger.info("🐘 Using PostgreSQL database for blog content")
        else:
            logger.info("💾 Using SQLite database for blog content")


# Prometheus Metrics Configuration
REQUEST_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    0.75,
    1.0,
    2.5,
    5.0,
    10.0,
)


# 다른 파일에서 쉽게 임포트할 수 있도록 전역 인스턴스 생성
config = Config()
