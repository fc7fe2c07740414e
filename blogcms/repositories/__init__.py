# blogcms/repositories/__init__.py
from blogcms.repositories.post_repository import PostRepository
from blogcms.repositories.category_repository import CategoryRepository

__all__ = ["PostRepository", "CategoryRepository"]
