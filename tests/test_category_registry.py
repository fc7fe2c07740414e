"""
CategoryRegistry 단위 테스트

테스트 대상:
- create(): 필수 필드 검증, owner별 name 중복 방지
- update(): 부분 업데이트, 소유권 검사
- delete(): 소유권 검사, 게시물 연쇄 삭제 없음
- list_categories() / search()
"""
import pytest

from blogcms.errors import ConflictError, NotFoundError, ValidationError
from blogcms.search import SearchQuery


class TestCategoryCreate:
    """CategoryRegistry.create() 테스트"""

    @pytest.mark.asyncio
    async def test_create_success(self, category_registry):
        category = await category_registry.create('owner-a', 'tech', 'Tech', 'python', 'All things tech')

        assert category['id']
        assert category['name'] == 'tech'
        assert category['title'] == 'Tech'
        assert category['keywords'] == 'python'
        assert category['ownerId'] == 'owner-a'
        assert category['createdAt'] is not None
        assert category['updatedAt'] is not None

    @pytest.mark.asyncio
    async def test_create_trims_name(self, category_registry):
        category = await category_registry.create('owner-a', '  tech  ', 'Tech')
        assert category['name'] == 'tech'

    @pytest.mark.asyncio
    async def test_create_optional_fields_default_to_none(self, category_registry):
        category = await category_registry.create('owner-a', 'life', 'Life')
        assert category['keywords'] is None
        assert category['description'] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize('name,title', [(None, 'Tech'), ('tech', None), ('   ', 'Tech'), ('tech', '')])
    async def test_create_missing_required_fields(self, category_registry, name, title):
        with pytest.raises(ValidationError):
            await category_registry.create('owner-a', name, title)

    @pytest.mark.asyncio
    async def test_create_duplicate_name_same_owner(self, category_registry):
        await category_registry.create('owner-a', 'tech', 'Tech')

        with pytest.raises(ConflictError):
            await category_registry.create('owner-a', ' tech ', 'Another title')

    @pytest.mark.asyncio
    async def test_same_name_different_owner_allowed(self, category_registry):
        first = await category_registry.create('owner-a', 'tech', 'Tech')
        second = await category_registry.create('owner-b', 'tech', 'Tech')
        assert first['id'] != second['id']

    @pytest.mark.asyncio
    async def test_name_uniqueness_is_case_sensitive(self, category_registry):
        await category_registry.create('owner-a', 'tech', 'Tech')
        other = await category_registry.create('owner-a', 'Tech', 'Tech')
        assert other['name'] == 'Tech'


class TestCategoryUpdate:
    """CategoryRegistry.update() 테스트"""

    @pytest.mark.asyncio
    async def test_partial_update_keeps_omitted_fields(self, category_registry):
        created = await category_registry.create('owner-a', 'tech', 'Tech', 'python', 'desc')

        updated = await category_registry.update('owner-a', created['id'], {'description': 'new desc'})

        assert updated['description'] == 'new desc'
        assert updated['name'] == 'tech'
        assert updated['title'] == 'Tech'
        assert updated['keywords'] == 'python'

    @pytest.mark.asyncio
    async def test_update_ignores_unknown_fields(self, category_registry):
        created = await category_registry.create('owner-a', 'tech', 'Tech')
        updated = await category_registry.update('owner-a', created['id'], {'ownerId': 'owner-b'})
        assert updated['ownerId'] == 'owner-a'

    @pytest.mark.asyncio
    async def test_update_not_owned(self, category_registry):
        created = await category_registry.create('owner-a', 'tech', 'Tech')

        with pytest.raises(NotFoundError):
            await category_registry.update('owner-b', created['id'], {'title': 'Hijacked'})

    @pytest.mark.asyncio
    async def test_update_unknown_id(self, category_registry):
        with pytest.raises(NotFoundError):
            await category_registry.update('owner-a', 'does-not-exist', {'title': 'x'})

    @pytest.mark.asyncio
    async def test_update_blank_name_rejected(self, category_registry):
        created = await category_registry.create('owner-a', 'tech', 'Tech')
        with pytest.raises(ValidationError):
            await category_registry.update('owner-a', created['id'], {'name': '  '})

    @pytest.mark.asyncio
    async def test_rename_onto_existing_name_conflicts(self, category_registry):
        await category_registry.create('owner-a', 'tech', 'Tech')
        life = await category_registry.create('owner-a', 'life', 'Life')

        with pytest.raises(ConflictError):
            await category_registry.update('owner-a', life['id'], {'name': 'tech'})


class TestCategoryDelete:
    """CategoryRegistry.delete() 테스트"""

    @pytest.mark.asyncio
    async def test_delete_success(self, category_registry, category_repository):
        created = await category_registry.create('owner-a', 'tech', 'Tech')

        await category_registry.delete('owner-a', created['id'])

        assert await category_repository.get_by_id(created['id']) is None

    @pytest.mark.asyncio
    async def test_delete_not_owned(self, category_registry):
        created = await category_registry.create('owner-a', 'tech', 'Tech')
        with pytest.raises(NotFoundError):
            await category_registry.delete('owner-b', created['id'])

    @pytest.mark.asyncio
    async def test_delete_leaves_posts_with_dangling_reference(
        self, category_registry, post_registry, sample_post
    ):
        category = await category_registry.create('owner-a', 'tech', 'Tech')
        post = await post_registry.create('owner-a', dict(sample_post, categoryId=category['id']))
        assert post['category']['name'] == 'tech'

        await category_registry.delete('owner-a', category['id'])

        viewed = await post_registry.public_view(post['id'])
        assert viewed['categoryId'] == category['id']
        assert viewed['category']['name'] is None


class TestCategoryListAndSearch:
    """list_categories() / search() 테스트"""

    @pytest.mark.asyncio
    async def test_list_sorted_by_name_and_projected(self, category_registry):
        for name in ['zeta', 'alpha', 'mid']:
            await category_registry.create('owner-a', name, name.title())
        await category_registry.create('owner-b', 'beta', 'Beta')

        listed = await category_registry.list_categories('owner-a')

        assert [c['name'] for c in listed] == ['alpha', 'mid', 'zeta']
        assert all(set(c) == {'id', 'name'} for c in listed)

    @pytest.mark.asyncio
    async def test_search_case_insensitive_and_owner_scoped(self, category_registry):
        await category_registry.create('owner-a', 'Technology', 'Tech')
        await category_registry.create('owner-a', 'biotech', 'Bio')
        await category_registry.create('owner-a', 'travel', 'Travel')
        await category_registry.create('owner-b', 'TECH', 'Other owner')

        result = await category_registry.search('owner-a', 'TECH', SearchQuery(order_param='name'))

        assert result.total_records == 2
        assert [c['name'] for c in result.records] == ['Technology', 'biotech']
        assert result.pagination == {
            'totalRecords': 2,
            'start': 0,
            'recordSize': 10,
            'orderType': 1,
            'orderParam': 'name',
        }

    @pytest.mark.asyncio
    async def test_repository_count_spans_owners(self, category_registry, category_repository):
        await category_registry.create('owner-a', 'tech', 'Tech')
        await category_registry.create('owner-b', 'tech', 'Tech')

        assert await category_repository.count() == 2
