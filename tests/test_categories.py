import uuid

import pytest

from models import UserRole
from routers.categories.helpers import CategoryHelpers, generate_slug
from routers.categories.schemas import CategoryCreate, CategoryUpdate
from utils.errors import (
    CategoryHasProducts,
    CategoryNotFound,
    DuplicateSlug,
    NotAuthenticated,
    NotAuthorized,
)


@pytest.mark.parametrize("name, slug", [
    ("Eco  Bags!!", "eco-bags"),
    ("  Home & Garden ", "home-garden"),
    ("Kids_Toys -- Wooden", "kids-toys-wooden"),
    ("--Solar--", "solar"),
    ("Zero Waste", "zero-waste"),
])
def test_generate_slug(name, slug):
    assert generate_slug(name) == slug
    assert generate_slug(slug) == slug


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN)


async def test_create_category_derives_slug(db, admin):
    category = await CategoryHelpers(db).create_category(
        admin, CategoryCreate(name="Eco  Bags!!", description="Reusable bags")
    )

    assert category.slug == "eco-bags"
    assert category.description == "Reusable bags"
    assert (await CategoryHelpers(db).get_category_by_slug("eco-bags")).id == category.id


async def test_only_admins_manage_categories(db, make_user):
    vendor = await make_user(UserRole.VENDOR)
    helpers = CategoryHelpers(db)

    with pytest.raises(NotAuthenticated):
        await helpers.create_category(None, CategoryCreate(name="Solar"))
    with pytest.raises(NotAuthorized) as exc_info:
        await helpers.create_category(vendor, CategoryCreate(name="Solar"))

    assert exc_info.value.message == "Only admins can create or update categories"
    assert await helpers.list_categories() == []


async def test_duplicate_slug_on_create(db, admin):
    helpers = CategoryHelpers(db)
    await helpers.create_category(admin, CategoryCreate(name="Solar Power"))

    with pytest.raises(DuplicateSlug):
        await helpers.create_category(admin, CategoryCreate(name="Other", slug="solar-power"))


async def test_rename_rederives_slug(db, admin):
    helpers = CategoryHelpers(db)
    category = await helpers.create_category(admin, CategoryCreate(name="Kitchen", description="Pots"))

    updated = await helpers.update_category(
        admin, category.id, CategoryUpdate(name="Kitchen & Dining", description=None)
    )

    assert updated.name == "Kitchen & Dining"
    assert updated.slug == "kitchen-dining"
    assert updated.description is None


async def test_update_slug_collisions(db, admin):
    helpers = CategoryHelpers(db)
    await helpers.create_category(admin, CategoryCreate(name="Garden"))
    category = await helpers.create_category(admin, CategoryCreate(name="Outdoors"))

    with pytest.raises(DuplicateSlug):
        await helpers.update_category(admin, category.id, CategoryUpdate(slug="garden"))
    with pytest.raises(DuplicateSlug):
        await helpers.update_category(admin, category.id, CategoryUpdate(name="Garden"))

    # keeping its own slug is not a collision
    same = await helpers.update_category(admin, category.id, CategoryUpdate(slug="outdoors", description="Camping"))
    assert same.slug == "outdoors"
    assert same.description == "Camping"


async def test_update_missing_category(db, admin):
    with pytest.raises(CategoryNotFound):
        await CategoryHelpers(db).update_category(admin, uuid.uuid4(), CategoryUpdate(name="Nope"))


async def test_delete_category_with_products_is_refused(db, admin, make_user, make_product):
    helpers = CategoryHelpers(db)
    vendor = await make_user(UserRole.VENDOR)
    category = await helpers.create_category(admin, CategoryCreate(name="Bottles"))
    row = await helpers._get(category.id)
    await make_product(vendor, row)
    await make_product(vendor, row)

    with pytest.raises(CategoryHasProducts) as exc_info:
        await helpers.delete_category(admin, category.id)

    assert "2 product(s)" in exc_info.value.message
    assert exc_info.value.extensions["count"] == 2
    assert await helpers.get_category(category.id) is not None


async def test_delete_category(db, admin):
    helpers = CategoryHelpers(db)
    category = await helpers.create_category(admin, CategoryCreate(name="Candles"))

    assert await helpers.delete_category(admin, category.id) is True
    assert await helpers.get_category(category.id) is None
    with pytest.raises(CategoryNotFound):
        await helpers.delete_category(admin, category.id)
