import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["BCRYPT_ROUNDS"] = "4"

import itertools
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models import Base, User, Category, Product, UserRole
from routers.auth.helpers import auth_helpers
from routers.orders.helpers import OrderHelpers
from routers.orders.schemas import OrderCreate
from dependencies.context import GraphQLContext
from utils.pubsub import PubSub

_counter = itertools.count(1)

SHIPPING_ADDRESS = {
    "street": "12 Palm Avenue",
    "city": "Accra",
    "state": "Greater Accra",
    "zip_code": "00233",
    "country": "Ghana",
}


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def pubsub():
    return PubSub()


@pytest.fixture
def make_user(db):
    async def _make_user(role=UserRole.BUYER, name=None, email=None, password="secret123"):
        n = next(_counter)
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=email or f"{role.value.lower()}{n}@example.com",
            password_hash=auth_helpers.hash_password(password),
            role=role.value,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_category(db):
    async def _make_category(name=None):
        n = next(_counter)
        name = name or f"Category {n}"
        category = Category(name=name, slug=f"category-{n}")
        db.add(category)
        await db.commit()
        await db.refresh(category)
        return category

    return _make_category


@pytest.fixture
def make_product(db):
    async def _make_product(vendor, category, stock=10, price=25.0, name=None, sku=None):
        n = next(_counter)
        product = Product(
            vendor_id=vendor.id,
            category_id=category.id,
            name=name or f"Bamboo Toothbrush {n}",
            price=price,
            stock=stock,
            sku=sku or f"SKU-{n:05d}",
        )
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    return _make_product


@pytest.fixture
def place_order(db, pubsub):
    """Create an order through the service: lines are (product, quantity) pairs"""
    async def _place_order(customer, *lines):
        order_data = OrderCreate(
            items=[
                {"product_id": product.id, "quantity": quantity, "price": product.price}
                for product, quantity in lines
            ],
            shipping_address=SHIPPING_ADDRESS,
        )
        return await OrderHelpers(db, pubsub).create_order(customer.id, order_data)

    return _place_order


@pytest.fixture
def context_for(db, pubsub):
    """GraphQL context authenticated as the given user (anonymous for None)"""
    def _context_for(user=None):
        token = auth_helpers.create_access_token(user.id) if user is not None else None
        return GraphQLContext(db=db, pubsub=pubsub, token=token)

    return _context_for


def drain(stream):
    """Payloads already queued on an EventStream, without waiting"""
    items = []
    while not stream._queue.empty():
        items.append(stream._queue.get_nowait())
    return items
