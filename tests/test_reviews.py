import uuid

import pytest

from models import OrderStatus, UserRole
from routers.orders.helpers import OrderHelpers
from routers.reviews.helpers import ReviewHelpers, round_rating
from routers.reviews.schemas import ReviewCreate, ReviewUpdate, ReviewFilters
from utils.errors import (
    DuplicateReview,
    InvalidRating,
    NotAuthenticated,
    NotOrderOwner,
    NotReviewOwner,
    OrderNotDelivered,
    OrderNotFound,
    ProductNotInOrder,
    ReviewNotFound,
)


@pytest.fixture
async def purchase(db, pubsub, make_user, make_category, make_product, place_order):
    """A buyer with a delivered order containing one product"""
    vendor = await make_user(UserRole.VENDOR)
    buyer = await make_user()
    category = await make_category()
    product = await make_product(vendor, category)
    other_product = await make_product(vendor, category)
    order = await place_order(buyer, (product, 1))
    await OrderHelpers(db, pubsub).update_order_status(order.id, OrderStatus.DELIVERED, vendor.id)
    return buyer, product, other_product, order


async def deliver_new_order(db, pubsub, place_order, buyer, product):
    order = await place_order(buyer, (product, 1))
    await OrderHelpers(db, pubsub).update_order_status(order.id, OrderStatus.DELIVERED, buyer.id)
    return order


async def test_create_review_updates_product_rating(db, purchase):
    buyer, product, _, order = purchase

    review = await ReviewHelpers(db).create_review(
        buyer.id, ReviewCreate(product_id=product.id, order_id=order.id, rating=4, comment="Sturdy")
    )

    assert review.rating == 4
    assert review.user.id == buyer.id
    assert review.order.id == order.id
    assert review.product.rating == 4.0
    assert review.product.review_count == 1


async def test_review_rules_are_checked_in_order(db, pubsub, purchase, make_user, place_order):
    buyer, product, other_product, order = purchase
    stranger = await make_user()
    helpers = ReviewHelpers(db)

    def review(rating=5, order_id=order.id, product_id=product.id):
        return ReviewCreate(product_id=product_id, order_id=order_id, rating=rating)

    with pytest.raises(NotAuthenticated):
        await helpers.create_review(None, review())
    with pytest.raises(InvalidRating):
        await helpers.create_review(buyer.id, review(rating=6))
    with pytest.raises(InvalidRating):
        await helpers.create_review(buyer.id, review(rating=0))
    with pytest.raises(OrderNotFound):
        await helpers.create_review(buyer.id, review(order_id=uuid.uuid4()))
    with pytest.raises(NotOrderOwner):
        await helpers.create_review(stranger.id, review())
    with pytest.raises(ProductNotInOrder):
        await helpers.create_review(buyer.id, review(product_id=other_product.id))

    pending = await place_order(buyer, (product, 1))
    with pytest.raises(OrderNotDelivered):
        await helpers.create_review(buyer.id, review(order_id=pending.id))


async def test_duplicate_review(db, purchase):
    buyer, product, _, order = purchase
    helpers = ReviewHelpers(db)
    data = ReviewCreate(product_id=product.id, order_id=order.id, rating=5)
    await helpers.create_review(buyer.id, data)

    with pytest.raises(DuplicateReview) as exc_info:
        await helpers.create_review(buyer.id, data)

    assert exc_info.value.extensions["code"] == "CONFLICT"


async def test_same_product_can_be_reviewed_per_order(db, pubsub, purchase, place_order):
    buyer, product, _, order = purchase
    second_order = await deliver_new_order(db, pubsub, place_order, buyer, product)
    helpers = ReviewHelpers(db)

    await helpers.create_review(buyer.id, ReviewCreate(product_id=product.id, order_id=order.id, rating=5))
    review = await helpers.create_review(
        buyer.id, ReviewCreate(product_id=product.id, order_id=second_order.id, rating=2)
    )

    assert review.product.review_count == 2
    assert review.product.rating == 3.5


async def test_rating_aggregate_follows_updates_and_deletes(db, pubsub, purchase, place_order):
    buyer, product, _, order = purchase
    second_order = await deliver_new_order(db, pubsub, place_order, buyer, product)
    helpers = ReviewHelpers(db)
    first = await helpers.create_review(buyer.id, ReviewCreate(product_id=product.id, order_id=order.id, rating=5))
    second = await helpers.create_review(
        buyer.id, ReviewCreate(product_id=product.id, order_id=second_order.id, rating=4)
    )

    updated = await helpers.update_review(buyer.id, first.id, ReviewUpdate(rating=1, comment="Broke quickly"))
    assert updated.comment == "Broke quickly"
    assert updated.product.rating == 2.5

    await helpers.delete_review(buyer.id, second.id)
    await db.refresh(product)
    assert (product.rating, product.review_count) == (1.0, 1)

    await helpers.delete_review(buyer.id, first.id)
    await db.refresh(product)
    assert (product.rating, product.review_count) == (0, 0)


async def test_only_the_author_can_change_a_review(db, purchase, make_user):
    buyer, product, _, order = purchase
    stranger = await make_user()
    helpers = ReviewHelpers(db)
    review = await helpers.create_review(buyer.id, ReviewCreate(product_id=product.id, order_id=order.id, rating=3))

    with pytest.raises(NotReviewOwner, match="update"):
        await helpers.update_review(stranger.id, review.id, ReviewUpdate(rating=1))
    with pytest.raises(NotReviewOwner, match="delete"):
        await helpers.delete_review(stranger.id, review.id)
    with pytest.raises(InvalidRating):
        await helpers.update_review(buyer.id, review.id, ReviewUpdate(rating=9))
    with pytest.raises(ReviewNotFound):
        await helpers.delete_review(buyer.id, uuid.uuid4())


async def test_list_reviews(db, purchase):
    buyer, product, other_product, order = purchase
    helpers = ReviewHelpers(db)
    review = await helpers.create_review(buyer.id, ReviewCreate(product_id=product.id, order_id=order.id, rating=4))

    assert [r.id for r in await helpers.list_reviews(ReviewFilters(product_id=product.id))] == [review.id]
    assert await helpers.list_reviews(ReviewFilters(product_id=other_product.id)) == []
    assert (await helpers.get_review(review.id)).id == review.id


def test_round_rating_rounds_half_up():
    assert round_rating(4.25) == 4.3
    assert round_rating(4.0) == 4.0
    assert round_rating(13 / 3) == 4.3
    assert round_rating(11 / 3) == 3.7
