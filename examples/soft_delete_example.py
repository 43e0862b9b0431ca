#!/usr/bin/env python3
"""
Soft Delete Example - soft-deletable

Demonstrates the soft delete behavior on a small blog and shop schema:
- Deletes that keep the row and hide it from queries
- Reading deleted rows through the read option
- Cascading deletes along dependent associations
- Restoring a post together with the comments deleted with it
- Purging a row by deleting it a second time
"""

import logging

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, create_engine, select
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from soft_deletable import (
    BooleanSoftDeleteMixin,
    SoftDeletableMixin,
    SoftDeleteBehavior,
    SoftDeleteService,
    register_soft_delete_listeners,
)

Base = declarative_base()


class Author(Base):
    """Author without soft delete."""

    __tablename__ = "authors"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)


class Post(Base, SoftDeletableMixin):
    """Blog post deleted through a timestamp."""

    __tablename__ = "posts"
    __soft_delete__ = SoftDeleteBehavior("deleted_at")

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    author_id = Column(Integer, ForeignKey("authors.id"))
    deleted_at = Column(DateTime, nullable=True)

    author = relationship("Author")
    comments = relationship("Comment", back_populates="post", cascade="all, delete-orphan")

    def after_restore(self) -> None:
        print(f"  -> post '{self.title}' is back")


class Comment(Base, SoftDeletableMixin):
    """Comment deleted and restored along with its post."""

    __tablename__ = "comments"
    __soft_delete__ = SoftDeleteBehavior("deleted_at")

    id = Column(Integer, primary_key=True)
    body = Column(String)
    post_id = Column(Integer, ForeignKey("posts.id"))
    deleted_at = Column(DateTime, nullable=True)

    post = relationship("Post", back_populates="comments")


class Order(Base, BooleanSoftDeleteMixin):
    """Order deleted through a boolean flag."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    number = Column(String)

    items = relationship("OrderItem", info={"soft_delete": {"dependent": True}})


class OrderItem(Base, BooleanSoftDeleteMixin):
    """Order line; soft deleted with its order, restored by hand."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    sku = Column(String)
    order_id = Column(Integer, ForeignKey("orders.id"))


def demonstrate_blog(session) -> None:
    """Delete and restore a post with comments."""
    print("\n=== Blog ===")
    post = Post(
        title="Hello world",
        author=Author(name="Ada"),
        comments=[Comment(body="Nice!"), Comment(body="First")],
    )
    session.add(post)
    session.commit()

    session.delete(post)
    session.commit()
    print(f"Visible posts after delete: {session.scalars(select(Post)).all()}")
    print(f"Visible comments after delete: {session.scalars(select(Comment)).all()}")

    deleted = session.scalars(select(Post).execution_options(is_deleted=True)).all()
    print(f"Deleted posts: {[p.title for p in deleted]}")

    print("Restoring post...")
    Post.restore(session, post.id)
    session.commit()
    print(f"Visible comments after restore: {[c.body for c in post.comments]}")

    print("Deleting twice purges the row...")
    session.delete(post)
    session.commit()
    session.delete(post)
    session.commit()
    remaining = session.scalars(select(Post).execution_options(is_deleted=None)).all()
    print(f"Stored posts: {remaining}")


def demonstrate_orders(session) -> None:
    """Boolean markers cascade deletes but are restored by hand."""
    print("\n=== Orders ===")
    service = SoftDeleteService(session)
    order = Order(number="A-100", items=[OrderItem(sku="X"), OrderItem(sku="Y")])
    session.add(order)
    session.commit()

    service.delete(order)
    session.commit()
    print(f"Active items: {service.count(OrderItem)}")

    service.restore(Order, order.id)
    session.commit()
    print(f"Active orders after restore: {service.count(Order)}")
    print(f"Active items after restore: {service.count(OrderItem)}")

    for item in service.find(OrderItem, OrderItem.order_id == order.id, read_mode=True):
        service.restore(item)
    session.commit()
    print(f"Active items after restoring by hand: {service.count(OrderItem)}")


def main() -> None:
    """Run the demonstration."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    register_soft_delete_listeners(Base)

    with sessionmaker(bind=engine)() as session:
        demonstrate_blog(session)
        demonstrate_orders(session)


if __name__ == "__main__":
    main()
