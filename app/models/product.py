"""
Product model

Media: image_url is the primary image; image_urls, when set, is the full
ordered list and always starts with image_url.
Specs: ordered list of {"key": ..., "value": ...} pairs (keys may repeat).
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    slug = Column(String, unique=True, index=True, nullable=False)
    description = Column(Text)

    # Pricing
    price = Column(Numeric(12, 2), nullable=False)
    discount_percent = Column(Integer, nullable=True)
    warranty = Column(String, nullable=True)

    # Inventory
    stock = Column(Integer, nullable=False, default=0)

    # Merchandising
    average_rating = Column(Numeric(3, 2), nullable=True)
    review_count = Column(Integer, nullable=True)

    # Media
    image_url = Column(String, nullable=True)
    image_urls = Column(JSON, nullable=True)

    # Technical specs as key/value pairs
    specs = Column(JSON, nullable=True)

    category_id = Column(
        Integer,
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )

    category = relationship("Category", back_populates="products", lazy="selectin")

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_stock_non_negative'),
        CheckConstraint('price > 0', name='check_price_positive'),
    )

    @property
    def stored_image_urls(self) -> list:
        """Every blob URL this product currently references, primary first, deduplicated."""
        urls = []
        for url in [self.image_url, *(self.image_urls or [])]:
            if url and url not in urls:
                urls.append(url)
        return urls
