from app.models.category import Category
from app.models.product import Product
from app.models.user import User, Admin, user_favorites
from app.models.blob_deletion import PendingBlobDeletion

__all__ = [
    "Category",
    "Product",
    "User",
    "Admin",
    "user_favorites",
    "PendingBlobDeletion",
]
