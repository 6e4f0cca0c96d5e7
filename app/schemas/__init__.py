from app.schemas.category import CategoryCreate, CategoryResponse, CategoryCreated
from app.schemas.product import (
    ProductResponse,
    ProductList,
    ProductMutationResponse,
    ProductDeleted,
    SpecItem,
)
from app.schemas.user import ProfileCreate, ProfileUpdate, UserResponse, AdminResponse, AuthUserResponse
