"""Import all models so SQLModel.metadata picks them up."""

from app.models.code_entity import CodedEntityBase, CodedEntityCreate, CodedEntityUpdate
from app.models.customer import Customer
from app.models.line_fvi import LineFvi

__all__ = [
    "CodedEntityBase",
    "CodedEntityCreate",
    "CodedEntityUpdate",
    "Customer",
    "LineFvi",
]
