"""Customer model: the companies production lots are shipped to."""

from sqlmodel import Field

from app.models.code_entity import CodedEntityBase

CUSTOMER_CODE_LENGTH = 5
CUSTOMER_NAME_MAX_LENGTH = 100


class Customer(CodedEntityBase, table=True):
    __tablename__ = "customers"

    code: str = Field(primary_key=True, max_length=CUSTOMER_CODE_LENGTH)
    name: str = Field(max_length=CUSTOMER_NAME_MAX_LENGTH, unique=True, nullable=False)
