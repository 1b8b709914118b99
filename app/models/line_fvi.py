"""LineFvi model: final visual inspection production lines."""

from sqlmodel import Field

from app.models.code_entity import CodedEntityBase

LINE_FVI_CODE_LENGTH = 5
LINE_FVI_NAME_MAX_LENGTH = 100


class LineFvi(CodedEntityBase, table=True):
    __tablename__ = "line_fvi"

    code: str = Field(primary_key=True, max_length=LINE_FVI_CODE_LENGTH)
    name: str = Field(max_length=LINE_FVI_NAME_MAX_LENGTH, unique=True, nullable=False)
