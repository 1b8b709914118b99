"""Line FVI entity: final visual inspection production lines."""

from app.models.line_fvi import LINE_FVI_CODE_LENGTH, LINE_FVI_NAME_MAX_LENGTH
from app.services.code_entity.config import make_entity_config
from app.services.code_entity.rules import alphanumeric_code_rule

LINE_FVI_CONFIG = make_entity_config(
    "line-fvi",
    "line_fvi",
    LINE_FVI_CODE_LENGTH,
    api_path="/api/line-fvi",
)

validate_line_fvi = alphanumeric_code_rule(LINE_FVI_NAME_MAX_LENGTH)
