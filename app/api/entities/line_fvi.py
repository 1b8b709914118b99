"""Line FVI endpoints."""

from app.api.code_entity.routes import create_code_entity
from app.models.line_fvi import LineFvi
from app.services.code_entity.rules import upper_code
from app.services.line_fvi import LINE_FVI_CONFIG, validate_line_fvi

line_fvi = create_code_entity(
    LineFvi,
    LINE_FVI_CONFIG,
    extra_rules=(validate_line_fvi,),
    normalize_code=upper_code,
    check_code=True,
)

router = line_fvi.router
