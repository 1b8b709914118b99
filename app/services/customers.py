"""Customer entity: the companies production lots are shipped to."""

from app.models.customer import CUSTOMER_CODE_LENGTH, CUSTOMER_NAME_MAX_LENGTH
from app.services.code_entity.config import make_entity_config
from app.services.code_entity.rules import alphanumeric_code_rule

CUSTOMER_CONFIG = make_entity_config(
    "customer",
    "customers",
    CUSTOMER_CODE_LENGTH,
    api_path="/api/customers",
)

validate_customer = alphanumeric_code_rule(CUSTOMER_NAME_MAX_LENGTH)
