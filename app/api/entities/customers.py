"""Customer endpoints, including code checks and prefix autocomplete."""

from app.api.code_entity.routes import create_code_entity
from app.models.customer import Customer
from app.services.code_entity.rules import upper_code
from app.services.customers import CUSTOMER_CONFIG, validate_customer

customers = create_code_entity(
    Customer,
    CUSTOMER_CONFIG,
    extra_rules=(validate_customer,),
    normalize_code=upper_code,
    check_code=True,
    prefix_lookup=True,
)

router = customers.router
