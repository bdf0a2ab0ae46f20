from ivms.models.models import RentalCompany
from ivms.services.resource_service import ResourceService


class RentalCompanyService(ResourceService[RentalCompany]):
    """Rental companies: the plain core contract keyed by ``name``."""

    model = RentalCompany
    label = "Rental company"
    natural_keys = ("name",)
    conflict_messages = {"name": "A rental company with this name already exists"}
