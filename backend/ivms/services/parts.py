import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy import or_

from ivms.exceptions import BusinessRuleError
from ivms.models.enums import CarType
from ivms.models.enums import TrackingMode
from ivms.models.models import Part
from ivms.services.resource_service import ResourceService

logger = logging.getLogger(__name__)


class PartService(ResourceService[Part]):
    """Spare parts inventory.

    Parts are tracked either by *quantity* (a counter) or by *serial number*
    (one row per physical item, quantity always 1).  Only serial-numbered
    parts carry a natural key.
    """

    model = Part
    label = "Part"
    natural_keys = ("serial_number",)
    order_key = "name"
    conflict_messages = {"serial_number": "A part with this serial number already exists"}

    def active_clause(self):
        return Part.is_deleted.is_(False)

    def is_active(self, row: Part) -> bool:
        return not row.is_deleted

    def create_defaults(self) -> Dict[str, Any]:
        return {"is_deleted": False}

    def deactivate_values(self) -> Dict[str, Any]:
        return {"is_deleted": True}

    def activate_values(self) -> Dict[str, Any]:
        return {"is_deleted": False}

    # Tracking-mode rules --------------------------------------------------

    def create(self, data: Dict[str, Any]) -> Part:
        values = dict(data)
        mode = values.get("tracking_mode")
        quantity = values.get("quantity")
        serial = values.get("serial_number")

        if mode == TrackingMode.QUANTITY:
            if quantity is None or quantity < 0:
                raise BusinessRuleError("Quantity is required for quantity-based tracking")
            if serial:
                raise BusinessRuleError("Serial number should not be provided for quantity-based tracking")
            values["serial_number"] = None
        elif mode == TrackingMode.SERIAL_NUMBER:
            if not serial:
                raise BusinessRuleError("Serial number is required for serial-number-based tracking")
            if quantity is not None and quantity != 1:
                raise BusinessRuleError("Quantity must be 1 for serial-number-based tracking")
            values["quantity"] = 1

        return super().create(values)

    def before_update(self, row: Part, data: Dict[str, Any]) -> None:
        if row.is_deleted:
            raise BusinessRuleError("Cannot update a deleted part")
        if data.get("quantity") is not None:
            if row.tracking_mode != TrackingMode.QUANTITY:
                raise BusinessRuleError("Cannot update quantity for serial-number-based parts")
            if data["quantity"] < 0:
                raise BusinessRuleError("Quantity cannot be negative")

    def adjust_quantity(self, part_id: str, adjustment: int) -> Part:
        part = self.find_one(part_id)
        if part.is_deleted:
            raise BusinessRuleError("Cannot adjust quantity of a deleted part")
        if part.tracking_mode != TrackingMode.QUANTITY:
            raise BusinessRuleError("Cannot adjust quantity for serial-number-based parts")

        new_quantity = (part.quantity or 0) + adjustment
        if new_quantity < 0:
            raise BusinessRuleError("Insufficient quantity in stock")

        part.quantity = new_quantity
        self._commit(part)
        logger.info("Part %s quantity adjusted by %+d to %d", part_id, adjustment, new_quantity)
        return part

    # Queries -------------------------------------------------------------

    def search(
        self,
        *,
        search: Optional[str] = None,
        car_type: Optional[CarType] = None,
        car_model: Optional[str] = None,
        tracking_mode: Optional[TrackingMode] = None,
    ) -> List[Part]:
        query = self.db.query(Part).filter(self.active_clause())
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Part.name.ilike(pattern), Part.car_model.ilike(pattern)))
        if car_type is not None:
            query = query.filter(Part.car_type == car_type)
        if car_model:
            query = query.filter(Part.car_model.ilike(f"%{car_model}%"))
        if tracking_mode is not None:
            query = query.filter(Part.tracking_mode == tracking_mode)
        return query.order_by(Part.name.asc()).all()

    def by_car_type(self, car_type: CarType) -> List[Part]:
        return self.search(car_type=car_type)

    def low_stock(self, threshold: int = 5) -> List[Part]:
        return (
            self.db.query(Part)
            .filter(
                self.active_clause(),
                Part.tracking_mode == TrackingMode.QUANTITY,
                Part.quantity <= threshold,
            )
            .order_by(Part.quantity.asc())
            .all()
        )
