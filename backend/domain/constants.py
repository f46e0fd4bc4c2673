"""
Domain constants used across services/routers.
"""
from domain.enums import FuelType, OrderStatus

# Fuel sold by weight; everything else by volume
UNIT_BY_FUEL_TYPE = {
    FuelType.PMS.value: "litre",
    FuelType.DIESEL.value: "litre",
    FuelType.KEROSENE.value: "litre",
    FuelType.GAS.value: "kg",
}

# Vendor profile defaults applied at registration
DEFAULT_VENDOR_CITY = "Lagos"
DEFAULT_VENDOR_STATE = "Lagos"
DEFAULT_VENDOR_COORDINATES = (6.4281, 3.4219)  # (lat, lng)
DEFAULT_VENDOR_FUEL_TYPES = [FuelType.PMS.value, FuelType.DIESEL.value]
DEFAULT_OPENING_TIME = "06:00"
DEFAULT_CLOSING_TIME = "22:00"
WEEK_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
DEFAULT_PAYMENT_METHODS = ["cash", "card", "transfer"]

# Orders a customer may still cancel
CANCELLABLE_STATUSES = {OrderStatus.PENDING.value, OrderStatus.ACCEPTED.value}

# Orders that still hold a driver
ACTIVE_DELIVERY_STATUSES = {
    OrderStatus.ASSIGNED.value,
    OrderStatus.PICKED_UP.value,
    OrderStatus.IN_TRANSIT.value,
}

# Orders that are finished and no longer block product deletion
CLOSED_ORDER_STATUSES = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}

# dateRange query values → lookback in days ("today" handled as midnight cut-off)
DATE_RANGE_DAYS = {"week": 7, "month": 30, "year": 365}

# Admin intervention reason bounds
ADMIN_REASON_MIN = 10
ADMIN_REASON_MAX = 500

# Audit trail listings return the newest entries only
ACTIVITY_LIST_LIMIT = 50

# Logo uploads
LOGO_CONTENT_PREFIX = "image/"
LOGO_URL_PREFIX = "/uploads/logos"

# Real-time rooms
ROOM_ALL = "all"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


def order_room(order_id: str) -> str:
    return f"order:{order_id}"
