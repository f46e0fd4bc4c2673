"""
Domain enums shared by models, services and routers.

Values are the exact strings stored in the database and returned in JSON.
"""

from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    DRIVER = "driver"
    ADMIN = "admin"


class UserStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DriverStatus(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"
    SUSPENDED = "suspended"


class FuelType(str, Enum):
    PMS = "PMS"
    DIESEL = "DIESEL"
    KEROSENE = "KEROSENE"
    GAS = "GAS"


class ProductStatus(str, Enum):
    AVAILABLE = "available"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment state as seen on the order."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """How the customer intends to pay for an order."""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"


class PaymentProvider(str, Enum):
    PAYSTACK = "paystack"
    FLUTTERWAVE = "flutterwave"
    CASH = "cash"


class PaymentRecordStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"


class NotificationType(str, Enum):
    ORDER_STATUS = "ORDER_STATUS"
    PAYMENT = "PAYMENT"
    DELIVERY = "DELIVERY"
    ALERT = "ALERT"
    SYSTEM = "SYSTEM"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationChannel(str, Enum):
    IN_APP = "IN_APP"
    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"


class ReviewType(str, Enum):
    VENDOR = "vendor"
    DRIVER = "driver"


class ReviewStatus(str, Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"
    REPORTED = "reported"


class AdminOrderAction(str, Enum):
    FORCE_CANCEL = "force_cancel"
    FORCE_CONFIRM = "force_confirm"
    ASSIGN_DRIVER = "assign_driver"
    UPDATE_STATUS = "update_status"
    REFUND = "refund"


class BulkUserAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    SUSPEND = "suspend"
    ACTIVATE = "activate"
    DELETE = "delete"


class ActivityType(str, Enum):
    LOGIN = "login"
    PASSWORD_CHANGE = "password_change"
    PROFILE_UPDATE = "profile_update"
    STATUS_CHANGE = "status_change"
    ROLE_CHANGE = "role_change"
    VERIFICATION_UPDATE = "verification_update"
    ACCOUNT_DELETION = "account_deletion"
    BULK_ACTION = "bulk_action"
    ORDER_INTERVENTION = "order_intervention"
    ADMIN_INVITATION = "admin_invitation"


class ActivityStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class RealtimeEvent(str, Enum):
    ORDER_STATUS_UPDATED = "order_status_updated"
    PAYMENT_UPDATED = "payment_updated"
    NOTIFICATION_RECEIVED = "notification_received"
    DRIVER_LOCATION_UPDATED = "driver_location_updated"
    STOCK_ALERT = "stock_alert"
    ADMIN_BROADCAST = "admin_broadcast"


def values(enum_cls) -> list[str]:
    """All stored string values of an enum, in declaration order."""
    return [member.value for member in enum_cls]
