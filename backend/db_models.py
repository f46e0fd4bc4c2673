"""
SQLAlchemy ORM models for the FuelGo marketplace.

Tables:
    users                     — every account (customer, vendor, driver, admin)
    vendors                   — fuel-selling business profile, 1:1 with a user
    drivers                   — delivery accounts, optionally tied to a vendor
    products                  — fuel listings owned by a vendor
    orders                    — customer purchases tracked through delivery
    order_items               — order line items with frozen unit price
    payments                  — gateway and cash payment records per order
    reviews                   — customer ratings of vendors and drivers
    notifications             — user-facing alerts
    notification_preferences  — per-user channel and category opt-ins
    notification_templates    — admin-managed message templates
    user_activities           — audit trail of logins and admin actions per account
    admin_invitations         — single-use tokens for onboarding new admins
"""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship

from database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


# ════════════════════════════════════════════════════════════════════
# Accounts
# ════════════════════════════════════════════════════════════════════

class User(Base):
    """Platform account. Role decides which dashboard and routes apply."""
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=_new_id)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    phone_number = Column(String(20), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="customer")  # customer | vendor | driver | admin
    status = Column(String(20), nullable=False, default="pending")  # pending | active | suspended | rejected
    last_login = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship(
        "Vendor", back_populates="user", uselist=False, lazy="selectin",
        cascade="all, delete-orphan",
    )
    driver = relationship(
        "Driver", back_populates="user", uselist=False, lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Vendor(Base):
    """Fuel-selling business profile."""
    __tablename__ = "vendors"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    business_name = Column(String(200), nullable=False)
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True, index=True)
    state = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    logo_url = Column(String(500), nullable=True)
    fuel_types = Column(JSON, nullable=False, default=list)  # ["PMS", "DIESEL", ...]
    opening_time = Column(String(5), nullable=False, default="06:00")
    closing_time = Column(String(5), nullable=False, default="22:00")
    operating_days = Column(JSON, nullable=False, default=list)
    payment_methods = Column(JSON, nullable=False, default=list)  # ["cash", "card", "transfer"]
    minimum_order = Column(Float, nullable=False, default=0.0)
    delivery_fee = Column(Float, nullable=False, default=0.0)
    license_number = Column(String(100), nullable=True)
    verification_status = Column(String(20), nullable=False, default="pending")  # pending | verified | rejected
    is_active = Column(Boolean, nullable=False, default=True)
    average_rating = Column(Float, nullable=False, default=0.0)
    total_ratings = Column(Integer, nullable=False, default=0)
    bank_name = Column(String(100), nullable=True)
    account_number = Column(String(20), nullable=True)
    account_name = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="vendor", lazy="selectin")
    products = relationship("Product", back_populates="vendor", lazy="select", passive_deletes=True)
    drivers = relationship("Driver", back_populates="vendor", lazy="select", passive_deletes=True)

    @property
    def is_verified(self) -> bool:
        return self.verification_status == "verified"


class Driver(Base):
    """Delivery account with vehicle, licence and live location."""
    __tablename__ = "drivers"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    vendor_id = Column(String(32), ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True, index=True)
    license_number = Column(String(50), nullable=False)
    license_expiry = Column(DateTime, nullable=True)
    license_type = Column(String(50), nullable=True)
    vehicle_type = Column(String(50), nullable=False)
    vehicle_plate = Column(String(20), nullable=False)
    vehicle_model = Column(String(100), nullable=True)
    vehicle_color = Column(String(50), nullable=True)
    vehicle_capacity = Column(Float, nullable=True)  # litres
    emergency_contact_name = Column(String(200), nullable=True)
    emergency_contact_phone = Column(String(20), nullable=True)
    emergency_contact_relationship = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="offline")  # available | busy | offline | suspended
    is_active = Column(Boolean, nullable=False, default=True)
    rating = Column(Float, nullable=False, default=0.0)
    total_ratings = Column(Integer, nullable=False, default=0)
    total_deliveries = Column(Integer, nullable=False, default=0)
    total_earnings = Column(Float, nullable=False, default=0.0)
    current_latitude = Column(Float, nullable=True)
    current_longitude = Column(Float, nullable=True)
    location_updated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="driver", lazy="selectin")
    vendor = relationship("Vendor", back_populates="drivers", lazy="select")

    __table_args__ = (
        Index("ix_drivers_vendor_status", "vendor_id", "status"),
    )


# ════════════════════════════════════════════════════════════════════
# Catalogue
# ════════════════════════════════════════════════════════════════════

class Product(Base):
    """A fuel listing. Unit follows the fuel type (kg for GAS, litres otherwise)."""
    __tablename__ = "products"

    id = Column(String(32), primary_key=True, default=_new_id)
    vendor_id = Column(String(32), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # PMS | DIESEL | KEROSENE | GAS
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price_per_unit = Column(Float, nullable=False)
    unit = Column(String(10), nullable=False, default="litre")  # litre | kg
    available_qty = Column(Float, nullable=False, default=0.0)
    min_order_qty = Column(Float, nullable=False, default=1.0)
    max_order_qty = Column(Float, nullable=False, default=1000.0)
    status = Column(String(20), nullable=False, default="available")  # available | out_of_stock | discontinued
    image_url = Column(String(500), nullable=True)
    specifications = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="products", lazy="selectin")

    __table_args__ = (
        Index("ix_products_vendor_type", "vendor_id", "type"),
    )


# ════════════════════════════════════════════════════════════════════
# Orders & Payments
# ════════════════════════════════════════════════════════════════════

class Order(Base):
    """Customer purchase tracked through the delivery lifecycle."""
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    vendor_id = Column(String(32), ForeignKey("vendors.id"), nullable=False, index=True)
    driver_id = Column(String(32), ForeignKey("drivers.id"), nullable=True, index=True)
    delivery_street = Column(String(255), nullable=False)
    delivery_city = Column(String(100), nullable=False)
    delivery_state = Column(String(100), nullable=False)
    delivery_latitude = Column(Float, nullable=True)
    delivery_longitude = Column(Float, nullable=True)
    delivery_instructions = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    # pending | accepted | assigned | picked_up | in_transit | delivered | cancelled
    payment_status = Column(String(20), nullable=False, default="pending")  # pending | paid | failed | refunded
    payment_method = Column(String(20), nullable=False, default="cash")  # cash | card | transfer
    subtotal = Column(Float, nullable=False)
    delivery_fee = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    estimated_delivery = Column(DateTime, nullable=True)
    actual_delivery_time = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    is_emergency = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("User", lazy="selectin")
    vendor = relationship("Vendor", lazy="selectin")
    driver = relationship("Driver", lazy="selectin")
    items = relationship(
        "OrderItem", back_populates="order", lazy="selectin",
        cascade="all, delete-orphan",
    )
    payments = relationship("Payment", back_populates="order", lazy="select")

    __table_args__ = (
        Index("ix_orders_vendor_status", "vendor_id", "status"),
        Index("ix_orders_driver_status", "driver_id", "status"),
    )

    @property
    def order_number(self) -> str:
        return self.id[-8:].upper()


class OrderItem(Base):
    """Order line item. Price is frozen at order time."""
    __tablename__ = "order_items"

    id = Column(String(32), primary_key=True, default=_new_id)
    order_id = Column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(32), ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Float, nullable=False)
    price_per_unit = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="selectin")


class Payment(Base):
    """Gateway or cash payment attempt for an order."""
    __tablename__ = "payments"

    id = Column(String(32), primary_key=True, default=_new_id)
    order_id = Column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    method = Column(String(20), nullable=False)  # paystack | flutterwave | cash
    status = Column(String(20), nullable=False, default="pending")  # pending | success | failed | refunded
    transaction_ref = Column(String(100), unique=True, nullable=False, index=True)
    gateway_response = Column(JSON, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    refund_amount = Column(Float, nullable=True)
    refund_reason = Column(Text, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="payments")


# ════════════════════════════════════════════════════════════════════
# Reviews
# ════════════════════════════════════════════════════════════════════

class Review(Base):
    """Customer rating of a vendor or driver for a delivered order."""
    __tablename__ = "reviews"

    id = Column(String(32), primary_key=True, default=_new_id)
    order_id = Column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    vendor_id = Column(String(32), ForeignKey("vendors.id"), nullable=False, index=True)
    driver_id = Column(String(32), ForeignKey("drivers.id"), nullable=True, index=True)
    type = Column(String(10), nullable=False, default="vendor")  # vendor | driver
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)
    vendor_response = Column(String(500), nullable=True)
    responded_at = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active | hidden | reported
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reviewer = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("order_id", "reviewer_id", "type", name="uq_review_order_reviewer_type"),
    )


# ════════════════════════════════════════════════════════════════════
# Notifications
# ════════════════════════════════════════════════════════════════════

class Notification(Base):
    """User-facing alert. Delivered in-app plus any channels the user enabled."""
    __tablename__ = "notifications"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # ORDER_STATUS | PAYMENT | DELIVERY | ALERT | SYSTEM
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    priority = Column(String(10), nullable=False, default="MEDIUM")  # LOW | MEDIUM | HIGH | URGENT
    channels = Column(JSON, nullable=False, default=list)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )


class NotificationPreference(Base):
    """Per-user channel and category switches."""
    __tablename__ = "notification_preferences"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    email_enabled = Column(Boolean, nullable=False, default=True)
    sms_enabled = Column(Boolean, nullable=False, default=False)
    push_enabled = Column(Boolean, nullable=False, default=True)
    in_app_enabled = Column(Boolean, nullable=False, default=True)
    order_updates = Column(Boolean, nullable=False, default=True)
    payment_updates = Column(Boolean, nullable=False, default=True)
    system_updates = Column(Boolean, nullable=False, default=True)
    marketing = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class NotificationTemplate(Base):
    """Admin-managed message with {placeholder} variables."""
    __tablename__ = "notification_templates"

    id = Column(String(32), primary_key=True, default=_new_id)
    name = Column(String(100), unique=True, nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="SYSTEM")
    priority = Column(String(10), nullable=False, default="MEDIUM")
    target_roles = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ════════════════════════════════════════════════════════════════════
# Audit & admin onboarding
# ════════════════════════════════════════════════════════════════════

class UserActivity(Base):
    """
    Audit trail entry about one account.

    `user_id` is the account the entry is about; `performed_by` is the admin
    who acted on it, or None when the user acted on their own account.
    """
    __tablename__ = "user_activities"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    performed_by = Column(String(32), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(30), nullable=False, index=True)  # see domain.enums.ActivityType
    status = Column(String(10), nullable=False, default="success")  # success | failed
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", foreign_keys=[user_id], lazy="selectin")
    actor = relationship("User", foreign_keys=[performed_by], lazy="selectin")


class AdminInvitation(Base):
    """Single-use token that lets the invited email register as an admin."""
    __tablename__ = "admin_invitations"

    id = Column(String(32), primary_key=True, default=_new_id)
    token = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    created_by = Column(String(32), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime, nullable=True)
    used_by = Column(String(32), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    creator = relationship("User", foreign_keys=[created_by], lazy="selectin")
    registered_user = relationship("User", foreign_keys=[used_by], lazy="selectin")

    def is_open(self, now: datetime | None = None) -> bool:
        return not self.used and self.expires_at > (now or datetime.utcnow())
