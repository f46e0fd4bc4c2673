"""
JSON shapes for ORM rows.

Routers hand these dicts to success_response(); keys are camelCase because
the dashboards consume them directly.
"""
from datetime import datetime
from typing import Any

from db_models import (
    User, Vendor, Driver, Product, Order, OrderItem, Payment, Review,
    Notification, NotificationPreference, NotificationTemplate, UserActivity, AdminInvitation,
)


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ── Accounts ────────────────────────────────────────────────────────

def user_to_dict(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "email": user.email,
        "phoneNumber": user.phone_number,
        "role": user.role,
        "status": user.status,
        "lastLogin": iso(user.last_login),
        "rejectionReason": user.rejection_reason,
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }


def user_brief(user: User | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return {"id": user.id, "firstName": user.first_name, "lastName": user.last_name, "email": user.email}


def activity_to_dict(entry: UserActivity) -> dict[str, Any]:
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "user": user_brief(entry.user),
        "performedBy": user_brief(entry.actor),
        "type": entry.type,
        "status": entry.status,
        "details": entry.details,
        "ipAddress": entry.ip_address,
        "userAgent": entry.user_agent,
        "timestamp": iso(entry.created_at),
    }


def invitation_to_dict(invitation: AdminInvitation) -> dict[str, Any]:
    """The token itself is only returned once, when the invitation is created."""
    return {
        "id": invitation.id,
        "email": invitation.email,
        "createdBy": user_brief(invitation.creator),
        "expiresAt": iso(invitation.expires_at),
        "used": invitation.used,
        "usedAt": iso(invitation.used_at),
        "usedBy": user_brief(invitation.registered_user),
        "createdAt": iso(invitation.created_at),
    }


def vendor_address(vendor: Vendor) -> dict[str, Any]:
    coordinates = None
    if vendor.latitude is not None and vendor.longitude is not None:
        coordinates = {"lat": vendor.latitude, "lng": vendor.longitude}
    return {
        "street": vendor.street,
        "city": vendor.city,
        "state": vendor.state,
        "coordinates": coordinates,
    }


def vendor_public(vendor: Vendor) -> dict[str, Any]:
    """Listing card shown to customers."""
    return {
        "id": vendor.id,
        "businessName": vendor.business_name,
        "logo": vendor.logo_url,
        "address": vendor_address(vendor),
        "contact": {
            "email": vendor.user.email if vendor.user else None,
            "phone": vendor.user.phone_number if vendor.user else None,
        },
        "isActive": vendor.is_active,
        "isVerified": vendor.is_verified,
        "averageRating": vendor.average_rating,
        "totalRatings": vendor.total_ratings,
        "deliveryFee": vendor.delivery_fee,
        "minimumOrder": vendor.minimum_order,
        "fuelTypes": vendor.fuel_types or [],
        "operatingHours": {
            "open": vendor.opening_time,
            "close": vendor.closing_time,
            "days": vendor.operating_days or [],
        },
    }


def vendor_profile(vendor: Vendor) -> dict[str, Any]:
    """Full profile for the owning vendor and admins."""
    data = vendor_public(vendor)
    data.update(
        {
            "userId": vendor.user_id,
            "verificationStatus": vendor.verification_status,
            "licenseNumber": vendor.license_number,
            "paymentMethods": vendor.payment_methods or [],
            "bankInfo": {
                "bankName": vendor.bank_name,
                "accountNumber": vendor.account_number,
                "accountName": vendor.account_name,
            },
            "owner": user_to_dict(vendor.user) if vendor.user else None,
            "createdAt": iso(vendor.created_at),
            "updatedAt": iso(vendor.updated_at),
        }
    )
    return data


def driver_to_dict(driver: Driver) -> dict[str, Any]:
    user = driver.user
    location = None
    if driver.current_latitude is not None and driver.current_longitude is not None:
        location = {
            "lat": driver.current_latitude,
            "lng": driver.current_longitude,
            "updatedAt": iso(driver.location_updated_at),
        }
    return {
        "id": driver.id,
        "userId": driver.user_id,
        "vendorId": driver.vendor_id,
        "firstName": user.first_name if user else None,
        "lastName": user.last_name if user else None,
        "email": user.email if user else None,
        "phoneNumber": user.phone_number if user else None,
        "licenseNumber": driver.license_number,
        "licenseExpiry": iso(driver.license_expiry),
        "licenseType": driver.license_type,
        "vehicle": {
            "type": driver.vehicle_type,
            "plate": driver.vehicle_plate,
            "model": driver.vehicle_model,
            "color": driver.vehicle_color,
            "capacity": driver.vehicle_capacity,
        },
        "emergencyContact": {
            "name": driver.emergency_contact_name,
            "phone": driver.emergency_contact_phone,
            "relationship": driver.emergency_contact_relationship,
        },
        "status": driver.status,
        "isActive": driver.is_active,
        "rating": driver.rating,
        "totalRatings": driver.total_ratings,
        "totalDeliveries": driver.total_deliveries,
        "totalEarnings": driver.total_earnings,
        "currentLocation": location,
        "createdAt": iso(driver.created_at),
    }


def account_to_dict(user: User) -> dict[str, Any]:
    """User plus the role profile attached to it, if any."""
    data = user_to_dict(user)
    if user.vendor is not None:
        data["vendor"] = vendor_profile(user.vendor) | {"owner": None}
    if user.driver is not None:
        data["driver"] = driver_to_dict(user.driver)
    return data


# ── Catalogue ───────────────────────────────────────────────────────

def product_to_dict(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "vendorId": product.vendor_id,
        "vendorName": product.vendor.business_name if product.vendor else None,
        "type": product.type,
        "name": product.name,
        "description": product.description,
        "pricePerUnit": product.price_per_unit,
        "unit": product.unit,
        "availableQty": product.available_qty,
        "minOrderQty": product.min_order_qty,
        "maxOrderQty": product.max_order_qty,
        "status": product.status,
        "imageUrl": product.image_url,
        "specifications": product.specifications or {},
        "createdAt": iso(product.created_at),
        "updatedAt": iso(product.updated_at),
    }


# ── Orders ──────────────────────────────────────────────────────────

def order_item_to_dict(item: OrderItem) -> dict[str, Any]:
    product = item.product
    return {
        "id": item.id,
        "productId": item.product_id,
        "productName": product.name if product else None,
        "fuelType": product.type if product else None,
        "unit": product.unit if product else None,
        "quantity": item.quantity,
        "pricePerUnit": item.price_per_unit,
        "totalPrice": item.total_price,
    }


def order_to_dict(order: Order) -> dict[str, Any]:
    customer = order.customer
    vendor = order.vendor
    driver = order.driver
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status,
        "paymentStatus": order.payment_status,
        "paymentMethod": order.payment_method,
        "subtotal": order.subtotal,
        "deliveryFee": order.delivery_fee,
        "totalAmount": order.total_amount,
        "isEmergency": order.is_emergency,
        "deliveryAddress": {
            "street": order.delivery_street,
            "city": order.delivery_city,
            "state": order.delivery_state,
            "coordinates": (
                {"lat": order.delivery_latitude, "lng": order.delivery_longitude}
                if order.delivery_latitude is not None and order.delivery_longitude is not None
                else None
            ),
        },
        "deliveryInstructions": order.delivery_instructions,
        "estimatedDelivery": iso(order.estimated_delivery),
        "actualDeliveryTime": iso(order.actual_delivery_time),
        "cancellationReason": order.cancellation_reason,
        "customer": (
            {
                "id": customer.id,
                "name": customer.full_name,
                "email": customer.email,
                "phoneNumber": customer.phone_number,
            }
            if customer
            else None
        ),
        "vendor": (
            {
                "id": vendor.id,
                "businessName": vendor.business_name,
                "logo": vendor.logo_url,
                "phoneNumber": vendor.user.phone_number if vendor.user else None,
            }
            if vendor
            else None
        ),
        "driver": (
            {
                "id": driver.id,
                "name": driver.user.full_name if driver.user else None,
                "phoneNumber": driver.user.phone_number if driver.user else None,
                "vehiclePlate": driver.vehicle_plate,
                "vehicleType": driver.vehicle_type,
                "status": driver.status,
                "currentLocation": (
                    {"lat": driver.current_latitude, "lng": driver.current_longitude}
                    if driver.current_latitude is not None and driver.current_longitude is not None
                    else None
                ),
            }
            if driver
            else None
        ),
        "items": [order_item_to_dict(i) for i in order.items],
        "createdAt": iso(order.created_at),
        "updatedAt": iso(order.updated_at),
    }


def order_brief(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status,
        "totalAmount": order.total_amount,
        "estimatedDelivery": iso(order.estimated_delivery),
    }


# ── Payments & Reviews ──────────────────────────────────────────────

def payment_to_dict(payment: Payment) -> dict[str, Any]:
    return {
        "id": payment.id,
        "orderId": payment.order_id,
        "userId": payment.user_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "method": payment.method,
        "status": payment.status,
        "reference": payment.transaction_ref,
        "paidAt": iso(payment.paid_at),
        "refund": (
            {
                "amount": payment.refund_amount,
                "reason": payment.refund_reason,
                "refundedAt": iso(payment.refunded_at),
            }
            if payment.refunded_at
            else None
        ),
        "createdAt": iso(payment.created_at),
    }


def review_to_dict(review: Review) -> dict[str, Any]:
    return {
        "id": review.id,
        "orderId": review.order_id,
        "vendorId": review.vendor_id,
        "driverId": review.driver_id,
        "type": review.type,
        "rating": review.rating,
        "comment": review.comment,
        "vendorResponse": review.vendor_response,
        "respondedAt": iso(review.responded_at),
        "status": review.status,
        "reviewer": (
            {"id": review.reviewer.id, "name": review.reviewer.full_name}
            if review.reviewer
            else None
        ),
        "createdAt": iso(review.created_at),
    }


# ── Notifications ───────────────────────────────────────────────────

def notification_to_dict(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "data": n.data or {},
        "priority": n.priority,
        "channels": n.channels or [],
        "isRead": n.is_read,
        "readAt": iso(n.read_at),
        "sentAt": iso(n.sent_at),
        "createdAt": iso(n.created_at),
    }


def preference_to_dict(p: NotificationPreference) -> dict[str, Any]:
    return {
        "email": p.email_enabled,
        "sms": p.sms_enabled,
        "push": p.push_enabled,
        "inApp": p.in_app_enabled,
        "orderUpdates": p.order_updates,
        "paymentUpdates": p.payment_updates,
        "systemUpdates": p.system_updates,
        "marketing": p.marketing,
    }


def template_to_dict(t: NotificationTemplate) -> dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "title": t.title,
        "message": t.message,
        "type": t.type,
        "priority": t.priority,
        "targetRoles": t.target_roles or [],
        "isActive": t.is_active,
        "createdAt": iso(t.created_at),
    }
