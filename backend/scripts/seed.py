"""
Seed a development database with demo accounts.

Creates (skipping anything that already exists):
  - admin      admin@fuelgo.com / Admin@123
  - 2 vendors  john@quickfuel.com, jane@citygas.com (verified, with fuel listings)
  - 1 driver   attached to Quick Fuel Station
  - 1 customer customer@fuelgo.com

Run from the backend/ directory:
    python scripts/seed.py
"""
import asyncio
import os
import sys

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import async_session, init_db
from domain.enums import UserRole, UserStatus, VerificationStatus
from services import auth_service, driver_service, product_service

PASSWORD = "password123"

VENDORS = [
    {
        "first_name": "John",
        "last_name": "Doe",
        "email": "john@quickfuel.com",
        "phone": "+2341234567890",
        "business_name": "Quick Fuel Station",
        "street": "123 Victoria Island Road",
        "coordinates": (6.4281, 3.4219),
        "bank": ("First Bank", "1234567890"),
        "products": [
            ("PMS", "Premium Motor Spirit", 617.0, 20000.0),
            ("DIESEL", "Automotive Gas Oil", 1150.0, 8000.0),
        ],
    },
    {
        "first_name": "Jane",
        "last_name": "Smith",
        "email": "jane@citygas.com",
        "phone": "+2349876543210",
        "business_name": "City Gas Station",
        "street": "45 Ikeja Road",
        "coordinates": (6.6018, 3.3494),
        "bank": ("UBA", "0987654321"),
        "hours": ("07:00", "21:00"),
        "products": [
            ("PMS", "Premium Motor Spirit", 620.0, 15000.0),
            ("GAS", "Cooking Gas (LPG)", 950.0, 2500.0),
            ("KEROSENE", "Household Kerosene", 1300.0, 3000.0),
        ],
    },
]


async def _exists(db, email: str) -> bool:
    return await auth_service.get_user_by_email(db, email) is not None


async def seed() -> None:
    await init_db()

    async with async_session() as db:
        if not await _exists(db, "admin@fuelgo.com"):
            await auth_service.create_user(
                db,
                first_name="Admin",
                last_name="User",
                email="admin@fuelgo.com",
                password="Admin@123",
                phone="+2348000000000",
                role=UserRole.ADMIN.value,
                status=UserStatus.ACTIVE.value,
            )
            print("✅ Admin created: admin@fuelgo.com / Admin@123")

        first_vendor = None
        for spec in VENDORS:
            if await _exists(db, spec["email"]):
                print(f"⏭️  Vendor {spec['email']} already exists")
                continue
            vendor = auth_service.build_default_vendor(spec["business_name"], spec["street"])
            vendor.latitude, vendor.longitude = spec["coordinates"]
            vendor.verification_status = VerificationStatus.VERIFIED.value
            vendor.bank_name, vendor.account_number = spec["bank"]
            vendor.account_name = spec["business_name"]
            vendor.fuel_types = []
            if "hours" in spec:
                vendor.opening_time, vendor.closing_time = spec["hours"]
            await auth_service.create_user(
                db,
                first_name=spec["first_name"],
                last_name=spec["last_name"],
                email=spec["email"],
                password=PASSWORD,
                phone=spec["phone"],
                role=UserRole.VENDOR.value,
                status=UserStatus.ACTIVE.value,
                vendor=vendor,
            )
            for fuel_type, name, price, qty in spec["products"]:
                await product_service.create_product(
                    db,
                    vendor=vendor,
                    type=fuel_type,
                    name=name,
                    price_per_unit=price,
                    available_qty=qty,
                    min_order_qty=5,
                    max_order_qty=2000,
                )
            first_vendor = first_vendor or vendor
            print(f"✅ Vendor created: {spec['business_name']} ({len(spec['products'])} products)")

        if first_vendor and not await _exists(db, "driver@quickfuel.com"):
            await driver_service.create_vendor_driver(
                db,
                vendor=first_vendor,
                first_name="Musa",
                last_name="Bello",
                email="driver@quickfuel.com",
                phone="+2348011111111",
                password=PASSWORD,
                license_number="LAG-DRV-0001",
                vehicle_type="tanker",
                vehicle_plate="LND-123-XY",
                vehicle_capacity=5000,
            )
            print("✅ Driver created: driver@quickfuel.com")

        if not await _exists(db, "customer@fuelgo.com"):
            await auth_service.create_user(
                db,
                first_name="Ada",
                last_name="Okafor",
                email="customer@fuelgo.com",
                password=PASSWORD,
                phone="+2348022222222",
                role=UserRole.CUSTOMER.value,
                status=UserStatus.ACTIVE.value,
            )
            print("✅ Customer created: customer@fuelgo.com")

        await db.commit()

    print(f"\n🎉 Seeding complete. Demo password for non-admin accounts: {PASSWORD}")


if __name__ == "__main__":
    asyncio.run(seed())
