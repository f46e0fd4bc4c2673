"""
Repair inconsistent driver/order state.

  - orders that hold a driver but are still pending/accepted → assigned
  - busy drivers without any active delivery → available

Run from the backend/ directory:
    python scripts/fix_driver_order_status.py [--dry-run]
"""
import asyncio
import os
import sys
from datetime import datetime

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select, func

from database import async_session, init_db
from db_models import Order, Driver
from domain.constants import ACTIVE_DELIVERY_STATUSES
from domain.enums import OrderStatus, DriverStatus


async def fix_orders(db) -> int:
    res = await db.execute(
        select(Order).where(
            Order.driver_id.is_not(None),
            Order.status.in_([OrderStatus.PENDING.value, OrderStatus.ACCEPTED.value]),
        )
    )
    orders = list(res.scalars().all())
    for order in orders:
        print(f"🔧 Order {order.order_number}: {order.status} → assigned")
        order.status = OrderStatus.ASSIGNED.value
        order.updated_at = datetime.utcnow()
    return len(orders)


async def release_idle_drivers(db) -> int:
    res = await db.execute(select(Driver).where(Driver.status == DriverStatus.BUSY.value))
    released = 0
    for driver in res.scalars().all():
        active = await db.execute(
            select(func.count(Order.id)).where(
                Order.driver_id == driver.id,
                Order.status.in_(ACTIVE_DELIVERY_STATUSES),
            )
        )
        if active.scalar_one() == 0:
            print(f"🔧 Driver {driver.id} ({driver.vehicle_plate}): busy → available")
            driver.status = DriverStatus.AVAILABLE.value
            driver.updated_at = datetime.utcnow()
            released += 1
    return released


async def main(dry_run: bool = False) -> None:
    await init_db()
    async with async_session() as db:
        # Orders first, so freshly-assigned orders keep their driver busy
        fixed = await fix_orders(db)
        await db.flush()
        released = await release_idle_drivers(db)
        if dry_run:
            await db.rollback()
            print(f"\n(dry run) would fix {fixed} order(s) and release {released} driver(s)")
            return
        await db.commit()
    print(f"\n✅ Fixed {fixed} order(s), released {released} driver(s)")


if __name__ == "__main__":
    asyncio.run(main(dry_run="--dry-run" in sys.argv))
