#!/usr/bin/env python3
"""
Seed script to create a demo store with products, an open register and a sample order
"""

import asyncio
import uuid
from decimal import Decimal


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from orderflow.database import SessionLocal, engine, Base
    from orderflow.models import (
        CashRegister,
        PaymentMethod,
        PaymentTerminalConfig,
        Product,
        Tenant,
    )
    from orderflow.orders.status_handler import StatusChangeHandler
    from orderflow.schemas.order import OrderCreate, OrderItemCreate

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo tenant already exists
        result = await db.execute(select(Tenant).where(Tenant.slug == "cafe"))
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo tenant...")

        tenant = Tenant(
            id=uuid.uuid4(),
            name="Cafe Central",
            slug="cafe",
            timezone="America/Mexico_City",
            tax_rate=Decimal("0.16"),
        )
        db.add(tenant)
        await db.flush()

        print(f"Created tenant: {tenant.name} (ID: {tenant.id})")

        products_data = [
            {"sku": "LAT-01", "name": "Latte", "price": Decimal("55.00"), "stock_quantity": 40},
            {"sku": "CAP-01", "name": "Cappuccino", "price": Decimal("52.00"), "stock_quantity": 40},
            {"sku": "CRO-01", "name": "Croissant", "price": Decimal("38.00"), "stock_quantity": 12},
            {"sku": "SAN-01", "name": "Turkey Sandwich", "price": Decimal("95.00"), "stock_quantity": 8},
            {"sku": "WAT-01", "name": "Tap Water", "price": Decimal("0.00"), "stock_quantity": 0, "track_stock": False},
        ]

        products = []
        for product_data in products_data:
            product = Product(tenant_id=tenant.id, **product_data)
            db.add(product)
            products.append(product)

        register = CashRegister(
            tenant_id=tenant.id,
            opened_by="demo@cafe.example",
            opening_amount=Decimal("500.00"),
        )
        db.add(register)

        # Replace with real credentials from the Clip dashboard
        db.add(
            PaymentTerminalConfig(
                tenant_id=tenant.id,
                provider="clip",
                api_key="demo-api-key",
                secret_key="demo-secret-key",
            )
        )

        await db.commit()

        handler = StatusChangeHandler(db)
        order = await handler.create_order(
            tenant,
            OrderCreate(
                customer_name="Ana Lopez",
                customer_phone="+525512345678",
                notification_method="sms",
                items=[
                    OrderItemCreate(
                        product_id=products[0].id,
                        name=products[0].name,
                        quantity=2,
                        unit_price=products[0].price,
                    ),
                    OrderItemCreate(
                        product_id=products[2].id,
                        name=products[2].name,
                        quantity=1,
                        unit_price=products[2].price,
                    ),
                ],
                payment_method=PaymentMethod.CLIP,
                payment_reference="demo-clip-payment",
                cash_register_id=register.id,
            ),
            changed_by="seed",
        )

        print(f"""
Demo data created successfully!

Tenant: {tenant.name}
  ID: {tenant.id}

Products: {len(products)} created
Cash register: {register.id}

Sample order: {order.order_number} ({order.total})
  Awaiting Clip payment "demo-clip-payment". Confirm it with:

  curl -X POST http://localhost:8000/webhooks/clip \\
    -H 'Content-Type: application/json' \\
    -d '{{"event": "payment.success", "data": {{"id": "demo-clip-payment"}}}}'
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
