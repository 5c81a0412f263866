"""
Seed script: Populate a demo tenant with data for the reports.

What it creates:
- Branches (2): Principal and Sucursal Norte.
- Categories typical for a small store.
- Products: N (default 200) with unique SKUs and stock levels in both branches.
- Stock movements (IN for purchases, OUT for sales) spread over the last days.
- Sales with items and payments; some drafts and cancelled ones.
- Reservations for the reservas source.

Run with the project on PYTHONPATH:
    python scripts/seed_demo_data.py --tenant-id <uuid> --products 200 --sales 300 --days 60

Note: This is intended for development environments only.
"""

# Add project root to sys.path so `bizreports.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import asyncio
import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select

from bizreports.database.database import AsyncSessionLocal, create_tables
from bizreports.modules.branches.models import Branch
from bizreports.modules.categories.models import Category
from bizreports.modules.products.models import MovementDirection, Product, StockLevel, StockMovement
from bizreports.modules.reservations.models import Reservation, ReservationStatus
from bizreports.modules.sales.models import Payment, PaymentMethod, PaymentStatus, Sale, SaleItem, SaleStatus
import bizreports.modules.reports.models  # noqa: F401


CATEGORIES = ["Bebidas", "Lácteos", "Abarrotes", "Aseo", "Panadería", "Snacks"]
BRANCHES = ["Principal", "Sucursal Norte"]
SPACES = ["Habitación 101", "Habitación 102", "Cancha 1", "Salón Eventos"]
CHANNELS = ["direct", "web", "ota"]


def pick(seq):
    return random.choice(seq)


def random_moment(days: int) -> datetime:
    now = datetime.now(timezone.utc)
    return now - timedelta(days=random.randint(0, days), minutes=random.randint(0, 24 * 60))


async def get_or_create_branches(db, tenant_id):
    branches = []
    for i, name in enumerate(BRANCHES):
        result = await db.execute(select(Branch).where(Branch.tenant_id == tenant_id, Branch.name == name))
        branch = result.scalar_one_or_none()
        if not branch:
            branch = Branch(name=name, tenant_id=tenant_id, is_main=(i == 0), address=f"Calle {10 + i} # 1-23")
            db.add(branch)
            await db.flush()
        branches.append(branch)
    await db.commit()
    return branches


async def get_or_create_categories(db, tenant_id):
    categories = []
    for name in CATEGORIES:
        result = await db.execute(select(Category).where(Category.tenant_id == tenant_id, Category.name == name))
        category = result.scalar_one_or_none()
        if not category:
            category = Category(name=name, tenant_id=tenant_id)
            db.add(category)
            await db.flush()
        categories.append(category)
    await db.commit()
    return categories


def generate_sku(category: str, idx: int) -> str:
    c = ''.join([ch for ch in category.upper() if ch.isalpha()])[:3]
    return f"{c}-{idx:04d}"


async def create_products(db, tenant_id, categories, branches, product_count, days):
    products = []
    for i in range(product_count):
        category = pick(categories)
        sku = generate_sku(category.name, i)
        # Skip if SKU already exists for this tenant (idempotent re-run)
        result = await db.execute(select(Product).where(Product.tenant_id == tenant_id, Product.sku == sku))
        existing = result.scalar_one_or_none()
        if existing:
            products.append(existing)
            continue

        cost = Decimal(random.randint(500, 20000)) / Decimal(100)
        product = Product(
            name=f"{category.name} {random.randint(1, 999)}g",
            sku=sku,
            description=f"Producto de {category.name.lower()}",
            price_sale=(cost * Decimal("1.3")).quantize(Decimal("0.01")),
            category_id=category.id,
            tenant_id=tenant_id
        )
        db.add(product)
        await db.flush()

        for branch in branches:
            # Some products start without stock to exercise the critical status
            qty = 0 if random.random() < 0.08 else random.randint(1, 150)
            db.add(StockLevel(
                product_id=product.id,
                branch_id=branch.id,
                tenant_id=tenant_id,
                qty_on_hand=qty,
                avg_cost=cost,
                min_level=random.randint(2, 20)
            ))
            db.add(StockMovement(
                product_id=product.id,
                branch_id=branch.id,
                tenant_id=tenant_id,
                direction=MovementDirection.IN.value,
                qty=max(qty, 1),
                unit_cost=cost,
                source="purchase",
                note="Carga inicial",
                created_at=random_moment(days)
            ))

        products.append(product)
        if (i + 1) % 50 == 0:
            await db.commit()
    await db.commit()
    return products


async def create_sales(db, tenant_id, branches, products, sales_count, days):
    created = 0
    for n in range(sales_count):
        branch = pick(branches)
        sale_date = random_moment(days)
        roll = random.random()
        status = SaleStatus.CANCELLED if roll < 0.05 else SaleStatus.DRAFT if roll < 0.1 else SaleStatus.COMPLETED

        sale = Sale(
            id=uuid4(),
            tenant_id=tenant_id,
            branch_id=branch.id,
            number=f"V-{n + 1:05d}",
            status=status.value,
            payment_status=PaymentStatus.PAID.value if status == SaleStatus.COMPLETED else PaymentStatus.PENDING.value,
            sale_date=sale_date,
        )
        subtotal = Decimal("0")
        for product in random.sample(products, k=min(len(products), random.randint(1, 4))):
            qty = random.randint(1, 5)
            line_total = product.price_sale * qty
            subtotal += line_total
            sale.items.append(SaleItem(
                tenant_id=tenant_id,
                product_id=product.id,
                quantity=qty,
                unit_price=product.price_sale,
                total=line_total
            ))
            if status == SaleStatus.COMPLETED:
                db.add(StockMovement(
                    tenant_id=tenant_id,
                    product_id=product.id,
                    branch_id=branch.id,
                    direction=MovementDirection.OUT.value,
                    qty=qty,
                    unit_cost=product.price_sale,
                    source="sale",
                    note=sale.number,
                    created_at=sale_date
                ))

        tax = (subtotal * Decimal("0.19")).quantize(Decimal("0.01"))
        sale.subtotal = subtotal
        sale.tax_total = tax
        sale.total = subtotal + tax
        db.add(sale)

        if status == SaleStatus.COMPLETED:
            db.add(Payment(
                tenant_id=tenant_id,
                sale_id=sale.id,
                branch_id=branch.id,
                method=pick(list(PaymentMethod)).value,
                amount=sale.total,
                payment_date=sale_date
            ))

        created += 1
        if created % 100 == 0:
            await db.commit()
            print(f"  Sales created: {created}")
    await db.commit()
    return created


async def create_reservations(db, tenant_id, branches, reservations_count, days):
    for n in range(reservations_count):
        check_in = random_moment(days)
        db.add(Reservation(
            tenant_id=tenant_id,
            branch_id=pick(branches).id,
            code=f"R-{n + 1:04d}",
            guest_name=f"Huésped {n + 1}",
            space_name=pick(SPACES),
            channel=pick(CHANNELS),
            status=pick(list(ReservationStatus)).value,
            occupants=random.randint(1, 4),
            check_in=check_in,
            check_out=check_in + timedelta(days=random.randint(1, 5)),
            total_amount=Decimal(random.randint(80, 900)) * 1000
        ))
    await db.commit()
    return reservations_count


async def seed(args):
    tenant_id = UUID(args.tenant_id) if args.tenant_id else uuid4()

    if args.create_tables:
        await create_tables()

    async with AsyncSessionLocal() as db:
        branches = await get_or_create_branches(db, tenant_id)
        categories = await get_or_create_categories(db, tenant_id)

        print("Creating products and stock...")
        products = await create_products(db, tenant_id, categories, branches, args.products, args.days)
        print(f"Products: {len(products)}")

        print("Creating sales (affect inventory)...")
        sales_created = await create_sales(db, tenant_id, branches, products, args.sales, args.days)
        print(f"Sales created: {sales_created}")

        print("Creating reservations...")
        reservations_created = await create_reservations(db, tenant_id, branches, args.reservations, args.days)
        print(f"Reservations created: {reservations_created}")

    print("\nSeed completed.")
    print("Headers for API requests:")
    print(f"  X-Company-ID: {tenant_id}")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data for the reports")
    parser.add_argument("--tenant-id", default=None, help="Existing tenant UUID (random when omitted)")
    parser.add_argument("--products", type=int, default=200)
    parser.add_argument("--sales", type=int, default=300)
    parser.add_argument("--reservations", type=int, default=60)
    parser.add_argument("--days", type=int, default=60, help="Spread data over the last N days")
    parser.add_argument("--create-tables", action="store_true", help="Create tables before seeding")
    args = parser.parse_args()

    asyncio.run(seed(args))


if __name__ == "__main__":
    main()
