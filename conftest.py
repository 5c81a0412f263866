"""
Fixtures compartidos para los tests de reportes

Cada test recibe una base SQLite en memoria (aiosqlite) con el esquema
completo y, si lo pide, datos de dos empresas para validar el aislamiento
multi-tenant.
"""

import os

# Settings se instancian al importar bizreports; deben verse antes
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bizreports.database.database import Base, get_async_db
from bizreports.main import app
from bizreports.modules.branches.models import Branch
from bizreports.modules.categories.models import Category
from bizreports.modules.products.models import MovementDirection, Product, StockLevel, StockMovement
from bizreports.modules.reservations.models import Reservation
from bizreports.modules.sales.models import Payment, Sale, SaleItem, SaleStatus


TENANT_A = UUID("aaaaaaaa-0000-4000-8000-000000000001")
TENANT_B = UUID("bbbbbbbb-0000-4000-8000-000000000002")
USER_ID = UUID("cccccccc-0000-4000-8000-000000000003")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ===== BASE DE DATOS =====

@pytest_asyncio.fixture
async def engine():
    """Motor SQLite en memoria compartido por todas las sesiones del test"""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ===== DATOS DE PRUEBA =====

@pytest_asyncio.fixture
async def seed(db_session):
    """
    Datos de dos empresas.

    Empresa A (rango de referencia 2024-03-01 .. 2024-03-02):
    - Sucursales Principal y Norte; categorías Bebidas y Abarrotes
    - Agua: sin stock (crítico); Jugo: 4 con mínimo 5 (bajo)
    - Pan: 10 + 3 en dos sucursales, sin categoría (normal)
    - Arroz: 100 con mínimo 10 (sobrestock)
    - Ventas: V-001 y V-002 completadas, V-003 anulada, V-004 borrador
      un milisegundo después del cierre del rango
    Empresa B: una sucursal, un producto y una venta en el mismo rango.
    """
    db = db_session

    principal = Branch(tenant_id=TENANT_A, name="Principal", is_main=True)
    norte = Branch(tenant_id=TENANT_A, name="Norte")
    bebidas = Category(tenant_id=TENANT_A, name="Bebidas")
    abarrotes = Category(tenant_id=TENANT_A, name="Abarrotes")
    db.add_all([principal, norte, bebidas, abarrotes])
    await db.flush()

    agua = Product(tenant_id=TENANT_A, name="Agua", sku="BEB-001", price_sale=Decimal("2.50"), category_id=bebidas.id)
    jugo = Product(tenant_id=TENANT_A, name="Jugo", sku="BEB-002", price_sale=Decimal("4.00"), category_id=bebidas.id)
    pan = Product(tenant_id=TENANT_A, name="Pan", sku="PAN-001", price_sale=Decimal("2.00"))
    arroz = Product(tenant_id=TENANT_A, name="Arroz", sku="ABA-001", price_sale=Decimal("5.00"), category_id=abarrotes.id)
    db.add_all([agua, jugo, pan, arroz])
    await db.flush()

    db.add_all([
        StockLevel(tenant_id=TENANT_A, product_id=agua.id, branch_id=principal.id,
                   qty_on_hand=0, qty_reserved=0, avg_cost=Decimal("2.00"), min_level=5),
        StockLevel(tenant_id=TENANT_A, product_id=jugo.id, branch_id=principal.id,
                   qty_on_hand=4, qty_reserved=1, avg_cost=Decimal("3.00"), min_level=5),
        StockLevel(tenant_id=TENANT_A, product_id=pan.id, branch_id=principal.id,
                   qty_on_hand=10, qty_reserved=0, avg_cost=Decimal("1.50"), min_level=5),
        StockLevel(tenant_id=TENANT_A, product_id=pan.id, branch_id=norte.id,
                   qty_on_hand=3, qty_reserved=0, avg_cost=Decimal("1.50"), min_level=0),
        StockLevel(tenant_id=TENANT_A, product_id=arroz.id, branch_id=principal.id,
                   qty_on_hand=100, qty_reserved=0, avg_cost=Decimal("4.00"), min_level=10),
    ])

    db.add_all([
        StockMovement(tenant_id=TENANT_A, product_id=arroz.id, branch_id=principal.id,
                      direction=MovementDirection.IN.value, qty=100, unit_cost=Decimal("4.00"),
                      source="purchase", created_at=utc(2024, 3, 1, 10, 0)),
        StockMovement(tenant_id=TENANT_A, product_id=jugo.id, branch_id=principal.id,
                      direction=MovementDirection.OUT.value, qty=6, unit_cost=Decimal("3.00"),
                      source="sale", note="V-001", created_at=utc(2024, 3, 1, 15, 0)),
        StockMovement(tenant_id=TENANT_A, product_id=pan.id, branch_id=norte.id,
                      direction=MovementDirection.IN.value, qty=3, unit_cost=Decimal("1.50"),
                      source="transfer", created_at=utc(2024, 3, 2, 9, 0)),
        StockMovement(tenant_id=TENANT_A, product_id=arroz.id, branch_id=principal.id,
                      direction=MovementDirection.OUT.value, qty=5, unit_cost=Decimal("4.00"),
                      source="adjustment", created_at=utc(2024, 3, 5, 8, 0)),
    ])

    v1 = Sale(tenant_id=TENANT_A, branch_id=principal.id, number="V-001",
              status=SaleStatus.COMPLETED.value, sale_date=utc(2024, 3, 1, 10, 0),
              subtotal=Decimal("100.00"), total=Decimal("100.00"))
    v2 = Sale(tenant_id=TENANT_A, branch_id=principal.id, number="V-002",
              status=SaleStatus.COMPLETED.value, sale_date=utc(2024, 3, 2, 23, 59, 59, 999000),
              subtotal=Decimal("50.00"), total=Decimal("50.00"))
    v3 = Sale(tenant_id=TENANT_A, branch_id=norte.id, number="V-003",
              status=SaleStatus.CANCELLED.value, sale_date=utc(2024, 3, 2, 12, 0),
              subtotal=Decimal("0"), total=Decimal("0"))
    v4 = Sale(tenant_id=TENANT_A, branch_id=norte.id, number="V-004",
              status=SaleStatus.DRAFT.value, sale_date=utc(2024, 3, 3, 0, 0, 0),
              subtotal=Decimal("30.00"), total=Decimal("30.00"))
    db.add_all([v1, v2, v3, v4])
    await db.flush()

    db.add_all([
        SaleItem(tenant_id=TENANT_A, sale_id=v1.id, product_id=arroz.id, quantity=20, unit_price=Decimal("5.00")),
        SaleItem(tenant_id=TENANT_A, sale_id=v1.id, product_id=jugo.id, quantity=2, unit_price=Decimal("4.00")),
        SaleItem(tenant_id=TENANT_A, sale_id=v2.id, product_id=pan.id, quantity=13, unit_price=Decimal("2.00")),
        SaleItem(tenant_id=TENANT_A, sale_id=v3.id, product_id=arroz.id, quantity=50, unit_price=Decimal("5.00")),
        SaleItem(tenant_id=TENANT_A, sale_id=v4.id, product_id=agua.id, quantity=1, unit_price=Decimal("2.50")),
        Payment(tenant_id=TENANT_A, sale_id=v1.id, branch_id=principal.id, method="cash",
                amount=Decimal("100.00"), reference="REF-1", payment_date=utc(2024, 3, 1, 10, 5)),
        Reservation(tenant_id=TENANT_A, branch_id=principal.id, code="R-001", guest_name="Ana Gómez",
                    space_name="Habitación 101", channel="web", occupants=2,
                    check_in=utc(2024, 3, 1, 15, 0), check_out=utc(2024, 3, 2, 11, 0),
                    total_amount=Decimal("320.00")),
        Reservation(tenant_id=TENANT_A, branch_id=principal.id, code="R-002", guest_name="Luis_Pérez 100%",
                    space_name="Habitación 102", channel=None, occupants=1,
                    check_in=utc(2024, 3, 2, 14, 0), total_amount=Decimal("150.00")),
    ])

    # Empresa B
    sede_b = Branch(tenant_id=TENANT_B, name="Principal")
    db.add(sede_b)
    await db.flush()
    agua_b = Product(tenant_id=TENANT_B, name="Agua B", sku="BEB-001", price_sale=Decimal("3.00"))
    db.add(agua_b)
    await db.flush()
    venta_b = Sale(tenant_id=TENANT_B, branch_id=sede_b.id, number="B-900",
                   status=SaleStatus.COMPLETED.value, sale_date=utc(2024, 3, 1, 12, 0),
                   subtotal=Decimal("999.00"), total=Decimal("999.00"))
    db.add_all([
        StockLevel(tenant_id=TENANT_B, product_id=agua_b.id, branch_id=sede_b.id,
                   qty_on_hand=50, avg_cost=Decimal("1.00"), min_level=5),
        StockMovement(tenant_id=TENANT_B, product_id=agua_b.id, branch_id=sede_b.id,
                      direction=MovementDirection.IN.value, qty=50, source="purchase",
                      created_at=utc(2024, 3, 1, 9, 0)),
        venta_b,
    ])

    await db.commit()

    return SimpleNamespace(
        principal=principal, norte=norte, bebidas=bebidas, abarrotes=abarrotes,
        agua=agua, jugo=jugo, pan=pan, arroz=arroz,
        ventas=[v1, v2, v3, v4], sede_b=sede_b, agua_b=agua_b, venta_b=venta_b,
    )


# ===== CLIENTE HTTP =====

@pytest_asyncio.fixture
async def api_client(session_factory):
    """Cliente HTTP asíncrono con la sesión de la base de prueba"""
    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def headers_a():
    return {"X-Company-ID": str(TENANT_A), "X-User-ID": str(USER_ID)}
