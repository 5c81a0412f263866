"""
Inventory Reports Service

Handles the inventory rollups: KPI summary, classified stock per product,
recent movements, movements per day, stock valuation per category and
product turnover.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select

from .base import BaseReportService
from ..schemas import (
    InventarioFilters,
    InventarioKPI,
    MovimientoPorDia,
    MovimientoStock,
    RotacionProducto,
    StockPorCategoria,
    StockProducto,
    StockStatus,
)
from bizreports.core.config import settings
from bizreports.modules.branches.models import Branch
from bizreports.modules.categories.models import Category
from bizreports.modules.products.models import MovementDirection, Product, StockLevel, StockMovement
from bizreports.modules.sales.models import Sale, SaleItem, SaleStatus

logger = logging.getLogger(__name__)

NO_CATEGORY_LABEL = "Sin categoría"
NO_BRANCH_LABEL = "Sin sucursal"
NO_PRODUCT_NAME = "Sin nombre"

STATUS_ORDER = {
    StockStatus.CRITICAL: 0,
    StockStatus.LOW: 1,
    StockStatus.NORMAL: 2,
    StockStatus.OVER: 3,
}


def classify_stock(on_hand: Decimal, min_level: Decimal) -> StockStatus:
    """
    Stock status of a quantity against its minimum level.

    Exactly one status applies: critical without stock, low at or under the
    minimum, over above three times the minimum, normal otherwise. Without a
    minimum (0) only critical and normal are possible.
    """
    if on_hand <= 0:
        return StockStatus.CRITICAL
    if min_level > 0 and on_hand <= min_level:
        return StockStatus.LOW
    if min_level > 0 and on_hand > min_level * 3:
        return StockStatus.OVER
    return StockStatus.NORMAL


def _dec(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _movement_day(created_at: datetime) -> date:
    """Calendar day (UTC) of a movement timestamp"""
    if created_at.tzinfo is not None:
        return created_at.astimezone(timezone.utc).date()
    return created_at.date()


class InventoryReportService(BaseReportService):
    """Service for generating inventory rollups"""

    def _stock_query(self, filters: InventarioFilters):
        """Stock snapshots of the tenant joined with product, category and branch"""
        query = select(
            StockLevel.product_id,
            StockLevel.branch_id,
            StockLevel.qty_on_hand,
            StockLevel.qty_reserved,
            StockLevel.avg_cost,
            StockLevel.min_level,
            Product.name.label('product_name'),
            Product.sku.label('product_sku'),
            Product.category_id,
            Category.name.label('category_name'),
            Branch.name.label('branch_name'),
        ).join(
            Product, StockLevel.product_id == Product.id
        ).outerjoin(
            Category, Product.category_id == Category.id
        ).outerjoin(
            Branch, StockLevel.branch_id == Branch.id
        ).where(
            StockLevel.tenant_id == self.tenant_id,
            Product.tenant_id == self.tenant_id
        ).order_by(Product.name, Product.id, StockLevel.branch_id)
        return self._apply_branch_filter(query, StockLevel.branch_id, filters.branch_id)

    def _movement_query(self, filters: InventarioFilters, *columns):
        query = select(*columns).where(StockMovement.tenant_id == self.tenant_id)
        query = self._apply_date_filter(query, StockMovement.created_at, filters.date_from, filters.date_to)
        return self._apply_branch_filter(query, StockMovement.branch_id, filters.branch_id)

    async def get_kpis(self, filters: InventarioFilters) -> InventarioKPI:
        """
        Generate the inventory KPI summary.

        Units and valuation add every stock snapshot in scope. Stock health
        is classified once per product over its on-hand and minimum summed
        across the branches in scope, so the four status counts add up to
        the number of distinct products. Movement totals only cover the
        date range and are zero when there are no movements.
        """
        stock_rows = (await self._execute("inventario_kpis", self._stock_query(filters))).all()

        total_unidades = Decimal("0")
        valor_inventario = Decimal("0")
        per_product: Dict[UUID, List[Decimal]] = {}

        for row in stock_rows:
            qty = _dec(row.qty_on_hand)
            cost = _dec(row.avg_cost)
            total_unidades += qty
            valor_inventario += qty * cost

            totals = per_product.setdefault(row.product_id, [Decimal("0"), Decimal("0")])
            totals[0] += qty
            totals[1] += _dec(row.min_level)

        status_counts = {status: 0 for status in StockStatus}
        for on_hand, min_level in per_product.values():
            status_counts[classify_stock(on_hand, min_level)] += 1

        movement_rows = (await self._execute(
            "inventario_kpis",
            self._movement_query(filters, StockMovement.direction, StockMovement.qty)
        )).all()

        entradas = Decimal("0")
        salidas = Decimal("0")
        for movement in movement_rows:
            if movement.direction == MovementDirection.IN.value:
                entradas += _dec(movement.qty)
            else:
                salidas += _dec(movement.qty)

        return InventarioKPI(
            total_productos=len(per_product),
            total_unidades=total_unidades,
            valor_inventario=valor_inventario,
            productos_stock_critico=status_counts[StockStatus.CRITICAL],
            productos_stock_bajo=status_counts[StockStatus.LOW],
            productos_stock_normal=status_counts[StockStatus.NORMAL],
            productos_sobrestock=status_counts[StockStatus.OVER],
            movimientos_entrada=entradas,
            movimientos_salida=salidas,
        )

    async def get_stock_productos(self, filters: InventarioFilters) -> List[StockProducto]:
        """
        Generate the classified stock list.

        One item per product and branch, sorted critical first.
        """
        query = self._stock_query(filters)
        if filters.category_id:
            query = query.where(Product.category_id == filters.category_id)

        rows = (await self._execute("inventario_stock", query)).all()

        items = []
        for row in rows:
            qty = _dec(row.qty_on_hand)
            reserved = _dec(row.qty_reserved)
            cost = _dec(row.avg_cost)
            min_level = _dec(row.min_level)
            status = classify_stock(qty, min_level)

            if filters.stock_status and status != filters.stock_status:
                continue

            items.append(StockProducto(
                product_id=row.product_id,
                product_name=row.product_name or NO_PRODUCT_NAME,
                sku=row.product_sku or "",
                category_name=row.category_name,
                branch_id=row.branch_id,
                branch_name=row.branch_name or NO_BRANCH_LABEL,
                qty_on_hand=qty,
                qty_reserved=reserved,
                qty_available=qty - reserved,
                min_level=min_level,
                avg_cost=cost,
                valor_total=qty * cost,
                stock_status=status,
            ))

        items.sort(key=lambda item: STATUS_ORDER[item.stock_status])
        return items

    async def get_movimientos(
        self,
        filters: InventarioFilters,
        limit: Optional[int] = None
    ) -> List[MovimientoStock]:
        """Most recent movements in the date range with product and branch names"""
        limit = limit or settings.MOVEMENTS_DEFAULT_LIMIT
        query = self._movement_query(
            filters,
            StockMovement.id,
            StockMovement.product_id,
            StockMovement.direction,
            StockMovement.qty,
            StockMovement.unit_cost,
            StockMovement.source,
            StockMovement.note,
            StockMovement.created_at,
            Product.name.label('product_name'),
            Branch.name.label('branch_name'),
        ).outerjoin(
            Product, StockMovement.product_id == Product.id
        ).outerjoin(
            Branch, StockMovement.branch_id == Branch.id
        ).order_by(
            StockMovement.created_at.desc(), StockMovement.id
        ).limit(limit)

        rows = (await self._execute("inventario_movimientos", query)).all()

        return [
            MovimientoStock(
                id=row.id,
                product_name=row.product_name or f"Producto #{row.product_id}",
                branch_name=row.branch_name or NO_BRANCH_LABEL,
                direction=row.direction,
                qty=_dec(row.qty),
                unit_cost=_dec(row.unit_cost),
                source=row.source or "",
                note=row.note,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def get_movimientos_por_dia(self, filters: InventarioFilters) -> List[MovimientoPorDia]:
        """Inbound and outbound quantities per calendar day, oldest day first"""
        query = self._movement_query(
            filters, StockMovement.direction, StockMovement.qty, StockMovement.created_at
        ).order_by(StockMovement.created_at.asc())

        rows = (await self._execute("inventario_movimientos_por_dia", query)).all()

        grouped: Dict[date, Dict[str, Decimal]] = {}
        for row in rows:
            day = _movement_day(row.created_at)
            bucket = grouped.setdefault(day, {"entradas": Decimal("0"), "salidas": Decimal("0")})
            if row.direction == MovementDirection.IN.value:
                bucket["entradas"] += _dec(row.qty)
            else:
                bucket["salidas"] += _dec(row.qty)

        return [
            MovimientoPorDia(fecha=day, entradas=values["entradas"], salidas=values["salidas"])
            for day, values in sorted(grouped.items())
        ]

    async def get_stock_por_categoria(self, filters: InventarioFilters) -> List[StockPorCategoria]:
        """Stock valuation per category, highest valuation first"""
        rows = (await self._execute("inventario_stock_por_categoria", self._stock_query(filters))).all()

        grouped: Dict[Optional[UUID], Dict[str, Any]] = {}
        for row in rows:
            qty = _dec(row.qty_on_hand)
            cost = _dec(row.avg_cost)
            bucket = grouped.setdefault(row.category_id, {
                "name": row.category_name or NO_CATEGORY_LABEL,
                "productos": set(),
                "unidades": Decimal("0"),
                "valor": Decimal("0"),
            })
            bucket["productos"].add(row.product_id)
            bucket["unidades"] += qty
            bucket["valor"] += qty * cost

        items = [
            StockPorCategoria(
                category_id=category_id,
                category_name=values["name"],
                total_productos=len(values["productos"]),
                total_unidades=values["unidades"],
                valor_total=values["valor"],
            )
            for category_id, values in grouped.items()
        ]
        items.sort(key=lambda item: (-item.valor_total, item.category_name))
        return items

    async def _get_sold_units(self, filters: InventarioFilters) -> Dict[UUID, Decimal]:
        """
        Units sold per product in non-cancelled sales of the period.

        Sale ids are resolved first and their items fetched in batches of
        ``SALES_BATCH_SIZE`` ids; a failing batch aborts the whole rollup.
        """
        sales_query = select(Sale.id).where(
            Sale.tenant_id == self.tenant_id,
            Sale.status != SaleStatus.CANCELLED.value
        )
        sales_query = self._apply_date_filter(sales_query, Sale.sale_date, filters.date_from, filters.date_to)
        sales_query = self._apply_branch_filter(sales_query, Sale.branch_id, filters.branch_id)

        sale_ids = list((await self._execute("inventario_rotacion", sales_query)).scalars().all())
        if not sale_ids:
            return {}

        batch_size = settings.SALES_BATCH_SIZE
        sold: Dict[UUID, Decimal] = {}
        for start in range(0, len(sale_ids), batch_size):
            batch = sale_ids[start:start + batch_size]
            items_query = select(SaleItem.product_id, SaleItem.quantity).where(
                SaleItem.tenant_id == self.tenant_id,
                SaleItem.sale_id.in_(batch)
            )
            items = (await self._execute("inventario_rotacion", items_query)).all()
            for item in items:
                if item.product_id is None:
                    continue
                sold[item.product_id] = sold.get(item.product_id, Decimal("0")) + _dec(item.quantity)

        logger.debug(
            f"Turnover for tenant {self.tenant_id}: {len(sale_ids)} sales, "
            f"{len(sold)} products sold"
        )
        return sold

    async def get_rotacion_productos(
        self,
        filters: InventarioFilters,
        limit: Optional[int] = None
    ) -> List[RotacionProducto]:
        """
        Rank products by turnover (units sold / stock on hand).

        Stock is summed over the branches in scope. Products without sales
        still rank with 0 units sold, and products without stock get a
        rotation of 0. Ties are broken by stock, highest first, then by
        product name.
        """
        limit = limit or settings.TURNOVER_DEFAULT_LIMIT
        rows = (await self._execute("inventario_rotacion", self._stock_query(filters))).all()
        if not rows:
            return []

        stock: Dict[UUID, Dict[str, Any]] = {}
        for row in rows:
            entry = stock.setdefault(row.product_id, {
                "name": row.product_name or NO_PRODUCT_NAME,
                "sku": row.product_sku or "",
                "qty": Decimal("0"),
            })
            entry["qty"] += _dec(row.qty_on_hand)

        sold = await self._get_sold_units(filters)

        ranking = []
        for product_id, entry in stock.items():
            qty = entry["qty"]
            units = sold.get(product_id, Decimal("0"))
            rotacion = float(units / qty) if qty > 0 else 0.0
            ranking.append(RotacionProducto(
                product_id=product_id,
                product_name=entry["name"],
                sku=entry["sku"],
                stock_actual=qty,
                unidades_vendidas=units,
                rotacion=max(rotacion, 0.0),
            ))

        ranking.sort(key=lambda item: (-item.rotacion, -item.stock_actual, item.product_name, str(item.product_id)))
        return ranking[:limit]
