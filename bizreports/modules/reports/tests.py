"""
Tests para el módulo de Reportes

Tests que cubren:
- Catálogo de fuentes y compilación de filtros
- Ejecución de reportes con aislamiento multi-tenant y rango de fechas inclusivo
- Agrupación en memoria (count / sum / avg)
- Rollups de inventario (KPIs, stock clasificado, movimientos, rotación)
- Reportes guardados
- Endpoints HTTP y exportación CSV

Todos los reportes se validan scoped por tenant_id.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from bizreports.core.config import settings
from bizreports.database.database import Base
from bizreports.main import app
from bizreports.modules.branches.models import Branch
from bizreports.modules.categories.models import Category
from bizreports.modules.products.models import Product, StockLevel
from bizreports.modules.reports.exceptions import (
    InvalidAggregationSpec,
    QueryExecutionError,
    SavedReportNotExecutable,
    SavedReportNotFound,
    SourceNotFound,
    to_http_exception,
)
from bizreports.modules.reports.models import SavedReport
from bizreports.modules.reports.schemas import (
    FilterOperator,
    InventarioFilters,
    ReportConfig,
    ReportFilter,
    ReportMetric,
    SavedReportCreate,
    SavedReportModule,
    StockStatus,
)
from bizreports.modules.reports.services import (
    InventoryReportService,
    ReportBuilderService,
    SavedReportService,
    classify_stock,
    execute_report,
)
from bizreports.modules.reports.services.aggregation import (
    COUNT_KEY,
    EMPTY_GROUP_KEY,
    aggregate_rows,
    to_number,
)
from bizreports.modules.reports.services.base import date_bounds
from bizreports.modules.reports.sources import get_source, get_sources
from bizreports.modules.reports.utils import create_csv_response, format_csv_value

from conftest import TENANT_A, TENANT_B, USER_ID, utc


def ventas_config(**kwargs) -> ReportConfig:
    data = {"source_id": "ventas", "date_from": date(2024, 3, 1), "date_to": date(2024, 3, 2)}
    data.update(kwargs)
    return ReportConfig(**data)


def inventario_filters(**kwargs) -> InventarioFilters:
    data = {"date_from": date(2024, 3, 1), "date_to": date(2024, 3, 2)}
    data.update(kwargs)
    return InventarioFilters(**data)


class FailingSession:
    """Sesión que delega en la real y falla a partir de la llamada ``fail_at``"""

    def __init__(self, session, fail_at: int = 1):
        self.session = session
        self.fail_at = fail_at
        self.calls = 0

    async def execute(self, statement):
        self.calls += 1
        if self.calls >= self.fail_at:
            raise OperationalError("SELECT", {}, Exception("connection reset by peer"))
        return await self.session.execute(statement)


# ===== TESTS DEL CATÁLOGO DE FUENTES =====

class TestSourceRegistry:
    """Tests para el registro de fuentes"""

    def test_registered_sources(self):
        """Test fuentes registradas con su campo de fecha"""
        sources = {source.id: source for source in get_sources()}
        assert set(sources) == {"ventas", "movimientos", "pagos", "reservas"}
        assert sources["ventas"].table == "sales"
        assert sources["ventas"].date_field == "sale_date"
        assert sources["reservas"].date_field == "check_in"

    def test_date_field_is_declared_column(self):
        """Test el campo de fecha de cada fuente es una columna de tipo fecha"""
        for source in get_sources():
            column = source.get_column(source.date_field)
            assert column is not None
            assert column.type.value == "date"

    def test_declared_columns_exist_in_table(self):
        """Test toda columna del catálogo existe en la tabla y tenant_id nunca se declara"""
        for source in get_sources():
            table = Base.metadata.tables[source.table]
            for column in source.columns:
                assert column.key in table.c
            assert source.get_column("tenant_id") is None

    def test_get_source_unknown(self):
        assert get_source("inexistente") is None

    def test_get_sources_returns_copy(self):
        """Test modificar la lista no altera el registro"""
        sources = get_sources()
        sources.clear()
        assert len(get_sources()) == 4

    def test_aggregatable_columns(self):
        ventas = get_source("ventas")
        assert ventas.get_column("total").aggregatable is True
        assert ventas.get_column("status").aggregatable is False


# ===== TESTS DE CONFIGURACIÓN =====

class TestReportConfig:
    """Tests para la validación de ReportConfig"""

    def test_camel_case_keys(self):
        """Test configuración serializada por el cliente web"""
        config = ReportConfig.model_validate({
            "sourceId": "ventas",
            "dateFrom": "2024-03-01",
            "dateTo": "2024-03-02",
            "groupBy": "status",
            "metric": "sum",
            "metricColumn": "total",
        })
        assert config.group_by == "status"
        assert config.metric == ReportMetric.SUM
        assert config.limit == settings.REPORT_DEFAULT_LIMIT

    def test_date_from_after_date_to(self):
        with pytest.raises(ValidationError):
            ventas_config(date_from=date(2024, 3, 5), date_to=date(2024, 3, 1))

    def test_invalid_operator(self):
        with pytest.raises(ValidationError):
            ventas_config(filters=[{"column": "status", "operator": "contains", "value": "x"}])

    def test_limit_bounds(self):
        with pytest.raises(ValidationError):
            ventas_config(limit=0)
        with pytest.raises(ValidationError):
            ventas_config(limit=settings.REPORT_MAX_LIMIT + 1)

    def test_blank_group_by_is_none(self):
        assert ventas_config(group_by="  ").group_by is None

    def test_date_bounds_cover_whole_days(self):
        start, end = date_bounds(date(2024, 3, 1), date(2024, 3, 2))
        assert start == utc(2024, 3, 1, 0, 0, 0)
        assert end == utc(2024, 3, 2, 23, 59, 59, 999000)


# ===== TESTS DE AGRUPACIÓN =====

class TestAggregation:
    """Tests para el agrupador en memoria"""

    ROWS = [
        {"status": "completed", "total": Decimal("100.10")},
        {"status": "completed", "total": Decimal("50.20")},
        {"status": "cancelled", "total": Decimal("0")},
        {"status": None, "total": "abc"},
        {"status": "", "total": 7},
    ]

    def test_sum_by_group(self):
        result = aggregate_rows(self.ROWS, "status", ReportMetric.SUM, "total")
        assert result[0] == {"status": "completed", "sum_total": 150.3, COUNT_KEY: 2}
        assert result[1] == {"status": EMPTY_GROUP_KEY, "sum_total": 7.0, COUNT_KEY: 2}
        assert result[2] == {"status": "cancelled", "sum_total": 0.0, COUNT_KEY: 1}

    def test_counts_add_up_to_rows(self):
        """Test la suma de _count es igual al número de filas"""
        for metric, column in ((ReportMetric.COUNT, None), (ReportMetric.SUM, "total"), (ReportMetric.AVG, "total")):
            result = aggregate_rows(self.ROWS, "status", metric, column)
            assert sum(row[COUNT_KEY] for row in result) == len(self.ROWS)

    def test_count_without_column(self):
        result = aggregate_rows(self.ROWS, "status", ReportMetric.COUNT)
        assert result[0]["count"] == 2
        assert "count" in result[0]

    def test_avg(self):
        result = aggregate_rows(self.ROWS, "status", ReportMetric.AVG, "total")
        completed = next(row for row in result if row["status"] == "completed")
        assert completed["avg_total"] == pytest.approx(75.15)

    def test_ties_keep_first_seen_order(self):
        rows = [{"g": "b", "v": 1}, {"g": "a", "v": 1}, {"g": "c", "v": 2}]
        result = aggregate_rows(rows, "g", ReportMetric.SUM, "v")
        assert [row["g"] for row in result] == ["c", "b", "a"]

    def test_empty_rows(self):
        assert aggregate_rows([], "status", ReportMetric.COUNT) == []

    def test_to_number(self):
        assert to_number("12.5") == Decimal("12.5")
        assert to_number(None) == 0
        assert to_number("nan") == 0
        assert to_number("x") == 0
        assert to_number(True) == 1


# ===== TESTS DEL CONSTRUCTOR DE REPORTES =====

class TestReportBuilder:
    """Tests para la ejecución de reportes ad-hoc"""

    async def test_ventas_in_range(self, db_session, seed):
        """Test filas del rango ordenadas por fecha descendente"""
        result = await execute_report(db_session, TENANT_A, ventas_config())
        assert result.aggregated is False
        assert result.total == 3
        assert [row["number"] for row in result.rows] == ["V-002", "V-003", "V-001"]
        assert "tenant_id" not in result.columns

    async def test_date_range_inclusive_to_last_millisecond(self, db_session, seed):
        """Test V-002 (23:59:59.999) entra y V-004 (un milisegundo después) no"""
        result = await execute_report(db_session, TENANT_A, ventas_config(columns=["number"]))
        numbers = {row["number"] for row in result.rows}
        assert "V-002" in numbers
        assert "V-004" not in numbers

        next_day = await execute_report(
            db_session, TENANT_A, ventas_config(columns=["number"], date_to=date(2024, 3, 3))
        )
        assert "V-004" in {row["number"] for row in next_day.rows}

    async def test_tenant_isolation(self, db_session, seed):
        """Test ninguna fila de otra empresa aparece en el resultado"""
        result_a = await execute_report(db_session, TENANT_A, ventas_config(columns=["number"]))
        result_b = await execute_report(db_session, TENANT_B, ventas_config(columns=["number"]))

        assert "B-900" not in {row["number"] for row in result_a.rows}
        assert [row["number"] for row in result_b.rows] == ["B-900"]
        assert result_b.total == 1

    async def test_undeclared_columns_are_rejected(self, db_session, seed):
        """Test solo se sirven columnas declaradas en el catálogo de la fuente"""
        for columns in (["tenant_id"], ["number", "notes"], ["created_at"]):
            with pytest.raises(QueryExecutionError) as exc_info:
                await execute_report(db_session, TENANT_A, ventas_config(columns=columns))
            assert "does not exist" in exc_info.value.reason

    async def test_default_columns_come_from_catalog(self, db_session, seed):
        result = await execute_report(db_session, TENANT_A, ventas_config())
        assert result.columns == [column.key for column in get_source("ventas").columns]

    async def test_deterministic(self, db_session, seed):
        """Test la misma configuración produce el mismo resultado"""
        config = ventas_config()
        first = await execute_report(db_session, TENANT_A, config)
        second = await execute_report(db_session, TENANT_A, config)
        assert first.rows == second.rows
        assert first.total == second.total

    async def test_grouped_sum(self, db_session, seed):
        """Test ventas agrupadas por estado con suma del total"""
        config = ventas_config(group_by="status", metric="sum", metric_column="total")
        result = await execute_report(db_session, TENANT_A, config)

        assert result.aggregated is True
        assert result.total == 2
        assert result.rows == [
            {"status": "completed", "sum_total": 150.0, "_count": 2},
            {"status": "cancelled", "sum_total": 0.0, "_count": 1},
        ]
        assert result.columns == ["status", "sum_total", "_count"]

    async def test_grouped_count_matches_rows(self, db_session, seed):
        config = ventas_config(columns=["number"], group_by="branch_id", metric="count")
        result = await execute_report(db_session, TENANT_A, config)
        assert sum(row["_count"] for row in result.rows) == 3

    async def test_limit_and_exact_total(self, db_session, seed):
        """Test total cuenta todas las filas aunque el límite recorte"""
        result = await execute_report(db_session, TENANT_A, ventas_config(limit=1))
        assert len(result.rows) == 1
        assert result.total == 3
        assert result.rows[0]["number"] == "V-002"

    async def test_empty_result_keeps_requested_columns(self, db_session, seed):
        config = ventas_config(columns=["number", "total"], date_from=date(2023, 1, 1), date_to=date(2023, 1, 31))
        result = await execute_report(db_session, TENANT_A, config)
        assert result.rows == []
        assert result.total == 0
        assert result.columns == ["number", "total"]

    async def test_unknown_source(self, db_session, seed):
        with pytest.raises(SourceNotFound):
            await execute_report(db_session, TENANT_A, ventas_config(source_id="inexistente"))

    async def test_other_sources(self, db_session, seed):
        pagos = await execute_report(
            db_session, TENANT_A, ReportConfig(source_id="pagos", date_from=date(2024, 3, 1), date_to=date(2024, 3, 2))
        )
        assert pagos.total == 1
        assert pagos.rows[0]["reference"] == "REF-1"

        movimientos = await execute_report(
            db_session, TENANT_A,
            ReportConfig(source_id="movimientos", date_from=date(2024, 3, 1), date_to=date(2024, 3, 2),
                         group_by="direction", metric="sum", metric_column="qty")
        )
        assert movimientos.rows[0] == {"direction": "in", "sum_qty": 103.0, "_count": 2}


class TestAggregationValidation:
    """Tests para combinaciones inválidas de agrupación"""

    @pytest.mark.parametrize("kwargs", [
        {"group_by": "no_existe", "metric": "count"},
        {"group_by": "status"},
        {"group_by": "status", "metric": "sum"},
        {"group_by": "status", "metric": "avg", "metric_column": "status"},
        {"group_by": "status", "metric": "sum", "metric_column": "no_existe"},
    ])
    async def test_invalid_specs(self, db_session, kwargs):
        with pytest.raises(InvalidAggregationSpec) as exc_info:
            await execute_report(db_session, TENANT_A, ventas_config(**kwargs))
        assert exc_info.value.error_code == "INVALID_AGGREGATION"

    async def test_rejected_before_query(self, db_session):
        """Test la validación ocurre antes de tocar la base de datos"""
        failing = FailingSession(db_session)
        with pytest.raises(InvalidAggregationSpec):
            await ReportBuilderService(failing, TENANT_A).execute_report(ventas_config(group_by="status"))
        assert failing.calls == 0


class TestReportFilters:
    """Tests para la compilación de filtros"""

    async def run(self, db_session, *filters, source_id="ventas"):
        config = ReportConfig(
            source_id=source_id,
            date_from=date(2024, 3, 1),
            date_to=date(2024, 3, 2),
            filters=[ReportFilter(**f) for f in filters],
        )
        return await execute_report(db_session, TENANT_A, config)

    async def test_eq(self, db_session, seed):
        result = await self.run(db_session, {"column": "status", "operator": "eq", "value": "completed"})
        assert {row["number"] for row in result.rows} == {"V-001", "V-002"}
        assert result.total == 2

    async def test_neq(self, db_session, seed):
        result = await self.run(db_session, {"column": "status", "operator": "neq", "value": "completed"})
        assert [row["number"] for row in result.rows] == ["V-003"]

    async def test_numeric_range(self, db_session, seed):
        result = await self.run(
            db_session,
            {"column": "total", "operator": "gte", "value": "50"},
            {"column": "total", "operator": "lt", "value": 100},
        )
        assert [row["number"] for row in result.rows] == ["V-002"]

    async def test_integer_column(self, db_session, seed):
        result = await self.run(db_session, {"column": "occupants", "operator": "gt", "value": "1"}, source_id="reservas")
        assert [row["code"] for row in result.rows] == ["R-001"]

    async def test_date_filter(self, db_session, seed):
        result = await self.run(db_session, {"column": "sale_date", "operator": "lt", "value": "2024-03-02"})
        assert [row["number"] for row in result.rows] == ["V-001"]

    async def test_like_is_case_insensitive(self, db_session, seed):
        result = await self.run(db_session, {"column": "number", "operator": "like", "value": "v-00"})
        assert result.total == 3

    async def test_like_escapes_wildcards(self, db_session, seed):
        """Test % y _ se buscan literalmente"""
        result = await self.run(db_session, {"column": "guest_name", "operator": "like", "value": "_pérez 100%"},
                                source_id="reservas")
        assert [row["code"] for row in result.rows] == ["R-002"]

        none = await self.run(db_session, {"column": "guest_name", "operator": "like", "value": "a_a"},
                              source_id="reservas")
        assert none.rows == []

    async def test_is_null(self, db_session, seed):
        nulls = await self.run(db_session, {"column": "channel", "operator": "is_null", "value": True},
                               source_id="reservas")
        assert [row["code"] for row in nulls.rows] == ["R-002"]

        present = await self.run(db_session, {"column": "channel", "operator": "is_null", "value": "false"},
                                 source_id="reservas")
        assert [row["code"] for row in present.rows] == ["R-001"]

    async def test_incomplete_filters_are_skipped(self, db_session, seed):
        result = await self.run(
            db_session,
            {"column": "status", "operator": "eq", "value": ""},
            {"column": "", "operator": "eq", "value": "completed"},
            {"column": "status", "operator": "eq", "value": None},
        )
        assert result.total == 3

    async def test_uuid_filter(self, db_session, seed):
        result = await self.run(db_session, {"column": "branch_id", "operator": "eq", "value": str(seed.norte.id)})
        assert [row["number"] for row in result.rows] == ["V-003"]

    async def test_invalid_value_is_error(self, db_session, seed):
        """Test un valor que no se puede convertir no se descarta en silencio"""
        with pytest.raises(QueryExecutionError) as exc_info:
            await self.run(db_session, {"column": "total", "operator": "gt", "value": "abc"})
        assert "total" in exc_info.value.reason

    async def test_unknown_column_is_error(self, db_session, seed):
        with pytest.raises(QueryExecutionError) as exc_info:
            await self.run(db_session, {"column": "no_existe", "operator": "eq", "value": "x"})
        assert 'column "no_existe" does not exist' in exc_info.value.reason

    @pytest.mark.parametrize("column,value", [
        ("notes", "x"),
        ("tenant_id", str(TENANT_A)),
    ])
    async def test_undeclared_column_is_error(self, db_session, seed, column, value):
        """Test columnas de la tabla fuera del catálogo no se pueden filtrar"""
        with pytest.raises(QueryExecutionError) as exc_info:
            await self.run(db_session, {"column": column, "operator": "eq", "value": value})
        assert f'column "{column}" does not exist' in exc_info.value.reason

    async def test_store_error_keeps_message(self, db_session, seed):
        """Test errores de la base se re-lanzan con el mensaje original"""
        service = ReportBuilderService(FailingSession(db_session), TENANT_A)
        with pytest.raises(QueryExecutionError) as exc_info:
            await service.execute_report(ventas_config())
        assert exc_info.value.reason == "connection reset by peer"
        assert exc_info.value.details["report"] == "ventas"


# ===== TESTS DE INVENTARIO =====

class TestStockClassification:
    """Tests para la clasificación de stock"""

    @pytest.mark.parametrize("on_hand,min_level,expected", [
        (0, 5, StockStatus.CRITICAL),
        (-2, 0, StockStatus.CRITICAL),
        (5, 5, StockStatus.LOW),
        (1, 5, StockStatus.LOW),
        (15, 5, StockStatus.NORMAL),
        (16, 5, StockStatus.OVER),
        (1000, 0, StockStatus.NORMAL),
    ])
    def test_classify(self, on_hand, min_level, expected):
        assert classify_stock(Decimal(on_hand), Decimal(min_level)) == expected

    def test_exactly_one_status(self):
        """Test toda combinación cae en exactamente un estado"""
        for on_hand in range(-3, 40):
            for min_level in range(0, 12):
                status = classify_stock(Decimal(on_hand), Decimal(min_level))
                assert status in StockStatus


class TestInventoryReports:
    """Tests para los rollups de inventario"""

    async def test_kpis(self, db_session, seed):
        kpis = await InventoryReportService(db_session, TENANT_A).get_kpis(inventario_filters())

        assert kpis.total_productos == 4
        assert kpis.total_unidades == Decimal("117")
        assert kpis.valor_inventario == Decimal("431.5")
        assert kpis.productos_stock_critico == 1
        assert kpis.productos_stock_bajo == 1
        assert kpis.productos_stock_normal == 1
        assert kpis.productos_sobrestock == 1
        assert kpis.movimientos_entrada == Decimal("103")
        assert kpis.movimientos_salida == Decimal("6")

    async def test_status_counts_partition_products(self, db_session, seed):
        for branch in (None, seed.principal.id, seed.norte.id):
            kpis = await InventoryReportService(db_session, TENANT_A).get_kpis(inventario_filters(branch_id=branch))
            assert (
                kpis.productos_stock_critico + kpis.productos_stock_bajo
                + kpis.productos_stock_normal + kpis.productos_sobrestock
            ) == kpis.total_productos

    async def test_kpis_without_movements(self, db_session, seed):
        """Test KPIs de stock se calculan aunque no haya movimientos en el rango"""
        filters = inventario_filters(date_from=date(2023, 1, 1), date_to=date(2023, 1, 31))
        kpis = await InventoryReportService(db_session, TENANT_A).get_kpis(filters)
        assert kpis.movimientos_entrada == 0
        assert kpis.movimientos_salida == 0
        assert kpis.total_productos == 4
        assert kpis.valor_inventario == Decimal("431.5")

    async def test_kpis_by_branch(self, db_session, seed):
        kpis = await InventoryReportService(db_session, TENANT_A).get_kpis(
            inventario_filters(branch_id=seed.norte.id)
        )
        assert kpis.total_productos == 1
        assert kpis.total_unidades == Decimal("3")
        assert kpis.movimientos_entrada == Decimal("3")
        assert kpis.movimientos_salida == 0

    async def test_kpis_tenant_isolation(self, db_session, seed):
        kpis = await InventoryReportService(db_session, TENANT_B).get_kpis(inventario_filters())
        assert kpis.total_productos == 1
        assert kpis.total_unidades == Decimal("50")
        assert kpis.productos_sobrestock == 1

    async def test_stock_productos(self, db_session, seed):
        items = await InventoryReportService(db_session, TENANT_A).get_stock_productos(inventario_filters())

        assert [item.stock_status for item in items] == [
            StockStatus.CRITICAL, StockStatus.LOW, StockStatus.NORMAL, StockStatus.NORMAL, StockStatus.OVER
        ]
        jugo = items[1]
        assert jugo.product_name == "Jugo"
        assert jugo.qty_available == Decimal("3")
        assert jugo.valor_total == Decimal("12")
        pan = [item for item in items if item.product_name == "Pan"]
        assert all(item.category_name is None for item in pan)

    async def test_stock_productos_filters(self, db_session, seed):
        service = InventoryReportService(db_session, TENANT_A)

        bebidas = await service.get_stock_productos(inventario_filters(category_id=seed.bebidas.id))
        assert {item.product_name for item in bebidas} == {"Agua", "Jugo"}

        criticos = await service.get_stock_productos(inventario_filters(stock_status=StockStatus.CRITICAL))
        assert [item.product_name for item in criticos] == ["Agua"]

    async def test_movimientos(self, db_session, seed):
        items = await InventoryReportService(db_session, TENANT_A).get_movimientos(inventario_filters())
        assert [item.source for item in items] == ["transfer", "sale", "purchase"]
        assert items[0].branch_name == "Norte"
        assert items[0].product_name == "Pan"

        limited = await InventoryReportService(db_session, TENANT_A).get_movimientos(inventario_filters(), limit=1)
        assert len(limited) == 1

    async def test_movimientos_por_dia(self, db_session, seed):
        days = await InventoryReportService(db_session, TENANT_A).get_movimientos_por_dia(inventario_filters())
        assert [(d.fecha, d.entradas, d.salidas) for d in days] == [
            (date(2024, 3, 1), Decimal("100"), Decimal("6")),
            (date(2024, 3, 2), Decimal("3"), Decimal("0")),
        ]

    async def test_stock_por_categoria(self, db_session, seed):
        items = await InventoryReportService(db_session, TENANT_A).get_stock_por_categoria(inventario_filters())

        assert [item.category_name for item in items] == ["Abarrotes", "Sin categoría", "Bebidas"]
        sin_categoria = items[1]
        assert sin_categoria.category_id is None
        assert sin_categoria.total_productos == 1
        assert sin_categoria.total_unidades == Decimal("13")
        assert items[2].total_productos == 2

    async def test_rotacion(self, db_session, seed):
        """Test rotación = unidades vendidas / stock, excluyendo ventas anuladas"""
        items = await InventoryReportService(db_session, TENANT_A).get_rotacion_productos(inventario_filters())

        assert [item.product_name for item in items] == ["Pan", "Jugo", "Arroz", "Agua"]
        assert items[0].rotacion == pytest.approx(1.0)
        assert items[1].rotacion == pytest.approx(0.5)
        assert items[2].unidades_vendidas == Decimal("20")
        assert items[2].rotacion == pytest.approx(0.2)
        # Sin stock: rotación 0 sin división por cero
        assert items[3].stock_actual == 0
        assert items[3].rotacion == 0
        assert all(item.rotacion >= 0 for item in items)

    async def test_rotacion_batches(self, db_session, seed, monkeypatch):
        """Test el resultado no depende del tamaño de lote"""
        service = InventoryReportService(db_session, TENANT_A)
        expected = await service.get_rotacion_productos(inventario_filters())

        monkeypatch.setattr(settings, "SALES_BATCH_SIZE", 1)
        batched = await service.get_rotacion_productos(inventario_filters())
        assert batched == expected

    async def test_rotacion_batch_failure_aborts(self, db_session, seed, monkeypatch):
        """Test si falla un lote de ventas falla todo el cálculo"""
        monkeypatch.setattr(settings, "SALES_BATCH_SIZE", 1)
        # stock, ids de ventas, lote 1, lote 2 (falla)
        service = InventoryReportService(FailingSession(db_session, fail_at=4), TENANT_A)
        with pytest.raises(QueryExecutionError):
            await service.get_rotacion_productos(inventario_filters())

    async def test_rotacion_limit(self, db_session, seed):
        items = await InventoryReportService(db_session, TENANT_A).get_rotacion_productos(
            inventario_filters(), limit=2
        )
        assert [item.product_name for item in items] == ["Pan", "Jugo"]

    async def test_ties_are_ordered_by_name(self, db_session):
        """Test empates de rotación y de valor se ordenan por nombre"""
        tenant_id = uuid4()
        sede = Branch(tenant_id=tenant_id, name="Principal")
        lacteos = Category(tenant_id=tenant_id, name="Lácteos")
        aseo = Category(tenant_id=tenant_id, name="Aseo")
        db_session.add_all([sede, lacteos, aseo])
        await db_session.flush()

        productos = [
            Product(tenant_id=tenant_id, name="Zumo", sku="Z-1", category_id=lacteos.id),
            Product(tenant_id=tenant_id, name="Avena", sku="A-1", category_id=aseo.id),
        ]
        db_session.add_all(productos)
        await db_session.flush()
        db_session.add_all([
            StockLevel(tenant_id=tenant_id, product_id=producto.id, branch_id=sede.id,
                       qty_on_hand=10, avg_cost=Decimal("2.00"), min_level=5)
            for producto in productos
        ])
        await db_session.commit()

        service = InventoryReportService(db_session, tenant_id)
        rotacion = await service.get_rotacion_productos(inventario_filters())
        assert [item.product_name for item in rotacion] == ["Avena", "Zumo"]

        categorias = await service.get_stock_por_categoria(inventario_filters())
        assert [item.category_name for item in categorias] == ["Aseo", "Lácteos"]

    async def test_empty_tenant(self, db_session, seed):
        service = InventoryReportService(db_session, uuid4())
        filters = inventario_filters()
        assert (await service.get_kpis(filters)).total_productos == 0
        assert await service.get_stock_productos(filters) == []
        assert await service.get_rotacion_productos(filters) == []
        assert await service.get_movimientos_por_dia(filters) == []


# ===== TESTS DE REPORTES GUARDADOS =====

class TestSavedReports:
    """Tests para reportes guardados"""

    def report_data(self, **kwargs):
        data = {
            "name": "Ventas por estado",
            "module": SavedReportModule.CUSTOM,
            "config": {
                "sourceId": "ventas",
                "dateFrom": "2024-03-01",
                "dateTo": "2024-03-02",
                "groupBy": "status",
                "metric": "sum",
                "metricColumn": "total",
            },
        }
        data.update(kwargs)
        return SavedReportCreate(**data)

    async def test_save_and_run(self, db_session, seed):
        service = SavedReportService(db_session)
        report = await service.save_report(TENANT_A, USER_ID, self.report_data())

        assert report.id is not None
        assert report.user_id == USER_ID
        assert report.filters["sourceId"] == "ventas"
        assert report.filters["dateTo"] == "2024-03-02"

        result = await service.run_saved_report(TENANT_A, report.id)
        assert result.aggregated is True
        assert result.rows[0] == {"status": "completed", "sum_total": 150.0, "_count": 2}

    async def test_invalid_config_rejected(self):
        with pytest.raises(ValidationError):
            self.report_data(config={"dateFrom": "2024-03-01"})
        with pytest.raises(ValidationError):
            self.report_data(name="   ")

    async def test_list_newest_first(self, db_session, seed):
        db_session.add_all([
            SavedReport(tenant_id=TENANT_A, user_id=USER_ID, name="Viejo", module="personalizado",
                        filters={}, created_at=utc(2024, 1, 1), updated_at=utc(2024, 1, 1)),
            SavedReport(tenant_id=TENANT_A, user_id=USER_ID, name="Nuevo", module="inventario",
                        filters={}, created_at=utc(2024, 2, 1), updated_at=utc(2024, 2, 1)),
            SavedReport(tenant_id=TENANT_B, user_id=USER_ID, name="Otra empresa", module="personalizado",
                        filters={}, created_at=utc(2024, 3, 1), updated_at=utc(2024, 3, 1)),
        ])
        await db_session.commit()

        service = SavedReportService(db_session)
        reports = await service.get_saved_reports(TENANT_A)
        assert [report.name for report in reports] == ["Nuevo", "Viejo"]

        inventario = await service.get_saved_reports(TENANT_A, SavedReportModule.INVENTORY)
        assert [report.name for report in inventario] == ["Nuevo"]

    async def test_other_tenant_cannot_read(self, db_session, seed):
        service = SavedReportService(db_session)
        report = await service.save_report(TENANT_A, USER_ID, self.report_data())

        with pytest.raises(SavedReportNotFound):
            await service.get_saved_report(TENANT_B, report.id)
        assert await service.delete_saved_report(TENANT_B, report.id) is False

    async def test_delete(self, db_session, seed):
        service = SavedReportService(db_session)
        report = await service.save_report(TENANT_A, USER_ID, self.report_data())

        assert await service.delete_saved_report(TENANT_A, report.id) is True
        assert await service.delete_saved_report(TENANT_A, report.id) is False

    async def test_inventory_report_is_not_executable(self, db_session, seed):
        service = SavedReportService(db_session)
        report = await service.save_report(
            TENANT_A, USER_ID,
            self.report_data(module=SavedReportModule.INVENTORY,
                             config={"dateFrom": "2024-03-01", "dateTo": "2024-03-02"})
        )
        assert report.filters["dateFrom"] == "2024-03-01"
        with pytest.raises(SavedReportNotExecutable) as exc_info:
            await service.run_saved_report(TENANT_A, report.id)
        assert to_http_exception(exc_info.value).status_code == 422


# ===== TESTS DE UTILIDADES CSV =====

class TestCsvExport:
    """Tests para la exportación CSV"""

    def test_format_values(self):
        assert format_csv_value(None) == ""
        assert format_csv_value(True) == "Sí"
        assert format_csv_value(Decimal("1.50")) == "1.50"
        assert format_csv_value(date(2024, 3, 1)) == "2024-03-01"
        assert format_csv_value(StockStatus.LOW) == "bajo"

    def test_csv_response(self):
        response = create_csv_response(
            [{"number": "V-001", "total": Decimal("10.00"), "extra": "x"}],
            "ventas.csv",
            {"number": "Número", "total": "Total"}
        )
        assert response.media_type == "text/csv"
        assert response.headers["Content-Disposition"] == "attachment; filename=ventas.csv"
        lines = response.body.decode("utf-8").splitlines()
        assert lines == ["Número,Total", "V-001,10.00"]

    def test_empty_csv_with_headers(self):
        response = create_csv_response([], "vacio.csv", {"number": "Número"})
        assert response.body.decode("utf-8").splitlines() == ["Número"]


# ===== TESTS DE ENDPOINTS =====

client = TestClient(app)


class TestReportEndpoints:
    """Tests para los endpoints HTTP de reportes"""

    def test_missing_company_header(self):
        response = client.get("/api/v1/reports/builder/sources")
        assert response.status_code == 400

    def test_invalid_company_header(self):
        response = client.get("/api/v1/reports/builder/sources", headers={"X-Company-ID": "no-es-uuid"})
        assert response.status_code == 400

    def test_health_is_public(self):
        assert client.get("/health").status_code == 200

    def test_list_sources(self):
        response = client.get("/api/v1/reports/builder/sources", headers={"X-Company-ID": str(TENANT_A)})
        assert response.status_code == 200
        data = response.json()
        assert [source["id"] for source in data] == ["ventas", "movimientos", "pagos", "reservas"]
        assert data[0]["dateField"] == "sale_date"

    def test_get_source(self):
        headers = {"X-Company-ID": str(TENANT_A)}
        assert client.get("/api/v1/reports/builder/sources/pagos", headers=headers).status_code == 200
        assert client.get("/api/v1/reports/builder/sources/nada", headers=headers).status_code == 404

    async def test_execute(self, api_client, seed, headers_a):
        payload = {"sourceId": "ventas", "dateFrom": "2024-03-01", "dateTo": "2024-03-02", "columns": ["number"]}
        response = await api_client.post("/api/v1/reports/builder/execute", json=payload, headers=headers_a)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [row["number"] for row in data["rows"]] == ["V-002", "V-003", "V-001"]

    async def test_execute_csv(self, api_client, seed, headers_a):
        payload = {"sourceId": "ventas", "dateFrom": "2024-03-01", "dateTo": "2024-03-02",
                   "columns": ["number", "status"]}
        response = await api_client.post(
            "/api/v1/reports/builder/execute", params={"export": "csv"}, json=payload, headers=headers_a
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.splitlines()
        assert lines[0] == "Número,Estado"
        assert lines[1] == "V-002,completed"

    async def test_execute_errors(self, api_client, seed, headers_a):
        base = {"dateFrom": "2024-03-01", "dateTo": "2024-03-02"}

        not_found = await api_client.post(
            "/api/v1/reports/builder/execute", json={**base, "sourceId": "nada"}, headers=headers_a
        )
        assert not_found.status_code == 404
        assert not_found.json()["detail"]["error_code"] == "SOURCE_NOT_FOUND"

        invalid = await api_client.post(
            "/api/v1/reports/builder/execute",
            json={**base, "sourceId": "ventas", "groupBy": "status", "metric": "sum"},
            headers=headers_a
        )
        assert invalid.status_code == 422
        assert invalid.json()["detail"]["error_code"] == "INVALID_AGGREGATION"

        bad_range = await api_client.post(
            "/api/v1/reports/builder/execute",
            json={"sourceId": "ventas", "dateFrom": "2024-03-05", "dateTo": "2024-03-01"},
            headers=headers_a
        )
        assert bad_range.status_code == 422

        bad_value = await api_client.post(
            "/api/v1/reports/builder/execute",
            json={**base, "sourceId": "ventas", "filters": [{"column": "total", "operator": "gt", "value": "x"}]},
            headers=headers_a
        )
        assert bad_value.status_code == 500
        assert bad_value.json()["detail"]["error_code"] == "QUERY_EXECUTION_ERROR"

    async def test_inventory_kpis(self, api_client, seed, headers_a):
        response = await api_client.get(
            "/api/v1/reports/inventory/kpis",
            params={"date_from": "2024-03-01", "date_to": "2024-03-02"},
            headers=headers_a
        )
        assert response.status_code == 200
        data = response.json()
        assert data["totalProductos"] == 4
        assert float(data["valorInventario"]) == 431.5

    @pytest.mark.parametrize("endpoint", ["kpis", "stock", "movements", "turnover"])
    async def test_inventory_invalid_range(self, api_client, seed, headers_a, endpoint):
        """Test rango invertido responde 422 con el detalle de validación serializable"""
        response = await api_client.get(
            f"/api/v1/reports/inventory/{endpoint}",
            params={"date_from": "2024-03-05", "date_to": "2024-03-01"},
            headers=headers_a
        )
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert isinstance(detail, list)
        assert "input" not in detail[0]

    async def test_inventory_turnover_csv(self, api_client, seed, headers_a):
        response = await api_client.get(
            "/api/v1/reports/inventory/turnover",
            params={"date_from": "2024-03-01", "date_to": "2024-03-02", "export": "csv"},
            headers=headers_a
        )
        assert response.status_code == 200
        lines = response.text.splitlines()
        assert lines[0] == "Producto,SKU,Stock actual,Unidades vendidas,Rotación"
        assert lines[1].startswith("Pan,PAN-001")

    async def test_inventory_rollup_endpoints(self, api_client, seed, headers_a):
        params = {"date_from": "2024-03-01", "date_to": "2024-03-02"}
        for path in ("stock", "movements", "movements-by-day", "stock-by-category", "turnover"):
            response = await api_client.get(f"/api/v1/reports/inventory/{path}", params=params, headers=headers_a)
            assert response.status_code == 200, path
            assert isinstance(response.json(), list)

    async def test_lookups(self, api_client, seed, headers_a):
        branches = await api_client.get("/api/v1/reports/inventory/branches", headers=headers_a)
        assert [item["name"] for item in branches.json()] == ["Norte", "Principal"]

        categories = await api_client.get("/api/v1/reports/inventory/categories", headers=headers_a)
        assert [item["name"] for item in categories.json()] == ["Abarrotes", "Bebidas"]

    async def test_saved_reports_flow(self, api_client, seed, headers_a):
        payload = {
            "name": "Ventas marzo",
            "module": "personalizado",
            "config": {"sourceId": "ventas", "dateFrom": "2024-03-01", "dateTo": "2024-03-02"},
        }
        created = await api_client.post("/api/v1/reports/saved", json=payload, headers=headers_a)
        assert created.status_code == 201
        report_id = created.json()["id"]

        listed = await api_client.get("/api/v1/reports/saved", headers=headers_a)
        assert [item["id"] for item in listed.json()] == [report_id]

        run = await api_client.post(f"/api/v1/reports/saved/{report_id}/run", headers=headers_a)
        assert run.status_code == 200
        assert run.json()["total"] == 3

        other = await api_client.get(f"/api/v1/reports/saved/{report_id}", headers={"X-Company-ID": str(TENANT_B)})
        assert other.status_code == 404

        deleted = await api_client.delete(f"/api/v1/reports/saved/{report_id}", headers=headers_a)
        assert deleted.status_code == 204
        missing = await api_client.get(f"/api/v1/reports/saved/{report_id}", headers=headers_a)
        assert missing.status_code == 404

    async def test_run_inventory_report_is_client_error(self, api_client, seed, headers_a):
        payload = {
            "name": "Stock marzo",
            "module": "inventario",
            "config": {"dateFrom": "2024-03-01", "dateTo": "2024-03-02"},
        }
        created = await api_client.post("/api/v1/reports/saved", json=payload, headers=headers_a)
        assert created.status_code == 201

        run = await api_client.post(f"/api/v1/reports/saved/{created.json()['id']}/run", headers=headers_a)
        assert run.status_code == 422
        assert run.json()["detail"]["error_code"] == "SAVED_REPORT_NOT_EXECUTABLE"

    async def test_save_requires_user(self, api_client, seed):
        payload = {"name": "Sin usuario", "config": {"sourceId": "ventas", "dateFrom": "2024-03-01",
                                                      "dateTo": "2024-03-02"}}
        response = await api_client.post(
            "/api/v1/reports/saved", json=payload, headers={"X-Company-ID": str(TENANT_A)}
        )
        assert response.status_code == 400
