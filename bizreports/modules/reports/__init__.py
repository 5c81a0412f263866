"""
Reports Module - BizReports

Motor de reportes multi-empresa: constructor de reportes ad-hoc sobre
fuentes registradas, rollups de inventario y reportes guardados.

Este módulo solo agrega la tabla de reportes guardados; el resto son
consultas sobre las tablas de los otros módulos (ventas, pagos,
movimientos de inventario, reservas).

Funcionalidades principales:
- Catálogo de fuentes con sus columnas y campo de fecha
- Compilación de filtros tipados y ejecución con límite y conteo total
- Agrupación en memoria con count / sum / avg
- Rollups de inventario (KPIs, stock clasificado, movimientos, rotación)
- Reportes guardados por empresa y usuario
- Exportación CSV

Architecture Pattern: Service Layer
- routers/ -> Define FastAPI endpoints con validaciones
- services/ -> Lógica de negocio y generación de consultas SQL
- schemas/ -> Modelos Pydantic para requests y responses
- utils/ -> Utilidades para exportación CSV
"""

from .routers import builder_router, saved_router, inventory_router

__all__ = [
    "builder_router",
    "saved_router",
    "inventory_router"
]

__version__ = "1.0.0"
__description__ = "Reports engine for multi-tenant business analytics"
