# ==============================================================================
# SERVICIO DE ESTADÍSTICAS - Panel principal
# ==============================================================================
# Calcula los indicadores del panel sobre una FOTO de ventas y productos
# (la misma que muestran las suscripciones); no lee del backend.
#
# - total_sales: suma de los totales registrados (no se recalculan)
# - low_stock: productos con stock < minStock
# - stock_by_category: unidades en stock por categoría
# ==============================================================================

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app_pos.models import Product, Sale


class StatsService:
    """Indicadores del panel principal."""

    def _parse_date(self, date_str: str) -> Optional[datetime]:
        if not date_str:
            return None
        try:
            parsed = datetime.fromisoformat(date_str.replace('Z', '+00:00'))
        except (ValueError, TypeError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def sales_on(self, sales: List[Sale], day: datetime) -> List[Sale]:
        """Ventas cuya fecha (UTC) cae en el día indicado."""
        target = day.astimezone(timezone.utc).date()
        result = []
        for sale in sales:
            sale_date = self._parse_date(sale.date)
            if sale_date and sale_date.astimezone(timezone.utc).date() == target:
                result.append(sale)
        return result

    @staticmethod
    def gross_profit(sales: List[Sale]) -> float:
        """Total vendido menos el costo de las líneas (costo congelado en la venta)."""
        income = sum(sale.total for sale in sales)
        cost = sum(item.cost * item.quantity for sale in sales for item in sale.items)
        return round(income - cost, 2)

    def summary(self, sales: List[Sale], products: List[Product]) -> Dict[str, Any]:
        """
        Args:
            sales: Ventas (cualquier orden)
            products: Catálogo actual

        Returns:
            {
                'total_sales': float,
                'transactions': int,
                'sales_today': float,
                'gross_profit': float,
                'low_stock_count': int,
                'low_stock': [{'id', 'name', 'stock', 'minStock'}],
                'stock_by_category': {categoría: unidades},
            }
        """
        low_stock = [p for p in products if p.is_low_stock()]

        by_category: Dict[str, int] = defaultdict(int)
        for product in products:
            by_category[product.category.value] += product.stock

        today = self.sales_on(sales, datetime.now(timezone.utc))

        return {
            'total_sales': round(sum(sale.total for sale in sales), 2),
            'transactions': len(sales),
            'sales_today': round(sum(sale.total for sale in today), 2),
            'gross_profit': self.gross_profit(sales),
            'low_stock_count': len(low_stock),
            'low_stock': [
                {'id': p.id, 'name': p.name, 'stock': p.stock, 'minStock': p.min_stock}
                for p in low_stock
            ],
            'stock_by_category': dict(by_category),
        }
