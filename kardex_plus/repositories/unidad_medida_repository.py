# ==============================================================================
# REPOSITORIO DE UNIDADES DE MEDIDA
# ==============================================================================
# Encapsula todo el acceso a la tabla UnidadesMedida.
# Nombre y prefijo son únicos. Eliminación FÍSICA, bloqueada mientras
# alguna presentación use la unidad.
# ==============================================================================

from typing import Any, Dict, List, Optional, Tuple

from kardex_plus.models import UnidadMedida
from kardex_plus.repositories.base import CatalogRepository, HardDeleteMixin


class UnidadMedidaRepository(HardDeleteMixin, CatalogRepository):
    """Repositorio de unidades de medida."""

    TABLE = 'UnidadesMedida'
    ID_COLUMN = 'UnidadMedida_Id'
    NAME_COLUMN = 'UnidadMedida_Nombre'
    PREFIX_COLUMN = 'UnidadMedida_Prefijo'
    ENTITY = UnidadMedida

    DUPLICATE_MESSAGE = 'Ya existe una unidad de medida con este nombre'
    DUPLICATE_PREFIX_MESSAGE = 'Ya existe una unidad de medida con este prefijo'
    DEPENDENCY_MESSAGE = (
        'No se puede eliminar la unidad de medida porque está siendo utilizada '
        'por una o más presentaciones'
    )

    def _select_columns(self) -> str:
        return """
            UnidadMedida_Id,
            UnidadMedida_Nombre,
            UnidadMedida_Prefijo,
            UnidadMedida_Factor_Conversion
        """

    def _search_columns(self) -> List[str]:
        return ['UnidadMedida_Nombre', 'UnidadMedida_Prefijo']

    def _unique_checks(self, entity: UnidadMedida) -> List[Tuple[str, Any, str]]:
        return [
            (self.NAME_COLUMN, entity.nombre, self.DUPLICATE_MESSAGE),
            (self.PREFIX_COLUMN, entity.prefijo, self.DUPLICATE_PREFIX_MESSAGE),
        ]

    def _insert_sql(self) -> str:
        return """
            INSERT INTO UnidadesMedida (
                UnidadMedida_Nombre, UnidadMedida_Prefijo, UnidadMedida_Factor_Conversion
            ) VALUES (:nombre, :prefijo, :factor)
        """

    def _update_sql(self) -> str:
        return """
            UPDATE UnidadesMedida SET
                UnidadMedida_Nombre = :nombre,
                UnidadMedida_Prefijo = :prefijo,
                UnidadMedida_Factor_Conversion = :factor
            WHERE UnidadMedida_Id = :id
        """

    def _count_dependents(self, record_id: Any) -> int:
        return self._scalar(
            'SELECT COUNT(*) AS count FROM Presentaciones WHERE UnidadMedida_Id = :id',
            {'id': record_id}
        )

    # =========================================================================
    # PREFIJO
    # =========================================================================

    def find_by_prefix(self, prefix: str) -> Optional[Dict[str, Any]]:
        """Busca una unidad de medida por prefijo exacto."""
        return self._fetch_one(
            self._select_sql() + ' WHERE UnidadMedida_Prefijo = :prefix',
            {'prefix': prefix}
        )

    def exists_by_prefix(self, prefix: str, exclude_id: Any = None) -> bool:
        """Verifica si el prefijo ya está registrado (excluyendo exclude_id)."""
        return self._exists_by_column(self.PREFIX_COLUMN, prefix, exclude_id)

    # =========================================================================
    # ESTADÍSTICAS Y CONVERSIONES
    # =========================================================================

    def get_usage_stats(self) -> List[Dict[str, Any]]:
        """
        Obtiene estadísticas de uso de las unidades de medida.

        Returns:
            Presentaciones por unidad, las más usadas primero
        """
        return self._fetch_all(
            """
            SELECT
                u.UnidadMedida_Id,
                u.UnidadMedida_Nombre,
                u.UnidadMedida_Prefijo,
                COUNT(p.Presentacion_Id) AS Total_Presentaciones_Usando
            FROM UnidadesMedida u
            LEFT JOIN Presentaciones p ON u.UnidadMedida_Id = p.UnidadMedida_Id
            GROUP BY u.UnidadMedida_Id, u.UnidadMedida_Nombre, u.UnidadMedida_Prefijo
            ORDER BY Total_Presentaciones_Usando DESC, u.UnidadMedida_Nombre ASC
            """
        )

    def find_by_factor_range(self, factor_min: float, factor_max: float) -> List[Dict[str, Any]]:
        """
        Obtiene unidades cuyo factor de conversión está en [factor_min, factor_max].
        """
        return self._fetch_all(
            self._select_sql()
            + """
            WHERE UnidadMedida_Factor_Conversion BETWEEN :factor_min AND :factor_max
            ORDER BY UnidadMedida_Factor_Conversion ASC
            """,
            {'factor_min': factor_min, 'factor_max': factor_max}
        )
