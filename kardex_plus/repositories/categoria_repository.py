# ==============================================================================
# REPOSITORIO DE CATEGORÍAS DE ITEMS
# ==============================================================================
# Encapsula todo el acceso a la tabla CategoriasItems.
# Eliminación FÍSICA, bloqueada mientras algún item use la categoría.
# ==============================================================================

from typing import Any, List

from kardex_plus.models import CategoriaItem
from kardex_plus.repositories.base import CatalogRepository, HardDeleteMixin


class CategoriaRepository(HardDeleteMixin, CatalogRepository):
    """Repositorio de categorías de items."""

    TABLE = 'CategoriasItems'
    ID_COLUMN = 'CategoriaItem_Id'
    NAME_COLUMN = 'CategoriaItem_Nombre'
    ENTITY = CategoriaItem

    DUPLICATE_MESSAGE = 'Ya existe una categoría con este nombre'
    DEPENDENCY_MESSAGE = (
        'No se puede eliminar la categoría porque está siendo utilizada por uno o más items'
    )

    def _select_columns(self) -> str:
        return """
            CategoriaItem_Id,
            CategoriaItem_Nombre,
            CategoriaItem_Descripcion
        """

    def _search_columns(self) -> List[str]:
        return ['CategoriaItem_Nombre', 'CategoriaItem_Descripcion']

    def _insert_sql(self) -> str:
        return """
            INSERT INTO CategoriasItems (CategoriaItem_Nombre, CategoriaItem_Descripcion)
            VALUES (:nombre, :descripcion)
        """

    def _update_sql(self) -> str:
        return """
            UPDATE CategoriasItems
            SET CategoriaItem_Nombre = :nombre, CategoriaItem_Descripcion = :descripcion
            WHERE CategoriaItem_Id = :id
        """

    def _count_dependents(self, record_id: Any) -> int:
        return self._scalar(
            'SELECT COUNT(*) AS count FROM Items WHERE CategoriaItem_Id = :id',
            {'id': record_id}
        )

    def get_usage_stats(self):
        """Cantidad de items por categoría, las más usadas primero."""
        return self._fetch_all(
            """
            SELECT
                c.CategoriaItem_Id,
                c.CategoriaItem_Nombre,
                COUNT(i.Item_Id) AS Total_Items
            FROM CategoriasItems c
            LEFT JOIN Items i ON c.CategoriaItem_Id = i.CategoriaItem_Id
            GROUP BY c.CategoriaItem_Id, c.CategoriaItem_Nombre
            ORDER BY Total_Items DESC, c.CategoriaItem_Nombre ASC
            """
        )
