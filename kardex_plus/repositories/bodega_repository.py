# ==============================================================================
# REPOSITORIO DE BODEGAS
# ==============================================================================
# Encapsula todo el acceso a la tabla Bodegas.
# Eliminación LÓGICA (Bodega_Estado = 0), bloqueada si hay existencias > 0.
# ==============================================================================

from typing import Any, Dict, List

from kardex_plus.exceptions import ValidationError
from kardex_plus.models import Bodega, BodegaTipo
from kardex_plus.repositories.base import CatalogRepository, SoftDeleteMixin


class BodegaRepository(SoftDeleteMixin, CatalogRepository):
    """
    Repositorio de bodegas.

    Las lecturas incluyen el responsable (LEFT JOIN a Usuarios):
    Responsable_Nombre = nombre + ' ' + apellido, Responsable_Correo.
    """

    TABLE = 'Bodegas'
    ALIAS = 'b'
    ID_COLUMN = 'Bodega_Id'
    NAME_COLUMN = 'Bodega_Nombre'
    STATUS_COLUMN = 'Bodega_Estado'
    ENTITY = Bodega

    DUPLICATE_MESSAGE = 'Ya existe una bodega con ese nombre'
    DEPENDENCY_MESSAGE = 'No se puede eliminar la bodega porque tiene existencias disponibles'

    def _responsable_nombre(self) -> str:
        return self._concat_sql('u.Usuario_Nombre', "' '", 'u.Usuario_Apellido')

    def _from_sql(self) -> str:
        return 'Bodegas b LEFT JOIN Usuarios u ON b.Responsable_Id = u.Usuario_Id'

    def _select_columns(self) -> str:
        return f"""
            b.Bodega_Id,
            b.Bodega_Nombre,
            b.Bodega_Tipo,
            b.Bodega_Ubicacion,
            b.Bodega_Estado,
            b.Responsable_Id,
            {self._responsable_nombre()} AS Responsable_Nombre,
            u.Usuario_Correo AS Responsable_Correo
        """

    def _search_columns(self) -> List[str]:
        return ['b.Bodega_Nombre', 'b.Bodega_Ubicacion', self._responsable_nombre()]

    def _insert_sql(self) -> str:
        return """
            INSERT INTO Bodegas (
                Bodega_Nombre,
                Bodega_Tipo,
                Bodega_Ubicacion,
                Responsable_Id,
                Bodega_Estado
            ) VALUES (:nombre, :tipo, :ubicacion, :responsable_id, :estado)
        """

    def _update_sql(self) -> str:
        return """
            UPDATE Bodegas SET
                Bodega_Nombre = :nombre,
                Bodega_Tipo = :tipo,
                Bodega_Ubicacion = :ubicacion,
                Responsable_Id = :responsable_id,
                Bodega_Estado = :estado
            WHERE Bodega_Id = :id
        """

    def _check_references(self, entity: Bodega) -> None:
        if entity.responsable_id is None:
            return
        found = self._scalar(
            'SELECT COUNT(*) AS count FROM Usuarios WHERE Usuario_Id = :id',
            {'id': entity.responsable_id}
        )
        if not found:
            raise ValidationError('El usuario responsable no existe', field='Responsable_Id')

    def _count_dependents(self, record_id: Any) -> int:
        return self._scalar(
            """
            SELECT COUNT(*) AS count
            FROM Existencias
            WHERE Bodega_Id = :id AND Cantidad > 0
            """,
            {'id': record_id}
        )

    def can_delete(self, record_id: Any) -> bool:
        """
        Verifica si se puede desactivar una bodega (sin existencias).

        Returns:
            True si no tiene existencias con cantidad positiva
        """
        return self._count_dependents(record_id) == 0

    # =========================================================================
    # CONSULTAS ESPECÍFICAS
    # =========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """
        Obtiene estadísticas de bodegas por estado y tipo.

        Returns:
            Dict con totales (total, activas, inactivas, por tipo, con responsable)
        """
        stats = self._fetch_one(
            """
            SELECT
                COUNT(*) AS total_bodegas,
                COUNT(CASE WHEN Bodega_Estado = 1 THEN 1 END) AS bodegas_activas,
                COUNT(CASE WHEN Bodega_Estado = 0 THEN 1 END) AS bodegas_inactivas,
                COUNT(CASE WHEN Bodega_Tipo = :central THEN 1 END) AS bodegas_centrales,
                COUNT(CASE WHEN Bodega_Tipo = :produccion THEN 1 END) AS bodegas_produccion,
                COUNT(CASE WHEN Bodega_Tipo = :frio THEN 1 END) AS bodegas_frio,
                COUNT(CASE WHEN Bodega_Tipo = :temporal THEN 1 END) AS bodegas_temporales,
                COUNT(CASE WHEN Responsable_Id IS NOT NULL THEN 1 END) AS bodegas_con_responsable
            FROM Bodegas
            """,
            {
                'central': BodegaTipo.CENTRAL.value,
                'produccion': BodegaTipo.PRODUCCION.value,
                'frio': BodegaTipo.FRIO.value,
                'temporal': BodegaTipo.TEMPORAL.value,
            }
        )
        return stats

    def get_active_bodegas(self) -> List[Dict[str, Any]]:
        """Bodegas activas para selects/dropdowns (id, nombre, tipo)."""
        return self._fetch_all(
            """
            SELECT
                Bodega_Id,
                Bodega_Nombre,
                Bodega_Tipo
            FROM Bodegas
            WHERE Bodega_Estado = 1
            ORDER BY Bodega_Nombre ASC
            """
        )

    def find_by_responsable(self, responsable_id: Any) -> List[Dict[str, Any]]:
        """
        Obtiene las bodegas activas de un responsable.

        Args:
            responsable_id: ID del usuario responsable
        """
        return self._fetch_all(
            """
            SELECT
                b.Bodega_Id,
                b.Bodega_Nombre,
                b.Bodega_Tipo,
                b.Bodega_Ubicacion,
                b.Bodega_Estado
            FROM Bodegas b
            WHERE b.Responsable_Id = :responsable_id AND b.Bodega_Estado = 1
            ORDER BY b.Bodega_Nombre ASC
            """,
            {'responsable_id': responsable_id}
        )
