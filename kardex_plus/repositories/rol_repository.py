# ==============================================================================
# REPOSITORIO DE ROLES
# ==============================================================================
# Encapsula el acceso a Roles y a la tabla de asignación Roles_Permisos.
# Eliminación FÍSICA, bloqueada mientras haya usuarios activos con el rol.
# ==============================================================================

from typing import Any, Dict, List, Sequence

from sqlalchemy import text

from kardex_plus.models import Rol
from kardex_plus.repositories.base import CatalogRepository, HardDeleteMixin


class RolRepository(HardDeleteMixin, CatalogRepository):
    """
    Repositorio de roles.

    Usuario_Count es derivado: usuarios ACTIVOS con el rol.
    """

    TABLE = 'Roles'
    ALIAS = 'r'
    ID_COLUMN = 'Rol_Id'
    NAME_COLUMN = 'Rol_Nombre'
    ENTITY = Rol

    DUPLICATE_MESSAGE = 'Ya existe un rol con ese nombre'
    DEPENDENCY_MESSAGE = 'No se puede eliminar el rol porque tiene usuarios asignados'

    def _select_columns(self) -> str:
        return """
            r.Rol_Id,
            r.Rol_Nombre,
            r.Rol_Descripcion,
            (SELECT COUNT(*) FROM Usuarios u
             WHERE u.Rol_Id = r.Rol_Id AND u.Usuario_Estado = 1) AS Usuario_Count
        """

    def _search_columns(self) -> List[str]:
        return ['r.Rol_Nombre', 'r.Rol_Descripcion']

    def _insert_sql(self) -> str:
        return 'INSERT INTO Roles (Rol_Nombre, Rol_Descripcion) VALUES (:nombre, :descripcion)'

    def _update_sql(self) -> str:
        return 'UPDATE Roles SET Rol_Nombre = :nombre, Rol_Descripcion = :descripcion WHERE Rol_Id = :id'

    def _count_dependents(self, record_id: Any) -> int:
        return self._scalar(
            'SELECT COUNT(*) AS count FROM Usuarios WHERE Rol_Id = :id AND Usuario_Estado = 1',
            {'id': record_id}
        )

    def delete(self, record_id: Any) -> bool:
        """
        Elimina un rol sin usuarios activos.

        Las asignaciones de permisos y las referencias de usuarios inactivos
        se limpian en la misma transacción.
        """
        self._guard_dependents(record_id)
        with self.transaction() as conn:
            conn.execute(text('DELETE FROM Roles_Permisos WHERE Rol_Id = :id'), {'id': record_id})
            conn.execute(
                text('UPDATE Usuarios SET Rol_Id = NULL WHERE Rol_Id = :id AND Usuario_Estado = 0'),
                {'id': record_id}
            )
            result = conn.execute(text('DELETE FROM Roles WHERE Rol_Id = :id'), {'id': record_id})
            return result.rowcount > 0

    # =========================================================================
    # PERMISOS DEL ROL
    # =========================================================================

    def get_role_permissions(self, role_id: Any) -> List[Dict[str, Any]]:
        """
        Obtiene los permisos activos asignados a un rol.

        Returns:
            Lista de permisos con su Fecha_Asignacion
        """
        return self._fetch_all(
            """
            SELECT
                p.Permiso_Id,
                p.Permiso_Codigo,
                p.Permiso_Nombre,
                p.Permiso_Modulo,
                p.Permiso_Descripcion,
                rp.Fecha_Asignacion
            FROM Roles_Permisos rp
            INNER JOIN Permisos p ON rp.Permiso_Id = p.Permiso_Id
            WHERE rp.Rol_Id = :role_id AND p.Permiso_Estado = 1
            ORDER BY p.Permiso_Modulo, p.Permiso_Codigo
            """,
            {'role_id': role_id}
        )

    def assign_permissions(self, role_id: Any, permission_ids: Sequence[Any]) -> bool:
        """
        Reemplaza TODOS los permisos de un rol de forma atómica.

        Borra las asignaciones actuales e inserta las nuevas en una sola
        transacción; ante cualquier error se revierte y el conjunto
        anterior queda intacto. Una lista vacía revoca todo.

        Args:
            role_id: ID del rol
            permission_ids: IDs de permisos a asignar

        Returns:
            True si la transacción se confirmó
        """
        with self.transaction() as conn:
            conn.execute(text('DELETE FROM Roles_Permisos WHERE Rol_Id = :role_id'), {'role_id': role_id})
            if permission_ids:
                conn.execute(
                    text('INSERT INTO Roles_Permisos (Rol_Id, Permiso_Id) VALUES (:role_id, :permission_id)'),
                    [{'role_id': role_id, 'permission_id': pid} for pid in permission_ids]
                )
        return True

    def get_stats(self) -> List[Dict[str, Any]]:
        """Usuarios activos y permisos asignados por rol."""
        return self._fetch_all(
            """
            SELECT
                r.Rol_Id,
                r.Rol_Nombre,
                (SELECT COUNT(*) FROM Usuarios u
                 WHERE u.Rol_Id = r.Rol_Id AND u.Usuario_Estado = 1) AS Usuario_Count,
                (SELECT COUNT(*) FROM Roles_Permisos rp
                 WHERE rp.Rol_Id = r.Rol_Id) AS Permiso_Count
            FROM Roles r
            ORDER BY r.Rol_Nombre ASC
            """
        )
