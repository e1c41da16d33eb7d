# ==============================================================================
# REPOSITORIO DE PERMISOS
# ==============================================================================
# Acceso a Permisos y a la vista de permisos efectivos (v_permisos_usuario).
# ==============================================================================

from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine

from kardex_plus.database import PERMISSIONS_VIEW
from kardex_plus.models import EstadoPermiso
from kardex_plus.repositories.base import BaseRepository


class PermisoRepository(BaseRepository):
    """
    Repositorio de permisos.

    La verificación de un permiso puntual es una consulta de una sola fila
    que retorna tiene_permiso (1/0). Si se configura una función almacenada
    (ej: fn_usuario_tiene_permiso en MySQL), se invoca esa función.
    """

    def __init__(self, engine: Engine, permission_function: Optional[str] = None):
        """
        Args:
            engine: Motor de SQLAlchemy
            permission_function: Nombre de la función almacenada (opcional)
        """
        super().__init__(engine)
        if permission_function and not permission_function.replace('_', '').isalnum():
            raise ValueError(f'Nombre de función inválido: {permission_function!r}')
        self.permission_function = permission_function

    def find_all_active(self) -> List[Dict[str, Any]]:
        """Todos los permisos activos, ordenados por módulo y código."""
        return self._fetch_all(
            """
            SELECT
                Permiso_Id,
                Permiso_Codigo,
                Permiso_Nombre,
                Permiso_Modulo,
                Permiso_Descripcion,
                Permiso_Estado
            FROM Permisos
            WHERE Permiso_Estado = 1
            ORDER BY Permiso_Modulo, Permiso_Codigo
            """
        )

    def find_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        return self._fetch_one(
            """
            SELECT Permiso_Id, Permiso_Codigo, Permiso_Nombre, Permiso_Modulo,
                   Permiso_Descripcion, Permiso_Estado
            FROM Permisos
            WHERE Permiso_Codigo = :code
            """,
            {'code': code}
        )

    def find_ids_by_codes(self, codes: Sequence[str]) -> Dict[str, int]:
        """
        Resuelve códigos a IDs (solo permisos activos).

        Returns:
            Dict {codigo: Permiso_Id} con los códigos encontrados
        """
        if not codes:
            return {}
        statement = text(
            """
            SELECT Permiso_Id, Permiso_Codigo
            FROM Permisos
            WHERE Permiso_Codigo IN :codes AND Permiso_Estado = 1
            """
        ).bindparams(bindparam('codes', expanding=True))
        with self.engine.connect() as conn:
            rows = conn.execute(statement, {'codes': list(codes)})
            return {row.Permiso_Codigo: row.Permiso_Id for row in rows}

    def find_existing_ids(self, permission_ids: Sequence[int]) -> Set[int]:
        """IDs de la lista que existen en Permisos."""
        ids = [pid for pid in permission_ids if 0 < pid <= self.MAX_SQL_INT]
        if not ids:
            return set()
        statement = text(
            'SELECT Permiso_Id FROM Permisos WHERE Permiso_Id IN :ids'
        ).bindparams(bindparam('ids', expanding=True))
        with self.engine.connect() as conn:
            return set(conn.execute(statement, {'ids': ids}).scalars())

    def count(self) -> int:
        return self._scalar('SELECT COUNT(*) AS total FROM Permisos')

    def count_role_assignments(self) -> int:
        """Filas de Roles_Permisos (asignaciones rol → permiso)."""
        return self._scalar('SELECT COUNT(*) AS total FROM Roles_Permisos')

    # =========================================================================
    # PERMISOS EFECTIVOS
    # =========================================================================

    def find_effective_by_user(self, user_id: Any) -> List[Dict[str, Any]]:
        """
        Permisos PERMITIDOS de un usuario (directos o por rol).

        Returns:
            Filas de la vista ordenadas por módulo y código
        """
        return self._fetch_all(
            f"""
            SELECT
                Permiso_Id,
                Permiso_Codigo,
                Permiso_Nombre,
                Permiso_Modulo,
                Estado_Permiso,
                Origen_Permiso
            FROM {PERMISSIONS_VIEW}
            WHERE Usuario_Id = :user_id AND Estado_Permiso = :estado
            ORDER BY Permiso_Modulo, Permiso_Codigo
            """,
            {'user_id': user_id, 'estado': EstadoPermiso.PERMITIDO.value}
        )

    def user_has_permission(self, user_id: Any, code: str) -> Any:
        """
        Ejecuta la verificación puntual.

        Returns:
            Valor crudo de tiene_permiso (1, 0 o None); la interpretación
            la hace PermissionService
        """
        params = {'user_id': user_id, 'code': code}
        if self.permission_function:
            sql = f'SELECT {self.permission_function}(:user_id, :code) AS tiene_permiso'
        else:
            params['estado'] = EstadoPermiso.PERMITIDO.value
            sql = f"""
                SELECT CASE WHEN EXISTS (
                    SELECT 1 FROM {PERMISSIONS_VIEW}
                    WHERE Usuario_Id = :user_id
                      AND Permiso_Codigo = :code
                      AND Estado_Permiso = :estado
                ) THEN 1 ELSE 0 END AS tiene_permiso
            """
        row = self._fetch_one(sql, params)
        return row['tiene_permiso'] if row else None

    def grant_to_user(self, user_id: Any, permission_id: Any, tipo: str = EstadoPermiso.PERMITIDO.value) -> bool:
        """
        Concede (o deniega) un permiso directamente a un usuario.

        Reemplaza la concesión directa previa del mismo permiso.
        """
        with self.transaction() as conn:
            conn.execute(
                text('DELETE FROM Usuarios_Permisos WHERE Usuario_Id = :user_id AND Permiso_Id = :permission_id'),
                {'user_id': user_id, 'permission_id': permission_id}
            )
            conn.execute(
                text("""
                    INSERT INTO Usuarios_Permisos (Usuario_Id, Permiso_Id, Tipo)
                    VALUES (:user_id, :permission_id, :tipo)
                """),
                {'user_id': user_id, 'permission_id': permission_id, 'tipo': tipo}
            )
        return True

    def revoke_from_user(self, user_id: Any, permission_id: Any) -> bool:
        """Elimina la concesión directa; el usuario vuelve a depender de su rol."""
        return self._execute(
            'DELETE FROM Usuarios_Permisos WHERE Usuario_Id = :user_id AND Permiso_Id = :permission_id',
            {'user_id': user_id, 'permission_id': permission_id}
        ) > 0
