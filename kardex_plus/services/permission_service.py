# ==============================================================================
# SERVICIO DE PERMISOS
# ==============================================================================
# Resuelve los permisos efectivos de un usuario (directos + heredados del
# rol) y administra la asignación de permisos a roles.
#
# No aplica la política de acceso entre usuarios: eso lo hace UserService
# antes de llamar a este servicio.
# ==============================================================================

from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Sequence

from kardex_plus.exceptions import ValidationError
from kardex_plus.models import EstadoPermiso
from kardex_plus.performance_logger import log_error, profile_function
from kardex_plus.repositories.interfaces import IPermisoRepository, IRolPermisosRepository


# Valor de tiene_permiso que significa "permitido".
# Cualquier otro valor, incluido None, se trata como denegado.
PERMISSION_GRANTED = 1


class PermissionService:
    """
    Servicio para resolución y asignación de permisos.

    Responsabilidades:
    - Permisos efectivos agrupados por módulo
    - Verificación puntual y por lotes
    - Catálogo de permisos activos
    - Reemplazo atómico de los permisos de un rol
    - Concesiones y denegaciones directas a un usuario
    """

    def __init__(
        self,
        permiso_repo: IPermisoRepository,
        rol_repo: IRolPermisosRepository,
        max_workers: int = 8
    ):
        """
        Inicializa el servicio de permisos.

        Args:
            permiso_repo: Repositorio de permisos
            rol_repo: Repositorio de roles
            max_workers: Hilos para verificaciones por lotes
        """
        self.permiso_repo = permiso_repo
        self.rol_repo = rol_repo
        self.max_workers = max(1, max_workers)

    # =========================================================================
    # PERMISOS EFECTIVOS
    # =========================================================================

    def get_effective_permissions(self, user_id: Any) -> Dict[str, List[Dict[str, Any]]]:
        """
        Obtiene los permisos permitidos de un usuario agrupados por módulo.

        Returns:
            {modulo: [{id, codigo, nombre, origen}, ...]} en orden de módulo y código
        """
        rows = self.permiso_repo.find_effective_by_user(user_id)
        return self._group_by_module(rows)

    def get_user_permission_summary(self, user_id: Any) -> Dict[str, Any]:
        """
        Resumen completo para la vista de permisos de un usuario.

        Returns:
            {userId, totalPermissions, permissionsByModule, permissions}
        """
        rows = self.permiso_repo.find_effective_by_user(user_id)
        return {
            'userId': user_id,
            'totalPermissions': len(rows),
            'permissionsByModule': self._group_by_module(rows),
            'permissions': [row['Permiso_Codigo'] for row in rows],
        }

    def get_my_permissions(self, user_id: Any) -> Dict[str, Any]:
        """
        Permisos del usuario actual en formato compacto para el frontend.

        Returns:
            {userId, permissions: [codigos], permissionsByModule: {modulo: [codigos]},
             totalPermissions}
        """
        rows = self.permiso_repo.find_effective_by_user(user_id)
        by_module: Dict[str, List[str]] = OrderedDict()
        for row in rows:
            by_module.setdefault(row['Permiso_Modulo'], []).append(row['Permiso_Codigo'])
        return {
            'userId': user_id,
            'permissions': [row['Permiso_Codigo'] for row in rows],
            'permissionsByModule': by_module,
            'totalPermissions': len(rows),
        }

    @staticmethod
    def _group_by_module(rows: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = OrderedDict()
        for row in rows:
            grouped.setdefault(row['Permiso_Modulo'], []).append({
                'id': row['Permiso_Id'],
                'codigo': row['Permiso_Codigo'],
                'nombre': row['Permiso_Nombre'],
                'origen': row['Origen_Permiso'],
            })
        return grouped

    # =========================================================================
    # VERIFICACIÓN
    # =========================================================================

    def has_permission(self, user_id: Any, code: str) -> bool:
        """
        Verifica si un usuario tiene un permiso.

        Solo tiene_permiso == 1 cuenta como permitido; un resultado nulo o
        desconocido se trata como denegado.
        """
        return self.permiso_repo.user_has_permission(user_id, code) == PERMISSION_GRANTED

    def _check_one(self, user_id: Any, code: str) -> Dict[str, Any]:
        try:
            return {'code': code, 'hasPermission': self.has_permission(user_id, code)}
        except Exception as e:
            # Falla solo este código; el lote continúa
            log_error(f'Verificación de permiso {code!r} para usuario {user_id}', e)
            return {'code': code, 'hasPermission': False, 'error': str(e)}

    @profile_function(name='Verificar permisos por lote')
    def has_permissions(self, user_id: Any, codes: Sequence[str]) -> Dict[str, Any]:
        """
        Verifica varios permisos de forma concurrente.

        Cada código se evalúa por separado; un error en uno se reporta como
        hasPermission=False con el error adjunto, sin abortar el lote.

        Args:
            user_id: ID del usuario
            codes: Códigos de permiso a verificar

        Returns:
            {userId, results: [{code, hasPermission, error?}],
             summary: {total, granted, denied}}

        Raises:
            ValidationError: Si codes no es una lista no vacía
        """
        if not isinstance(codes, (list, tuple)) or len(codes) == 0:
            raise ValidationError('Se debe proporcionar un array de permisos para verificar')

        workers = min(self.max_workers, len(codes))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._check_one, user_id, code) for code in codes]
            results = [future.result() for future in futures]

        granted = sum(1 for r in results if r['hasPermission'])
        return {
            'userId': user_id,
            'results': results,
            'summary': {
                'total': len(codes),
                'granted': granted,
                'denied': len(results) - granted,
            },
        }

    # =========================================================================
    # CATÁLOGO
    # =========================================================================

    def list_all_permissions(self) -> Dict[str, Any]:
        """
        Obtiene todos los permisos activos agrupados por módulo.

        Returns:
            {totalPermissions, modules, permissionsByModule, permissions}
        """
        permissions = self.permiso_repo.find_all_active()
        by_module: Dict[str, List[Dict[str, Any]]] = OrderedDict()
        for p in permissions:
            by_module.setdefault(p['Permiso_Modulo'], []).append({
                'id': p['Permiso_Id'],
                'codigo': p['Permiso_Codigo'],
                'nombre': p['Permiso_Nombre'],
                'descripcion': p['Permiso_Descripcion'],
            })
        return {
            'totalPermissions': len(permissions),
            'modules': list(by_module.keys()),
            'permissionsByModule': by_module,
            'permissions': permissions,
        }

    def get_setup_status(self) -> Dict[str, Any]:
        """Estado de configuración del catálogo de permisos."""
        permissions_count = self.permiso_repo.count()
        assignments_count = self.permiso_repo.count_role_assignments()
        return {
            'permissionsCount': permissions_count,
            'assignmentsCount': assignments_count,
            'functionConfigured': bool(self.permiso_repo.permission_function),
            'isConfigured': permissions_count > 0,
        }

    # =========================================================================
    # ASIGNACIÓN A ROLES
    # =========================================================================

    def get_role_permissions(self, role_id: Any) -> List[Dict[str, Any]]:
        return self.rol_repo.get_role_permissions(role_id)

    @profile_function(name='Asignar permisos a rol')
    def assign_permissions(self, role_id: Any, permission_ids: Sequence[Any]) -> bool:
        """
        Reemplaza el conjunto de permisos de un rol (atómico).

        Args:
            role_id: ID del rol
            permission_ids: IDs de permisos; lista vacía = revocar todos

        Returns:
            True si se asignó, False si el rol no existe

        Raises:
            ValidationError: Si permission_ids no es una lista de enteros
                o incluye IDs que no existen
        """
        if not isinstance(permission_ids, (list, tuple)):
            raise ValidationError('Se debe proporcionar un array de IDs de permisos')
        try:
            ids = list(dict.fromkeys(int(pid) for pid in permission_ids))
        except (TypeError, ValueError):
            raise ValidationError('Los IDs de permisos deben ser numéricos')

        if not self.rol_repo.exists(role_id):
            return False

        existing = self.permiso_repo.find_existing_ids(ids)
        unknown = [pid for pid in ids if pid not in existing]
        if unknown:
            raise ValidationError(
                f"Permisos desconocidos: {', '.join(str(pid) for pid in unknown)}", ids=unknown
            )
        return self.rol_repo.assign_permissions(role_id, ids)

    def assign_permissions_by_codes(self, role_name: str, codes: Sequence[str]) -> Dict[str, Any]:
        """
        Reemplaza los permisos de un rol identificando rol y permisos por nombre/código.

        Returns:
            {roleName, permissionsAssigned} o None si el rol no existe

        Raises:
            ValidationError: Si codes no es lista o contiene códigos desconocidos
        """
        if not isinstance(codes, (list, tuple)):
            raise ValidationError('Se debe proporcionar un array de códigos de permisos')

        role = self.rol_repo.find_by_name(role_name)
        if role is None:
            return None

        ids_by_code = self.permiso_repo.find_ids_by_codes(codes)
        unknown = [code for code in codes if code not in ids_by_code]
        if unknown:
            raise ValidationError(f"Permisos desconocidos: {', '.join(unknown)}", codes=unknown)

        # dict.fromkeys conserva el orden y elimina códigos repetidos
        ids = list(dict.fromkeys(ids_by_code[code] for code in codes))
        self.rol_repo.assign_permissions(role['Rol_Id'], ids)
        return {'roleName': role_name, 'permissionsAssigned': len(ids)}

    # =========================================================================
    # CONCESIONES DIRECTAS A USUARIOS
    # =========================================================================

    def grant_to_user(self, user_id: Any, permission_id: int, tipo: Any = None) -> bool:
        """
        Concede (PERMITIDO) o deniega (DENEGADO) un permiso a un usuario.

        La fila directa prevalece sobre lo que otorga el rol del usuario.

        Raises:
            ValidationError: Tipo desconocido o permiso inexistente
        """
        tipo = tipo or EstadoPermiso.PERMITIDO.value
        valid = [estado.value for estado in EstadoPermiso]
        if tipo not in valid:
            raise ValidationError(f"El tipo debe ser {' o '.join(valid)}", field='tipo')
        if not self.permiso_repo.find_existing_ids([permission_id]):
            raise ValidationError(f'Permisos desconocidos: {permission_id}', ids=[permission_id])
        return self.permiso_repo.grant_to_user(user_id, permission_id, tipo)

    def revoke_from_user(self, user_id: Any, permission_id: int) -> bool:
        """
        Quita la concesión directa; el usuario vuelve a depender de su rol.

        Returns:
            False si no había concesión directa
        """
        return self.permiso_repo.revoke_from_user(user_id, permission_id)
