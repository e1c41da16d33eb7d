# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Este archivo define las interfaces (protocolos) que cumplen los
# repositorios. Esto permite:
#
# 1. INDEPENDENCIA DEL MOTOR
#    - Los servicios dependen de interfaces, NO de implementaciones concretas
#    - Cambiar el motor (SQLite, MySQL) no toca los servicios
#
# 2. TESTING
#    - Fácil crear dobles que implementen estas interfaces
#
# 3. DOCUMENTACIÓN
#    - Contratos claros de qué hace cada repositorio
#
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, Sequence, Set, runtime_checkable


# ==============================================================================
# CATÁLOGOS
# ==============================================================================

@runtime_checkable
class ICatalogRepository(Protocol):
    """
    Interfaz común de los catálogos (bodegas, categorías, roles, unidades).
    """

    def find_all(self) -> List[Dict[str, Any]]:
        """Obtiene todos los registros ordenados por nombre."""
        ...

    def find_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """Obtiene un registro por ID o None."""
        ...

    def find_with_pagination(
        self,
        offset: Any = 0,
        limit: Any = 10,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """Página de registros: {'data': [...], 'total': int}."""
        ...

    def search(self, term: str) -> List[Dict[str, Any]]:
        """Búsqueda parcial, resultados acotados."""
        ...

    def count(self) -> int:
        """Total de registros."""
        ...

    def exists(self, record_id: Any) -> bool:
        """Verifica si existe el ID."""
        ...

    def exists_by_name(self, name: str, exclude_id: Any = None) -> bool:
        """Verifica si el nombre está ocupado por otro registro."""
        ...

    def create(self, data: Dict[str, Any]) -> int:
        """Crea un registro, retorna el ID."""
        ...

    def update(self, record_id: Any, data: Dict[str, Any]) -> bool:
        """Actualiza un registro."""
        ...

    def delete(self, record_id: Any) -> bool:
        """Elimina o desactiva un registro."""
        ...


@runtime_checkable
class ISoftDeletable(Protocol):
    """Catálogos con eliminación lógica (se pueden reactivar)."""

    def restore(self, record_id: Any) -> bool:
        ...


# ==============================================================================
# PERMISOS Y USUARIOS
# ==============================================================================

@runtime_checkable
class IPermisoRepository(Protocol):
    """
    Interfaz para el repositorio de permisos.
    """

    # Función almacenada usada en la verificación puntual (None = vista)
    permission_function: Optional[str]

    def count(self) -> int:
        ...

    def count_role_assignments(self) -> int:
        ...

    def find_all_active(self) -> List[Dict[str, Any]]:
        """Catálogo de permisos activos."""
        ...

    def find_ids_by_codes(self, codes: Sequence[str]) -> Dict[str, int]:
        """Resuelve códigos a IDs."""
        ...

    def find_existing_ids(self, permission_ids: Sequence[int]) -> Set[int]:
        ...

    def grant_to_user(self, user_id: Any, permission_id: Any, tipo: str = 'PERMITIDO') -> bool:
        """Concesión o denegación directa a un usuario."""
        ...

    def revoke_from_user(self, user_id: Any, permission_id: Any) -> bool:
        ...

    def find_effective_by_user(self, user_id: Any) -> List[Dict[str, Any]]:
        """Permisos permitidos de un usuario (directos o por rol)."""
        ...

    def user_has_permission(self, user_id: Any, code: str) -> Any:
        """Valor crudo de tiene_permiso para un código."""
        ...


@runtime_checkable
class IRolPermisosRepository(Protocol):
    """
    Parte del repositorio de roles que usa PermissionService.
    """

    def exists(self, record_id: Any) -> bool:
        ...

    def find_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        ...

    def get_role_permissions(self, role_id: Any) -> List[Dict[str, Any]]:
        ...

    def assign_permissions(self, role_id: Any, permission_ids: Sequence[int]) -> bool:
        """Reemplaza atómicamente los permisos del rol."""
        ...


@runtime_checkable
class IUsuarioRepository(Protocol):
    """
    Interfaz para el repositorio de usuarios.
    """

    def find_by_id(self, user_id: Any) -> Optional[Dict[str, Any]]:
        """Usuario ACTIVO con su rol, o None."""
        ...

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        ...

    def create(self, data: Dict[str, Any]) -> int:
        ...
