# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Identificación del solicitante y políticas de acceso entre usuarios.
#
# REGLA DE ACCESO:
# Un usuario solo puede consultar los permisos de OTRO usuario si tiene el
# rol administrador. Estas validaciones se hacen AQUÍ, no en las rutas.
# ==============================================================================

from typing import Any, Dict, Optional

from kardex_plus.exceptions import AuthorizationError
from kardex_plus.repositories.interfaces import IUsuarioRepository


class UserService:
    """
    Servicio para usuarios.

    Responsabilidades:
    - Cargar al usuario activo que hace la petición
    - Determinar si es administrador
    - Aplicar la política de acceso a datos de otros usuarios
    """

    def __init__(self, usuario_repo: IUsuarioRepository, admin_role_name: str = 'Administrador'):
        """
        Inicializa el servicio de usuarios.

        Args:
            usuario_repo: Repositorio de usuarios
            admin_role_name: Nombre del rol con privilegios de administración
        """
        self.usuario_repo = usuario_repo
        self.admin_role_name = admin_role_name

    def get_active_user(self, user_id: Any) -> Optional[Dict[str, Any]]:
        """
        Obtiene un usuario activo.

        Returns:
            Datos del usuario (sin contraseña) o None si no existe o está inactivo
        """
        if user_id is None:
            return None
        return self.usuario_repo.find_by_id(user_id)

    def is_admin(self, user: Optional[Dict[str, Any]]) -> bool:
        """Verifica si el usuario tiene el rol administrador."""
        return bool(user) and user.get('Rol_Nombre') == self.admin_role_name

    def ensure_can_view_user(
        self,
        caller: Dict[str, Any],
        target_user_id: Any,
        message: str = 'No tienes permisos para ver esta información'
    ) -> None:
        """
        Valida que el solicitante pueda ver los datos de target_user_id.

        Args:
            caller: Usuario que hace la petición
            target_user_id: Usuario consultado
            message: Mensaje del error de autorización

        Raises:
            AuthorizationError: Si no es el mismo usuario ni administrador
        """
        if str(caller.get('Usuario_Id')) == str(target_user_id):
            return
        if self.is_admin(caller):
            return
        raise AuthorizationError(message)

    def ensure_admin(self, caller: Optional[Dict[str, Any]]) -> None:
        """
        Raises:
            AuthorizationError: Si el solicitante no es administrador
        """
        if not self.is_admin(caller):
            raise AuthorizationError('Acceso denegado: se requiere rol de administrador')
