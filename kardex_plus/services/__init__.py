# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (controllers) solo llaman a servicios o repositorios
#
# ESTRUCTURA:
# ├── user_service.py       → Usuario solicitante, rol administrador, acceso entre usuarios
# └── permission_service.py → Permisos efectivos, verificación, asignación a roles
#
# SEGURIDAD:
# Un usuario solo puede ver los permisos de OTRO usuario si es administrador.
# La validación vive en UserService.ensure_can_view_user(), en BACKEND.
# ==============================================================================

from kardex_plus.services.user_service import UserService
from kardex_plus.services.permission_service import PermissionService

__all__ = [
    'UserService',
    'PermissionService',
]
