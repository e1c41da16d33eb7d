# ==============================================================================
# REPOSITORIO DE USUARIOS
# ==============================================================================
# Encapsula el acceso a la tabla Usuarios (solo lo que necesitan la
# identificación del solicitante y las políticas de acceso).
# La contraseña se guarda hasheada; las lecturas nunca la retornan.
# ==============================================================================

from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from kardex_plus.exceptions import DuplicateNameError
from kardex_plus.models import Usuario
from kardex_plus.repositories.base import BaseRepository


class UsuarioRepository(BaseRepository):
    """Repositorio de usuarios."""

    _SELECT = """
        SELECT
            u.Usuario_Id,
            u.Usuario_Nombre,
            u.Usuario_Apellido,
            u.Usuario_Correo,
            u.Usuario_Estado,
            u.Rol_Id,
            r.Rol_Nombre,
            r.Rol_Descripcion
        FROM Usuarios u
        LEFT JOIN Roles r ON u.Rol_Id = r.Rol_Id
    """

    def create(self, data: Dict[str, Any]) -> int:
        """
        Crea un nuevo usuario.

        Args:
            data: Payload con Usuario_Nombre, Usuario_Correo, Usuario_Contrasena...

        Returns:
            ID del usuario creado

        Raises:
            DuplicateNameError: Si el correo ya está registrado
        """
        usuario = Usuario.from_dict(data)
        if self.email_exists(usuario.correo):
            raise DuplicateNameError('El correo ya está registrado', field='Usuario_Correo')
        try:
            return self._insert(
                """
                INSERT INTO Usuarios (Usuario_Nombre, Usuario_Apellido, Usuario_Correo,
                                      Usuario_Contrasena, Rol_Id, Usuario_Estado)
                VALUES (:nombre, :apellido, :correo, :contrasena, :rol_id, :estado)
                """,
                {
                    'nombre': usuario.nombre,
                    'apellido': usuario.apellido,
                    'correo': usuario.correo,
                    'contrasena': generate_password_hash(usuario.contrasena),
                    'rol_id': usuario.rol_id,
                    'estado': usuario.estado,
                }
            )
        except IntegrityError:
            if self.email_exists(usuario.correo):
                raise DuplicateNameError('El correo ya está registrado', field='Usuario_Correo')
            raise

    def find_by_id(self, user_id: Any) -> Optional[Dict[str, Any]]:
        """
        Busca un usuario ACTIVO por ID.

        Returns:
            Datos del usuario con su rol, o None
        """
        return self._fetch_one(
            self._SELECT + ' WHERE u.Usuario_Id = :id AND u.Usuario_Estado = 1',
            {'id': user_id}
        )

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Busca un usuario ACTIVO por correo."""
        return self._fetch_one(
            self._SELECT + ' WHERE u.Usuario_Correo = :correo AND u.Usuario_Estado = 1',
            {'correo': email}
        )

    def email_exists(self, email: str) -> bool:
        return self._scalar(
            'SELECT COUNT(*) AS count FROM Usuarios WHERE Usuario_Correo = :correo',
            {'correo': email}
        ) > 0

    def admin_exists(self, admin_role_name: str) -> bool:
        """
        Verifica si ya existe un usuario administrador activo.

        Args:
            admin_role_name: Nombre del rol administrador
        """
        count = self._scalar(
            """
            SELECT COUNT(*) AS count
            FROM Usuarios u
            INNER JOIN Roles r ON u.Rol_Id = r.Rol_Id
            WHERE r.Rol_Nombre = :rol AND u.Usuario_Estado = 1
            """,
            {'rol': admin_role_name}
        )
        return count > 0
