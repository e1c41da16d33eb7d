# ==============================================================================
# EXCEPCIONES DEL DOMINIO
# ==============================================================================
# Los repositorios y servicios lanzan estas excepciones sin recuperarse.
# La capa de rutas las traduce a códigos HTTP y mensajes para el usuario.
# ==============================================================================

from typing import Optional


class KardexError(Exception):
    """Excepción base de la aplicación."""

    status_code = 500
    kind = 'error'

    def __init__(self, message: str = '', **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(KardexError):
    """Datos de entrada incompletos o inválidos."""

    status_code = 400
    kind = 'validation'


class DuplicateNameError(KardexError):
    """Violación de unicidad (nombre, prefijo, código)."""

    status_code = 409
    kind = 'duplicate'

    def __init__(self, message: str = '', field: Optional[str] = None, value=None):
        super().__init__(message, field=field, value=value)
        self.field = field
        self.value = value


class DependencyExistsError(KardexError):
    """Eliminación bloqueada por registros que referencian la fila."""

    status_code = 409
    kind = 'dependency'

    def __init__(self, message: str = '', dependents: int = 0):
        super().__init__(message, dependents=dependents)
        self.dependents = dependents


class AuthorizationError(KardexError):
    """Acceso a datos de otro usuario sin rol de administrador."""

    status_code = 403
    kind = 'authorization'


class NotFoundError(KardexError):
    """
    Recurso inexistente.

    Los repositorios NO la lanzan (retornan None); solo las rutas
    la usan para responder 404.
    """

    status_code = 404
    kind = 'not_found'


# Mensajes curados para el usuario final, por tipo de error.
# El detalle interno va al log de errores, no al cliente.
USER_MESSAGES = {
    'validation': 'Los datos enviados no son válidos',
    'duplicate': 'Ya existe un registro con ese valor',
    'dependency': 'No se puede eliminar porque tiene registros asociados',
    'authorization': 'No tienes permisos para realizar esta acción',
    'not_found': 'Recurso no encontrado',
    'error': 'Error interno del servidor',
}


def user_message(error: Exception) -> str:
    """
    Obtiene el mensaje visible para el usuario.

    Las excepciones del dominio llevan un mensaje ya redactado para el
    usuario; cualquier otra excepción se reduce al mensaje genérico.
    """
    if isinstance(error, KardexError):
        return error.message or USER_MESSAGES.get(error.kind, USER_MESSAGES['error'])
    return USER_MESSAGES['error']
