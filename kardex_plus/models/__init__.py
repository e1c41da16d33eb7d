# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Dataclasses con los campos editables de cada entidad.
# Normalizan el payload de los formularios antes de llegar al SQL.
# ==============================================================================

from .entities import (
    # Catálogos
    Bodega,
    BodegaTipo,
    CategoriaItem,
    UnidadMedida,

    # Seguridad
    Rol,
    Usuario,
    EstadoPermiso,
    OrigenPermiso,

    # Utilidades
    to_flag,
)

__all__ = [
    'Bodega',
    'BodegaTipo',
    'CategoriaItem',
    'UnidadMedida',
    'Rol',
    'Usuario',
    'EstadoPermiso',
    'OrigenPermiso',
    'to_flag',
]
