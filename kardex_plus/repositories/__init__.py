# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la base de datos (SQLAlchemy Core).
# Las rutas y los servicios nunca escriben SQL.
#
# ESTRUCTURA:
# ├── interfaces.py                → Protocolos (contratos de cada repositorio)
# ├── base.py                      → BaseRepository, CatalogRepository, mixins de eliminación
# ├── bodega_repository.py         → Bodegas (eliminación lógica)
# ├── categoria_repository.py      → CategoriasItems
# ├── rol_repository.py            → Roles y Roles_Permisos
# ├── unidad_medida_repository.py  → UnidadesMedida
# ├── permiso_repository.py        → Permisos y vista de permisos efectivos
# └── usuario_repository.py        → Usuarios
# ==============================================================================

from .interfaces import (
    ICatalogRepository,
    ISoftDeletable,
    IPermisoRepository,
    IRolPermisosRepository,
    IUsuarioRepository,
)

from .base import BaseRepository, CatalogRepository, SoftDeleteMixin, HardDeleteMixin
from .bodega_repository import BodegaRepository
from .categoria_repository import CategoriaRepository
from .rol_repository import RolRepository
from .unidad_medida_repository import UnidadMedidaRepository
from .permiso_repository import PermisoRepository
from .usuario_repository import UsuarioRepository

__all__ = [
    # Interfaces
    'ICatalogRepository',
    'ISoftDeletable',
    'IPermisoRepository',
    'IRolPermisosRepository',
    'IUsuarioRepository',

    # Clases base
    'BaseRepository',
    'CatalogRepository',
    'SoftDeleteMixin',
    'HardDeleteMixin',

    # Implementaciones
    'BodegaRepository',
    'CategoriaRepository',
    'RolRepository',
    'UnidadMedidaRepository',
    'PermisoRepository',
    'UsuarioRepository',
]
