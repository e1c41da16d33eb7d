# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS
# ==============================================================================
# Punto único donde se construyen motor, repositorios y servicios.
# Las rutas nunca instancian repositorios: los piden aquí. Permite:
#   - Reemplazar repositorios en tests (monkeypatch sobre la instancia)
#   - Un motor nuevo por app (create_app reinicia el contenedor)
#   - Cambiar de motor (SQLite / MySQL) solo con DATABASE_URL
#
# Todos los repositorios comparten el mismo Engine y, por lo tanto, el mismo
# pool de conexiones.
# ==============================================================================

from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine

from kardex_plus.config import load_config
from kardex_plus.database import create_db_engine

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia
# ═══════════════════════════════════════════════════════════════════════════════
from kardex_plus.repositories import (
    BodegaRepository,
    CategoriaRepository,
    RolRepository,
    UnidadMedidaRepository,
    PermisoRepository,
    UsuarioRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from kardex_plus.services import PermissionService, UserService


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(config)
        bodega_repo = container.bodega_repo
        permission_service = container.permission_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, config: Optional[Dict[str, Any]] = None):
        """Retorna siempre la misma instancia."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Guarda la configuración; nada se conecta todavía.

        Args:
            config: Configuración de la app (DATABASE_URL, ADMIN_ROLE_NAME...)
        """
        if self._initialized:
            return

        self.config = dict(config) if config is not None else load_config()

        self._engine: Optional[Engine] = None

        # Repositorios (lazy loading)
        self._bodega_repo: Optional[BodegaRepository] = None
        self._categoria_repo: Optional[CategoriaRepository] = None
        self._rol_repo: Optional[RolRepository] = None
        self._unidad_medida_repo: Optional[UnidadMedidaRepository] = None
        self._permiso_repo: Optional[PermisoRepository] = None
        self._usuario_repo: Optional[UsuarioRepository] = None

        # Servicios (lazy loading)
        self._user_service: Optional[UserService] = None
        self._permission_service: Optional[PermissionService] = None

        self._initialized = True

    # =========================================================================
    # BASE DE DATOS
    # =========================================================================

    @property
    def engine(self) -> Engine:
        """Motor de SQLAlchemy (singleton, contiene el pool)."""
        if self._engine is None:
            self._engine = create_db_engine(self.config['DATABASE_URL'])
        return self._engine

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def bodega_repo(self) -> BodegaRepository:
        """Repositorio de bodegas (singleton)."""
        if self._bodega_repo is None:
            self._bodega_repo = BodegaRepository(self.engine)
        return self._bodega_repo

    @property
    def categoria_repo(self) -> CategoriaRepository:
        """Repositorio de categorías (singleton)."""
        if self._categoria_repo is None:
            self._categoria_repo = CategoriaRepository(self.engine)
        return self._categoria_repo

    @property
    def rol_repo(self) -> RolRepository:
        """Repositorio de roles (singleton)."""
        if self._rol_repo is None:
            self._rol_repo = RolRepository(self.engine)
        return self._rol_repo

    @property
    def unidad_medida_repo(self) -> UnidadMedidaRepository:
        """Repositorio de unidades de medida (singleton)."""
        if self._unidad_medida_repo is None:
            self._unidad_medida_repo = UnidadMedidaRepository(self.engine)
        return self._unidad_medida_repo

    @property
    def permiso_repo(self) -> PermisoRepository:
        """Repositorio de permisos (singleton)."""
        if self._permiso_repo is None:
            self._permiso_repo = PermisoRepository(
                self.engine,
                permission_function=self.config.get('PERMISSION_FUNCTION')
            )
        return self._permiso_repo

    @property
    def usuario_repo(self) -> UsuarioRepository:
        """Usuarios (identidad del solicitante)."""
        if self._usuario_repo is None:
            self._usuario_repo = UsuarioRepository(self.engine)
        return self._usuario_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def user_service(self) -> UserService:
        """Política de acceso y rol administrador."""
        if self._user_service is None:
            self._user_service = UserService(
                self.usuario_repo,
                admin_role_name=self.config.get('ADMIN_ROLE_NAME', 'Administrador')
            )
        return self._user_service

    @property
    def permission_service(self) -> PermissionService:
        """Servicio de permisos (singleton)."""
        if self._permission_service is None:
            self._permission_service = PermissionService(
                self.permiso_repo,
                self.rol_repo,
                max_workers=self.config.get('PERMISSION_WORKERS', 8)
            )
        return self._permission_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias y cierra el pool de conexiones.
        Útil para testing.
        """
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None

        self._bodega_repo = None
        self._categoria_repo = None
        self._rol_repo = None
        self._unidad_medida_repo = None
        self._permiso_repo = None
        self._usuario_repo = None

        self._user_service = None
        self._permission_service = None

    @classmethod
    def get_instance(cls, config: Optional[Dict[str, Any]] = None) -> 'AppContainer':
        """
        Instancia actual o una nueva construida con config.

        Args:
            config: Configuración (solo se usa en primera llamada)

        Returns:
            Instancia del contenedor
        """
        if cls._instance is None:
            return cls(config)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Cierra el pool y descarta la instancia (create_app y tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Acceso corto usado por rutas y comandos
def get_container(config: Optional[Dict[str, Any]] = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        config: Configuración de la app

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(config)
