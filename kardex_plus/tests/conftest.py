# -*- coding: utf-8 -*-
"""
Fixtures comunes: base SQLite temporal, repositorios, usuarios de prueba
y cliente Flask.
"""
import pytest
from sqlalchemy import text

from kardex_plus import performance_logger
from kardex_plus.app_container import AppContainer, get_container
from kardex_plus.database import create_db_engine, init_schema, seed_permissions
from kardex_plus.main import create_app
from kardex_plus.repositories import (
    BodegaRepository,
    CategoriaRepository,
    PermisoRepository,
    RolRepository,
    UnidadMedidaRepository,
    UsuarioRepository,
)
from kardex_plus.services import PermissionService, UserService


@pytest.fixture(autouse=True)
def logs_dir(tmp_path, monkeypatch):
    """Los logs de cada test van a su directorio temporal."""
    path = tmp_path / 'logs'
    monkeypatch.setattr(performance_logger, 'LOGS_DIR', str(path))
    return path


# ═══════════════════════════════════════════════════════════════════════════
# BASE DE DATOS
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def engine(tmp_path):
    # Archivo (no memoria): cada hilo de las verificaciones por lote usa su conexión
    engine = create_db_engine(f"sqlite:///{tmp_path / 'kardex_test.db'}")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def run_sql(engine):
    """Ejecuta SQL crudo (tablas sin repositorio: Items, Existencias...)."""
    def _run(sql, params=None):
        with engine.begin() as conn:
            return conn.execute(text(sql), params or {}).lastrowid
    return _run


@pytest.fixture
def bodega_repo(engine):
    return BodegaRepository(engine)


@pytest.fixture
def categoria_repo(engine):
    return CategoriaRepository(engine)


@pytest.fixture
def rol_repo(engine):
    return RolRepository(engine)


@pytest.fixture
def unidad_repo(engine):
    return UnidadMedidaRepository(engine)


@pytest.fixture
def permiso_repo(engine):
    return PermisoRepository(engine)


@pytest.fixture
def usuario_repo(engine):
    return UsuarioRepository(engine)


@pytest.fixture
def permission_service(permiso_repo, rol_repo):
    return PermissionService(permiso_repo, rol_repo, max_workers=4)


@pytest.fixture
def user_service(usuario_repo):
    return UserService(usuario_repo)


# ═══════════════════════════════════════════════════════════════════════════
# USUARIOS DE PRUEBA
# ═══════════════════════════════════════════════════════════════════════════

def _seed_users(engine):
    """
    Catálogo base de permisos + rol Operador sin permisos + 3 usuarios:
    admin (Administrador), operador (Operador) e inactivo (Operador, estado 0).
    """
    seed_permissions(engine)
    usuario_repo = UsuarioRepository(engine)
    rol_repo = RolRepository(engine)

    admin_role_id = rol_repo.find_by_name('Administrador')['Rol_Id']
    operador_role_id = rol_repo.create({
        'Rol_Nombre': 'Operador',
        'Rol_Descripcion': 'Operación diaria de bodegas',
    })

    admin_id = usuario_repo.create({
        'Usuario_Nombre': 'Ana',
        'Usuario_Apellido': 'Pérez',
        'Usuario_Correo': 'ana@kardex.test',
        'Usuario_Contrasena': 'secreto123',
        'Rol_Id': admin_role_id,
    })
    operador_id = usuario_repo.create({
        'Usuario_Nombre': 'Luis',
        'Usuario_Apellido': 'Soto',
        'Usuario_Correo': 'luis@kardex.test',
        'Usuario_Contrasena': 'secreto123',
        'Rol_Id': operador_role_id,
    })
    inactivo_id = usuario_repo.create({
        'Usuario_Nombre': 'Marta',
        'Usuario_Apellido': 'Rojas',
        'Usuario_Correo': 'marta@kardex.test',
        'Usuario_Contrasena': 'secreto123',
        'Rol_Id': operador_role_id,
        'Usuario_Estado': 0,
    })

    return {
        'admin_role_id': admin_role_id,
        'operador_role_id': operador_role_id,
        'admin_id': admin_id,
        'operador_id': operador_id,
        'inactivo_id': inactivo_id,
    }


@pytest.fixture
def users(engine):
    return _seed_users(engine)


# ═══════════════════════════════════════════════════════════════════════════
# APP FLASK
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app_config(tmp_path, logs_dir):
    return {
        'TESTING': True,
        'SECRET_KEY': 'kardex_test_secret',
        'DATABASE_URL': f"sqlite:///{tmp_path / 'kardex_api.db'}",
        'LOGS_DIR': str(logs_dir),
        'EXPOSE_ERROR_DETAILS': False,
        'ENABLE_PROFILING': True,
        'PERMISSION_FUNCTION': None,
    }


@pytest.fixture
def app(app_config):
    app = create_app(app_config)
    yield app
    AppContainer.reset_instance()


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def api_users(app):
    return _seed_users(get_container().engine)


@pytest.fixture
def login():
    """Simula el login externo: deja user_id en la sesión."""
    def _login(client, user_id):
        with client.session_transaction() as sess:
            sess['user_id'] = user_id
    return _login
