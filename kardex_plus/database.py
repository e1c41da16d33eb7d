# ==============================================================================
# BASE DE DATOS - Motor, esquema y datos iniciales
# ==============================================================================
# El motor de SQLAlchemy mantiene el pool de conexiones; se crea UNA VEZ
# por aplicación (ver AppContainer).
#
# Los nombres de tablas y columnas conservan el prefijo de entidad
# (Bodega_Nombre, Permiso_Codigo, ...) para compatibilidad con datos
# existentes. Las restricciones UNIQUE del esquema son la garantía real
# de unicidad; las verificaciones previas de los repositorios solo dan
# un mensaje temprano al usuario.
# ==============================================================================

from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    inspect,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from werkzeug.security import generate_password_hash

from kardex_plus.exceptions import ValidationError
from kardex_plus.models import EstadoPermiso, OrigenPermiso


metadata = MetaData()

# ═══════════════════════════════════════════════════════════════════════════════
# SEGURIDAD: usuarios, roles y permisos
# ═══════════════════════════════════════════════════════════════════════════════

roles = Table(
    'Roles', metadata,
    Column('Rol_Id', Integer, primary_key=True, autoincrement=True),
    Column('Rol_Nombre', String(100), nullable=False, unique=True),
    Column('Rol_Descripcion', String(255)),
)

usuarios = Table(
    'Usuarios', metadata,
    Column('Usuario_Id', Integer, primary_key=True, autoincrement=True),
    Column('Usuario_Nombre', String(100), nullable=False),
    Column('Usuario_Apellido', String(100)),
    Column('Usuario_Correo', String(150), nullable=False, unique=True),
    Column('Usuario_Contrasena', String(255), nullable=False),
    Column('Rol_Id', Integer, ForeignKey('Roles.Rol_Id')),
    Column('Usuario_Estado', Integer, nullable=False, server_default=text('1')),
)

permisos = Table(
    'Permisos', metadata,
    Column('Permiso_Id', Integer, primary_key=True, autoincrement=True),
    Column('Permiso_Codigo', String(100), nullable=False, unique=True),
    Column('Permiso_Nombre', String(150), nullable=False),
    Column('Permiso_Descripcion', String(255)),
    Column('Permiso_Modulo', String(50), nullable=False),
    Column('Permiso_Estado', Integer, nullable=False, server_default=text('1')),
)

roles_permisos = Table(
    'Roles_Permisos', metadata,
    Column('Rol_Id', Integer, ForeignKey('Roles.Rol_Id', ondelete='CASCADE'), nullable=False),
    Column('Permiso_Id', Integer, ForeignKey('Permisos.Permiso_Id'), nullable=False),
    Column('Fecha_Asignacion', DateTime, server_default=func.now()),
    PrimaryKeyConstraint('Rol_Id', 'Permiso_Id'),
)

# Concesiones (o denegaciones) directas a un usuario
usuarios_permisos = Table(
    'Usuarios_Permisos', metadata,
    Column('Usuario_Id', Integer, ForeignKey('Usuarios.Usuario_Id', ondelete='CASCADE'), nullable=False),
    Column('Permiso_Id', Integer, ForeignKey('Permisos.Permiso_Id'), nullable=False),
    Column('Tipo', String(20), nullable=False, server_default=text("'PERMITIDO'")),
    Column('Fecha_Asignacion', DateTime, server_default=func.now()),
    PrimaryKeyConstraint('Usuario_Id', 'Permiso_Id'),
)

# ═══════════════════════════════════════════════════════════════════════════════
# CATÁLOGOS: bodegas, categorías, unidades de medida
# ═══════════════════════════════════════════════════════════════════════════════

bodegas = Table(
    'Bodegas', metadata,
    Column('Bodega_Id', Integer, primary_key=True, autoincrement=True),
    Column('Bodega_Nombre', String(100), nullable=False, unique=True),
    Column('Bodega_Tipo', String(50)),
    Column('Bodega_Ubicacion', String(255)),
    Column('Responsable_Id', Integer, ForeignKey('Usuarios.Usuario_Id')),
    Column('Bodega_Estado', Integer, nullable=False, server_default=text('1')),
)

categorias_items = Table(
    'CategoriasItems', metadata,
    Column('CategoriaItem_Id', Integer, primary_key=True, autoincrement=True),
    Column('CategoriaItem_Nombre', String(100), nullable=False, unique=True),
    Column('CategoriaItem_Descripcion', Text),
)

unidades_medida = Table(
    'UnidadesMedida', metadata,
    Column('UnidadMedida_Id', Integer, primary_key=True, autoincrement=True),
    Column('UnidadMedida_Nombre', String(100), nullable=False, unique=True),
    Column('UnidadMedida_Prefijo', String(20), nullable=False, unique=True),
    Column('UnidadMedida_Factor_Conversion', Float),
)

# ═══════════════════════════════════════════════════════════════════════════════
# TABLAS REFERENCIADAS POR LAS GUARDAS DE ELIMINACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

items = Table(
    'Items', metadata,
    Column('Item_Id', Integer, primary_key=True, autoincrement=True),
    Column('Item_Nombre', String(150), nullable=False),
    Column('CategoriaItem_Id', Integer, ForeignKey('CategoriasItems.CategoriaItem_Id')),
    Column('Item_Estado', Integer, nullable=False, server_default=text('1')),
)

existencias = Table(
    'Existencias', metadata,
    Column('Existencia_Id', Integer, primary_key=True, autoincrement=True),
    Column('Bodega_Id', Integer, ForeignKey('Bodegas.Bodega_Id'), nullable=False),
    Column('Item_Id', Integer, ForeignKey('Items.Item_Id'), nullable=False),
    Column('Cantidad', Float, nullable=False, server_default=text('0')),
)

presentaciones = Table(
    'Presentaciones', metadata,
    Column('Presentacion_Id', Integer, primary_key=True, autoincrement=True),
    Column('Presentacion_Nombre', String(150), nullable=False),
    Column('Item_Id', Integer, ForeignKey('Items.Item_Id')),
    Column('UnidadMedida_Id', Integer, ForeignKey('UnidadesMedida.UnidadMedida_Id')),
)


# Permisos efectivos: concesiones directas + heredadas del rol.
# Una fila directa (permitida o denegada) prevalece sobre la del rol.
PERMISSIONS_VIEW = 'v_permisos_usuario'

_PERMISSIONS_VIEW_SQL = f"""
CREATE VIEW {PERMISSIONS_VIEW} AS
SELECT
    u.Usuario_Id AS Usuario_Id,
    p.Permiso_Id AS Permiso_Id,
    p.Permiso_Codigo AS Permiso_Codigo,
    p.Permiso_Nombre AS Permiso_Nombre,
    p.Permiso_Modulo AS Permiso_Modulo,
    up.Tipo AS Estado_Permiso,
    '{OrigenPermiso.DIRECTO.value}' AS Origen_Permiso
FROM Usuarios_Permisos up
INNER JOIN Usuarios u ON up.Usuario_Id = u.Usuario_Id
INNER JOIN Permisos p ON up.Permiso_Id = p.Permiso_Id
WHERE u.Usuario_Estado = 1 AND p.Permiso_Estado = 1
UNION ALL
SELECT
    u.Usuario_Id AS Usuario_Id,
    p.Permiso_Id AS Permiso_Id,
    p.Permiso_Codigo AS Permiso_Codigo,
    p.Permiso_Nombre AS Permiso_Nombre,
    p.Permiso_Modulo AS Permiso_Modulo,
    '{EstadoPermiso.PERMITIDO.value}' AS Estado_Permiso,
    '{OrigenPermiso.ROL.value}' AS Origen_Permiso
FROM Usuarios u
INNER JOIN Roles_Permisos rp ON u.Rol_Id = rp.Rol_Id
INNER JOIN Permisos p ON rp.Permiso_Id = p.Permiso_Id
WHERE u.Usuario_Estado = 1 AND p.Permiso_Estado = 1
  AND NOT EXISTS (
      SELECT 1 FROM Usuarios_Permisos up2
      WHERE up2.Usuario_Id = u.Usuario_Id AND up2.Permiso_Id = p.Permiso_Id
  )
"""


# Catálogo base de permisos: (código, nombre, descripción, módulo)
BASE_PERMISSIONS = [
    ('usuarios.ver', 'Ver Usuarios', 'Permite ver la lista de usuarios y sus detalles', 'usuarios'),
    ('usuarios.crear', 'Crear Usuarios', 'Permite crear nuevos usuarios en el sistema', 'usuarios'),
    ('usuarios.editar', 'Editar Usuarios', 'Permite modificar información de usuarios existentes', 'usuarios'),
    ('usuarios.eliminar', 'Eliminar Usuarios', 'Permite eliminar usuarios del sistema', 'usuarios'),
    ('roles.ver', 'Ver Roles', 'Permite ver la lista de roles y sus detalles', 'roles'),
    ('roles.crear', 'Crear Roles', 'Permite crear nuevos roles en el sistema', 'roles'),
    ('roles.editar', 'Editar Roles', 'Permite modificar roles existentes', 'roles'),
    ('roles.eliminar', 'Eliminar Roles', 'Permite eliminar roles del sistema', 'roles'),
    ('roles.asignar_permisos', 'Asignar Permisos', 'Permite asignar y gestionar permisos de roles', 'roles'),
    ('bodegas.ver', 'Ver Bodegas', 'Permite ver bodegas y sus existencias', 'bodegas'),
    ('bodegas.gestionar', 'Gestionar Bodegas', 'Permite crear, editar y desactivar bodegas', 'bodegas'),
    ('categorias.ver', 'Ver Categorías', 'Permite ver las categorías de items', 'categorias'),
    ('categorias.gestionar', 'Gestionar Categorías', 'Permite crear, editar y eliminar categorías', 'categorias'),
    ('unidades.ver', 'Ver Unidades de Medida', 'Permite ver las unidades de medida', 'unidades'),
    ('unidades.gestionar', 'Gestionar Unidades de Medida', 'Permite crear, editar y eliminar unidades', 'unidades'),
]


def create_db_engine(database_url: str) -> Engine:
    """
    Crea el motor (y su pool de conexiones).

    Args:
        database_url: URL de SQLAlchemy (sqlite, mysql+pymysql, postgresql...)

    Returns:
        Engine listo para usar
    """
    kwargs = {}
    if database_url.startswith('sqlite'):
        kwargs['connect_args'] = {'check_same_thread': False}
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            # Una sola conexión compartida: la BD en memoria vive en ella
            kwargs['poolclass'] = StaticPool

    engine = create_engine(database_url, **kwargs)

    if engine.dialect.name == 'sqlite':
        @event.listens_for(engine, 'connect')
        def _configure_sqlite(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()
            # LOWER nativo de SQLite solo convierte ASCII (FRÍO != frío)
            dbapi_connection.create_function('LOWER', 1, _unicode_lower, deterministic=True)

    return engine


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def init_schema(engine: Engine) -> None:
    """Crea tablas y la vista de permisos efectivos si no existen."""
    metadata.create_all(engine)
    if PERMISSIONS_VIEW not in inspect(engine).get_view_names():
        with engine.begin() as conn:
            conn.execute(text(_PERMISSIONS_VIEW_SQL))


def seed_permissions(
    engine: Engine,
    admin_role_name: str = 'Administrador',
    admin_email: Optional[str] = None,
    admin_password: Optional[str] = None
) -> int:
    """
    Inserta el catálogo base de permisos y lo asigna al rol administrador.

    El rol se crea si no existe. Opcionalmente crea un usuario administrador.

    Args:
        engine: Motor de base de datos
        admin_role_name: Nombre del rol administrador
        admin_email: Correo del usuario administrador (opcional)
        admin_password: Contraseña del usuario administrador (opcional)

    Returns:
        Número de permisos insertados

    Raises:
        ValidationError: Si ya existen permisos configurados
    """
    with engine.begin() as conn:
        existing = conn.execute(text('SELECT COUNT(*) AS total FROM Permisos')).scalar()
        if existing > 0:
            raise ValidationError('Los permisos ya están configurados en la base de datos')

        role_id = conn.execute(
            text('SELECT Rol_Id FROM Roles WHERE Rol_Nombre = :nombre'),
            {'nombre': admin_role_name}
        ).scalar()
        if role_id is None:
            role_id = conn.execute(
                text('INSERT INTO Roles (Rol_Nombre, Rol_Descripcion) VALUES (:nombre, :descripcion)'),
                {'nombre': admin_role_name, 'descripcion': 'Acceso total al sistema'}
            ).lastrowid

        conn.execute(
            text("""
                INSERT INTO Permisos (Permiso_Codigo, Permiso_Nombre, Permiso_Descripcion, Permiso_Modulo)
                VALUES (:codigo, :nombre, :descripcion, :modulo)
            """),
            [
                {'codigo': c, 'nombre': n, 'descripcion': d, 'modulo': m}
                for c, n, d, m in BASE_PERMISSIONS
            ]
        )

        conn.execute(
            text("""
                INSERT INTO Roles_Permisos (Rol_Id, Permiso_Id)
                SELECT :rol_id, Permiso_Id FROM Permisos
            """),
            {'rol_id': role_id}
        )

        if admin_email and admin_password:
            conn.execute(
                text("""
                    INSERT INTO Usuarios (Usuario_Nombre, Usuario_Apellido, Usuario_Correo,
                                          Usuario_Contrasena, Rol_Id)
                    VALUES (:nombre, :apellido, :correo, :contrasena, :rol_id)
                """),
                {
                    'nombre': 'Admin',
                    'apellido': 'Kardex',
                    'correo': admin_email,
                    'contrasena': generate_password_hash(admin_password),
                    'rol_id': role_id,
                }
            )

    return len(BASE_PERMISSIONS)
