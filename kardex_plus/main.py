# ==============================================================================
# KARDEXPLUS - API JSON
# ==============================================================================
# Rutas (controllers) de la aplicación. Las rutas NO escriben SQL ni aplican
# reglas de negocio: llaman a repositorios y servicios del contenedor y
# arman la respuesta {success, data?, message?, error?}.
#
# La identidad del solicitante viene de la sesión de Flask (session['user_id']),
# que llena el flujo de login externo.
# ==============================================================================

import atexit
from functools import wraps

import click
from flask import Blueprint, Flask, current_app, g, request, session
from werkzeug.exceptions import HTTPException

# Sistema de profiling interno
from kardex_plus.performance_logger import (
    get_log_summary,
    init_profiling,
    log_error,
    write_function_stats_report,
)

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
from kardex_plus.app_container import AppContainer, get_container
from kardex_plus.config import load_config
from kardex_plus.database import init_schema, seed_permissions
from kardex_plus.exceptions import (
    USER_MESSAGES,
    KardexError,
    NotFoundError,
    ValidationError,
    user_message,
)
from kardex_plus.repositories.base import BaseRepository

api = Blueprint('api', __name__, url_prefix='/api')

# Tope de registros por página en los listados
MAX_PAGE_LIMIT = 100


# ═══════════════════════════════════════════════════════════════════════════
# UTILIDADES DE RESPUESTA
# ═══════════════════════════════════════════════════════════════════════════

def _ok(data=None, message=None, status=200, **extra):
    """Respuesta exitosa con el envelope estándar."""
    body = {'success': True}
    if data is not None:
        body['data'] = data
    if message:
        body['message'] = message
    body.update(extra)
    return body, status


def _body():
    """Cuerpo JSON de la petición (objeto vacío si no viene)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('El cuerpo de la petición debe ser un objeto JSON')
    return data


def _float_arg(name):
    value = request.args.get(name)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'El parámetro {name} debe ser numérico', field=name)


# ═══════════════════════════════════════════════════════════════════════════
# CONTROL DE ACCESO
# ═══════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        user_id = session.get('user_id')
        if user_id is None:
            return {'success': False, 'message': 'Debes iniciar sesión'}, 401
        user = get_container().user_service.get_active_user(user_id)
        if user is None:
            return {'success': False, 'message': 'Usuario no encontrado o inactivo'}, 403
        g.current_user = user
        return f(*args, **kwargs)
    return wrapper


def admin_required(f):
    """Debe ir DESPUÉS de @login_required."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        get_container().user_service.ensure_admin(g.get('current_user'))
        return f(*args, **kwargs)
    return wrapper


# ═══════════════════════════════════════════════════════════════════════════
# CATÁLOGOS (bodegas, categorías, roles, unidades de medida)
# ═══════════════════════════════════════════════════════════════════════════
# Todos comparten las mismas rutas CRUD; cambian el repositorio, los
# mensajes y la consulta de estadísticas.

CATALOGS = {
    'bodegas': {
        'repo': 'bodega_repo',
        'stats': 'get_stats',
        'created': 'Bodega creada exitosamente',
        'updated': 'Bodega actualizada exitosamente',
        'deleted': 'Bodega desactivada exitosamente',
        'not_found': 'Bodega no encontrada',
    },
    'categorias': {
        'repo': 'categoria_repo',
        'stats': 'get_usage_stats',
        'created': 'Categoría creada exitosamente',
        'updated': 'Categoría actualizada exitosamente',
        'deleted': 'Categoría eliminada exitosamente',
        'not_found': 'Categoría no encontrada',
    },
    'roles': {
        'repo': 'rol_repo',
        'stats': 'get_stats',
        'created': 'Rol creado exitosamente',
        'updated': 'Rol actualizado exitosamente',
        'deleted': 'Rol eliminado exitosamente',
        'not_found': 'Rol no encontrado',
    },
    'unidades-medida': {
        'repo': 'unidad_medida_repo',
        'stats': 'get_usage_stats',
        'created': 'Unidad de medida creada exitosamente',
        'updated': 'Unidad de medida actualizada exitosamente',
        'deleted': 'Unidad de medida eliminada exitosamente',
        'not_found': 'Unidad de medida no encontrada',
    },
}


def _pagination_args(args):
    """
    Lee page/offset/limit de la query string.

    page tiene prioridad sobre offset. Valores inválidos o fuera de rango
    vuelven a los valores por defecto (página 1, 10 registros).

    Returns:
        (offset, limit, page)
    """
    limit = BaseRepository.to_int(args.get('limit'), BaseRepository.DEFAULT_LIMIT)
    limit = min(limit or BaseRepository.DEFAULT_LIMIT, MAX_PAGE_LIMIT)
    if 'page' in args:
        page = max(BaseRepository.to_int(args.get('page'), 1), 1)
        offset = (page - 1) * limit
        if offset > BaseRepository.MAX_SQL_INT:
            page, offset = 1, BaseRepository.DEFAULT_OFFSET
    else:
        offset = BaseRepository.to_int(args.get('offset'), BaseRepository.DEFAULT_OFFSET)
        page = offset // limit + 1
    return offset, limit, page


def _register_catalog(slug, options):
    endpoint = slug.replace('-', '_')

    def repo():
        return getattr(get_container(), options['repo'])

    def require(record_id):
        record = repo().find_by_id(record_id)
        if record is None:
            raise NotFoundError(options['not_found'])
        return record

    @login_required
    def list_records():
        args = request.args
        if not any(key in args for key in ('page', 'offset', 'limit', 'search')):
            return _ok(repo().find_all())

        offset, limit, page = _pagination_args(args)
        result = repo().find_with_pagination(offset, limit, args.get('search'))
        total = result['total']
        return _ok(
            result['data'],
            total=total,
            pagination={
                'page': page,
                'limit': limit,
                'offset': offset,
                'total': total,
                'totalPages': (total + limit - 1) // limit,
            }
        )

    @login_required
    def list_all():
        return _ok(repo().find_all())

    @login_required
    def search():
        term = request.args.get('q', '')
        return _ok(repo().search(term))

    @login_required
    def stats():
        return _ok(getattr(repo(), options['stats'])())

    @login_required
    def get_record(record_id):
        return _ok(require(record_id))

    @login_required
    @admin_required
    def create_record():
        new_id = repo().create(_body())
        return _ok(repo().find_by_id(new_id), options['created'], 201)

    @login_required
    @admin_required
    def update_record(record_id):
        require(record_id)
        repo().update(record_id, _body())
        return _ok(repo().find_by_id(record_id), options['updated'])

    @login_required
    @admin_required
    def delete_record(record_id):
        require(record_id)
        repo().delete(record_id)
        return _ok(message=options['deleted'])

    api.add_url_rule(f'/{slug}/', f'{endpoint}_list', list_records, methods=['GET'])
    api.add_url_rule(f'/{slug}/all', f'{endpoint}_all', list_all, methods=['GET'])
    api.add_url_rule(f'/{slug}/search', f'{endpoint}_search', search, methods=['GET'])
    api.add_url_rule(f'/{slug}/stats', f'{endpoint}_stats', stats, methods=['GET'])
    api.add_url_rule(f'/{slug}/<int:record_id>', f'{endpoint}_get', get_record, methods=['GET'])
    api.add_url_rule(f'/{slug}/', f'{endpoint}_create', create_record, methods=['POST'])
    api.add_url_rule(f'/{slug}/<int:record_id>', f'{endpoint}_update', update_record, methods=['PUT'])
    api.add_url_rule(f'/{slug}/<int:record_id>', f'{endpoint}_delete', delete_record, methods=['DELETE'])


for _slug, _options in CATALOGS.items():
    _register_catalog(_slug, _options)


# ═══════════════════════════════════════════════════════════════════════════
# BODEGAS - rutas específicas
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/bodegas/active', methods=['GET'])
@login_required
def bodegas_active():
    """Bodegas activas para selects (id, nombre, tipo)."""
    return _ok(get_container().bodega_repo.get_active_bodegas())


@api.route('/bodegas/responsable/<int:user_id>', methods=['GET'])
@login_required
def bodegas_by_responsable(user_id):
    return _ok(get_container().bodega_repo.find_by_responsable(user_id))


@api.route('/bodegas/<int:record_id>/restore', methods=['PATCH'])
@login_required
@admin_required
def bodegas_restore(record_id):
    repo = get_container().bodega_repo
    if not repo.exists(record_id):
        raise NotFoundError('Bodega no encontrada')
    repo.restore(record_id)
    return _ok(repo.find_by_id(record_id), 'Bodega reactivada exitosamente')


# ═══════════════════════════════════════════════════════════════════════════
# ROLES - permisos del rol
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/roles/<int:role_id>/permissions', methods=['GET'])
@login_required
def role_permissions(role_id):
    container = get_container()
    if not container.rol_repo.exists(role_id):
        raise NotFoundError('Rol no encontrado')
    return _ok(container.permission_service.get_role_permissions(role_id))


@api.route('/roles/<int:role_id>/permissions', methods=['PUT'])
@login_required
@admin_required
def role_assign_permissions(role_id):
    """
    Reemplaza los permisos del rol.

    Body: {"permissionIds": [1, 2, 3]}  (lista vacía = revocar todos)
    """
    service = get_container().permission_service
    assigned = service.assign_permissions(role_id, _body().get('permissionIds'))
    if not assigned:
        raise NotFoundError('Rol no encontrado')
    return _ok(
        {'roleId': role_id, 'permissions': service.get_role_permissions(role_id)},
        'Permisos del rol actualizados exitosamente'
    )


# ═══════════════════════════════════════════════════════════════════════════
# UNIDADES DE MEDIDA - rutas específicas
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/unidades-medida/usage-stats', methods=['GET'])
@login_required
def unidades_usage_stats():
    return _ok(get_container().unidad_medida_repo.get_usage_stats())


@api.route('/unidades-medida/factor-range', methods=['GET'])
@login_required
def unidades_factor_range():
    factor_min = _float_arg('min')
    factor_max = _float_arg('max')
    if factor_min > factor_max:
        raise ValidationError('El factor mínimo no puede ser mayor que el máximo')
    return _ok(get_container().unidad_medida_repo.find_by_factor_range(factor_min, factor_max))


@api.route('/unidades-medida/prefix/<prefix>', methods=['GET'])
@login_required
def unidades_by_prefix(prefix):
    unidad = get_container().unidad_medida_repo.find_by_prefix(prefix)
    if unidad is None:
        raise NotFoundError('Unidad de medida no encontrada')
    return _ok(unidad)


# ═══════════════════════════════════════════════════════════════════════════
# PERMISOS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/permissions/me', methods=['GET'])
@login_required
def permissions_me():
    """Permisos del usuario actual (formato compacto para el frontend)."""
    service = get_container().permission_service
    return _ok(service.get_my_permissions(g.current_user['Usuario_Id']))


@api.route('/permissions/all', methods=['GET'])
@login_required
@admin_required
def permissions_all():
    return _ok(get_container().permission_service.list_all_permissions())


@api.route('/permissions/user/<int:user_id>', methods=['GET'])
@login_required
def permissions_user(user_id):
    """
    Permisos efectivos de un usuario agrupados por módulo.

    SEGURIDAD: solo el propio usuario o un administrador.
    """
    container = get_container()
    container.user_service.ensure_can_view_user(g.current_user, user_id)
    return _ok(container.permission_service.get_user_permission_summary(user_id))


@api.route('/permissions/user/<int:user_id>/check/<code>', methods=['GET'])
@login_required
def permissions_check(user_id, code):
    container = get_container()
    container.user_service.ensure_can_view_user(
        g.current_user, user_id, 'No tienes permisos para verificar esta información'
    )
    return _ok({
        'userId': user_id,
        'permissionCode': code,
        'hasPermission': container.permission_service.has_permission(user_id, code),
    })


@api.route('/permissions/user/<int:user_id>/check-multiple', methods=['POST'])
@login_required
def permissions_check_multiple(user_id):
    """
    Verifica varios permisos a la vez.

    Body: {"permissions": ["bodegas.ver", "roles.crear"]}
    """
    container = get_container()
    container.user_service.ensure_can_view_user(
        g.current_user, user_id, 'No tienes permisos para verificar esta información'
    )
    codes = _body().get('permissions')
    return _ok(container.permission_service.has_permissions(user_id, codes))


def _require_active_user(user_id):
    if get_container().user_service.get_active_user(user_id) is None:
        raise NotFoundError('Usuario no encontrado')


@api.route('/permissions/user/<int:user_id>/direct/<int:permission_id>', methods=['PUT'])
@login_required
@admin_required
def permissions_grant_direct(user_id, permission_id):
    """
    Concede o deniega un permiso directamente al usuario.

    Body: {"tipo": "PERMITIDO" | "DENEGADO"}  (por defecto PERMITIDO)
    """
    _require_active_user(user_id)
    service = get_container().permission_service
    service.grant_to_user(user_id, permission_id, _body().get('tipo'))
    return _ok(service.get_user_permission_summary(user_id), 'Permiso directo actualizado exitosamente')


@api.route('/permissions/user/<int:user_id>/direct/<int:permission_id>', methods=['DELETE'])
@login_required
@admin_required
def permissions_revoke_direct(user_id, permission_id):
    _require_active_user(user_id)
    service = get_container().permission_service
    if not service.revoke_from_user(user_id, permission_id):
        raise NotFoundError('El usuario no tiene ese permiso asignado directamente')
    return _ok(service.get_user_permission_summary(user_id), 'Permiso directo eliminado exitosamente')


# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN INICIAL DE PERMISOS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/setup/status', methods=['GET'])
@login_required
def setup_status():
    return _ok(get_container().permission_service.get_setup_status())


@api.route('/setup/logs', methods=['GET'])
@login_required
@admin_required
def setup_logs():
    """Estado de los archivos de log (existe, tamaño, líneas)."""
    return _ok(get_log_summary())


@api.route('/setup/permissions', methods=['POST'])
@login_required
@admin_required
def setup_permissions():
    """Crea el catálogo base y lo asigna al rol administrador."""
    created = seed_permissions(
        get_container().engine,
        admin_role_name=current_app.config['ADMIN_ROLE_NAME']
    )
    return _ok({'permissionsCreated': created}, 'Permisos configurados exitosamente')


@api.route('/setup/assign-permissions/<role_name>', methods=['POST'])
@login_required
@admin_required
def setup_assign_permissions(role_name):
    """
    Asigna permisos a un rol por nombre, reemplazando los actuales.

    Body: {"permissions": ["bodegas.ver", "bodegas.gestionar"]}
    """
    service = get_container().permission_service
    result = service.assign_permissions_by_codes(role_name, _body().get('permissions'))
    if result is None:
        raise NotFoundError(f'Rol "{role_name}" no encontrado')
    return _ok(result, f'Permisos asignados exitosamente al rol "{role_name}"')


# ═══════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES
# ═══════════════════════════════════════════════════════════════════════════

def _register_error_handlers(app):

    @app.errorhandler(KardexError)
    def _handle_domain_error(error):
        body = {'success': False, 'message': user_message(error)}
        field = error.details.get('field')
        if field:
            body['field'] = field
        return body, error.status_code

    @app.errorhandler(HTTPException)
    def _handle_http_error(error):
        return {'success': False, 'message': error.description}, error.code

    @app.errorhandler(Exception)
    def _handle_unexpected_error(error):
        # Detalle interno al log; al cliente solo el mensaje genérico
        log_error(f'{request.method} {request.path}', error)
        body = {'success': False, 'message': USER_MESSAGES['error']}
        if current_app.config.get('EXPOSE_ERROR_DETAILS'):
            body['error'] = str(error)
        return body, 500


# ═══════════════════════════════════════════════════════════════════════════
# COMANDOS CLI (flask --app kardex_plus.main ...)
# ═══════════════════════════════════════════════════════════════════════════

def _register_commands(app):

    @app.cli.command('init-db')
    def init_db_command():
        """Crea las tablas y la vista de permisos efectivos."""
        init_schema(get_container().engine)
        click.echo('Base de datos inicializada.')

    @app.cli.command('seed-permissions')
    @click.option('--admin-email', default=None, help='Crear también un usuario administrador')
    @click.option('--admin-password', default=None)
    def seed_permissions_command(admin_email, admin_password):
        """Inserta el catálogo base de permisos y lo asigna al rol administrador."""
        role_name = app.config['ADMIN_ROLE_NAME']
        container = get_container()
        init_schema(container.engine)
        try:
            created = seed_permissions(
                container.engine,
                admin_role_name=role_name,
                admin_email=admin_email,
                admin_password=admin_password
            )
        except ValidationError as e:
            raise click.ClickException(e.message)
        click.echo(f'{created} permisos creados y asignados al rol "{role_name}".')
        if not container.usuario_repo.admin_exists(role_name):
            click.echo('Aún no hay un usuario administrador activo: usa --admin-email y --admin-password.')


# ═══════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def create_app(config=None):
    """
    Crea y configura la aplicación Flask.

    Args:
        config: Valores que sobrescriben la configuración del entorno

    Returns:
        Aplicación lista para servir
    """
    app = Flask(__name__)
    app.config.update(load_config(config))
    app.secret_key = app.config['SECRET_KEY']
    app.json.sort_keys = app.config['JSON_SORT_KEYS']

    # Un contenedor por app: nuevo motor y repositorios con esta config
    AppContainer.reset_instance()
    container = get_container(app.config)
    if app.config['INIT_SCHEMA']:
        init_schema(container.engine)

    # Mide rendimiento de rutas y funciones. Logs en LOGS_DIR
    init_profiling(app)

    _register_error_handlers(app)
    _register_commands(app)
    app.register_blueprint(api)

    return app


atexit.register(write_function_stats_report)


if __name__ == "__main__":
    import os
    # En producción usar WSGI (gunicorn wsgi:app)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    if not DEBUG:
        print(f"\n{'='*50}")
        print(f"  KardexPlus API en http://{HOST}:{PORT}/api")
        print(f"{'='*50}\n")

    create_app().run(host=HOST, port=PORT, debug=DEBUG)
