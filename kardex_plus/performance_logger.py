# ==============================================================================
# SISTEMA DE PROFILING Y REGISTRO DE ERRORES
# ==============================================================================
# Mide cuánto tardan las peticiones a la API y las operaciones marcadas con
# @profile_function. Todo queda en archivos de texto dentro de LOGS_DIR:
#   - performance.log      una entrada por petición
#   - slow_routes.log      peticiones sobre los umbrales
#   - slow_functions.log   llamadas lentas + reporte de estadísticas al salir
#   - errors.log           errores inesperados con traceback (siempre activo)
#
# ENABLE_PROFILING y LOGS_DIR se toman de la config de la app en init_profiling().
# ==============================================================================

import os
import threading
import time
import traceback
from datetime import datetime
from functools import wraps

from flask import g, request, session

# ═══════════════════════════════════════════════════════════════════════════
# PARÁMETROS
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = True
LOGS_DIR = os.path.join(os.getcwd(), 'logs')

# Umbrales en ms
SLOW_MS = 300
CRITICAL_MS = 700

LOG_FILES = {
    'performance': 'performance.log',
    'slow_routes': 'slow_routes.log',
    'slow_functions': 'slow_functions.log',
    'errors': 'errors.log',
}

SEPARATOR = '─' * 40

# Nombres legibles por regla de Flask (sin convertidores)
ROUTE_NAMES = {
    'GET /api/bodegas/': 'Listar bodegas',
    'GET /api/bodegas/all': 'Listar todas las bodegas',
    'GET /api/bodegas/active': 'Listar bodegas activas',
    'GET /api/bodegas/search': 'Buscar bodegas',
    'GET /api/bodegas/stats': 'Ver estadísticas de bodegas',
    'GET /api/bodegas/<record_id>': 'Obtener bodega',
    'POST /api/bodegas/': 'Crear bodega',
    'PUT /api/bodegas/<record_id>': 'Editar bodega',
    'DELETE /api/bodegas/<record_id>': 'Desactivar bodega',
    'PATCH /api/bodegas/<record_id>/restore': 'Reactivar bodega',

    'GET /api/categorias/': 'Listar categorías',
    'POST /api/categorias/': 'Crear categoría',
    'PUT /api/categorias/<record_id>': 'Editar categoría',
    'DELETE /api/categorias/<record_id>': 'Eliminar categoría',

    'GET /api/roles/': 'Listar roles',
    'POST /api/roles/': 'Crear rol',
    'PUT /api/roles/<record_id>': 'Editar rol',
    'DELETE /api/roles/<record_id>': 'Eliminar rol',
    'GET /api/roles/<role_id>/permissions': 'Ver permisos de rol',
    'PUT /api/roles/<role_id>/permissions': 'Asignar permisos a rol',

    'GET /api/unidades-medida/': 'Listar unidades de medida',
    'POST /api/unidades-medida/': 'Crear unidad de medida',
    'PUT /api/unidades-medida/<record_id>': 'Editar unidad de medida',
    'DELETE /api/unidades-medida/<record_id>': 'Eliminar unidad de medida',

    'GET /api/permissions/me': 'Ver mis permisos',
    'GET /api/permissions/all': 'Ver catálogo de permisos',
    'GET /api/permissions/user/<user_id>': 'Ver permisos de usuario',
    'GET /api/permissions/user/<user_id>/check/<code>': 'Verificar permiso',
    'POST /api/permissions/user/<user_id>/check-multiple': 'Verificar permisos por lote',

    'GET /api/setup/status': 'Ver estado de permisos',
    'POST /api/setup/permissions': 'Crear catálogo de permisos',
    'POST /api/setup/assign-permissions/<role_name>': 'Asignar permisos por código',
}

# {nombre: [llamadas, total_ms, max_ms]}
_timings = {}
_timings_lock = threading.Lock()
_file_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURA
# ═══════════════════════════════════════════════════════════════════════════

def _now():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _path(kind):
    return os.path.join(LOGS_DIR, LOG_FILES[kind])


def _append(kind, text):
    """Agrega texto al log indicado. Un fallo de disco no interrumpe la petición."""
    try:
        with _file_lock:
            os.makedirs(LOGS_DIR, exist_ok=True)
            with open(_path(kind), 'a', encoding='utf-8') as fh:
                fh.write(text)
    except OSError:
        pass


def _entry(header, fields, footer=True):
    """Arma una entrada: encabezado, líneas 'Clave: valor' y separador."""
    lines = ['', header, SEPARATOR]
    lines.extend(f'{key}: {value}' for key, value in fields)
    if footer:
        lines.append(SEPARATOR)
    return '\n'.join(lines) + '\n'


def _severity(ms):
    """None, 'WARNING' o 'CRITICAL' según los umbrales."""
    if ms >= CRITICAL_MS:
        return 'CRITICAL'
    if ms >= SLOW_MS:
        return 'WARNING'
    return None


def _route_label(method, path, rule):
    """Nombre legible de la petición; si no está mapeada, 'METODO /ruta'."""
    candidates = [path]
    if rule:
        candidates.append(_plain_rule(rule))
    for candidate in candidates:
        label = ROUTE_NAMES.get(f'{method} {candidate}')
        if label:
            return label
    return f'{method} {path}'


def _plain_rule(rule):
    """'/api/bodegas/<int:record_id>' -> '/api/bodegas/<record_id>'"""
    segments = []
    for segment in rule.split('/'):
        if segment.startswith('<') and ':' in segment:
            segment = '<' + segment.split(':', 1)[1]
        segments.append(segment)
    return '/'.join(segments)


# ═══════════════════════════════════════════════════════════════════════════
# ERRORES
# ═══════════════════════════════════════════════════════════════════════════

def log_error(context, error):
    """
    Guarda un error inesperado con su traceback en errors.log.
    Se escribe aunque el profiling esté apagado.

    Args:
        context: Operación en curso ('GET /api/bodegas/', 'Verificación de permiso ...')
        error: Excepción capturada
    """
    trace = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
    text = _entry(f'🔴 [ERROR] {_now()}', [
        ('Contexto', context),
        ('Error', f'{type(error).__name__}: {error}'),
    ], footer=False)
    _append('errors', text + trace + SEPARATOR + '\n')


# ═══════════════════════════════════════════════════════════════════════════
# PETICIONES FLASK
# ═══════════════════════════════════════════════════════════════════════════

def _record_request(response):
    started = g.pop('_profiling_started', None)
    if started is None:
        return response

    ms = (time.perf_counter() - started) * 1000
    rule = request.url_rule.rule if request.url_rule else None
    label = _route_label(request.method, request.path, rule)
    user = session.get('user_id') or 'anónimo'
    detail = f'{request.method} {request.path}'

    _append('performance', _entry(f'[PERFORMANCE] {_now()}', [
        ('Acción', label),
        ('Usuario', user),
        ('Ruta', detail),
        ('Estado', response.status_code),
        ('Tiempo', f'{ms:.0f} ms'),
    ], footer=False))

    level = _severity(ms)
    if level:
        icon, word, limit = (
            ('🔴', 'MUY LENTA', CRITICAL_MS) if level == 'CRITICAL' else ('⚠️', 'LENTA', SLOW_MS)
        )
        _append('slow_routes', _entry(f'{icon} [{level}] {_now()}', [
            (f'Ruta {word}', label),
            ('Usuario', user),
            ('Detalle', detail),
            ('Tiempo', f'{ms:.0f} ms (umbral: {limit} ms)'),
        ]))
    return response


def init_profiling(app):
    """
    Conecta el profiling a una app Flask.

    Lee LOGS_DIR y ENABLE_PROFILING de app.config. Con el profiling activo
    cada petición queda registrada en performance.log (y en slow_routes.log
    si supera los umbrales).
    """
    global ENABLE_PROFILING, LOGS_DIR

    LOGS_DIR = app.config.get('LOGS_DIR') or LOGS_DIR
    ENABLE_PROFILING = bool(app.config.get('ENABLE_PROFILING', ENABLE_PROFILING))
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_clock():
        g._profiling_started = time.perf_counter()

    app.after_request(_record_request)


# ═══════════════════════════════════════════════════════════════════════════
# OPERACIONES PERFILADAS
# ═══════════════════════════════════════════════════════════════════════════

def _accumulate(label, ms):
    with _timings_lock:
        calls, total, peak = _timings.get(label, (0, 0.0, 0.0))
        _timings[label] = (calls + 1, total + ms, max(peak, ms))


def profile_function(func=None, name=None):
    """
    Mide cada llamada de la función decorada.

    Acumula llamadas, tiempo total y máximo por nombre; una llamada sobre
    SLOW_MS se anota en slow_functions.log. Se puede usar con o sin
    argumentos: @profile_function o @profile_function(name='...').
    """
    def decorate(fn):
        label = name or fn.__name__

        @wraps(fn)
        def timed(*args, **kwargs):
            if not ENABLE_PROFILING:
                return fn(*args, **kwargs)
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                ms = (time.perf_counter() - started) * 1000
                _accumulate(label, ms)
                level = _severity(ms)
                if level:
                    icon, word = ('🔴', 'CRÍTICO') if level == 'CRITICAL' else ('⚠️', 'LENTO')
                    _append('slow_functions', _entry(f'{icon} [{word}] {_now()}', [
                        ('Función', label),
                        ('Tiempo', f'{ms:.0f} ms'),
                    ]))
        return timed

    if func is not None:
        return decorate(func)
    return decorate


def get_function_stats():
    """
    Returns:
        {nombre: {calls, avg_time, max_time}} con tiempos en ms
    """
    with _timings_lock:
        snapshot = dict(_timings)
    return {
        label: {
            'calls': calls,
            'avg_time': round(total / calls, 2) if calls else 0,
            'max_time': round(peak, 2),
        }
        for label, (calls, total, peak) in snapshot.items()
    }


def _stats_flag(data):
    if data['avg_time'] >= CRITICAL_MS:
        return ' 🔴 CRÍTICO'
    if data['avg_time'] >= SLOW_MS:
        return ' ⚠️ LENTO'
    if data['max_time'] >= CRITICAL_MS:
        return ' ⚡ PICOS ALTOS'
    return ''


def write_function_stats_report():
    """Agrega a slow_functions.log un resumen por función, de la más lenta a la más rápida."""
    stats = get_function_stats()
    if not stats:
        return

    border = '═' * 78
    blocks = [f'\n{border}\n  REPORTE DE FUNCIONES - KARDEXPLUS ({_now()})\n{border}\n']
    ranked = sorted(stats.items(), key=lambda item: item[1]['avg_time'], reverse=True)
    for label, data in ranked:
        blocks.append(_entry(f'FUNCIÓN: {label}{_stats_flag(data)}', [
            ('Llamadas', data['calls']),
            ('Promedio', f"{data['avg_time']:.0f} ms"),
            ('Máximo', f"{data['max_time']:.0f} ms"),
        ]))
    _append('slow_functions', ''.join(blocks))


def reset_stats():
    with _timings_lock:
        _timings.clear()


def get_log_summary():
    """
    Estado de cada archivo de log.

    Returns:
        {tipo: {exists, size_kb, lines}}
    """
    summary = {}
    for kind in LOG_FILES:
        path = _path(kind)
        if not os.path.exists(path):
            summary[kind] = {'exists': False, 'size_kb': 0, 'lines': 0}
            continue
        with open(path, encoding='utf-8') as fh:
            lines = sum(1 for _ in fh)
        summary[kind] = {
            'exists': True,
            'size_kb': round(os.path.getsize(path) / 1024, 2),
            'lines': lines,
        }
    return summary


__all__ = [
    'init_profiling',
    'profile_function',
    'log_error',
    'get_function_stats',
    'write_function_stats_report',
    'reset_stats',
    'get_log_summary',
]
