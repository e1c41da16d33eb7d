# -*- coding: utf-8 -*-
"""Tests del profiling de funciones y de los archivos de log."""
import pytest

from kardex_plus import performance_logger as pl


@pytest.fixture(autouse=True)
def clean_stats(monkeypatch):
    monkeypatch.setattr(pl, 'ENABLE_PROFILING', True)
    pl.reset_stats()
    yield
    pl.reset_stats()


def test_profile_function_accumulates_calls():
    @pl.profile_function(name='Sumar')
    def sumar(a, b):
        return a + b

    assert sumar(1, 2) == 3
    assert sumar(2, 2) == 4

    stats = pl.get_function_stats()['Sumar']
    assert stats['calls'] == 2
    assert stats['max_time'] >= stats['avg_time'] >= 0


def test_profile_function_without_arguments_uses_function_name():
    @pl.profile_function
    def calcular():
        return 'ok'

    calcular()

    assert 'calcular' in pl.get_function_stats()


def test_failing_call_is_still_measured():
    @pl.profile_function(name='Falla')
    def falla():
        raise ValueError('sin datos')

    with pytest.raises(ValueError):
        falla()

    assert pl.get_function_stats()['Falla']['calls'] == 1


def test_disabled_profiling_records_nothing(monkeypatch):
    monkeypatch.setattr(pl, 'ENABLE_PROFILING', False)

    @pl.profile_function(name='Apagada')
    def apagada():
        return 1

    apagada()

    assert pl.get_function_stats() == {}


def test_slow_call_and_report_go_to_slow_functions_log(monkeypatch, logs_dir):
    monkeypatch.setattr(pl, 'SLOW_MS', 0)

    @pl.profile_function(name='Lenta')
    def lenta():
        return None

    lenta()
    pl.write_function_stats_report()

    content = (logs_dir / 'slow_functions.log').read_text(encoding='utf-8')
    assert 'Función: Lenta' in content
    assert 'FUNCIÓN: Lenta' in content
    assert 'Llamadas: 1' in content


def test_empty_report_writes_nothing(logs_dir):
    pl.write_function_stats_report()

    assert not (logs_dir / 'slow_functions.log').exists()


def test_log_error_and_summary(logs_dir):
    try:
        raise RuntimeError('disco lleno')
    except RuntimeError as e:
        pl.log_error('Respaldo nocturno', e)

    content = (logs_dir / 'errors.log').read_text(encoding='utf-8')
    assert 'Contexto: Respaldo nocturno' in content
    assert 'RuntimeError: disco lleno' in content
    assert 'Traceback' in content

    summary = pl.get_log_summary()
    assert summary['errors']['exists'] is True
    assert summary['errors']['lines'] > 0
    assert summary['performance'] == {'exists': False, 'size_kb': 0, 'lines': 0}


@pytest.mark.parametrize('method, path, rule, expected', [
    ('GET', '/api/bodegas/', '/api/bodegas/', 'Listar bodegas'),
    ('DELETE', '/api/bodegas/4', '/api/bodegas/<int:record_id>', 'Desactivar bodega'),
    ('POST', '/api/permissions/user/2/check-multiple',
     '/api/permissions/user/<int:user_id>/check-multiple', 'Verificar permisos por lote'),
    ('GET', '/api/otra', None, 'GET /api/otra'),
])
def test_route_labels(method, path, rule, expected):
    assert pl._route_label(method, path, rule) == expected
