# -*- coding: utf-8 -*-
"""
Tests de los repositorios de catálogo: unicidad, paginación, búsqueda y
guardas de eliminación.
"""
import pytest
from sqlalchemy import text

from kardex_plus.exceptions import DependencyExistsError, DuplicateNameError, ValidationError
from kardex_plus.repositories import (
    ICatalogRepository,
    IPermisoRepository,
    IRolPermisosRepository,
    ISoftDeletable,
    IUsuarioRepository,
)
from kardex_plus.repositories.base import BaseRepository


# ═══════════════════════════════════════════════════════════════════════════
# ALTA Y UNICIDAD
# ═══════════════════════════════════════════════════════════════════════════

def test_create_bodega_defaults_and_responsable(bodega_repo, users):
    bodega_id = bodega_repo.create({
        'Bodega_Nombre': 'Central Norte',
        'Bodega_Tipo': 'Central',
        'Responsable_Id': users['admin_id'],
    })

    bodega = bodega_repo.find_by_id(bodega_id)
    assert bodega['Bodega_Nombre'] == 'Central Norte'
    assert bodega['Bodega_Estado'] == 1
    assert bodega['Bodega_Ubicacion'] is None
    assert bodega['Responsable_Nombre'] == 'Ana Pérez'
    assert bodega['Responsable_Correo'] == 'ana@kardex.test'


def test_create_bodega_without_responsable(bodega_repo):
    bodega_id = bodega_repo.create({'Bodega_Nombre': 'Temporal 1', 'Bodega_Estado': 'false'})

    bodega = bodega_repo.find_by_id(bodega_id)
    assert bodega['Responsable_Id'] is None
    assert bodega['Responsable_Nombre'] is None
    assert bodega['Bodega_Estado'] == 0


def test_create_duplicate_name_is_rejected(categoria_repo):
    categoria_repo.create({'CategoriaItem_Nombre': 'Herramientas'})

    with pytest.raises(DuplicateNameError) as exc:
        categoria_repo.create({'CategoriaItem_Nombre': 'Herramientas', 'CategoriaItem_Descripcion': 'otra'})

    assert exc.value.field == 'CategoriaItem_Nombre'
    assert categoria_repo.count() == 1


def test_create_requires_name(categoria_repo, rol_repo):
    with pytest.raises(ValidationError):
        categoria_repo.create({'CategoriaItem_Descripcion': 'sin nombre'})
    with pytest.raises(ValidationError):
        rol_repo.create({'Rol_Nombre': '   '})
    assert categoria_repo.count() == 0


def test_name_is_stripped_and_stored_as_text(categoria_repo, rol_repo):
    categoria_id = categoria_repo.create({'CategoriaItem_Nombre': '  Pinturas  '})

    assert categoria_repo.find_by_id(categoria_id)['CategoriaItem_Nombre'] == 'Pinturas'
    with pytest.raises(DuplicateNameError):
        categoria_repo.create({'CategoriaItem_Nombre': 'Pinturas'})

    rol_id = rol_repo.create({'Rol_Nombre': 123})
    assert rol_repo.find_by_id(rol_id)['Rol_Nombre'] == '123'


def test_unique_constraint_backs_up_the_precheck(categoria_repo, monkeypatch):
    categoria_repo.create({'CategoriaItem_Nombre': 'Herramientas'})

    # La verificación previa no ve la fila (otra alta simultánea)
    real_check = categoria_repo._check_unique
    calls = []

    def _stale_check(entity, exclude_id=None):
        calls.append(entity.nombre)
        if len(calls) > 1:
            real_check(entity, exclude_id)

    monkeypatch.setattr(categoria_repo, '_check_unique', _stale_check)

    with pytest.raises(DuplicateNameError) as exc:
        categoria_repo.create({'CategoriaItem_Nombre': 'Herramientas'})

    assert exc.value.field == 'CategoriaItem_Nombre'
    assert calls == ['Herramientas', 'Herramientas']
    assert categoria_repo.count() == 1


def test_unknown_responsable_is_a_validation_error(bodega_repo, users):
    with pytest.raises(ValidationError) as exc:
        bodega_repo.create({'Bodega_Nombre': 'Norte', 'Responsable_Id': 9999})
    assert exc.value.details['field'] == 'Responsable_Id'

    bodega_id = bodega_repo.create({'Bodega_Nombre': 'Norte'})
    with pytest.raises(ValidationError):
        bodega_repo.update(bodega_id, {'Bodega_Nombre': 'Norte', 'Responsable_Id': 9999})
    assert bodega_repo.find_by_id(bodega_id)['Responsable_Id'] is None


def test_foreign_key_violation_is_a_validation_error(bodega_repo, users, monkeypatch):
    monkeypatch.setattr(bodega_repo, '_check_references', lambda entity: None)

    with pytest.raises(ValidationError):
        bodega_repo.create({'Bodega_Nombre': 'Norte', 'Responsable_Id': 9999})

    assert bodega_repo.count() == 0


def test_update_keeping_own_name_is_allowed(categoria_repo):
    categoria_id = categoria_repo.create({'CategoriaItem_Nombre': 'Pinturas'})

    updated = categoria_repo.update(categoria_id, {
        'CategoriaItem_Nombre': 'Pinturas',
        'CategoriaItem_Descripcion': 'Látex y esmaltes',
    })

    assert updated is True
    assert categoria_repo.find_by_id(categoria_id)['CategoriaItem_Descripcion'] == 'Látex y esmaltes'


def test_update_to_another_records_name_is_rejected(categoria_repo):
    categoria_repo.create({'CategoriaItem_Nombre': 'Pinturas'})
    otra_id = categoria_repo.create({'CategoriaItem_Nombre': 'Adhesivos'})

    with pytest.raises(DuplicateNameError):
        categoria_repo.update(otra_id, {'CategoriaItem_Nombre': 'Pinturas'})

    assert categoria_repo.find_by_id(otra_id)['CategoriaItem_Nombre'] == 'Adhesivos'


def test_update_missing_record_returns_false(categoria_repo):
    assert categoria_repo.update(999, {'CategoriaItem_Nombre': 'Fantasma'}) is False


def test_exists_by_name_excludes_own_id(rol_repo):
    rol_id = rol_repo.create({'Rol_Nombre': 'Bodeguero'})

    assert rol_repo.exists_by_name('Bodeguero') is True
    assert rol_repo.exists_by_name('Bodeguero', exclude_id=rol_id) is False
    assert rol_repo.exists(rol_id) is True
    assert rol_repo.exists(rol_id + 100) is False


def test_exists_by_name_excludes_id_zero(rol_repo, run_sql):
    run_sql("INSERT INTO Roles (Rol_Id, Rol_Nombre) VALUES (0, 'Sistema')")

    assert rol_repo.exists_by_name('Sistema') is True
    assert rol_repo.exists_by_name('Sistema', exclude_id=0) is False
    assert rol_repo.update(0, {'Rol_Nombre': 'Sistema', 'Rol_Descripcion': 'Reservado'}) is True


# ═══════════════════════════════════════════════════════════════════════════
# PAGINACIÓN Y BÚSQUEDA
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def veinticinco_categorias(categoria_repo):
    for i in range(25):
        categoria_repo.create({'CategoriaItem_Nombre': f'Categoria {i:02d}'})


def test_pagination_first_page(categoria_repo, veinticinco_categorias):
    result = categoria_repo.find_with_pagination(0, 10)

    assert len(result['data']) == 10
    assert result['total'] == 25
    assert result['data'][0]['CategoriaItem_Nombre'] == 'Categoria 00'


def test_pagination_last_partial_page(categoria_repo, veinticinco_categorias):
    result = categoria_repo.find_with_pagination(20, 10)

    assert len(result['data']) == 5
    assert result['total'] == 25


def test_pagination_coerces_invalid_values(categoria_repo, veinticinco_categorias):
    result = categoria_repo.find_with_pagination('abc', '5; DROP TABLE Roles')

    assert len(result['data']) == 10
    assert result['data'][0]['CategoriaItem_Nombre'] == 'Categoria 00'

    result = categoria_repo.find_with_pagination(-5, -1)
    assert len(result['data']) == 10


def test_pagination_oversized_offset_falls_back(categoria_repo, veinticinco_categorias):
    result = categoria_repo.find_with_pagination('99999999999999999999', 10)

    assert result['total'] == 25
    assert result['data'][0]['CategoriaItem_Nombre'] == 'Categoria 00'


def test_pagination_total_uses_search_filter(categoria_repo, veinticinco_categorias):
    categoria_repo.create({'CategoriaItem_Nombre': 'Tornillería'})
    categoria_repo.create({'CategoriaItem_Nombre': 'Tuercas', 'CategoriaItem_Descripcion': 'Para TORNILLOS'})

    result = categoria_repo.find_with_pagination(0, 10, 'TORNILL')

    assert result['total'] == 2
    assert [c['CategoriaItem_Nombre'] for c in result['data']] == ['Tornillería', 'Tuercas']


def test_search_is_case_insensitive_and_capped(categoria_repo, veinticinco_categorias):
    assert len(categoria_repo.search('categoria')) == 20
    assert len(categoria_repo.search('CATEGORIA 1')) == 10
    assert categoria_repo.search('   ') == []


def test_search_folds_accented_capitals(bodega_repo):
    bodega_repo.create({'Bodega_Nombre': 'CÁMARA FRÍA', 'Bodega_Tipo': 'Frío'})
    bodega_repo.create({'Bodega_Nombre': 'PRODUCCIÓN'})
    bodega_repo.create({'Bodega_Nombre': 'Central'})

    assert [b['Bodega_Nombre'] for b in bodega_repo.search('cámara fría')] == ['CÁMARA FRÍA']
    assert [b['Bodega_Nombre'] for b in bodega_repo.search('Producción')] == ['PRODUCCIÓN']

    result = bodega_repo.find_with_pagination(0, 10, 'frí')
    assert result['total'] == 1
    assert result['data'][0]['Bodega_Nombre'] == 'CÁMARA FRÍA'


def test_bodega_search_matches_responsable_name(bodega_repo, users):
    bodega_repo.create({'Bodega_Nombre': 'Frío Sur', 'Responsable_Id': users['operador_id']})
    bodega_repo.create({'Bodega_Nombre': 'Central', 'Bodega_Ubicacion': 'Av. Soto 123'})
    bodega_repo.create({'Bodega_Nombre': 'Temporal'})

    nombres = [b['Bodega_Nombre'] for b in bodega_repo.search('soto')]

    assert nombres == ['Central', 'Frío Sur']


@pytest.mark.parametrize('value, expected', [
    ('7', 7),
    (' 3 ', 3),
    (12, 12),
    (-1, 10),
    ('x', 10),
    (None, 10),
    (True, 10),
    ('1.5', 10),
    ('99999999999999999999', 10),
    (2 ** 62, 2 ** 62),
    (2 ** 62 + 1, 10),
])
def test_to_int(value, expected):
    assert BaseRepository.to_int(value, 10) == expected


# ═══════════════════════════════════════════════════════════════════════════
# BODEGAS - eliminación lógica
# ═══════════════════════════════════════════════════════════════════════════

def test_bodega_delete_is_soft_and_restorable(bodega_repo):
    bodega_id = bodega_repo.create({'Bodega_Nombre': 'Producción 2', 'Bodega_Tipo': 'Producción'})

    assert bodega_repo.delete(bodega_id) is True
    assert bodega_repo.find_by_id(bodega_id)['Bodega_Estado'] == 0
    assert bodega_repo.get_active_bodegas() == []

    assert bodega_repo.restore(bodega_id) is True
    assert bodega_repo.find_by_id(bodega_id)['Bodega_Estado'] == 1


def test_bodega_delete_blocked_by_stock(bodega_repo, run_sql):
    bodega_id = bodega_repo.create({'Bodega_Nombre': 'Central'})
    item_id = run_sql("INSERT INTO Items (Item_Nombre) VALUES ('Martillo')")
    run_sql(
        'INSERT INTO Existencias (Bodega_Id, Item_Id, Cantidad) VALUES (:b, :i, 4)',
        {'b': bodega_id, 'i': item_id}
    )

    assert bodega_repo.can_delete(bodega_id) is False
    with pytest.raises(DependencyExistsError) as exc:
        bodega_repo.delete(bodega_id)

    assert exc.value.dependents == 1
    assert bodega_repo.find_by_id(bodega_id)['Bodega_Estado'] == 1

    # Sin existencias el bloqueo desaparece
    run_sql('UPDATE Existencias SET Cantidad = 0 WHERE Bodega_Id = :b', {'b': bodega_id})
    assert bodega_repo.can_delete(bodega_id) is True
    assert bodega_repo.delete(bodega_id) is True
    assert bodega_repo.find_by_id(bodega_id)['Bodega_Estado'] == 0


def test_bodega_delete_ignores_empty_stock(bodega_repo, run_sql):
    bodega_id = bodega_repo.create({'Bodega_Nombre': 'Central'})
    item_id = run_sql("INSERT INTO Items (Item_Nombre) VALUES ('Martillo')")
    run_sql(
        'INSERT INTO Existencias (Bodega_Id, Item_Id, Cantidad) VALUES (:b, :i, 0)',
        {'b': bodega_id, 'i': item_id}
    )

    assert bodega_repo.delete(bodega_id) is True


def test_bodega_stats_and_active_projection(bodega_repo, users):
    bodega_repo.create({'Bodega_Nombre': 'A', 'Bodega_Tipo': 'Central', 'Responsable_Id': users['admin_id']})
    bodega_repo.create({'Bodega_Nombre': 'B', 'Bodega_Tipo': 'Frío'})
    inactiva = bodega_repo.create({'Bodega_Nombre': 'C', 'Bodega_Tipo': 'Frío'})
    bodega_repo.delete(inactiva)

    stats = bodega_repo.get_stats()
    assert stats['total_bodegas'] == 3
    assert stats['bodegas_activas'] == 2
    assert stats['bodegas_inactivas'] == 1
    assert stats['bodegas_frio'] == 2
    assert stats['bodegas_centrales'] == 1
    assert stats['bodegas_con_responsable'] == 1

    activas = bodega_repo.get_active_bodegas()
    assert [b['Bodega_Nombre'] for b in activas] == ['A', 'B']
    assert set(activas[0].keys()) == {'Bodega_Id', 'Bodega_Nombre', 'Bodega_Tipo'}

    assert [b['Bodega_Nombre'] for b in bodega_repo.find_by_responsable(users['admin_id'])] == ['A']


# ═══════════════════════════════════════════════════════════════════════════
# CATEGORÍAS Y ROLES - eliminación física
# ═══════════════════════════════════════════════════════════════════════════

def test_categoria_delete_blocked_by_items(categoria_repo, run_sql):
    categoria_id = categoria_repo.create({'CategoriaItem_Nombre': 'Ferretería'})
    run_sql(
        "INSERT INTO Items (Item_Nombre, CategoriaItem_Id) VALUES ('Clavo', :c)",
        {'c': categoria_id}
    )

    with pytest.raises(DependencyExistsError):
        categoria_repo.delete(categoria_id)
    assert categoria_repo.exists(categoria_id)

    usage = categoria_repo.get_usage_stats()
    assert usage[0]['Total_Items'] == 1


def test_categoria_delete_removes_row(categoria_repo):
    categoria_id = categoria_repo.create({'CategoriaItem_Nombre': 'Ferretería'})

    assert categoria_repo.delete(categoria_id) is True
    assert categoria_repo.find_by_id(categoria_id) is None
    assert categoria_repo.delete(categoria_id) is False


def test_rol_delete_blocked_by_active_users(rol_repo, users):
    with pytest.raises(DependencyExistsError):
        rol_repo.delete(users['admin_role_id'])


def test_rol_delete_detaches_inactive_users(rol_repo, run_sql, engine, users):
    run_sql('UPDATE Usuarios SET Usuario_Estado = 0 WHERE Usuario_Id = :id', {'id': users['operador_id']})

    assert rol_repo.delete(users['operador_role_id']) is True
    assert rol_repo.find_by_id(users['operador_role_id']) is None
    with engine.connect() as conn:
        restantes = conn.execute(
            text('SELECT COUNT(*) FROM Usuarios WHERE Rol_Id = :r'),
            {'r': users['operador_role_id']}
        ).scalar()
    assert restantes == 0


def test_rol_usuario_count_only_counts_active_users(rol_repo, users):
    operador = rol_repo.find_by_id(users['operador_role_id'])

    assert operador['Usuario_Count'] == 1


# ═══════════════════════════════════════════════════════════════════════════
# UNIDADES DE MEDIDA
# ═══════════════════════════════════════════════════════════════════════════

def test_unidad_prefix_must_be_unique(unidad_repo):
    unidad_repo.create({'UnidadMedida_Nombre': 'Kilogramo', 'UnidadMedida_Prefijo': 'kg'})

    with pytest.raises(DuplicateNameError) as exc:
        unidad_repo.create({'UnidadMedida_Nombre': 'Kilo', 'UnidadMedida_Prefijo': 'kg'})

    assert exc.value.field == 'UnidadMedida_Prefijo'
    assert exc.value.message == 'Ya existe una unidad de medida con este prefijo'
    assert unidad_repo.exists_by_prefix('kg') is True


def test_unidad_factor_is_optional(unidad_repo):
    sin_factor = unidad_repo.create({
        'UnidadMedida_Nombre': 'Unidad',
        'UnidadMedida_Prefijo': 'un',
        'UnidadMedida_Factor_Conversion': '',
    })
    con_factor = unidad_repo.create({
        'UnidadMedida_Nombre': 'Gramo',
        'UnidadMedida_Prefijo': 'g',
        'UnidadMedida_Factor_Conversion': '0.001',
    })

    assert unidad_repo.find_by_id(sin_factor)['UnidadMedida_Factor_Conversion'] is None
    assert unidad_repo.find_by_id(con_factor)['UnidadMedida_Factor_Conversion'] == pytest.approx(0.001)
    assert unidad_repo.find_by_prefix('g')['UnidadMedida_Nombre'] == 'Gramo'


def test_unidad_factor_must_be_numeric(unidad_repo):
    with pytest.raises(ValidationError):
        unidad_repo.create({
            'UnidadMedida_Nombre': 'Caja',
            'UnidadMedida_Prefijo': 'cj',
            'UnidadMedida_Factor_Conversion': 'doce',
        })


def test_unidad_factor_range(unidad_repo):
    for nombre, prefijo, factor in [('Gramo', 'g', 0.001), ('Kilogramo', 'kg', 1), ('Tonelada', 't', 1000)]:
        unidad_repo.create({
            'UnidadMedida_Nombre': nombre,
            'UnidadMedida_Prefijo': prefijo,
            'UnidadMedida_Factor_Conversion': factor,
        })

    nombres = [u['UnidadMedida_Nombre'] for u in unidad_repo.find_by_factor_range(0.5, 1000)]

    assert nombres == ['Kilogramo', 'Tonelada']


def test_unidad_delete_blocked_by_presentaciones(unidad_repo, run_sql):
    unidad_id = unidad_repo.create({'UnidadMedida_Nombre': 'Litro', 'UnidadMedida_Prefijo': 'l'})
    libre_id = unidad_repo.create({'UnidadMedida_Nombre': 'Mililitro', 'UnidadMedida_Prefijo': 'ml'})
    run_sql(
        "INSERT INTO Presentaciones (Presentacion_Nombre, UnidadMedida_Id) VALUES ('Bidón 5 l', :u)",
        {'u': unidad_id}
    )

    with pytest.raises(DependencyExistsError):
        unidad_repo.delete(unidad_id)

    usage = unidad_repo.get_usage_stats()
    assert usage[0]['UnidadMedida_Id'] == unidad_id
    assert usage[0]['Total_Presentaciones_Usando'] == 1

    assert unidad_repo.delete(libre_id) is True


# ═══════════════════════════════════════════════════════════════════════════
# CONTRATOS
# ═══════════════════════════════════════════════════════════════════════════

def test_repositories_satisfy_interfaces(bodega_repo, categoria_repo, rol_repo, unidad_repo,
                                         permiso_repo, usuario_repo):
    for repo in (bodega_repo, categoria_repo, rol_repo, unidad_repo):
        assert isinstance(repo, ICatalogRepository)

    assert isinstance(bodega_repo, ISoftDeletable)
    assert not isinstance(categoria_repo, ISoftDeletable)
    assert isinstance(rol_repo, IRolPermisosRepository)
    assert isinstance(permiso_repo, IPermisoRepository)
    assert isinstance(usuario_repo, IUsuarioRepository)
