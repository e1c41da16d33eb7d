# ==============================================================================
# REPOSITORIO BASE - Funcionalidad común para acceso a la base de datos
# ==============================================================================

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from kardex_plus.exceptions import DependencyExistsError, DuplicateNameError, ValidationError


class BaseRepository(ABC):
    """
    Clase base abstracta para todos los repositorios.

    Cada llamada toma una conexión del pool del motor y la devuelve al
    terminar. Las operaciones de varios pasos que deben ser atómicas usan
    transaction(), que abre una conexión dedicada.
    """

    DEFAULT_OFFSET = 0
    DEFAULT_LIMIT = 10

    # Mayor entero aceptado en LIMIT/OFFSET (los motores usan enteros de 64 bits)
    MAX_SQL_INT = 2 ** 62

    def __init__(self, engine: Engine):
        """
        Inicializa el repositorio.

        Args:
            engine: Motor de SQLAlchemy (contiene el pool de conexiones)
        """
        self.engine = engine

    # =========================================================================
    # EJECUCIÓN DE CONSULTAS
    # =========================================================================

    def _fetch_all(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Ejecuta un SELECT y retorna todas las filas como diccionarios."""
        with self.engine.connect() as conn:
            result = conn.execute(text(sql), params or {})
            return [dict(row._mapping) for row in result]

    def _fetch_one(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Ejecuta un SELECT y retorna la primera fila o None."""
        with self.engine.connect() as conn:
            row = conn.execute(text(sql), params or {}).first()
            return dict(row._mapping) if row is not None else None

    def _scalar(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Ejecuta un SELECT de un solo valor."""
        with self.engine.connect() as conn:
            return conn.execute(text(sql), params or {}).scalar()

    def _execute(self, sql: str, params: Optional[Dict[str, Any]] = None) -> int:
        """
        Ejecuta un INSERT/UPDATE/DELETE en su propia transacción.

        Returns:
            Número de filas afectadas
        """
        with self.engine.begin() as conn:
            return conn.execute(text(sql), params or {}).rowcount

    def _insert(self, sql: str, params: Dict[str, Any]) -> int:
        """
        Ejecuta un INSERT.

        Returns:
            ID generado para la nueva fila
        """
        with self.engine.begin() as conn:
            return conn.execute(text(sql), params).lastrowid

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Conexión dedicada con transacción explícita.

        Confirma si el bloque termina bien, revierte ante cualquier error y
        libera la conexión en todos los casos.
        """
        conn = self.engine.connect()
        trans = conn.begin()
        try:
            yield conn
            trans.commit()
        except Exception:
            trans.rollback()
            raise
        finally:
            conn.close()

    # =========================================================================
    # UTILIDADES SQL
    # =========================================================================

    @staticmethod
    def to_int(value: Any, default: int) -> int:
        """
        Convierte a entero entre 0 y MAX_SQL_INT; cualquier otro valor retorna default.

        Args:
            value: Valor externo (string de query, int, None...)
            default: Valor por defecto

        Returns:
            Entero validado
        """
        if isinstance(value, bool):
            return default
        try:
            number = int(str(value).strip())
        except (TypeError, ValueError):
            return default
        return number if 0 <= number <= BaseRepository.MAX_SQL_INT else default

    def _pagination_clause(self, offset: Any, limit: Any) -> str:
        """
        Construye 'LIMIT n OFFSET m' con enteros validados.

        Algunos drivers rechazan parámetros enlazados en LIMIT, por eso
        se interpola; to_int garantiza que nunca llega texto externo.
        """
        parsed_offset = self.to_int(offset, self.DEFAULT_OFFSET)
        parsed_limit = self.to_int(limit, self.DEFAULT_LIMIT) or self.DEFAULT_LIMIT
        return f' LIMIT {parsed_limit} OFFSET {parsed_offset}'

    def _concat_sql(self, *parts: str) -> str:
        """Concatenación de strings según el dialecto."""
        if self.engine.dialect.name == 'mysql':
            return f"CONCAT({', '.join(parts)})"
        return '(' + ' || '.join(parts) + ')'

    @staticmethod
    def _like_pattern(term: str) -> str:
        """Patrón para búsqueda parcial sin distinguir mayúsculas."""
        return f'%{term.strip().lower()}%'


class CatalogRepository(BaseRepository):
    """
    Repositorio genérico de catálogo (una tabla con nombre único).

    Las subclases definen la tabla, las columnas y el SQL de escritura.
    La política de eliminación la aporta SoftDeleteMixin o HardDeleteMixin.

    La verificación de unicidad y el INSERT NO son atómicos: dos altas
    simultáneas con el mismo nombre pueden pasar la verificación. La
    restricción UNIQUE del esquema es la garantía real, y su violación
    se traduce también a DuplicateNameError.
    """

    TABLE: str = ''
    ALIAS: str = ''
    ID_COLUMN: str = ''
    NAME_COLUMN: str = ''
    ENTITY: Any = None

    # Límite de search() (independiente de la paginación)
    SEARCH_LIMIT = 20

    DUPLICATE_MESSAGE = 'Ya existe un registro con ese nombre'

    # -------------------------------------------------------------------------
    # SQL por entidad
    # -------------------------------------------------------------------------

    def _col(self, column: str) -> str:
        return f'{self.ALIAS}.{column}' if self.ALIAS else column

    def _from_sql(self) -> str:
        """Cláusula FROM (con JOINs si la entidad los necesita)."""
        return f'{self.TABLE} {self.ALIAS}'.strip()

    @abstractmethod
    def _select_columns(self) -> str:
        """Columnas del SELECT de lectura."""

    def _search_columns(self) -> List[str]:
        """Expresiones SQL sobre las que busca find_with_pagination/search."""
        return [self._col(self.NAME_COLUMN)]

    @abstractmethod
    def _insert_sql(self) -> str:
        """INSERT con parámetros nombrados de ENTITY.to_params()."""

    @abstractmethod
    def _update_sql(self) -> str:
        """UPDATE con parámetros de ENTITY.to_params() más :id."""

    def _unique_checks(self, entity: Any) -> List[Tuple[str, Any, str]]:
        """
        Restricciones de unicidad a verificar antes de escribir.

        Returns:
            Lista de (columna, valor, mensaje de error)
        """
        return [(self.NAME_COLUMN, entity.nombre, self.DUPLICATE_MESSAGE)]

    def _select_sql(self) -> str:
        return f'SELECT {self._select_columns()} FROM {self._from_sql()}'

    def _order_sql(self) -> str:
        return f' ORDER BY {self._col(self.NAME_COLUMN)} ASC'

    def _search_predicate(self) -> str:
        conditions = ' OR '.join(f'LOWER({column}) LIKE :pattern' for column in self._search_columns())
        return f' WHERE ({conditions})'

    # =========================================================================
    # LECTURA
    # =========================================================================

    def find_all(self) -> List[Dict[str, Any]]:
        """
        Obtiene todos los registros ordenados por nombre (sin paginación).

        Returns:
            Lista de filas
        """
        return self._fetch_all(self._select_sql() + self._order_sql())

    def find_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """
        Busca un registro por ID.

        Returns:
            Fila encontrada o None (no existe no es un error)
        """
        return self._fetch_one(
            self._select_sql() + f' WHERE {self._col(self.ID_COLUMN)} = :id',
            {'id': record_id}
        )

    def find_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Busca un registro por nombre exacto."""
        return self._fetch_one(
            self._select_sql() + f' WHERE {self._col(self.NAME_COLUMN)} = :name',
            {'name': name}
        )

    def find_with_pagination(
        self,
        offset: Any = 0,
        limit: Any = 10,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Busca registros con paginación.

        Args:
            offset: Número de registros a saltar
            limit: Número máximo de registros a retornar
            search: Término de búsqueda parcial (opcional)

        Returns:
            {'data': [...], 'total': int}. total usa el mismo filtro que data.
        """
        where = ''
        params: Dict[str, Any] = {}
        if search and search.strip():
            where = self._search_predicate()
            params['pattern'] = self._like_pattern(search)

        data = self._fetch_all(
            self._select_sql() + where + self._order_sql() + self._pagination_clause(offset, limit),
            params
        )
        total = self._scalar(f'SELECT COUNT(*) AS total FROM {self._from_sql()}{where}', params)

        return {'data': data, 'total': total}

    def search(self, term: str) -> List[Dict[str, Any]]:
        """
        Búsqueda parcial en varios campos, máximo SEARCH_LIMIT resultados.
        """
        if not term or not term.strip():
            return []
        return self._fetch_all(
            self._select_sql() + self._search_predicate() + self._order_sql()
            + f' LIMIT {self.SEARCH_LIMIT}',
            {'pattern': self._like_pattern(term)}
        )

    def count(self) -> int:
        """Cuenta el número total de registros."""
        return self._scalar(f'SELECT COUNT(*) AS total FROM {self.TABLE}')

    def exists(self, record_id: Any) -> bool:
        """Verifica si existe un registro con ese ID."""
        count = self._scalar(
            f'SELECT COUNT(*) AS count FROM {self.TABLE} WHERE {self.ID_COLUMN} = :id',
            {'id': record_id}
        )
        return count > 0

    def exists_by_name(self, name: str, exclude_id: Any = None) -> bool:
        """
        Verifica si existe un registro con el nombre dado.

        Args:
            name: Nombre a verificar
            exclude_id: ID a excluir (el propio registro en una edición)
        """
        return self._exists_by_column(self.NAME_COLUMN, name, exclude_id)

    def _exists_by_column(self, column: str, value: Any, exclude_id: Any = None) -> bool:
        sql = f'SELECT COUNT(*) AS count FROM {self.TABLE} WHERE {column} = :value'
        params = {'value': value}
        if exclude_id is not None:
            sql += f' AND {self.ID_COLUMN} != :exclude_id'
            params['exclude_id'] = exclude_id
        return self._scalar(sql, params) > 0

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    INTEGRITY_MESSAGE = 'Los datos hacen referencia a registros inexistentes'

    def _check_unique(self, entity: Any, exclude_id: Any = None) -> None:
        for column, value, message in self._unique_checks(entity):
            if self._exists_by_column(column, value, exclude_id):
                raise DuplicateNameError(message, field=column, value=value)

    def _check_references(self, entity: Any) -> None:
        """Verifica las claves foráneas del payload (ninguna por defecto)."""

    def _integrity_error(self, entity: Any, exclude_id: Any = None) -> ValidationError:
        """
        Traduce una violación de restricción del motor.

        Si el nombre ya existe (otra escritura ganó la carrera) lanza
        DuplicateNameError; cualquier otra violación (clave foránea) se
        retorna como ValidationError.
        """
        self._check_unique(entity, exclude_id)
        return ValidationError(self.INTEGRITY_MESSAGE)

    def create(self, data: Dict[str, Any]) -> int:
        """
        Crea un nuevo registro.

        Args:
            data: Payload con los nombres de columna de la entidad

        Returns:
            ID del registro creado

        Raises:
            ValidationError: Falta el nombre, u otro campo es inválido
            DuplicateNameError: Nombre (o prefijo) ya registrado
        """
        entity = self.ENTITY.from_dict(data)
        self._check_unique(entity)
        self._check_references(entity)
        try:
            return self._insert(self._insert_sql(), entity.to_params())
        except IntegrityError as e:
            raise self._integrity_error(entity) from e

    def update(self, record_id: Any, data: Dict[str, Any]) -> bool:
        """
        Actualiza todos los campos editables de un registro.

        Returns:
            True si se actualizó una fila

        Raises:
            DuplicateNameError: El nombre pertenece a OTRO registro
        """
        entity = self.ENTITY.from_dict(data)
        self._check_unique(entity, exclude_id=record_id)
        self._check_references(entity)
        params = entity.to_params()
        params['id'] = record_id
        try:
            return self._execute(self._update_sql(), params) > 0
        except IntegrityError as e:
            raise self._integrity_error(entity, exclude_id=record_id) from e

    # =========================================================================
    # ELIMINACIÓN (política en los mixins)
    # =========================================================================

    DEPENDENCY_MESSAGE = 'No se puede eliminar porque tiene registros asociados'

    def _count_dependents(self, record_id: Any) -> int:
        """Filas de otras tablas que referencian el registro."""
        return 0

    def _guard_dependents(self, record_id: Any) -> None:
        dependents = self._count_dependents(record_id)
        if dependents > 0:
            raise DependencyExistsError(self.DEPENDENCY_MESSAGE, dependents=dependents)

    @abstractmethod
    def delete(self, record_id: Any) -> bool:
        """Elimina (o desactiva) un registro."""


class SoftDeleteMixin:
    """
    Eliminación lógica: se apaga la columna de estado, la fila se conserva.
    """

    STATUS_COLUMN: str = ''

    def delete(self, record_id: Any) -> bool:
        """
        Desactiva un registro (soft delete).

        Raises:
            DependencyExistsError: Si tiene dependientes vivos
        """
        self._guard_dependents(record_id)
        return self._execute(
            f'UPDATE {self.TABLE} SET {self.STATUS_COLUMN} = 0 WHERE {self.ID_COLUMN} = :id',
            {'id': record_id}
        ) > 0

    def restore(self, record_id: Any) -> bool:
        """Reactiva un registro desactivado."""
        return self._execute(
            f'UPDATE {self.TABLE} SET {self.STATUS_COLUMN} = 1 WHERE {self.ID_COLUMN} = :id',
            {'id': record_id}
        ) > 0


class HardDeleteMixin:
    """
    Eliminación física tras verificar que no hay dependientes.
    """

    def delete(self, record_id: Any) -> bool:
        """
        Elimina un registro.

        Raises:
            DependencyExistsError: Si otra tabla lo referencia
        """
        self._guard_dependents(record_id)
        return self._execute(
            f'DELETE FROM {self.TABLE} WHERE {self.ID_COLUMN} = :id',
            {'id': record_id}
        ) > 0
