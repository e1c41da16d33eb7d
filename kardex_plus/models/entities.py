# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa los campos editables de una tabla.
# from_dict() normaliza el payload de los formularios (opcionales → None,
# banderas → 0/1) y to_params() produce los parámetros SQL.
# Los repositorios retornan filas como diccionarios con los nombres de
# columna originales (Bodega_Nombre, ...), no instancias de estas clases.
# ==============================================================================

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from kardex_plus.exceptions import ValidationError


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class BodegaTipo(str, Enum):
    """Tipos de bodega conocidos (la columna acepta texto libre)."""
    CENTRAL = "Central"
    PRODUCCION = "Producción"
    FRIO = "Frío"
    TEMPORAL = "Temporal"


class EstadoPermiso(str, Enum):
    """Estado de un permiso efectivo en v_permisos_usuario."""
    PERMITIDO = "PERMITIDO"
    DENEGADO = "DENEGADO"


class OrigenPermiso(str, Enum):
    """Origen de un permiso efectivo."""
    DIRECTO = "DIRECTO"  # Concedido al usuario
    ROL = "ROL"          # Heredado de su rol


_FALSE_STRINGS = frozenset(['0', 'false', 'no', 'off', ''])


def to_flag(value: Any, default: int = 1) -> int:
    """
    Convierte un valor booleano-like a 0/1.

    Args:
        value: bool, int o string ('true', '0', ...). None = default
        default: Valor cuando no se envía el campo

    Returns:
        1 o 0
    """
    if value is None:
        return default
    if isinstance(value, str):
        return 0 if value.strip().lower() in _FALSE_STRINGS else 1
    return 1 if value else 0


def _optional(value: Any) -> Any:
    """Campos opcionales: vacío → None."""
    return value or None


def _required_name(data: Dict[str, Any], field_name: str, label: str) -> str:
    value = data.get(field_name)
    if value is None or not str(value).strip():
        raise ValidationError(f'{label} es requerido', field=field_name)
    return str(value).strip()


def _optional_id(value: Any, field_name: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} debe ser numérico', field=field_name)


def _optional_number(value: Any, field_name: str) -> Optional[float]:
    if not value:
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} debe ser numérico', field=field_name)


# ==============================================================================
# CATÁLOGOS
# ==============================================================================

@dataclass
class Bodega:
    """
    Bodega (almacén) del sistema.

    Attributes:
        nombre: Nombre único de la bodega
        tipo: Central, Producción, Frío, Temporal (texto libre)
        ubicacion: Dirección o descripción de la ubicación
        responsable_id: Usuario responsable (opcional)
        estado: 1 = activa, 0 = desactivada (soft delete)
    """
    nombre: str
    tipo: Optional[str] = None
    ubicacion: Optional[str] = None
    responsable_id: Optional[int] = None
    estado: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bodega':
        """Crea instancia desde el payload del formulario."""
        return cls(
            nombre=_required_name(data, 'Bodega_Nombre', 'El nombre de la bodega'),
            tipo=_optional(data.get('Bodega_Tipo')),
            ubicacion=_optional(data.get('Bodega_Ubicacion')),
            responsable_id=_optional_id(data.get('Responsable_Id'), 'Responsable_Id'),
            estado=to_flag(data.get('Bodega_Estado'))
        )

    def to_params(self) -> Dict[str, Any]:
        """Parámetros para INSERT/UPDATE."""
        return {
            'nombre': self.nombre,
            'tipo': self.tipo,
            'ubicacion': self.ubicacion,
            'responsable_id': self.responsable_id,
            'estado': self.estado,
        }


@dataclass
class CategoriaItem:
    """Categoría de items."""
    nombre: str
    descripcion: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CategoriaItem':
        return cls(
            nombre=_required_name(data, 'CategoriaItem_Nombre', 'El nombre de la categoría'),
            descripcion=_optional(data.get('CategoriaItem_Descripcion'))
        )

    def to_params(self) -> Dict[str, Any]:
        return {'nombre': self.nombre, 'descripcion': self.descripcion}


@dataclass
class Rol:
    """Rol de usuario. Los permisos se asignan vía Roles_Permisos."""
    nombre: str
    descripcion: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Rol':
        return cls(
            nombre=_required_name(data, 'Rol_Nombre', 'El nombre del rol'),
            descripcion=_optional(data.get('Rol_Descripcion'))
        )

    def to_params(self) -> Dict[str, Any]:
        return {'nombre': self.nombre, 'descripcion': self.descripcion}


@dataclass
class UnidadMedida:
    """
    Unidad de medida.

    Attributes:
        nombre: Nombre único (ej: Kilogramo)
        prefijo: Símbolo único (ej: kg)
        factor_conversion: Factor respecto a la unidad base (opcional)
    """
    nombre: str
    prefijo: str
    factor_conversion: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UnidadMedida':
        return cls(
            nombre=_required_name(data, 'UnidadMedida_Nombre', 'El nombre de la unidad de medida'),
            prefijo=_required_name(data, 'UnidadMedida_Prefijo', 'El prefijo de la unidad de medida'),
            factor_conversion=_optional_number(
                data.get('UnidadMedida_Factor_Conversion'), 'UnidadMedida_Factor_Conversion'
            )
        )

    def to_params(self) -> Dict[str, Any]:
        return {
            'nombre': self.nombre,
            'prefijo': self.prefijo,
            'factor': self.factor_conversion,
        }


# ==============================================================================
# USUARIOS
# ==============================================================================

@dataclass
class Usuario:
    """
    Usuario del sistema.

    La contraseña llega en texto plano y el repositorio la guarda hasheada.
    """
    nombre: str
    correo: str
    contrasena: str
    apellido: Optional[str] = None
    rol_id: Optional[int] = None
    estado: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Usuario':
        contrasena = data.get('Usuario_Contrasena')
        if not contrasena:
            raise ValidationError('La contraseña es requerida', field='Usuario_Contrasena')
        return cls(
            nombre=_required_name(data, 'Usuario_Nombre', 'El nombre del usuario'),
            correo=_required_name(data, 'Usuario_Correo', 'El correo del usuario'),
            contrasena=contrasena,
            apellido=_optional(data.get('Usuario_Apellido')),
            rol_id=_optional_id(data.get('Rol_Id'), 'Rol_Id'),
            estado=to_flag(data.get('Usuario_Estado'))
        )
