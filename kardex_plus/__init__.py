# ==============================================================================
# KARDEXPLUS - Gestión de bodegas e inventario
# ==============================================================================
# ESTRUCTURA:
# ├── main.py               → Fábrica de la app Flask y rutas /api
# ├── app_container.py      → Contenedor de dependencias (repos + servicios)
# ├── config.py             → Configuración desde variables de entorno
# ├── database.py           → Esquema, vista de permisos y catálogo base
# ├── exceptions.py         → Errores del dominio
# ├── performance_logger.py → Profiling y log de errores
# ├── models/               → Entidades (dataclasses)
# ├── repositories/         → Acceso a datos (SQLAlchemy)
# └── services/             → Lógica de negocio (usuarios, permisos)
# ==============================================================================

__version__ = '1.0.0'
