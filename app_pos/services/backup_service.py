# ==============================================================================
# SERVICIO DE EXPORTACIÓN / IMPORTACIÓN
# ==============================================================================
# Exporta los datos vivos a un JSON y permite restaurarlos en modo local.
#
# FORMATO:
#   {
#     "timestamp": "2024-05-01T12:00:00+00:00",
#     "products": [...], "sales": [...],
#     "assets": [...], "whatsappOrders": [...]
#   }
#
# ARCHIVO: backups/control_alfajores_backup_YYYY-MM-DD.json
#
# IMPORTACIÓN:
#   - Solo en modo local (en la nube sobrescribiría datos en tiempo real)
#   - Se valida TODO antes de escribir: un archivo inválido no toca nada
#   - Reemplazo completo de cada colección presente en el archivo
# ==============================================================================

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from app_pos.errors import ImportDisabledError, ImportValidationError, ValidationError
from app_pos.models import now_iso
from app_pos.models.catalog import ASSETS, KITCHEN_ORDERS, PRODUCTS, SALES, WHATSAPP_ORDERS
from app_pos.performance_logger import profile_function
from app_pos.repositories.interfaces import StorageBackend


log = logging.getLogger("app_pos.services.backup")


class BackupService:
    """
    Servicio de exportación e importación de la base de datos.

    Uso:
        backup = BackupService(backend, data_dir='/app/data')
        path = backup.export_to_file()
        backup.import_from_file(path)
    """

    # Clave en el archivo -> colección del backend
    EXPORT_KEYS = {
        'products': PRODUCTS,
        'sales': SALES,
        'assets': ASSETS,
        'whatsappOrders': WHATSAPP_ORDERS,
    }

    # Claves obligatorias de un archivo importable
    REQUIRED_KEYS = ('products', 'sales')

    # Cantidad de exportaciones a mantener en disco
    MAX_BACKUPS = 7

    BACKUP_DIR_NAME = 'backups'
    FILE_PREFIX = 'control_alfajores_backup_'

    def __init__(self, backend: StorageBackend, data_dir: str):
        """
        Args:
            backend: Backend activo
            data_dir: Carpeta de datos (las exportaciones van a data_dir/backups)
        """
        self.backend = backend
        self.backup_root = os.path.join(data_dir, self.BACKUP_DIR_NAME)

    @property
    def import_enabled(self) -> bool:
        return self.backend.kind == 'local'

    # =========================================================================
    # EXPORTACIÓN
    # =========================================================================

    @profile_function(name="Exportar base de datos")
    def export_database(self) -> Dict[str, Any]:
        """Foto completa de los datos vivos."""
        data: Dict[str, Any] = {'timestamp': now_iso()}
        for key, collection in self.EXPORT_KEYS.items():
            data[key] = self.backend.read_all(collection)
        return data

    def default_path(self) -> str:
        today = datetime.now().strftime('%Y-%m-%d')
        return os.path.join(self.backup_root, f'{self.FILE_PREFIX}{today}.json')

    def export_to_file(self, path: Optional[str] = None) -> str:
        """
        Escribe la exportación en disco.

        Returns:
            Ruta del archivo creado
        """
        path = path or self.default_path()
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        data = self.export_database()
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2, default=str)
        log.info("Exportación creada: %s", os.path.basename(path))
        self.rotate_backups()
        return path

    def list_backups(self) -> List[str]:
        """Exportaciones en backups/, la más reciente primero."""
        if not os.path.isdir(self.backup_root):
            return []
        backups = []
        for name in os.listdir(self.backup_root):
            if not (name.startswith(self.FILE_PREFIX) and name.endswith('.json')):
                continue
            try:
                datetime.strptime(name[len(self.FILE_PREFIX):-5], '%Y-%m-%d')
            except ValueError:
                continue
            backups.append(name)
        backups.sort(reverse=True)
        return backups

    def rotate_backups(self) -> int:
        """
        Elimina exportaciones antiguas, manteniendo solo las últimas MAX_BACKUPS.

        Returns:
            Cantidad eliminada
        """
        deleted = 0
        for name in self.list_backups()[self.MAX_BACKUPS:]:
            try:
                os.remove(os.path.join(self.backup_root, name))
                deleted += 1
            except OSError as e:
                log.warning("No se pudo eliminar %s: %s", name, e)
        return deleted

    # =========================================================================
    # IMPORTACIÓN
    # =========================================================================

    def _parse(self, data: Union[str, bytes, Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        """Valida el contenido y devuelve {clave: registros} a escribir."""
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise ImportValidationError(f"El archivo no es JSON válido: {e}") from e

        if not isinstance(data, dict):
            raise ImportValidationError("Formato de archivo inválido")

        for key in self.REQUIRED_KEYS:
            if not isinstance(data.get(key), list):
                raise ImportValidationError("Formato de archivo inválido: faltan productos o ventas")

        parsed = {}
        for key in self.EXPORT_KEYS:
            if key not in data:
                continue
            records = data[key]
            if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
                raise ImportValidationError(f"'{key}' debe ser una lista de registros")
            parsed[key] = records
        return parsed

    @profile_function(name="Importar base de datos")
    def import_database(self, data: Union[str, bytes, Dict[str, Any]]) -> Dict[str, int]:
        """
        Reemplaza los datos locales por los del archivo.

        Args:
            data: Contenido del archivo (texto JSON o dict ya parseado)

        Returns:
            Cantidad de registros importados por clave

        Raises:
            ImportDisabledError: Backend en la nube
            ImportValidationError: Archivo sin productos/ventas o mal formado
        """
        if not self.import_enabled:
            raise ImportDisabledError(
                "La importación masiva está deshabilitada en modo nube para no "
                "sobrescribir datos en tiempo real."
            )

        parsed = self._parse(data)
        for key, records in parsed.items():
            self.backend.replace_all(self.EXPORT_KEYS[key], records)

        counts = {key: len(records) for key, records in parsed.items()}
        log.info("Importación completada: %s", counts)
        return counts

    def import_from_file(self, path: str) -> Dict[str, int]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except OSError as e:
            raise ValidationError(f"No se pudo leer {path}: {e}") from e
        return self.import_database(content)

    def clear_all(self) -> None:
        """Vacía todas las colecciones locales (incluida la cocina)."""
        if not self.import_enabled:
            raise ImportDisabledError("No se puede vaciar la base de datos en modo nube")
        for collection in list(self.EXPORT_KEYS.values()) + [KITCHEN_ORDERS]:
            self.backend.replace_all(collection, [])
        log.warning("Base de datos local vaciada")
