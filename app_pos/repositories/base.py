# ==============================================================================
# ARCHIVO JSON BASE - Lectura/escritura segura de una colección
# ==============================================================================
# Cada colección local vive en su propio archivo <clave>.json como lista.
#   - Escritura atómica: archivo temporal + os.replace
#   - Lock global del proceso para evitar escrituras concurrentes
#   - Lectura tolerante: archivo corrupto o ausente => "no existe"
# ==============================================================================

import json
import logging
import os
import threading
from typing import Any, List, Optional, Tuple


log = logging.getLogger("app_pos.repositories.json")


class JsonCollectionFile:
    """
    Un archivo JSON que almacena una lista de registros.

    Al leer distingue "no existe" (clave ausente, o contenido corrupto) de
    "lista vacía": solo en el primer caso se usa la semilla.
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON de la colección
        """
        self.file_path = file_path

    @property
    def lock(self) -> threading.RLock:
        return self._file_lock

    def exists(self) -> bool:
        return os.path.exists(self.file_path)

    def mtime_ns(self) -> Optional[int]:
        """Marca de modificación del archivo, o None si no existe."""
        try:
            return os.stat(self.file_path).st_mtime_ns
        except OSError:
            return None

    def read(self) -> Tuple[bool, List[Any]]:
        """
        Lee la lista almacenada.

        Returns:
            Tupla (encontrado, registros). encontrado=False si el archivo no
            existe, no se puede leer o no contiene una lista JSON válida.
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except FileNotFoundError:
                return False, []
            except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
                log.warning("Colección ilegible en %s, se usa la semilla: %s", self.file_path, e)
                return False, []

        if not isinstance(data, list):
            log.warning("Colección con formato inesperado en %s, se usa la semilla", self.file_path)
            return False, []
        return True, data

    def write(self, data: List[Any]) -> None:
        """
        Escribe la lista completa (reemplazo total).

        Raises:
            OSError: Si no se puede escribir (disco lleno, permisos...)
        """
        with self._file_lock:
            os.makedirs(os.path.dirname(self.file_path) or '.', exist_ok=True)
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                # Reemplazar archivo original (operación atómica en la mayoría de sistemas)
                os.replace(temp_path, self.file_path)
            except (OSError, TypeError, ValueError):
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise

    def delete(self) -> None:
        with self._file_lock:
            if os.path.exists(self.file_path):
                os.remove(self.file_path)
