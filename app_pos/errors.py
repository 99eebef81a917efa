# ==============================================================================
# EXCEPCIONES DEL DOMINIO
# ==============================================================================
# Taxonomía de errores de la capa de sincronización:
#   - BackendError          -> fallo remoto (red, escritura rechazada). Sin reintento.
#   - CloudPermissionError  -> reglas del servidor deniegan la operación.
#                              En suscripciones se difunde por el bus, no se lanza.
#   - ValidationError       -> datos inválidos, se rechaza ANTES de mutar nada.
#   - InvalidTransitionError-> transición de estado no permitida.
# ==============================================================================


class SyncError(Exception):
    """Error base de la capa de sincronización."""


class BackendError(SyncError):
    """Fallo del backend en una escritura o lectura remota."""


class CloudPermissionError(BackendError):
    """El backend en la nube rechazó la operación por permisos."""


class ValidationError(SyncError):
    """Datos de entrada inválidos."""


class ImportValidationError(ValidationError):
    """El archivo de importación no tiene la estructura mínima."""


class ImportDisabledError(SyncError):
    """La importación masiva está deshabilitada con el backend en la nube."""


class NotFoundError(SyncError):
    """El registro solicitado no existe en la colección."""


class InvalidTransitionError(SyncError):
    """Transición de estado no permitida por la máquina de estados."""

    def __init__(self, current, target, message: str = None):
        self.current = current
        self.target = target
        super().__init__(
            message or f"Transición no permitida: {_value(current)} → {_value(target)}"
        )


class OrderAlreadyFinalizedError(InvalidTransitionError):
    """El pedido ya fue finalizado (ENTREGADO) y no puede generar otra venta."""


def _value(status):
    return getattr(status, 'value', status)
