# errors.py


class PeerSyncError(Exception):
    """Базовое исключение для ошибок синхронизации пиров.

    Используется для всех фатальных ошибок при добавлении и удалении
    пиров: валидация, поиск в реестре, выделение адреса, запись файлов.

    Attributes:
        _extra (dict): Дополнительные данные об ошибке (например, stderr).
    """

    def __init__(self, message, logger=None, level="error", **kwargs):
        """Инициализирует исключение.

        Args:
            message (str): Сообщение об ошибке.
            logger (logging.Logger, optional): Логгер для записи ошибки.
            level (str, optional): Уровень логирования. По умолчанию "error".
            **kwargs: Дополнительные данные об ошибке.
        """
        super().__init__(message)
        self._extra = kwargs
        if logger:
            log_func = getattr(logger, level, logger.error)
            log_func(f"[{type(self).__name__}] {message}")


class ValidationError(PeerSyncError):
    """Невалидное имя пира (длина или набор символов)."""

    @property
    def reason(self):
        return self._extra.get("reason")


class NotFoundError(PeerSyncError):
    """Пир отсутствует в реестре."""


class DuplicateError(PeerSyncError):
    """Пир с таким именем уже есть в реестре."""


class AddressSpaceExhausted(PeerSyncError):
    """В подсети /24 не осталось свободных адресов."""


class ConfigError(PeerSyncError):
    """Конфигурация шлюза или утилиты не пригодна для работы."""


class PersistenceError(PeerSyncError):
    """Ошибка записи конфигурации или реестра.

    Если ошибка возникла посередине последовательности, ``partial`` равен
    True, а ``completed`` перечисляет уже выполненные шаги.
    """

    @property
    def partial(self):
        return bool(self._extra.get("completed"))

    @property
    def completed(self):
        return list(self._extra.get("completed") or [])

    @property
    def remediation(self):
        return self._extra.get("remediation")


class WgCommandError(PeerSyncError):
    """Внешняя команда (wg, ip) завершилась ошибкой или по таймауту."""

    _full_stderr = None


class KeyGenerationError(PeerSyncError):
    """Не удалось получить ключи для нового пира."""
