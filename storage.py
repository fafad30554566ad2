# storage.py
import contextlib
import fcntl
import logging
import os
import tempfile

from errors import PersistenceError


class TextStore:
    """Хранилище одного текстового документа (конфиг или реестр).

    Оркестратор получает хранилища извне, поэтому в тестах вместо
    файлов можно подставить хранилище в памяти.
    """

    name = "<store>"

    def exists(self):
        raise NotImplementedError

    def read(self):
        raise NotImplementedError

    def write(self, data):
        raise NotImplementedError


class FileStore(TextStore):
    """Текстовый файл на диске с атомарной заменой при записи."""

    def __init__(self, path, mode=0o600, logger=None):
        self.path = path
        self.mode = mode
        self.logger = logger or logging.getLogger("wg_peers.storage")

    @property
    def name(self):
        return self.path

    def exists(self):
        return os.path.exists(self.path)

    def read(self):
        try:
            # newline="" keeps \r\n intact so untouched lines survive a rewrite
            with open(self.path, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Failed to read {self.path}: {e}")

    # --- helper: atomic write ---
    def write(self, data):
        """Атомарно записывает данные в файл.

        Создаёт временный файл в той же директории, записывает данные,
        синхронизирует на диск, выставляет права и затем атомарно заменяет
        целевой файл. Читатель никогда не увидит наполовину записанный файл.

        Args:
            data (str): Данные для записи в файл.

        Raises:
            PersistenceError: Если целевой путь является символической ссылкой
                или произошла ошибка при записи.
        """
        if os.path.islink(self.path):
            raise PersistenceError(f"Refusing to overwrite symlink: {self.path}")
        dir_name = os.path.dirname(self.path) or "."
        base_name = os.path.basename(self.path)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{base_name}.", dir=dir_name, text=True)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, self.mode)
            os.replace(tmp_path, self.path)
            # chmod again in case the rename landed on a filesystem ignoring it
            os.chmod(self.path, self.mode)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise PersistenceError(f"Failed to write {self.path}: {e}")
        self.logger.debug(f"Wrote {len(data)} bytes to {self.path}")


@contextlib.contextmanager
def exclusive_lock(path, logger=None):
    """Держит эксклюзивную рекомендательную блокировку (flock) на файле.

    Блокировка берётся на всё время цикла загрузка-изменение-запись
    обоих хранилищ, так что два одновременных запуска не теряют изменения
    друг друга.

    Args:
        path (str): Путь к файлу блокировки. Создаётся при необходимости.
        logger (logging.Logger, optional): Логгер.

    Raises:
        PersistenceError: Если файл блокировки нельзя открыть.
    """
    logger = logger or logging.getLogger("wg_peers.storage")
    try:
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
    except OSError as e:
        raise PersistenceError(f"Cannot open lock file {path}: {e}")
    try:
        logger.debug(f"Waiting for lock {path}")
        fcntl.flock(fd, fcntl.LOCK_EX)
        logger.debug(f"Lock acquired: {path}")
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
        logger.debug(f"Lock released: {path}")
