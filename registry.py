# registry.py
import csv
import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from errors import DuplicateError

HEADER = "name,public_key,ip"


@dataclass(frozen=True)
class PeerRecord:
    """Метаданные пира: имя, публичный ключ и хост-суффикс адреса."""

    name: str
    public_key: str
    address: Optional[int]
    # ip column as stored, kept for rows outside the configured prefix
    ip: Optional[str] = field(default=None, compare=False)

    def ipv4(self, prefix: str) -> str:
        if self.address is None:
            return self.ip or ""
        return f"{prefix}.{self.address}"

    def ipv6(self, prefix: str) -> str:
        return f"{prefix}{self.address}"


def _split_row(line: str) -> List[str]:
    return next(csv.reader([line]), [])


class PeerRegistry:
    """Реестр пиров в CSV-файле ``name,public_key,ip``.

    Порядок строк совпадает с порядком добавления. Строки, которые
    операция не затрагивает, записываются обратно байт в байт.
    """

    def __init__(self, store, ipv4_prefix: str = "10.2.53", logger=None):
        """Инициализирует реестр.

        Args:
            store (storage.TextStore): Хранилище CSV-файла.
            ipv4_prefix (str): Первые три октета подсети пиров.
            logger (logging.Logger, optional): Логгер для записи событий.
        """
        self.store = store
        self.ipv4_prefix = ipv4_prefix
        self.logger = logger or logging.getLogger("wg_peers.registry")
        # text split on "\n": [header, row..., ""] for a newline-terminated file
        self._lines: List[str] = []
        self.load()

    def load(self):
        """Загружает реестр. Отсутствующий файл означает пустой реестр."""
        if not self.store.exists():
            self._lines = []
            self.logger.debug(f"Registry {self.store.name} not found, starting empty")
            return
        text = self.store.read()
        self._lines = text.split("\n") if text else []
        self.logger.debug(f"Registry loaded: {len(self.names())} peers")

    def _commit(self, lines: List[str]):
        # in-memory state only changes once the file is on disk
        self.store.write("\n".join(lines))
        self._lines = lines

    # --- parsing ---
    def _row_lines(self):
        return self._lines[1:]

    def _parse(self, line: str) -> Optional[PeerRecord]:
        cols = _split_row(line)
        if not cols or not cols[0]:
            return None
        public_key = cols[1] if len(cols) > 1 else ""
        ip = cols[2] if len(cols) > 2 else ""
        address = None
        head, _, tail = ip.rpartition(".")
        if head == self.ipv4_prefix and tail.isdigit():
            address = int(tail)
        else:
            self.logger.warning(f"Registry row for {cols[0]} has unexpected ip {ip!r}")
        return PeerRecord(name=cols[0], public_key=public_key, address=address, ip=ip)

    def _format(self, record: PeerRecord) -> str:
        buf = io.StringIO()
        csv.writer(buf, lineterminator="").writerow(
            [record.name, record.public_key, record.ipv4(self.ipv4_prefix)]
        )
        return buf.getvalue()

    # --- queries ---
    def records(self) -> List[PeerRecord]:
        result = []
        for line in self._row_lines():
            record = self._parse(line)
            if record is not None:
                result.append(record)
        return result

    def names(self) -> List[str]:
        return [r.name for r in self.records()]

    def get(self, name: str) -> Optional[PeerRecord]:
        for line in self._row_lines():
            cols = _split_row(line)
            if cols and cols[0] == name:
                return self._parse(line)
        return None

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    # --- mutations ---
    def insert(self, record: PeerRecord):
        """Добавляет запись в конец реестра и сохраняет его.

        Если файла ещё нет, он создаётся со строкой заголовка.

        Args:
            record (PeerRecord): Новая запись.

        Raises:
            DuplicateError: Если имя уже есть в реестре.
            PersistenceError: Если запись файла не удалась.
        """
        if self.exists(record.name):
            raise DuplicateError(
                f"'{record.name}' name is already in use. Please choose a different name."
            )
        lines = list(self._lines) or [HEADER, ""]
        if lines[-1] == "":
            lines[-1:] = [self._format(record), ""]
        else:
            lines.extend([self._format(record), ""])
        self._commit(lines)
        self.logger.info(f"Registry: added {record.name}")

    def remove(self, name: str) -> Optional[PeerRecord]:
        """Удаляет запись по имени.

        Заголовок и порядок остальных строк сохраняются. Файл
        перезаписывается только если запись действительно была.

        Args:
            name (str): Имя пира.

        Returns:
            PeerRecord | None: Удалённая запись или None, если её не было.
        """
        removed = None
        kept = self._lines[:1]
        for line in self._row_lines():
            cols = _split_row(line)
            if cols and cols[0] == name:
                if removed is None:
                    removed = self._parse(line)
                continue
            kept.append(line)
        if removed is None:
            self.logger.debug(f"Registry: {name} not present, nothing to remove")
            return None
        self._commit(kept)
        self.logger.info(f"Registry: removed {name}")
        return removed
