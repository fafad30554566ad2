# live_sync.py
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from config_editor import allowed_ips
from errors import WgCommandError


class SyncStatus(enum.Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    WARNED = "warned"


@dataclass
class SyncResult:
    status: SyncStatus
    message: str
    remediation: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.APPLIED


class LiveInterface:
    """Зеркалирование изменений на работающий интерфейс WireGuard.

    Работающий интерфейс не является источником истины: любые ошибки
    здесь превращаются в SKIPPED или WARNED, а запись конфигурации и
    реестра продолжается.
    """

    def __init__(self, wg, interface, ipv4_prefix, ipv6_prefix, logger=None):
        self.wg = wg
        self.interface = interface
        self.ipv4_prefix = ipv4_prefix
        self.ipv6_prefix = ipv6_prefix
        self.logger = logger or logging.getLogger("wg_peers.live_sync")

    def apply(self, public_key, preshared_key, suffix) -> SyncResult:
        """Добавляет пира в работающий интерфейс.

        Args:
            public_key (str): Публичный ключ пира.
            preshared_key (str): Общий ключ (PSK).
            suffix (int): Хост-суффикс адреса пира.

        Returns:
            SyncResult: APPLIED, SKIPPED (интерфейс не поднят) или WARNED
                (интерфейс поднят, но ``wg set`` не сработал).
        """
        ips = allowed_ips(suffix, self.ipv4_prefix, self.ipv6_prefix)
        manual = (
            f"wg set {self.interface} peer {public_key} "
            f'preshared-key <(echo "<psk>") allowed-ips "{ips}"'
        )
        if not self.wg.is_active(self.interface):
            self.logger.warning(f"{self.interface} is not active, live add skipped")
            return SyncResult(
                SyncStatus.SKIPPED,
                f"{self.interface} does not appear to be active. wg set could not be applied; "
                "you can add the peer manually later.",
                remediation=manual,
            )
        try:
            self.wg.set_peer(self.interface, public_key, preshared_key, ips)
        except WgCommandError as e:
            self.logger.warning(f"Live add on {self.interface} failed: {e}")
            return SyncResult(
                SyncStatus.WARNED,
                f"wg set command failed but {self.interface}.conf has been updated. "
                "You can try again manually.",
                remediation=manual,
            )
        self.logger.info(f"Peer {public_key[:8]}... added to live {self.interface}")
        return SyncResult(SyncStatus.APPLIED, f"Peer added to live {self.interface} interface.")

    def retract(self, public_key) -> SyncResult:
        """Удаляет пира из работающего интерфейса по публичному ключу."""
        manual = f"wg set {self.interface} peer {public_key} remove"
        if not self.wg.is_active(self.interface):
            self.logger.warning(f"{self.interface} is not active, live removal skipped")
            return SyncResult(
                SyncStatus.SKIPPED,
                f"{self.interface} does not appear to be active, "
                "skipping removal from live interface.",
                remediation=manual,
            )
        try:
            self.wg.remove_peer(self.interface, public_key)
        except WgCommandError as e:
            self.logger.warning(f"Live removal on {self.interface} failed: {e}")
            return SyncResult(
                SyncStatus.WARNED,
                f"wg set {self.interface} peer ... remove command failed but continuing.",
                remediation=manual,
            )
        self.logger.info(f"Peer {public_key[:8]}... removed from live {self.interface}")
        return SyncResult(
            SyncStatus.APPLIED, f"Peer removed from live {self.interface} interface."
        )
