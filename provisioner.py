# provisioner.py
import logging

from allocator import next_address
from config_editor import (
    ConfigDocument,
    append_block,
    find_private_key,
    has_peer,
    peer_names,
    remove_block,
)
from errors import (
    ConfigError,
    DuplicateError,
    NotFoundError,
    PersistenceError,
)
from live_sync import LiveInterface
from profiles import render_profiles, write_profiles
from registry import PeerRecord, PeerRegistry
from storage import FileStore, exclusive_lock
from validators import validate_peer_name
from wg_tools import WgTool


class PeerProvisioner:
    """Добавление и удаление пиров WireGuard.

    Держит согласованными три хранилища: конфигурацию шлюза, реестр
    пиров и (по возможности) работающий интерфейс. Конфиг и реестр
    ничего не знают друг о друге, их согласованность обеспечивается
    только здесь.

    Между записью конфига и записью реестра есть окно: если вторая
    запись не удалась, первая не откатывается, а ошибка помечается как
    частичный успех.
    """

    def __init__(self, cfg, wg=None, config_store=None, registry_store=None, logger=None):
        """Инициализирует оркестратор.

        Args:
            cfg (dict): Конфигурация (см. main.LoadConfig).
            wg (wg_tools.WgTool, optional): Обёртка над wg/ip.
            config_store (storage.TextStore, optional): Хранилище wg0.conf.
            registry_store (storage.TextStore, optional): Хранилище CSV-реестра.
            logger (logging.Logger, optional): Логгер для записи событий.
        """
        self.cfg = cfg
        self.logger = logger or logging.getLogger("wg_peers.provisioner")
        self.interface = cfg["WG_INTERFACE"]
        self.ipv4_prefix = cfg["IPV4_PREFIX"]
        self.ipv6_prefix = cfg["IPV6_PREFIX"]
        self.wg = wg or WgTool(timeout=cfg["COMMAND_TIMEOUT"], use_sudo=cfg["USE_SUDO"])
        self.config_store = config_store or FileStore(cfg["WG_CONF"])
        self.registry_store = registry_store or FileStore(cfg["PEER_DB"])
        self.lock_path = cfg.get("LOCK_FILE") or f"{cfg['PEER_DB']}.lock"
        self.live = LiveInterface(
            self.wg, self.interface, self.ipv4_prefix, self.ipv6_prefix
        )

    # --- helpers ---
    def _load_registry(self):
        return PeerRegistry(self.registry_store, self.ipv4_prefix)

    def _load_config(self):
        if not self.config_store.exists():
            raise ConfigError(f"{self.config_store.name} not found")
        return ConfigDocument.from_text(self.config_store.read())

    def _audit(self, registry, doc):
        """Сверяет имена в реестре и маркеры в конфиге, расхождения пишет в лог.

        Ничего не исправляет: после частичного успеха оператор чинит
        расхождение сам.
        """
        in_registry = set(registry.names())
        in_config = set(peer_names(doc))
        drift = {
            "registry_only": sorted(in_registry - in_config),
            "config_only": sorted(in_config - in_registry),
        }
        for name in drift["registry_only"]:
            self.logger.warning(f"Drift: {name} is in the registry but has no config block")
        for name in drift["config_only"]:
            self.logger.warning(f"Drift: {name} has a config block but no registry row")
        return drift

    def _endpoint(self):
        endpoint = self.cfg.get("SERVER_ENDPOINT")
        if endpoint:
            return endpoint
        host = self.wg.detect_endpoint_host(self.cfg["ENDPOINT_IFACE"])
        if not host:
            self.logger.warning(
                f"Could not detect a public address on {self.cfg['ENDPOINT_IFACE']}; "
                "set SERVER_ENDPOINT in the config"
            )
            host = "<SERVER_ENDPOINT>"
        return f"{host}:{self.cfg['LISTEN_PORT']}"

    # --- add ---
    def add_peer(self, name):
        """Добавляет нового пира.

        Шаги 1-4 (валидация, проверка дубликата, выделение адреса, ключи)
        ничего не меняют на диске. После записи конфига пир считается
        созданным, даже если живой интерфейс или клиентские файлы не
        удались.

        Args:
            name (str): Имя пира.

        Returns:
            dict: Информация о пире:
                - name (str): Имя
                - public_key (str): Публичный ключ клиента
                - address (int): Хост-суффикс
                - ipv4 (str), ipv6 (str): Адреса пира
                - live (live_sync.SyncResult): Результат применения к интерфейсу
                - profiles (dict): Тексты клиентских конфигов
                - profile_paths (dict): Пути к сохранённым конфигам

        Raises:
            ValidationError, DuplicateError, AddressSpaceExhausted, ConfigError,
            KeyGenerationError: До любых изменений.
            PersistenceError: Если запись не удалась; ``partial`` показывает,
                что конфиг уже изменён.
        """
        validate_peer_name(name)
        with exclusive_lock(self.lock_path):
            registry = self._load_registry()
            doc = self._load_config()
            self._audit(registry, doc)

            if registry.exists(name):
                raise DuplicateError(
                    f"'{name}' name is already in use. Please choose a different name."
                )
            if has_peer(doc, name):
                raise DuplicateError(
                    f"'{name}' already has a block in {self.config_store.name}; "
                    "remove it before adding the peer again."
                )

            suffix = next_address(doc.lines, self.ipv4_prefix)
            self.logger.debug(f"Allocated suffix .{suffix} for {name}")

            server_private = find_private_key(doc)
            if not server_private:
                raise ConfigError(f"No PrivateKey in [Interface] of {self.config_store.name}")
            server_public = self.wg.public_key(server_private)
            client_private, client_public = self.wg.gen_keypair()
            psk = self.wg.gen_psk()

            new_doc = append_block(
                doc, name, client_public, psk, suffix, self.ipv4_prefix, self.ipv6_prefix
            )
            self.config_store.write(new_doc.to_text())
            self.logger.info(f"Peer block for {name} appended to {self.config_store.name}")

            record = PeerRecord(name=name, public_key=client_public, address=suffix)
            try:
                registry.insert(record)
            except PersistenceError as e:
                raise PersistenceError(
                    f"{self.config_store.name} was updated but the registry write failed: {e}",
                    completed=["config"],
                    remediation=(
                        f"echo '{name},{client_public},{record.ipv4(self.ipv4_prefix)}' "
                        f">> {self.registry_store.name}"
                    ),
                )

            live = self.live.apply(client_public, psk, suffix)

        profiles = render_profiles(
            suffix,
            client_private,
            server_public,
            psk,
            self._endpoint(),
            self.ipv4_prefix,
            self.ipv6_prefix,
        )
        profile_paths = {}
        try:
            profile_paths = write_profiles(self.cfg["PROFILE_DIR"], name, profiles)
        except (PersistenceError, OSError) as e:
            self.logger.warning(f"Client profiles for {name} were not saved: {e}")

        self.logger.info(f"Added peer {name} with IP {record.ipv4(self.ipv4_prefix)}")
        return {
            "name": name,
            "public_key": client_public,
            "address": suffix,
            "ipv4": record.ipv4(self.ipv4_prefix),
            "ipv6": record.ipv6(self.ipv6_prefix),
            "live": live,
            "profiles": profiles,
            "profile_paths": profile_paths,
        }

    # --- remove ---
    def remove_peer(self, name):
        """Удаляет пира.

        Args:
            name (str): Имя пира.

        Returns:
            dict: name, public_key, address, ipv4, live (SyncResult),
                config_updated (bool).

        Raises:
            ValidationError, NotFoundError: До любых изменений.
            PersistenceError: Если запись не удалась; ``partial`` показывает,
                что конфиг уже изменён.
        """
        validate_peer_name(name)
        with exclusive_lock(self.lock_path):
            registry = self._load_registry()
            record = registry.get(name)
            if record is None:
                raise NotFoundError(
                    f"peer named '{name}' not found (not in {self.registry_store.name})."
                )

            doc = None
            if self.config_store.exists():
                doc = ConfigDocument.from_text(self.config_store.read())
                self._audit(registry, doc)

            live = self.live.retract(record.public_key)

            config_updated = False
            if doc is None:
                self.logger.warning(
                    f"{self.config_store.name} not found, could not remove from config."
                )
            else:
                new_doc = remove_block(doc, name)
                if new_doc == doc:
                    self.logger.warning(
                        f"No peer block for {name} in {self.config_store.name}, config left as is"
                    )
                else:
                    self.config_store.write(new_doc.to_text())
                    config_updated = True
                    self.logger.info(
                        f"Peer block '{name}' removed from {self.config_store.name}."
                    )

            try:
                registry.remove(name)
            except PersistenceError as e:
                if not config_updated:
                    raise
                raise PersistenceError(
                    f"Peer block was removed from {self.config_store.name} "
                    f"but the registry write failed: {e}",
                    completed=["config"],
                    remediation=f"delete the '{name},...' row from {self.registry_store.name}",
                )

        self.logger.info(f"Removed peer {name}")
        return {
            "name": name,
            "public_key": record.public_key,
            "address": record.address,
            "ipv4": record.ipv4(self.ipv4_prefix),
            "live": live,
            "config_updated": config_updated,
        }
