# wg_tools.py
import ipaddress
import logging
import subprocess

from errors import KeyGenerationError, WgCommandError

_PRIVATE_V4 = ipaddress.ip_network("10.0.0.0/8")


class WgTool:
    """Обёртка над утилитами ``wg`` и ``ip``.

    Все вызовы синхронные и ограничены таймаутом: зависшая команда
    считается такой же ошибкой, как ненулевой код возврата.
    """

    def __init__(self, timeout=10, use_sudo=False, logger=None):
        """Инициализирует обёртку.

        Args:
            timeout (float, optional): Таймаут каждой команды в секундах.
            use_sudo (bool, optional): Запускать команды через sudo.
            logger (logging.Logger, optional): Логгер для записи событий.
        """
        self.timeout = timeout
        self.use_sudo = use_sudo
        self.logger = logger or logging.getLogger("wg_peers.wg_tools")

    # --- helper subprocess wrapper (avoid logging secrets) ---
    def _run(self, cmd, input_data=None, check=True):
        """Выполняет команду через subprocess и возвращает stdout.

        Args:
            cmd (list): Список аргументов команды (например, ["wg", "show", "wg0"]).
            input_data (str, optional): Данные для передачи в stdin команды.
                В лог никогда не попадают.
            check (bool, optional): Если True, вызывает исключение при ненулевом
                коде возврата. По умолчанию True.

        Returns:
            str: Вывод команды (stdout) без пробелов в начале и конце.

        Raises:
            WgCommandError: Если команда завершилась с ошибкой, не найдена
                или не уложилась в таймаут.
        """
        if self.use_sudo:
            cmd = ["sudo", *cmd]
        try:
            proc = subprocess.run(
                cmd,
                input=input_data,
                capture_output=True,
                check=check,
                text=True,
                timeout=self.timeout,
                env={"PATH": "/usr/sbin:/usr/bin:/sbin:/bin"},
            )
            self.logger.debug(f"Command succeeded: {' '.join(cmd)}")
            return proc.stdout.strip()
        except subprocess.CalledProcessError as e:
            ex = WgCommandError(f"Command failed: {' '.join(cmd)}; exit={e.returncode}")
            ex._full_stderr = e.stderr
            self.logger.debug(f"Command failed: {' '.join(cmd)}; exit={e.returncode}")
            self.logger.debug(f"STDERR: {ex._full_stderr}")
            raise ex
        except subprocess.TimeoutExpired:
            self.logger.debug(f"Command timed out after {self.timeout}s: {' '.join(cmd)}")
            raise WgCommandError(f"Command timed out after {self.timeout}s: {' '.join(cmd)}")
        except OSError as e:
            self.logger.debug(f"Command could not start: {' '.join(cmd)}: {e}")
            raise WgCommandError(f"Command could not start: {' '.join(cmd)}: {e}")

    # --- key generation ---
    def public_key(self, private_key):
        """Вычисляет публичный ключ из приватного (``wg pubkey``)."""
        try:
            pub = self._run(["wg", "pubkey"], input_data=private_key + "\n")
        except WgCommandError as e:
            raise KeyGenerationError(f"wg pubkey failed: {e}")
        if not pub:
            raise KeyGenerationError("wg pubkey returned an empty key")
        return pub

    def gen_keypair(self):
        """Генерирует пару ключей WireGuard.

        Returns:
            tuple[str, str]: Кортеж (приватный_ключ, публичный_ключ).

        Raises:
            KeyGenerationError: Если ``wg genkey`` или ``wg pubkey`` не сработали.
        """
        try:
            priv = self._run(["wg", "genkey"])
        except WgCommandError as e:
            raise KeyGenerationError(f"wg genkey failed: {e}")
        pub = self.public_key(priv)
        self.logger.debug("Generated keypair for new peer")
        return priv, pub

    def gen_psk(self):
        try:
            return self._run(["wg", "genpsk"])
        except WgCommandError as e:
            raise KeyGenerationError(f"wg genpsk failed: {e}")

    # --- live interface ---
    def is_active(self, iface):
        try:
            self._run(["wg", "show", iface])
            return True
        except WgCommandError:
            return False

    def set_peer(self, iface, public_key, preshared_key, allowed_ips):
        # the PSK goes through stdin so it never shows up in the process list
        self._run(
            [
                "wg",
                "set",
                iface,
                "peer",
                public_key,
                "preshared-key",
                "/dev/stdin",
                "allowed-ips",
                allowed_ips,
            ],
            input_data=preshared_key + "\n",
        )

    def remove_peer(self, iface, public_key):
        self._run(["wg", "set", iface, "peer", public_key, "remove"])

    # --- endpoint detection ---
    def detect_endpoint_host(self, iface):
        """Определяет публичный адрес шлюза на интерфейсе.

        Предпочитается глобальный IPv6 (в квадратных скобках), иначе
        первый глобальный IPv4 вне 10.0.0.0/8.

        Args:
            iface (str): Внешний интерфейс, например "eth0".

        Returns:
            str | None: Хост для строки Endpoint или None, если не найден.
        """
        try:
            out = self._run(["ip", "-6", "-o", "addr", "show", "scope", "global", "dev", iface])
            for addr in _parse_ip_addr(out, "inet6"):
                return f"[{addr}]"
        except WgCommandError as e:
            self.logger.debug(f"IPv6 lookup on {iface} failed: {e}")
        try:
            out = self._run(["ip", "-4", "-o", "addr", "show", "scope", "global", "dev", iface])
            for addr in _parse_ip_addr(out, "inet"):
                if ipaddress.ip_address(addr) not in _PRIVATE_V4:
                    return addr
        except WgCommandError as e:
            self.logger.debug(f"IPv4 lookup on {iface} failed: {e}")
        return None


def _parse_ip_addr(output, family):
    """Достаёт адреса из вывода ``ip -o addr show``."""
    addrs = []
    for line in output.splitlines():
        parts = line.split()
        if family not in parts:
            continue
        idx = parts.index(family)
        if idx + 1 < len(parts):
            addrs.append(parts[idx + 1].split("/")[0])
    return addrs
