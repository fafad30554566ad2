import argparse
import ipaddress
import logging
import os
import sys

import yaml

from errors import PeerSyncError, PersistenceError
from profiles import render_qr
from provisioner import PeerProvisioner

# --- Logging setup ---
infoLog = logging.getLogger("wg_peers")


def setup_logging(verbosity, log_file=None):
    """Настраивает систему логирования.

    Создаёт StreamHandler для вывода в stdout и, если задан ``log_file``,
    FileHandler для записи DEBUG и выше в файл.

    Args:
        verbosity (int): Уровень детализации логирования:
            0 - WARNING и выше
            1 - INFO и выше
            2+ - DEBUG и выше
        log_file (str, optional): Путь к файлу отладочного лога.
    """
    root = logging.getLogger()
    root.setLevel(
        logging.DEBUG
        if verbosity >= 2
        else (logging.INFO if verbosity == 1 else logging.WARNING)
    )
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    ch_info = logging.StreamHandler(sys.stdout)
    ch_info.setLevel(logging.DEBUG)
    ch_info.setFormatter(formatter)
    root.addHandler(ch_info)

    if log_file:
        add_log_file(log_file, formatter)

    infoLog.propagate = True


def add_log_file(log_file, formatter=None):
    """Добавляет FileHandler уровня DEBUG к корневому логгеру."""
    fh = logging.FileHandler(log_file)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(
        formatter
        or logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    logging.getLogger().addHandler(fh)


# --- Config loader ---
DEFAULT_CONFIG_PATH = "config.yaml"

DEFAULTS = {
    "WG_INTERFACE": "wg0",
    "WG_CONF": "/etc/wireguard/wg0.conf",
    "PEER_DB": "/root/wg-peers-meta.csv",
    "PROFILE_DIR": "/root",
    "IPV4_PREFIX": "10.2.53",
    "IPV6_PREFIX": "fc10:253::",
    "SERVER_ENDPOINT": None,
    "ENDPOINT_IFACE": "eth0",
    "LISTEN_PORT": 51820,
    "COMMAND_TIMEOUT": 10,
    "USE_SUDO": False,
    "LOCK_FILE": None,
    "LOG_FILE": None,
    "SHOW_QR": True,
}


def LoadConfig(path=None):
    """Загружает конфигурацию из YAML файла поверх значений по умолчанию.

    Args:
        path (str, optional): Путь к файлу конфигурации. Если не указан,
            читается ``config.yaml`` в текущей директории (если он есть).

    Returns:
        dict: Словарь со всеми ключами из ``DEFAULTS``.

    Raises:
        FileNotFoundError: Если явно указанный файл не найден.
        ValueError: Если значение ключа невалидно.
    """
    cfg = dict(DEFAULTS)
    if path is None:
        if not os.path.exists(DEFAULT_CONFIG_PATH):
            return cfg
        path = DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    for k in loaded:
        if k not in DEFAULTS:
            infoLog.warning(f"Unknown config key ignored: {k}")
    cfg.update({k: v for k, v in loaded.items() if k in DEFAULTS})

    try:
        ipaddress.ip_network(f"{cfg['IPV4_PREFIX']}.0/24")
    except ValueError:
        raise ValueError(f"IPV4_PREFIX must be three octets, got {cfg['IPV4_PREFIX']!r}")
    try:
        ipaddress.IPv6Address(f"{cfg['IPV6_PREFIX']}1")
    except ValueError:
        raise ValueError(f"IPV6_PREFIX must end with '::', got {cfg['IPV6_PREFIX']!r}")
    if not isinstance(cfg["LISTEN_PORT"], int) or not 0 < cfg["LISTEN_PORT"] < 65536:
        raise ValueError(f"LISTEN_PORT must be 1-65535, got {cfg['LISTEN_PORT']!r}")
    if not isinstance(cfg["COMMAND_TIMEOUT"], (int, float)) or cfg["COMMAND_TIMEOUT"] <= 0:
        raise ValueError(f"COMMAND_TIMEOUT must be positive, got {cfg['COMMAND_TIMEOUT']!r}")
    return cfg


# --- helpers ---
def mask_secret(s, keep=4):
    """Маскирует секретную строку, оставляя видимыми только начало и конец.

    Args:
        s (str): Секретная строка для маскировки.
        keep (int, optional): Количество символов для отображения в начале
            и конце. По умолчанию 4.

    Returns:
        str: Маскированная строка в формате "XXXX...XXXX" или "<REDACTED>"
            если строка слишком короткая, или "<empty>" если пустая.
    """
    if not s:
        return "<empty>"
    if len(s) <= keep * 2:
        return "<REDACTED>"
    return s[:keep] + "..." + s[-keep:]


def print_live_result(result):
    if result.ok:
        print(result.message)
        return
    print(f"WARNING: {result.message}")
    if result.remediation:
        print(f"  {result.remediation}")


def print_partial(e):
    print("PARTIAL SUCCESS - stores are out of sync:")
    print(f"  {e}")
    print(f"  Completed : {', '.join(e.completed)}")
    if e.remediation:
        print(f"  Fix       : {e.remediation}")


# --- Handlers ---
def cmd_add(args, prov, cfg):
    """Обработчик команды ``add``.

    Args:
        args (argparse.Namespace): Аргументы командной строки.
        prov (PeerProvisioner): Оркестратор.
        cfg (dict): Конфигурация.

    Returns:
        int: Код выхода.
    """
    res = prov.add_peer(args.peer_name)
    name = res["name"]

    for kind, title in (("dns", "DNS ONLY"), ("full", "FULL VPN")):
        print()
        print(f"=========== {title} ({name}) ===========")
        if cfg["SHOW_QR"]:
            print(render_qr(res["profiles"][kind]))
        print(res["profiles"][kind])

    if res["profile_paths"]:
        print("Saved:")
        for path in res["profile_paths"].values():
            print(f"  {path}")
        print()

    print("New peer:")
    print(f"  Name           : {name}")
    print(f"  PublicKey      : {res['public_key']}")
    print(f"  IP (IPv4/IPv6) : {res['ipv4']}/32 , {res['ipv6']}/128")
    print()
    print_live_result(res["live"])
    if not res["live"].ok:
        print("If connection is not active:")
        print(f"  systemctl restart wg-quick@{cfg['WG_INTERFACE']}")
    infoLog.debug(f"Peer {name} added with key {mask_secret(res['public_key'])}")
    return 0


def cmd_remove(args, prov, cfg):
    """Обработчик команды ``remove``."""
    res = prov.remove_peer(args.peer_name)
    print_live_result(res["live"])
    print()
    print("Peer removed")
    print(f"  Name      : {res['name']}")
    print(f"  PublicKey : {res['public_key']}")
    print(f"  IP        : {res['ipv4']}")
    if not res["config_updated"]:
        print(f"WARNING: {cfg['WG_CONF']} was not changed (no block or no file).")
    print()
    print(f"To restart the service: systemctl restart wg-quick@{cfg['WG_INTERFACE']}")
    return 0


# --- main ---
def build_parser():
    parser = argparse.ArgumentParser(prog="wg-peers")
    parser.add_argument("-c", "--config", default=None)
    parser.add_argument("-v", action="count", default=0)
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_add = sub.add_parser("add", help="provision a new peer")
    p_add.add_argument("peer_name", help="1-50 characters, only [a-zA-Z0-9_-]")
    p_add.set_defaults(func=cmd_add)

    p_rm = sub.add_parser("remove", help="decommission a peer")
    p_rm.add_argument("peer_name", help="1-50 characters, only [a-zA-Z0-9_-]")
    p_rm.set_defaults(func=cmd_remove)
    return parser


def run(args, cfg, prov):
    """Выполняет команду и переводит ошибки в код выхода.

    Returns:
        int: 0 при успехе, 1 при ошибке, 2 при частичном успехе.
    """
    try:
        return args.func(args, prov, cfg)
    except PersistenceError as e:
        if e.partial:
            infoLog.error(f"Partial success: {e}")
            print_partial(e)
            return 2
        infoLog.error(f"Error: {e}")
        return 1
    except PeerSyncError as e:
        infoLog.error(f"Error: {e}")
        stderr = getattr(e, "_full_stderr", None)
        if stderr:
            infoLog.debug(f"STDERR: {stderr}")
        return 1


def main(argv=None):
    """Точка входа CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(args.v)

    try:
        cfg = LoadConfig(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        infoLog.error(f"Config error: {e}")
        return 1

    if cfg["LOG_FILE"]:
        try:
            add_log_file(cfg["LOG_FILE"])
        except OSError as e:
            infoLog.error(f"Cannot open log file: {e}")
            return 1

    infoLog.info(
        f"Config loaded. WG={cfg['WG_INTERFACE']} CONF={cfg['WG_CONF']} DB={cfg['PEER_DB']}"
    )
    prov = PeerProvisioner(cfg)
    return run(args, cfg, prov)


if __name__ == "__main__":
    sys.exit(main())
