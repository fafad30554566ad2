# profiles.py
import io
import logging
import os

import qrcode

from storage import FileStore

PROFILE_KINDS = ("dns", "full")


def render_profiles(
    suffix,
    client_private_key,
    server_public_key,
    preshared_key,
    endpoint,
    ipv4_prefix,
    ipv6_prefix,
):
    """Формирует клиентские конфиги для нового пира.

    Возвращает два варианта: "dns" (через туннель идёт только DNS шлюза)
    и "full" (весь трафик через VPN).

    Args:
        suffix (int): Хост-суффикс адреса клиента.
        client_private_key (str): Приватный ключ клиента.
        server_public_key (str): Публичный ключ шлюза.
        preshared_key (str): Общий ключ (PSK).
        endpoint (str): Строка Endpoint, например "[2001:db8::1]:51820".
        ipv4_prefix (str): Например "10.2.53".
        ipv6_prefix (str): Например "fc10:253::".

    Returns:
        dict: {"dns": str, "full": str}
    """
    common = [
        "[Interface]",
        f"Address = {ipv4_prefix}.{suffix}/32, {ipv6_prefix}{suffix}/128",
        f"DNS = {ipv4_prefix}.1, {ipv6_prefix}1",
        f"PrivateKey = {client_private_key}",
        "",
        "[Peer]",
        f"Endpoint = {endpoint}",
        "PersistentKeepalive = 25",
        f"PublicKey = {server_public_key}",
        f"PresharedKey = {preshared_key}",
    ]
    dns_only = common + [f"AllowedIPs = {ipv4_prefix}.1/32, {ipv6_prefix}1/128"]
    full_vpn = common + ["AllowedIPs = 0.0.0.0/0, ::/0"]
    return {
        "dns": "\n".join(dns_only) + "\n",
        "full": "\n".join(full_vpn) + "\n",
    }


def profile_path(profile_dir, name, kind):
    return os.path.join(profile_dir, f"{name}-{kind}.conf")


def write_profiles(profile_dir, name, profiles, logger=None):
    """Атомарно записывает клиентские конфиги с правами 0600.

    Returns:
        dict: {вид: путь к файлу}

    Raises:
        PersistenceError: Если запись не удалась.
    """
    logger = logger or logging.getLogger("wg_peers.profiles")
    os.makedirs(profile_dir, mode=0o700, exist_ok=True)
    paths = {}
    for kind in PROFILE_KINDS:
        path = profile_path(profile_dir, name, kind)
        FileStore(path, mode=0o600, logger=logger).write(profiles[kind])
        paths[kind] = path
    logger.debug(f"Client profiles written for {name}")
    return paths


def render_qr(text):
    """Возвращает QR-код с текстом конфига для вывода в терминал."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_Q)
    qr.add_data(text)
    qr.make(fit=True)
    buf = io.StringIO()
    qr.print_ascii(out=buf, invert=True)
    return buf.getvalue()
