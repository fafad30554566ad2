# allocator.py
import re

from errors import AddressSpaceExhausted

GATEWAY_SUFFIX = 1
LAST_HOST_SUFFIX = 254


def _suffix_pattern(ipv4_prefix):
    # the prefix must not be the tail of a longer address (e.g. 110.2.53.x)
    return re.compile(r"(?<![\d.])" + re.escape(ipv4_prefix) + r"\.(\d{1,3})(?!\d)")


def used_suffixes(lines, ipv4_prefix):
    """Возвращает все хост-суффиксы из строк ``AllowedIPs`` документа."""
    pattern = _suffix_pattern(ipv4_prefix)
    found = []
    for line in lines:
        if not line.lstrip().startswith("AllowedIPs"):
            continue
        found.extend(int(m.group(1)) for m in pattern.finditer(line))
    return found


def next_address(lines, ipv4_prefix="10.2.53"):
    """Выделяет следующий хост-суффикс для нового пира.

    Аллокатор монотонный: берётся максимум из уже выданных суффиксов плюс
    один, освобождённые адреса повторно не выдаются. Если пиров нет,
    считается, что шлюз занимает .1, и первый пир получает .2.

    Args:
        lines (list[str]): Строки конфигурации шлюза.
        ipv4_prefix (str): Первые три октета подсети, например "10.2.53".

    Returns:
        int: Суффикс в диапазоне 2..254.

    Raises:
        AddressSpaceExhausted: Если максимальный суффикс уже 254 или больше.
    """
    suffixes = used_suffixes(lines, ipv4_prefix)
    last = max(suffixes) if suffixes else GATEWAY_SUFFIX
    if last >= LAST_HOST_SUFFIX:
        raise AddressSpaceExhausted(
            f"No free addresses left in {ipv4_prefix}.0/24 (highest in use: .{last})"
        )
    return last + 1
