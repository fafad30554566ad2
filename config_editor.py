# config_editor.py
"""Редактирование блоков [Peer] в конфигурации шлюза WireGuard.

Каждый блок пира начинается строкой-маркером ``# peer_name=<имя>``
и заканчивается строкой ``AllowedIPs = ...`` плюс необязательной пустой
строкой-разделителем. Всё, что вне редактируемого блока, сохраняется
байт в байт, чтобы wg-quick продолжал читать файл как раньше.
"""
import enum
import re

MARKER_PREFIX = "# peer_name="
_ALLOWED_IPS_RE = re.compile(r"^AllowedIPs\s*=")
_KEY_VALUE_RE = re.compile(r"^\s*([A-Za-z]+)\s*=\s*(.*?)\s*$")


class ConfigDocument:
    """Конфигурация шлюза как последовательность строк.

    Текст разбивается по ``"\\n"``, поэтому ``from_text(t).to_text() == t``
    для любого ``t``: у файла с переводом строки в конце последний
    элемент списка пустой.
    """

    def __init__(self, lines=None):
        self.lines = list(lines or [""])

    @classmethod
    def from_text(cls, text):
        return cls(text.split("\n"))

    def to_text(self):
        return "\n".join(self.lines)

    def __eq__(self, other):
        return isinstance(other, ConfigDocument) and self.lines == other.lines

    def __repr__(self):
        return f"ConfigDocument({len(self.lines)} lines)"


def marker_line(name):
    return f"{MARKER_PREFIX}{name}"


def allowed_ips(suffix, ipv4_prefix, ipv6_prefix):
    return f"{ipv4_prefix}.{suffix}/32, {ipv6_prefix}{suffix}/128"


def _is_marker_for(line, name):
    return line.rstrip("\r") == marker_line(name)


def append_block(doc, name, public_key, preshared_key, suffix, ipv4_prefix, ipv6_prefix):
    """Добавляет блок пира в конец документа.

    В текстовом виде к файлу дописывается пустая строка, маркер,
    ``[Peer]``, ``PublicKey``, ``PresharedKey`` и ``AllowedIPs`` с адресами
    /32 и /128 для выделенного суффикса.

    Args:
        doc (ConfigDocument): Исходный документ (не изменяется).
        name (str): Имя пира.
        public_key (str): Публичный ключ пира.
        preshared_key (str): Общий ключ (PSK).
        suffix (int): Хост-суффикс адреса.
        ipv4_prefix (str): Например "10.2.53".
        ipv6_prefix (str): Например "fc10:253::".

    Returns:
        ConfigDocument: Новый документ.
    """
    lines = list(doc.lines)
    if lines[-1] != "":
        # no trailing newline: terminate the last line first
        lines.append("")
    # the empty element after the final newline becomes the blank separator
    lines.extend(
        [
            marker_line(name),
            "[Peer]",
            f"PublicKey = {public_key}",
            f"PresharedKey = {preshared_key}",
            f"AllowedIPs = {allowed_ips(suffix, ipv4_prefix, ipv6_prefix)}",
            "",
        ]
    )
    return ConfigDocument(lines)


class BlockState(enum.Enum):
    NORMAL = "normal"
    IN_BLOCK_BEFORE_ALLOWED = "in_block_before_allowed"
    JUST_PASSED_ALLOWED = "just_passed_allowed"


def remove_block(doc, name):
    """Удаляет блок пира из документа за один проход.

    Конечный автомат:

    - NORMAL: строки проходят без изменений; маркер нужного пира
      отбрасывается, переход в IN_BLOCK_BEFORE_ALLOWED.
    - IN_BLOCK_BEFORE_ALLOWED: строки отбрасываются до ``AllowedIPs``
      включительно, после неё переход в JUST_PASSED_ALLOWED.
    - JUST_PASSED_ALLOWED: смотрим ровно одну строку. Пустая отбрасывается
      как разделитель. Непустая принадлежит следующему блоку или секции и
      обрабатывается заново по правилам NORMAL.

    Args:
        doc (ConfigDocument): Исходный документ (не изменяется).
        name (str): Имя пира.

    Returns:
        ConfigDocument: Новый документ. Если маркера нет, он равен исходному.
    """
    state = BlockState.NORMAL
    out = []
    for line in doc.lines:
        if state is BlockState.JUST_PASSED_ALLOWED:
            state = BlockState.NORMAL
            if not line.strip():
                continue
            # fall through: re-process this line as NORMAL

        if state is BlockState.IN_BLOCK_BEFORE_ALLOWED:
            if _ALLOWED_IPS_RE.match(line):
                state = BlockState.JUST_PASSED_ALLOWED
            continue

        if _is_marker_for(line, name):
            state = BlockState.IN_BLOCK_BEFORE_ALLOWED
            continue
        out.append(line)

    return ConfigDocument(out)


def peer_names(doc):
    """Возвращает имена пиров из строк-маркеров в порядке следования."""
    names = []
    for line in doc.lines:
        line = line.rstrip("\r")
        if line.startswith(MARKER_PREFIX):
            names.append(line[len(MARKER_PREFIX):])
    return names


def has_peer(doc, name):
    return any(_is_marker_for(line, name) for line in doc.lines)


def find_private_key(doc):
    """Возвращает PrivateKey из секции [Interface] или None."""
    section = None
    for line in doc.lines:
        stripped = line.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            section = stripped[1:-1].strip()
            continue
        if section != "Interface":
            continue
        m = _KEY_VALUE_RE.match(stripped)
        if m and m.group(1) == "PrivateKey" and m.group(2):
            return m.group(2)
    return None
