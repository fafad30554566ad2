"""Unit tests for allocator.py module using pytest."""
import pytest

from allocator import next_address, used_suffixes
from errors import AddressSpaceExhausted


def peer_lines(*suffixes):
    return [f"AllowedIPs = 10.2.53.{s}/32, fc10:253::{s}/128" for s in suffixes]


class TestNextAddress:
    """Тесты для выделения адресов."""

    def test_empty_document(self):
        """Тест: без пиров первый адрес .2 (шлюз занимает .1)."""
        assert next_address([""]) == 2

    def test_interface_address_is_ignored(self):
        """Тест: строка Address секции [Interface] не учитывается."""
        lines = ["[Interface]", "Address = 10.2.53.1/24", "PrivateKey = X", ""]
        assert next_address(lines) == 2

    def test_max_plus_one(self):
        """Тест: выдаётся максимум плюс один, порядок строк не важен."""
        assert next_address(peer_lines(5, 17, 9)) == 18

    def test_freed_suffix_not_reused(self):
        """Тест: дырки в нумерации не заполняются."""
        assert next_address(peer_lines(2, 7)) == 8

    def test_exhausted(self):
        """Тест: при занятом .254 выделение невозможно."""
        with pytest.raises(AddressSpaceExhausted):
            next_address(peer_lines(3, 254))

    def test_253_gives_254(self):
        """Тест: последний хост подсети ещё выдаётся."""
        assert next_address(peer_lines(253)) == 254

    def test_other_prefix_ignored(self):
        """Тест: адреса из других сетей и хвосты длинных адресов не считаются."""
        lines = [
            "AllowedIPs = 110.2.53.99/32",
            "AllowedIPs = 10.2.54.50/32",
            "AllowedIPs = 10.2.53.4/32",
        ]
        assert used_suffixes(lines, "10.2.53") == [4]
        assert next_address(lines) == 5

    def test_multiple_addresses_on_one_line(self):
        """Тест: учитываются все адреса в строке AllowedIPs."""
        lines = ["AllowedIPs = 10.2.53.4/32, 10.2.53.9/32"]
        assert next_address(lines) == 10

    def test_custom_prefix(self):
        """Тест: префикс подсети настраивается."""
        lines = ["AllowedIPs = 192.168.7.20/32"]
        assert next_address(lines, ipv4_prefix="192.168.7") == 21
