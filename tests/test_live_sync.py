"""Unit tests for live_sync.py module using pytest."""
from unittest.mock import MagicMock

import pytest

from errors import WgCommandError
from live_sync import LiveInterface, SyncStatus
from wg_tools import WgTool


@pytest.fixture
def live(mock_wg):
    return LiveInterface(mock_wg, "wg0", "10.2.53", "fc10:253::", logger=MagicMock())


class TestApply:
    """Тесты для добавления пира в работающий интерфейс."""

    def test_inactive_interface_skipped(self, live, mock_wg):
        """Тест: неактивный интерфейс даёт SKIPPED с командой для ручного запуска."""
        result = live.apply("PUB=", "PSK=", 2)
        assert result.status is SyncStatus.SKIPPED
        assert result.ok is False
        assert "wg set wg0 peer PUB=" in result.remediation
        assert '"10.2.53.2/32, fc10:253::2/128"' in result.remediation
        mock_wg.set_peer.assert_not_called()

    def test_applied(self, live, mock_wg):
        """Тест: на активном интерфейсе пир добавляется."""
        mock_wg.is_active.return_value = True
        result = live.apply("PUB=", "PSK=", 2)
        assert result.status is SyncStatus.APPLIED
        assert result.ok is True
        mock_wg.set_peer.assert_called_once_with(
            "wg0", "PUB=", "PSK=", "10.2.53.2/32, fc10:253::2/128"
        )

    def test_command_failure_warned(self, live, mock_wg):
        """Тест: ошибка wg set даёт WARNED, исключение не пробрасывается."""
        mock_wg.is_active.return_value = True
        mock_wg.set_peer.side_effect = WgCommandError("exit=1")
        result = live.apply("PUB=", "PSK=", 2)
        assert result.status is SyncStatus.WARNED
        assert "PSK=" not in result.remediation


class TestRetract:
    """Тесты для удаления пира из работающего интерфейса."""

    def test_inactive_interface_skipped(self, live, mock_wg):
        result = live.retract("PUB=")
        assert result.status is SyncStatus.SKIPPED
        assert result.remediation == "wg set wg0 peer PUB= remove"
        mock_wg.remove_peer.assert_not_called()

    def test_applied(self, live, mock_wg):
        mock_wg.is_active.return_value = True
        assert live.retract("PUB=").status is SyncStatus.APPLIED
        mock_wg.remove_peer.assert_called_once_with("wg0", "PUB=")

    def test_command_failure_warned(self, live, mock_wg):
        mock_wg.is_active.return_value = True
        mock_wg.remove_peer.side_effect = WgCommandError("exit=1")
        assert live.retract("PUB=").status is SyncStatus.WARNED

    def test_timeout_is_warned(self):
        """Тест: таймаут реальной обёртки тоже превращается в WARNED."""
        wg = MagicMock(spec=WgTool)
        wg.is_active.return_value = True
        wg.remove_peer.side_effect = WgCommandError("Command timed out after 10s")
        live = LiveInterface(wg, "wg0", "10.2.53", "fc10:253::")
        assert live.retract("PUB=").status is SyncStatus.WARNED
