"""Unit tests for storage.py module using pytest."""
import fcntl
import os
from unittest.mock import patch

import pytest

from errors import PersistenceError
from storage import FileStore, exclusive_lock


class TestFileStore:
    """Тесты для класса FileStore."""

    def test_atomic_write(self, temp_dir):
        """Тест: атомарная запись файла с правами 0600."""
        path = os.path.join(temp_dir, "wg0.conf")
        store = FileStore(path)
        store.write("test content\n")

        assert store.exists()
        assert store.read() == "test content\n"
        assert os.stat(path).st_mode & 0o777 == 0o600

    def test_write_replaces_and_restricts_permissions(self, temp_dir):
        """Тест: существующий файл с широкими правами заменяется на 0600."""
        path = os.path.join(temp_dir, "wg0.conf")
        with open(path, "w", encoding="utf-8") as f:
            f.write("old")
        os.chmod(path, 0o644)

        FileStore(path).write("new")

        with open(path, "r", encoding="utf-8") as f:
            assert f.read() == "new"
        assert os.stat(path).st_mode & 0o777 == 0o600

    def test_crlf_preserved(self, temp_dir):
        """Тест: окончания строк CRLF не переводятся."""
        path = os.path.join(temp_dir, "wg0.conf")
        store = FileStore(path)
        store.write("a\r\nb\r\n")
        assert store.read() == "a\r\nb\r\n"

    def test_no_temp_files_left(self, temp_dir):
        """Тест: после записи в директории нет временных файлов."""
        path = os.path.join(temp_dir, "peers.csv")
        FileStore(path).write("x")
        assert os.listdir(temp_dir) == ["peers.csv"]

    def test_refuses_symlink(self, temp_dir):
        """Тест: атомарная запись отказывается перезаписывать симлинк."""
        path = os.path.join(temp_dir, "wg0.conf")
        os.symlink("/dev/null", path)

        with pytest.raises(PersistenceError, match="symlink"):
            FileStore(path).write("data")

    def test_replace_failure_cleans_up(self, temp_dir):
        """Тест: при ошибке замены временный файл удаляется, исходный цел."""
        path = os.path.join(temp_dir, "wg0.conf")
        store = FileStore(path)
        store.write("original")

        with patch("storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError, match="disk full"):
                store.write("new")

        assert store.read() == "original"
        assert os.listdir(temp_dir) == ["wg0.conf"]

    def test_missing_directory(self, temp_dir):
        """Тест: запись в несуществующую директорию даёт PersistenceError."""
        path = os.path.join(temp_dir, "missing", "wg0.conf")
        with pytest.raises(PersistenceError):
            FileStore(path).write("data")

    def test_invalid_utf8(self, temp_dir):
        """Тест: файл с невалидным UTF-8 даёт PersistenceError, а не UnicodeDecodeError."""
        path = os.path.join(temp_dir, "wg0.conf")
        with open(path, "wb") as f:
            f.write(b"[Interface]\nPrivateKey = X\n# caf\xe9\n")
        with pytest.raises(PersistenceError, match="Failed to read"):
            FileStore(path).read()


class TestExclusiveLock:
    """Тесты для рекомендательной блокировки."""

    def test_lock_is_exclusive(self, temp_dir):
        """Тест: пока блокировка держится, второй захват невозможен."""
        path = os.path.join(temp_dir, "wg-peers.lock")
        with exclusive_lock(path):
            fd = os.open(path, os.O_RDWR)
            try:
                with pytest.raises(BlockingIOError):
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            finally:
                os.close(fd)

    def test_lock_released(self, temp_dir):
        """Тест: после выхода из контекста блокировка снята."""
        path = os.path.join(temp_dir, "wg-peers.lock")
        with exclusive_lock(path):
            pass
        fd = os.open(path, os.O_RDWR)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def test_lock_unavailable(self, temp_dir):
        """Тест: невозможность открыть файл блокировки даёт PersistenceError."""
        path = os.path.join(temp_dir, "missing", "wg-peers.lock")
        with pytest.raises(PersistenceError, match="lock file"):
            with exclusive_lock(path):
                pass

