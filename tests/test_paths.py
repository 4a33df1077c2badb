# tests/test_paths.py
import re
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import Mock

import pytest

from dbxl.errors import ConfigurationError
from dbxl.paths import SECURE_FILE_PRIV_SQL, TemporaryPathResolver, collision_probability


@pytest.fixture
def executor(tmp_path):
    """Executor whose secure_file_priv is a real directory."""
    mock = Mock()
    mock.query_scalar.return_value = str(tmp_path)
    return mock


class TestWritableDirectory:

    def test_uses_secure_file_priv(self, executor, tmp_path):
        resolver = TemporaryPathResolver(executor)
        assert resolver.writable_directory() == tmp_path
        executor.query_scalar.assert_called_once_with(SECURE_FILE_PRIV_SQL)

    @pytest.mark.parametrize('reported', [None, ''])
    def test_unset_falls_back_to_temp_dir(self, reported, tmp_path, monkeypatch):
        monkeypatch.setattr(tempfile, 'tempdir', str(tmp_path))
        executor = Mock()
        executor.query_scalar.return_value = reported
        assert TemporaryPathResolver(executor).writable_directory() == tmp_path

    def test_bytes_value_decoded(self, tmp_path):
        executor = Mock()
        executor.query_scalar.return_value = str(tmp_path).encode('utf-8')
        assert TemporaryPathResolver(executor).writable_directory() == tmp_path

    def test_export_dir_setting_wins_over_server(self, executor, tmp_path, isolated_settings):
        override = tmp_path / 'exports'
        override.mkdir()
        isolated_settings['export_dir'] = str(override)
        assert TemporaryPathResolver(executor).writable_directory() == override
        executor.query_scalar.assert_not_called()

    def test_explicit_directory_wins(self, executor, tmp_path, isolated_settings):
        isolated_settings['export_dir'] = '/does/not/matter'
        assert TemporaryPathResolver(executor, directory=tmp_path).writable_directory() == tmp_path

    def test_no_executor_uses_temp_dir(self, tmp_path, monkeypatch):
        monkeypatch.setattr(tempfile, 'tempdir', str(tmp_path))
        assert TemporaryPathResolver().writable_directory() == tmp_path

    def test_missing_directory_is_configuration_error(self, tmp_path):
        executor = Mock()
        executor.query_scalar.return_value = str(tmp_path / 'missing')
        with pytest.raises(ConfigurationError, match='secure_file_priv'):
            TemporaryPathResolver(executor).resolve()

    def test_executor_failure_is_configuration_error(self):
        executor = Mock()
        executor.query_scalar.side_effect = RuntimeError('Lost connection to MySQL server')
        with pytest.raises(ConfigurationError, match='Lost connection') as exc_info:
            TemporaryPathResolver(executor).resolve()
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestResolve:

    def test_filename_pattern(self, executor, tmp_path):
        path = TemporaryPathResolver(executor).resolve()
        assert Path(path).parent == tmp_path
        assert re.fullmatch(r'tmp_[0-9a-f]{10}\.csv', Path(path).name)

    def test_forward_slashes(self, executor):
        assert '\\' not in TemporaryPathResolver(executor).resolve()

    def test_does_not_create_file(self, executor):
        assert not Path(TemporaryPathResolver(executor).resolve()).exists()

    def test_custom_prefix_suffix_and_token(self, executor):
        resolver = TemporaryPathResolver(executor, prefix='appa_', suffix='.tsv', token_bytes=8)
        assert re.fullmatch(r'appa_[0-9a-f]{16}\.tsv', Path(resolver.resolve()).name)

    def test_short_token_rejected(self, executor):
        with pytest.raises(ValueError, match='10 hex'):
            TemporaryPathResolver(executor, token_bytes=4)

    def test_large_sample_unique(self, executor):
        resolver = TemporaryPathResolver(executor)
        paths = [resolver.resolve() for _ in range(20000)]
        assert len(set(paths)) == len(paths)

    def test_concurrent_calls_unique(self, executor):
        resolver = TemporaryPathResolver(executor)
        with ThreadPoolExecutor(max_workers=8) as pool:
            paths = list(pool.map(lambda _: resolver.resolve(), range(2000)))
        assert len(set(paths)) == 2000


class TestCollisionProbability:

    def test_trivial(self):
        assert collision_probability(0) == 0.0
        assert collision_probability(1) == 0.0

    def test_documented_bound(self):
        assert collision_probability(10_000) == pytest.approx(4.547e-5, rel=1e-3)

    def test_more_entropy_lowers_odds(self):
        assert collision_probability(10_000, token_bytes=8) < collision_probability(10_000)
