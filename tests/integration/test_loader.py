"""
End-to-end tests for ResourceLoader

Local files, remote files, local and remote modules, base paths,
structural loads and the revalidation cache, through the public load().
HTTP is mocked by patching requests.get.
"""

import os
import types
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

from tests.fixtures import ASSETS_DIR, asset, make_response, read_asset


DOMAIN = 'http://test.com'
LAST_MODIFIED = 'Mon, 01 Jan 2024 00:00:00 GMT'
LAST_MODIFIED_2 = 'Tue, 02 Jan 2024 00:00:00 GMT'


@pytest.fixture
def loader(tmp_path):
    import resource_loader
    from resource_loader.config import LoaderConfig

    return resource_loader.create(config=LoaderConfig(config_file=str(tmp_path / 'none.tsv')))


class TestLocalFile:
    """Every way of naming the same local file gives the same text"""

    def test_absolute_path(self, loader):
        assert loader.load(asset('file.txt')) == 'Text'

    def test_relative_path(self, loader):
        assert loader.load('./assets/file.txt', base_path=os.path.dirname(ASSETS_DIR)) == 'Text'

    def test_parent_relative_path(self, loader):
        assert loader.load('../file.txt', base_path=asset('mock') + os.sep) == 'Text'

    def test_path_object(self, loader):
        assert loader.load(Path(asset('file.txt'))) == 'Text'

    def test_missing_file(self, loader):
        import resource_loader

        with pytest.raises(resource_loader.NotFoundError):
            loader.load('./nope.txt', base_path=ASSETS_DIR)

    def test_binary_file_returned_as_bytes(self, loader, tmp_path):
        (tmp_path / 'image.bin').write_bytes(b'\x89PNG\xff\xfe')

        assert loader.load('./image.bin', base_path=str(tmp_path)) == b'\x89PNG\xff\xfe'


class TestRemoteFile:
    """Remote text through each kind of reference"""

    def _load(self, loader, reference, **kwargs):
        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(200, read_asset('file.txt'))
            result = loader.load(reference, **kwargs)

        mock_get.assert_called_once()
        assert mock_get.call_args[0][0] == DOMAIN + '/file.txt'
        return result

    def test_fully_qualified_url(self, loader):
        assert self._load(loader, DOMAIN + '/file.txt') == 'Text'

    def test_relative_url(self, loader):
        assert self._load(loader, './file.txt', base_path=DOMAIN) == 'Text'

    def test_parent_relative_url(self, loader):
        assert self._load(loader, '../file.txt', base_path=DOMAIN + '/child/') == 'Text'

    def test_charset_from_content_type(self, loader):
        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(
                200, 'café'.encode('latin-1'), {'Content-Type': 'text/plain; charset=iso-8859-1'})
            assert loader.load(DOMAIN + '/menu.txt') == 'café'

    def test_forbidden_fails(self, loader):
        import resource_loader

        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(403)

            with pytest.raises(resource_loader.HTTPStatusError) as exc_info:
                loader.load('./file.txt', base_path=DOMAIN)

        assert exc_info.value.status_code == 403

    def test_timeout_passed_and_propagated(self, tmp_path):
        import resource_loader
        from resource_loader.config import LoaderConfig

        loader = resource_loader.create(config=LoaderConfig(config_file=str(tmp_path / 'none.tsv'), timeout=0.5))

        with patch('requests.get') as mock_get:
            mock_get.side_effect = requests.Timeout('Connection timeout')

            with pytest.raises(requests.Timeout):
                loader.load(DOMAIN + '/file.txt')

        assert mock_get.call_args[1]['timeout'] == 0.5


class TestLocalModule:
    """Python files on disk come back executed"""

    def test_load_module(self, loader):
        module = loader.load(asset('index.py'))

        assert isinstance(module, types.ModuleType)
        assert module.describe() == {'name': 'index', 'dirname': ASSETS_DIR}

    def test_dirname_defaults_to_file_directory(self, loader):
        assert loader.load(asset('index.py')).__dirname__ == ASSETS_DIR

    def test_dirname_override(self, loader):
        here = os.path.dirname(os.path.abspath(__file__))

        module = loader.load(asset('index.py'), dirname=here)

        assert module.__dirname__ == here
        assert module.describe()['dirname'] == here

    def test_require_native(self, loader):
        assert loader.load(asset('index.py')).require('os') is os

    def test_require_installed(self, loader):
        installed = loader.load(asset('index.py')).require('installed')

        assert installed.name == 'installed'

    def test_require_relative(self, loader):
        relative = loader.load(asset('index.py')).require('./relative')

        assert relative.name == 'relative'

    def test_syntax_error(self, loader):
        import resource_loader

        with pytest.raises(resource_loader.ExecutionError) as exc_info:
            loader.load(asset('broken.py'))

        assert exc_info.value.reference == asset('broken.py')

    def test_runtime_error(self, loader):
        import resource_loader

        with pytest.raises(resource_loader.ExecutionError):
            loader.load(asset('raises.py'))

    def test_every_load_executes_fresh(self, loader):
        first = loader.load(asset('index.py'))
        second = loader.load(asset('index.py'))

        assert first is not second

    def test_coding_declaration_honoured(self, loader, tmp_path):
        """A PEP 263 coding line decides how the source is read"""
        (tmp_path / 'latin.py').write_bytes(b"# -*- coding: latin-1 -*-\nname = '\xe9'\n")

        module = loader.load(str(tmp_path / 'latin.py'))

        assert module.name == '\xe9'

    def test_undecodable_source_is_execution_error(self, loader, tmp_path):
        import resource_loader

        (tmp_path / 'bad.py').write_bytes(b"name = '\xe9'\n")

        with pytest.raises(resource_loader.ExecutionError) as exc_info:
            loader.load(str(tmp_path / 'bad.py'))

        assert exc_info.value.reference == str(tmp_path / 'bad.py')


class TestRemoteModule:
    """Python files over HTTP come back executed"""

    def _load(self, loader, **kwargs):
        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(200, read_asset('index.py'))
            module = loader.load(DOMAIN + '/index.py', **kwargs)

        mock_get.assert_called_once()
        return module

    def test_load_module(self, loader):
        module = self._load(loader)

        assert isinstance(module, types.ModuleType)
        assert module.__file__ == DOMAIN + '/index.py'

    def test_dirname_defaults_to_working_directory(self, loader, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert self._load(loader).__dirname__ == os.getcwd()

    def test_dirname_override(self, loader):
        module = self._load(loader, dirname=ASSETS_DIR)

        assert module.__dirname__ == ASSETS_DIR

    def test_require_native(self, loader):
        assert self._load(loader).require('os.path') is os.path

    def test_require_installed(self, loader):
        assert self._load(loader).require('requests') is requests

    def test_require_installed_next_to_dirname(self, loader):
        installed = self._load(loader, dirname=ASSETS_DIR).require('installed')

        assert installed.name == 'installed'

    def test_require_relative_from_working_directory(self, loader, monkeypatch):
        """Without an override, relative names resolve against the cwd, from disk"""
        monkeypatch.chdir(ASSETS_DIR)
        module = self._load(loader)

        with patch('requests.get') as mock_get:
            relative = module.require('./relative')

        mock_get.assert_not_called()
        assert relative.name == 'relative'

    def test_cached_body_still_executes_fresh(self, loader):
        """304 reuses the bytes, not the module"""
        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(200, read_asset('index.py'), {'ETag': '"1"'})
            first = loader.load(DOMAIN + '/index.py')

            mock_get.return_value = make_response(304)
            second = loader.load(DOMAIN + '/index.py')

        assert first is not second
        assert second.name == 'index'

    def test_declared_charset_used_for_source(self, loader):
        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(
                200, b"name = '\xe9'\n", {'Content-Type': 'text/x-python; charset=iso-8859-1'})
            module = loader.load(DOMAIN + '/latin.py')

        assert module.name == '\xe9'

    def test_source_not_in_declared_charset_is_execution_error(self, tmp_path):
        import resource_loader
        from resource_loader.config import LoaderConfig

        loader = resource_loader.create(
            config=LoaderConfig(config_file=str(tmp_path / 'none.tsv'), log_dir=str(tmp_path / 'journal')))

        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(
                200, b"name = '\xe9'\n", {'Content-Type': 'text/x-python; charset=utf-8'})

            with pytest.raises(resource_loader.ExecutionError) as exc_info:
                loader.load(DOMAIN + '/bad.py')

        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)
        errors = loader.load_log.get_logs(level='ERROR')
        assert errors[0]['error'] == 'ExecutionError'
        assert errors[0]['reference'] == DOMAIN + '/bad.py'


class TestBasePath:
    """options.base_path"""

    def test_defaults_to_working_directory(self, loader, monkeypatch):
        monkeypatch.chdir(os.path.dirname(ASSETS_DIR))

        assert loader.load('./' + os.path.join('assets', 'file.txt')) == 'Text'

    def test_override(self, loader):
        assert loader.load('./file.txt', base_path=ASSETS_DIR) == 'Text'

    def test_options_object(self, loader):
        from resource_loader import LoadOptions

        assert loader.load('./file.txt', options=LoadOptions(base_path=ASSETS_DIR)) == 'Text'

    def test_options_dict_with_original_key_names(self, loader):
        module = loader.load('./index.py', options={'basePath': ASSETS_DIR, 'dirname': '/tmp'})

        assert module.__dirname__ == os.path.abspath('/tmp')

    def test_keyword_beats_options(self, loader, tmp_path):
        from resource_loader import LoadOptions

        result = loader.load('./file.txt', base_path=ASSETS_DIR, options=LoadOptions(base_path=str(tmp_path)))

        assert result == 'Text'

    def test_unknown_option_rejected(self, loader):
        with pytest.raises(TypeError):
            loader.load('./file.txt', options={'basepath': ASSETS_DIR})


class TestStructuralLoad:
    """Loading every path inside a dict or list"""

    def test_properties_with_path_values(self, loader):
        obj = {'one': 1}
        fn = lambda: None  # noqa: E731
        paths = {
            'file': asset('file.txt'),
            'module': asset('index.py'),
            'property': 0,
            'object': obj,
            'fn': fn,
        }

        files = loader.load(paths)

        assert files['file'] == 'Text'
        assert isinstance(files['module'], types.ModuleType)
        assert files['property'] == 0
        assert files['object'] is obj
        assert files['fn'] is fn

    def test_same_options_for_every_entry(self, loader):
        files = loader.load(['./file.txt', './file2.txt'], base_path=ASSETS_DIR)

        assert files == ['Text', 'Text2']

    def test_mixed_local_and_remote(self, loader):
        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(200, b'Remote')
            files = loader.load({'local': asset('file.txt'), 'remote': DOMAIN + '/file.txt'})

        assert files == {'local': 'Text', 'remote': 'Remote'}

    def test_one_failure_fails_all(self, loader):
        import resource_loader

        with pytest.raises(resource_loader.NotFoundError):
            loader.load({'file': asset('file.txt'), 'missing': asset('missing.txt')})

    def test_unsupported_target(self, loader):
        with pytest.raises(TypeError):
            loader.load(42)


class TestRemoteFileCaching:
    """Conditional GETs against the revalidation cache"""

    def test_cache_then_revalidate_then_replace(self, loader):
        """
        200 caches, 304 replays, a new 200 replaces, and the next 304
        replays the new body against the new validators.
        """
        with patch('requests.get') as mock_get:
            # First load: unconditional, cached with ETag 1
            mock_get.return_value = make_response(200, read_asset('file.txt'), {
                'ETag': '1',
                'Last-Modified': LAST_MODIFIED,
            })
            file = loader.load('./file.txt', base_path=DOMAIN)
            assert file == 'Text'
            assert 'If-None-Match' not in mock_get.call_args[1]['headers']

            # Second load: conditional, 304 with no body
            mock_get.return_value = make_response(304)
            cached_file = loader.load('./file.txt', base_path=DOMAIN)
            headers = mock_get.call_args[1]['headers']
            assert headers['If-None-Match'] == '1'
            assert headers['If-Modified-Since'] == LAST_MODIFIED
            assert cached_file == file

            # Third load: server has a new version
            mock_get.return_value = make_response(200, read_asset('file2.txt'), {
                'ETag': '2',
                'Last-Modified': LAST_MODIFIED_2,
            })
            file2 = loader.load('./file.txt', base_path=DOMAIN)
            headers = mock_get.call_args[1]['headers']
            assert headers['If-None-Match'] == '1'
            assert headers['If-Modified-Since'] == LAST_MODIFIED
            assert file2 == 'Text2'

            # Fourth load: 304 against the new validators returns the new body
            mock_get.return_value = make_response(304)
            cached_file2 = loader.load('./file.txt', base_path=DOMAIN)
            headers = mock_get.call_args[1]['headers']
            assert headers['If-None-Match'] == '2'
            assert headers['If-Modified-Since'] == LAST_MODIFIED_2
            assert cached_file2 == 'Text2'

        assert mock_get.call_count == 4
        assert loader.get_cache_stats() == {'hits': 2, 'misses': 2, 'size': 1}

    def test_304_without_cache_fails(self, loader):
        import resource_loader

        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(304)

            with pytest.raises(resource_loader.CacheError):
                loader.load(DOMAIN + '/file.txt')

    def test_loaders_do_not_share_caches(self, loader, tmp_path):
        import resource_loader
        from resource_loader.config import LoaderConfig

        other = resource_loader.create(config=LoaderConfig(config_file=str(tmp_path / 'none.tsv')))

        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(200, b'Text', {'ETag': '1'})
            loader.load(DOMAIN + '/file.txt')
            other.load(DOMAIN + '/file.txt')

        assert 'If-None-Match' not in mock_get.call_args[1]['headers']

    def test_clear_cache(self, loader):
        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(200, b'Text', {'ETag': '1'})
            loader.load(DOMAIN + '/file.txt')
            loader.clear_cache()
            loader.load(DOMAIN + '/file.txt')

        assert 'If-None-Match' not in mock_get.call_args[1]['headers']

    def test_local_files_never_cached(self, loader):
        loader.load(asset('file.txt'))

        assert loader.get_cache_stats()['size'] == 0


class TestLoadJournal:
    """Load events written to the TSV journal"""

    def test_journal_from_config(self, tmp_path):
        import resource_loader
        from resource_loader.config import LoaderConfig

        loader = resource_loader.create(
            config=LoaderConfig(config_file=str(tmp_path / 'none.tsv'), log_dir=str(tmp_path / 'journal')))

        loader.load(asset('file.txt'))
        with patch('requests.get') as mock_get:
            mock_get.return_value = make_response(403)
            with pytest.raises(resource_loader.HTTPStatusError):
                loader.load(DOMAIN + '/file.txt')

        entries = loader.load_log.get_logs()
        assert entries[0]['reference'] == asset('file.txt')
        assert entries[0]['source'] == 'local'
        assert entries[0]['kind'] == 'data'
        assert entries[0]['level'] == 'INFO'
        assert entries[1]['level'] == 'ERROR'
        assert entries[1]['status_code'] == '403'

    def test_no_journal_by_default(self, loader):
        assert loader.load_log is None


class TestDefaultLoader:
    """Module-level load() with the process-wide loader"""

    def test_module_level_load(self):
        import resource_loader

        resource_loader.reset_loader()
        try:
            assert resource_loader.load('./file.txt', base_path=ASSETS_DIR) == 'Text'
            assert resource_loader.get_loader() is resource_loader.get_loader()
        finally:
            resource_loader.reset_loader()

    def test_default_cache_is_shared_between_calls(self):
        import resource_loader

        resource_loader.reset_loader()
        try:
            with patch('requests.get') as mock_get:
                mock_get.return_value = make_response(200, b'Text', {'ETag': '1'})
                resource_loader.load(DOMAIN + '/file.txt')

                mock_get.return_value = make_response(304)
                assert resource_loader.load(DOMAIN + '/file.txt') == 'Text'

            assert mock_get.call_args[1]['headers']['If-None-Match'] == '1'
        finally:
            resource_loader.reset_loader()
