"""
Tests for configuration loading, logging setup and error types.
"""

import logging

import pytest

from utils.config_loader import DEFAULT_CONFIG, get_config_value, load_config, merge_config
from utils.errors import CatalogError, GeometryError
from utils.logging_setup import setup_logging


class TestConfigLoader:
    """Tests for YAML configuration loading."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "absent.yaml"))
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("calculation:\n  max_workers: 8\n", encoding='utf-8')
        config = load_config(str(path))
        assert config['calculation']['max_workers'] == 8
        assert config['calculation']['permeability']['new_building'] == 16.0

    def test_invalid_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("calculation: [\n", encoding='utf-8')
        assert load_config(str(path)) == DEFAULT_CONFIG

    def test_project_config(self, config):
        assert get_config_value(config, 'envelope.exclusion_token') == '_EXCLUDED'
        assert len(get_config_value(config, 'calculation.transmittance.edge_correction')) == 6
        assert get_config_value(config, 'calculation.obstruction.tolerance') == pytest.approx(1e-9)

    def test_merge_does_not_modify_inputs(self):
        base = {'a': {'b': 1, 'c': 2}}
        merged = merge_config(base, {'a': {'b': 3}})
        assert merged == {'a': {'b': 3, 'c': 2}}
        assert base == {'a': {'b': 1, 'c': 2}}

    def test_get_config_value_default(self):
        assert get_config_value({'a': {'b': 1}}, 'a.b') == 1
        assert get_config_value({'a': {'b': 1}}, 'a.x', 'fallback') == 'fallback'
        assert get_config_value({'a': 1}, 'a.b', None) is None


class TestLoggingSetup:
    def test_handlers_are_not_duplicated(self, tmp_path):
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        try:
            setup_logging({'logging': {'level': 'DEBUG'}})
            setup_logging({'logging': {'level': 'WARNING'}}, log_file=str(tmp_path / "run.log"))
            ours = [h for h in root.handlers if getattr(h, '_envelope_handler', False)]
            assert len(ours) == 2
            assert root.level == logging.WARNING
        finally:
            for handler in list(root.handlers):
                if handler not in before:
                    root.removeHandler(handler)
                    handler.close()
            root.setLevel(level)


class TestErrors:
    def test_geometry_error_message(self):
        error = GeometryError("sun below the horizon", "WIN_1")
        assert error.reason == "sun below the horizon"
        assert str(error) == "Geometry error in 'WIN_1': sun below the horizon"

    def test_catalog_error_message(self):
        error = CatalogError('glass', 'G1', 'WIN_A')
        assert str(error) == "Unknown glass 'G1' referenced by 'WIN_A'"
        assert str(CatalogError('construction', '*', detail="Nothing resolved")) == "Nothing resolved"
