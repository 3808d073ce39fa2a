#!/usr/bin/env python3
"""
Tests for configuration loading
"""

import json
import logging
import os
import shutil
import tempfile

import pytest

from linkcheck_config import DEFAULT_CONFIG, CheckConfig, load_config


class TestCheckConfig:

    def test_defaults(self):
        """Test the defaults used when no config file exists"""
        config = CheckConfig.from_dict({})

        assert config.site_dir == "_site"
        assert config.concurrency == 20
        assert config.timeout_ms == 10000
        assert config.timeout == 10
        assert config.retries == 2
        assert config.retry_delay == 1
        assert config.skip_domains == ()
        assert config.max_title_length == 80
        assert config.max_heading_length == 50
        assert [p.pattern for p in config.exclude_patterns] == DEFAULT_CONFIG['excludePatterns']
        assert "page not found" in config.soft_not_found_patterns

    def test_overrides_and_unknown_keys(self):
        """Test that known keys override defaults and unknown keys are ignored"""
        config = CheckConfig.from_dict({
            'siteDir': 'public',
            'concurrency': 5,
            'timeoutMs': 2500,
            'skipDomains': ['linkedin.com'],
            'softNotFoundPatterns': ['Gone Fishing'],
            'softNotFoundTitleMaxLength': 120,
            'somethingElse': True,
        })

        assert config.site_dir == 'public'
        assert config.concurrency == 5
        assert config.timeout == 2.5
        assert config.skip_domains == ('linkedin.com',)
        assert config.soft_not_found_patterns == ('gone fishing',)
        assert config.max_title_length == 120
        assert not hasattr(config, 'somethingElse')

    def test_legacy_timeout_key(self):
        """Test that the older 'timeout' key is read as milliseconds"""
        config = CheckConfig.from_dict({'timeout': 3000})
        assert config.timeout_ms == 3000

    @pytest.mark.parametrize("key,value", [
        ('concurrency', 0),
        ('concurrency', -3),
        ('concurrency', "20"),
        ('concurrency', True),
        ('timeoutMs', 0),
        ('retries', -1),
        ('excludePatterns', "^mailto:"),
        ('skipDomains', [1, 2]),
        ('siteDir', ""),
    ])
    def test_invalid_values_fall_back_to_defaults(self, key, value, caplog):
        """Test that wrong-typed or out of range values degrade with a warning"""
        with caplog.at_level(logging.WARNING):
            config = CheckConfig.from_dict({key: value})

        default = CheckConfig.from_dict({})
        attribute = {
            'concurrency': 'concurrency',
            'timeoutMs': 'timeout_ms',
            'retries': 'retries',
            'excludePatterns': 'exclude_patterns',
            'skipDomains': 'skip_domains',
            'siteDir': 'site_dir',
        }[key]
        assert getattr(config, attribute) == getattr(default, attribute)
        assert f"Invalid value for '{key}'" in caplog.text

    def test_invalid_regex_is_dropped(self, caplog):
        """Test that a broken exclude pattern is skipped, not fatal"""
        with caplog.at_level(logging.WARNING):
            config = CheckConfig.from_dict({'excludePatterns': ['^mailto:', '([unclosed']})

        assert [p.pattern for p in config.exclude_patterns] == ['^mailto:']
        assert "invalid exclude pattern" in caplog.text

    def test_constructor_rejects_bad_concurrency(self):
        with pytest.raises(ValueError):
            CheckConfig(concurrency=0)


class TestLoadConfig:

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = os.path.join(self.temp_dir, "linkcheck.config.json")

    def teardown_method(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_missing_file_uses_defaults(self):
        config = load_config(self.config_file)
        assert config.site_dir == "_site"
        assert config.concurrency == 20

    def test_loads_file(self):
        with open(self.config_file, 'w') as f:
            json.dump({'siteDir': 'docs', 'concurrency': 3}, f)

        config = load_config(self.config_file)

        assert config.site_dir == 'docs'
        assert config.concurrency == 3

    def test_malformed_file_degrades_to_defaults(self, caplog):
        """Test that a config file that is not JSON never aborts the run"""
        with open(self.config_file, 'w') as f:
            f.write("{ not json")

        with caplog.at_level(logging.WARNING):
            config = load_config(self.config_file)

        assert config.site_dir == "_site"
        assert "Could not parse config file" in caplog.text

    def test_non_object_file_degrades_to_defaults(self, caplog):
        with open(self.config_file, 'w') as f:
            json.dump(["siteDir", "docs"], f)

        with caplog.at_level(logging.WARNING):
            config = load_config(self.config_file)

        assert config.site_dir == "_site"
        assert "must contain a JSON object" in caplog.text

    def test_overrides_win_over_file(self):
        """Test that command line values replace file values"""
        with open(self.config_file, 'w') as f:
            json.dump({'siteDir': 'docs', 'concurrency': 3}, f)

        config = load_config(self.config_file, overrides={'siteDir': 'public', 'concurrency': None})

        assert config.site_dir == 'public'
        assert config.concurrency == 3
