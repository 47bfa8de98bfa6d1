"""Tests for configuration loading."""

import json
import os

import pytest

from quire_pkg.errors import ConfigError
from quire_pkg.settings import QuireSettings


class TestQuireSettings:
    """Test cases for QuireSettings."""

    def test_defaults_without_config_file(self, temp_dir):
        settings = QuireSettings(temp_dir, environ={}).load_settings()
        assert settings['input'] == 'src'
        assert settings['output'] == '_site'
        assert settings['template_formats'] == ['md', 'jpg']
        assert settings['markdown'] == {'html': True, 'breaks': True,
                                        'linkify': True, 'typographer': True}

    def test_defaults_are_not_shared(self, temp_dir):
        first = QuireSettings(temp_dir, environ={})
        first.settings['template_formats'].append('png')
        first.settings['markdown']['html'] = False
        second = QuireSettings(temp_dir, environ={}).load_settings()
        assert second['template_formats'] == ['md', 'jpg']
        assert second['markdown']['html'] is True

    def test_load_yaml_config(self, temp_dir):
        with open(os.path.join(temp_dir, 'quire.yml'), 'w') as f:
            f.write("output: public\nposts_per_page: 3\nmarkdown:\n  breaks: false\n")

        loader = QuireSettings(temp_dir, environ={})
        settings = loader.load_settings()
        assert loader.config_file_path == os.path.join(temp_dir, 'quire.yml')
        assert settings['output'] == 'public'
        assert settings['posts_per_page'] == 3
        # Markdown options merge key by key
        assert settings['markdown']['breaks'] is False
        assert settings['markdown']['linkify'] is True

    def test_load_json_config(self, temp_dir):
        with open(os.path.join(temp_dir, 'quire.json'), 'w') as f:
            json.dump({'input': 'content', 'site_title': 'Notes'}, f)

        settings = QuireSettings(temp_dir, environ={}).load_settings()
        assert settings['input'] == 'content'
        assert settings['site_title'] == 'Notes'

    def test_yml_preferred_over_json(self, temp_dir):
        with open(os.path.join(temp_dir, 'quire.yml'), 'w') as f:
            f.write("output: from-yml\n")
        with open(os.path.join(temp_dir, 'quire.json'), 'w') as f:
            json.dump({'output': 'from-json'}, f)
        assert QuireSettings(temp_dir, environ={}).load_settings()['output'] == 'from-yml'

    def test_invalid_yaml(self, temp_dir):
        with open(os.path.join(temp_dir, 'quire.yml'), 'w') as f:
            f.write("output: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            QuireSettings(temp_dir, environ={}).load_settings()

    def test_invalid_json(self, temp_dir):
        with open(os.path.join(temp_dir, 'quire.json'), 'w') as f:
            f.write("{not json")
        with pytest.raises(ConfigError, match="invalid JSON"):
            QuireSettings(temp_dir, environ={}).load_settings()

    def test_config_must_be_mapping(self, temp_dir):
        with open(os.path.join(temp_dir, 'quire.yml'), 'w') as f:
            f.write("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            QuireSettings(temp_dir, environ={}).load_settings()

    def test_environment_overrides_config(self, temp_dir):
        with open(os.path.join(temp_dir, 'quire.yml'), 'w') as f:
            f.write("input: content\noutput: public\n")
        environ = {'QUIRE_INPUT': 'posts', 'QUIRE_OUTPUT': '/tmp/site'}
        settings = QuireSettings(temp_dir, environ=environ).load_settings()
        assert settings['input'] == 'posts'
        assert settings['output'] == '/tmp/site'

    def test_merge_with_args(self, temp_dir):
        loader = QuireSettings(temp_dir, environ={'QUIRE_OUTPUT': 'env-out'})
        loader.load_settings()
        merged = loader.merge_with_args({
            'output': 'cli-out',
            'template_formats': 'md, .png',
            'site_url': None,
        })
        assert merged['output'] == 'cli-out'
        assert merged['template_formats'] == ['md', 'png']
        assert merged['site_url'] is None

    @pytest.mark.parametrize('file_format', ['yml', 'json'])
    def test_create_sample_config_round_trips(self, temp_dir, file_format):
        loader = QuireSettings(temp_dir, environ={})
        path = loader.create_sample_config(file_format)
        assert os.path.basename(path) == f'quire.{file_format}'

        settings = QuireSettings(temp_dir, environ={}).load_settings()
        assert settings['site_title'] == 'My Blog'
        assert settings['template_formats'] == ['md', 'jpg']
        assert settings['permalink_symbol'] == '¶'
