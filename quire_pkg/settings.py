#!/usr/bin/env python3
"""
Settings loader for Quire static site generator.
Supports configuration from quire.yml, quire.yaml, or quire.json files,
with QUIRE_INPUT / QUIRE_OUTPUT environment overrides.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional

from .errors import ConfigError


class QuireSettings:
    """Load and manage Quire configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'input': 'src',
        'output': '_site',
        'layouts': '_includes',
        'template_formats': ['md', 'jpg'],
        'default_layout': 'post',
        'css_entry': 'styles/main.css',
        'js_entry': 'scripts/main.js',
        'theme': 'theme.yml',
        'posts_per_page': 10,
        'sort_by': 'date',
        'site_title': None,
        'site_url': None,
        'minify': True,
        'permalink_symbol': '¶',
        'highlight_style': 'default',
        'markdown': {
            'html': True,
            'breaks': True,
            'linkify': True,
            'typographer': True,
        },
        'log_dir': 'logs',
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['quire.yml', 'quire.yaml', 'quire.json']

    # Environment variables that override the config file
    ENV_OVERRIDES = {
        'QUIRE_INPUT': 'input',
        'QUIRE_OUTPUT': 'output',
    }

    def __init__(self, config_dir: str = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
            environ: Environment mapping used for overrides. Defaults to os.environ.
        """
        self.config_dir = config_dir or os.getcwd()
        self.environ = os.environ if environ is None else environ
        self.settings = self._defaults()
        self.config_file_path = None

    def _defaults(self) -> Dict[str, Any]:
        settings = self.DEFAULT_SETTINGS.copy()
        settings['template_formats'] = list(settings['template_formats'])
        settings['markdown'] = dict(settings['markdown'])
        return settings

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists, then apply
        environment overrides.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            if not isinstance(loaded_settings, dict):
                raise ConfigError("configuration must be a mapping", config_file)
            markdown_options = loaded_settings.pop('markdown', None)
            self.settings.update(loaded_settings)
            if isinstance(markdown_options, dict):
                self.settings['markdown'].update(markdown_options)
            print(f"Loaded configuration from: {os.path.relpath(config_file)}")

        for env_name, key in self.ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value:
                self.settings[key] = value

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    return yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    return json.load(f) or {}
                else:
                    raise ConfigError(f"unsupported config file format {file_ext}", config_path)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML: {e}", config_path)
        except json.JSONDecodeError as e:
            raise ConfigError(f"invalid JSON: {e}", config_path)
        except (IOError, OSError) as e:
            raise ConfigError(f"cannot read configuration: {e}", config_path)

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        filename = f'quire.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Quire Configuration File\n\n")
                    f.write("# Site information\n")
                    f.write("site_title: My Blog\n")
                    f.write("site_url: https://example.com\n\n")
                    f.write("# Build settings\n")
                    f.write("input: src\n")
                    f.write("output: _site\n")
                    f.write("layouts: _includes\n")
                    f.write("template_formats:\n")
                    f.write("  - md\n")
                    f.write("  - jpg\n")
                    f.write("default_layout: post\n\n")
                    f.write("# Assets\n")
                    f.write("css_entry: styles/main.css\n")
                    f.write("js_entry: scripts/main.js\n")
                    f.write("theme: theme.yml\n")
                    f.write("minify: true\n\n")
                    f.write("# Content settings\n")
                    f.write("posts_per_page: 10\n")
                    f.write("sort_by: date  # date or title\n\n")
                    f.write("# Markdown\n")
                    f.write("permalink_symbol: \"¶\"\n")
                    f.write("highlight_style: default\n")
                    f.write("markdown:\n")
                    f.write("  html: true\n")
                    f.write("  breaks: true\n")
                    f.write("  linkify: true\n")
                    f.write("  typographer: true\n")
                elif file_format == 'json':
                    sample_config = self._defaults()
                    sample_config.update({'site_title': 'My Blog', 'site_url': 'https://example.com'})
                    json.dump(sample_config, f, indent=2, ensure_ascii=False)
                else:
                    raise ConfigError(f"unsupported config file format {file_format}", config_path)
        except (IOError, OSError) as e:
            raise ConfigError(f"cannot write configuration: {e}", config_path)

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file and
        environment settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = self.settings.copy()

        # Override with non-None command line arguments
        for key, value in args_dict.items():
            if value is not None:
                if key == 'template_formats' and isinstance(value, str):
                    # Convert comma-separated string to list
                    merged[key] = [fmt.strip().lstrip('.') for fmt in value.split(',') if fmt.strip()]
                else:
                    merged[key] = value

        return merged
