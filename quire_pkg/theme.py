"""
Design tokens for the site stylesheet.

A theme file holds two mappings, ``colors`` and ``screens``. Stylesheets use
them through ``theme('colors.primary.500')`` and ``@screen md { ... }``;
``Theme.process_css`` resolves both before the CSS is minified.
"""

import os
import re
import logging

import yaml

from .errors import ThemeError

logger = logging.getLogger('Quire.theme')

COOL_GRAY = {
    50: '#F9FAFB', 100: '#F3F4F6', 200: '#E5E7EB', 300: '#D1D5DB', 400: '#9CA3AF',
    500: '#6B7280', 600: '#4B5563', 700: '#374151', 800: '#1F2937', 900: '#111827',
}
GREEN = {
    50: '#ECFDF5', 100: '#D1FAE5', 200: '#A7F3D0', 300: '#6EE7B7', 400: '#34D399',
    500: '#10B981', 600: '#059669', 700: '#047857', 800: '#065F46', 900: '#064E3B',
}
RED = {
    50: '#FEF2F2', 100: '#FEE2E2', 200: '#FECACA', 300: '#FCA5A5', 400: '#F87171',
    500: '#EF4444', 600: '#DC2626', 700: '#B91C1C', 800: '#991B1B', 900: '#7F1D1D',
}

DEFAULT_THEME = {
    'screens': {
        'sm': '640px',
        'md': '768px',
        'lg': '768px',
        'xl': '768px',
        '2xl': '768px',
    },
    'colors': {
        'white': '#FFF',
        'black': '#000',
        'background': '#1A202C',
        'gray': COOL_GRAY,
        'primary': GREEN,
        'red': RED,
    },
}

THEME_CALL_RE = re.compile(r"""theme\(\s*(['"]?)([\w.\-]+)\1\s*\)""")
SCREEN_RE = re.compile(r'@screen\s+([\w\-]+)\s*\{')


def flatten(mapping, prefix=''):
    """Flatten nested palettes into dotted keys: {'primary': {500: x}} -> {'primary.500': x}."""
    flat = {}
    for key, value in mapping.items():
        name = f'{prefix}{key}'
        if isinstance(value, dict):
            flat.update(flatten(value, name + '.'))
        else:
            flat[name] = str(value)
    return flat


class Theme:
    """Color and breakpoint tokens loaded from a theme file."""

    def __init__(self, colors=None, screens=None, source=None):
        self.colors = flatten(colors if colors is not None else DEFAULT_THEME['colors'])
        self.screens = {str(k): str(v) for k, v in
                        (screens if screens is not None else DEFAULT_THEME['screens']).items()}
        self.source = source

    @classmethod
    def load(cls, path):
        """Load a theme file, or the default theme when path is missing."""
        if not path or not os.path.exists(path):
            logger.debug(f"No theme file at {path}, using the default theme")
            return cls()
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ThemeError(f"invalid YAML: {e}", path)
        if not isinstance(data, dict):
            raise ThemeError("theme must be a mapping", path)
        return cls(colors=data.get('colors'), screens=data.get('screens'), source=path)

    def tokens(self):
        tokens = {f'colors.{name}': value for name, value in self.colors.items()}
        tokens.update({f'screens.{name}': value for name, value in self.screens.items()})
        return tokens

    def process_css(self, css, path=None):
        """Replace theme() calls and @screen blocks with plain CSS."""
        tokens = self.tokens()

        def replace_token(match):
            token = match.group(2)
            if token not in tokens:
                raise ThemeError(f"unknown theme token {token!r}", path)
            return tokens[token]

        def replace_screen(match):
            screen = match.group(1)
            if screen not in self.screens:
                raise ThemeError(f"unknown screen {screen!r}", path)
            return f'@media (min-width: {self.screens[screen]}) {{'

        css = THEME_CALL_RE.sub(replace_token, css)
        return SCREEN_RE.sub(replace_screen, css)

    def custom_properties(self):
        """Every color token as a CSS custom property on :root."""
        lines = [':root {']
        for name in sorted(self.colors):
            lines.append(f"  --color-{name.replace('.', '-')}: {self.colors[name]};")
        lines.append('}')
        return '\n'.join(lines) + '\n'
