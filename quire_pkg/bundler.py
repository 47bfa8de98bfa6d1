"""
Asset bundling for Quire.

Follows the relative imports of one CSS entry point and one JavaScript entry
point, concatenates each into a single file, runs the theme step over the
CSS and minifies both.
"""

import os
import re
import logging

import csscompressor
import rjsmin

from .errors import AssetError, MissingAssetError
from .highlight import highlight_css

CSS_IMPORT_RE = re.compile(
    r"""@import\s+(?:url\(\s*)?(['"])(?P<path>[^'"]+)\1\s*\)?\s*;""")
JS_IMPORT_RE = re.compile(
    r"""^[ \t]*(?:import\s+|require\(\s*)(['"])(?P<path>\.{1,2}/[^'"]+)\1[ \t]*\)?[ \t]*;?[ \t]*$""",
    re.MULTILINE)
# Named imports and exports need a module bundler; scripts are concatenated.
MODULE_SYNTAX_RE = re.compile(
    r"""^[ \t]*(?:import\s+[^'"\n;]+?\s+from\s*['"]|import\s*[{*]|import\s*['"](?!\.{1,2}/)|export\s)""",
    re.MULTILINE)


def is_remote(path):
    return path.startswith(('http://', 'https://', '//', 'data:'))


class AssetBundler:
    """Bundle the site's stylesheet and script into <output>/assets."""

    def __init__(self, css_entry, js_entry, output_dir, theme, minify=True,
                 highlight_style='default'):
        self.css_entry = css_entry
        self.js_entry = js_entry
        self.output_dir = output_dir
        self.assets_dir = os.path.join(output_dir, 'assets')
        self.theme = theme
        self.minify = minify
        self.highlight_style = highlight_style
        self.logger = logging.getLogger('Quire.AssetBundler')

    def _read(self, path, importer=None):
        if not os.path.isfile(path):
            if importer:
                raise MissingAssetError(f"imported file not found: {path}", importer)
            raise MissingAssetError("asset entry point not found", path)
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def collect_css(self, path, seen=None, importer=None):
        """Inline relative @import rules depth-first. Each file appears once."""
        seen = set() if seen is None else seen
        path = os.path.normpath(path)
        if path in seen:
            return ''
        seen.add(path)
        source = self._read(path, importer)
        base_dir = os.path.dirname(path)

        def inline(match):
            target = match.group('path')
            if is_remote(target):
                return match.group(0)
            return self.collect_css(os.path.join(base_dir, target), seen, path)

        return CSS_IMPORT_RE.sub(inline, source)

    def collect_js(self, path, seen=None, importer=None, css_imports=None):
        """
        Resolve side-effect imports and require() calls into dependency order.

        Stylesheets imported from a script are not inlined; their paths are
        appended to css_imports so they can join the CSS bundle.
        """
        seen = set() if seen is None else seen
        path = os.path.normpath(path)
        if path in seen:
            return ''
        seen.add(path)
        source = self._read(path, importer)
        base_dir = os.path.dirname(path)

        def inline(match):
            target = os.path.join(base_dir, match.group('path'))
            if target.endswith('.css'):
                if css_imports is not None:
                    css_imports.append(target)
                return ''
            if not os.path.splitext(target)[1]:
                target += '.js'
            return self.collect_js(target, seen, path, css_imports)

        match = MODULE_SYNTAX_RE.search(source)
        if match:
            line = source[match.start():].splitlines()[0].strip()
            raise AssetError(f"module syntax cannot be bundled as a script: {line}", path)
        return JS_IMPORT_RE.sub(inline, source)

    def build_css(self, extra_entries=()):
        seen = set()
        parts = [self.theme.custom_properties()]
        for entry in [self.css_entry, *extra_entries]:
            if entry:
                parts.append(self.theme.process_css(self.collect_css(entry, seen), entry))
        if self.highlight_style:
            parts.append(highlight_css(self.highlight_style))
        css = '\n'.join(parts)
        if self.minify:
            css = csscompressor.compress(css)
        return css

    def build_js(self, css_imports=None):
        js = self.collect_js(self.js_entry, css_imports=css_imports)
        if self.minify:
            js = rjsmin.jsmin(js)
        return js

    def _write(self, filename, text):
        os.makedirs(self.assets_dir, exist_ok=True)
        path = os.path.join(self.assets_dir, filename)
        try:
            with open(path, 'w', encoding='utf-8', newline='\n') as f:
                f.write(text)
                if not text.endswith('\n'):
                    f.write('\n')
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to write bundle {path}: {e}")
            raise
        self.logger.debug(f"Wrote bundle: {path}")
        return path

    def bundle(self):
        """Write main.css and main.js. Returns the list of written paths."""
        written = []
        css_imports = []
        js = None
        if self.js_entry:
            js = self.build_js(css_imports)
        if self.css_entry or css_imports:
            written.append(self._write('main.css', self.build_css(css_imports)))
        if js is not None:
            written.append(self._write('main.js', js))
        self.logger.info(f"Bundled assets: {', '.join(os.path.basename(p) for p in written)}")
        return written
