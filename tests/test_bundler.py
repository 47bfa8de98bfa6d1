"""Tests for the asset bundler."""

import os
from pathlib import Path

import pytest

from quire_pkg.bundler import AssetBundler
from quire_pkg.errors import AssetError, MissingAssetError, ThemeError
from quire_pkg.theme import Theme


def make_bundler(input_dir, output_dir, **kwargs):
    options = dict(
        css_entry=os.path.join(input_dir, 'styles', 'main.css'),
        js_entry=os.path.join(input_dir, 'scripts', 'main.js'),
        output_dir=output_dir,
        theme=Theme(),
        highlight_style=None,
    )
    options.update(kwargs)
    return AssetBundler(**options)


class TestAssetBundler:
    """Test cases for AssetBundler."""

    def test_css_imports_are_inlined(self, mock_input_dir, mock_output_dir):
        bundler = make_bundler(mock_input_dir, mock_output_dir, minify=False)
        css = bundler.build_css()
        assert '@import' not in css
        assert 'body { margin: 0; }' in css
        assert css.index('body { margin: 0; }') < css.index('a {')

    def test_css_theme_step_runs(self, mock_input_dir, mock_output_dir):
        bundler = make_bundler(mock_input_dir, mock_output_dir, minify=False)
        css = bundler.build_css()
        assert 'color: #10B981;' in css
        assert '@media (min-width: 768px) {' in css
        assert '--color-primary-500: #10B981;' in css

    def test_css_import_included_once(self, temp_dir, mock_output_dir):
        styles = Path(temp_dir) / 'styles'
        styles.mkdir()
        (styles / 'main.css').write_text('@import "a.css";\n@import "b.css";\n.main {}\n')
        (styles / 'a.css').write_text('@import "b.css";\n.a {}\n')
        (styles / 'b.css').write_text('@import "a.css";\n.b {}\n')

        bundler = AssetBundler(str(styles / 'main.css'), None, mock_output_dir, Theme(),
                               minify=False, highlight_style=None)
        css = bundler.build_css()
        assert css.count('.a {}') == 1
        assert css.count('.b {}') == 1
        assert css.index('.b {}') < css.index('.a {}') < css.index('.main {}')

    def test_remote_css_import_is_kept(self, temp_dir, mock_output_dir):
        entry = Path(temp_dir) / 'main.css'
        entry.write_text('@import url("https://fonts.example.com/font.css");\nbody {}\n')
        bundler = AssetBundler(str(entry), None, mock_output_dir, Theme(),
                               minify=False, highlight_style=None)
        assert '@import url("https://fonts.example.com/font.css");' in bundler.build_css()

    def test_js_imports_in_dependency_order(self, mock_input_dir, mock_output_dir):
        bundler = make_bundler(mock_input_dir, mock_output_dir, minify=False)
        js = bundler.build_js()
        assert "import './util.js'" not in js
        assert js.index("console.log('util');") < js.index("console.log('main');")

    def test_js_require_and_extensionless_imports(self, temp_dir, mock_output_dir):
        scripts = Path(temp_dir) / 'scripts'
        scripts.mkdir()
        (scripts / 'main.js').write_text("require('./lib/a');\nimport './lib/a.js';\nrun();\n")
        (scripts / 'lib').mkdir()
        (scripts / 'lib' / 'a.js').write_text("function run() { return 1; }\n")

        bundler = AssetBundler(None, str(scripts / 'main.js'), mock_output_dir, Theme(),
                               minify=False)
        js = bundler.build_js()
        assert js.count('function run()') == 1
        assert js.index('function run()') < js.index('run();')

    def test_stylesheet_imported_from_script_joins_css_bundle(self, temp_dir, mock_output_dir):
        src = Path(temp_dir)
        (src / 'styles').mkdir()
        (src / 'scripts').mkdir()
        (src / 'styles' / 'extra.css').write_text('.extra { color: red; }\n')
        (src / 'scripts' / 'main.js').write_text("import '../styles/extra.css';\nstart();\n")

        bundler = AssetBundler(None, str(src / 'scripts' / 'main.js'), mock_output_dir, Theme(),
                               minify=False, highlight_style=None)
        written = bundler.bundle()

        assert sorted(os.path.basename(p) for p in written) == ['main.css', 'main.js']
        css = Path(mock_output_dir, 'assets', 'main.css').read_text()
        js = Path(mock_output_dir, 'assets', 'main.js').read_text()
        assert '.extra { color: red; }' in css
        assert 'extra.css' not in js

    def test_minified_output(self, mock_input_dir, mock_output_dir):
        bundler = make_bundler(mock_input_dir, mock_output_dir)
        plain = make_bundler(mock_input_dir, mock_output_dir, minify=False)
        css = bundler.build_css()
        js = bundler.build_js()
        assert len(css) < len(plain.build_css())
        assert 'margin:0' in css
        assert "console.log('util');console.log('main');" in js.replace('\n', '')

    def test_highlight_styles_are_appended(self, mock_input_dir, mock_output_dir):
        bundler = make_bundler(mock_input_dir, mock_output_dir, minify=False,
                               highlight_style='default')
        assert '.highlight .k' in bundler.build_css()

    def test_bundle_is_byte_identical_across_runs(self, mock_input_dir, mock_output_dir):
        """Test bundling twice without source changes gives identical files."""
        bundler = make_bundler(mock_input_dir, mock_output_dir, highlight_style='default')
        paths = bundler.bundle()
        first = [Path(p).read_bytes() for p in paths]

        paths_again = make_bundler(mock_input_dir, mock_output_dir, highlight_style='default').bundle()
        second = [Path(p).read_bytes() for p in paths_again]

        assert paths == paths_again
        assert first == second

    def test_missing_css_entry(self, mock_input_dir, mock_output_dir):
        bundler = make_bundler(mock_input_dir, mock_output_dir,
                               css_entry=os.path.join(mock_input_dir, 'styles', 'nope.css'))
        with pytest.raises(MissingAssetError, match="nope.css"):
            bundler.bundle()

    def test_missing_js_entry(self, mock_input_dir, mock_output_dir):
        bundler = make_bundler(mock_input_dir, mock_output_dir,
                               js_entry=os.path.join(mock_input_dir, 'scripts', 'nope.js'))
        with pytest.raises(MissingAssetError, match="nope.js"):
            bundler.bundle()

    def test_missing_import_names_importer(self, temp_dir, mock_output_dir):
        entry = Path(temp_dir) / 'main.css'
        entry.write_text('@import "gone.css";\n')
        bundler = AssetBundler(str(entry), None, mock_output_dir, Theme())
        with pytest.raises(MissingAssetError) as excinfo:
            bundler.bundle()
        assert 'gone.css' in str(excinfo.value)
        assert excinfo.value.path == os.path.normpath(str(entry))

    @pytest.mark.parametrize('statement', [
        "import { slugify } from './util.js';",
        "import * as util from './util.js';",
        "import debounce from 'lodash/debounce';",
        "import 'lodash';",
        "export function run() {}",
    ])
    def test_module_syntax_is_rejected(self, temp_dir, mock_output_dir, statement):
        scripts = Path(temp_dir) / 'scripts'
        scripts.mkdir()
        (scripts / 'util.js').write_text("function slugify(s) { return s; }\n")
        entry = scripts / 'main.js'
        entry.write_text(f"{statement}\nrun();\n")

        bundler = AssetBundler(None, str(entry), mock_output_dir, Theme(), minify=False)
        with pytest.raises(AssetError, match="module syntax") as excinfo:
            bundler.bundle()
        assert excinfo.value.path == os.path.normpath(str(entry))
        assert statement in str(excinfo.value)

    def test_module_syntax_in_imported_file_names_that_file(self, temp_dir, mock_output_dir):
        scripts = Path(temp_dir) / 'scripts'
        scripts.mkdir()
        (scripts / 'main.js').write_text("import './util.js';\n")
        (scripts / 'util.js').write_text("export const x = 1;\n")

        bundler = AssetBundler(None, str(scripts / 'main.js'), mock_output_dir, Theme())
        with pytest.raises(AssetError) as excinfo:
            bundler.bundle()
        assert excinfo.value.path == os.path.normpath(str(scripts / 'util.js'))

    def test_unknown_theme_token_is_fatal(self, temp_dir, mock_output_dir):
        entry = Path(temp_dir) / 'main.css'
        entry.write_text("a { color: theme('colors.missing'); }\n")
        bundler = AssetBundler(str(entry), None, mock_output_dir, Theme())
        with pytest.raises(ThemeError):
            bundler.bundle()
