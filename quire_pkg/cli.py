#!/usr/bin/env python3
"""
Command-line interface for Quire - static blog generator.
"""

import os
import sys
import argparse
from importlib import resources
from typing import List, Optional

import yaml

from . import __version__
from .core import Quire
from .errors import QuireError
from .settings import QuireSettings
from .theme import DEFAULT_THEME

SAMPLE_POST = """---
title: "Hello, Quire"
date: 2021-05-01
tags:
  - meta
layout: post
---

This blog is built from Markdown files with YAML front matter.

## Footnotes

Footnotes are numbered for you.[^1] Using one twice gets a sub-number.[^1]

[^1]: Like this one.

## Code

```python
def greet(name):
    return f"Hello, {name}!"
```

Bare links such as https://example.com are linked automatically.
"""

SAMPLE_CSS = """@import "./base.css";

body {
  background: theme('colors.background');
  color: theme('colors.gray.100');
}

a {
  color: theme('colors.primary.400');
}

@screen md {
  main {
    max-width: theme('screens.md');
    margin: 0 auto;
  }
}
"""

SAMPLE_BASE_CSS = """*, *::before, *::after {
  box-sizing: border-box;
}

body {
  margin: 0;
  font-family: system-ui, sans-serif;
  line-height: 1.6;
}
"""

SAMPLE_JS = """import './anchors.js';

document.documentElement.classList.add('js');
"""

SAMPLE_ANCHORS_JS = """document.querySelectorAll('a.header-anchor').forEach(function (anchor) {
  anchor.setAttribute('aria-label', 'Permalink');
});
"""


def write_if_missing(path: str, text: str) -> None:
    if os.path.exists(path):
        print(f"File already exists: {path}")
        return
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
    print(f"Created: {path}")


def create_starter_structure(settings: dict) -> None:
    """Create starter layouts, a sample post, styles, scripts and a theme file."""
    input_dir = settings['input']
    layouts_dir = os.path.join(input_dir, settings['layouts'])

    for template in resources.files('quire_pkg').joinpath('templates').iterdir():
        if template.name.endswith('.html'):
            write_if_missing(os.path.join(layouts_dir, template.name), template.read_text(encoding='utf-8'))

    write_if_missing(os.path.join(input_dir, 'posts', 'hello-quire.md'), SAMPLE_POST)
    write_if_missing(os.path.join(input_dir, 'styles', 'main.css'), SAMPLE_CSS)
    write_if_missing(os.path.join(input_dir, 'styles', 'base.css'), SAMPLE_BASE_CSS)
    write_if_missing(os.path.join(input_dir, 'scripts', 'main.js'), SAMPLE_JS)
    write_if_missing(os.path.join(input_dir, 'scripts', 'anchors.js'), SAMPLE_ANCHORS_JS)
    write_if_missing(settings['theme'], yaml.safe_dump(DEFAULT_THEME, sort_keys=False))

    print("\nStarter structure created.")
    print("Next steps:")
    print(f"1. Write posts in '{os.path.join(input_dir, 'posts')}'")
    print(f"2. Customize layouts in '{layouts_dir}'")
    print("3. Run 'quire' to build your site")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Quire - static blog generator')
    parser.add_argument('--input', type=str,
                        help='Input directory containing markdown files')
    parser.add_argument('--output', type=str,
                        help='Output directory for generated site')
    parser.add_argument('--layouts', type=str,
                        help='Layouts directory, relative to the input directory')
    parser.add_argument('--template-formats', type=str,
                        help='Comma-separated file extensions to process (e.g. md,jpg)')
    parser.add_argument('--theme', type=str,
                        help='Theme file with color and screen tokens')
    parser.add_argument('--posts-per-page', type=int,
                        help='Number of posts per index page')
    parser.add_argument('--sort-by', type=str, choices=['date', 'title'],
                        help='Sort posts by field')
    parser.add_argument('--site-title', type=str, help='Site title for layouts and feeds')
    parser.add_argument('--site-url', type=str,
                        help='Site URL for RSS feed and sitemap')
    parser.add_argument('--no-minify', dest='minify', action='store_false', default=None,
                        help='Write bundled CSS and JS without minifying')
    parser.add_argument('--log-dir', type=str, help='Directory for build log files')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter site')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings_loader = QuireSettings()

        # Handle init command
        if args.init:
            config_path = settings_loader.create_sample_config(args.init)
            print(f"Created sample configuration file: {config_path}")
            print("\nCreating starter project structure...")
            create_starter_structure(settings_loader.load_settings())
            return 0

        # Load settings from configuration file and environment
        settings_loader.load_settings()

        # Command line arguments take precedence
        args_dict = {k: v for k, v in vars(args).items() if v is not None and k != 'init'}
        final_settings = settings_loader.merge_with_args(args_dict)

        output_dir = os.path.expanduser(final_settings['output'])

        generator = Quire(
            input_dir=final_settings['input'],
            output_dir=output_dir,
            layouts_dir=final_settings['layouts'],
            template_formats=final_settings['template_formats'],
            default_layout=final_settings['default_layout'],
            css_entry=final_settings['css_entry'],
            js_entry=final_settings['js_entry'],
            theme_path=final_settings['theme'],
            posts_per_page=final_settings['posts_per_page'],
            sort_by=final_settings['sort_by'],
            site_title=final_settings['site_title'],
            site_url=final_settings['site_url'],
            minify=final_settings['minify'],
            permalink_symbol=final_settings['permalink_symbol'],
            highlight_style=final_settings['highlight_style'],
            markdown_options=final_settings['markdown'],
            log_dir=final_settings['log_dir'],
        )
        generator.build()
    except QuireError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
