"""Test configuration and fixtures for Quire tests."""

import pytest
import tempfile
import shutil
import os
from pathlib import Path

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from quire_pkg import Quire
from quire_pkg.renderer import create_markdown_parser


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_input_dir(temp_dir):
    """Create a small blog: layouts, two posts, an image, styles and scripts."""
    input_dir = Path(temp_dir) / 'src'
    layouts_dir = input_dir / '_includes'
    posts_dir = input_dir / 'posts'
    styles_dir = input_dir / 'styles'
    scripts_dir = input_dir / 'scripts'
    images_dir = input_dir / 'images'

    for directory in (layouts_dir, posts_dir, styles_dir, scripts_dir, images_dir):
        directory.mkdir(parents=True)

    (layouts_dir / 'base.html').write_text("""<!DOCTYPE html>
<html>
<head>
    <title>{{ title }}</title>
    <link rel="stylesheet" href="{{ relative_path }}assets/main.css">
</head>
<body>
    {% block content %}{% endblock %}
</body>
</html>""")

    (layouts_dir / 'post.html').write_text("""{% extends "base.html" %}
{% block content %}
<article>
    <h1>{{ title }}</h1>
    <time>{{ date | date('%Y-%m-%d') }}</time>
    <div>{{ content|safe }}</div>
</article>
{% endblock %}""")

    (layouts_dir / 'note.html').write_text("""{% extends "base.html" %}
{% block content %}<aside class="note">{{ content|safe }}</aside>{% endblock %}""")

    (posts_dir / 'kindle-clippings.md').write_text("""---
title: Parsing Kindle Clippings
date: 2021-05-01
tags: [python, kindle]
layout: post
---

# Parsing

Kindle keeps highlights in a single text file.[^1]

[^1]: Called My Clippings.txt.
""")

    (posts_dir / 'strava-api.md').write_text("""---
title: Calling the Strava API
date: 2021-06-12
tags: python
layout: note
---

Fetching activities with a token.
""")

    (images_dir / 'photo.jpg').write_bytes(b'\xff\xd8\xff\xe0fake-jpeg')

    (styles_dir / 'main.css').write_text("""@import "./base.css";

a {
  color: theme('colors.primary.500');
}

@screen md {
  main { max-width: 40rem; }
}
""")
    (styles_dir / 'base.css').write_text("body { margin: 0; }\n")

    (scripts_dir / 'main.js').write_text("""import './util.js';

console.log('main');
""")
    (scripts_dir / 'util.js').write_text("console.log('util');\n")

    return str(input_dir)


@pytest.fixture
def mock_output_dir(temp_dir):
    """Path of the output directory (not created)."""
    return str(Path(temp_dir) / '_site')


@pytest.fixture
def make_generator(mock_input_dir, mock_output_dir):
    """Factory for Quire instances over the mock site."""
    def factory(**kwargs):
        options = dict(input_dir=mock_input_dir, output_dir=mock_output_dir, log_dir=None)
        options.update(kwargs)
        return Quire(**options)
    return factory


@pytest.fixture
def markdown_parser():
    """A parser with the default options."""
    return create_markdown_parser()
