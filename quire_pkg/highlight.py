"""Syntax highlighting for fenced code blocks."""

import html
import logging

from pygments import highlight
from pygments.lexers import get_lexer_by_name
from pygments.formatters import HtmlFormatter
from pygments.util import ClassNotFound

logger = logging.getLogger('Quire.highlight')

CSS_CLASS = 'highlight'


# nowrap: the <pre> wrapper is written by highlight_code itself.
FORMATTER = HtmlFormatter(cssclass=CSS_CLASS, nowrap=True)


def highlight_code(code, lang, attrs=''):
    """
    Highlight a fenced code block with Pygments.

    Returns a complete ``<pre>`` element with span-wrapped tokens, or an empty
    string when there is no language tag or Pygments does not know it. The
    Markdown renderer then emits plain escaped ``<pre><code>`` instead.
    """
    if not lang:
        return ''
    try:
        lexer = get_lexer_by_name(lang)
    except ClassNotFound:
        logger.debug(f"No lexer for code block language {lang!r}; leaving it plain")
        return ''

    body = highlight(code, lexer, FORMATTER)
    lang_class = 'language-' + html.escape(lang, quote=True)
    return (
        f'<pre class="{CSS_CLASS} {lang_class}">'
        f'<code class="{lang_class}">{body}</code></pre>'
    )


def highlight_css(style='default'):
    """Return the stylesheet for the given Pygments style, scoped to CSS_CLASS."""
    try:
        formatter = HtmlFormatter(style=style, cssclass=CSS_CLASS)
    except ClassNotFound:
        logger.warning(f"Unknown highlight style {style!r}, using 'default'")
        formatter = HtmlFormatter(style='default', cssclass=CSS_CLASS)
    return formatter.get_style_defs('.' + CSS_CLASS)
