"""
Markdown rendering for Quire.

Builds a markdown-it parser configured for blog posts: raw HTML passes
through, single newlines become ``<br>``, bare URLs are linked, quotes and
dashes are typeset, every heading gets a unique permalink anchor, and
footnotes are numbered ``N`` / ``N:subId``.
"""

import logging

from markdown_it import MarkdownIt
from mdit_py_plugins.anchors import anchors_plugin
from mdit_py_plugins.footnote import footnote_plugin

from .highlight import highlight_code

logger = logging.getLogger('Quire.renderer')

MARKDOWN_DEFAULTS = {
    'html': True,
    'breaks': True,
    'linkify': True,
    'typographer': True,
}


def footnote_caption(self, tokens, idx, options, env):
    """Caption a footnote reference as ``N``, or ``N:subId`` when reused."""
    meta = tokens[idx].meta
    caption = str(meta['id'] + 1)
    if meta.get('subId', -1) > 0:
        caption += ':' + str(meta['subId'])
    return caption


def footnote_ref(self, tokens, idx, options, env):
    ident = self.rules['footnote_anchor_name'](tokens, idx, options, env)
    caption = self.rules['footnote_caption'](tokens, idx, options, env)
    refid = ident
    if tokens[idx].meta.get('subId', -1) > 0:
        refid += ':' + str(tokens[idx].meta['subId'])
    return (
        f'<sup class="footnote-ref"><a href="#fn{ident}" id="fnref{refid}">'
        f'{caption}</a></sup>'
    )


def create_markdown_parser(options=None, permalink_symbol='¶'):
    """
    Create the markdown-it parser used for every post.

    Args:
        options: overrides for the html/breaks/linkify/typographer switches
        permalink_symbol: glyph placed in each heading's permalink
    """
    md_options = dict(MARKDOWN_DEFAULTS)
    md_options.update(options or {})
    md_options['highlight'] = highlight_code

    md = MarkdownIt('js-default', md_options)
    if md_options['linkify']:
        md.enable('linkify')
    if md_options['typographer']:
        md.enable(['replacements', 'smartquotes'])

    md.use(
        anchors_plugin,
        min_level=1,
        max_level=6,
        permalink=bool(permalink_symbol),
        permalinkSymbol=permalink_symbol or '¶',
    )
    md.use(footnote_plugin)
    md.add_render_rule('footnote_caption', footnote_caption)
    md.add_render_rule('footnote_ref', footnote_ref)
    return md


def render_markdown(parser, text, env=None):
    """Render Markdown text to HTML. Same input, same output."""
    return parser.render(text or '', env if env is not None else {})
