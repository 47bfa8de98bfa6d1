import os
import re
import json
import shutil
import logging
import unicodedata
from html import unescape
from datetime import datetime
from xml.sax.saxutils import escape

import yaml
from jinja2 import (ChoiceLoader, Environment, FileSystemLoader, PackageLoader,
                    TemplateError, TemplateNotFound, select_autoescape)

from .bundler import AssetBundler
from .dates import parse_date, register_filters, rfc822_date, html_date_string
from .errors import (DuplicateOutputError, FrontMatterError, LayoutError, MissingAssetError,
                     QuireError, UnknownLayoutError)
from .renderer import create_markdown_parser, render_markdown
from .theme import Theme

MANIFEST_NAME = '.quire-manifest.json'
MARKDOWN_FORMATS = {'md', 'markdown'}

FRONT_MATTER_RE = re.compile(r'\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)', re.DOTALL)
HEADER_ANCHOR_RE = re.compile(r'<a class="header-anchor"[^>]*>.*?</a>', re.DOTALL)
TAG_RE = re.compile(r'<[^>]+>')


def slugify(text):
    """
    Lowercase slug for URLs: 'Hello, World!' -> 'hello-world'.

    Accents are dropped ('Café' -> 'cafe'); letters outside Latin are kept.
    """
    chars = []
    for char in unicodedata.normalize('NFKD', str(text)):
        # Drop accents on ASCII letters only; kana voicing marks must stay.
        if unicodedata.combining(char) and chars and chars[-1].isascii():
            continue
        chars.append(char)
    text = unicodedata.normalize('NFC', ''.join(chars))
    text = re.sub(r'[^\w\s-]', '', text).strip().lower()
    return re.sub(r'[-_\s]+', '-', text).strip('-') or 'untitled'


def normalize_tags(tags):
    """Front matter tags may be a string or a list; return a sorted unique list."""
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = [tags]
    return sorted({str(tag).strip() for tag in tags if str(tag).strip()})


def sort_key_date(post):
    return (post['date'] or datetime.min, post['url'])


class FileProcessor:
    """Turn one Markdown source into one rendered page."""

    def __init__(self, input_dir, output_dir, layouts_dir, markdown_parser,
                 default_layout='post', site=None):
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.layouts_dir = layouts_dir
        self.default_layout = default_layout
        self.site = site or {}
        self.markdown_parser = markdown_parser
        self.logger = logging.getLogger('Quire.FileProcessor')

        # Site layouts win over the bundled defaults of the same name.
        self.env = Environment(
            loader=ChoiceLoader([
                FileSystemLoader(layouts_dir),
                PackageLoader('quire_pkg', 'templates'),
            ]),
            autoescape=select_autoescape(['html', 'xml']),
        )
        register_filters(self.env)
        self.env.filters['tag_slug'] = slugify

    def markdown_filter(self, text):
        """Convert markdown text to HTML."""
        return render_markdown(self.markdown_parser, text)

    def parse_markdown_with_metadata(self, filepath):
        """Parse a markdown file with YAML front matter."""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()

        match = FRONT_MATTER_RE.match(content)
        if not match:
            return {}, content

        try:
            metadata = yaml.safe_load(match.group(1) or '') or {}
        except yaml.YAMLError as e:
            raise FrontMatterError(f"invalid YAML front matter: {e}", filepath)
        if not isinstance(metadata, dict):
            raise FrontMatterError("front matter must be a mapping", filepath)

        return metadata, content[match.end():]

    def generate_excerpt(self, content):
        """Generate an excerpt from rendered content."""
        # Plain text: the layout or feed escapes it again.
        plain_text = unescape(TAG_RE.sub('', HEADER_ANCHOR_RE.sub('', content)))
        words = plain_text.split()
        if len(words) > 30:
            return ' '.join(words[:30]) + '...'
        return ' '.join(words)

    def url_for(self, rel_source, metadata):
        """URL a source renders to: posts/kindle.md -> /posts/kindle/."""
        rel_dir, filename = os.path.split(rel_source)
        stem = os.path.splitext(filename)[0]
        slug = str(metadata.get('slug') or ('' if stem == 'index' else stem)).strip('/')
        parts = [part for part in rel_dir.split('/') + [slug] if part]
        return '/' + '/'.join(parts) + '/' if parts else '/'

    def load_post(self, file_path):
        """Read and render one Markdown file into a post dict."""
        metadata, body = self.parse_markdown_with_metadata(file_path)
        rel_source = os.path.relpath(file_path, self.input_dir).replace(os.sep, '/')

        raw_date = metadata.get('date')
        post_date = parse_date(raw_date)
        if raw_date is not None and post_date is None:
            self.logger.warning(f"Unparseable date {raw_date!r} in {rel_source}")

        title = metadata.get('title')
        url = self.url_for(rel_source, metadata)
        html_content = self.markdown_filter(body)

        return {
            'source': rel_source,
            'title': str(title) if title is not None and str(title).strip() else 'Untitled',
            'date': post_date,
            'tags': normalize_tags(metadata.get('tags')),
            'layout': str(metadata.get('layout') or self.default_layout),
            'slug': url.strip('/').rsplit('/', 1)[-1],
            'url': url,
            'output_path': url.lstrip('/') + 'index.html',
            'body': body,
            'content': html_content,
            'excerpt': metadata.get('excerpt') or self.generate_excerpt(html_content),
            'data': metadata,
        }

    def get_layout(self, layout, source=None):
        """Look up a layout by name ('post' or 'post.html')."""
        template_name = layout if os.path.splitext(layout)[1] else f'{layout}.html'
        try:
            return self.env.get_template(template_name)
        except TemplateNotFound as e:
            if e.name == template_name:
                raise UnknownLayoutError(f"unknown layout {layout!r}", source)
            raise LayoutError(f"layout {template_name} needs missing template {e.name}", source)
        except TemplateError as e:
            raise LayoutError(f"layout {template_name} is invalid: {e}", source)

    def render_template(self, layout, context, source=None):
        """Render a layout with the site-wide context added."""
        template = self.get_layout(layout, source)
        context = dict(context)
        context.setdefault('site', self.site)
        try:
            return template.render(**context)
        except TemplateError as e:
            raise LayoutError(f"error rendering layout {layout!r}: {e}", source)

    def render_post(self, post, collections=None):
        """Wrap a post's content in its layout."""
        output_dir = os.path.join(self.output_dir, os.path.dirname(post['output_path']))
        context = dict(post['data'])
        context.update(
            content=post['content'],
            title=post['title'],
            date=post['date'],
            tags=post['tags'],
            url=post['url'],
            page=post,
            metadata=post['data'],
            collections=collections or {},
            relative_path=self.calculate_relative_path(output_dir),
        )
        return self.render_template(post['layout'], context, os.path.join(self.input_dir, post['source']))

    def calculate_relative_path(self, current_output_dir):
        """Calculate relative path from current directory to root."""
        rel_path = os.path.relpath(self.output_dir, current_output_dir)
        # Ensure relative path ends with '/' for proper asset linking
        if rel_path == '.':
            return ''
        else:
            return rel_path.replace(os.sep, '/') + '/'


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total posts generated:",
            "Total listing pages generated:",
            "Total files copied:",
            "Removed stale output",
            "Building index pages",
            "Building tag pages",
            "Generating RSS feed",
            "Generating XML sitemap",
            "Bundled assets",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class Quire:
    """Build a static blog from a directory of Markdown posts."""

    def __init__(self, input_dir='src', output_dir='_site', layouts_dir='_includes',
                 template_formats=None, default_layout='post', css_entry='styles/main.css',
                 js_entry='scripts/main.js', theme_path=None, posts_per_page=10, sort_by='date',
                 site_title=None, site_url=None, minify=True, permalink_symbol='¶',
                 highlight_style='default', markdown_options=None, log_dir=None):
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.layouts_dir = self._in_input(layouts_dir) or os.path.join(input_dir, '_includes')
        self.template_formats = [fmt.lower().lstrip('.') for fmt in (template_formats or ['md', 'jpg'])]
        self.default_layout = default_layout
        self.css_entry = self._in_input(css_entry)
        self.js_entry = self._in_input(js_entry)
        self.theme_path = theme_path
        self.posts_per_page = max(1, int(posts_per_page))
        self.sort_by = sort_by
        self.site_title = site_title
        self.site_url = site_url.rstrip('/') if site_url else None
        self.minify = minify
        self.highlight_style = highlight_style
        self.log_dir = log_dir

        self.posts = []
        self.collections = {'all': [], 'tags': {}}
        self.written = set()
        self.posts_generated = 0
        self.listing_pages_generated = 0
        self.files_copied = 0

        self.setup_logging()

        if not os.path.isdir(self.input_dir):
            raise QuireError("input directory not found", self.input_dir)

        self.site = {
            'title': self.site_title,
            'url': self.site_url,
        }
        self.markdown_parser = create_markdown_parser(markdown_options, permalink_symbol)
        self.processor = FileProcessor(
            self.input_dir, self.output_dir, self.layouts_dir, self.markdown_parser,
            default_layout=self.default_layout, site=self.site,
        )

    def _in_input(self, path):
        if not path:
            return None
        return path if os.path.isabs(path) else os.path.join(self.input_dir, path)

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Quire')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_formatter = logging.Formatter('%(message)s')
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

            # File handler for all logs
            if self.log_dir:
                os.makedirs(self.log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('quire_%Y-%m-%d_%H-%M-%S.log')
                log_filepath = os.path.join(self.log_dir, log_filename)

                file_handler = logging.FileHandler(log_filepath)
                file_handler.setLevel(logging.DEBUG)
                file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
                file_handler.setFormatter(file_formatter)
                self.logger.addHandler(file_handler)

    # Output bookkeeping

    def _output_path(self, rel_path):
        path = os.path.abspath(os.path.join(self.output_dir, rel_path))
        root = os.path.abspath(self.output_dir)
        if os.path.commonpath([path, root]) != root:
            raise QuireError(f"output path escapes the output directory: {rel_path}")
        return path

    def _register(self, rel_path, source=None):
        rel_path = rel_path.replace(os.sep, '/')
        if rel_path in self.written:
            raise DuplicateOutputError(f"more than one source writes {rel_path}", source)
        self.written.add(rel_path)
        return self._output_path(rel_path)

    def write_output(self, rel_path, text, source=None):
        """Write one generated file below the output directory."""
        path = self._register(rel_path, source)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        try:
            with open(path, 'w', encoding='utf-8', newline='\n') as f:
                f.write(text)
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to write {path}: {e}")
            raise
        self.logger.debug(f"Generated: {path}")
        return path

    def read_manifest(self):
        manifest_path = os.path.join(self.output_dir, MANIFEST_NAME)
        if not os.path.exists(manifest_path):
            return []
        try:
            with open(manifest_path, 'r', encoding='utf-8') as f:
                return json.load(f).get('files', [])
        except (ValueError, AttributeError) as e:
            self.logger.warning(f"Ignoring unreadable manifest {manifest_path}: {e}")
            return []

    def write_manifest(self):
        manifest_path = os.path.join(self.output_dir, MANIFEST_NAME)
        with open(manifest_path, 'w', encoding='utf-8', newline='\n') as f:
            json.dump({'files': sorted(self.written)}, f, indent=2)
            f.write('\n')

    def clean_output_dir(self):
        """
        Remove everything the previous build wrote, keeping files Quire did not
        create. Directories left empty by the removal are pruned.
        """
        os.makedirs(self.output_dir, exist_ok=True)
        removed = 0
        dirs = set()
        for rel_path in self.read_manifest():
            try:
                path = self._output_path(rel_path)
            except QuireError:
                self.logger.warning(f"Skipping manifest entry outside output: {rel_path}")
                continue
            if os.path.isfile(path):
                os.remove(path)
                removed += 1
            parent = os.path.dirname(path)
            while os.path.abspath(parent) != os.path.abspath(self.output_dir):
                dirs.add(parent)
                parent = os.path.dirname(parent)

        # Deepest first so parents are empty by the time they are checked.
        for directory in sorted(dirs, key=lambda d: d.count(os.sep), reverse=True):
            if os.path.isdir(directory) and not os.listdir(directory):
                os.rmdir(directory)

        if removed:
            self.logger.info(f"Removed stale output: {removed} files")

    # Content

    def _skip_name(self, name):
        return name.startswith(('_', '.'))

    def iter_source_files(self):
        """Walk the input tree in a stable order, skipping _private and .hidden entries."""
        skip_dirs = {os.path.abspath(self.layouts_dir), os.path.abspath(self.output_dir)}
        for root, dirs, files in os.walk(self.input_dir):
            dirs[:] = sorted(d for d in dirs
                             if not self._skip_name(d)
                             and os.path.abspath(os.path.join(root, d)) not in skip_dirs)
            for file in sorted(files):
                if not self._skip_name(file):
                    yield os.path.join(root, file)

    def _extension(self, path):
        return os.path.splitext(path)[1].lower().lstrip('.')

    def get_markdown_files(self):
        """Get all markdown files below the input directory."""
        formats = MARKDOWN_FORMATS.intersection(self.template_formats)
        return [path for path in self.iter_source_files() if self._extension(path) in formats]

    def get_passthrough_files(self):
        formats = set(self.template_formats) - MARKDOWN_FORMATS
        return [path for path in self.iter_source_files() if self._extension(path) in formats]

    def sort_posts(self, posts):
        if self.sort_by == 'title':
            return sorted(posts, key=lambda p: (p.get('title', '').lower(), p['url']))
        # default: sort by date descending, undated last
        return sorted(posts, key=sort_key_date, reverse=True)

    def load_posts(self):
        """Read every Markdown source; drafts are skipped."""
        posts = []
        for file_path in self.get_markdown_files():
            post = self.processor.load_post(file_path)
            if post['data'].get('draft'):
                self.logger.debug(f"Skipping draft: {post['source']}")
                continue
            posts.append(post)

        self.posts = self.sort_posts(posts)
        tags = {}
        for post in self.posts:
            for tag in post['tags']:
                tags.setdefault(tag, []).append(post)
        self.collections = {'all': self.posts, 'tags': dict(sorted(tags.items()))}
        return self.posts

    def build_posts(self):
        """Render every post into its layout."""
        if not self.posts:
            self.logger.warning("No markdown files found to process.")
            return
        for post in self.posts:
            html = self.processor.render_post(post, self.collections)
            self.write_output(post['output_path'], html, os.path.join(self.input_dir, post['source']))
            self.posts_generated += 1

    # Listing pages

    def get_pagination_links(self, current_page, total_pages):
        """
        Returns a list of page numbers (or ellipses) to display in pagination.
        Always shows page 1 and total_pages.
        Shows two pages before and after the current page.
        Inserts '...' when there is a gap.
        """
        delta = 2  # how many pages to show before and after current page
        links = [1]

        start = max(current_page - delta, 2)
        end = min(current_page + delta, total_pages - 1)

        if start > 2:
            links.append('...')

        links.extend(range(start, end + 1))

        if end < total_pages - 1:
            links.append('...')

        if total_pages > 1:
            links.append(total_pages)

        return links

    def page_url(self, page_num):
        return '/' if page_num == 1 else f'/page/{page_num}/'

    def build_index_pages(self):
        """
        Build paginated index pages.
        - index.html for page 1
        - page/<n>/index.html for pages 2..n
        """
        self.logger.info("Building index pages")
        total_pages = max(1, (len(self.posts) + self.posts_per_page - 1) // self.posts_per_page)

        for page_num in range(1, total_pages + 1):
            start_idx = (page_num - 1) * self.posts_per_page
            page_posts = self.posts[start_idx:start_idx + self.posts_per_page]
            url = self.page_url(page_num)
            rel_path = url.lstrip('/') + 'index.html'

            html = self.processor.render_template('index', dict(
                posts=page_posts,
                collections=self.collections,
                title=(self.site_title or 'Home') if page_num == 1 else f'Page {page_num}',
                url=url,
                relative_path=self.processor.calculate_relative_path(
                    os.path.join(self.output_dir, os.path.dirname(rel_path))),
                current_page=page_num,
                total_pages=total_pages,
                page_numbers=self.get_pagination_links(page_num, total_pages),
                previous_url=self.page_url(page_num - 1) if page_num > 1 else None,
                next_url=self.page_url(page_num + 1) if page_num < total_pages else None,
            ))
            self.write_output(rel_path, html)
            self.listing_pages_generated += 1

    def build_tag_pages(self):
        """One listing page per tag at tags/<tag>/index.html."""
        if not self.collections['tags']:
            return
        self.logger.info("Building tag pages")
        for tag, posts in self.collections['tags'].items():
            url = f'/tags/{slugify(tag)}/'
            rel_path = url.lstrip('/') + 'index.html'
            html = self.processor.render_template('tag', dict(
                tag=tag,
                posts=posts,
                collections=self.collections,
                title=f'Tagged “{tag}”',
                url=url,
                relative_path=self.processor.calculate_relative_path(
                    os.path.join(self.output_dir, os.path.dirname(rel_path))),
            ))
            self.write_output(rel_path, html)
            self.listing_pages_generated += 1

    # Feeds

    def latest_date(self):
        dates = [post['date'] for post in self.posts if post['date']]
        return max(dates) if dates else None

    def generate_rss_feed(self):
        """Generate RSS feed of the 20 newest posts."""
        site_name = self.site_title or self.site_url
        recent_posts = sorted(self.posts, key=sort_key_date, reverse=True)[:20]

        rss_content = f'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
<title>{escape(site_name)}</title>
<link>{escape(self.site_url)}/</link>
<description>Latest posts from {escape(site_name)}</description>
<lastBuildDate>{rfc822_date(self.latest_date())}</lastBuildDate>
'''

        for post in recent_posts:
            link = f"{self.site_url}{post['url']}"
            description = re.sub(r'\s+', ' ', str(post['excerpt'])).strip()
            rss_content += f'''
<item>
<title>{escape(post['title'])}</title>
<link>{escape(link)}</link>
<description>{escape(description)}</description>
<pubDate>{rfc822_date(post['date'])}</pubDate>
<guid>{escape(link)}</guid>
</item>'''

        rss_content += '''
</channel>
</rss>
'''
        self.write_output('feed.xml', rss_content)
        self.logger.info("Generating RSS feed")

    def format_xml_sitemap_entry(self, url, lastmod):
        """Format a single sitemap entry."""
        entry = f'<url>\n<loc>{escape(url)}</loc>\n'
        if lastmod:
            entry += f'<lastmod>{html_date_string(lastmod)}</lastmod>\n'
        return entry + '</url>\n'

    def generate_xml_sitemap(self):
        """Generate XML sitemap."""
        sitemap_content = '''<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
'''
        sitemap_content += self.format_xml_sitemap_entry(f'{self.site_url}/', self.latest_date())
        for post in sorted(self.posts, key=lambda p: p['url']):
            sitemap_content += self.format_xml_sitemap_entry(f"{self.site_url}{post['url']}", post['date'])
        sitemap_content += '</urlset>\n'

        self.write_output('sitemap.xml', sitemap_content)
        self.logger.info("Generating XML sitemap")

    # Static files

    def copy_passthrough_files(self):
        """Copy non-Markdown template formats (images) to the same relative path."""
        for file_path in self.get_passthrough_files():
            rel_path = os.path.relpath(file_path, self.input_dir)
            dest_path = self._register(rel_path, file_path)
            os.makedirs(os.path.dirname(dest_path), exist_ok=True)
            shutil.copyfile(file_path, dest_path)
            self.files_copied += 1
            self.logger.debug(f"Copied: {file_path} -> {dest_path}")

    def bundle_assets(self):
        """Bundle CSS and JS into assets/."""
        if not self.css_entry and not self.js_entry:
            return []
        theme = Theme.load(self.theme_path)
        bundler = AssetBundler(
            self.css_entry, self.js_entry, self.output_dir, theme,
            minify=self.minify, highlight_style=self.highlight_style,
        )
        # Claimed up front so a half-written bundle is still in the manifest.
        claimed = [self._register(f'assets/{name}') for name in ('main.css', 'main.js')]
        written = bundler.bundle()
        for path in set(claimed) - {os.path.abspath(p) for p in written}:
            self.written.discard(os.path.relpath(path, self.output_dir).replace(os.sep, '/'))
        return written

    def build(self):
        """Main build process. Raises QuireError on the first fatal problem."""
        self.logger.info("Starting site build...")
        start_time = datetime.now()
        self.written = set()
        self.posts_generated = 0
        self.listing_pages_generated = 0
        self.files_copied = 0

        # Validate asset entry points before touching the output directory.
        for entry in (self.css_entry, self.js_entry):
            if entry and not os.path.isfile(entry):
                raise MissingAssetError("asset entry point not found", entry)

        self.load_posts()
        for post in self.posts:
            self.processor.get_layout(post['layout'], os.path.join(self.input_dir, post['source']))
        for layout in ('index', 'tag'):
            self.processor.get_layout(layout)

        self.clean_output_dir()
        try:
            self.build_posts()
            self.build_index_pages()
            self.build_tag_pages()

            if self.site_url:
                self.generate_rss_feed()
                self.generate_xml_sitemap()
            else:
                self.logger.debug("Skipping RSS feed and XML sitemap (no site_url).")

            self.copy_passthrough_files()
            self.bundle_assets()
        finally:
            # A failed build still records what it wrote, so the next build removes it.
            self.write_manifest()

        total_time = (datetime.now() - start_time).total_seconds()
        self.logger.info(f"Site build completed in {total_time:.6f} seconds.")
        self.logger.info(f"Total posts generated: {self.posts_generated}")
        self.logger.info(f"Total listing pages generated: {self.listing_pages_generated}")
        self.logger.info(f"Total files copied: {self.files_copied}")
        return sorted(self.written)
