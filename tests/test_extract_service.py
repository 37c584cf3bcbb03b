from __future__ import annotations

from webscout.research_core.extract.service import ExtractService, normalize_text, truncate_intelligently

ARTICLE_HTML = """
<html>
<head>
  <title>Acme Corp quarterly results | Example News</title>
  <meta property="og:title" content="Acme Corp beats quarterly estimates">
  <meta property="og:type" content="article">
  <meta property="og:image" content="/images/hero.jpg">
  <meta name="author" content="Jane Reporter">
  <meta name="description" content="Acme reported strong growth in its cloud unit.">
</head>
<body>
  <nav><a href="/">Home</a> <a href="/about">About</a></nav>
  <article>
    <h1>Acme Corp beats quarterly estimates</h1>
    <time datetime="2026-10-01T09:00:00Z">October 1</time>
    <p>Acme Corp reported third quarter revenue well above analyst expectations on Tuesday,
       driven by demand for its cloud infrastructure products across North America and Europe.</p>
    <img src="/images/chart.png" alt="Revenue chart">
    <img src="data:image/png;base64,AAAA" alt="inline">
    <img src="/images/hero.jpg" alt="duplicate of featured">
    <p>The company said operating margin widened to twenty two percent as it cut spending on
       legacy hardware lines and shifted engineers toward the faster growing software business.</p>
    <p>Executives raised full year guidance and announced a new share buyback program worth
       five billion dollars, sending the stock higher in after hours trading.</p>
  </article>
  <script>var tracking = "should never appear";</script>
</body>
</html>
"""


def test_parse_article_content_and_metadata():
    page = ExtractService().parse(url="https://news.example/acme", raw_html=ARTICLE_HTML, include_images=True)

    assert page is not None
    assert page.title == "Acme Corp beats quarterly estimates"
    assert "operating margin widened" in page.content
    assert "should never appear" not in page.content
    assert page.author == "Jane Reporter"
    assert page.publish_date == "2026-10-01T09:00:00Z"
    assert page.description == "Acme reported strong growth in its cloud unit."
    assert page.content_type == "article"

    urls = [img.url for img in page.images]
    assert urls[0] == "https://news.example/images/hero.jpg"
    assert page.images[0].kind == "featured"
    assert "https://news.example/images/chart.png" in urls
    assert len(urls) == len(set(urls))
    assert not any(u.startswith("data:") for u in urls)


def test_images_are_skipped_unless_requested():
    page = ExtractService().parse(url="https://news.example/acme", raw_html=ARTICLE_HTML)
    assert page is not None
    assert page.images == []


def test_short_pages_fall_back_to_paragraphs():
    html = """
    <html><head><title>Tiny</title></head><body>
      <p>First sentence of a small page.</p>
      <p>ok</p>
      <p>Second sentence of a small page.</p>
    </body></html>
    """
    page = ExtractService().parse(url="https://tiny.example/", raw_html=html)

    assert page is not None
    assert page.method == "paragraphs"
    assert page.content == "First sentence of a small page.\n\nSecond sentence of a small page."
    assert page.content_type == "general"


def test_page_without_text_returns_none():
    html = "<html><body><div><img src='/a.png'></div><script>var x = 1;</script></body></html>"
    assert ExtractService().parse(url="https://empty.example/", raw_html=html) is None


def test_normalize_text_collapses_whitespace():
    assert normalize_text("  a\xa0 b \r\n\n\n\n c  ") == "a b\n\nc"


def test_truncate_leaves_short_text_alone():
    assert truncate_intelligently("short", 100) == ("short", False)
    assert truncate_intelligently("anything", None) == ("anything", False)


def test_truncate_single_paragraph_hard_cuts():
    text, truncated = truncate_intelligently("x" * 500, 100)
    assert truncated is True
    assert len(text) == 100
    assert text.endswith("...")


def test_truncate_keeps_first_and_last_paragraphs():
    first = "First paragraph. " * 5
    last = "Last paragraph. " * 5
    middle = "\n\n".join(f"Middle paragraph {i}. " * 10 for i in range(10))
    text, truncated = truncate_intelligently(f"{first}\n\n{middle}\n\n{last}", 600)

    assert truncated is True
    assert text.startswith(first)
    assert text.endswith(last)
    assert "..." in text
    assert len(text) <= 600


def test_truncate_keeps_only_head_when_ends_do_not_fit():
    first = "A" * 300
    last = "B" * 300
    text, truncated = truncate_intelligently(f"{first}\n\nmiddle\n\n{last}", 400)

    assert truncated is True
    assert text == first
