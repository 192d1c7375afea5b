import pytest
from bs4 import BeautifulSoup

from percollate.errors import ExtractionFailed, FetchFailed, RenderFailed
from percollate.model import BundleOptions, OutputFormat
from percollate.pipeline import cleanup, generate_output

from conftest import FakeExtractor, FakeFetcher, FakeRenderer, page

ONE = "https://a.example/one"
TWO = "https://b.example/two"
EMPTY = "https://c.example/empty"

PAGES = {
    ONE: page("First page", "<p>Alpha content</p>"),
    TWO: page("Second page", "<p>Beta content</p>"),
    EMPTY: page("Empty", "<div>   </div>"),
}


async def run(urls, fmt, options, renderer, epub_writer, fetcher=None):
    return await generate_output(
        urls,
        fmt,
        options,
        fetcher=fetcher or FakeFetcher(PAGES),
        extractor=FakeExtractor(),
        renderer=renderer,
        epub_writer=epub_writer,
    )


@pytest.mark.asyncio
async def test_cleanup_enhances_before_extracting():
    fetcher = FakeFetcher({ONE: page("Links", '<a href="/x">x</a><a href="#gone">dead</a>')})
    article = await cleanup(ONE, fetcher=fetcher, extractor=FakeExtractor())

    links = BeautifulSoup(article.content, "html.parser").find_all("a")
    assert links[0]["href"] == "https://a.example/x"
    assert links[1]["class"] == ["no-href"]
    assert article.title == "Links"
    assert article.url == ONE


@pytest.mark.asyncio
async def test_merged_html_contains_both_articles_in_order(in_tmp, renderer, epub_writer):
    written = await run([ONE, TWO], OutputFormat.HTML, BundleOptions(), renderer, epub_writer)

    assert len(written) == 1
    assert [p.name for p in in_tmp.iterdir()] == [written[0].name]
    text = written[0].read_text(encoding="utf-8")
    assert text.index("Alpha content") < text.index("Beta content")
    assert written[0].name.startswith("percollate-")


@pytest.mark.asyncio
async def test_individual_mode_skips_the_failing_page(in_tmp, renderer, epub_writer):
    written = await run([EMPTY, ONE], OutputFormat.HTML, {"individual": True}, renderer, epub_writer)

    assert [p.name for p in written] == ["first-page.html"]
    assert sorted(p.name for p in in_tmp.iterdir()) == ["first-page.html"]


@pytest.mark.asyncio
async def test_individual_mode_skips_unreachable_pages(in_tmp, renderer, epub_writer):
    fetcher = FakeFetcher(PAGES)
    written = await run(
        ["https://missing.example", ONE, TWO],
        OutputFormat.EPUB,
        BundleOptions(individual=True),
        renderer,
        epub_writer,
        fetcher=fetcher,
    )

    assert fetcher.calls == ["https://missing.example", ONE, TWO]
    assert [p.name for p in written] == ["first-page.epub", "second-page.epub"]
    assert [title for title, _, _ in epub_writer.calls] == ["First page", "Second page"]


@pytest.mark.asyncio
async def test_merged_mode_aborts_on_extraction_failure(in_tmp, renderer, epub_writer):
    with pytest.raises(ExtractionFailed) as info:
        await run([ONE, EMPTY], OutputFormat.HTML, BundleOptions(), renderer, epub_writer)

    assert info.value.url == EMPTY
    assert list(in_tmp.iterdir()) == []


@pytest.mark.asyncio
async def test_merged_mode_aborts_on_fetch_failure(in_tmp, renderer, epub_writer):
    with pytest.raises(FetchFailed):
        await run([ONE, "https://missing.example"], OutputFormat.PDF, BundleOptions(), renderer, epub_writer)

    assert renderer.fragments == []
    assert list(in_tmp.iterdir()) == []


@pytest.mark.asyncio
async def test_render_failure_is_fatal_in_individual_mode(in_tmp, epub_writer):
    renderer = FakeRenderer(fail=True)
    with pytest.raises(RenderFailed):
        await run([ONE, TWO], OutputFormat.PDF, BundleOptions(individual=True), renderer, epub_writer)

    assert len(renderer.fragments) == 1
    assert list(in_tmp.iterdir()) == []


@pytest.mark.asyncio
async def test_pdf_gets_header_and_footer_with_inlined_styles(tmp_path, renderer, epub_writer):
    options = BundleOptions(output=str(tmp_path / "out.pdf"), css=".footer-template { margin: 0 auto }")
    written = await run([ONE], OutputFormat.PDF, options, renderer, epub_writer)

    assert written == [tmp_path / "out.pdf"]
    (fragments,) = renderer.fragments
    footer = BeautifulSoup(fragments.footer, "html.parser").find(True)
    assert footer.select_one(".pageNumber") is not None
    assert "font-weight: bold" in footer["style"]
    assert "margin: 0 auto" in footer["style"]
    assert BeautifulSoup(fragments.header, "html.parser").find(True).select_one(".title") is not None


@pytest.mark.asyncio
async def test_no_urls_writes_nothing(in_tmp, renderer, epub_writer):
    assert await run([], OutputFormat.PDF, None, renderer, epub_writer) == []
    assert list(in_tmp.iterdir()) == []
