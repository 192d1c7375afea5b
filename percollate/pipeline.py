"""Fetch, clean up and bundle web pages into a single PDF, EPUB or HTML file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence, Union

from playwright.async_api import async_playwright

from .compose import compose, load_style, load_template, stylesheet_path, template_path
from .errors import PageFailed
from .extract import Extractor, ReadabilityExtractor, clean_page
from .fetch import Fetcher, PlaywrightFetcher
from .model import Article, BundleOptions, OutputFormat
from .output import EpubWriter, PlaywrightRenderer, Renderer, output_path, write_artifact
from .print_fragments import extract_print_fragments, parse_stylesheet

logger = logging.getLogger("percollate.pipeline")

Options = Union[BundleOptions, Mapping[str, Any], None]


async def cleanup(url: str, *, fetcher: Fetcher, extractor: Extractor) -> Article:
    content = await fetcher.fetch(url)

    logger.info("Enhancing web page: %s", url)
    html = clean_page(content, url)
    return extractor.extract(html, url)


async def bundle(
    articles: Sequence[Article],
    fmt: OutputFormat,
    options: BundleOptions,
    *,
    renderer: Renderer,
    epub_writer: EpubWriter,
) -> Path:
    style = load_style(options)
    document = compose(
        articles,
        style,
        load_template(options),
        search_path=template_path(options).parent,
        stylesheet=stylesheet_path(options),
    )
    fragments = extract_print_fragments(document, parse_stylesheet(style))

    target = output_path(articles, fmt, options)
    logger.info("Set output file name to: %s", target)
    return await write_artifact(
        document,
        fmt,
        target,
        renderer=renderer,
        epub_writer=epub_writer,
        fragments=fragments,
    )


async def generate_output(
    urls: Iterable[str],
    fmt: OutputFormat,
    options: Options,
    *,
    fetcher: Fetcher,
    extractor: Extractor,
    renderer: Renderer,
    epub_writer: EpubWriter,
) -> list[Path]:
    """Run the pipeline over ``urls`` in order and return the written paths.

    In individual mode every URL becomes its own file and a page that cannot be
    fetched or extracted is skipped. Otherwise all pages are collected first
    and any failure aborts the batch before anything is rendered.
    """

    options = BundleOptions.coerce(options)
    urls = list(urls)
    if not urls:
        return []

    written: list[Path] = []
    if options.individual:
        if options.output and len(urls) > 1:
            logger.warning("Every page will be written to %s; only the last one will remain", options.output)
        for url in urls:
            try:
                article = await cleanup(url, fetcher=fetcher, extractor=extractor)
            except PageFailed as exc:
                logger.error("Skipping %s: %s", exc.url, exc.message)
                continue
            written.append(
                await bundle([article], fmt, options, renderer=renderer, epub_writer=epub_writer)
            )
        return written

    articles = [await cleanup(url, fetcher=fetcher, extractor=extractor) for url in urls]
    written.append(await bundle(articles, fmt, options, renderer=renderer, epub_writer=epub_writer))
    return written


async def _run(urls: Iterable[str], fmt: OutputFormat, options: Options) -> list[Path]:
    options = BundleOptions.coerce(options)
    urls = list(urls)
    if not urls:
        return []

    logger.info("Generating %s output", fmt.value.upper())
    async with async_playwright() as playwright:
        async with PlaywrightFetcher(playwright) as fetcher, PlaywrightRenderer(
            playwright, sandbox=options.sandbox
        ) as renderer:
            written = await generate_output(
                urls,
                fmt,
                options,
                fetcher=fetcher,
                extractor=ReadabilityExtractor(),
                renderer=renderer,
                epub_writer=EpubWriter(),
            )
    logger.info("All done.")
    return written


async def pdf(urls: Iterable[str], options: Options = None) -> list[Path]:
    return await _run(urls, OutputFormat.PDF, options)


async def epub(urls: Iterable[str], options: Options = None) -> list[Path]:
    return await _run(urls, OutputFormat.EPUB, options)


async def html(urls: Iterable[str], options: Options = None) -> list[Path]:
    return await _run(urls, OutputFormat.HTML, options)
