"""Tests for the CrawlOrchestrator class."""

import logging
import zipfile
from datetime import date

import httpx
import pytest
from lxml import etree

from docln_epub.compilers import PackageBuilder
from docln_epub.exceptions import CrawlAbortedError
from docln_epub.pipeline import CrawlOrchestrator

INDEX_URL = "https://docln.net/sang-tac/1"
NOVEL_COVER = "https://i.docln.net/covers/novel.jpg"
VOLUME_COVER = "https://i.docln.net/covers/vol1.png"
CH1 = "https://docln.net/sang-tac/c101-chuong-1"
CH2 = "https://docln.net/sang-tac/c102-chuong-2"
CH3 = "https://docln.net/sang-tac/c201-chuong-3"


def make_orchestrator(fetcher, output_dir, **kwargs):
    kwargs.setdefault("build_date", date(2024, 1, 1))
    return CrawlOrchestrator(fetcher, output_dir, **kwargs)


@pytest.fixture
def two_volume_site(fake_site, index_html, chapter_html):
    """Two volumes without covers; the second chapter of volume one fails."""
    fake_site.add(
        INDEX_URL,
        index_html(
            volumes=(
                {
                    "anchor": "volume_1",
                    "title": "Volume One",
                    "chapters": [
                        ("Chapter 1", "/sang-tac/c101-chuong-1", False),
                        ("Chapter 2", "/sang-tac/c102-chuong-2", False),
                    ],
                },
                {
                    "anchor": "volume_2",
                    "title": "Volume Two",
                    "chapters": [("Chapter 3", "/sang-tac/c201-chuong-3", False)],
                },
            )
        ),
    )
    fake_site.add(CH1, chapter_html("<p>First chapter.</p>"))
    fake_site.add(CH2, "server error", status=500)
    fake_site.add(CH3, chapter_html("<p>Third chapter.</p>"))
    return fake_site


@pytest.fixture
def full_site(fake_site, sample_index_html, chapter_html):
    """The sample novel with covers and an illustrated first chapter."""
    fake_site.add(INDEX_URL, sample_index_html)
    fake_site.add(NOVEL_COVER, b"novel-cover")
    fake_site.add(VOLUME_COVER, b"volume-cover")
    fake_site.add(
        CH1,
        chapter_html('<p>Opening.</p><p><img src="https://i.docln.net/illust/1.jpg"/></p>'),
    )
    fake_site.add("https://i.docln.net/illust/1.jpg", b"illustration")
    fake_site.add(CH2, chapter_html("<p>Second.</p>"))
    fake_site.add(CH3, chapter_html("<p>Third.</p>"))
    return fake_site


class TestRun:
    """Tests for a complete CrawlOrchestrator.run()."""

    def test_failed_chapter_keeps_its_slot(self, two_volume_site, tmp_path):
        """A failed chapter is counted and still gets a document."""
        orchestrator = make_orchestrator(two_volume_site.fetcher(), tmp_path, create_archive=False)

        result = orchestrator.run("original", "1")

        assert orchestrator.state == "packaged"
        assert len(result.package.text_items) == 3
        assert result.summary.chapters_ok == 2
        assert result.summary.chapters_failed == 1
        assert [c.status for c in result.novel.chapters] == ["ok", "failed", "ok"]
        placeholder = tmp_path / "epub_1" / "OEBPS" / "text" / "volume_001" / "chapter_002.xhtml"
        assert "Chapter 2" in placeholder.read_text(encoding="utf-8")

    def test_novel_metadata(self, full_site, tmp_path):
        """The novel is populated from the index page."""
        result = make_orchestrator(full_site.fetcher(), tmp_path).run("original", "1")

        novel = result.novel
        assert novel.novel_id == "1"
        assert novel.title == "Test Novel"
        assert novel.illustrator == "Illustrator Name"
        assert novel.url == INDEX_URL
        assert [v.title for v in novel.volumes] == ["Volume One", "Volume Two"]
        assert [v.sequence for v in novel.volumes] == [1, 2]

    def test_covers_and_illustrations(self, full_site, tmp_path):
        """Covers and illustrations are downloaded into the package."""
        result = make_orchestrator(full_site.fetcher(), tmp_path).run("original", "1")

        oebps = tmp_path / "epub_1" / "OEBPS"
        assert (oebps / "images" / "cover.jpg").read_bytes() == b"novel-cover"
        assert (oebps / "images" / "volume_001" / "cover.png").read_bytes() == b"volume-cover"
        assert (oebps / "images" / "volume_001" / "chapter_001" / "001.jpg").read_bytes() == b"illustration"
        assert (oebps / "text" / "volume_001" / "chapter_000.xhtml").is_file()
        assert result.summary.assets_ok == 3
        assert result.summary.assets_failed == 0

    def test_chapter_body_links_local_image(self, full_site, tmp_path):
        """Chapter documents reference images by relative local path."""
        make_orchestrator(full_site.fetcher(), tmp_path).run("original", "1")

        doc = (tmp_path / "epub_1" / "OEBPS" / "text" / "volume_001" / "chapter_001.xhtml").read_text(
            encoding="utf-8"
        )
        assert 'src="../../images/volume_001/chapter_001/001.jpg"' in doc
        assert "i.docln.net" not in doc

    def test_partial_image_failure(self, fake_site, index_html, chapter_html, tmp_path):
        """One failed image leaves the chapter ok with an inert marker."""
        images = [f"https://i.docln.net/illust/{n}.jpg" for n in (1, 2, 3)]
        fake_site.add(
            INDEX_URL,
            index_html(
                volumes=(
                    {
                        "anchor": "v1",
                        "title": "Volume One",
                        "chapters": [("Chapter 1", "/sang-tac/c101-chuong-1", True)],
                    },
                )
            ),
        )
        fake_site.add(CH1, chapter_html("".join(f'<p><img src="{url}"/></p>' for url in images)))
        fake_site.add(images[0], b"one")
        fake_site.add(images[1], b"missing", status=404)
        fake_site.add(images[2], b"three")

        result = make_orchestrator(fake_site.fetcher(), tmp_path, create_archive=False).run("original", "1")

        chapter = result.novel.chapters[0]
        assert chapter.status == "ok"
        assert [a.status for a in chapter.assets] == ["ok", "failed", "ok"]
        root = etree.fromstring(f"<div>{chapter.body}</div>")
        assert [img.get("src") for img in root.iter("img")] == [
            "../../images/volume_001/chapter_001/001.jpg",
            "../../images/volume_001/chapter_001/003.jpg",
        ]
        assert len(root.findall(".//span")) == 1
        assert result.summary.assets_ok == 2
        assert result.summary.assets_failed == 1
        assert any(images[1] in f for f in result.summary.failures)

    def test_translated_category(self, fake_site, index_html, tmp_path):
        """Translated novels are fetched from their own section."""
        fake_site.add("https://docln.net/ai-dich/9", index_html())

        result = make_orchestrator(fake_site.fetcher(), tmp_path).run("translated", "9")

        assert result.novel.category == "translated"
        assert fake_site.requested_urls[0] == "https://docln.net/ai-dich/9"

    def test_previous_output_replaced(self, two_volume_site, tmp_path):
        """Stale files from an earlier run are removed."""
        stale = tmp_path / "epub_1" / "OEBPS" / "images" / "old.jpg"
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"old")

        make_orchestrator(two_volume_site.fetcher(), tmp_path).run("original", "1")

        assert not stale.exists()

    def test_summary_logged(self, two_volume_site, tmp_path, caplog):
        """The run summary is logged at the end."""
        with caplog.at_level(logging.INFO, logger="docln_epub.pipeline.orchestrator"):
            make_orchestrator(two_volume_site.fetcher(), tmp_path).run("original", "1")

        assert "2 chapters succeeded, 1 failed" in caplog.text


class TestArchive:
    """Tests for archive creation at the end of a run."""

    def test_archive_written(self, two_volume_site, tmp_path):
        """A docln_{id}.epub archive is written beside the package."""
        result = make_orchestrator(two_volume_site.fetcher(), tmp_path).run("original", "1")

        archive = tmp_path / "docln_1.epub"
        assert result.package.archive_path == str(archive)
        with zipfile.ZipFile(archive) as zf:
            assert zf.namelist()[0] == "mimetype"
            assert "OEBPS/content.opf" in zf.namelist()

    def test_directory_removed_when_not_kept(self, two_volume_site, tmp_path):
        """keep_directory=False leaves only the archive."""
        make_orchestrator(two_volume_site.fetcher(), tmp_path, keep_directory=False).run("original", "1")

        assert (tmp_path / "docln_1.epub").is_file()
        assert not (tmp_path / "epub_1").exists()

    def test_no_archive(self, two_volume_site, tmp_path):
        """create_archive=False writes only the directory."""
        result = make_orchestrator(two_volume_site.fetcher(), tmp_path, create_archive=False).run(
            "original", "1"
        )

        assert result.package.archive_path is None
        assert not (tmp_path / "docln_1.epub").exists()


class TestAbort:
    """Tests for runs that cannot produce a package."""

    def test_index_not_found(self, fake_site, tmp_path):
        """An unreachable index aborts the run."""
        orchestrator = make_orchestrator(fake_site.fetcher(), tmp_path)

        with pytest.raises(CrawlAbortedError) as exc_info:
            orchestrator.run("original", "1")

        assert exc_info.value.step == "index"
        assert exc_info.value.novel_id == "1"
        assert orchestrator.state == "aborted"

    def test_index_without_title(self, fake_site, index_html, tmp_path):
        """An index page missing the title aborts the run."""
        fake_site.add(INDEX_URL, index_html(title=""))
        orchestrator = make_orchestrator(fake_site.fetcher(), tmp_path)

        with pytest.raises(CrawlAbortedError) as exc_info:
            orchestrator.run("original", "1")

        assert exc_info.value.step == "index"
        assert "title" in exc_info.value.message

    def test_cancel(self, two_volume_site, tmp_path):
        """A cancelled run stops before fetching any chapter."""
        orchestrator = make_orchestrator(two_volume_site.fetcher(), tmp_path)
        orchestrator.cancel()

        with pytest.raises(CrawlAbortedError) as exc_info:
            orchestrator.run("original", "1")

        assert exc_info.value.step == "cancelled"
        assert two_volume_site.requested_urls == [INDEX_URL]
        assert orchestrator.state == "aborted"


class TestRetries:
    """Tests for page fetch retries."""

    def test_transport_error_retried(self, two_volume_site, tmp_path):
        """Transport errors are retried up to retry_attempts times."""
        two_volume_site.fail(CH1, httpx.ConnectError("connection refused"))

        result = make_orchestrator(two_volume_site.fetcher(), tmp_path, retry_attempts=3).run(
            "original", "1"
        )

        assert two_volume_site.requested_urls.count(CH1) == 3
        assert result.novel.chapters[0].status == "failed"

    def test_timeout_retried(self, two_volume_site, tmp_path):
        """Timeouts are retried."""
        two_volume_site.fail(CH3, httpx.ReadTimeout("timed out"))

        make_orchestrator(two_volume_site.fetcher(), tmp_path, retry_attempts=2).run("original", "1")

        assert two_volume_site.requested_urls.count(CH3) == 2

    def test_http_status_not_retried(self, two_volume_site, tmp_path):
        """HTTP status errors fail on the first attempt."""
        make_orchestrator(two_volume_site.fetcher(), tmp_path).run("original", "1")

        assert two_volume_site.requested_urls.count(CH2) == 1

    def test_invalid_retry_attempts(self, fake_site, tmp_path):
        with pytest.raises(ValueError):
            CrawlOrchestrator(fake_site.fetcher(), tmp_path, retry_attempts=0)


class TestRateLimiting:
    """Tests that every request of a run is spaced."""

    def test_requests_spaced(self, full_site, fake_clock, tmp_path):
        """Index, cover, chapter and image requests share one limiter."""
        fetcher = full_site.fetcher(min_interval=0.5, clock=fake_clock)

        make_orchestrator(fetcher, tmp_path).run("original", "1")

        requests = len(full_site.requested_urls)
        assert requests == 7
        assert sum(fake_clock.sleeps) == pytest.approx(0.5 * (requests - 1))


class TestHostileInput:
    """Tests for scraped input that must not stop the run."""

    def test_malformed_image_url(self, fake_site, index_html, chapter_html, tmp_path):
        """An image URL httpx cannot parse fails only that image."""
        fake_site.add(
            INDEX_URL,
            index_html(
                volumes=(
                    {
                        "anchor": "v1",
                        "title": "Volume One",
                        "chapters": [("Chapter 1", "/sang-tac/c101-chuong-1", True)],
                    },
                )
            ),
        )
        fake_site.add(CH1, chapter_html('<p>Text</p><p><img src="https://i.docln.net:abc/x.jpg"/></p>'))

        orchestrator = make_orchestrator(fake_site.fetcher(), tmp_path, create_archive=False)
        result = orchestrator.run("original", "1")

        assert orchestrator.state == "packaged"
        chapter = result.novel.chapters[0]
        assert chapter.status == "ok"
        assert chapter.assets[0].status == "failed"
        assert "illustration-missing" in chapter.body
        assert result.summary.assets_failed == 1

    def test_control_characters_in_title_and_body(self, fake_site, index_html, chapter_html, tmp_path):
        """Control characters are dropped and every document stays well formed."""
        fake_site.add(
            INDEX_URL,
            index_html(
                volumes=(
                    {
                        "anchor": "v1",
                        "title": "Volume One",
                        "chapters": [("Chap\x0bter 1", "/sang-tac/c101-chuong-1", False)],
                    },
                )
            ),
        )
        fake_site.add(CH1, chapter_html("<p>Text\x0c here.</p>"))

        orchestrator = make_orchestrator(fake_site.fetcher(), tmp_path, create_archive=False)
        result = orchestrator.run("original", "1")

        assert orchestrator.state == "packaged"
        assert result.summary.chapters_ok == 1
        oebps = tmp_path / "epub_1" / "OEBPS"
        for name in ("content.opf", "toc.ncx", "text/volume_001/chapter_001.xhtml"):
            etree.parse(str(oebps / name))


class TestPackageFailure:
    """Tests for failures while writing the package."""

    def test_serialization_error_aborts(self, two_volume_site, tmp_path, monkeypatch, caplog):
        """A builder failure aborts with the package step and a summary."""

        def fail(self, novel):
            raise ValueError("All strings must be XML compatible")

        monkeypatch.setattr(PackageBuilder, "_build_ncx", fail)
        orchestrator = make_orchestrator(two_volume_site.fetcher(), tmp_path)

        with caplog.at_level(logging.INFO, logger="docln_epub.pipeline.orchestrator"):
            with pytest.raises(CrawlAbortedError) as exc_info:
                orchestrator.run("original", "1")

        assert exc_info.value.step == "package"
        assert exc_info.value.novel_id == "1"
        assert orchestrator.state == "aborted"
        assert "2 chapters succeeded, 1 failed" in caplog.text
