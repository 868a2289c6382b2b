import json

import httpx
import pytest
import respx

from catalog_sync.ingest.attachments import AttachmentResolver
from catalog_sync.ingest.auth import TokenCache
from catalog_sync.ingest.models import AttachmentInfo, RawMediaItem
from catalog_sync.media.cache import META_FILENAME, VideoCacheRecord, is_cached, read_cache_record
from catalog_sync.media.pipeline import MediaPipeline, collect_media_files, image_path, video_slug
from catalog_sync.media.transcode import HlsTranscoder
from catalog_sync.utils.slug import slugify
from conftest import BASE_URL, TMP_URL, TOKEN_URL, FakeRunner, load_fixture, tmp_download_response

VIDEO = AttachmentInfo(file_token="tokVid001", name="brand film.mp4", size=1024)


def video_item(attachment=VIDEO, title="Brand Film", sort_order=0, record_id="recM001"):
    return RawMediaItem(media_type="video", title=title, attachment=attachment, sort_order=sort_order, record_id=record_id)


def mock_source(router, download_status=200):
    router.post(TOKEN_URL).mock(return_value=httpx.Response(200, json=load_fixture("bitable/token.json")))
    resolve = router.get(TMP_URL).mock(side_effect=tmp_download_response)
    download = router.get(url__startswith="https://download.example.com/").mock(
        return_value=httpx.Response(download_status, content=b"\x00\x00\x00\x18ftypmp42" * 64)
    )
    return resolve, download


def make_pipeline(session, settings, runner):
    tokens = TokenCache("cli_test", "secret", session=session, base_url=BASE_URL)
    resolver = AttachmentResolver(tokens, session=session, base_url=BASE_URL)
    return MediaPipeline(
        resolver,
        session=session,
        public_dir=settings.public_dir,
        scratch_dir=settings.scratch_dir,
        transcoder=HlsTranscoder(runner=runner),
    )


async def run_items(settings, runner, items, **mock_kwargs):
    async with respx.mock(assert_all_called=False) as router:
        routes = mock_source(router, **mock_kwargs)
        async with httpx.AsyncClient() as session:
            pipeline = make_pipeline(session, settings, runner)
            try:
                results = await pipeline.process_media_items(items)
            finally:
                pipeline.close()
    return results, pipeline.stats, routes


@pytest.mark.asyncio
async def test_video_transcoded_to_hls_with_cache_record(settings):
    runner = FakeRunner()
    results, stats, (resolve, download) = await run_items(settings, runner, [video_item()])

    assert [item.url for item in results] == ["videos/brand-film/index.m3u8"]
    assert stats.videos_transcoded == 1
    output_dir = settings.public_dir / "videos" / "brand-film"
    assert (output_dir / "index.m3u8").is_file()
    assert (output_dir / "brand-film_000.ts").is_file()
    assert read_cache_record(output_dir / META_FILENAME) == VideoCacheRecord("tokVid001", 1024, "brand film.mp4")

    args = runner.ffmpeg_calls[0]
    assert args[args.index("-codec") + 1] == "copy"
    assert args[args.index("-hls_time") + 1] == "10"
    assert args[args.index("-hls_segment_filename") + 1] == str(output_dir / "brand-film_%03d.ts")
    assert args[-1] == str(output_dir / "index.m3u8")
    assert list(settings.scratch_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_second_run_with_same_attachment_does_nothing(settings):
    runner = FakeRunner()
    await run_items(settings, runner, [video_item()])

    results, stats, (resolve, download) = await run_items(settings, runner, [video_item()])

    assert [item.url for item in results] == ["videos/brand-film/index.m3u8"]
    assert len(runner.ffmpeg_calls) == 1
    assert stats.videos_cached == 1
    assert stats.videos_transcoded == 0
    assert resolve.call_count == 0
    assert download.call_count == 0


@pytest.mark.asyncio
async def test_changed_size_forces_retranscode_and_purges_old_segments(settings):
    runner = FakeRunner()
    await run_items(settings, runner, [video_item()])
    stale = settings.public_dir / "videos" / "brand-film" / "brand-film_007.ts"
    stale.write_bytes(b"old")

    replaced = AttachmentInfo(file_token="tokVid001", name="brand film.mp4", size=4096)
    results, stats, _ = await run_items(settings, runner, [video_item(replaced)])

    assert len(results) == 1
    assert len(runner.ffmpeg_calls) == 2
    assert stats.videos_transcoded == 1
    assert not stale.exists()
    meta = settings.public_dir / "videos" / "brand-film" / META_FILENAME
    assert json.loads(meta.read_text())["size"] == 4096


@pytest.mark.asyncio
async def test_failed_transcode_drops_only_that_item(settings):
    runner = FakeRunner(ffmpeg_returncode=1)
    image = RawMediaItem(media_type="image", title="Cellar", external_url="https://cdn.example.com/c.jpg", sort_order=1)

    results, stats, _ = await run_items(settings, runner, [video_item(), image])

    assert [item.url for item in results] == ["https://cdn.example.com/c.jpg"]
    assert stats.videos_failed == 1
    assert stats.items_dropped == 1
    assert not (settings.public_dir / "videos" / "brand-film" / META_FILENAME).exists()
    assert list(settings.scratch_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_failed_download_drops_video(settings):
    runner = FakeRunner()
    results, stats, _ = await run_items(settings, runner, [video_item()], download_status=403)

    assert results == []
    assert stats.videos_failed == 1
    assert runner.ffmpeg_calls == []


@pytest.mark.asyncio
async def test_media_image_attachment_is_localized(settings):
    image = RawMediaItem(
        media_type="image",
        title="Poster",
        attachment=AttachmentInfo(file_token="tokImg", name="Poster.PNG", size=10),
        duration_ms=8000,
        record_id="recM002",
    )
    results, stats, _ = await run_items(settings, FakeRunner(), [image])

    assert results[0].url == "images/media/recm002.png"
    assert results[0].duration_ms == 8000
    assert (settings.public_dir / "images" / "media" / "recm002.png").is_file()
    assert stats.images_downloaded == 1


@pytest.mark.asyncio
async def test_results_sorted_by_sort_order_and_external_video_kept(settings):
    items = [
        RawMediaItem(media_type="image", title="b", external_url="https://cdn/b.jpg", sort_order=2),
        RawMediaItem(media_type="video", title="a", external_url="https://cdn/a.m3u8", sort_order=1),
        RawMediaItem(media_type="image", title="c", external_url="https://cdn/c.jpg", sort_order=2),
    ]
    results, _, _ = await run_items(settings, FakeRunner(), items)
    assert [item.title for item in results] == ["a", "b", "c"]
    assert results[0].media_type == "video"


def test_video_slug_sources():
    assert video_slug("My Video!!  Clip", VIDEO) == "my-video-clip"
    assert video_slug(None, VIDEO) == "brand-film-mp4"
    assert video_slug("黄酒 宣传片", VIDEO) == "黄酒-宣传片"
    assert video_slug("!!!", VIDEO) == "tokvid001"


def test_slugify_rules():
    assert slugify("--Hello__World--") == "hello__world"
    assert slugify("a.b/c") == "a-b-c"
    assert slugify("") == ""


def test_image_path_defaults_suffix():
    attachment = AttachmentInfo(file_token="tok", name="logo", size=1)
    assert image_path("brands", "B001", attachment) == "images/brands/b001.jpg"


def test_cache_record_mismatch_and_corruption(tmp_path):
    meta = tmp_path / META_FILENAME
    assert not is_cached(meta, VIDEO)
    meta.write_text("{not json")
    assert not is_cached(meta, VIDEO)
    meta.write_text(json.dumps({"file_token": "tokVid001", "size": 999, "source_name": "x"}))
    assert not is_cached(meta, VIDEO)
    meta.write_text(json.dumps({"file_token": "tokVid001", "size": 1024, "source_name": "renamed.mp4"}))
    assert is_cached(meta, VIDEO)


def test_collect_media_files(tmp_path):
    (tmp_path / "videos" / "a").mkdir(parents=True)
    (tmp_path / "videos" / "a" / "index.m3u8").write_text("#EXTM3U")
    (tmp_path / "videos" / "a" / "a_000.ts").write_bytes(b"x")
    (tmp_path / "videos" / "a" / META_FILENAME).write_text("{}")
    names = [path.name for path in collect_media_files(tmp_path)]
    assert names == ["a_000.ts", "index.m3u8"]
