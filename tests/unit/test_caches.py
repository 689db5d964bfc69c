import asyncio
import base64

from slide_sync.caches import NEGATIVE, FontCache, ImageCache, NodeCache, StyleCache
from slide_sync.css_utils import RGBA

from fakes import FakeHost, template


def test_concurrent_lookups_share_one_host_call():
    host = FakeHost(templates={"1:2": template("1:2")}, delay=0.01)
    cache = NodeCache(host)

    async def scenario():
        return await asyncio.gather(*(cache.get("1:2") for _ in range(5)))

    results = asyncio.run(scenario())
    assert all(result is results[0] for result in results)
    assert host.calls['lookup_node'] == 1
    assert cache.lookups == 1


def test_negative_results_are_memoized_and_notified_once():
    host = FakeHost()
    cache = NodeCache(host, label="Title prefix")

    async def scenario():
        first = await cache.get("missing")
        second = await cache.get("missing")
        concurrent = await asyncio.gather(cache.get("other"), cache.get("other"))
        return first, second, concurrent

    first, second, concurrent = asyncio.run(scenario())
    assert first is None and second is None and concurrent == [None, None]
    assert cache.peek("missing") is NEGATIVE
    assert cache.failed_keys == {"missing", "other"}
    assert host.calls['lookup_node'] == 2
    assert host.notifications == [
        ("Title prefix not found: missing", True),
        ("Title prefix not found: other", True),
    ]


def test_clear_is_coarse_and_does_not_repeat_notifications():
    host = FakeHost(templates={"good": template("good")})
    cache = NodeCache(host)

    async def scenario():
        await cache.get("good")
        await cache.get("bad")
        cache.clear()
        assert cache.peek("good") is None
        await cache.get("good")
        await cache.get("bad")

    asyncio.run(scenario())
    assert host.calls['lookup_node'] == 4
    assert len(host.notifications) == 1


def test_recovered_key_notifies_again_on_a_later_failure():
    host = FakeHost()
    cache = StyleCache(host)

    async def scenario():
        assert await cache.get("accent") is None
        host.styles["accent"] = RGBA(1, 2, 3)
        cache.clear()
        assert await cache.get("accent") == RGBA(1, 2, 3)
        del host.styles["accent"]
        cache.clear()
        assert await cache.get("accent") is None

    asyncio.run(scenario())
    assert host.notifications == [('Paint style "accent" not found', True)] * 2


def test_component_set_resolves_to_default_variant_or_first_component():
    default = template("cs:default", kind="component")
    first = template("cs:first", kind="component")
    host = FakeHost(templates={
        "with-default": template("with-default", kind="component_set", default_variant=default,
                                 variants=[first, default]),
        "without-default": template("without-default", kind="component_set",
                                    variants=[template("f", kind="frame"), first]),
        "empty": template("empty", kind="component_set"),
        "text": template("text", kind="text"),
    })
    cache = NodeCache(host)

    async def scenario():
        return [await cache.get(key) for key in ("with-default", "without-default", "empty", "text")]

    with_default, without_default, empty, text = asyncio.run(scenario())
    assert with_default is default
    assert without_default is first
    assert empty is None
    assert text is None


def test_disallowed_kinds_are_negative():
    host = FakeHost(templates={"g": template("g", kind="group")})
    cache = NodeCache(host, allowed_kinds=("frame",))
    assert asyncio.run(cache.get("g")) is None
    assert cache.is_negative("g")


def test_font_cache_tracks_available_pairs():
    host = FakeHost(fonts={("Inter", "Regular"), ("Inter", "Bold")})
    cache = FontCache(host)

    available = asyncio.run(cache.ensure([("Inter", "Regular"), ("Inter", "Bold"), ("Inter", "Italic"),
                                          ("Inter", "Regular")]))
    assert available == {("Inter", "Regular"), ("Inter", "Bold")}
    assert host.calls['load_font'] == 3
    assert cache.is_negative(("Inter", "Italic"))

    cache.clear()
    assert cache.available == set()


def test_identical_embedded_images_upload_once():
    host = FakeHost()
    cache = ImageCache(host, sample_size=16)
    data = base64.b64encode(b"\x89PNG fake image bytes" * 10).decode()

    async def scenario():
        first = await cache.get(cache.key_for(url="a.png", data_base64=data))
        second = await cache.get(cache.key_for(url="b.png", data_base64=data))
        return first, second

    first, second = asyncio.run(scenario())
    assert first is second
    assert host.calls['create_image'] == 1
    assert cache.key_for(data_base64=data).startswith("base64:")


def test_remote_images_are_keyed_by_url():
    host = FakeHost(remote={"https://example.com/a.png": b"bytes"})
    cache = ImageCache(host)

    async def scenario():
        ok = await cache.get(cache.key_for(url="https://example.com/a.png", source="remote"))
        again = await cache.get(cache.key_for(url="https://example.com/a.png"))
        missing = await cache.get(cache.key_for(url="https://example.com/missing.png"))
        return ok, again, missing

    ok, again, missing = asyncio.run(scenario())
    assert ok == ("image", b"bytes")
    assert again is ok
    assert missing is None
    assert host.calls['fetch_remote'] == 2
    assert host.notifications == [('Failed to load image "https://example.com/missing.png"', True)]


def test_local_image_without_data_has_no_key():
    cache = ImageCache(FakeHost())
    assert cache.key_for(url="images/local.png", source="local") is None


def test_invalid_base64_is_negative():
    host = FakeHost()
    cache = ImageCache(host)
    assert asyncio.run(cache.get(cache.key_for(data_base64="!!!not base64!!!"))) is None
    assert host.calls['create_image'] == 0
    assert len(host.notifications) == 1
