import asyncio
import json

import httpx
import pytest

from conftest import RecordingHandler, json_response, make_client, report_row
from realize.connectors.backstage.reports import ReportFetcher, _StreamReader
from realize.core.errors import PageOutOfRangeError, RealizeAPIError


class ChunkedStream(httpx.AsyncByteStream):
    """Serves a body in small chunks and records how many were pulled."""

    def __init__(self, body: bytes, chunk_size: int = 64):
        self.chunks = [body[i : i + chunk_size] for i in range(0, len(body), chunk_size)]
        self.pulled = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.pulled += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def _sites(count):
    return {"results": [report_row(float(100 - i), site=f"site-{i}.com") for i in range(count)]}


def _fetch_page(payload, page):
    handler = RecordingHandler(lambda request: json_response(payload))
    fetcher = ReportFetcher(make_client(handler))
    result = asyncio.run(
        fetcher.fetch_site_breakdown_page("acme", "2024-05-01", "2024-05-07", page=page)
    )
    return result, handler


@pytest.mark.parametrize("page, expected", [(1, 10), (2, 10), (4, 7), (5, 0)])
def test_page_sizes_for_37_sites(page, expected):
    result, handler = _fetch_page(_sites(37), page)

    assert len(result.rows) == expected
    assert result.buffered_rows == 37
    assert result.capped is False
    assert handler.paths == ["/backstage/api/1.0/acme/reports/campaign-summary/dimensions/site_breakdown"]


def test_page_rows_are_sliced_in_order():
    result, _ = _fetch_page(_sites(37), 2)
    assert [r.get("site") for r in result.rows] == [f"site-{i}.com" for i in range(10, 20)]


def test_page_beyond_window_fails_before_any_request():
    handler = RecordingHandler(lambda request: json_response(_sites(37)))
    fetcher = ReportFetcher(make_client(handler))

    with pytest.raises(PageOutOfRangeError) as exc:
        asyncio.run(fetcher.fetch_site_breakdown_page("acme", "2024-05-01", "2024-05-07", page=6))

    assert exc.value.max_page == 5
    assert handler.requests == []

    with pytest.raises(PageOutOfRangeError):
        asyncio.run(fetcher.fetch_site_breakdown_page("acme", "2024-05-01", "2024-05-07", page=0))


def test_stream_stops_reading_once_cap_is_buffered():
    body = json.dumps(_sites(400)).encode()
    stream = ChunkedStream(body)
    fetcher = ReportFetcher(
        make_client(lambda request: httpx.Response(200, stream=stream))
    )

    result = asyncio.run(
        fetcher.fetch_site_breakdown_page("acme", "2024-05-01", "2024-05-07", page=5)
    )

    assert result.capped is True
    assert result.buffered_rows == 50
    assert len(result.rows) == 10
    assert result.rows[-1].get("site") == "site-49.com"
    assert stream.pulled < len(stream.chunks)
    assert stream.closed is True


def test_malformed_site_rows_are_skipped():
    payload = {"results": [report_row(1.0, site="a.com"), {"site": "b.com"}, report_row(2.0, site="c.com")]}
    result, _ = _fetch_page(payload, 1)

    assert [r.get("site") for r in result.rows] == ["a.com", "c.com"]
    assert result.dropped_rows == 1


def test_site_stream_error_status_raises():
    fetcher = ReportFetcher(make_client(lambda request: httpx.Response(500, text="boom")))
    with pytest.raises(RealizeAPIError) as exc:
        asyncio.run(fetcher.fetch_site_breakdown_page("acme", "2024-05-01", "2024-05-07"))
    assert exc.value.status_code == 500


def test_small_chunks_parse_into_the_same_page():
    body = json.dumps(_sites(37)).encode()
    fetcher = ReportFetcher(
        make_client(lambda request: httpx.Response(200, stream=ChunkedStream(body, chunk_size=7)))
    )

    result = asyncio.run(
        fetcher.fetch_site_breakdown_page("acme", "2024-05-01", "2024-05-07", page=4)
    )

    assert result.buffered_rows == 37
    assert [r.get("site") for r in result.rows] == [f"site-{i}.com" for i in range(30, 37)]


def test_zero_size_read_does_not_consume_the_body():
    async def read_all():
        response = httpx.Response(200, stream=ChunkedStream(b'{"results": []}', chunk_size=4))
        reader = _StreamReader(response)
        assert await reader.read(0) == b""
        parts = []
        while True:
            data = await reader.read(3)
            if not data:
                return parts
            assert len(data) <= 3
            parts.append(data)

    assert b"".join(asyncio.run(read_all())) == b'{"results": []}'


def test_malformed_stream_body_raises_api_error():
    stream = ChunkedStream(b'{"results": [{"spent": 1.0, "site": "a.com"}, {"spent": ')
    fetcher = ReportFetcher(make_client(lambda request: httpx.Response(200, stream=stream)))

    with pytest.raises(RealizeAPIError) as exc:
        asyncio.run(fetcher.fetch_site_breakdown_page("acme", "2024-05-01", "2024-05-07"))

    assert "Malformed JSON" in exc.value.message
