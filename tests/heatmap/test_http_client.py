"""
Tests for the aiohttp heatmap client.

============================================================
TEST COVERAGE
============================================================
1. Successful fetch and request shape
2. Retry counts and backoff schedule
3. Error kinds surfaced after retries (HTTP, validation, network)
4. Session ownership and teardown mid-backoff
5. Controller cycles through the retrying client
============================================================

Requests go to a local aiohttp TestServer. Backoff sleeps are replaced
through the client's _delay hook so tests run instantly.
"""

import asyncio
import json
from unittest.mock import AsyncMock, call, patch

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from heatmap import (
    HeatmapApiClient,
    HeatmapResponse,
    HttpError,
    NetworkError,
    PollingController,
    PollPhase,
    ValidationError,
)


def _make_app(handler) -> web.Application:
    app = web.Application()
    app.router.add_get("/heatmap", handler)
    return app


def _base_url(server: TestServer) -> str:
    return str(server.make_url("/"))


# ============================================================
# SUCCESS PATH
# ============================================================

class TestFetchSuccess:
    """Tests for successful requests."""

    @pytest.mark.asyncio
    async def test_get_heatmap(self, payload_factory):
        """A valid response is returned as a HeatmapResponse."""
        seen = []

        async def handler(request):
            seen.append((request.query.get("asset"), request.headers.get("Accept")))
            return web.json_response(payload_factory(asset=request.query["asset"]))

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server)) as client:
                response = await client.get_heatmap("USOIL")

        assert isinstance(response, HeatmapResponse)
        assert response.asset == "USOIL"
        assert seen == [("USOIL", "application/json")]

    @pytest.mark.asyncio
    async def test_symbol_is_url_encoded(self, payload_factory):
        """Symbols with reserved characters arrive intact."""
        seen = []

        async def handler(request):
            seen.append(request.query["asset"])
            return web.json_response(payload_factory(asset=request.query["asset"]))

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server)) as client:
                response = await client.get_heatmap("EUR/USD&X")

        assert seen == ["EUR/USD&X"]
        assert response.asset == "EUR/USD&X"

    def test_build_url(self):
        """Trailing slash is stripped and the symbol encoded."""
        client = HeatmapApiClient("https://scores.example.com/api/")
        assert client.build_url("EUR/USD") == "https://scores.example.com/api/heatmap?asset=EUR%2FUSD"

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, payload_factory):
        """Two failures then success returns the response."""
        attempts = {"count": 0}

        async def handler(request):
            attempts["count"] += 1
            if attempts["count"] < 3:
                return web.Response(status=503, text="busy")
            return web.json_response(payload_factory())

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server), max_retries=3) as client:
                with patch.object(client, "_delay", new=AsyncMock()) as delay:
                    response = await client.get_heatmap("USOIL")

                stats = client.get_stats()

        assert response.asset == "USOIL"
        assert attempts["count"] == 3
        assert delay.await_args_list == [call(1.0), call(2.0)]
        assert stats["retries"] == 2
        assert stats["successful_fetches"] == 1
        assert stats["failed_fetches"] == 0


# ============================================================
# RETRY EXHAUSTION
# ============================================================

class TestRetryExhaustion:
    """Tests for terminal failures."""

    @pytest.mark.asyncio
    async def test_http_500_retries_then_raises(self):
        """Always-500 makes exactly 1 + max_retries attempts with growing delays."""
        attempts = {"count": 0}

        async def handler(request):
            attempts["count"] += 1
            return web.Response(status=500, text="boom")

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server), max_retries=3) as client:
                with patch.object(client, "_delay", new=AsyncMock()) as delay:
                    with pytest.raises(HttpError) as exc_info:
                        await client.get_heatmap("USOIL")

        assert attempts["count"] == 4
        assert exc_info.value.status_code == 500
        assert exc_info.value.asset == "USOIL"
        delays = [c.args[0] for c in delay.await_args_list]
        assert delays == [1.0, 2.0, 4.0]
        assert delays == sorted(delays)

    @pytest.mark.asyncio
    async def test_4xx_retried_like_5xx(self):
        """Client errors are not special-cased."""
        attempts = {"count": 0}

        async def handler(request):
            attempts["count"] += 1
            return web.Response(status=404)

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server), max_retries=2) as client:
                with patch.object(client, "_delay", new=AsyncMock()):
                    with pytest.raises(HttpError) as exc_info:
                        await client.get_heatmap("NOPE")

        assert attempts["count"] == 3
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_pillars_propagates_validation_error(self, payload_factory):
        """A single-asset validation failure exhausts retries and raises."""
        attempts = {"count": 0}
        payload = payload_factory()
        del payload["pillars"]

        async def handler(request):
            attempts["count"] += 1
            return web.json_response(payload)

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server), max_retries=3) as client:
                with patch.object(client, "_delay", new=AsyncMock()):
                    with pytest.raises(ValidationError, match="pillars") as exc_info:
                        await client.get_heatmap("USOIL")

        assert attempts["count"] == 4
        assert exc_info.value.field == "pillars"

    @pytest.mark.asyncio
    async def test_invalid_json_is_validation_error(self):
        """A non-JSON body is treated as a validation failure."""
        async def handler(request):
            return web.Response(text="<html>oops</html>", content_type="text/html")

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server), max_retries=1) as client:
                with patch.object(client, "_delay", new=AsyncMock()):
                    with pytest.raises(ValidationError, match="not valid JSON"):
                        await client.get_heatmap("USOIL")

    @pytest.mark.asyncio
    async def test_json_array_body_rejected(self):
        """A JSON array is not an object."""
        async def handler(request):
            return web.Response(text=json.dumps([1, 2]), content_type="application/json")

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server), max_retries=0) as client:
                with pytest.raises(ValidationError, match="Invalid response format"):
                    await client.get_heatmap("USOIL")

    @pytest.mark.asyncio
    async def test_unreachable_host_is_network_error(self):
        """Transport failures surface as NetworkError after retries."""
        async with HeatmapApiClient("http://127.0.0.1:1", max_retries=2, timeout=2) as client:
            with patch.object(client, "_delay", new=AsyncMock()) as delay:
                with pytest.raises(NetworkError) as exc_info:
                    await client.get_heatmap("USOIL")

            stats = client.get_stats()

        assert delay.await_count == 2
        assert stats["total_attempts"] == 3
        assert stats["failed_fetches"] == 1
        assert isinstance(exc_info.value.__cause__, aiohttp.ClientError)

    @pytest.mark.asyncio
    async def test_zero_retries_single_attempt(self):
        """max_retries=0 means one attempt and no delay."""
        attempts = {"count": 0}

        async def handler(request):
            attempts["count"] += 1
            return web.Response(status=502)

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server), max_retries=0) as client:
                with patch.object(client, "_delay", new=AsyncMock()) as delay:
                    with pytest.raises(HttpError):
                        await client.get_heatmap("USOIL")

        assert attempts["count"] == 1
        delay.assert_not_awaited()


# ============================================================
# CONFIGURATION
# ============================================================

class TestClientConfiguration:
    """Tests for constructor arguments and backoff math."""

    def test_defaults(self):
        client = HeatmapApiClient("http://localhost:8000")
        assert client.max_retries == 3
        assert client.timeout == HeatmapApiClient.DEFAULT_TIMEOUT

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            HeatmapApiClient("http://localhost:8000", max_retries=-1)

    def test_backoff_doubles_from_one_second(self):
        client = HeatmapApiClient("http://localhost:8000")
        assert [client.backoff_delay(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_backoff_is_capped(self):
        client = HeatmapApiClient("http://localhost:8000")
        assert client.backoff_delay(10) == HeatmapApiClient.MAX_BACKOFF_SECONDS

        capped = HeatmapApiClient("http://localhost:8000", max_backoff=3.0)
        assert [capped.backoff_delay(n) for n in range(4)] == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self, payload_factory):
        """A caller-provided session is left open on close()."""
        async def handler(request):
            return web.json_response(payload_factory())

        async with TestServer(_make_app(handler)) as server:
            async with aiohttp.ClientSession() as session:
                client = HeatmapApiClient(_base_url(server), session=session)
                await client.get_heatmap("USOIL")
                await client.close()

                assert not session.closed


# ============================================================
# TEARDOWN
# ============================================================

class TestClose:
    """Tests for closing the client while a retry chain is pending."""

    @pytest.mark.asyncio
    async def test_close_during_backoff_ends_retry_chain(self):
        """A retry after close() fails fast and opens no new session."""
        attempts = {"count": 0}
        entered = asyncio.Event()
        release = asyncio.Event()

        async def handler(request):
            attempts["count"] += 1
            return web.Response(status=500)

        async def held_delay(seconds):
            entered.set()
            await release.wait()

        async with TestServer(_make_app(handler)) as server:
            client = HeatmapApiClient(_base_url(server), max_retries=3)
            with patch.object(client, "_delay", new=held_delay):
                task = asyncio.create_task(client.get_heatmap("USOIL"))
                await entered.wait()

                await client.close()
                release.set()

                with pytest.raises(NetworkError, match="Client closed"):
                    await task

        assert attempts["count"] == 1
        assert client._session is None
        assert client.get_stats()["failed_fetches"] == 1

    @pytest.mark.asyncio
    async def test_closed_client_rejects_new_calls(self):
        client = HeatmapApiClient("http://localhost:8000", max_retries=2)
        await client.close()

        with patch.object(client, "_delay", new=AsyncMock()) as delay:
            with pytest.raises(NetworkError, match="Client closed"):
                await client.get_heatmap("USOIL")

        delay.assert_not_awaited()
        assert client._session is None


# ============================================================
# CONTROLLER OVER HTTP
# ============================================================

class TestControllerOverHttp:
    """End-to-end cycles through the real retrying client."""

    @pytest.mark.asyncio
    async def test_exhausted_asset_dropped_from_cycle(self, payload_factory):
        """One symbol failing every attempt is absent; the others are published."""
        attempts: dict[str, int] = {}

        async def handler(request):
            asset = request.query["asset"]
            attempts[asset] = attempts.get(asset, 0) + 1
            if asset == "USD":
                return web.Response(status=500)
            return web.json_response(payload_factory(asset=asset))

        async with TestServer(_make_app(handler)) as server:
            async with HeatmapApiClient(_base_url(server), max_retries=2) as client:
                with patch.object(client, "_delay", new=AsyncMock()) as delay:
                    controller = PollingController(client, assets=["USOIL", "USD", "EUR"])
                    state = await controller.refresh_now()
                    await controller.stop()

        assert state.phase is PollPhase.READY
        assert state.error is None
        assert state.assets == ["USOIL", "EUR"]
        assert attempts == {"USOIL": 1, "USD": 3, "EUR": 1}
        assert [c.args[0] for c in delay.await_args_list] == [1.0, 2.0]
        assert isinstance(controller.last_batch.failures[0].error, HttpError)

    @pytest.mark.asyncio
    async def test_stop_then_close_mid_backoff(self):
        """Teardown while a cycle waits to retry leaves no open session."""
        entered = asyncio.Event()
        release = asyncio.Event()

        async def handler(request):
            return web.Response(status=500)

        async def held_delay(seconds):
            entered.set()
            await release.wait()

        async with TestServer(_make_app(handler)) as server:
            client = HeatmapApiClient(_base_url(server), max_retries=1)
            with patch.object(client, "_delay", new=held_delay):
                controller = PollingController(client, assets=["USOIL"])
                await controller.start()
                await entered.wait()

                await controller.stop()
                await client.close()
                release.set()
                await controller.wait_for_cycle()

        assert client._session is None
        assert controller.phase is PollPhase.STOPPED
        assert controller.get_stats()["cycles_discarded"] == 1
