# ABOUTME: Tests for the RxNav HTTP client.
# ABOUTME: Validates endpoint paths, raw passthrough, and failure-to-None degradation.

import logging

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from src.clients.rxnorm import RxNormClient, RxNormError


class TestRxNormClient:
    """Tests for URL building and error normalization."""

    @pytest.fixture
    def client(self):
        return RxNormClient(timeout=10.0)

    def test_client_default_base_url(self, client):
        """Client should default to the public RxNav REST root."""
        assert client.base_url == "https://rxnav.nlm.nih.gov/REST"

    def test_client_default_timeout(self):
        """Client should use a 10 second timeout by default."""
        assert RxNormClient().timeout == 10.0

    def test_build_url(self, client):
        """Client should join base URL and path with a single slash."""
        assert client.build_url("drugs.json") == "https://rxnav.nlm.nih.gov/REST/drugs.json"
        assert (
            client.build_url("/rxcui/1/status.json")
            == "https://rxnav.nlm.nih.gov/REST/rxcui/1/status.json"
        )

    def test_trailing_slash_stripped(self):
        client = RxNormClient(base_url="https://example.test/REST/")
        assert client.build_url("drugs.json") == "https://example.test/REST/drugs.json"

    @pytest.mark.asyncio
    async def test_request_raises_on_timeout(self, client):
        """_request should wrap timeouts in RxNormError."""
        with patch.object(client, "_fetch", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.side_effect = httpx.TimeoutException("Request timed out")

            with pytest.raises(RxNormError) as exc_info:
                await client._request("fetch_status", "rxcui/1/status.json")

            assert "timeout" in str(exc_info.value).lower()

    @pytest.mark.asyncio
    async def test_request_raises_on_http_error(self, client):
        """_request should wrap HTTP status errors in RxNormError."""
        with patch.object(client, "_fetch", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.side_effect = httpx.HTTPStatusError(
                "Server error",
                request=httpx.Request("GET", "https://example.com"),
                response=httpx.Response(503),
            )

            with pytest.raises(RxNormError) as exc_info:
                await client._request("fetch_status", "rxcui/1/status.json")

            assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fetch_returns_none_on_timeout(self, client):
        """Public fetch methods should never raise."""
        with patch.object(client, "_fetch", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.side_effect = httpx.ReadTimeout("Request timed out")

            assert await client.fetch_status("1191") is None


class TestRxNormClientEndpoints:
    """Tests against the fake RxNav upstream."""

    @pytest.mark.asyncio
    async def test_fetch_drugs_by_name(self, rxnorm_client, rxnav):
        """Should GET drugs.json with the name query parameter."""
        payload = {"drugGroup": {"conceptGroup": []}}
        rxnav.respond("drugs.json", payload)

        result = await rxnorm_client.fetch_drugs_by_name("aspirin")

        assert result == payload
        assert rxnav.calls["drugs.json"] == 1
        assert rxnav.requests[0].url.params["name"] == "aspirin"
        assert rxnav.requests[0].method == "GET"

    @pytest.mark.asyncio
    async def test_fetch_drugs_by_name_encodes_query(self, rxnorm_client, rxnav):
        rxnav.respond("drugs.json", {})

        await rxnorm_client.fetch_drugs_by_name("aspirin 81 mg & more")

        assert rxnav.requests[0].url.params["name"] == "aspirin 81 mg & more"

    @pytest.mark.asyncio
    async def test_fetch_history_status(self, rxnorm_client, rxnav):
        payload = {"rxcuiStatusHistory": {"attributes": {}}}
        rxnav.respond("rxcui/123456/historystatus.json", payload)

        assert await rxnorm_client.fetch_history_status("123456") == payload

    @pytest.mark.asyncio
    async def test_fetch_status(self, rxnorm_client, rxnav):
        payload = {"rxcuiStatus": {"status": "Active"}}
        rxnav.respond("rxcui/1191/status.json", payload)

        assert await rxnorm_client.fetch_status("1191") == payload

    @pytest.mark.asyncio
    async def test_fetch_properties(self, rxnorm_client, rxnav):
        payload = {"properties": {"name": "Aspirin 81 MG Oral Tablet", "suppress": "N"}}
        rxnav.respond("rxcui/243670/properties.json", payload)

        assert await rxnorm_client.fetch_properties("243670") == payload

    @pytest.mark.asyncio
    async def test_document_returned_unmodified(self, rxnorm_client, rxnav):
        """Unexpected shapes pass through untouched."""
        payload = {"unexpected": [1, 2, {"nested": None}]}
        rxnav.respond("rxcui/1/status.json", payload)

        assert await rxnorm_client.fetch_status("1") == payload

    @pytest.mark.asyncio
    async def test_non_success_status_returns_none(self, rxnorm_client, rxnav, caplog):
        """Non-2xx responses should log a diagnostic and return None."""
        rxnav.respond("rxcui/1191/status.json", {"error": "boom"}, status_code=500)

        with caplog.at_level(logging.ERROR, logger="src.clients.rxnorm"):
            result = await rxnorm_client.fetch_status("1191")

        assert result is None
        assert len(caplog.records) == 1
        message = caplog.records[0].getMessage()
        assert "fetch_status" in message
        assert "1191" in message
        assert "500" in message

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self, rxnorm_client, rxnav):
        assert await rxnorm_client.fetch_properties("missing") is None
        assert rxnav.calls["rxcui/missing/properties.json"] == 1

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self, rxnorm_client, rxnav, caplog):
        rxnav.fail("drugs.json", httpx.ReadTimeout)

        with caplog.at_level(logging.ERROR, logger="src.clients.rxnorm"):
            result = await rxnorm_client.fetch_drugs_by_name("aspirin")

        assert result is None
        assert "timeout" in caplog.records[0].getMessage().lower()

    @pytest.mark.asyncio
    async def test_connect_error_returns_none(self, rxnorm_client, rxnav):
        rxnav.fail("rxcui/1/historystatus.json", httpx.ConnectError)

        assert await rxnorm_client.fetch_history_status("1") is None

    @pytest.mark.asyncio
    async def test_invalid_json_returns_none(self, rxnorm_client, rxnav, caplog):
        rxnav.respond_raw("rxcui/1/status.json", b"<html>maintenance</html>")

        with caplog.at_level(logging.ERROR, logger="src.clients.rxnorm"):
            result = await rxnorm_client.fetch_status("1")

        assert result is None
        assert "json" in caplog.records[0].getMessage().lower()

    @pytest.mark.asyncio
    async def test_rxcui_is_path_escaped(self, rxnorm_client, rxnav):
        """An rxcui cannot escape its path segment."""
        await rxnorm_client.fetch_status("1/../drugs")

        assert rxnav.calls["drugs.json"] == 0
        assert rxnav.total_calls == 1

    @pytest.mark.asyncio
    async def test_unencodable_rxcui_returns_none(self, rxnorm_client, rxnav, caplog):
        """An rxcui that cannot be UTF-8 encoded is logged, not raised."""
        with caplog.at_level(logging.ERROR, logger="src.clients.rxnorm"):
            result = await rxnorm_client.fetch_status("\ud800")

        assert result is None
        assert len(caplog.records) == 1
        assert "fetch_status" in caplog.records[0].getMessage()
        assert rxnav.total_calls == 0


class TestRxNormClientIntegration:
    """Integration tests that hit the real API (marked for selective running)."""

    @pytest.fixture
    def client(self):
        return RxNormClient(timeout=10.0)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_real_drug_search(self, client):
        """Test real drugs.json search for 'aspirin'."""
        result = await client.fetch_drugs_by_name("aspirin")

        assert result is not None
        groups = result["drugGroup"]["conceptGroup"]
        assert any(g.get("tty") == "SBD" for g in groups)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_real_status(self, client):
        """Aspirin (1191) should be an active concept."""
        result = await client.fetch_status("1191")

        assert result is not None
        assert result["rxcuiStatus"]["status"] == "Active"
