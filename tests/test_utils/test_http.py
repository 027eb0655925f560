from __future__ import annotations

import httpx
import pytest
from typing import Dict, Optional
from unittest.mock import AsyncMock, MagicMock, patch

from depmatrix.utils.http import HTTPClient
from depmatrix.exceptions import (
    NetworkError,
    NotFoundError,
    RateLimitError,
    RemoteError,
)


def _response(status: int, headers: Optional[Dict[str, str]] = None, text: str = "") -> MagicMock:
    response = MagicMock(spec=httpx.Response)
    response.status_code = status
    response.headers = headers or {}
    response.text = text
    return response


@pytest.fixture
def no_sleep():
    """Skip backoff delays."""
    with patch("depmatrix.utils.http.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


@pytest.mark.unit
class TestHTTPClientInit:
    """Tests for HTTPClient initialization and configuration."""

    def test_default_values(self) -> None:
        client = HTTPClient()

        assert client.timeout == 30
        assert client.max_retries == 3
        assert client.rate_limit_delay == 0.0
        assert client.verify_ssl is True
        assert client.max_concurrency == 10
        assert client.user_agent.startswith("depmatrix/")
        assert client.token_provider is None

    def test_custom_user_agent(self) -> None:
        assert HTTPClient(user_agent="probe/1.0").user_agent == "probe/1.0"

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self) -> None:
        client = HTTPClient()

        async with client:
            assert isinstance(client._client, httpx.AsyncClient)
            assert client._client.headers["Accept"] == "application/vnd.github+json"

        assert client._client is None


@pytest.mark.unit
class TestHTTPClientAuth:
    """Bearer token handling."""

    @pytest.mark.asyncio
    async def test_token_read_on_every_request(self) -> None:
        tokens = iter(["first", None])
        client = HTTPClient(max_retries=0, token_provider=lambda: next(tokens))

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(200)

            async with client:
                await client.get("https://api.github.com/a")
                await client.get("https://api.github.com/b")

        first_headers = mock_request.call_args_list[0].kwargs["headers"]
        second_headers = mock_request.call_args_list[1].kwargs["headers"]
        assert first_headers["Authorization"] == "Bearer first"
        assert "Authorization" not in second_headers

    @pytest.mark.asyncio
    async def test_extra_headers_are_sent(self) -> None:
        client = HTTPClient(max_retries=0)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(304)

            async with client:
                response = await client.get(
                    "https://api.github.com/a", headers={"If-None-Match": '"abc"'}
                )

        assert response.status_code == 304
        assert mock_request.call_args.kwargs["headers"]["If-None-Match"] == '"abc"'


@pytest.mark.unit
class TestHTTPClientRequestWithRetry:
    """Tests for HTTPClient._request_with_retry status handling."""

    @pytest.mark.asyncio
    async def test_successful_request(self) -> None:
        client = HTTPClient(max_retries=1)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(200)

            async with client:
                response = await client._request_with_retry("GET", "https://example.com")

        assert response.status_code == 200
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_strips_quotes_and_whitespace_from_url(self) -> None:
        client = HTTPClient(max_retries=0)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(200)

            async with client:
                await client._request_with_retry("GET", ' "https://example.com" ')

        assert mock_request.call_args[0][1] == "https://example.com"

    @pytest.mark.asyncio
    async def test_404_raises_not_found_without_retry(self) -> None:
        client = HTTPClient(max_retries=3)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(404, text='{"message": "Not Found"}')

            async with client:
                with pytest.raises(NotFoundError) as exc_info:
                    await client.get("https://api.github.com/repos/o/r/contents/x")

        assert exc_info.value.status_code == 404
        assert "Not Found" in exc_info.value.response_body
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_403_with_exhausted_quota_is_rate_limit(self) -> None:
        client = HTTPClient(max_retries=3)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(
                403, headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"}
            )

            async with client:
                with pytest.raises(RateLimitError) as exc_info:
                    await client.get("https://api.github.com/repos/o/r/tags")

        assert exc_info.value.status_code == 403
        assert "1700000000" in str(exc_info.value)
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_other_4xx_is_remote_error(self) -> None:
        client = HTTPClient(max_retries=3)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(401, text="Bad credentials")

            async with client:
                with pytest.raises(RemoteError) as exc_info:
                    await client.get("https://api.github.com/repos/o/r/tags")

        assert not isinstance(exc_info.value, (NotFoundError, RateLimitError))
        assert exc_info.value.status_code == 401
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_429_retries_after_delay(self, no_sleep: AsyncMock) -> None:
        client = HTTPClient(max_retries=1)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [_response(429, headers={"Retry-After": "2"}), _response(200)]

            async with client:
                response = await client.get("https://example.com")

        assert response.status_code == 200
        no_sleep.assert_any_await(2)

    @pytest.mark.asyncio
    async def test_429_gives_up_after_limit(self, no_sleep: AsyncMock) -> None:
        client = HTTPClient(max_retries=10)
        client._max_429_retries = 2

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(429, headers={"Retry-After": "0"})

            async with client:
                with pytest.raises(RateLimitError):
                    await client.get("https://example.com")

        assert mock_request.call_count == 3

    @pytest.mark.asyncio
    async def test_persistent_429_is_rate_limit_when_attempts_run_out(
        self, no_sleep: AsyncMock
    ) -> None:
        client = HTTPClient(max_retries=3)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(
                429, headers={"Retry-After": "0"}, text="slow down"
            )

            async with client:
                with pytest.raises(RateLimitError) as exc_info:
                    await client.get("https://api.github.com/x")

        assert exc_info.value.status_code == 429
        assert exc_info.value.response_body == "slow down"
        assert mock_request.call_count == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "header",
        ["Wed, 21 Oct 2015 07:28:00 GMT", "soon"],
        ids=["http-date-in-past", "garbage"],
    )
    async def test_retry_after_that_is_not_seconds(
        self, no_sleep: AsyncMock, header: str
    ) -> None:
        client = HTTPClient(max_retries=1)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [
                _response(429, headers={"Retry-After": header}),
                _response(200),
            ]

            async with client:
                response = await client.get("https://example.com")

        assert response.status_code == 200
        delay = no_sleep.await_args_list[0].args[0]
        assert 0.0 <= delay <= 1.0

    @pytest.mark.asyncio
    async def test_5xx_retried_then_remote_error(self, no_sleep: AsyncMock) -> None:
        client = HTTPClient(max_retries=2)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(502, text="Bad gateway")

            async with client:
                with pytest.raises(RemoteError) as exc_info:
                    await client.get("https://example.com")

        assert exc_info.value.status_code == 502
        assert mock_request.call_count == 3

    @pytest.mark.asyncio
    async def test_5xx_then_success(self, no_sleep: AsyncMock) -> None:
        client = HTTPClient(max_retries=2)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [_response(500), _response(200)]

            async with client:
                response = await client.get("https://example.com")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_transport_failures_become_network_error(self, no_sleep: AsyncMock) -> None:
        client = HTTPClient(max_retries=1)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [
                httpx.ConnectError("refused"),
                httpx.ReadTimeout("slow"),
            ]

            async with client:
                with pytest.raises(NetworkError) as exc_info:
                    await client.get("https://example.com")

        assert not isinstance(exc_info.value, RemoteError)
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)
        assert mock_request.call_count == 2

    @pytest.mark.asyncio
    async def test_last_failure_decides_error_type(self, no_sleep: AsyncMock) -> None:
        client = HTTPClient(max_retries=1)

        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [httpx.ConnectError("refused"), _response(503)]

            async with client:
                with pytest.raises(RemoteError) as exc_info:
                    await client.get("https://example.com")

        assert exc_info.value.status_code == 503
