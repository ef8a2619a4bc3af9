import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp

from core.config import BotSettings
from core.http_client import ApiError, ResilientHttpClient
from core.proxy_manager import ProxyRotator
from core.retry import RetryPolicy


def make_session(status=200, payload=None):
    """Session mock whose request() yields a single canned response."""
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json.return_value = payload

    request_ctx = AsyncMock()
    request_ctx.__aenter__.return_value = mock_response
    request_ctx.__aexit__.return_value = None

    # session.request is not a coroutine; it returns the context manager
    session_instance = AsyncMock()
    session_instance.request = MagicMock(return_value=request_ctx)
    return session_instance


@pytest.fixture
def settings():
    return BotSettings(api_base_url="https://api.example.test/api/")


class TestResilientHttpClient:
    @pytest.mark.asyncio
    async def test_success_returns_payload(self, settings):
        session_instance = make_session(200, {"token": "abc"})
        with patch("aiohttp.ClientSession") as MockSessionClass:
            MockSessionClass.return_value = session_instance
            client = ResilientHttpClient(settings)
            data = await client.post("/users/login", json={"wallet": "0x1"})

        assert data == {"token": "abc"}
        args, kwargs = session_instance.request.call_args
        assert args == ("POST", "https://api.example.test/api/users/login")
        assert kwargs["json"] == {"wallet": "0x1"}
        assert kwargs["proxy"] is None
        assert "Authorization" not in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_browser_headers_are_sent(self, settings):
        session_instance = make_session(200, {})
        with patch("aiohttp.ClientSession") as MockSessionClass:
            MockSessionClass.return_value = session_instance
            client = ResilientHttpClient(settings)
            await client.get("/users/onboarding/progress", token="T1")

        headers = session_instance.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer T1"
        assert headers["Content-Type"] == "application/json"
        assert headers["Origin"] == settings.app_origin
        assert headers["Referer"] == settings.app_referer
        assert headers["User-Agent"] == settings.user_agent

    @pytest.mark.asyncio
    async def test_bound_proxy_is_used_on_next_request(self, settings):
        session_instance = make_session(200, {})
        with patch("aiohttp.ClientSession") as MockSessionClass:
            MockSessionClass.return_value = session_instance
            client = ResilientHttpClient(settings, proxy="http://1.1.1.1:80")
            await client.get("/a")
            client.bind_proxy("http://2.2.2.2:80")
            await client.get("/b")

        proxies = [c.kwargs["proxy"] for c in session_instance.request.call_args_list]
        assert proxies == ["http://1.1.1.1:80", "http://2.2.2.2:80"]

    @pytest.mark.asyncio
    async def test_error_status_raises_api_error(self, settings):
        session_instance = make_session(404, {"message": "User not found"})
        with patch("aiohttp.ClientSession") as MockSessionClass:
            MockSessionClass.return_value = session_instance
            client = ResilientHttpClient(settings)
            with pytest.raises(ApiError) as exc_info:
                await client.post("/users/login", json={})

        error = exc_info.value
        assert error.status == 404
        assert error.payload == {"message": "User not found"}
        assert error.api_message == "User not found"
        assert error.method == "POST"
        assert str(error) == "Request failed with status code 404"

    @pytest.mark.asyncio
    async def test_transport_failure_has_no_status(self, settings):
        session_instance = AsyncMock()
        session_instance.request = MagicMock(
            side_effect=aiohttp.ClientConnectionError("connection refused")
        )
        with patch("aiohttp.ClientSession") as MockSessionClass:
            MockSessionClass.return_value = session_instance
            client = ResilientHttpClient(settings)
            with pytest.raises(ApiError) as exc_info:
                await client.get("/users/onboarding/progress")

        assert exc_info.value.status is None
        assert isinstance(exc_info.value.__cause__, aiohttp.ClientConnectionError)

    @pytest.mark.asyncio
    async def test_close_closes_open_session(self, settings):
        session_instance = make_session(200, {})
        session_instance.closed = False
        with patch("aiohttp.ClientSession") as MockSessionClass:
            MockSessionClass.return_value = session_instance
            client = ResilientHttpClient(settings)
            await client.get("/a")
            await client.close()

        session_instance.close.assert_awaited_once()


class TestApiError:
    def test_api_message_absent_for_text_payload(self):
        assert ApiError("boom", status=500, payload="Bad Gateway").api_message is None

    def test_api_message_from_json_payload(self):
        error = ApiError("boom", status=400, payload={"message": "Invalid invite code"})
        assert error.api_message == "Invalid invite code"


def make_undecodable_session(status, body=b"<h1>Service Unavailable \xe9\xff</h1>"):
    """Session mock answering with a body that is not valid UTF-8."""
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json.side_effect = UnicodeDecodeError(
        "utf-8", body, 25, 26, "invalid start byte",
    )

    async def text(encoding=None, errors="strict"):
        return body.decode("utf-8", errors=errors)

    mock_response.text = text

    request_ctx = AsyncMock()
    request_ctx.__aenter__.return_value = mock_response
    request_ctx.__aexit__.return_value = None

    session_instance = AsyncMock()
    session_instance.request = MagicMock(return_value=request_ctx)
    return session_instance


class TestUndecodableBodies:
    @pytest.mark.asyncio
    async def test_status_survives_undecodable_body(self, settings):
        session_instance = make_undecodable_session(404)
        with patch("aiohttp.ClientSession") as MockSessionClass:
            MockSessionClass.return_value = session_instance
            client = ResilientHttpClient(settings)
            with pytest.raises(ApiError) as exc_info:
                await client.post("/users/login", json={})

        assert exc_info.value.status == 404
        assert "Service Unavailable" in exc_info.value.payload

    @pytest.mark.asyncio
    async def test_undecodable_server_error_is_retried(self, settings):
        session_instance = make_undecodable_session(503)
        with patch("aiohttp.ClientSession") as MockSessionClass, \
             patch("asyncio.sleep", new_callable=AsyncMock):
            MockSessionClass.return_value = session_instance
            client = ResilientHttpClient(settings)
            policy = RetryPolicy(ProxyRotator(), max_attempts=3, connections=[client])
            with pytest.raises(ApiError) as exc_info:
                await policy.execute(lambda: client.get("/users/onboarding/progress"))

        assert exc_info.value.status == 503
        assert session_instance.request.call_count == 3
