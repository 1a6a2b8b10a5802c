import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from dhcourt.scraper.errors import CaptchaProviderError
from dhcourt.utils.captcha_client import TwoCaptchaClient


@pytest.fixture
async def provider():
    """Fake 2Captcha endpoint: ticket 'slow' answers on the second poll."""
    state = {"polls": {}, "submitted": [], "reported": [], "balance": "3.25"}

    async def in_php(request):
        form = await request.post()
        if form.get("key") != "good-key":
            return web.json_response({"status": 0, "request": "ERROR_WRONG_USER_KEY"})
        state["submitted"].append(form["body"])
        return web.json_response({"status": 1, "request": "slow"})

    async def res_php(request):
        action = request.query.get("action")
        if action == "getbalance":
            return web.json_response({"status": 1, "request": state["balance"]})
        if action == "reportbad":
            state["reported"].append(request.query["id"])
            return web.json_response({"status": 1, "request": "OK_REPORT_RECORDED"})
        ticket = request.query["id"]
        if ticket == "bad":
            return web.json_response({"status": 0, "request": "ERROR_CAPTCHA_UNSOLVABLE"})
        count = state["polls"].get(ticket, 0) + 1
        state["polls"][ticket] = count
        if count < 2:
            return web.json_response({"status": 0, "request": "CAPCHA_NOT_READY"})
        return web.json_response({"status": 1, "request": "X7K2P"})

    app = web.Application()
    app.router.add_post("/in.php", in_php)
    app.router.add_get("/res.php", res_php)
    server = TestServer(app)
    await server.start_server()
    server.state = state
    yield server
    await server.close()


def _client(server, key="good-key"):
    return TwoCaptchaClient(key, base_url=str(server.make_url("/")), timeout=5)


def test_client_requires_api_key():
    with pytest.raises(ValueError):
        TwoCaptchaClient("")


async def test_submit_returns_ticket(provider):
    ticket = await _client(provider).submit("aW1hZ2U=")
    assert ticket == "slow"
    assert provider.state["submitted"] == ["aW1hZ2U="]


async def test_submit_rejected_key(provider):
    with pytest.raises(CaptchaProviderError, match="ERROR_WRONG_USER_KEY"):
        await _client(provider, key="wrong").submit("aW1hZ2U=")


async def test_check_not_ready_then_solved(provider):
    client = _client(provider)
    first = await client.check("slow")
    second = await client.check("slow")

    assert first.not_ready and not first.solved
    assert second.solved
    assert second.text == "X7K2P"


async def test_check_provider_error(provider):
    result = await _client(provider).check("bad")
    assert not result.solved
    assert result.error == "ERROR_CAPTCHA_UNSOLVABLE"


async def test_balance_and_availability(provider):
    client = _client(provider)
    assert await client.get_balance() == pytest.approx(3.25)
    assert await client.is_available() is True

    provider.state["balance"] = "0"
    assert await client.is_available() is False


async def test_report_bad(provider):
    assert await _client(provider).report_bad("slow") is True
    assert provider.state["reported"] == ["slow"]


async def test_unreachable_provider(unused_tcp_port):
    client = TwoCaptchaClient("good-key", base_url=f"http://127.0.0.1:{unused_tcp_port}", timeout=2)
    with pytest.raises(CaptchaProviderError):
        await client.get_balance()
    assert await client.is_available() is False
    assert await client.report_bad("t1") is False
