"""Tests for the JSON-RPC randomness oracle client."""

import json

import httpx
import pytest

from lucky_draw.rpc import RpcRandomnessClient


def make_client(handler):
    return RpcRandomnessClient("https://oracle.test/rpc", transport=httpx.MockTransport(handler))


def test_request_random_words_posts_config(randomness_config):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": seen["id"], "result": "0x2a"})

    with make_client(handler) as client:
        assert client.request_random_words(randomness_config) == 42

    assert seen["method"] == "requestRandomWords"
    params = seen["params"][0]
    assert params["keyHash"] == randomness_config.key_hash
    assert params["subId"] == "1"
    assert params["callbackGasLimit"] == 500_000
    assert params["requestConfirmations"] == 3
    assert params["numWords"] == 1
    assert params["extraArgs"] == {"nativePayment": False}


def test_request_id_in_result_object(randomness_config):
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"requestId": "7"}})

    with make_client(handler) as client:
        assert client.request_random_words(randomness_config) == 7


def test_get_request_status():
    def handler(request):
        body = json.loads(request.content)
        assert body["method"] == "getRequestStatus"
        assert body["params"] == ["7"]
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "result": {"fulfilled": True, "randomWords": ["6000"]}},
        )

    with make_client(handler) as client:
        assert client.get_request_status(7) == (True, [6000])


def test_rpc_error_raises(randomness_config):
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "no sub"}})

    with make_client(handler) as client:
        with pytest.raises(RuntimeError, match="RPC error"):
            client.request_random_words(randomness_config)


def test_http_error_propagates(randomness_config):
    def handler(request):
        return httpx.Response(503)

    with make_client(handler) as client:
        with pytest.raises(httpx.HTTPStatusError):
            client.request_random_words(randomness_config)


def test_manager_enters_through_remote_oracle(owner, token, users, randomness_config):
    from lucky_draw.manager import LuckyDrawManager

    next_id = iter(range(100, 200))

    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": str(next(next_id))})

    with make_client(handler) as client:
        manager = LuckyDrawManager(owner, client, randomness_config, {token.address: token})
        d = manager.create_draw(owner, token.address)
        manager.set_whitelist(owner, users[0], True)
        assert manager.enter(users[0], d) == 100
        assert manager.pending_request(100) == (d, users[0])
