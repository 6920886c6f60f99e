from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import httpx

from .randomness import RandomnessConfig


class RpcRandomnessClient:
    """JSON-RPC client for a remote randomness oracle."""

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, transport=transport)
        self._next_id = 1

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RpcRandomnessClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _post(self, method: str, params: List[Any]) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params,
        }
        self._next_id += 1
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        return data

    def request_random_words(self, config: RandomnessConfig) -> int:
        """Submits a request; returns the oracle's request id."""
        data = self._post(
            "requestRandomWords",
            [
                {
                    "keyHash": config.key_hash,
                    "subId": str(config.subscription_id),
                    "requestConfirmations": config.request_confirmations,
                    "callbackGasLimit": config.callback_gas_limit,
                    "numWords": config.num_words,
                    "extraArgs": {"nativePayment": config.native_payment},
                }
            ],
        )
        result = data.get("result")
        if result is None:
            raise RuntimeError("requestRandomWords returned no request id.")
        if isinstance(result, dict):
            result = result.get("requestId")
        return int(str(result), 0)

    def get_request_status(self, request_id: int) -> Tuple[bool, List[int]]:
        """Returns (fulfilled, random_words) for a request."""
        data = self._post("getRequestStatus", [str(request_id)])
        result = data.get("result")
        if not isinstance(result, dict):
            raise RuntimeError(f"Request {request_id}: getRequestStatus returned no status.")
        words = [int(str(w), 0) for w in result.get("randomWords", [])]
        return bool(result.get("fulfilled")), words
