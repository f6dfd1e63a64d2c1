"""VoyageContextRanker -- Voyage rerank API 上下文排序

输入查询和候选文本，返回按相关度排序的候选下标。
失败时抛出 RankerUnavailableError，由调用方退化为“最近 K 条”。
"""

import time

import httpx
import structlog

from .exceptions import RankerUnavailableError

log = structlog.get_logger()

VOYAGE_RERANK_URL = "https://api.voyageai.com/v1/rerank"


def most_recent_indices(candidate_count: int, top_k: int) -> list[int]:
    """退化排序：候选列表（按 step 升序）中的最后 top_k 条"""
    if top_k <= 0:
        return []
    return list(range(max(0, candidate_count - top_k), candidate_count))


class VoyageContextRanker:
    """Voyage rerank 客户端"""

    def __init__(
        self,
        api_key: str,
        model: str = "rerank-2-lite",
        timeout_s: int = 10,
        url: str = VOYAGE_RERANK_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            api_key: Voyage 访问密钥
            model: rerank 模型名
            timeout_s: 请求超时（秒）
            url: rerank 接口地址
            http_client: 可选的共享 httpx 客户端，None 时每次调用临时创建
        """
        self._api_key = api_key
        self._model = model
        self._timeout_s = timeout_s
        self._url = url
        self._http_client = http_client

    @property
    def model(self) -> str:
        return self._model

    async def rank(self, query: str, documents: list[str], top_k: int) -> list[int]:
        """对候选文本排序

        Returns:
            候选下标列表，相关度从高到低，最多 top_k 个

        Raises:
            RankerUnavailableError: 请求失败、非 2xx 响应或结果为空
        """
        if not documents:
            return []

        start_time = time.monotonic()
        body = {
            "model": self._model,
            "query": query,
            "documents": documents,
            "top_k": min(top_k, len(documents)),
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            if self._http_client is not None:
                resp = await self._http_client.post(
                    self._url, json=body, headers=headers, timeout=self._timeout_s
                )
            else:
                async with httpx.AsyncClient() as http_client:
                    resp = await http_client.post(
                        self._url, json=body, headers=headers, timeout=self._timeout_s
                    )
        except httpx.HTTPError as e:
            raise RankerUnavailableError(f"Voyage rerank request failed: {e}") from e

        if resp.status_code >= 400:
            log.warning(
                "ranker_http_error",
                status_code=resp.status_code,
                response=resp.text[:200],
            )
            raise RankerUnavailableError(
                f"Voyage rerank returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise RankerUnavailableError(f"Voyage rerank returned invalid JSON: {e}") from e
        results = (data.get("data") or []) if isinstance(data, dict) else []

        ranked = sorted(
            (r for r in results if isinstance(r, dict)),
            key=lambda r: r.get("relevance_score", 0.0),
            reverse=True,
        )
        indices = [
            r["index"]
            for r in ranked
            if isinstance(r.get("index"), int) and 0 <= r["index"] < len(documents)
        ]
        if not indices:
            raise RankerUnavailableError("Voyage rerank returned no results")

        log.debug(
            "ranker_call_completed",
            model=self._model,
            candidate_count=len(documents),
            result_count=len(indices),
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        return indices[:top_k]
