from __future__ import annotations

import httpx

from toolbridge.errors import UpstreamError


def raise_for_upstream(response: httpx.Response, *, provider: str) -> None:
    """
    Map a non-2xx collaborator response to UpstreamError, keeping the body
    verbatim so the client can diagnose. No retries at this layer.
    """
    if response.is_success:
        return
    raise UpstreamError(provider, response.status_code, response.text)
