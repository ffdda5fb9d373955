"""Thin LINE Messaging API client built on requests."""

import base64
import hashlib
import hmac
import logging
from typing import Dict, List, Optional

import requests
from fastapi.concurrency import run_in_threadpool

from app.core.config import settings

logger = logging.getLogger(__name__)


class LineApiError(Exception):
    """LINE API returned an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def validate_signature(body: bytes, signature: Optional[str], channel_secret: str) -> bool:
    """Check the X-Line-Signature header against the raw request body."""
    if not signature or not channel_secret:
        return False
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, signature)


class LineClient:
    def __init__(
        self,
        access_token: Optional[str] = None,
        api_url: Optional[str] = None,
        data_api_url: Optional[str] = None,
        timeout: float = 30,
    ):
        self.access_token = access_token if access_token is not None else settings.LINE_CHANNEL_ACCESS_TOKEN
        self.api_url = (api_url or settings.LINE_API_URL).rstrip("/")
        self.data_api_url = (data_api_url or settings.LINE_DATA_API_URL).rstrip("/")
        self.timeout = timeout

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = requests.request(
                method, url, headers=self._headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise LineApiError(f"LINE API request failed: {e}") from e

        if response.status_code != 200:
            raise LineApiError(
                f"LINE API {method} {url} failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return response

    async def reply_message(self, reply_token: str, messages: List[Dict]) -> None:
        await run_in_threadpool(
            self._request,
            "POST",
            f"{self.api_url}/v2/bot/message/reply",
            json={"replyToken": reply_token, "messages": messages},
        )

    async def push_message(self, to: str, messages: List[Dict]) -> None:
        await run_in_threadpool(
            self._request,
            "POST",
            f"{self.api_url}/v2/bot/message/push",
            json={"to": to, "messages": messages},
        )

    async def get_message_content(self, message_id: str) -> bytes:
        response = await run_in_threadpool(
            self._request,
            "GET",
            f"{self.data_api_url}/v2/bot/message/{message_id}/content",
        )
        return response.content

    async def get_group_member_profile(self, group_id: str, user_id: str) -> Dict:
        response = await run_in_threadpool(
            self._request,
            "GET",
            f"{self.api_url}/v2/bot/group/{group_id}/member/{user_id}",
        )
        return response.json()

    async def get_group_summary(self, group_id: str) -> Dict:
        response = await run_in_threadpool(
            self._request,
            "GET",
            f"{self.api_url}/v2/bot/group/{group_id}/summary",
        )
        return response.json()


line_client = LineClient()


def get_line_client() -> LineClient:
    return line_client
