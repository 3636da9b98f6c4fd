"""
Client for the third-party PDF merge service (PDF.co compatible API).

Three hops, no retries: upload each PDF to get a temporary URL, merge the
two URLs synchronously, then download the merged result.
"""
import logging
from typing import Optional

import httpx

from esign_bridge.exceptions import MergeError
from esign_bridge.utils.security import compute_bytes_hash, decode_base64_strict

logger = logging.getLogger(__name__)

DEFAULT_MERGE_TIMEOUT_SECONDS = 120.0


class PdfMergeClient:
    """Merges two base64-encoded PDFs into one."""

    UPLOAD_PATH = "/v1/file/upload/base64"
    MERGE_PATH = "/v1/pdf/merge"

    def __init__(
        self,
        http_client: httpx.Client,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_MERGE_TIMEOUT_SECONDS,
    ):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url)

    @property
    def _headers(self) -> dict:
        return {"x-api-key": self.api_key, "Content-Type": "application/json"}

    def _post(self, path: str, payload: dict, step: str) -> dict:
        try:
            response = self.http_client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers=self._headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise MergeError(f"PDF merge {step} failed: {e}")

        try:
            data = response.json()
        except ValueError:
            raise MergeError(f"PDF merge {step} returned invalid JSON (HTTP {response.status_code})")
        if not isinstance(data, dict):
            raise MergeError(f"PDF merge {step} returned an unexpected response")
        return data

    def upload(self, pdf_base64: str, name: str) -> str:
        """Upload one PDF and return its temporary URL."""
        data = self._post(self.UPLOAD_PATH, {"file": pdf_base64, "name": name}, "upload")
        url = data.get("url")
        if not url:
            raise MergeError(f"PDF upload failed for {name}: {data.get('message') or data}")
        return url

    def merge_urls(self, first_url: str, second_url: str, name: str = "merged.pdf") -> str:
        """Merge two uploaded PDFs and return the result URL."""
        data = self._post(
            self.MERGE_PATH,
            {"url": f"{first_url},{second_url}", "name": name, "async": False},
            "merge",
        )
        if data.get("error"):
            raise MergeError(f"PDF merge failed: {data.get('message') or 'unknown error'}")
        url = data.get("url")
        if not url:
            raise MergeError(f"PDF merge returned no URL: {data.get('message') or data}")
        return url

    def download(self, url: str) -> bytes:
        try:
            response = self.http_client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise MergeError(f"Merged PDF download failed: {e}")
        if response.status_code != 200 or not response.content:
            raise MergeError(f"Merged PDF download failed (HTTP {response.status_code})")
        return response.content

    def merge(
        self,
        first_pdf_base64: str,
        second_pdf_base64: str,
        output_name: Optional[str] = None,
    ) -> bytes:
        """
        Merge two PDFs, first document first.

        Raises:
            MergeError: any hop failed or returned no URL
        """
        if not self.is_configured():
            raise MergeError("PDF merge service is not configured")

        for label, payload in (("first", first_pdf_base64), ("second", second_pdf_base64)):
            try:
                decode_base64_strict(payload)
            except ValueError:
                raise MergeError(f"The {label} PDF is not valid base64")

        first_url = self.upload(first_pdf_base64, "first.pdf")
        second_url = self.upload(second_pdf_base64, "second.pdf")
        result_url = self.merge_urls(first_url, second_url, output_name or "merged.pdf")
        merged = self.download(result_url)

        logger.info(f"pdf_merge: success, {len(merged)} bytes, sha256={compute_bytes_hash(merged)[:12]}")
        return merged
