"""Gemini access gateway with round-robin API key failover."""

import asyncio
import io
import logging
import os
from datetime import datetime
from typing import IO, Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from .memory import CredentialState, UploadedFile

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BACKOFF_SECONDS = 2.0
DEFAULT_REPORT_INTERVAL = 30 * 60


class AllCredentialsFailedError(RuntimeError):
    """Raised when every attempt across the credential pool failed."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException]):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        detail = f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error"
        super().__init__(
            f"All API keys failed for {operation} after {attempts} attempts. Last error: {detail}"
        )


class GatewayChatSession:
    """Chat session whose sends go through the gateway's retry loop.

    Prior turns live on the wrapped SDK session, not on the gateway. SDK
    models pin their client on first use, so every attempt resumes the
    history on a freshly built model bound to the current key.
    """

    def __init__(self, gateway: "ModelGateway", model_factory: Callable[[], Any], history=None):
        self._gateway = gateway
        self._model_factory = model_factory
        self._chat = model_factory().start_chat(history=history or [])

    @property
    def history(self) -> List[Any]:
        return list(self._chat.history)

    async def send_message(self, content: Any, **kwargs: Any) -> Any:
        async def _attempt():
            chat = self._model_factory().start_chat(history=self.history)
            response = await chat.send_message_async(content, **kwargs)
            self._chat = chat
            return response

        return await self._gateway._call_with_rotation("send_message", _attempt)


class ModelGateway:
    """Uniform call surface over Gemini that rotates API keys on failure."""

    def __init__(
        self,
        api_keys: List[str],
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ):
        keys = [k.strip() for k in api_keys if k and k.strip()]
        if not keys:
            raise ValueError("At least one Gemini API key is required")

        self.credentials = [CredentialState(api_key=k) for k in keys]
        self.current_index = 0
        self.backoff_seconds = backoff_seconds
        self._reporter: Optional[asyncio.Task] = None
        logger.info(f"Model gateway initialized with {len(keys)} API key(s)")

    @property
    def max_attempts(self) -> int:
        return max(3, len(self.credentials))

    @property
    def current(self) -> CredentialState:
        return self.credentials[self.current_index]

    def _rotate(self) -> None:
        self.current_index = (self.current_index + 1) % len(self.credentials)

    async def _call_with_rotation(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call`` with the current key, rotating and retrying on any error."""
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            credential = self.current
            genai.configure(api_key=credential.api_key)
            credential.request_count += 1
            credential.last_used_at = datetime.now()

            try:
                result = await call()
            except Exception as e:
                last_error = e
                credential.error_count += 1
                credential.last_error = str(e)
                logger.warning(
                    f"{operation} failed with key {credential.masked_key} "
                    f"(attempt {attempt}/{self.max_attempts}): {type(e).__name__}: {e}"
                )
                if isinstance(e, google_exceptions.GoogleAPICallError) and e.code:
                    logger.warning(f"Error code: {e.code}")
                self._rotate()
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.backoff_seconds)
                continue

            credential.success_count += 1
            return result

        raise AllCredentialsFailedError(operation, self.max_attempts, last_error)

    def _model(
        self,
        model_name: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ):
        return genai.GenerativeModel(
            model_name,
            system_instruction=system_instruction,
            generation_config=generation_config,
        )

    async def generate_content(
        self,
        model_name: str,
        contents: Any,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Single-shot generation; the response exposes ``.text``."""
        return await self._call_with_rotation(
            "generate_content",
            lambda: self._model(
                model_name, system_instruction, generation_config
            ).generate_content_async(contents),
        )

    async def generate_content_stream(
        self,
        model_name: str,
        contents: Any,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Open a streaming generation. Retries cover opening the stream only."""
        return await self._call_with_rotation(
            "generate_content_stream",
            lambda: self._model(
                model_name, system_instruction, generation_config
            ).generate_content_async(contents, stream=True),
        )

    async def embed_content(
        self, model_name: str, content: str, task_type: str
    ) -> Optional[List[float]]:
        """Embed ``content``; returns None when the response carries no vector."""
        result = await self._call_with_rotation(
            "embed_content",
            lambda: genai.embed_content_async(
                model=model_name, content=content, task_type=task_type
            ),
        )
        embedding = result.get("embedding") if isinstance(result, dict) else None
        if not embedding or not isinstance(embedding, list):
            return None
        return [float(v) for v in embedding]

    async def upload_file(
        self,
        source: Union[str, os.PathLike, bytes, IO[bytes]],
        mime_type: str = "text/plain",
        display_name: Optional[str] = None,
    ) -> UploadedFile:
        """Upload a local path, raw bytes or a binary file object.

        The SDK call blocks, so it runs in a worker thread. File objects are
        rewound before every attempt so a retry sends the whole payload.
        """

        def _upload():
            data = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
            if hasattr(data, "seek"):
                data.seek(0)
            return genai.upload_file(data, mime_type=mime_type, display_name=display_name)

        uploaded = await self._call_with_rotation(
            "upload_file", lambda: asyncio.to_thread(_upload)
        )
        return UploadedFile(uri=uploaded.uri, mime_type=uploaded.mime_type or mime_type)

    def create_chat_session(
        self,
        model_name: str,
        history: Optional[List[Any]] = None,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> GatewayChatSession:
        return GatewayChatSession(
            self,
            lambda: self._model(model_name, system_instruction, generation_config),
            history=history,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get per-key usage statistics."""
        total_requests = sum(c.request_count for c in self.credentials)
        total_errors = sum(c.error_count for c in self.credentials)
        return {
            "key_count": len(self.credentials),
            "current_key": self.current.masked_key,
            "total_requests": total_requests,
            "total_errors": total_errors,
            "error_rate": total_errors / total_requests if total_requests > 0 else 0,
            "keys": [c.snapshot() for c in self.credentials],
        }

    def log_usage_snapshot(self) -> None:
        stats = self.get_stats()
        logger.info(
            f"API key usage: {stats['total_requests']} requests, "
            f"{stats['total_errors']} errors across {stats['key_count']} key(s)"
        )
        for key_stats in stats["keys"]:
            logger.info(
                f"  {key_stats['key']}: requests={key_stats['requests']} "
                f"successes={key_stats['successes']} errors={key_stats['errors']} "
                f"last_error={key_stats['last_error']}"
            )

    def start_usage_reporter(self, interval_seconds: float = DEFAULT_REPORT_INTERVAL) -> None:
        """Log a usage snapshot every ``interval_seconds`` until ``close()``."""
        if self._reporter and not self._reporter.done():
            return

        async def _report() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                self.log_usage_snapshot()

        self._reporter = asyncio.create_task(_report())

    async def close(self) -> None:
        if self._reporter:
            self._reporter.cancel()
            try:
                await self._reporter
            except asyncio.CancelledError:
                pass
            self._reporter = None
        self.log_usage_snapshot()
