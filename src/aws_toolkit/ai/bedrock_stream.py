"""Streaming chat with Bedrock models through ConverseStream."""

import logging
from collections.abc import Callable
from typing import Any, Final

from aws_toolkit.ai.bedrock_client import (
    BedrockRuntimeService,
    build_converse_request,
    build_user_content,
    log_usage,
)
from aws_toolkit.aws.exceptions import BedrockError

logger: Final = logging.getLogger(__name__)


class BedrockStreamService(BedrockRuntimeService):
    """Streaming chat that hands each text delta to a callback.

    Example:
        >>> service = BedrockStreamService()
        >>> text = await service.chat_stream(
        ...     MODEL_NOVA_PRO, "Describe AWS Lambda in three sentences",
        ...     on_token=lambda token: print(token, end="", flush=True),
        ... )
    """

    async def chat_stream(
        self,
        model_id: str,
        prompt: str,
        system_prompt: str | None = None,
        on_token: Callable[[str], None] | None = None,
        file_path: str | None = None,
    ) -> str:
        """Stream a reply, calling ``on_token`` for each text delta.

        Args:
            model_id: Bedrock model or inference profile ID.
            prompt: User prompt.
            system_prompt: Optional system prompt. Defaults to None.
            on_token: Called with every text delta as it arrives. Defaults to None.
            file_path: Optional PDF or image to attach. Defaults to None.

        Returns:
            The full reply text.

        Raises:
            BedrockError: If the stream cannot be opened or fails midway.
        """
        request = build_converse_request(
            model_id, build_user_content(prompt, file_path), system_prompt
        )
        logger.info(f"Calling Bedrock ConverseStream with model {model_id}")

        chunks: list[str] = []
        try:
            async with self.runtime_client() as client:
                response = await client.converse_stream(**request)
                async for event in response["stream"]:
                    self._handle_event(event, chunks, on_token)
        except Exception as e:
            logger.error(f"Bedrock stream failed for {model_id}: {e}")
            raise BedrockError(
                f"Bedrock stream failed: {e}",
                service="bedrock-runtime",
                operation="converse_stream",
            ) from e

        return "".join(chunks)

    @staticmethod
    def _handle_event(
        event: dict[str, Any],
        chunks: list[str],
        on_token: Callable[[str], None] | None,
    ) -> None:
        if "contentBlockDelta" in event:
            text = event["contentBlockDelta"].get("delta", {}).get("text")
            if text:
                chunks.append(text)
                if on_token is not None:
                    on_token(text)
        elif "messageStop" in event:
            logger.info(f"Stream complete: {event['messageStop'].get('stopReason')}")
        elif "metadata" in event:
            log_usage(event["metadata"].get("usage"))
