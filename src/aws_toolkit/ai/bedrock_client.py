"""Amazon Bedrock chat through the Converse API.

This module provides BedrockLlmService for single-turn text and multimodal
conversations with Bedrock models. Files are attached as content blocks: PDFs
as documents, anything else as images.

Example:
    Basic usage::

        from aws_toolkit.ai.bedrock_client import MODEL_NOVA_PRO, BedrockLlmService

        service = BedrockLlmService()
        answer = await service.chat(MODEL_NOVA_PRO, "Summarize AWS Lambda in two lines")
"""

import base64
import logging
from pathlib import Path
from typing import Any, Final

import aioboto3

from aws_toolkit.aws.exceptions import BedrockError
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import BEDROCK_MAX_TOKENS, BEDROCK_TEMPERATURE, BEDROCK_TOP_P

logger: Final = logging.getLogger(__name__)

# Amazon Nova models are available by default
MODEL_NOVA_PRO: Final = "us.amazon.nova-pro-v1:0"
MODEL_NOVA_LITE: Final = "us.amazon.nova-2-lite-v1:0"

# Third-party models need access granted in the Bedrock console
MODEL_QWEN3_VL: Final = "qwen.qwen3-vl-235b-a22b"
MODEL_CLAUDE_SONNET: Final = "us.anthropic.claude-sonnet-4-5-20250929-v1:0"
MODEL_CLAUDE_HAIKU: Final = "us.anthropic.claude-haiku-4-5-20251001-v1:0"

IMAGE_FORMATS: Final = {"jpg": "jpeg", "jpeg": "jpeg", "gif": "gif", "webp": "webp", "png": "png"}
DEFAULT_IMAGE_FORMAT: Final = "png"


def parse_image_format(image_format: str | None) -> str:
    """Map a format name or file extension to a Converse image format.

    Unknown or missing formats fall back to 'png'.

    Example:
        >>> parse_image_format("JPG")
        'jpeg'
    """
    if not image_format:
        return DEFAULT_IMAGE_FORMAT
    return IMAGE_FORMATS.get(image_format.lower().lstrip("."), DEFAULT_IMAGE_FORMAT)


def build_file_block(file_path: str) -> dict[str, Any] | None:
    """Build a document or image content block from a local file.

    Args:
        file_path: Path of a PDF or image file.

    Returns:
        The content block, or None if the file cannot be read.
    """
    path = Path(file_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error(f"Failed to read {file_path}: {e}")
        return None

    if path.suffix.lower() == ".pdf":
        logger.info(f"Attached document {file_path} (pdf)")
        return {"document": {"format": "pdf", "name": path.stem, "source": {"bytes": data}}}

    image_format = parse_image_format(path.suffix)
    logger.info(f"Attached image {file_path} ({image_format})")
    return {"image": {"format": image_format, "source": {"bytes": data}}}


def build_user_content(prompt: str, file_path: str | None = None) -> list[dict[str, Any]]:
    """Build the user message content: the optional file first, then the prompt."""
    content: list[dict[str, Any]] = []
    if file_path:
        block = build_file_block(file_path)
        if block is not None:
            content.append(block)
    content.append({"text": prompt})
    return content


def build_converse_request(
    model_id: str, content: list[dict[str, Any]], system_prompt: str | None = None
) -> dict[str, Any]:
    """Build Converse/ConverseStream kwargs for a single user message."""
    request: dict[str, Any] = {
        "modelId": model_id,
        "messages": [{"role": "user", "content": content}],
        "inferenceConfig": {
            "maxTokens": BEDROCK_MAX_TOKENS,
            "temperature": BEDROCK_TEMPERATURE,
            "topP": BEDROCK_TOP_P,
        },
    }
    if system_prompt:
        request["system"] = [{"text": system_prompt}]
    return request


def log_usage(usage: dict[str, Any] | None) -> None:
    if usage:
        logger.info(
            f"Token usage - input: {usage.get('inputTokens')}, "
            f"output: {usage.get('outputTokens')}, total: {usage.get('totalTokens')}"
        )


def extract_response_text(response: dict[str, Any]) -> str:
    """Concatenate the text blocks of a Converse response and log token usage."""
    message = response.get("output", {}).get("message")
    if not message:
        return ""

    text = "".join(block["text"] for block in message.get("content", []) if "text" in block)
    log_usage(response.get("usage"))
    return text


class BedrockRuntimeService:
    """Base for services that talk to the bedrock-runtime endpoint via aioboto3.

    Attributes:
        settings: Toolkit settings providing credentials.
        region: Bedrock region. Defaults to the settings region.
        session: aioboto3 session used to open runtime clients.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        region: str | None = None,
        session: aioboto3.Session | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.region = region or self.settings.aws_region
        self.session = session or aioboto3.Session()
        logger.info(f"{type(self).__name__} initialized for region {self.region}")

    def runtime_client(self) -> Any:
        """Open a bedrock-runtime client; use it as an async context manager."""
        return self.session.client(
            "bedrock-runtime", region_name=self.region, **self.settings.get_client_kwargs()
        )


class BedrockLlmService(BedrockRuntimeService):
    """Non-streaming chat with Bedrock models.

    Example:
        >>> service = BedrockLlmService()
        >>> await service.chat(
        ...     MODEL_NOVA_LITE,
        ...     "Extract the amount and the tax as JSON",
        ...     system_prompt="You are a financial analyst.",
        ...     file_path="invoice.pdf",
        ... )
        '{"amount": "1000.00", "tax": "130.00"}'
    """

    async def chat(
        self,
        model_id: str,
        prompt: str,
        system_prompt: str | None = None,
        file_path: str | None = None,
    ) -> str:
        """Send a prompt, optionally with a file, and return the reply text.

        Args:
            model_id: Bedrock model or inference profile ID.
            prompt: User prompt.
            system_prompt: Optional system prompt. Defaults to None.
            file_path: Optional PDF or image to attach. A file that cannot be
                read is skipped. Defaults to None.

        Returns:
            Concatenated text of the reply.

        Raises:
            BedrockError: If the Converse call fails.
        """
        content = build_user_content(prompt, file_path)
        return await self._converse(build_converse_request(model_id, content, system_prompt))

    async def chat_with_base64_image(
        self,
        model_id: str,
        prompt: str,
        system_prompt: str | None,
        image_base64: str | None,
        image_format: str | None = DEFAULT_IMAGE_FORMAT,
    ) -> str:
        """Send a prompt with a base64 encoded image and return the reply text."""
        content: list[dict[str, Any]] = []
        if image_base64:
            content.append(
                {
                    "image": {
                        "format": parse_image_format(image_format),
                        "source": {"bytes": base64.b64decode(image_base64)},
                    }
                }
            )
        content.append({"text": prompt})
        return await self._converse(build_converse_request(model_id, content, system_prompt))

    async def _converse(self, request: dict[str, Any]) -> str:
        model_id = request["modelId"]
        logger.info(f"Calling Bedrock Converse with model {model_id}")
        try:
            async with self.runtime_client() as client:
                response = await client.converse(**request)
            return extract_response_text(response)
        except Exception as e:
            logger.error(f"Bedrock call failed for {model_id}: {e}")
            raise BedrockError(
                f"Bedrock call failed: {e}", service="bedrock-runtime", operation="converse"
            ) from e
