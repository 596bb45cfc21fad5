"""Amazon Bedrock chat services.

This package provides Converse API clients for:
- Non-streaming text and multimodal chat
- Streaming chat with a per-token callback
"""

from aws_toolkit.ai.bedrock_client import (
    MODEL_CLAUDE_HAIKU,
    MODEL_CLAUDE_SONNET,
    MODEL_NOVA_LITE,
    MODEL_NOVA_PRO,
    MODEL_QWEN3_VL,
    BedrockLlmService,
)
from aws_toolkit.ai.bedrock_stream import BedrockStreamService

__all__ = [
    "MODEL_CLAUDE_HAIKU",
    "MODEL_CLAUDE_SONNET",
    "MODEL_NOVA_LITE",
    "MODEL_NOVA_PRO",
    "MODEL_QWEN3_VL",
    "BedrockLlmService",
    "BedrockStreamService",
]
