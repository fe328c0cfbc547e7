"""AWS Bedrock client for the chat agent."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from chat_agent.agent.exceptions import BedrockClientError
from chat_agent.utils.settings import get_settings

if TYPE_CHECKING:
    from mypy_boto3_bedrock_runtime import BedrockRuntimeClient

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60

# Model ID aliases - use these instead of full Bedrock model IDs
MODEL_ALIASES: dict[str, str] = {
    "haiku": "global.anthropic.claude-haiku-4-5-20251001-v1:0",
    "sonnet": "global.anthropic.claude-sonnet-4-5-20250929-v1:0",
    "opus": "global.anthropic.claude-opus-4-5-20251101-v1:0",
}

VALID_MODEL_OPTIONS = frozenset(MODEL_ALIASES.keys())


def resolve_model_id(model_id: str) -> str:
    """Resolve a model alias to a full model ID.

    :param model_id: Model alias (haiku, sonnet, opus).
    :returns: Full Bedrock model ID.
    :raises ValueError: If model_id is not a valid alias.
    """
    model_lower = model_id.lower()
    if model_lower not in MODEL_ALIASES:
        valid_options = ", ".join(sorted(VALID_MODEL_OPTIONS))
        raise ValueError(f"Invalid model '{model_id}'. Must be one of: {valid_options}")
    return MODEL_ALIASES[model_lower]


class BedrockClient:
    """Client for the AWS Bedrock Converse API.

    A thin wrapper that sends a prepared conversation and returns the raw
    response. Transcript conversion lives in ``chat_agent.agent.transcript``.
    """

    def __init__(self, region_name: str | None = None) -> None:
        """Initialise the Bedrock client.

        :param region_name: AWS region. Defaults to the configured region.
        """
        self.region_name = region_name or get_settings().aws_region

        self._client: BedrockRuntimeClient = boto3.client(
            "bedrock-runtime",
            region_name=self.region_name,
            config=Config(read_timeout=REQUEST_TIMEOUT),
        )

        logger.debug(f"Initialised BedrockClient: region={self.region_name}")

    def converse(  # noqa: PLR0913 - Bedrock API has multiple config options
        self,
        messages: list[dict[str, Any]],
        model_id: str,
        system_prompt: str | None = None,
        tool_config: dict[str, Any] | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
        cache_system_prompt: bool = True,
    ) -> dict[str, Any]:
        """Invoke the Bedrock Converse API.

        :param messages: Conversation messages.
        :param model_id: Model alias (haiku, sonnet, opus) to use for this request.
        :param system_prompt: Optional system prompt.
        :param tool_config: Optional tool configuration for tool use.
        :param max_tokens: Maximum tokens in response.
        :param temperature: Sampling temperature (0.0 for deterministic).
        :param cache_system_prompt: Enable prompt caching for system prompt.
        :returns: Converse API response.
        :raises BedrockClientError: If the API call fails.
        :raises ValueError: If model_id is not a valid alias.
        """
        effective_model = resolve_model_id(model_id)
        request_params: dict[str, Any] = {
            "modelId": effective_model,
            "messages": messages,
            "inferenceConfig": {
                "maxTokens": max_tokens,
                "temperature": temperature,
            },
        }

        if system_prompt:
            system_blocks: list[dict[str, Any]] = [{"text": system_prompt}]
            if cache_system_prompt:
                system_blocks.append({"cachePoint": {"type": "default"}})
            request_params["system"] = system_blocks

        if tool_config and tool_config.get("tools"):
            request_params["toolConfig"] = tool_config

        try:
            logger.debug(
                f"Calling Bedrock Converse: model={effective_model}, "
                f"messages_count={len(messages)}"
            )
            start_time = time.perf_counter()
            response = self._client.converse(**request_params)
            latency_ms = int((time.perf_counter() - start_time) * 1000)

            logger.debug(
                f"Bedrock response: stop_reason={response.get('stopReason')}, "
                f"usage={response.get('usage', {})}, latency_ms={latency_ms}"
            )
            return dict(response)

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            logger.exception(f"Bedrock API error: code={error_code}, message={error_message}")
            raise BedrockClientError(
                f"Bedrock API call failed: {error_code} - {error_message}"
            ) from e
        except BotoCoreError as e:
            logger.exception("Bedrock request failed")
            raise BedrockClientError(f"Bedrock request failed: {e}") from e

    def get_content(self, response: dict[str, Any]) -> list[dict[str, Any]]:
        """Extract the assistant content blocks from a Converse response."""
        return response.get("output", {}).get("message", {}).get("content", [])

    def parse_text_response(self, response: dict[str, Any]) -> str:
        """Extract text content from a Converse response.

        :param response: Converse API response.
        :returns: Concatenated text content from the response.
        """
        text_parts = [block["text"] for block in self.get_content(response) if "text" in block]
        return "\n".join(text_parts)

    def get_stop_reason(self, response: dict[str, Any]) -> str:
        """Extract stop reason from a Converse response.

        :param response: Converse API response.
        :returns: Stop reason string.
        """
        return str(response.get("stopReason", ""))
