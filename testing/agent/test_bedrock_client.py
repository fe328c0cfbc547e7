"""Tests for BedrockClient."""

import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError

from chat_agent.agent.bedrock_client import (
    MODEL_ALIASES,
    VALID_MODEL_OPTIONS,
    BedrockClient,
    resolve_model_id,
)
from chat_agent.agent.exceptions import BedrockClientError

MESSAGES = [{"role": "user", "content": [{"text": "Hi"}]}]


class TestResolveModelId(unittest.TestCase):
    """Tests for resolve_model_id function."""

    def test_resolve_sonnet(self) -> None:
        """Test resolving sonnet alias."""
        self.assertEqual(resolve_model_id("sonnet"), MODEL_ALIASES["sonnet"])

    def test_resolve_case_insensitive(self) -> None:
        """Test that model aliases are case insensitive."""
        self.assertEqual(resolve_model_id("HAIKU"), MODEL_ALIASES["haiku"])
        self.assertEqual(resolve_model_id("Opus"), MODEL_ALIASES["opus"])

    def test_resolve_invalid_raises_error(self) -> None:
        """Test that invalid model alias raises ValueError."""
        with self.assertRaises(ValueError) as ctx:
            resolve_model_id("invalid-model")

        self.assertIn("Invalid model 'invalid-model'", str(ctx.exception))
        for option in VALID_MODEL_OPTIONS:
            self.assertIn(option, str(ctx.exception))


class TestBedrockClient(unittest.TestCase):
    """Tests for BedrockClient."""

    @patch("chat_agent.agent.bedrock_client.get_settings")
    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_init_default_region(
        self, mock_boto_client: MagicMock, mock_get_settings: MagicMock
    ) -> None:
        """Test client initialisation with the configured region."""
        mock_get_settings.return_value.aws_region = "eu-west-2"

        client = BedrockClient()

        self.assertEqual(client.region_name, "eu-west-2")
        mock_boto_client.assert_called_once()
        self.assertEqual(mock_boto_client.call_args.args[0], "bedrock-runtime")
        self.assertEqual(mock_boto_client.call_args.kwargs["region_name"], "eu-west-2")

    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_init_with_custom_region(self, mock_boto_client: MagicMock) -> None:
        """Test client initialisation with custom region."""
        client = BedrockClient(region_name="us-east-1")

        self.assertEqual(client.region_name, "us-east-1")
        self.assertEqual(mock_boto_client.call_args.kwargs["region_name"], "us-east-1")

    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_converse_basic(self, mock_boto_client: MagicMock) -> None:
        """Test basic converse call."""
        mock_bedrock = MagicMock()
        mock_boto_client.return_value = mock_bedrock
        mock_bedrock.converse.return_value = {
            "output": {"message": {"content": [{"text": "Hello"}]}},
            "stopReason": "end_turn",
            "usage": {"inputTokens": 10, "outputTokens": 5},
        }

        client = BedrockClient(region_name="eu-west-2")
        response = client.converse(MESSAGES, model_id="sonnet")

        self.assertEqual(response["stopReason"], "end_turn")
        call_kwargs = mock_bedrock.converse.call_args.kwargs
        self.assertEqual(call_kwargs["modelId"], MODEL_ALIASES["sonnet"])
        self.assertNotIn("system", call_kwargs)
        self.assertNotIn("toolConfig", call_kwargs)

    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_converse_with_cached_system_prompt(self, mock_boto_client: MagicMock) -> None:
        """Test that the system prompt gets a cache point by default."""
        mock_bedrock = MagicMock()
        mock_boto_client.return_value = mock_bedrock
        mock_bedrock.converse.return_value = {"output": {"message": {}}}

        client = BedrockClient(region_name="eu-west-2")
        client.converse(MESSAGES, model_id="haiku", system_prompt="Be helpful")

        system_blocks = mock_bedrock.converse.call_args.kwargs["system"]
        self.assertEqual(system_blocks[0], {"text": "Be helpful"})
        self.assertEqual(system_blocks[1], {"cachePoint": {"type": "default"}})

    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_converse_without_cache(self, mock_boto_client: MagicMock) -> None:
        """Test converse without prompt caching."""
        mock_bedrock = MagicMock()
        mock_boto_client.return_value = mock_bedrock
        mock_bedrock.converse.return_value = {"output": {"message": {}}}

        client = BedrockClient(region_name="eu-west-2")
        client.converse(
            MESSAGES, model_id="haiku", system_prompt="Be helpful", cache_system_prompt=False
        )

        self.assertEqual(
            mock_bedrock.converse.call_args.kwargs["system"], [{"text": "Be helpful"}]
        )

    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_converse_with_tool_config(self, mock_boto_client: MagicMock) -> None:
        """Test that a non-empty tool configuration is sent."""
        mock_bedrock = MagicMock()
        mock_boto_client.return_value = mock_bedrock
        mock_bedrock.converse.return_value = {"output": {"message": {}}}
        tool_config = {"tools": [{"toolSpec": {"name": "t"}}]}

        client = BedrockClient(region_name="eu-west-2")
        client.converse(MESSAGES, model_id="opus", tool_config=tool_config)

        self.assertEqual(mock_bedrock.converse.call_args.kwargs["toolConfig"], tool_config)

    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_converse_handles_client_error(self, mock_boto_client: MagicMock) -> None:
        """Test that ClientError is converted to BedrockClientError."""
        mock_bedrock = MagicMock()
        mock_boto_client.return_value = mock_bedrock
        mock_bedrock.converse.side_effect = ClientError(
            {"Error": {"Code": "ValidationException", "Message": "Invalid input"}},
            "Converse",
        )

        client = BedrockClient(region_name="eu-west-2")

        with self.assertRaises(BedrockClientError) as ctx:
            client.converse(MESSAGES, model_id="sonnet")

        self.assertIn("ValidationException", str(ctx.exception))

    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_converse_handles_connection_error(self, mock_boto_client: MagicMock) -> None:
        """Test that transport errors are converted to BedrockClientError."""
        mock_bedrock = MagicMock()
        mock_boto_client.return_value = mock_bedrock
        mock_bedrock.converse.side_effect = EndpointConnectionError(endpoint_url="https://x")

        client = BedrockClient(region_name="eu-west-2")

        with self.assertRaises(BedrockClientError):
            client.converse(MESSAGES, model_id="sonnet")

    @patch("chat_agent.agent.bedrock_client.boto3.client")
    def test_parse_text_and_stop_reason(self, mock_boto_client: MagicMock) -> None:
        """Test response parsing helpers."""
        client = BedrockClient(region_name="eu-west-2")
        response = {
            "output": {
                "message": {
                    "content": [
                        {"text": "Line one"},
                        {"toolUse": {"toolUseId": "t1", "name": "tool", "input": {}}},
                        {"text": "Line two"},
                    ]
                }
            },
            "stopReason": "tool_use",
        }

        self.assertEqual(client.parse_text_response(response), "Line one\nLine two")
        self.assertEqual(client.get_stop_reason(response), "tool_use")
        self.assertEqual(len(client.get_content(response)), 3)
        self.assertEqual(client.get_stop_reason({}), "")


if __name__ == "__main__":
    unittest.main()
