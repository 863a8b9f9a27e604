"""
Tests for the oracle client and its call log.
"""

import unittest
from unittest.mock import Mock, patch

import httpx

from datogpt.database import DatabaseManager
from datogpt.errors import OracleError
from datogpt.oracle import OracleClient


def json_response(body, status_code=200, text=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = text if text is not None else str(body)
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}", request=Mock(), response=response
        )
    return response


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class OracleTestCase(unittest.TestCase):

    def make_client(self, database_manager=None):
        return OracleClient(
            api_key="sk-test",
            api_base="https://api.example.com/v1/",
            model="gpt-test",
            image_model="image-test",
            alt_model="vision-test",
            timeout=5,
            database_manager=database_manager
        )


class TestOracleClient(OracleTestCase):
    """Test oracle requests and response handling."""

    @patch('datogpt.oracle.client.httpx.Client')
    def test_complete_sends_system_prompt(self, mock_client):
        mock_client.return_value.post.return_value = json_response(completion("Tomatoes"))

        result = self.make_client().complete("Write a title", purpose="generate", field_name="title")

        self.assertEqual(result, "Tomatoes")
        url = mock_client.return_value.post.call_args[0][0]
        payload = mock_client.return_value.post.call_args.kwargs["json"]
        self.assertEqual(url, "https://api.example.com/v1/chat/completions")
        self.assertEqual(payload, {"model": "gpt-test", "messages": [{"role": "system", "content": "Write a title"}]})
        headers = mock_client.call_args.kwargs["headers"]
        self.assertEqual(headers["Authorization"], "Bearer sk-test")

    @patch('datogpt.oracle.client.httpx.Client')
    def test_missing_content_is_empty_string(self, mock_client):
        mock_client.return_value.post.return_value = json_response(completion(None))

        self.assertEqual(self.make_client().complete("Write a title"), "")

    @patch('datogpt.oracle.client.httpx.Client')
    def test_no_choices(self, mock_client):
        mock_client.return_value.post.return_value = json_response({"choices": []})

        with self.assertRaises(OracleError):
            self.make_client().complete("Write a title")

    @patch('datogpt.oracle.client.httpx.Client')
    def test_http_error_uses_oracle_message(self, mock_client):
        mock_client.return_value.post.return_value = json_response(
            {"error": {"message": "Rate limit reached"}}, status_code=429
        )

        with self.assertRaises(OracleError) as raised:
            self.make_client().complete("Write a title")

        self.assertIn("Rate limit reached", str(raised.exception))

    @patch('datogpt.oracle.client.httpx.Client')
    def test_connection_error(self, mock_client):
        mock_client.return_value.post.side_effect = httpx.ConnectError("connection refused")

        with self.assertRaises(OracleError) as raised:
            self.make_client().complete("Write a title")

        self.assertIn("connection refused", str(raised.exception))

    @patch('datogpt.oracle.client.httpx.Client')
    def test_generate_images(self, mock_client):
        mock_client.return_value.post.return_value = json_response({"data": [
            {"url": "https://images.example.com/1.png", "revised_prompt": "A red tomato"},
            {"url": "https://images.example.com/2.png"},
            {"b64_json": "ignored"},
        ]})

        images = self.make_client().generate_images("A tomato", n=3, size="512x512")

        self.assertEqual([image.url for image in images], [
            "https://images.example.com/1.png", "https://images.example.com/2.png"
        ])
        self.assertEqual(images[1].revised_prompt, "")
        payload = mock_client.return_value.post.call_args.kwargs["json"]
        self.assertEqual(payload, {"model": "image-test", "prompt": "A tomato", "n": 3, "size": "512x512"})

    @patch('datogpt.oracle.client.httpx.Client')
    def test_describe_image(self, mock_client):
        mock_client.return_value.post.return_value = json_response(completion("A basket"))

        result = self.make_client().describe_image("Describe this", "https://cdn.example.com/basket.jpg")

        self.assertEqual(result, "A basket")
        payload = mock_client.return_value.post.call_args.kwargs["json"]
        self.assertEqual(payload["model"], "vision-test")
        self.assertEqual(payload["messages"][0]["content"][1], {
            "type": "image_url", "image_url": {"url": "https://cdn.example.com/basket.jpg"}
        })

    @patch('datogpt.oracle.client.httpx.get')
    @patch('datogpt.oracle.client.httpx.Client')
    def test_fetch_bytes(self, mock_client, mock_get):
        mock_get.return_value.content = b"\x89PNG"

        self.assertEqual(self.make_client().fetch_bytes("https://images.example.com/1.png"), b"\x89PNG")

        mock_get.return_value.raise_for_status.side_effect = httpx.HTTPError("expired")
        with self.assertRaises(OracleError):
            self.make_client().fetch_bytes("https://images.example.com/1.png")


class TestOracleCallLog(OracleTestCase):
    """Test that every call lands in the call log."""

    def setUp(self):
        self.db = DatabaseManager(":memory:")
        self.db.connect()
        self.db.initialize_database()

    def tearDown(self):
        self.db.disconnect()

    @patch('datogpt.oracle.client.httpx.Client')
    def test_successful_call_logged(self, mock_client):
        mock_client.return_value.post.return_value = json_response(
            completion("Tomatoes"), text='{"choices": "..."}'
        )

        self.make_client(self.db).complete("Write a title", purpose="generate", field_name="title")

        calls = self.db.get_oracle_calls()
        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0]["purpose"], "generate")
        self.assertEqual(calls[0]["field_name"], "title")
        self.assertEqual(calls[0]["model_name"], "gpt-test")
        self.assertEqual(calls[0]["prompt"], "Write a title")
        self.assertEqual(calls[0]["raw_response"], '{"choices": "..."}')
        self.assertTrue(calls[0]["success"])

    @patch('datogpt.oracle.client.httpx.Client')
    def test_failed_call_logged(self, mock_client):
        mock_client.return_value.post.return_value = json_response(
            {"error": {"message": "Invalid key"}}, status_code=401, text="Invalid key"
        )

        with self.assertRaises(OracleError):
            self.make_client(self.db).complete("Write a title", purpose="translate")

        calls = self.db.get_oracle_calls(purpose="translate")
        self.assertEqual(len(calls), 1)
        self.assertFalse(calls[0]["success"])
        self.assertIn("Invalid key", calls[0]["error_message"])
        self.assertEqual(self.db.get_oracle_calls(success_only=True), [])

    @patch('datogpt.oracle.client.httpx.Client')
    def test_log_failure_does_not_break_call(self, mock_client):
        mock_client.return_value.post.return_value = json_response(completion("Tomatoes"))
        db = Mock()
        db.log_oracle_call.side_effect = RuntimeError("disk full")

        self.assertEqual(self.make_client(db).complete("Write a title"), "Tomatoes")


if __name__ == '__main__':
    unittest.main()
