"""
Oracle client for DatoGPT.

This module handles communication with the OpenAI-compatible API that backs
every generation: text completions, image generation and image description.
The rest of the package treats it as an opaque ``prompt -> text`` oracle.
"""

import httpx
import json
import time
from typing import Any, Dict, List, Optional
import logging

from ..config import config
from ..database import DatabaseManager
from ..errors import OracleError
from ..models import GeneratedImage


class OracleClient:
    """
    Sends prompts to the LLM and image oracles and logs every call.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        model: Optional[str] = None,
        image_model: Optional[str] = None,
        alt_model: Optional[str] = None,
        timeout: Optional[float] = None,
        database_manager: Optional[DatabaseManager] = None
    ):
        """
        Initialize the oracle client.

        Args:
            api_key: API key (defaults to config value)
            api_base: API base URL (defaults to config value)
            model: Text completion model (defaults to config value)
            image_model: Image generation model (defaults to config value)
            alt_model: Vision model used for alt text (defaults to config value)
            timeout: Transport timeout in seconds (defaults to config value)
            database_manager: Optional database manager for the call log
        """
        self.api_key = api_key or config.api_key
        self.api_base = (api_base or config.api_base).rstrip("/")
        self.model = model or config.gpt_model
        self.image_model = image_model or config.image_model
        self.alt_model = alt_model or config.alt_model
        self.client = httpx.Client(
            timeout=timeout or config.oracle_timeout,
            headers={"Authorization": f"Bearer {self.api_key}"}
        )
        self.db = database_manager

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def close(self):
        self.client.close()

    def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        purpose: str,
        prompt: str,
        model: str,
        field_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        POST a request to the oracle and log it.

        Args:
            path: Endpoint path relative to the API base
            payload: JSON body
            purpose: Call purpose recorded in the log
            prompt: Prompt recorded in the log
            model: Model recorded in the log
            field_name: Field the call is made for (optional)

        Returns:
            The decoded JSON response

        Raises:
            OracleError: If the request fails or the oracle answers with an error
        """
        logging.debug(f"Oracle call: {purpose} for field {field_name or '-'}")
        start_time = time.time()
        success = False
        error_message = None
        raw_response = ""

        try:
            response = self.client.post(f"{self.api_base}{path}", json=payload)
            raw_response = response.text
            response.raise_for_status()
            result = response.json()
            success = True
            return result

        except httpx.RequestError as e:
            error_message = f"Failed to connect to the oracle: {e}"
            raise OracleError(error_message) from e
        except httpx.HTTPStatusError as e:
            error_message = f"Oracle request failed: {_error_detail(e.response)}"
            raise OracleError(error_message) from e
        except ValueError as e:
            error_message = f"Oracle returned a non-JSON response: {e}"
            raise OracleError(error_message) from e
        finally:
            execution_time_ms = int((time.time() - start_time) * 1000)

            if self.db:
                try:
                    self.db.log_oracle_call(
                        purpose=purpose,
                        field_name=field_name,
                        model_name=model,
                        prompt=prompt,
                        raw_response=raw_response,
                        success=success,
                        error_message=error_message,
                        execution_time_ms=execution_time_ms
                    )
                except Exception as log_error:
                    logging.warning(f"Failed to log oracle call: {log_error}")

    def complete(self, prompt: str, purpose: str = "completion", field_name: Optional[str] = None) -> str:
        """
        Run a text completion with ``prompt`` as the only (system) message.

        Args:
            prompt: The assembled prompt
            purpose: Call purpose recorded in the log
            field_name: Field the call is made for (optional)

        Returns:
            The completion text
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": prompt}]
        }
        result = self._post("/chat/completions", payload, purpose, prompt, self.model, field_name)
        return _message_content(result)

    def generate_images(
        self,
        prompt: str,
        n: int = 1,
        size: str = "1024x1024",
        model: Optional[str] = None,
        field_name: Optional[str] = None
    ) -> List[GeneratedImage]:
        """
        Generate images for a prompt.

        Args:
            prompt: Image description
            n: Number of images
            size: Resolution ("1024x1024", "1792x1024", ...)
            model: Image model (defaults to the configured one)
            field_name: Field the call is made for (optional)

        Returns:
            One GeneratedImage per returned image
        """
        image_model = model or self.image_model
        payload = {"model": image_model, "prompt": prompt, "n": n, "size": size}
        result = self._post("/images/generations", payload, "image_generation", prompt, image_model, field_name)
        return [
            GeneratedImage(url=item["url"], revised_prompt=item.get("revised_prompt") or "")
            for item in result.get("data", [])
            if item.get("url")
        ]

    def describe_image(self, prompt: str, image_url: str, field_name: Optional[str] = None) -> str:
        """
        Ask the vision model about an image.

        Args:
            prompt: Instruction for the description
            image_url: Publicly reachable image URL
            field_name: Field the call is made for (optional)

        Returns:
            The description text
        """
        payload = {
            "model": self.alt_model,
            "messages": [{
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_url}}
                ]
            }]
        }
        logged_prompt = f"{prompt}\n[image] {image_url}"
        result = self._post("/chat/completions", payload, "alt_text", logged_prompt, self.alt_model, field_name)
        return _message_content(result)

    def fetch_bytes(self, url: str) -> bytes:
        """
        Download a generated image.

        Args:
            url: Image URL returned by the image oracle

        Returns:
            The raw image bytes
        """
        try:
            # Generated image URLs are pre-signed; the API key must not be sent along.
            response = httpx.get(url, timeout=self.client.timeout, follow_redirects=True)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as e:
            raise OracleError(f"Failed to download generated image: {e}") from e


def _message_content(result: Dict[str, Any]) -> str:
    choices = result.get("choices") or []
    if not choices:
        raise OracleError(f"Oracle returned no choices: {json.dumps(result)[:200]}")
    return (choices[0].get("message") or {}).get("content") or ""


def _error_detail(response: httpx.Response) -> str:
    """The oracle's own error message when it sent one."""
    try:
        body = response.json()
    except ValueError:
        return f"{response.status_code} {response.text[:200]}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return f"{response.status_code} {response.text[:200]}"
