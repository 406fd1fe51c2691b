# llm service using ollama for text generation
import requests
import logging
from typing import List, Dict, Optional

from .config import LLMConfig
from .errors import ErrorKind, LLMServiceError, LLMTimeoutError, Result

logger = logging.getLogger(__name__)


# service for interacting with the ollama llm api
class OllamaLLMService:
    """LLM service backed by a local Ollama server"""

    # keep config and an http session; no network call until first use
    def __init__(self, config: Optional[LLMConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or LLMConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.model = self.config.model
        self.session = session or requests.Session()

    # verify ollama server is running and the model is installed
    def check_availability(self) -> Result[List[str]]:
        """Return the installed model names, or a classified failure"""
        try:
            response = self.session.get(f"{self.base_url}/api/tags", timeout=5)
        except requests.exceptions.Timeout:
            return Result.failure(ErrorKind.TIMEOUT, "Ollama did not answer within 5s")
        except requests.exceptions.ConnectionError:
            return Result.failure(
                ErrorKind.UNAVAILABLE,
                "Cannot connect to Ollama. Start it with: ollama serve",
            )

        if response.status_code != 200:
            return Result.failure(ErrorKind.UNAVAILABLE, f"Ollama returned {response.status_code}")

        try:
            models = response.json().get("models", [])
        except ValueError as e:
            # tags body was not json
            return Result.failure(ErrorKind.MALFORMED_RESPONSE, f"Unreadable reply from Ollama: {str(e)}")
        model_names = [model.get("name", "") for model in models]
        if not any(self.model in name for name in model_names):
            logger.warning(f"Model {self.model} not found. Available models: {model_names}")
            return Result.failure(
                ErrorKind.UNAVAILABLE,
                f"Model {self.model} not available. Run: ollama pull {self.model}",
            )

        logger.info(f"✓ Ollama is running with model: {self.model}")
        return Result.success(model_names)

    # generate text using the ollama api; raises on failure
    def generate_text(self, prompt: str, max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> str:
        """Generate text using Ollama"""
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature if temperature is None else temperature,
                "num_predict": max_tokens or self.config.max_tokens,
                "top_p": 0.9,
                "top_k": 40,
            },
        }

        try:
            response = self.session.post(
                f"{self.base_url}/api/generate",
                json=payload,
                timeout=self.config.timeout,
            )
        except requests.exceptions.Timeout:
            raise LLMTimeoutError(
                f"Request timed out after {self.config.timeout}s. The model might be too slow or overloaded."
            )
        except requests.exceptions.RequestException as e:
            raise LLMServiceError(f"Cannot reach Ollama at {self.base_url}: {str(e)}")

        if response.status_code != 200:
            raise LLMServiceError(f"Ollama API error: {response.status_code} - {response.text}")

        result = response.json()
        return result.get("response", "").strip()

    # chat completion returning a Result instead of raising
    def chat(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Result[str]:
        """Generate a chat completion; failures come back classified"""
        prompt = self._messages_to_prompt(messages)
        try:
            text = self.generate_text(prompt, max_tokens, temperature)
        except LLMTimeoutError as e:
            logger.error(f"✗ LLM call timed out: {str(e)}")
            return Result.failure(ErrorKind.TIMEOUT, str(e))
        except LLMServiceError as e:
            logger.error(f"✗ LLM call failed: {str(e)}")
            return Result.failure(ErrorKind.UNAVAILABLE, str(e))
        except ValueError as e:
            # response body was not json
            logger.error(f"✗ LLM returned an unreadable body: {str(e)}")
            return Result.failure(ErrorKind.MALFORMED_RESPONSE, str(e))

        if not text:
            return Result.failure(ErrorKind.MALFORMED_RESPONSE, "Empty response from model")
        return Result.success(text)

    # convert list of messages to a single prompt string
    def _messages_to_prompt(self, messages: List[Dict[str, str]]) -> str:
        """Convert chat messages to a single prompt"""
        prompt_parts = []

        for message in messages:
            role = message.get("role", "user")
            content = message.get("content", "")

            if role == "system":
                prompt_parts.append(f"System: {content}")
            elif role == "user":
                prompt_parts.append(f"User: {content}")
            elif role == "assistant":
                prompt_parts.append(f"Assistant: {content}")

        return "\n\n".join(prompt_parts) + "\n\nAssistant:"
