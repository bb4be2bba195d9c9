"""Ollama LLM Client for Local Models"""

import os
import json
import http.client
import socket
import urllib.request
import urllib.error
from collections.abc import Iterator

from commitsmith.llm.base import (
    LLMClient,
    LLMError,
    LLMResponse,
    TokenLimitError,
    is_token_limit_error,
    validate_commit_message,
)

TIMEOUT_HELP = "Try:\n  - Pre-load model: commitsmith --warmup\n  - Increase timeout: set COMMITSMITH_TIMEOUT=600"


class OllamaClient(LLMClient):
    """Ollama client for local models. Requires: ollama serve"""

    DEFAULT_MODEL = "qwen2.5-coder:1.5b"
    DEFAULT_HOST = "http://localhost:11434"
    DEFAULT_TIMEOUT = 300  # 5 minutes for CPU inference
    MAX_RETRIES = 2
    TOKEN_BUDGET = 4000

    def __init__(self, model: str | None = None, host: str | None = None, token_budget: int | None = None):
        self.model = model or self.DEFAULT_MODEL
        self._token_budget = token_budget
        self.host = host or os.environ.get("OLLAMA_HOST", self.DEFAULT_HOST)
        self.timeout = int(os.environ.get("COMMITSMITH_TIMEOUT", self.DEFAULT_TIMEOUT))
        self._verify_connection()

    @property
    def name(self) -> str:
        return f"Ollama ({self.model})"

    def _verify_connection(self) -> None:
        """Check if Ollama is running and accessible."""
        try:
            req = urllib.request.Request(f"{self.host}/api/tags")
            with urllib.request.urlopen(req, timeout=5):
                pass
        except urllib.error.URLError:
            raise LLMError("Ollama not running. Start with: ollama serve")

    def _is_model_loaded(self) -> bool:
        """Check if the model is currently loaded in memory."""
        try:
            req = urllib.request.Request(f"{self.host}/api/ps")
            with urllib.request.urlopen(req, timeout=5) as response:
                data = json.loads(response.read().decode('utf-8'))
                loaded_models = [m.get('name', '') for m in data.get('models', [])]
                return any(self.model in m or m in self.model for m in loaded_models)
        except (urllib.error.URLError, json.JSONDecodeError):
            return False

    def warmup(self) -> bool:
        """Pre-load the model with a tiny request. Returns False if loading failed."""
        if self._is_model_loaded():
            return True

        payload = {
            "model": self.model,
            "prompt": "hi",
            "stream": False,
            "options": {"num_predict": 1},
            "keep_alive": "10m",
        }

        try:
            with urllib.request.urlopen(self._request(payload), timeout=self.timeout):
                pass
        except (urllib.error.URLError, OSError):
            return False
        return True

    def _request(self, payload: dict) -> urllib.request.Request:
        data = json.dumps(payload).encode('utf-8')
        return urllib.request.Request(
            f"{self.host}/api/generate", data=data, headers={"Content-Type": "application/json"}
        )

    def _payload(self, prompt: str, system_prompt: str, stream: bool) -> dict:
        return {
            "model": self.model,
            "prompt": prompt,
            "system": system_prompt,
            "stream": stream,
            "keep_alive": "10m",
            "options": {
                "temperature": 0.4,
                "num_predict": 1000,
                "num_ctx": self.token_budget,
            }
        }

    def _call_api(self, prompt: str, system_prompt: str) -> dict:
        """Make a single API call to Ollama."""
        req = self._request(self._payload(prompt, system_prompt, stream=False))
        with urllib.request.urlopen(req, timeout=self.timeout) as response:
            return json.loads(response.read().decode('utf-8'))

    def _translate(self, error: Exception) -> LLMError:
        """Map transport failures onto the LLMError family."""
        if isinstance(error, urllib.error.HTTPError):
            body = ""
            try:
                body = error.read().decode('utf-8', errors='replace')
            except OSError:
                pass
            if error.code == 413 or is_token_limit_error(body):
                return TokenLimitError(f"Ollama request too large ({error.code}): {body or error.reason}")
            if error.code == 404:
                return LLMError(f"Model '{self.model}' not found. Run: ollama pull {self.model}")
            return LLMError(f"Ollama error ({error.code}): {body or error.reason}")
        if isinstance(error, urllib.error.URLError):
            if isinstance(error.reason, socket.timeout):
                return LLMError(f"Request timed out after {self.timeout}s. {TIMEOUT_HELP}")
            if "Connection refused" in str(error):
                return LLMError("Ollama not running. Start with: ollama serve")
            return LLMError(f"Ollama request failed: {error}")
        if isinstance(error, socket.timeout):
            return LLMError(f"Request timed out after {self.timeout}s. {TIMEOUT_HELP}")
        if isinstance(error, json.JSONDecodeError):
            return LLMError("Invalid response from Ollama. Try a different model or simpler change.")
        if isinstance(error, http.client.HTTPException):
            return LLMError(f"Incomplete response from Ollama: {error}. The model may have run out of memory.")
        return LLMError(f"Connection to Ollama lost: {error}. Check that 'ollama serve' is still running.")

    def generate(self, prompt: str, system_prompt: str, validate: bool = True) -> LLMResponse:
        """Call Ollama's generate API, re-asking when the format is off."""
        last_error = ""

        for attempt in range(self.MAX_RETRIES + 1):
            retry_prompt = prompt
            if attempt > 0:
                retry_prompt = f"{prompt}\n\nIMPORTANT: Your previous response was invalid ({last_error}). Start directly with the commit type, e.g., 'feat(scope):'"

            try:
                result = self._call_api(retry_prompt, system_prompt)
            except (OSError, json.JSONDecodeError, http.client.HTTPException) as e:
                raise self._translate(e) from e

            if result.get("error"):
                if is_token_limit_error(result["error"]):
                    raise TokenLimitError(f"Ollama: {result['error']}")
                raise LLMError(f"Ollama error: {result['error']}")

            content = result.get("response", "").strip()

            is_valid, error = validate_commit_message(content) if validate else (True, "")
            if not is_valid:
                last_error = error
                if attempt < self.MAX_RETRIES:
                    continue

            return LLMResponse(
                content=content,
                model=self.model,
                tokens_used=result.get("eval_count", 0)
            )

        raise LLMError(f"Failed after {self.MAX_RETRIES} retries: {last_error}")

    def generate_stream(self, prompt: str, system_prompt: str) -> Iterator[str]:
        """Stream pieces of the response from Ollama's NDJSON output."""
        req = self._request(self._payload(prompt, system_prompt, stream=True))
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                for raw in response:
                    line = raw.decode('utf-8', errors='replace').strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if data.get("error"):
                        if is_token_limit_error(data["error"]):
                            raise TokenLimitError(f"Ollama: {data['error']}")
                        raise LLMError(f"Ollama error: {data['error']}")
                    if data.get("response"):
                        yield data["response"]
                    if data.get("done"):
                        break
        except (OSError, http.client.HTTPException) as e:
            raise self._translate(e) from e
