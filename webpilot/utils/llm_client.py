"""OpenAI-compatible inference service for locally served models"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import httpx
import openai

from .logger import log, progress, progress_done, is_verbose
from ..core.config import DEFAULT_API_KEY, DEFAULT_BASE_URL, DEFAULT_MODEL, FALLBACK_MODELS


class InferenceError(Exception):
    """
    Raised when the inference service cannot load a model or answer a request.

    Callers translate this into the task-level error for their phase.
    """

    def __init__(self, message: str, original_error: Exception = None, attempts: int = 0):
        super().__init__(message)
        self.original_error = original_error
        self.attempts = attempts


@dataclass
class EngineState:
    """Snapshot of the model lifecycle"""
    is_loading: bool = False
    load_progress: float = 0.0
    current_model: Optional[str] = None
    error: Optional[str] = None
    ready: bool = False


# Type for progress callback: (progress: float in [0, 1]) -> None
ProgressCallback = Callable[[float], None]


class InferenceService:
    """
    Chat-completion service backed by a local OpenAI-compatible server
    (Ollama, llama.cpp server, vLLM).

    Features:
    - Model loading with ordered fallback candidates
    - Load-progress notifications to subscribers
    - Streaming chat completions with JSON mode
    - Exponential backoff retry for recoverable errors
    """

    # Recoverable error status codes
    RETRY_STATUS_CODES = {429, 503, 502, 500}

    # Retry configuration (local servers recover fast or not at all)
    MAX_RETRIES = 3
    BASE_DELAY = 0.5  # seconds
    MAX_DELAY = 8.0  # seconds

    # Default timeout per request; small local models can be slow on CPU
    DEFAULT_TIMEOUT = 300  # seconds

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str = DEFAULT_API_KEY,
        default_model: str = DEFAULT_MODEL,
        fallback_models: Optional[List[str]] = None,
        default_timeout: int = None,
    ):
        """
        Initialize inference service.

        Args:
            base_url: OpenAI-compatible API base URL
            api_key: API key (local servers accept any value)
            default_model: Model loaded when initialize() gets no model id
            fallback_models: Models tried in order when the requested one fails
            default_timeout: Default request timeout in seconds
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._default_model = default_model
        self._fallback_models = list(FALLBACK_MODELS if fallback_models is None else fallback_models)
        self._default_timeout = default_timeout or self.DEFAULT_TIMEOUT
        self._client: Optional[openai.AsyncOpenAI] = None
        self._state = EngineState()
        self._progress_callbacks: List[ProgressCallback] = []
        self._init_lock = asyncio.Lock()

    @property
    def state(self) -> EngineState:
        """Copy of the current engine state"""
        return EngineState(**vars(self._state))

    def is_ready(self) -> bool:
        return self._state.ready and not self._state.is_loading

    def candidate_models(self, model_id: Optional[str] = None) -> List[str]:
        """Requested model first, then each fallback not already listed."""
        target = model_id or self._default_model
        return [target] + [m for m in self._fallback_models if m != target]

    def on_progress(self, callback: ProgressCallback) -> Callable[[], None]:
        """Subscribe to load progress. Returns an unsubscribe function."""
        self._progress_callbacks.append(callback)

        def unsubscribe():
            if callback in self._progress_callbacks:
                self._progress_callbacks.remove(callback)

        return unsubscribe

    def _notify_progress(self, value: float):
        self._state.load_progress = value
        for callback in list(self._progress_callbacks):
            try:
                callback(value)
            except Exception as e:
                log("LLM", f"Progress callback error: {e}", force=True)

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            timeout_config = httpx.Timeout(
                connect=30.0,
                read=self._default_timeout,  # Read timeout (for streaming)
                write=30.0,
                pool=30.0,
            )
            self._client = openai.AsyncOpenAI(
                base_url=self._base_url,
                api_key=self._api_key,
                timeout=timeout_config,
                max_retries=0,  # We handle retries ourselves
            )
        return self._client

    async def initialize(self, model_id: Optional[str] = None):
        """
        Load a model, falling back through the configured candidates.

        Args:
            model_id: Requested model (default: the service's default model)

        Raises:
            InferenceError: every candidate failed to load
        """
        target = model_id or self._default_model

        async with self._init_lock:
            if self._state.ready and self._state.current_model == target:
                log("LLM", f"Already initialized with {target}")
                return

            if self._state.current_model and self._state.current_model != target:
                log("LLM", f"Switching model from {self._state.current_model} to {target}")
                self.reset()

            self._state.is_loading = True
            self._state.error = None
            self._state.ready = False
            self._state.load_progress = 0.0

            candidates = self.candidate_models(target)
            last_error: Optional[Exception] = None

            for attempt, model in enumerate(candidates, start=1):
                try:
                    log("LLM", f"Initializing model: {model}")
                    await self._load_model(model)
                except Exception as e:
                    last_error = e
                    log("LLM", f"Failed to load {model}: {type(e).__name__}: {e}", force=True)
                    if attempt < len(candidates):
                        log("LLM", "Trying fallback model...")
                    continue

                self._state.current_model = model
                self._state.is_loading = False
                self._state.ready = True
                self._notify_progress(1.0)
                log("LLM", f"Successfully loaded: {model}")
                return

            self._state.is_loading = False
            self._state.error = str(last_error)
            raise InferenceError(
                f"No model could be loaded (tried {', '.join(candidates)}): {last_error}",
                original_error=last_error,
                attempts=len(candidates),
            )

    async def _load_model(self, model: str):
        """Ask the server for the model; local servers load it on first use."""
        await self._get_client().models.retrieve(model)

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: int = 2048,
        json_mode: bool = True,
        timeout_s: int = None,
    ) -> str:
        """
        Make a chat completion request against the loaded model.

        Args:
            messages: OpenAI-style role/content messages
            temperature: Sampling temperature
            max_tokens: Completion token limit
            json_mode: Ask the server for a JSON object response
            timeout_s: Request timeout in seconds (default: use service default)

        Returns:
            Response content

        Raises:
            InferenceError: not initialized, retries exhausted, or empty output
        """
        if not self._state.ready:
            raise InferenceError("Inference service not initialized. Call initialize() first.")

        actual_timeout = timeout_s if timeout_s is not None else self._default_timeout
        model = self._state.current_model

        # Retry loop with exponential backoff
        last_error = None
        for attempt in range(self.MAX_RETRIES):
            try:
                return await self._make_request(
                    messages=messages,
                    model=model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    json_mode=json_mode,
                    timeout_s=actual_timeout,
                )

            except openai.RateLimitError as e:
                last_error = e
                log("LLM", f"Rate limit hit, attempt {attempt + 1}/{self.MAX_RETRIES}")
                await self._backoff(attempt)

            except openai.BadRequestError as e:
                # Context overflow and malformed requests won't improve on retry
                raise InferenceError(f"Request rejected: {e}", original_error=e, attempts=attempt + 1) from e

            except openai.APIStatusError as e:
                if e.status_code in self.RETRY_STATUS_CODES:
                    last_error = e
                    log("LLM", f"API error {e.status_code}, attempt {attempt + 1}/{self.MAX_RETRIES}")
                    await self._backoff(attempt)
                else:
                    raise InferenceError(f"API error {e.status_code}: {e}", original_error=e, attempts=attempt + 1) from e

            except (httpx.TimeoutException, httpx.ConnectError, openai.APIConnectionError) as e:
                last_error = e
                log("LLM", f"Connection error, attempt {attempt + 1}/{self.MAX_RETRIES}: {e}")
                await self._backoff(attempt)

            except ValueError as e:
                # Empty response
                last_error = e
                log("LLM", f"Error, attempt {attempt + 1}/{self.MAX_RETRIES}: {e}")
                await self._backoff(attempt)

        raise InferenceError(
            f"Chat request failed after {self.MAX_RETRIES} attempts: {last_error}",
            original_error=last_error,
            attempts=self.MAX_RETRIES,
        )

    async def _make_request(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool,
        timeout_s: int,
    ) -> str:
        """Make a single API request with streaming"""
        params = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
            "timeout": timeout_s,
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        start_time = time.time()
        stream = await self._get_client().chat.completions.create(**params)

        content_parts = []
        chunk_count = 0
        last_progress = 0

        async for chunk in stream:
            chunk_count += 1
            if chunk.choices and chunk.choices[0].delta.content:
                content_parts.append(chunk.choices[0].delta.content)

            # Update progress every second
            elapsed = time.time() - start_time
            if is_verbose() and elapsed - last_progress >= 1.0:
                last_progress = elapsed
                progress("LLM", elapsed, timeout_s, f"chunks:{chunk_count}")

        if is_verbose() and last_progress > 0:
            progress_done("LLM", f"Done in {time.time()-start_time:.1f}s, {chunk_count} chunks")

        content = "".join(content_parts)
        if not content.strip():
            raise ValueError(f"LLM returned empty response after {chunk_count} chunks")

        return content.strip()

    async def _backoff(self, attempt: int):
        """Exponential backoff with jitter"""
        delay = min(
            self.BASE_DELAY * (2 ** attempt) + random.uniform(0, 0.5),
            self.MAX_DELAY
        )
        await asyncio.sleep(delay)

    def reset(self):
        """Forget the loaded model; the next initialize() loads from scratch."""
        self._state = EngineState()
