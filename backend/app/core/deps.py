import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from supabase import create_client, Client
from openai import OpenAI
from app.core.config import get_settings

_prompt_logger = logging.getLogger("lessoncraft.gemini_prompts")


@lru_cache
def get_supabase_client() -> Client:
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise RuntimeError("Supabase settings missing (SUPABASE_URL / SUPABASE_SERVICE_KEY)")
    return create_client(settings.supabase_url, settings.supabase_service_key)


# ── Gemini behind the OpenAI chat-completions shape ──────────────────────────
# AIService only ever calls client.chat.completions.create(...) and reads
# response.choices[0].message.content, so that is all the adapter provides.

@dataclass
class _Message:
    content: str


@dataclass
class _Choice:
    message: _Message


@dataclass
class _ChatResponse:
    choices: list[_Choice]

    @classmethod
    def from_text(cls, text: str) -> "_ChatResponse":
        return cls(choices=[_Choice(message=_Message(content=text))])


def _split_messages(messages) -> tuple[str | None, str]:
    """OpenAI-style message list → (system_instruction, user_prompt)."""
    system, user = [], []
    for m in messages or []:
        (system if m.get("role") == "system" else user).append(m["content"])
    return ("\n\n".join(system) or None), "\n\n".join(user)


class _GeminiCompletions:
    def __init__(self, api_key: str, json_mode: bool = True):
        self._api_key = api_key
        self._json_mode = json_mode

    def create(self, model=None, messages=None, temperature=0.4, max_tokens=None, **kwargs):
        from google import genai
        from google.genai import types

        system_instruction, user_prompt = _split_messages(messages)
        model = model or "gemini-2.5-flash"
        max_tokens = max_tokens or 4096

        if os.environ.get("DEBUG_LLM_PROMPTS", "").lower() in ("1", "true"):
            _prompt_logger.warning(
                "model=%s temp=%s max_tokens=%s\n── SYSTEM ──\n%s\n── USER ──\n%s",
                model, temperature, max_tokens, system_instruction or "(none)", user_prompt,
            )

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if self._json_mode else None,
            # no thinking tokens: they show up as preamble before the JSON
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )
        response = genai.Client(api_key=self._api_key).models.generate_content(
            model=model,
            contents=user_prompt,
            config=config,
        )
        return _ChatResponse.from_text(response.text or "")


class _GeminiChat:
    def __init__(self, completions: _GeminiCompletions):
        self.completions = completions


class GeminiClientAdapter:
    def __init__(self, api_key: str, json_mode: bool = True):
        self.chat = _GeminiChat(_GeminiCompletions(api_key, json_mode))


def get_llm_client(settings=None):
    """Return the active LLM client based on llm_provider setting."""
    if settings is None:
        settings = get_settings()
    if settings.llm_provider == "openai":
        return OpenAI(api_key=settings.openai_api_key)
    return GeminiClientAdapter(api_key=settings.gemini_api_key)
