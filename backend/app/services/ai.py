import asyncio
import logging

from app.core.config import get_settings
from app.core.deps import get_llm_client
from app.core.errors import GenerationTimeout, GenerationUnavailable
from app.utils.json_payload import parse_json_payload

logger = logging.getLogger("lessoncraft.ai")


class AIService:
    def __init__(self, client=None, settings=None):
        self.settings = settings or get_settings()
        self.client = client if client is not None else get_llm_client(self.settings)

    def _complete(self, messages, model, temperature, max_tokens) -> str:
        response = self.client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    async def generate_completion(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float = 0.4,
        max_tokens: int = 4096,
        timeout: float | None = None,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        timeout = timeout if timeout is not None else self.settings.generation_timeout_seconds
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._complete, messages, model or self.settings.llm_model,
                                  temperature, max_tokens),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("[ai] completion timed out after %ss", timeout)
            raise GenerationTimeout(f"AI collaborator did not answer within {timeout}s") from exc
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[ai] completion failed: %s", exc)
            raise GenerationUnavailable(f"AI collaborator error: {exc.__class__.__name__}") from exc

    async def generate_json(self, prompt: str, system_prompt: str | None = None, **kwargs) -> dict:
        """Completion parsed as a JSON object; MalformedPayload if it is not one."""
        content = await self.generate_completion(prompt, system_prompt, **kwargs)
        return parse_json_payload(content)


def get_ai_service() -> AIService:
    return AIService()
