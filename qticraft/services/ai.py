import json
import logging

from qticraft.core.config import get_settings
from qticraft.core.deps import get_openai_client
from qticraft.prompts.widget_mapping import (
    ITEM_GENERATION_SYSTEM_PROMPT,
    WIDGET_MAPPING_SYSTEM_PROMPT,
    build_item_generation_prompt,
    build_widget_mapping_prompt,
    parse_widget_mapping,
)

logger = logging.getLogger("qticraft.ai")


class AIService:
    """Structured-output generation upstream of the compiler. The compiler never calls this."""

    def __init__(self, client=None, model: str | None = None):
        settings = get_settings()
        self.client = client or get_openai_client()
        self.model = model or settings.openai_model

    def generate_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 4096,
    ) -> dict:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content or ""
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.error("model returned non-JSON content (%d chars): %s", len(content), e)
            raise

    def map_widgets(self, body: str) -> dict[str, str]:
        """Ask the model which widget type belongs in each slot of ``body``."""
        payload = self.generate_json(build_widget_mapping_prompt(body), WIDGET_MAPPING_SYSTEM_PROMPT)
        return parse_widget_mapping(payload)

    def generate_item(self, request: str) -> dict:
        """Raw item JSON; feed it to ``qticraft.services.sanitizer.parse_item``."""
        return self.generate_json(build_item_generation_prompt(request), ITEM_GENERATION_SYSTEM_PROMPT)


def get_ai_service() -> AIService:
    return AIService()
