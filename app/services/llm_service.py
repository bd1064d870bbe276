import json
import logging
from typing import Any, List, Optional
from dataclasses import dataclass

from google import genai
from google.genai import types

from app.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# Human-readable schema documentation
NARRATIVE_SCHEMA_DOCS = """
NARRATIVE JSON SCHEMA:

{
  "headline": "string - short itinerary headline (REQUIRED)",
  "overview": "string - 2-3 sentence overview (REQUIRED)",
  "blocks": [
    {
      "id": "string - block id exactly as provided (REQUIRED)",
      "whyThis": "string - 1-2 sentences on why it fits the guest (REQUIRED)",
      "tips": ["string"] - 0 to 3 short practical tips
    }
  ],
  "generalTips": ["string"] - 2 to 8 tips for the whole plan,
  "disclaimers": ["string"] - 1 to 6 disclaimers (hours change, holiday closures)
}
"""


@dataclass
class LLMConfig:
    """Configuration for LLM calls"""
    model: str = "gemini-2.0-flash-lite"
    temperature: float = 0.7
    top_p: float = 0.95
    max_output_tokens: int = 4096
    json_output: bool = True


@dataclass
class LLMResponse:
    """Standardized LLM response"""
    success: bool
    content: str
    raw_response: Any
    error: Optional[str] = None


class GeminiLLMService:
    """Gemini client for narrative text; API key if set, otherwise Vertex AI"""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        http_options = types.HttpOptions(timeout=int(self.config.llm_timeout_seconds * 1000))

        if self.config.google_api_key:
            self.client = genai.Client(api_key=self.config.google_api_key, http_options=http_options)
            logger.info("Initialized Gemini client with API key")
        elif self.config.google_cloud_project:
            try:
                self.client = genai.Client(
                    vertexai=True,
                    project=self.config.google_cloud_project,
                    location=self.config.vertex_ai_location,
                    http_options=http_options,
                )
                logger.info(f"Initialized Vertex AI client for project: {self.config.google_cloud_project}")
            except Exception as e:
                logger.error(f"Failed to initialize Vertex AI client: {e}")
                raise RuntimeError(f"Vertex AI client initialization failed: {e}")
        else:
            raise RuntimeError("GOOGLE_API_KEY or GOOGLE_CLOUD_PROJECT is required for narrative generation")

    def _create_contents(self, system_instruction: str, user_message: str) -> List[types.Content]:
        """Create content structure for the LLM"""
        combined_message = f"{system_instruction}\n\n{user_message}"

        return [
            types.Content(
                role="user",
                parts=[
                    types.Part(text=combined_message)
                ]
            )
        ]

    def generate_content(
        self,
        user_message: str,
        system_instruction: str,
        config: Optional[LLMConfig] = None
    ) -> LLMResponse:
        """
        Generate content with a system instruction.

        Never raises for provider errors; failures come back as
        LLMResponse(success=False, error=...).
        """
        if config is None:
            config = LLMConfig(model=self.config.narrative_model)

        try:
            logger.info(f"Making LLM call with model: {config.model}")

            contents = self._create_contents(system_instruction, user_message)

            generate_content_config = types.GenerateContentConfig(
                temperature=config.temperature,
                top_p=config.top_p,
                max_output_tokens=config.max_output_tokens,
                response_mime_type="application/json" if config.json_output else None,
            )

            response = self.client.models.generate_content(
                model=config.model,
                contents=contents,
                config=generate_content_config
            )

            content = response.text or ""
            if not content:
                raise RuntimeError("Empty Gemini response")
            logger.info(f"LLM call successful, response length: {len(content)}")

            return LLMResponse(success=True, content=content, raw_response=response)

        except Exception as e:
            logger.error(f"LLM call failed: {e}")
            return LLMResponse(success=False, content="", raw_response=None, error=str(e))


def parse_json_content(response_content: str) -> Any:
    """Parse model output as JSON, tolerating markdown code fences."""
    content = (response_content or "").strip()

    if content.startswith('```json'):
        content = content[7:]
    if content.startswith('```'):
        content = content[3:]
    if content.endswith('```'):
        content = content[:-3]

    content = content.strip()
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM response as JSON: {e}")
        logger.error(f"Response content (first 500 chars): {content[:500]}")
        raise ValueError("LLM did not return valid JSON")


# Singleton instance
_llm_service_instance = None

def get_llm_service() -> GeminiLLMService:
    """Get singleton instance of LLM service"""
    global _llm_service_instance
    if _llm_service_instance is None:
        _llm_service_instance = GeminiLLMService()
    return _llm_service_instance


# Predefined System Instructions
class SystemInstructions:
    """Collection of predefined system instructions"""

    @staticmethod
    def itinerary_narrator(city: str) -> str:
        base_instruction = (
            f"You are a hotel-concierge-style itinerary writer for {city}.\n"
            "Write practical, helpful guidance. No fluff. Keep it easy to act on.\n\n"
            "=== GROUNDING RULES ===\n"
            "1. Use ONLY the supplied facts for each place: name, rating, review count and price.\n"
            "2. Do NOT invent opening hours, menus, prices, distances, addresses or place names.\n"
            "3. If a block has no primary place, say so honestly and give a general suggestion.\n"
            "4. Treat guest notes as constraints. If notes say 'no coffee', never suggest coffee. "
            "If notes mention BBQ or ice cream, incorporate them explicitly.\n\n"
            "=== OUTPUT FORMAT ===\n"
            "Return ONLY a valid JSON object following the schema below, with one blocks[] entry per "
            "supplied block id. No markdown, no text outside the JSON. Tone: warm, premium concierge. "
            "Short sentences. No emojis."
        )
        return base_instruction + f"\n\n=== REQUIRED JSON SCHEMA ===\n{NARRATIVE_SCHEMA_DOCS}"

    @staticmethod
    def block_narrator(city: str) -> str:
        return (
            f"You are a premium hotel concierge for {city}.\n"
            "Write practical guidance for one block of a guest itinerary.\n"
            "Use only the provided place info (name, rating, review count, price).\n"
            "Do NOT invent facts like hours, menus, or distances.\n"
            "Keep 'whyThis' to 1-2 sentences. Tips: up to 3 short bullets.\n"
            "Tone: warm, direct, usable. No emojis.\n"
            'Return ONLY a JSON object: {"whyThis": "string", "tips": ["string"]}'
        )
