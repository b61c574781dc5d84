import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import anthropic
import openai
from tenacity import retry, stop_after_attempt, wait_exponential

from tm_leverage import config
from tm_leverage.exceptions import TranslationUnavailable, AnalysisUnavailable
from tm_leverage.models.entities import (
    AIScores, AnalysisResult, GeneratedTranslation, TranslationContext,
)
from tm_leverage.services.prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful translation assistant."


class TranslationBackend(ABC):
    @abstractmethod
    async def generate_translation(self, text: str, context: TranslationContext) -> GeneratedTranslation:
        """Translate text using the TM context. Raises TranslationUnavailable."""


class AnalysisBackend(ABC):
    @abstractmethod
    async def analyze(self, source_text: str, translated_text: str) -> AnalysisResult:
        """Quality analysis of a translation. Raises AnalysisUnavailable."""


def _extract_json(content: str) -> Optional[Dict[str, Any]]:
    """First JSON object in a model response, code fences tolerated"""
    start = content.find('{')
    end = content.rfind('}')
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(content[start:end + 1])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _unit_score(value: Any) -> float:
    """Scores may come back as 0-1 or as percentages"""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score > 1.0:
        score = score / 100.0
    return max(0.0, min(1.0, score))


def parse_translation_response(content: str) -> GeneratedTranslation:
    """
    Pull the translation and quality scores out of a model response.
    Falls back to a "Translated Text:" section, then to the whole reply.
    """
    content = (content or "").strip()
    data = _extract_json(content)
    if data is not None and isinstance(data.get('translated_text'), str):
        scores = data.get('quality_scores') or {}
        quality = AIScores(
            accuracy=_unit_score(scores.get('accuracy', scores.get('medical'))),
            brand=_unit_score(scores.get('brand')),
            cultural=_unit_score(scores.get('cultural')),
            reasoning=[str(r) for r in scores.get('reasoning') or []],
        ) if scores else None
        return GeneratedTranslation(
            translated_text=data['translated_text'].strip(),
            quality_scores=quality,
            raw_response=content,
        )

    match = re.search(r'\*\*1\.\s*Translated Text:\*\*\s*([\s\S]+?)(?=\n\s*\*\*2\.|\n\s*---|$)', content)
    if match:
        return GeneratedTranslation(translated_text=match.group(1).strip(), raw_response=content)

    # Plain text reply; drop code fences if present
    text = re.sub(r'^```\w*\s*|\s*```$', '', content).strip()
    return GeneratedTranslation(translated_text=text, raw_response=content)


def parse_analysis_response(content: str) -> AnalysisResult:
    data = _extract_json(content or "")
    if data is None:
        raise AnalysisUnavailable("Analysis response is not a JSON object")
    result = AnalysisResult.from_dict(data)
    result.accuracy_score = _unit_score(result.accuracy_score)
    result.quality_score = _unit_score(result.quality_score)
    result.cultural_score = _unit_score(result.cultural_score)
    return result


class AITranslator(TranslationBackend, AnalysisBackend):
    def __init__(self, provider, api_key, model,
                 source_lang: str = config.DEFAULT_SOURCE_LANGUAGE,
                 target_lang: str = config.DEFAULT_TARGET_LANGUAGE,
                 domain: Optional[str] = None,
                 temperature: float = config.TEMPERATURE,
                 max_tokens: int = config.MAX_TOKENS,
                 prompt_builder: Optional[PromptBuilder] = None,
                 client=None):
        self.provider = provider
        self.api_key = api_key
        self.model = model
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.domain = domain
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.prompt_builder = prompt_builder or PromptBuilder()

        if client is not None:
            self.client = client
        elif provider == "OpenAI":
            self.client = openai.AsyncOpenAI(api_key=api_key)
        elif provider == "Anthropic":
            self.client = anthropic.AsyncAnthropic(api_key=api_key)
        else:
            raise ValueError(f"Unsupported provider: {provider}")

    @retry(stop=stop_after_attempt(config.RETRY_ATTEMPTS),
           wait=wait_exponential(multiplier=1, min=2, max=10),
           reraise=True)
    async def _complete(self, prompt: str) -> str:
        """Sends prompt to AI with retries"""
        if self.provider == "OpenAI":
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                temperature=self.temperature
            )
            return response.choices[0].message.content or ""

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=SYSTEM_PROMPT,
            messages=[
                {"role": "user", "content": prompt}
            ]
        )
        return "".join(block.text for block in response.content if getattr(block, "text", None))

    def _language_name(self, code: str) -> str:
        return config.SUPPORTED_LANGUAGES.get(code, code)

    async def generate_translation(self, text: str, context: TranslationContext) -> GeneratedTranslation:
        prompt = self.prompt_builder.build_prompt(
            text,
            context,
            self._language_name(context.source_language),
            self._language_name(context.target_language),
        )
        try:
            content = await self._complete(prompt)
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            logger.error(f"AI API Error: {e}")
            raise TranslationUnavailable(f"AI backend error: {e}") from e

        result = parse_translation_response(content)
        if not result.translated_text:
            raise TranslationUnavailable("AI backend returned an empty translation")
        logger.debug(f"LLM Prompt length: {len(prompt)} chars, response: {len(content)} chars")
        return result

    async def analyze(self, source_text: str, translated_text: str) -> AnalysisResult:
        prompt = self.prompt_builder.build_analysis_prompt(
            source_text,
            translated_text,
            self._language_name(self.source_lang),
            self._language_name(self.target_lang),
            self.domain,
        )
        try:
            content = await self._complete(prompt)
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            logger.error(f"AI API Error: {e}")
            raise AnalysisUnavailable(f"AI backend error: {e}") from e
        return parse_analysis_response(content)
