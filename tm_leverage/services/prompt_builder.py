"""
Prompt Builder for single-segment translation with TM span context
Resolved TM spans are handed to the model as constraints so it integrates
them into one coherent translation instead of translating from scratch.
"""

from typing import List, Optional
import os
import logging

from tm_leverage.models.entities import TMSpan, TranslationContext, EXACT, FUZZY, NEW

logger = logging.getLogger(__name__)


class PromptBuilder:
    """
    Builds translation and analysis prompts

    Context supported:
    - TM spans: exact spans to reuse verbatim, fuzzy spans to adapt
    - Domain (e.g. therapeutic area) terminology focus
    - Segment type (subject line, CTA, regulatory text...)
    """

    def __init__(self,
                 template_path: Optional[str] = None,
                 custom_template: Optional[str] = None):
        """
        Initialize PromptBuilder

        Args:
            template_path: Path to custom template file
            custom_template: Direct template string (takes priority)
        """
        self.template = ""
        self.template_path = template_path

        if custom_template:
            self.template = custom_template
            logger.info("PromptBuilder: Using custom template from parameter")

        elif template_path and os.path.exists(template_path):
            try:
                with open(template_path, 'r', encoding='utf-8') as f:
                    self.template = f.read()
                logger.info(f"PromptBuilder: Loaded template from {template_path}")
            except OSError as e:
                logger.warning(f"Failed to load template from {template_path}: {e}")
                self.template = self._get_default_template()

        else:
            self.template = self._get_default_template()
            logger.info("PromptBuilder: Using default template")

    def _get_default_template(self) -> str:
        """Default template with all placeholder sections"""
        return """You are a senior %SOURCELANG%-to-%TARGETLANG% translator.%DOMAIN% You will be given one %SEGMENTTYPE% segment in %SOURCELANG% to translate into %TARGETLANG%. Preserve tags such as {{1}} exactly as they appear.

%TMCONTEXT%
Return a JSON object and nothing else:
{"translated_text": "<the complete translation>", "quality_scores": {"accuracy": <0-1>, "brand": <0-1>, "cultural": <0-1>, "reasoning": ["<short note>", ...]}}

SEGMENT TO TRANSLATE:
%SEGMENT%
"""

    def _get_analysis_template(self) -> str:
        return """You are reviewing a %SOURCELANG%-to-%TARGETLANG% translation.%DOMAIN%

Source: %SOURCE%

Translation: %TRANSLATION%

Return a JSON object and nothing else:
{"accuracyScore": <0-1>, "qualityScore": <0-1>, "culturalScore": <0-1>, "accuracyIssues": ["<issue>", ...], "wordBreakdown": [{"word": "<source word>", "type": "exact|fuzzy|new"}, ...]}
"""

    def _format_tm_context(self, spans: List[TMSpan], max_spans: int = 15) -> str:
        """
        Format resolved TM spans for inclusion in prompt

        Args:
            spans: Ordered spans of the segment
            max_spans: Maximum TM spans to include

        Returns:
            Formatted text section for prompt
        """
        tm_spans = [s for s in spans if s.type in (EXACT, FUZZY)][:max_spans]
        if not tm_spans:
            return "No Translation Memory matches available. Translate the whole segment.\n"

        text = "TRANSLATION MEMORY CONTEXT:\n"
        text += "- EXACT spans: reuse the TM translation as is.\n"
        text += "- FUZZY spans: adapt the TM translation carefully; a reviewer will check them.\n"
        text += "- Everything else is new: translate it so it reads naturally around the TM spans.\n\n"
        for span in tm_spans:
            label = "EXACT" if span.type == EXACT else "FUZZY"
            tm_source = span.tm_source_text or ""
            tm_target = span.tm_target_text or ""
            source_display = tm_source[:80] + "..." if len(tm_source) > 80 else tm_source
            target_display = tm_target[:80] + "..." if len(tm_target) > 80 else tm_target
            text += f'"{span.text}" [{label} {span.match_score}%] TM: {source_display} → {target_display}\n'

        new_spans = [s.text for s in spans if s.type == NEW]
        if new_spans:
            text += "\nNew text: " + " | ".join(new_spans) + "\n"
        return text

    def _format_domain(self, domain: Optional[str]) -> str:
        return f" Focus on {domain} terminology." if domain else ""

    def build_prompt(self, source_text: str, context: TranslationContext,
                     source_lang: str, target_lang: str) -> str:
        """
        Build complete translation prompt

        Args:
            source_text: Segment content
            context: TM spans, domain and segment type
            source_lang: Source language name (e.g., "English")
            target_lang: Target language name (e.g., "Spanish")
        """
        prompt = self.template
        prompt = prompt.replace("%SOURCELANG%", source_lang)
        prompt = prompt.replace("%TARGETLANG%", target_lang)
        prompt = prompt.replace("%DOMAIN%", self._format_domain(context.domain))
        prompt = prompt.replace("%SEGMENTTYPE%", context.segment_type)
        prompt = prompt.replace("%TMCONTEXT%", self._format_tm_context(context.tm_spans))
        prompt = prompt.replace("%SEGMENT%", source_text)

        logger.info(
            f"Prompt built: {len(prompt)} chars, "
            f"TM spans={sum(1 for s in context.tm_spans if s.type != NEW)}"
        )
        return prompt

    def build_analysis_prompt(self, source_text: str, translated_text: str,
                              source_lang: str, target_lang: str,
                              domain: Optional[str] = None) -> str:
        prompt = self._get_analysis_template()
        prompt = prompt.replace("%SOURCELANG%", source_lang)
        prompt = prompt.replace("%TARGETLANG%", target_lang)
        prompt = prompt.replace("%DOMAIN%", self._format_domain(domain))
        prompt = prompt.replace("%SOURCE%", source_text)
        prompt = prompt.replace("%TRANSLATION%", translated_text)
        return prompt
