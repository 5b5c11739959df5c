import asyncio
import json
import logging
import re
from typing import Callable, Dict, List, Optional, Sequence

import google.generativeai as genai
from pydantic import BaseModel, Field

from focus_drift.config.settings import settings
from focus_drift.models.activity import ActivitySample, EventInterval
from focus_drift.models.tags import DEFAULT_TAGS
from focus_drift.services.errors import AIClassifierError

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

ProgressCallback = Callable[[int, int], None]

class AIClassification(BaseModel):
    """Tag suggested by the remote classifier"""
    tag: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: Optional[str] = None

class GeminiClassifier:
    """Classifies activities with Gemini, restricted to a fixed tag set"""

    def __init__(
        self,
        model_name: str = settings.GEMINI_MODEL_NAME,
        allowed_tags: Sequence[str] = DEFAULT_TAGS,
        model=None,
    ):
        self.allowed_tags = tuple(allowed_tags)
        if model is None:
            genai.configure(api_key=settings.GEMINI_API_KEY)
            model = genai.GenerativeModel(
                model_name=model_name,
                generation_config=genai.types.GenerationConfig(
                    temperature=0.1,
                    max_output_tokens=512,
                    candidate_count=1
                )
            )
        self.model = model

    async def classify(
        self,
        app: str,
        bundle_id: Optional[str] = None,
        window_title: Optional[str] = None,
        url: Optional[str] = None,
    ) -> Optional[AIClassification]:
        """Ask the model for a tag

        Returns None for unusable answers. Raises AIClassifierError when the
        API call itself fails.
        """
        prompt = self.build_prompt(app, bundle_id, window_title, url)
        try:
            response = await asyncio.to_thread(self.model.generate_content, prompt)
        except Exception as e:
            logger.error(f"AI classification request failed: {e}")
            raise AIClassifierError(f"AI classification request failed: {e}")

        try:
            text = response.text
        except ValueError as e:
            # Blocked or empty candidates have no text accessor
            logger.warning(f"AI response had no text: {e}")
            return None
        return self.parse_response(text)

    def build_prompt(
        self,
        app: str,
        bundle_id: Optional[str] = None,
        window_title: Optional[str] = None,
        url: Optional[str] = None,
    ) -> str:
        categories = "\n".join(f"{i}. {tag}" for i, tag in enumerate(self.allowed_tags, start=1))
        return f"""You are a time tracking assistant. Analyze the following activity and classify it into ONE of these categories:

{categories}

Activity Information:
{build_context(app, bundle_id, window_title, url)}

Instructions:
- Choose the MOST appropriate single category
- Consider the semantic meaning of window titles and URLs
- For browsers, focus on the URL content, not just "Browser"
- For coding tools, consider what's being coded based on window title
- Respond in this exact JSON format:
{{
  "tag": "<one of the categories above>",
  "confidence": <0.0 to 1.0>,
  "reasoning": "<brief explanation>"
}}
"""

    def parse_response(self, response_text: Optional[str]) -> Optional[AIClassification]:
        """Extract a classification from free-form model output"""
        if not response_text:
            logger.error("Empty response from AI classifier")
            return None

        match = _JSON_OBJECT.search(response_text)
        if not match:
            logger.error(f"No JSON found in AI response: {response_text[:200]}")
            return None

        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse AI response: {e}")
            return None
        if not isinstance(parsed, dict):
            return None

        tag = parsed.get("tag")
        if tag not in self.allowed_tags:
            logger.error(f"Invalid tag from AI: {tag}")
            return None

        confidence = parsed.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = 0.5
        reasoning = parsed.get("reasoning")

        return AIClassification(
            tag=tag,
            confidence=max(0.0, min(1.0, float(confidence))),
            reasoning=reasoning if isinstance(reasoning, str) and reasoning else None,
        )

    async def batch_classify(
        self,
        items: Sequence[ActivitySample],
        on_progress: Optional[ProgressCallback] = None,
        delay_seconds: Optional[float] = None,
    ) -> Dict[int, AIClassification]:
        """Classify items one at a time; failed items are skipped, not retried"""
        delay = settings.AI_REQUEST_DELAY_SECONDS if delay_seconds is None else delay_seconds
        results: Dict[int, AIClassification] = {}

        for index, item in enumerate(items):
            try:
                result = await self.classify(item.app, item.bundle_id, item.window_title, item.url)
                if result:
                    results[index] = result
            except AIClassifierError as e:
                logger.warning(f"Skipping item {index} after AI failure: {e}")

            if on_progress:
                on_progress(index + 1, len(items))

            # Rate limit
            if index < len(items) - 1 and delay > 0:
                await asyncio.sleep(delay)

        return results

def build_context(
    app: str,
    bundle_id: Optional[str] = None,
    window_title: Optional[str] = None,
    url: Optional[str] = None,
) -> str:
    """Describe an activity for the prompt"""
    parts = [f"Application: {app}"]
    if bundle_id:
        parts.append(f"Bundle ID: {bundle_id}")
    if window_title:
        parts.append(f"Window Title: {window_title}")
    if url:
        parts.append(f"URL: {url}")
    return "\n".join(parts)

async def reclassify_intervals(
    db,
    classifier: GeminiClassifier,
    intervals: Optional[List[EventInterval]] = None,
    on_progress: Optional[ProgressCallback] = None,
    delay_seconds: Optional[float] = None,
) -> List[EventInterval]:
    """Apply AI tags to intervals, overwriting their final tag

    Defaults to every interval without an AI tag. Returns the updated intervals.
    """
    if intervals is None:
        intervals = await asyncio.to_thread(db.get_unclassified_intervals)
    if not intervals:
        return []

    samples = [
        ActivitySample(
            app=interval.app,
            bundle_id=interval.bundle_id,
            window_title=interval.window_title,
            url=interval.url,
            observed_at=interval.ts_start,
        )
        for interval in intervals
    ]
    results = await classifier.batch_classify(samples, on_progress, delay_seconds)

    updated = []
    for index, result in sorted(results.items()):
        interval = intervals[index].model_copy(update={
            "tag_ai": result.tag,
            "confidence_ai": result.confidence,
            "tag_final": result.tag,
        })
        await asyncio.to_thread(db.update_interval, interval)
        updated.append(interval)

    logger.info(f"AI classified {len(updated)} of {len(intervals)} intervals")
    return updated
