"""
AI trade assistance.

Thin wrappers around OpenAI chat completions that turn product details into
three kinds of report: a sectioned market analysis, a list of prospective UK
buyers, and four pieces of marketing copy. Model output is checked before it
is returned; anything malformed becomes a ``GenerationFailure``.

Example usage:
    advisor = TradeAdvisor(AsyncOpenAI(api_key=key))
    analysis = await advisor.market_analysis(product)
    print(analysis["marketsize"])
"""

import json
import re
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI
from pydantic import TypeAdapter, ValidationError

from core.errors import GenerationFailure, RateLimited
from core.logging import get_logger
from core.models import BuyerMatch, ProductIn, VisibilityContent

logger = get_logger(__name__)

MARKET_SECTIONS = ("marketsize", "growthtrends", "keycompetitors", "targetmarkets", "recommendations")

MARKET_SYSTEM_PROMPT = (
    "You are a market research analyst. Give specific, accurate market insight "
    "that a small exporter can act on."
)

MATCH_SYSTEM_PROMPT = (
    "You connect overseas suppliers with UK business buyers. Keep answers factual "
    "and professional, and only name companies and people that can be verified."
)

VISIBILITY_SYSTEM_PROMPT = (
    "You write B2B marketing copy for exporters. Match the tone and format of each "
    "platform you are asked to write for."
)

_buyer_matches = TypeAdapter(List[BuyerMatch])


def _market_prompt(product: ProductIn) -> str:
    return f"""Prepare a market analysis for this product.

Product Name: {product.name}
Description: {product.description}
Sector: {product.sector}

Answer with exactly these five paragraphs, separated by blank lines, each
starting with its heading followed by a colon:

Market Size: estimated total market size and revenue potential
Growth Trends: current and expected growth of the market
Key Competitors: the main competitors and how they position themselves
Target Markets: primary and secondary markets worth pursuing
Recommendations: concrete steps for entering and growing in the market

Keep the analysis specific to this product and sector."""


def _match_prompt(product: ProductIn) -> str:
    return f"""Product: {product.name}
Sector: {product.sector}
Description: {product.description}

Name 5 UK-based B2B companies likely to buy or distribute this product. Prefer
companies that already import similar goods and can make purchasing decisions.

For each company give its name, website, the relevant department (for example
Procurement or Supply Chain) and one or two contacts with full name, job title,
LinkedIn profile URL and email when known.

Respond with a JSON object of this shape:
{{
  "matches": [
    {{
      "company": "Example Foods Ltd",
      "website": "https://examplefoods.co.uk",
      "department": "Procurement",
      "contacts": [
        {{
          "name": "Jane Smith",
          "title": "Head of Buying",
          "linkedin": "https://www.linkedin.com/in/janesmith",
          "email": "jane@examplefoods.co.uk"
        }}
      ]
    }}
  ]
}}"""


def _visibility_prompt(product: ProductIn) -> str:
    return f"""Product Name: {product.name}
Sector: {product.sector}
Description: {product.description}

Write four pieces of marketing content for this product:

1. seoText: a search-optimised product description of 150 to 200 words
2. linkedinPost: a professional LinkedIn post with a hook, hashtags and a call to action
3. ebayListing: an eBay-style listing with a title and bullet-pointed features
4. emailPitch: a cold email to UK B2B buyers with a subject line and a clear offer

Respond with a JSON object with exactly the keys seoText, linkedinPost,
ebayListing and emailPitch, each holding one string."""


def parse_market_sections(text: str) -> Dict[str, str]:
    """
    Split ``Heading: content`` paragraphs into a dict keyed by the heading,
    lowercased with whitespace removed.

    Example:
        >>> parse_market_sections("Market Size: Large\\n\\nGrowth Trends: Up 4%")
        {'marketsize': 'Large', 'growthtrends': 'Up 4%'}
    """
    sections: Dict[str, str] = {}
    for block in re.split(r"\n\s*\n", text or ""):
        title, sep, content = block.strip().partition(": ")
        if not sep or not title or not content.strip():
            continue
        key = re.sub(r"\s+", "", title).lower()
        sections[key] = content.strip()
    return sections


def extract_match_list(parsed: Any) -> Optional[List[Any]]:
    """Accept a bare list of matches or an object holding exactly one list."""
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        lists = [value for value in parsed.values() if isinstance(value, list)]
        if len(lists) == 1:
            return lists[0]
    return None


class TradeAdvisor:
    """Generates AI reports for a product through one shared OpenAI client."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4",
        match_model: str = "gpt-4-turbo-preview",
    ):
        self.client = client
        self.model = model
        self.match_model = match_model

    async def _complete(self, model: str, system: str, prompt: str, max_tokens: int,
                        json_mode: bool = False) -> str:
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            completion = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.7,
                max_tokens=max_tokens,
                **kwargs,
            )
        except openai.RateLimitError as e:
            logger.warning(f"OpenAI rate limit: {e}")
            raise RateLimited("Rate limit exceeded. Please try again in a few minutes.")
        except openai.OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise GenerationFailure(detail=str(e))

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise GenerationFailure(detail="empty completion")
        return content

    async def market_analysis(self, product: ProductIn) -> Dict[str, str]:
        text = await self._complete(self.model, MARKET_SYSTEM_PROMPT, _market_prompt(product), 1000)
        sections = parse_market_sections(text)
        if not any(key in sections for key in MARKET_SECTIONS):
            logger.error("Market analysis had no recognisable sections", extra={"product": product.name})
            raise GenerationFailure("Failed to generate market analysis", detail=text[:200])
        return sections

    async def buyer_matches(self, product: ProductIn) -> List[Dict[str, Any]]:
        """
        Ask for prospective UK buyers and return them trimmed and validated.

        Raises:
            GenerationFailure: the model returned something other than a list of
                well-formed company records
        """
        text = await self._complete(
            self.match_model, MATCH_SYSTEM_PROMPT, _match_prompt(product), 2000, json_mode=True
        )
        try:
            matches = extract_match_list(json.loads(text))
            if matches is None:
                raise ValueError("no list of matches in response")
            validated = _buyer_matches.validate_python(matches)
        except (ValueError, ValidationError) as e:
            logger.error(f"Invalid buyer match response: {e}")
            raise GenerationFailure("Failed to generate valid buyer matches. Please try again.", detail=str(e))

        return [match.model_dump(exclude_none=True) for match in validated]

    async def visibility_content(self, product: ProductIn) -> Dict[str, str]:
        text = await self._complete(
            self.model, VISIBILITY_SYSTEM_PROMPT, _visibility_prompt(product), 2000
        )
        try:
            content = VisibilityContent.model_validate(json.loads(text))
        except ValueError as e:
            raise GenerationFailure("Failed to parse OpenAI response", detail=str(e))
        return content.model_dump(by_alias=True)
