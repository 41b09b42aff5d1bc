"""AI-assisted field extraction over free text."""

import json
from typing import Any, Dict, Optional, Protocol, Sequence

from show_import.core.exceptions import ExtractionError
from show_import.models.import_models import FactType, StructuredExtraction
from show_import.services.extraction.field_aliases import lookup_field
from show_import.utils.json_parser import parse_json_safely
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

SYSTEM_INSTRUCTION = """You extract show booking details from documents and emails for a touring artist.
Only report values that are stated in the text. Never guess.
For each field return an object {"value": <string>, "confidence": <number between 0 and 1>}.
Omit fields that are not present. Dates must be YYYY-MM-DD, times HH:MM (24h)."""

FIELD_DESCRIPTIONS: Dict[FactType, str] = {
    FactType.EVENT_TITLE: "name of the show, event or festival",
    FactType.ARTIST: "performing artist or band",
    FactType.DATE: "date of the performance",
    FactType.CITY: "city of the venue",
    FactType.STATE: "state or province",
    FactType.COUNTRY: "country",
    FactType.VENUE_NAME: "name of the venue",
    FactType.ADDRESS: "street address of the venue",
    FactType.CAPACITY: "venue capacity",
    FactType.SET_TIME: "artist set time",
    FactType.DOOR_TIME: "doors open time",
    FactType.SHOW_TIME: "show start time",
    FactType.SOUNDCHECK_TIME: "soundcheck time",
    FactType.GUARANTEE: "guaranteed fee with currency",
    FactType.FEE: "other fee or deal terms with currency",
    FactType.CONTACT_NAME: "promoter or advance contact name",
    FactType.CONTACT_EMAIL: "contact email",
    FactType.CONTACT_PHONE: "contact phone number",
    FactType.NOTES: "short notes relevant for advancing the show",
}

FREE_TEXT_FIELDS = (
    FactType.EVENT_TITLE,
    FactType.ARTIST,
    FactType.VENUE_NAME,
    FactType.NOTES,
)
DEFAULT_FIELD_CONFIDENCE = 0.7


class ContentGenerator(Protocol):
    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        ...


class AIFieldExtractor:
    """Asks the LLM for a JSON object of field values with self-reported confidence."""

    def __init__(self, llm_client: ContentGenerator, temperature: float = 0.3):
        self.llm_client = llm_client
        self.temperature = temperature

    async def extract_fields(
        self, text: str, fields: Sequence[FactType] = tuple(FactType)
    ) -> StructuredExtraction:
        """Run one extraction call.

        Args:
            text: Normalized text to read
            fields: Fields to request

        Returns:
            StructuredExtraction with every field the model filled

        Raises:
            ExtractionError: If the model response is not a JSON object
            APIClientError: If the provider call fails
        """
        prompt = self._build_prompt(text, fields)
        content = await self.llm_client.generate_content(
            contents=prompt,
            system_instruction=SYSTEM_INSTRUCTION,
            generation_config={
                "temperature": self.temperature,
                "response_mime_type": "application/json",
            },
        )

        parsed = parse_json_safely(content)
        if not isinstance(parsed, dict):
            raise ExtractionError("AI extraction returned no JSON object")

        payload = parsed.get("fields") if isinstance(parsed.get("fields"), dict) else parsed
        result = StructuredExtraction(raw=parsed)
        allowed = set(fields)

        for key, entry in payload.items():
            fact_type = lookup_field(key)
            if fact_type is None or fact_type not in allowed:
                continue
            value, confidence = self._read_entry(entry)
            if value is None:
                continue
            result.fields[fact_type] = (value, confidence)

        if result.is_empty:
            LOGGER.warning("AI extraction returned no usable fields", extra={"keys": sorted(payload)[:20]})
        else:
            LOGGER.info(
                f"AI extraction returned {len(result.fields)} fields",
                extra={"fields": sorted(f.value for f in result.fields)},
            )
        return result

    def _build_prompt(self, text: str, fields: Sequence[FactType]) -> str:
        schema = {
            fact_type.value: FIELD_DESCRIPTIONS.get(fact_type, fact_type.value)
            for fact_type in fields
        }
        return (
            "Extract these fields:\n"
            f"{json.dumps(schema, indent=2)}\n\n"
            "Respond with {\"fields\": {<field>: {\"value\": ..., \"confidence\": ...}}}.\n\n"
            f"TEXT:\n{text}"
        )

    @staticmethod
    def _read_entry(entry: Any) -> tuple:
        if isinstance(entry, dict):
            value = entry.get("value")
            confidence = entry.get("confidence", DEFAULT_FIELD_CONFIDENCE)
        else:
            value, confidence = entry, DEFAULT_FIELD_CONFIDENCE

        if value is None or (isinstance(value, str) and not value.strip()):
            return None, 0.0
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            confidence = DEFAULT_FIELD_CONFIDENCE
        return str(value).strip(), min(1.0, max(0.0, confidence))
