"""
Thin OpenAI chat-completions client used by smart search, valuation,
image assessment and the chatbot fallback.
"""

import json
import logging
from typing import List, Optional

import requests
from pydantic import ValidationError

from schemas import Defect, PredictRequest, SearchFilters
from settings import OPENAI_API_KEY, OPENAI_MODEL, OPENAI_VISION_MODEL

logger = logging.getLogger(__name__)

COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"
REQUEST_TIMEOUT = 60

SEARCH_SYSTEM_PROMPT = (
    "Convert car search queries into JSON filters. "
    "Only include fields that are explicitly mentioned in the query."
)

RANGE_SCHEMA = {
    "type": "object",
    "properties": {"min": {"type": "number"}, "max": {"type": "number"}},
}

FILTER_TOOL = {
    "type": "function",
    "function": {
        "name": "filterCars",
        "parameters": {
            "type": "object",
            "properties": {
                "brand": {"type": "string"},
                "model": {"type": "string"},
                "year": RANGE_SCHEMA,
                "price": RANGE_SCHEMA,
                "type": {"type": "string"},
                "fuel": {"type": "string"},
                "mileage": {"type": "object", "properties": {"max": {"type": "number"}}},
                "condition": {"type": "string"},
            },
        },
    },
}

VALUATION_SYSTEM_PROMPT = (
    "You are a car valuation expert. Provide accurate price estimates and "
    "condition assessments based on car specifications."
)

INSPECTION_SYSTEM_PROMPT = (
    "You are a vehicle inspector. Look at the photo and list visible defects as JSON: "
    '{"confidence": 0-100, "defects": [{"type": "Paint|Tire|Interior|Engine|Body", '
    '"severity": "None|Minor|Moderate|Major", "description": "...", "confidence": 0-100}]}'
)

CHAT_SYSTEM_PROMPT = (
    "You are a friendly assistant for a car dealership. Answer briefly and steer "
    "the customer towards our inventory, test drives and contact options."
)


class LLMError(Exception):
    pass


def is_configured() -> bool:
    return bool(OPENAI_API_KEY)


def chat_completion(messages: List[dict], model: Optional[str] = None, **options) -> dict:
    """POST to the completions endpoint and return the first choice's message."""
    if not is_configured():
        raise LLMError("OPENAI_API_KEY is not set")
    headers = {
        "Authorization": f"Bearer {OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }
    data = {"model": model or OPENAI_MODEL, "messages": messages, **options}
    try:
        response = requests.post(COMPLETIONS_URL, headers=headers, json=data, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise LLMError(f"LLM request failed: {e}") from e
    if response.status_code != 200:
        raise LLMError(f"LLM request failed: {response.status_code} {response.text[:200]}")
    try:
        return response.json()["choices"][0]["message"]
    except (ValueError, KeyError, IndexError) as e:
        raise LLMError(f"Unexpected LLM response: {e}") from e


def _json_content(message: dict) -> dict:
    try:
        return json.loads(message.get("content") or "")
    except ValueError as e:
        raise LLMError(f"LLM did not return JSON: {e}") from e


def extract_search_filters(query: str) -> SearchFilters:
    message = chat_completion(
        [
            {"role": "system", "content": SEARCH_SYSTEM_PROMPT},
            {"role": "user", "content": query},
        ],
        tools=[FILTER_TOOL],
        tool_choice={"type": "function", "function": {"name": "filterCars"}},
    )
    try:
        arguments = message["tool_calls"][0]["function"]["arguments"]
        return SearchFilters.model_validate(json.loads(arguments))
    except (KeyError, IndexError, TypeError, ValueError, ValidationError) as e:
        raise LLMError(f"Could not read search filters from LLM: {e}") from e


def predict_value(car: PredictRequest) -> dict:
    prompt = f"""Given the following car specifications:
Brand: {car.brand}
Model: {car.model}
Year: {car.year}
Type: {car.type}
Fuel: {car.fuel}
Mileage: {car.mileage}
Color: {car.color}
Engine Size: {car.engine_size}
Engine Cylinders: {car.engine_cylinders}
Engine Horsepower: {car.engine_horsepower}
Transmission: {car.transmission}
Drive Train: {car.drive_train}
Condition: {car.condition}
Features: {', '.join(car.features)}

Please provide:
1. A reasonable market price estimate in USD
2. A condition assessment (Excellent, Good, Fair, Poor) based on the provided information

Format your response as a JSON object with 'predictedPrice' and 'predictedCondition' fields."""

    message = chat_completion(
        [
            {"role": "system", "content": VALUATION_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        temperature=0.7,
        max_tokens=150,
        response_format={"type": "json_object"},
    )
    result = _json_content(message)
    if "predictedPrice" not in result or "predictedCondition" not in result:
        raise LLMError("LLM valuation is missing predictedPrice/predictedCondition")
    return {
        "predicted_price": result["predictedPrice"],
        "predicted_condition": result["predictedCondition"],
    }


def assess_image(image_url: str) -> dict:
    """Ask a vision model for visible defects. Returns {"confidence", "defects"}."""
    message = chat_completion(
        [
            {"role": "system", "content": INSPECTION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Assess this car's condition."},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            },
        ],
        model=OPENAI_VISION_MODEL,
        max_tokens=400,
        response_format={"type": "json_object"},
    )
    result = _json_content(message)
    try:
        defects = [Defect.model_validate(d).model_dump() for d in result.get("defects", [])]
        confidence = float(result.get("confidence", 0))
    except (TypeError, ValueError, ValidationError) as e:
        raise LLMError(f"Could not read image assessment from LLM: {e}") from e
    return {"confidence": max(0.0, min(confidence, 100.0)), "defects": defects}


def general_reply(user_message: str) -> str:
    message = chat_completion(
        [
            {"role": "system", "content": CHAT_SYSTEM_PROMPT},
            {"role": "user", "content": user_message},
        ],
        temperature=0.7,
        max_tokens=200,
    )
    content = (message.get("content") or "").strip()
    if not content:
        raise LLMError("LLM returned an empty reply")
    return content
