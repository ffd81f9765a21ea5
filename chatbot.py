"""
Keyword chatbot for the inventory widget.

Checks run top to bottom on the lowercased message and the first match wins;
anything unmatched goes to the LLM, or to a canned prompt when the LLM is
unavailable. No state is kept between turns.
"""

import logging
import re

from pymongo.errors import PyMongoError

import llm
from database import get_db

logger = logging.getLogger(__name__)

HELP_REPLY = """I can help you with:
- Finding cars by price range
- Showing newest/latest cars
- Information about specific car models
- General car inquiries
Just ask me anything about our car inventory!"""

DB_ERROR_REPLY = (
    "I'm having trouble accessing our car database at the moment. "
    "Please try again later or contact our support team."
)

NO_CARS_REPLY = "I'm sorry, we don't have any cars available at the moment."

YEAR_PATTERN = re.compile(r"^\d{4}$")


def money(price) -> str:
    price = float(price)
    if price.is_integer():
        return f"${price:,.0f}"
    return f"${price:,.2f}"


def _contains(text: str, *words: str) -> bool:
    return any(w in text for w in words)


def _cheapest_cars() -> str:
    cars = list(get_db()["car"].find({"status": "available"}).sort("price", 1).limit(5))
    if not cars:
        return NO_CARS_REPLY
    lines = [f"{c['brand']} {c['model']} ({c['year']}) - {money(c['price'])}" for c in cars]
    return "Here are some of our most affordable cars:\n" + "\n".join(lines)


def _newest_cars() -> str:
    cars = list(get_db()["car"].find().sort("year", -1).limit(5))
    if not cars:
        return NO_CARS_REPLY
    lines = [
        f"{c['brand']} {c['model']} ({c['year']})" + (" - SOLD" if c.get("status") == "sold" else "")
        for c in cars
    ]
    return "Here are our newest cars:\n" + "\n".join(lines)


def _electric_cars() -> str:
    cars = list(get_db()["car"].find({"fuel": "Electric", "status": "available"}))
    if not cars:
        return "I'm sorry, we don't have any electric vehicles in stock at the moment."
    lines = [f"{c['brand']} {c['model']} ({c['year']}) - {money(c['price'])}" for c in cars]
    return f"We have {len(cars)} electric vehicles available:\n" + "\n".join(lines)


def _cars_from_year(year: int) -> str:
    cars = list(get_db()["car"].find({"year": year, "status": "available"}))
    if not cars:
        return f"I'm sorry, we don't have any cars from {year} in stock at the moment."
    lines = [f"{c['brand']} {c['model']} - {money(c['price'])}" for c in cars]
    return f"Here are our cars from {year}:\n" + "\n".join(lines)


def fallback_reply(message: str) -> str:
    return (
        f'I understand you\'re asking about "{message}". I can help you find cars based on:\n'
        "- Price range\n- Make and model\n- Year\n- Fuel type\n- Features\n"
        "What specific information are you looking for?"
    )


def _llm_or_fallback(message: str) -> str:
    if not llm.is_configured():
        return fallback_reply(message)
    try:
        return llm.general_reply(message)
    except llm.LLMError as e:
        logger.warning(f"Chatbot LLM fallback failed: {e}")
        return fallback_reply(message)


def reply_to(message: str) -> str:
    text = message.lower()
    try:
        if _contains(text, "price", "cost"):
            return _cheapest_cars()
        if _contains(text, "new", "latest"):
            return _newest_cars()
        if _contains(text, "help", "assist"):
            return HELP_REPLY
        if _contains(text, "electric", "ev"):
            return _electric_cars()
        if YEAR_PATTERN.match(message.strip()):
            return _cars_from_year(int(message.strip()))
    except PyMongoError as e:
        logger.error(f"Chatbot database error: {e}")
        return DB_ERROR_REPLY

    if _contains(text, "thank"):
        return "You're welcome! Is there anything else I can help you with?"
    if _contains(text, "hello", "hi", "hey"):
        return "Hello! How can I help you find your perfect car today?"
    if _contains(text, "bye", "goodbye"):
        return "Goodbye! Feel free to come back if you need any help finding a car."
    if text.strip() in ("yes", "yeah", "okay", "ok"):
        return (
            "Great! What would you like to know about our cars? I can help you with "
            "prices, models, features, or any other specific details."
        )
    if text.strip() in ("great", "awesome", "perfect", "excellent"):
        return (
            "I'm glad you're satisfied! Would you like to know more about our cars? I can show "
            "you our latest models, prices, or any specific features you're interested in."
        )
    return _llm_or_fallback(message)
