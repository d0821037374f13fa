"""Canned answers for the dashboard assistant."""

from __future__ import annotations

GREETING = (
    "Hi! I'm your blood sugar assistant. I can help answer questions about your "
    "readings, suggest meal ideas, or provide general diabetes management tips. "
    "What would you like to know?"
)

# First matching rule wins.
_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("high", "spike"),
        "High blood sugar can be caused by various factors like meals high in "
        "carbs, stress, illness, or missed medications. Try drinking water, "
        "taking a short walk, and monitor closely. If consistently high, contact "
        "your healthcare provider.",
    ),
    (
        ("low",),
        "For low blood sugar, immediately consume 15g of fast-acting carbs like "
        "glucose tablets, juice, or candy. Wait 15 minutes and retest. If still "
        "low, repeat treatment and consider calling your doctor.",
    ),
    (
        ("food", "eat"),
        "For stable blood sugar, focus on balanced meals with lean protein, "
        "non-starchy vegetables, and complex carbs. Avoid sugary drinks and "
        "processed foods. Consider portion control and eating at regular times.",
    ),
    (
        ("exercise",),
        "Exercise can help lower blood sugar! Start with light activities like "
        "walking. Check your blood sugar before and after exercise. If taking "
        "insulin, you may need to adjust doses - consult your doctor first.",
    ),
)

FALLBACK = (
    "That's a great question! For specific medical advice, always consult with "
    "your healthcare provider. I can help with general information about blood "
    "sugar management, meal planning, and lifestyle tips."
)


def reply(message: str) -> str:
    """Return the assistant answer for ``message``.

    Raises:
        ValueError: If the message is blank.
    """
    text = message.strip().lower()
    if not text:
        raise ValueError("Message must not be empty")
    for keywords, answer in _RULES:
        if any(keyword in text for keyword in keywords):
            return answer
    return FALLBACK
