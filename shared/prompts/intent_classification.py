"""Local Intent Classification Prompt

Used by IntentParserAgent with a small local model. The model must answer
with a single JSON object; anything else is treated as a parse failure and
the agent falls back to keyword rules.
"""

VALID_INTENTS = (
    "question",
    "command",
    "memory_store",
    "memory_retrieve",
    "greeting",
)

INTENT_CLASSIFICATION_PROMPT = """Classify the user's message into exactly one intent.

INTENTS:
- memory_store: the user tells you something to remember ("remember that...", "I have a meeting on Friday")
- memory_retrieve: the user asks about something they told you before ("what did I say about...", "when is my meeting")
- command: the user asks you to do something on the computer ("open", "close", "search for", "take a screenshot")
- greeting: hello, hi, good morning and similar
- question: anything else

Also decide whether answering needs the current screen contents (captureScreen).

MESSAGE: "{message}"

Respond with JSON only:
{{"intent": "<intent>", "confidence": <0.0-1.0>, "entities": [{{"type": "<type>", "value": "<value>"}}], "captureScreen": <true|false>}}
"""

# Keyword rules used when the model is unavailable or returns garbage
KEYWORD_RULES = (
    ("greeting", (r"^\s*(hi|hello|hey|yo|howdy|greetings)\b", r"^\s*good (morning|afternoon|evening)\b")),
    ("memory_retrieve", (r"\bwhat did i (say|tell)\b", r"\bdo you remember\b", r"\bremind me\b", r"\bwhen is my\b", r"\bwhat('?s| is) my\b")),
    ("memory_store", (r"\bremember (that|this)\b", r"\bdon'?t forget\b", r"\bnote that\b", r"\bsave (this|that)\b")),
    ("command", (r"^\s*(open|close|launch|start|quit|hide|show|take|capture|search for|play)\b",)),
)

SCREEN_KEYWORDS = (r"\b(on|in) (my|the) screen\b", r"\bthis (window|page|error)\b", r"\bwhat am i looking at\b")


def build_intent_prompt(message: str) -> str:
    return INTENT_CLASSIFICATION_PROMPT.format(message=message.replace('"', "'"))
