"""Canned responses used when the assistant answers without a remote model"""

import random
import re
from datetime import datetime
from typing import Dict, List, Optional

MEMORY_STORE_RESPONSES = [
    "I've noted that information.",
    "Got it, I'll remember that.",
    "Okay, I'll keep that in mind.",
    "Saved for future reference.",
    "Noted and stored.",
    "That's now in your memory.",
    "I've written that down for you.",
    "Added to your notes.",
]

MEMORY_RETRIEVE_RESPONSES = [
    "Let me check what I have stored.",
    "I'll look that up for you.",
    "Searching my memory.",
    "One moment, retrieving that now.",
    "Let me pull that up.",
    "Checking your saved notes.",
]

COMMAND_RESPONSES = [
    "I'll execute that command.",
    "Running that for you.",
    "Processing your request.",
    "Working on it.",
    "On it.",
    "Let me take care of that.",
]

QUESTION_RESPONSES = [
    "Let me think about that.",
    "Good question, give me a moment.",
    "Looking into that for you.",
    "Let me find an answer.",
]

GREETING_RESPONSES = [
    "Hello! How can I help you today?",
    "Hi there! What can I do for you?",
    "Hey! I'm here to assist you.",
    "Greetings! Let me know how I can assist.",
]

CASUAL_GREETING_RESPONSES = [
    "Hey hey! Need anything?",
    "Hey there! How's it going?",
    "What's up? Ready when you are.",
]

LIMITED_MODE_RESPONSES = [
    "That's an interesting question. I'm currently running in local mode with limited capabilities.",
    "I understand you're asking about that. My local processing is somewhat limited right now.",
    "I see what you're asking. In local mode, I can help with basic tasks and information storage.",
    "That's a good question. I'm operating locally right now, so my responses may be more basic.",
]

LOCAL_SUGGESTIONS = [
    "I can help you store and retrieve information, though.",
    "Feel free to ask me to remember things for you.",
    "I can take notes and help you recall information later.",
    "Try asking me to remember something or recall what you've told me.",
]

REPHRASE_RESPONSE = "I'm having trouble understanding your request right now. Could you please rephrase it?"
NO_MEMORIES_RESPONSE = "I don't have any relevant information stored about that."
NO_PREVIOUS_CONVERSATION_RESPONSE = "I don't have any record of our previous conversations in my memory."
MEMORY_ERROR_RESPONSE = "I'm having trouble accessing my memory right now. Could you remind me?"
GENERIC_ERROR_RESPONSE = "I encountered an error processing your request. Please try again."

RESPONSES: Dict[str, List[str]] = {
    "memory_store": MEMORY_STORE_RESPONSES,
    "memory_retrieve": MEMORY_RETRIEVE_RESPONSES,
    "command": COMMAND_RESPONSES,
    "question": QUESTION_RESPONSES,
    "greeting": GREETING_RESPONSES,
}

MEMORY_QUESTION_PATTERN = re.compile(
    r"\b(previous|last|earlier|before|discuss|conversation|chat|talk|said|mention)\b",
    re.IGNORECASE,
)
_CASUAL_GREETING = re.compile(r"\b(yo|sup|hiya|howdy)\b|what'?s up|hey hey")
_TIME_GREETING = re.compile(r"good (morning|afternoon|evening)")


def get_suggested_response(intent: str, message: Optional[str] = None) -> str:
    """Random canned response for an intent (question responses by default)"""
    return random.choice(RESPONSES.get(intent, QUESTION_RESPONSES))


def time_based_greeting(now: Optional[datetime] = None) -> str:
    hour = (now or datetime.now()).hour
    if hour < 12:
        return "Good morning! How can I help you today?"
    if hour < 18:
        return "Good afternoon! What can I do for you?"
    return "Good evening! Need any assistance?"


def greeting_response(message: str, now: Optional[datetime] = None) -> str:
    """Greeting matched to the user's tone"""
    normalized = (message or "").strip().lower()
    if _CASUAL_GREETING.search(normalized):
        return random.choice(CASUAL_GREETING_RESPONSES)
    if _TIME_GREETING.search(normalized):
        return time_based_greeting(now)
    return random.choice(GREETING_RESPONSES)


def limited_mode_response() -> str:
    """Local-mode disclaimer followed by a suggestion of what still works"""
    return f"{random.choice(LIMITED_MODE_RESPONSES)} {random.choice(LOCAL_SUGGESTIONS)}"


def is_memory_question(message: str) -> bool:
    return bool(MEMORY_QUESTION_PATTERN.search(message or ""))
