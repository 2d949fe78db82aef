"""
Guardrail Classifier

Runs on every inbound guest message before anything is persisted or
mutated. Checks run in a fixed order: prompt injection, then abuse, then
unparseable input. The first hit wins, so an abusive message that also
names a dish is still deflected.
"""

import enum
import re
from dataclasses import dataclass


class GuardrailVerdict(str, enum.Enum):
    CLEAN = "CLEAN"
    PROMPT_INJECTION = "PROMPT_INJECTION"
    ABUSIVE = "ABUSIVE"
    UNPARSEABLE = "UNPARSEABLE"


class Locale(str, enum.Enum):
    EN = "en"
    HI = "hi"
    NE = "ne"


@dataclass(frozen=True)
class GuardrailResult:
    verdict: GuardrailVerdict
    locale: Locale

    @property
    def is_clean(self) -> bool:
        return self.verdict == GuardrailVerdict.CLEAN


_DEVANAGARI_RE = re.compile(r"[ऀ-ॿ]")
_NEPALI_MARKERS_RE = re.compile(r"कृपया|धन्यवाद|छ|होस्|यहाँ|अर्डर|तपाईं")

_INJECTION_RE = re.compile(
    r"(ignore (all|previous|prior) instructions|reveal (system|prompt|secret)"
    r"|developer message|api key|token|password|drop table|bypass|jailbreak"
    r"|sudo|root access|export env)",
    re.IGNORECASE,
)

_ABUSE_RE = re.compile(
    r"\b(idiot|stupid|dumb|fool|hate you|shut up|moron|bitch|fuck you)\b",
    re.IGNORECASE,
)

# Six or more characters with no letter, digit or whitespace
_SYMBOL_RUN_RE = re.compile(r"^[^a-zA-Z0-9ऀ-ॿ\s]{6,}$")


def detect_locale(text: str) -> Locale:
    """Script first, then Nepali marker words to split ne from hi."""
    text = text or ""
    if _DEVANAGARI_RE.search(text):
        if _NEPALI_MARKERS_RE.search(text):
            return Locale.NE
        return Locale.HI
    return Locale.EN


def is_prompt_injection(text: str) -> bool:
    return bool(_INJECTION_RE.search(text or ""))


def is_abusive(text: str) -> bool:
    return bool(_ABUSE_RE.search(text or ""))


def is_unparseable(text: str) -> bool:
    trimmed = (text or "").strip()
    if len(trimmed) < 2:
        return True
    return bool(_SYMBOL_RUN_RE.match(trimmed))


def classify(text: str) -> GuardrailResult:
    """
    Classify a raw guest message.

    Args:
        text: Message exactly as received

    Returns:
        GuardrailResult with the first matching verdict and the detected locale
    """
    locale = detect_locale(text)

    if is_prompt_injection(text):
        verdict = GuardrailVerdict.PROMPT_INJECTION
    elif is_abusive(text):
        verdict = GuardrailVerdict.ABUSIVE
    elif is_unparseable(text):
        verdict = GuardrailVerdict.UNPARSEABLE
    else:
        verdict = GuardrailVerdict.CLEAN

    return GuardrailResult(verdict=verdict, locale=locale)
