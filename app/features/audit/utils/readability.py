"""
Readability estimation for Brazilian Portuguese.

Flesch reading ease adapted to PT-BR (Martins et al., 1996):

    score = 248.835 - 1.015 * ASL - 84.6 * ASW

ASL is the average number of words per sentence and ASW the average number
of syllables per word. Higher is easier; the score is clamped to 0..100.
"""
import re
from dataclasses import dataclass
from typing import Optional

SENTENCE_SPLIT_RE = re.compile(r'[.!?:;]+')
WORD_RE = re.compile(r'[^\W\d_]+')

VOWELS = 'aeiouyáéíóúâêîôûàãõü'
NON_LETTER_RE = re.compile(rf'[^a-zçñ{VOWELS}]')
# u after q/g is a glide (quando, guerra, água)
SILENT_U_RE = re.compile(rf'([qg])[uü](?=[{VOWELS}])')
NASAL_DIPHTHONG_RE = re.compile(r'ão|õe|ãe')
# ai, ei, oi, ui, au, eu, ou, iu when the glide does not open a new syllable
FALLING_DIPHTHONG_RE = re.compile(r'[aeiou][iu](?![aeiouáéíóúâêôãõ])')
NUCLEUS_RE = re.compile(rf'[#{VOWELS}]')

MIN_SCORE = 50.0


@dataclass(frozen=True)
class ReadabilityResult:
    score: float
    asl: float
    asw: float
    words: int
    sentences: int
    syllables: int
    interpretation: str


def count_syllables(word: str) -> int:
    """
    Deterministic syllable count for a Portuguese word.

    Each vowel is a nucleus, except that falling and nasal diphthongs count
    once and the u in qu/gu before a vowel is silent. Adjacent vowels that
    are not a diphthong stay separate (hiatus: di-a, co-e-lho).
    """
    w = NON_LETTER_RE.sub('', (word or '').lower())
    if not w:
        return 0
    if len(w) <= 2:
        return 1
    w = SILENT_U_RE.sub(r'\1', w)
    w = NASAL_DIPHTHONG_RE.sub('#', w)
    w = FALLING_DIPHTHONG_RE.sub('#', w)
    return max(1, len(NUCLEUS_RE.findall(w)))


def interpret(score: float) -> str:
    if score >= 75:
        return 'very_easy'
    if score >= 50:
        return 'easy'
    if score >= 25:
        return 'difficult'
    return 'very_difficult'


def estimate_readability(text: str) -> Optional[ReadabilityResult]:
    """None for blank text or text without words."""
    if not text or not text.strip():
        return None

    words = WORD_RE.findall(text)
    if not words:
        return None
    sentences = max(1, len([s for s in SENTENCE_SPLIT_RE.split(text) if WORD_RE.search(s)]))
    syllables = sum(count_syllables(w) for w in words)

    asl = len(words) / sentences
    asw = syllables / len(words)
    score = max(0.0, min(100.0, 248.835 - 1.015 * asl - 84.6 * asw))

    return ReadabilityResult(
        score=round(score, 1),
        asl=round(asl, 1),
        asw=round(asw, 2),
        words=len(words),
        sentences=sentences,
        syllables=syllables,
        interpretation=interpret(score),
    )


def is_text_too_complex(text: str, min_score: float = MIN_SCORE) -> bool:
    result = estimate_readability(text)
    return result is not None and result.score < min_score
