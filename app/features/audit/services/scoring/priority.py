IMPACT_PRIORITY = {
    'critical': 40,
    'serious': 30,
    'moderate': 20,
    'minor': 10,
}

MAX_FREQUENCY_BONUS = 30
MAX_SPREAD_BONUS = 30


def calculate_priority(impact: str, occurrences: int, page_count: int) -> int:
    """
    Priority 0..100 for an aggregated violation.

    Impact sets the base; each occurrence adds 2 and each affected page
    adds 3, both bonuses capped at 30.
    """
    base = IMPACT_PRIORITY.get(impact, IMPACT_PRIORITY['minor'])
    frequency_bonus = min(occurrences * 2, MAX_FREQUENCY_BONUS)
    spread_bonus = min(page_count * 3, MAX_SPREAD_BONUS)
    return min(base + frequency_bonus + spread_bonus, 100)
