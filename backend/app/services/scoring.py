import math
from dataclasses import asdict, dataclass

from app.services.analyzer import SeoIssue

CATEGORIES = ("meta", "content", "performance", "technical")

# issue_type -> (category, points deducted per occurrence)
PENALTIES: dict[str, tuple[str, int]] = {
    "missing_meta_description": ("meta", 25),
    "missing_h1": ("content", 20),
    "multiple_h1": ("content", 10),
    "thin_content": ("content", 15),
    "duplicate_titles": ("meta", 15),
    "missing_alt_tags": ("performance", 10),
    "no_schema": ("technical", 10),
    "orphan_page": ("technical", 10),
}


@dataclass(frozen=True)
class CategoryScores:
    meta: int = 100
    content: int = 100
    performance: int = 100
    technical: int = 100
    overall: int = 100

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_scores(issues: list[SeoIssue]) -> CategoryScores:
    scores = {category: 100 for category in CATEGORIES}
    for issue in issues:
        penalty = PENALTIES.get(issue.issue_type)
        if penalty is None:
            continue
        category, amount = penalty
        scores[category] = max(0, scores[category] - amount)

    overall = round_half_up(sum(scores.values()) / len(CATEGORIES))
    return CategoryScores(overall=overall, **scores)
