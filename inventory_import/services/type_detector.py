"""Guess which import type a spreadsheet holds from its column headers.

Every known type has a weighted table of expected columns
(:mod:`inventory_import.services.column_patterns`). A header that equals the
canonical name or an alias (after normalization) earns the full weight of
that entry; a header that merely contains one of those terms earns half.
A required column counts as missing only when no header matches it at all.
Confidence is the earned share of the table's total weight, 0-100.

Detection is a pure function of the header list: no I/O, no clock, no
randomness, so the same headers always yield the same scores.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_import.domain.job import ImportType
from inventory_import.services.column_patterns import COLUMN_PATTERNS, ColumnPattern
from inventory_import.utils.normalize import normalize_header

# Short aliases such as "um" or "tel" would match far too many headers by substring
MIN_PARTIAL_TERM_LENGTH = 4
PARTIAL_MATCH_FACTOR = 0.5


@dataclass
class TypeDetectionResult:
    import_type: ImportType
    confidence: int
    matched_columns: list[str] = field(default_factory=list)
    missing_required_columns: list[str] = field(default_factory=list)
    rationale: str = ""
    required_count: int = 0

    def to_dict(self) -> dict:
        return {
            "import_type": self.import_type.value,
            "confidence": self.confidence,
            "matched_columns": list(self.matched_columns),
            "missing_required_columns": list(self.missing_required_columns),
            "rationale": self.rationale,
            "required_count": self.required_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TypeDetectionResult:
        return cls(
            import_type=ImportType(data["import_type"]),
            confidence=int(data["confidence"]),
            matched_columns=list(data.get("matched_columns", [])),
            missing_required_columns=list(data.get("missing_required_columns", [])),
            rationale=str(data.get("rationale", "")),
            required_count=int(data.get("required_count", 0)),
        )


def _score_table(
    import_type: ImportType, columns: list[str], patterns: tuple[ColumnPattern, ...]
) -> TypeDetectionResult:
    normalized = [(column, normalize_header(column)) for column in columns]
    total_weight = sum(pattern.weight for pattern in patterns)
    earned = 0.0
    used: set[int] = set()
    matched: list[str] = []
    missing: list[str] = []
    exact_hits = partial_hits = 0

    pending: list[ColumnPattern] = []
    for pattern in patterns:
        terms = pattern.terms
        hit = next(
            (i for i, (_, norm) in enumerate(normalized) if i not in used and norm in terms),
            None,
        )
        if hit is None:
            pending.append(pattern)
            continue
        used.add(hit)
        matched.append(normalized[hit][0])
        earned += pattern.weight
        exact_hits += 1

    # Partial evidence only considers headers no exact match claimed
    for pattern in pending:
        terms = [t for t in pattern.terms if len(t) >= MIN_PARTIAL_TERM_LENGTH]
        hit = next(
            (
                i
                for i, (_, norm) in enumerate(normalized)
                if i not in used and any(term in norm for term in terms)
            ),
            None,
        )
        if hit is None:
            if pattern.required:
                missing.append(pattern.canonical)
            continue
        used.add(hit)
        matched.append(normalized[hit][0])
        earned += pattern.weight * PARTIAL_MATCH_FACTOR
        partial_hits += 1

    confidence = int(earned * 100 / total_weight + 0.5) if total_weight else 0
    confidence = max(0, min(100, confidence))
    rationale = (
        f"{exact_hits} exact and {partial_hits} partial column matches "
        f"({earned:g}/{total_weight} weight)"
    )
    if missing:
        rationale += f"; missing required: {', '.join(missing)}"
    return TypeDetectionResult(
        import_type=import_type,
        confidence=confidence,
        matched_columns=matched,
        missing_required_columns=missing,
        rationale=rationale,
        required_count=sum(1 for pattern in patterns if pattern.required),
    )


def detect(
    columns: list[str],
    tables: dict[ImportType, tuple[ColumnPattern, ...]] | None = None,
) -> list[TypeDetectionResult]:
    """Score ``columns`` against every known type, best candidate first.

    Ties on confidence go to the type whose table declares more required
    columns, then to declaration order.
    """
    tables = tables or COLUMN_PATTERNS
    results = [
        _score_table(import_type, list(columns), patterns)
        for import_type, patterns in tables.items()
    ]
    order = {import_type: index for index, import_type in enumerate(tables)}
    results.sort(key=lambda r: (-r.confidence, -r.required_count, order[r.import_type]))
    return results


def best_match(columns: list[str]) -> TypeDetectionResult:
    return detect(columns)[0]
