from __future__ import annotations

import re
from typing import Optional

from clinassist.schemas.findings import (
    INTERACTION_ADVICE,
    DiagnosisOption,
    EvidenceLevel,
    ExtractionResult,
    FoodDrugInteraction,
    Interaction,
    Likelihood,
    RecommendationOption,
    Severity,
)
from clinassist.schemas.requests import RequestKind
from clinassist.services.prompt_compiler import OUTPUT_SECTIONS, OutputSection
from clinassist.utils.logger import logger


MAX_SUGGESTED_QUESTIONS = 3
MAX_NAME_LENGTH = 120
MAX_NAME_WORDS = 6

INTERACTION_TARGETS = {
    "major_interactions": Severity.MAJOR,
    "moderate_interactions": Severity.MODERATE,
    "minor_interactions": Severity.MINOR,
}

SEVERITY_RANK = {Severity.MINOR: 0, Severity.MODERATE: 1, Severity.MAJOR: 2}

TEXT_TARGETS = {"assessment", "clinical_reasoning", "evidence_summary", "risk_benefit"}

PLACEHOLDER_ITEMS = {
    "none",
    "none identified",
    "none noted",
    "none known",
    "no known interactions",
    "n/a",
    "na",
    "not applicable",
    "-",
}

_BULLET_RE = re.compile(r"^\s*(?:[-*•●▪◦·]|\d{1,2}[.)])\s+")
_MARKDOWN_RE = re.compile(r"[*_#`]")
_LEADING_NOISE_RE = re.compile(r"^[^\w(]+")
_NUMBERING_RE = re.compile(r"^\d{1,2}[.)]\s*")
_ITEM_SPLIT_RE = re.compile(r"\s*(?::|\s[-–—]\s|\()\s*")
_LEADING_LIKELIHOOD_RE = re.compile(
    r"^\(?\s*(?P<level>HIGH|MEDIUM|MODERATE|LOW)(?:\s*(?:likelihood|probability))?"
    r"\s*(?:\)|:|\s[-–—]\s|$)\s*",
    re.I,
)
_NAMED_LIKELIHOOD_RE = re.compile(
    r"(?:likelihood|probability)\s*[:=\-]?\s*(?P<level>HIGH|MEDIUM|MODERATE|LOW)\b"
    r"|\b(?P<level2>HIGH|MEDIUM|MODERATE|LOW)\s+(?:likelihood|probability)\b",
    re.I,
)
# Sentence punctuation; "St. John's Wort" and "0.5" stay valid names.
_SENTENCE_PUNCT_RE = re.compile(r"[;!?]|\w{4,}\.(?:\s|$)")
_BARE_NUMBER_RE = re.compile(r"^\d+(?:[.,]\d+)?$")
_EVIDENCE_RE = re.compile(
    r"evidence(?:\s+level)?\s*[:=\-]?\s*\(?\s*(EXPERT[ _]OPINION|HIGH|MODERATE|LOW)\b",
    re.I,
)


def _header_pattern(header: str) -> re.Pattern:
    return re.compile(
        rf"^{re.escape(header)}\s*(?:\([^)]*\))?\s*(?:[:\-–—]\s*(?P<rest>.*))?$",
        re.I,
    )


# Longest headers first so "RED FLAGS AND SAFETY CONCERNS" wins over shorter prefixes.
_SECTION_PATTERNS: dict[RequestKind, list[tuple[re.Pattern, OutputSection]]] = {
    kind: sorted(
        ((_header_pattern(s.header), s) for s in sections),
        key=lambda pair: -len(pair[1].header),
    )
    for kind, sections in OUTPUT_SECTIONS.items()
}


# ------------------------------------------------------------------
# Line helpers
# ------------------------------------------------------------------

def _normalize_header_candidate(line: str) -> str:
    t = _MARKDOWN_RE.sub("", line).strip()
    t = _LEADING_NOISE_RE.sub("", t)
    t = _NUMBERING_RE.sub("", t)
    t = _LEADING_NOISE_RE.sub("", t)
    return t.strip()


def _match_header(line: str, kind: RequestKind) -> Optional[tuple[OutputSection, str]]:
    candidate = _normalize_header_candidate(line)
    if not candidate:
        return None
    for pattern, section in _SECTION_PATTERNS.get(kind, []):
        m = pattern.match(candidate)
        if m:
            return section, (m.group("rest") or "").strip()
    return None


def _strip_bullet(line: str) -> tuple[str, bool]:
    m = _BULLET_RE.match(line)
    text = line[m.end():] if m else line
    text = text.replace("**", "").replace("__", "").strip()
    return text, m is not None


def _is_placeholder(text: str) -> bool:
    key = text.strip().strip(".").strip().lower()
    return not key or key in PLACEHOLDER_ITEMS


def _split_pair(text: str) -> Optional[tuple[str, str, str]]:
    """
    "Warfarin + Aspirin: increased bleeding" -> ("Warfarin", "Aspirin", "increased bleeding")
    """
    if "+" not in text:
        return None

    left, right = text.split("+", 1)

    # "take 1 + 2 tablets" is arithmetic, not a pair
    operands = (left.split() or [""])[-1], (right.split() or [""])[0]
    if any(_BARE_NUMBER_RE.match(o) for o in operands):
        return None

    first = left.strip(" :-–—\t")
    parts = _ITEM_SPLIT_RE.split(right.strip(), maxsplit=1)
    second = parts[0].strip(" :-–—\t").rstrip(".")
    detail = parts[1].strip().rstrip(")").strip() if len(parts) > 1 else ""

    if not _looks_like_name(first) or not _looks_like_name(second):
        return None
    return first, second, detail


def _looks_like_name(side: str) -> bool:
    if not side or len(side) > MAX_NAME_LENGTH:
        return False
    if len(side.split()) > MAX_NAME_WORDS:
        return False
    return _SENTENCE_PUNCT_RE.search(side) is None


def _parse_diagnosis(text: str, had_bullet: bool, rank: int) -> Optional[DiagnosisOption]:
    parts = _ITEM_SPLIT_RE.split(text, maxsplit=1)
    if len(parts) < 2 and not had_bullet:
        return None

    label = parts[0].strip(" :-–—\t")
    detail = parts[1].strip() if len(parts) > 1 else ""
    if not label or len(label) > MAX_NAME_LENGTH:
        return None

    likelihood = Likelihood.MEDIUM
    m = _LEADING_LIKELIHOOD_RE.match(detail) or _NAMED_LIKELIHOOD_RE.search(detail)
    if m:
        token = (m.group("level") or m.groupdict().get("level2") or "MEDIUM").upper()
        likelihood = Likelihood.MEDIUM if token == "MODERATE" else Likelihood(token)
        if m.re is _LEADING_LIKELIHOOD_RE:
            detail = detail[m.end():]

    return DiagnosisOption(
        label=label,
        likelihood=likelihood,
        supporting_features=detail.strip(" :-–—\t"),
        rank=rank,
    )


def _parse_recommendation(text: str) -> RecommendationOption:
    level = EvidenceLevel.EXPERT_OPINION
    m = _EVIDENCE_RE.search(text)
    if m:
        level = EvidenceLevel(m.group(1).upper().replace(" ", "_"))
    return RecommendationOption(text=text, evidence_level=level)


# ------------------------------------------------------------------
# Scanner
# ------------------------------------------------------------------

class _Collector:
    def __init__(self):
        self.items: dict[str, list] = {}
        self.seen: dict[str, set] = {}
        self.text: dict[str, list[str]] = {}
        self.primary: list[str] = []
        # unordered drug pair -> interaction target it is filed under
        self.interaction_targets: dict[frozenset, str] = {}
        self.diagnosis_indent = 0

    def add(self, target: str, item, key) -> None:
        seen = self.seen.setdefault(target, set())
        if key in seen:
            return
        seen.add(key)
        self.items.setdefault(target, []).append(item)

    def count(self, target: str) -> int:
        return len(self.items.get(target, []))

    def add_interaction(self, target: str, interaction: Interaction) -> None:
        """
        One entry per unordered pair across all severity sections; the
        highest severity wins.
        """
        key = frozenset({interaction.drug_a.lower(), interaction.drug_b.lower()})
        filed_under = self.interaction_targets.get(key)
        if filed_under is not None:
            if SEVERITY_RANK[interaction.severity] <= SEVERITY_RANK[INTERACTION_TARGETS[filed_under]]:
                return
            self.items[filed_under] = [
                i for i in self.items[filed_under]
                if frozenset({i.drug_a.lower(), i.drug_b.lower()}) != key
            ]
        self.interaction_targets[key] = target
        self.items.setdefault(target, []).append(interaction)

    def attach_to_last_diagnosis(self, text: str) -> None:
        options = self.items["diagnoses"]
        last = options[-1]
        features = "; ".join(f for f in (last.supporting_features, text) if f)
        options[-1] = last.model_copy(update={"supporting_features": features})

    def feed(self, target: str, line: str, indent: int = 0) -> None:
        text, had_bullet = _strip_bullet(line)
        if _is_placeholder(text):
            return

        if target in INTERACTION_TARGETS:
            pair = _split_pair(text)
            if pair is None:
                return
            severity = INTERACTION_TARGETS[target]
            management, recommendation = INTERACTION_ADVICE[severity]
            self.add_interaction(
                target,
                Interaction(
                    drug_a=pair[0],
                    drug_b=pair[1],
                    severity=severity,
                    description=pair[2],
                    management=management,
                    recommendation=recommendation,
                ),
            )

        elif target == "food_interactions":
            pair = _split_pair(text)
            if pair is None:
                return
            self.add(
                target,
                FoodDrugInteraction(drug=pair[0], food=pair[1], effect=pair[2]),
                frozenset({pair[0].lower(), pair[1].lower()}),
            )

        elif target == "diagnoses":
            # deeper-indented lines are sub-bullets of the diagnosis above
            if self.count(target) and indent > self.diagnosis_indent:
                self.attach_to_last_diagnosis(text)
                return
            option = _parse_diagnosis(text, had_bullet, rank=self.count(target) + 1)
            if option is not None:
                self.add(target, option, option.label.lower())
                self.diagnosis_indent = indent

        elif target == "primary_recommendation":
            self.primary.append(text)

        elif target == "recommendations":
            self.add(target, _parse_recommendation(text), text.lower())

        elif target == "suggested_questions":
            if "?" in text and self.count(target) < MAX_SUGGESTED_QUESTIONS:
                self.add(target, text, text.lower())

        elif target in TEXT_TARGETS:
            self.text.setdefault(target, []).append(text)

        elif had_bullet:
            self.add(target, text, text.lower())

    def result(self) -> ExtractionResult:
        fields = {k: tuple(v) for k, v in self.items.items()}
        fields.update({k: "\n".join(v) for k, v in self.text.items()})
        if self.primary:
            fields["primary_recommendation"] = _parse_recommendation(" ".join(self.primary))
        return ExtractionResult(**fields)


def extract(response_text: str | None, kind: RequestKind) -> ExtractionResult:
    """
    Scan provider free text line by line. A recognised header moves the
    section cursor; a blank line after section content closes the section;
    lines outside any section are ignored. Never raises.
    """
    collector = _Collector()
    current: Optional[OutputSection] = None
    has_content = False

    for raw in (response_text or "").splitlines():
        line = raw.strip()

        if not line:
            if current is not None and has_content:
                current = None
            continue

        header = _match_header(line, kind)
        if header is not None:
            current, rest = header
            has_content = False
            if rest:
                has_content = True
                collector.feed(current.target, rest)
            continue

        if current is None:
            continue

        has_content = True
        indent = len(raw.expandtabs(4)) - len(raw.expandtabs(4).lstrip())
        collector.feed(current.target, line, indent)

    result = collector.result()

    if result.is_empty and (response_text or "").strip():
        logger.info(f"Extraction incomplete: no known {kind.value} sections recognised")

    return result
