"""Fill missing decision sections and tags from the published full text."""

import re

from fos_dashboard.schemas.cases import CaseDetail

SECTION_MAX_LENGTH = 7000
FINAL_SENTENCE_MAX_LENGTH = 500
DECISION_LOGIC_MAX_LENGTH = 420
TAG_SOURCE_FULL_TEXT_CHARS = 12000


def _patterns(*expressions: str) -> list[re.Pattern[str]]:
    return [re.compile(expression, re.IGNORECASE) for expression in expressions]


COMPLAINT_MARKERS = _patterns(
    r"\bthe complaint\b",
    r"\bbackground to the complaint\b",
    r"\bwhat happened\b",
    r"\bmy understanding\b",
)
FIRM_RESPONSE_MARKERS = _patterns(
    r"\bwhat (the )?(business|firm) says\b",
    r"\bthe (business|firm) says\b",
    r"\bthe insurer says\b",
    r"\bthe lender says\b",
    r"\bour investigator thought\b",
)
OMBUDSMAN_REASONING_MARKERS = _patterns(
    r"\bwhat i[' ]?ve decided\b",
    r"\bwhat i have decided\b",
    r"\bmy findings\b",
    r"\bmy decision\b",
    r"\breasons for decision\b",
    r"\bwhat i think\b",
)
FINAL_DECISION_MARKERS = _patterns(r"\bmy final decision\b", r"\bfinal decision\b")

_FINAL_SENTENCE = re.compile(
    r"\b(i (do not|don't|partly|partially|fully)?\s*uphold[^.?!]{0,220}[.?!])", re.IGNORECASE
)
_SENTENCE = re.compile(r"[^.?!]+[.?!]?")

PRECEDENT_RULES: list[tuple[str, re.Pattern[str]]] = [
    (label, re.compile(pattern, re.IGNORECASE))
    for label, pattern in [
        ("DISP", r"\bDISP\b"),
        ("PRIN", r"\bPRIN\b"),
        ("ICOBS", r"\bICOBS\b"),
        ("COBS", r"\bCOBS\b"),
        ("MCOB", r"\bMCOB\b"),
        ("CONC", r"\bCONC\b"),
        ("SYSC", r"\bSYSC\b"),
        ("FCA Principles", r"\bFCA principles?\b"),
        ("FSMA", r"\bFSMA\b|\bFinancial Services and Markets Act\b"),
        ("Consumer Credit Act 1974", r"\bConsumer Credit Act\b|\bCCA\b"),
        ("Section 75 CCA", r"\bsection\s*75\b"),
        ("Section 140A CCA", r"\bsection\s*140a\b"),
        ("Insurance Act 2015", r"\bInsurance Act 2015\b"),
    ]
]

ROOT_CAUSE_RULES: list[tuple[str, re.Pattern[str]]] = [
    (label, re.compile(pattern, re.IGNORECASE))
    for label, pattern in [
        (
            "Communication failure",
            r"\b(poor|unclear|misleading)\s+communication\b|\bfailed to explain\b"
            r"|\bnot (told|informed)\b",
        ),
        (
            "Delay in claim handling",
            r"\b(delay|delayed|late|timescale|waiting time|took too long)\b",
        ),
        (
            "Policy wording ambiguity",
            r"\b(policy wording|ambiguous|unclear term|small print|exclusion clause)\b",
        ),
        (
            "Affordability assessment failure",
            r"\b(affordability|unaffordable|creditworthiness|irresponsible lending)\b",
        ),
        (
            "Administrative error",
            r"\b(administrative|clerical|processing|data entry|system)\s+error\b",
        ),
        ("Fraud or scam concern", r"\b(fraud|scam|authorised push payment|app fraud)\b"),
        (
            "Non-disclosure or misrepresentation",
            r"\b(non[- ]?disclosure|misrepresentation|failed to disclose)\b",
        ),
    ]
]

VULNERABILITY_RULES: list[tuple[str, re.Pattern[str]]] = [
    (label, re.compile(pattern, re.IGNORECASE))
    for label, pattern in [
        ("Bereavement", r"\b(bereave|bereavement|late husband|late wife|widow|widower)\b"),
        ("Mental health", r"\b(mental health|depression|anxiety|stress)\b"),
        ("Physical health", r"\b(illness|disability|long[- ]term condition|hospital)\b"),
        (
            "Financial hardship",
            r"\b(financial hardship|hardship|arrears|debt|struggling financially)\b",
        ),
        ("Domestic abuse", r"\b(domestic abuse|coercive control|financial abuse)\b"),
        ("Unemployment", r"\b(unemploy|redundan)\b"),
        (
            "Language barrier",
            r"\b(language barrier|english is not (my|their) first language|interpreter)\b",
        ),
    ]
]


def trim_text(value: str, max_length: int) -> str | None:
    """Strip the text and cut it to max_length, ending in an ellipsis when cut."""
    normalized = value.replace("\x00", "").strip()
    if not normalized:
        return None
    if len(normalized) <= max_length:
        return normalized
    return f"{normalized[: max_length - 3]}..."


def clean_decision_text(value: str | None) -> str | None:
    """Normalize line endings and drop NUL characters."""
    if not value:
        return None
    normalized = value.replace("\x00", "").replace("\r\n", "\n").replace("\r", "\n").strip()
    return normalized or None


def _find_marker(text: str, markers: list[re.Pattern[str]], start: int = 0) -> int:
    """Index of the earliest marker match at or after start, or -1."""
    best = -1
    for marker in markers:
        match = marker.search(text, start)
        if match is not None and (best < 0 or match.start() < best):
            best = match.start()
    return best


def extract_section(
    full_text: str | None,
    start_markers: list[re.Pattern[str]],
    end_marker_groups: list[list[re.Pattern[str]]],
) -> str | None:
    """Cut the text from the first start marker up to the nearest following end marker."""
    if not full_text:
        return None
    start = _find_marker(full_text, start_markers)
    if start < 0:
        return None

    end = len(full_text)
    for markers in end_marker_groups:
        position = _find_marker(full_text, markers, start + 1)
        if 0 <= position < end:
            end = position

    return trim_text(full_text[start:end], SECTION_MAX_LENGTH)


def extract_final_decision_sentence(full_text: str | None) -> str | None:
    """Find an "I (do not) uphold ..." sentence."""
    if not full_text:
        return None
    match = _FINAL_SENTENCE.search(full_text)
    if match is None:
        return None
    return trim_text(match.group(0), FINAL_SENTENCE_MAX_LENGTH)


def synthesize_decision_logic(*parts: str | None) -> str | None:
    """Summarise the first non-blank part as its first two sentences."""
    source = next((part for part in parts if part and part.strip()), None)
    if source is None:
        return None
    clean = re.sub(r"\s+", " ", source).strip()
    sentences = [sentence.strip() for sentence in _SENTENCE.findall(clean)] or [clean]
    return trim_text(" ".join(sentences[:2]), DECISION_LOGIC_MAX_LENGTH)


def detect_tags(text: str, rules: list[tuple[str, re.Pattern[str]]]) -> list[str]:
    """Labels of every rule whose pattern occurs in the text, in rule order."""
    if not text.strip():
        return []
    return [label for label, pattern in rules if pattern.search(text)]


def enrich_case_detail(detail: CaseDetail) -> CaseDetail:
    """Fill blank sections, tags and decision logic from the full text.

    Stored values always win; only missing fields are derived.
    """
    full_text = clean_decision_text(detail.full_text)
    complaint = detail.complaint_text or extract_section(
        full_text,
        COMPLAINT_MARKERS,
        [FIRM_RESPONSE_MARKERS, OMBUDSMAN_REASONING_MARKERS, FINAL_DECISION_MARKERS],
    )
    firm_response = detail.firm_response_text or extract_section(
        full_text, FIRM_RESPONSE_MARKERS, [OMBUDSMAN_REASONING_MARKERS, FINAL_DECISION_MARKERS]
    )
    reasoning = detail.ombudsman_reasoning_text or extract_section(
        full_text, OMBUDSMAN_REASONING_MARKERS, [FINAL_DECISION_MARKERS]
    )
    final_decision = (
        detail.final_decision_text
        or extract_section(full_text, FINAL_DECISION_MARKERS, [])
        or extract_final_decision_sentence(full_text)
    )

    tag_source = "\n".join(
        part
        for part in (
            detail.decision_logic,
            detail.decision_summary,
            complaint,
            firm_response,
            reasoning,
            final_decision,
            full_text[:TAG_SOURCE_FULL_TEXT_CHARS] if full_text else None,
        )
        if part
    )

    return detail.model_copy(
        update={
            "complaint_text": complaint,
            "firm_response_text": firm_response,
            "ombudsman_reasoning_text": reasoning,
            "final_decision_text": final_decision,
            "decision_logic": detail.decision_logic
            or synthesize_decision_logic(detail.decision_summary, reasoning, final_decision),
            "precedents": detail.precedents or detect_tags(tag_source, PRECEDENT_RULES),
            "root_cause_tags": detail.root_cause_tags
            or detect_tags(tag_source, ROOT_CAUSE_RULES),
            "vulnerability_flags": detail.vulnerability_flags
            or detect_tags(tag_source, VULNERABILITY_RULES),
        }
    )
