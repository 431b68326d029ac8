# Role: Small FAQ about Malaysian motor insurance + road tax, searched by keyword score.
# Backs the model-callable search/explain functions so answers come from fixed text, not model memory.

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class KnowledgeEntry:
    id: str
    category: str
    question: str
    answer: str
    keywords: Tuple[str, ...]


@dataclass(frozen=True)
class KnowledgeHit:
    entry: KnowledgeEntry
    score: float


KNOWLEDGE_BASE: Tuple[KnowledgeEntry, ...] = (
    KnowledgeEntry(
        id="ncd-basics",
        category="NCD",
        question="What is NCD (No Claims Discount)?",
        answer=(
            "NCD is a discount on your premium for every claim-free policy year. In Malaysia it goes up to 55%. "
            "With a RM 1,000 base premium and 20% NCD you pay RM 800."
        ),
        keywords=("ncd", "no claims discount", "discount", "premium reduction"),
    ),
    KnowledgeEntry(
        id="ncd-levels",
        category="NCD",
        question="How does NCD accumulate?",
        answer=(
            "Each claim-free year moves you up one level: 25%, 30%, 38.33%, 45%, then 55% (the maximum). "
            "A claim usually drops you back down."
        ),
        keywords=("ncd accumulation", "ncd levels", "build ncd", "increase ncd"),
    ),
    KnowledgeEntry(
        id="ncd-transfer",
        category="NCD",
        question="Can I transfer my NCD to a new car?",
        answer=(
            "Yes. NCD belongs to the owner, not the car, so it moves with you to a new vehicle. "
            "Keep your last policy as proof."
        ),
        keywords=("transfer ncd", "new car", "change car", "ncd portability"),
    ),
    KnowledgeEntry(
        id="comprehensive-vs-third-party",
        category="Coverage",
        question="What's the difference between Comprehensive and Third Party insurance?",
        answer=(
            "Comprehensive covers your own car (accident, theft, fire) plus damage and injury to others. "
            "Third Party only covers damage and injury you cause to others. It is cheaper but leaves your car unprotected."
        ),
        keywords=("comprehensive", "third party", "coverage type", "insurance type", "difference"),
    ),
    KnowledgeEntry(
        id="sum-insured",
        category="Coverage",
        question="What is Sum Insured?",
        answer=(
            "Sum insured is the most the insurer pays if the car is written off or stolen. It should match the "
            "car's market value; under-insuring reduces every payout proportionally."
        ),
        keywords=("sum insured", "market value", "car value", "insured amount"),
    ),
    KnowledgeEntry(
        id="takaful-vs-conventional",
        category="Coverage",
        question="What's the difference between Takaful and Conventional insurance?",
        answer=(
            "Takaful is Shariah-compliant and based on mutual risk-sharing; surplus may be shared with participants. "
            "Conventional insurance transfers risk to the insurer. Coverage is similar, so it comes down to preference."
        ),
        keywords=("takaful", "conventional", "islamic insurance", "shariah", "halal insurance"),
    ),
    KnowledgeEntry(
        id="how-to-claim",
        category="Claims",
        question="How do I make an insurance claim after an accident?",
        answer=(
            "Take photos, exchange details, and lodge a police report within 24 hours. Call your insurer's hotline, "
            "send the car to a panel workshop, then submit the claim form with your IC, licence and the report."
        ),
        keywords=("make claim", "accident claim", "claim process", "how to claim", "insurance claim"),
    ),
    KnowledgeEntry(
        id="betterment",
        category="Claims",
        question="What are betterment charges?",
        answer=(
            "When old parts are replaced with new ones during a repair, you may pay the difference in value. "
            "It mostly applies to cars older than 5 years."
        ),
        keywords=("betterment", "betterment charges", "depreciation", "wear and tear"),
    ),
    KnowledgeEntry(
        id="panel-workshop",
        category="Claims",
        question="Should I use a panel workshop?",
        answer=(
            "Panel workshops bill the insurer directly and get faster approval. Your own workshop gives you choice "
            "but may mean paying upfront and waiting longer."
        ),
        keywords=("panel workshop", "own workshop", "where to repair", "workshop"),
    ),
    KnowledgeEntry(
        id="windscreen",
        category="Add-ons",
        question="What is Windscreen cover and do I need it?",
        answer=(
            "It pays for windscreen and window repair or replacement without touching your NCD. "
            "Worth it if you drive on highways or park outdoors."
        ),
        keywords=("windscreen", "windshield", "glass coverage", "window"),
    ),
    KnowledgeEntry(
        id="special-perils",
        category="Add-ons",
        question="What is Special Perils (flood) cover?",
        answer=(
            "It covers flood, landslide, storm and other natural-disaster damage, which a standard comprehensive "
            "policy excludes. Recommended in flood-prone areas and during the monsoon season."
        ),
        keywords=("flood", "special perils", "natural disaster", "monsoon", "landslide"),
    ),
    KnowledgeEntry(
        id="ehailing",
        category="Add-ons",
        question="Do I need E-hailing cover?",
        answer=(
            "Only if you drive for Grab, inDrive or another ride-sharing service. Without it, claims during "
            "paid trips can be rejected."
        ),
        keywords=("e-hailing", "ehailing", "grab", "indrive", "ride-sharing"),
    ),
    KnowledgeEntry(
        id="road-tax-digital",
        category="Road Tax",
        question="Is digital road tax valid?",
        answer=(
            "Yes. Digital road tax in the MyJPJ app has the same legal standing as the sticker. "
            "Printed road tax delivery is only offered for Foreign ID and Company Registration ownership."
        ),
        keywords=("digital road tax", "e-road tax", "physical road tax", "myjpj", "sticker", "road tax"),
    ),
    KnowledgeEntry(
        id="road-tax-rate",
        category="Road Tax",
        question="How is road tax calculated?",
        answer=(
            "Road tax depends on engine capacity. A 1,496cc private car in Peninsular Malaysia pays RM 90 a year. "
            "Insurance must be valid before road tax can be renewed."
        ),
        keywords=("road tax rate", "road tax price", "how much road tax", "engine", "cc"),
    ),
)


def search_knowledge_base(query: str, limit: int = 3) -> List[KnowledgeHit]:
    # Score: keyword overlap (2) > question text (1.5) > answer text (0.5); words under 3 chars ignored.
    words = [w for w in (query or "").lower().split() if len(w) >= 3]
    if not words:
        return []

    hits: List[KnowledgeHit] = []
    for entry in KNOWLEDGE_BASE:
        score = 0.0
        question = entry.question.lower()
        answer = entry.answer.lower()
        for word in words:
            for keyword in entry.keywords:
                if word in keyword or keyword in word:
                    score += 2
            if word in question:
                score += 1.5
            if word in answer:
                score += 0.5
        if score > 0:
            hits.append(KnowledgeHit(entry=entry, score=score))

    hits.sort(key=lambda h: h.score, reverse=True)
    return hits[:limit]
