"""Heuristic spam-risk scoring of message content."""

import logging
import re

from bs4 import BeautifulSoup

from domain_trust.schemas.deliverability import EmailContent, SpamFactor, SpamScoreResult

logger = logging.getLogger(__name__)

SPAM_KEYWORDS = ["FREE", "URGENT", "ACT NOW", "LIMITED TIME", "GUARANTEED", "WINNER"]
LIKELY_SPAM_THRESHOLD = 50

_PUNCTUATION_RUN = re.compile(r"[!?]{2,}")

# Factor name -> recommendation, in output order
_RECOMMENDATIONS = {
    "Excessive Capitalization": "Use normal capitalization in subject lines",
    "Spam Keywords": "Avoid using promotional keywords in subject lines",
    "Excessive Punctuation": "Avoid repeated exclamation and question marks",
    "Excessive Links": "Reduce the number of links in your email content",
    "Image-Heavy Content": "Include more text content alongside images",
    "Very Short Content": "Provide more substantial email content",
    "No-Reply Sender": "Use a sender address recipients can reply to",
    "Sender Mismatch": "Use a sender name that matches your sending domain",
}


def analyze_subject(subject: str) -> list[SpamFactor]:
    """Capitalization, promotional keywords and punctuation runs in the subject."""
    factors = []

    if subject:
        caps_ratio = sum(1 for c in subject if "A" <= c <= "Z") / len(subject)
        if caps_ratio > 0.5:
            factors.append(
                SpamFactor(
                    name="Excessive Capitalization",
                    score=15,
                    weight=1.2,
                    description="Subject line has too many capital letters",
                    severity="medium",
                )
            )

    upper = subject.upper()
    found = [keyword for keyword in SPAM_KEYWORDS if keyword in upper]
    if found:
        factors.append(
            SpamFactor(
                name="Spam Keywords",
                score=len(found) * 10,
                weight=1.5,
                description=f"Contains spam keywords: {', '.join(found)}",
                severity="high" if len(found) > 2 else "medium",
            )
        )

    runs = len(_PUNCTUATION_RUN.findall(subject))
    if runs:
        factors.append(
            SpamFactor(
                name="Excessive Punctuation",
                score=runs * 5,
                weight=1.0,
                description="Subject line has excessive punctuation marks",
                severity="low",
            )
        )

    return factors


def analyze_content(html_body: str, text_body: str | None = None) -> list[SpamFactor]:
    """
    Length, link density and image weight of the body.

    The text part is measured when present, otherwise the HTML with tags
    stripped. Links and images are always counted in the HTML.
    """
    factors = []
    soup = BeautifulSoup(html_body or "", "html.parser")
    content = text_body or soup.get_text()

    if len(content) < 50:
        factors.append(
            SpamFactor(
                name="Very Short Content",
                score=10,
                weight=1.0,
                description="Email content is very short",
                severity="low",
            )
        )

    link_count = len(soup.find_all("a", href=True))
    link_ratio = link_count / max(len(content) / 100, 1)
    if link_ratio > 3:
        factors.append(
            SpamFactor(
                name="Excessive Links",
                score=min(20, link_ratio * 3),
                weight=1.3,
                description="Too many links relative to content length",
                severity="medium",
            )
        )

    if soup.find("img") is not None and len(content) < 100:
        factors.append(
            SpamFactor(
                name="Image-Heavy Content",
                score=15,
                weight=1.2,
                description="Email is mostly images with little text",
                severity="medium",
            )
        )

    return factors


def analyze_sender(from_email: str, from_name: str | None = None) -> list[SpamFactor]:
    """No-reply addresses and display names unrelated to the sending domain."""
    factors = []

    local_part = from_email.split("@", 1)[0].lower()
    if "noreply" in local_part or "no-reply" in local_part:
        factors.append(
            SpamFactor(
                name="No-Reply Sender",
                score=5,
                weight=0.8,
                description="Using no-reply email address",
                severity="low",
            )
        )

    if from_name and "@" in from_email:
        domain_parts = from_email.split("@", 1)[1].lower().split(".")
        name_words = from_name.lower().split()
        has_match = any(
            part in word or word in part
            for word in name_words
            for part in domain_parts
        )
        if not has_match and len(from_name) > 3:
            factors.append(
                SpamFactor(
                    name="Sender Mismatch",
                    score=8,
                    weight=1.1,
                    description="Sender name does not match email domain",
                    severity="low",
                )
            )

    return factors


def generate_spam_recommendations(factors: list[SpamFactor]) -> list[str]:
    """One recommendation per triggered factor category."""
    triggered = {factor.name for factor in factors}
    return [text for name, text in _RECOMMENDATIONS.items() if name in triggered]


def score_spam_factors(factors: list[SpamFactor]) -> float:
    total = sum(factor.score * factor.weight for factor in factors)
    return min(100.0, max(0.0, total))


def analyze_spam_score(content: EmailContent) -> SpamScoreResult:
    """
    Score a message for spam risk.

    Args:
        content: Subject, bodies and sender of the message

    Returns:
        Weighted score in [0, 100] with the triggered factors and
        recommendations; likely spam above 50
    """
    factors = [
        *analyze_subject(content.subject),
        *analyze_content(content.html_body, content.text_body),
        *analyze_sender(content.from_email, content.from_name),
    ]
    score = score_spam_factors(factors)

    logger.debug(f"Spam score {score:.1f} from {len(factors)} factors")
    return SpamScoreResult(
        score=score,
        factors=factors,
        recommendations=generate_spam_recommendations(factors),
        is_likely_spam=score > LIKELY_SPAM_THRESHOLD,
    )
