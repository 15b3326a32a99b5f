"""Tests for content spam scoring."""

import pytest

from domain_trust.schemas.deliverability import EmailContent
from domain_trust.services.spam_scorer import (
    analyze_content,
    analyze_sender,
    analyze_spam_score,
    analyze_subject,
    generate_spam_recommendations,
)

LONG_TEXT = "Thanks for being a customer. Here is the monthly summary of your account activity. " * 2


def _names(factors):
    return [f.name for f in factors]


class TestAnalyzeSubject:
    def test_clean_subject(self):
        assert analyze_subject("Your October newsletter") == []

    def test_empty_subject(self):
        assert analyze_subject("") == []

    def test_capitalization(self):
        factors = analyze_subject("BIG SALE TODAY")
        assert _names(factors) == ["Excessive Capitalization"]
        assert factors[0].score == 15

    def test_keywords_case_insensitive(self):
        factors = analyze_subject("a free gift for the winner")
        keywords = factors[0]
        assert keywords.name == "Spam Keywords"
        assert keywords.score == 20
        assert keywords.severity == "medium"

    def test_many_keywords_are_high_severity(self):
        factors = analyze_subject("free urgent winner")
        assert factors[0].severity == "high"

    def test_punctuation_runs(self):
        factors = analyze_subject("really?? yes!! ok!")
        assert _names(factors) == ["Excessive Punctuation"]
        assert factors[0].score == 10


class TestAnalyzeContent:
    def test_short_content(self):
        assert _names(analyze_content("<p>Hi</p>")) == ["Very Short Content"]

    def test_text_part_preferred(self):
        assert analyze_content("<p>Hi</p>", LONG_TEXT) == []

    def test_excessive_links(self):
        html = '<a href="https://a.example">a</a>' * 5
        factors = {f.name: f for f in analyze_content(html, LONG_TEXT[:60])}

        assert "Excessive Links" in factors
        assert factors["Excessive Links"].score == 15

    def test_link_score_is_capped(self):
        html = '<a href="https://a.example">a</a>' * 20
        factors = {f.name: f for f in analyze_content(html)}

        assert factors["Excessive Links"].score == 20

    def test_image_heavy(self):
        factors = analyze_content('<img src="banner.png"><p>Sale</p>')
        assert "Image-Heavy Content" in _names(factors)


class TestAnalyzeSender:
    def test_no_reply(self):
        assert _names(analyze_sender("no-reply@acme.com")) == ["No-Reply Sender"]

    def test_no_reply_only_checked_in_local_part(self):
        assert analyze_sender("support@noreply-mail.example.com") == []

    def test_repeated_spaces_in_name(self):
        assert _names(analyze_sender("support@acme.com", "Totally  Unrelated")) == [
            "Sender Mismatch"
        ]

    def test_matching_name(self):
        assert analyze_sender("hello@acme.com", "Acme Team") == []

    def test_mismatched_name(self):
        assert _names(analyze_sender("news@bulkmail.net", "Acme Corp")) == ["Sender Mismatch"]

    def test_short_name_ignored(self):
        assert analyze_sender("news@bulkmail.net", "Bob") == []


class TestAnalyzeSpamScore:
    def test_promotional_subject_is_likely_spam(self):
        result = analyze_spam_score(
            EmailContent(subject="FREE FREE ACT NOW!!!", html_body="", from_email="news@acme.com")
        )

        # capitalization 18 + keywords 30 + punctuation 5 + short content 10
        assert result.score == pytest.approx(63)
        assert result.is_likely_spam
        assert result.recommendations == [
            "Use normal capitalization in subject lines",
            "Avoid using promotional keywords in subject lines",
            "Avoid repeated exclamation and question marks",
            "Provide more substantial email content",
        ]

    def test_clean_message(self):
        result = analyze_spam_score(
            EmailContent(
                subject="Your monthly summary",
                html_body=f"<p>{LONG_TEXT}</p>",
                from_email="hello@acme.com",
                from_name="Acme",
            )
        )

        assert result.score == 0
        assert result.factors == []
        assert not result.is_likely_spam

    def test_score_is_capped(self):
        result = analyze_spam_score(
            EmailContent(
                subject="FREE URGENT WINNER GUARANTEED ACT NOW LIMITED TIME!!! ??",
                html_body='<img src="x.png">' + '<a href="https://x.example">x</a>' * 30,
                from_email="noreply@bulkmail.net",
                from_name="Mega Deals",
            )
        )

        assert result.score == 100
        assert result.is_likely_spam

    def test_keywords_alone_stay_below_threshold(self):
        result = analyze_spam_score(
            EmailContent(subject="free winner", html_body=f"<p>{LONG_TEXT}</p>", from_email="a@acme.com")
        )
        assert result.score == 30
        assert not result.is_likely_spam


class TestRecommendations:
    def test_one_per_category(self):
        factors = analyze_subject("FREE!!") + analyze_subject("URGENT??")
        recommendations = generate_spam_recommendations(factors)

        assert len(recommendations) == len(set(recommendations))
