"""
Priority-ordered rule evaluation.

Rules run in a fixed order and the first match wins:

1. mass mention
2. disallowed link
3. abusive language
4. spam rate

The cheap, unambiguous checks come first; the spam tracker is only consulted
(and only records the message) when nothing else matched.
"""

from __future__ import annotations

from typing import Optional

from modshield.configuration.moderation_settings import ModerationSettings
from modshield.datatypes.moderation_datatypes import (
    MemberJoined,
    MessageReceived,
    Verdict,
    ViolationCategory,
)
from modshield.moderation.lexicon import LexiconMatcher
from modshield.moderation.link_extractor import LinkExtractor
from modshield.moderation.spam_tracker import SpamRateTracker


class ViolationClassifier:
    """Turns one inbound event into at most one :class:`Verdict`."""

    def __init__(
        self,
        settings: ModerationSettings,
        lexicon: LexiconMatcher,
        link_extractor: LinkExtractor,
        spam_tracker: SpamRateTracker,
    ) -> None:
        self.settings = settings
        self.lexicon = lexicon
        self.link_extractor = link_extractor
        self.spam_tracker = spam_tracker

    def classify(self, event: MessageReceived, now_ms: float) -> Optional[Verdict]:
        return (
            self.check_mass_mention(event)
            or self.check_links(event)
            or self.check_abusive_language(event)
            or self.check_spam(event, now_ms)
        )

    # ------------------------------------------------------------------
    # Individual rules
    # ------------------------------------------------------------------

    def check_mass_mention(self, event: MessageReceived) -> Optional[Verdict]:
        mention_count = len(set(event.mentioned_user_ids))
        limit = self.settings.mention_limit
        if mention_count > limit:
            return Verdict(
                category=ViolationCategory.MASS_MENTION,
                detail=f"Mentioned {mention_count} users (max {limit} allowed)",
            )
        return None

    def check_links(self, event: MessageReceived) -> Optional[Verdict]:
        links = self.link_extractor.extract_disallowed_links(event.content)
        if links:
            return Verdict(
                category=ViolationCategory.DISALLOWED_LINK,
                detail=f"Sent {len(links)} links: {', '.join(links)}",
                links=tuple(links),
            )
        return None

    def check_abusive_language(self, event: MessageReceived) -> Optional[Verdict]:
        if self.lexicon.contains_disallowed_term(event.content):
            return Verdict(category=ViolationCategory.ABUSIVE_LANGUAGE, detail="Matched abusive words dataset")
        return None

    def check_spam(self, event: MessageReceived, now_ms: float) -> Optional[Verdict]:
        check = self.spam_tracker.record_and_check(event.user_id, now_ms)
        if not check.is_spam:
            return None
        seconds = self.spam_tracker.window_ms / 1000
        return Verdict(
            category=ViolationCategory.SPAM,
            detail=f"{check.count_in_window} messages in {seconds:g}s",
            explicit_count=check.trip_count,
        )

    # ------------------------------------------------------------------
    # Member joins
    # ------------------------------------------------------------------

    def classify_username(self, event: MemberJoined) -> bool:
        """Return True if the joining member's username is disallowed and screening is on."""
        if not self.settings.username_check.enabled:
            return False
        return self.lexicon.username_is_disallowed(event.username)
