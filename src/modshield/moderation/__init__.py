"""
Moderation core for Modshield.

- **lexicon.py**: Case-insensitive substring matching against the word list.
- **link_extractor.py**: URL extraction with a domain allow-list.
- **spam_tracker.py**: Per-user sliding message-rate windows.
- **classifier.py**: Priority-ordered rule evaluation producing a Verdict.
- **escalation_store.py**: Durable per-(user, category) violation counters.
- **escalator.py**: Punishment ladders and their side effects.
- **moderation_engine.py**: Event dispatch, per-user serialisation, unban.
"""
