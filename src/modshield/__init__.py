"""
Modshield - Rule-Based Discord Moderation Bot

Modshield inspects inbound Discord events, classifies them against a fixed set
of moderation rules, and escalates repeat offenders through a per-category
punishment ladder backed by durable violation counters.

Core Components:

- **Classification**: Lexicon matching, link filtering, mention limits, and a
  sliding-window spam detector, evaluated in a fixed priority order
- **Escalation**: Per-user, per-category counters in SQLite with atomic
  increments, mapped onto warn → timed mute → ban ladders
- **Discord Shell**: Thin py-cord cogs that convert messages and member joins
  into engine events, plus an ``/unban`` command with a fresh-start reset

Usage:
    from modshield.main import main
    main()  # Starts the bot
"""
