"""
Configuration management for Modshield.

- **app_configuration.py**: YAML configuration loader for global settings.
  Falls back to an empty mapping on a missing file.

- **moderation_settings.py**: Validates the ``moderation`` section of the YAML
  file into immutable :class:`ModerationSettings`, including the four
  punishment ladders. Malformed values raise ``ConfigurationError``.
"""
