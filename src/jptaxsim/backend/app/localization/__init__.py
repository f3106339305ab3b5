"""Japanese and English message catalogues.

Trace titles, formula descriptions, term names and validation messages are
looked up here; Japanese is the base catalogue every other locale falls back to.
"""

from .catalog import Translator, get_translator, load_translations, normalise_locale

__all__ = ["Translator", "get_translator", "load_translations", "normalise_locale"]
