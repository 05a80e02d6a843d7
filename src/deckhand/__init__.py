"""Deckhand: action routing and layout sync for button decks"""

__version__ = "0.1.0"
