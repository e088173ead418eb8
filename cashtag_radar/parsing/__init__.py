"""Mention parsing and symbol resolution."""

from cashtag_radar.parsing.mention_parser import MatchMode, MentionParser
from cashtag_radar.parsing.symbol_resolver import SymbolResolver

__all__ = ["MatchMode", "MentionParser", "SymbolResolver"]
