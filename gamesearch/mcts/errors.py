"""
Errors raised by the search.
"""


class SearchError(Exception):
    """Base class of every search error."""


class TerminalStateError(SearchError):
    """The root state is terminal or has no legal move, so no move can be recommended."""


class PredictorFailure(SearchError):
    """The predictor raised, returned nothing, or returned a malformed evaluation."""


class BoardStateFailure(SearchError):
    """The board state raised while generating or applying moves inside the tree."""


class DoubleExpansionError(SearchError):
    """A node was expanded twice. This is a programming error, never a runtime condition."""
