"""State layer.

Every piece of request, indicator, buffer and UI state the engine keeps
lives in a :class:`~pynai.state.store.Store` owned by one manager; the
:class:`~pynai.state.facade.State` facade composes them.
"""
