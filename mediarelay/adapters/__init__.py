"""Upstream adapters: one class per upstream surface."""

from .base import BaseAdapter
from .cobalt import CobaltAdapter
from .instagram_graphql import InstagramGraphQLAdapter
from .instagram_html import InstagramProfileHTMLAdapter
from .instagram_mobile import InstagramMobileAdapter, InstagramProfileAPIAdapter

__all__ = [
    "BaseAdapter",
    "CobaltAdapter",
    "InstagramGraphQLAdapter",
    "InstagramMobileAdapter",
    "InstagramProfileAPIAdapter",
    "InstagramProfileHTMLAdapter",
]
