"""Screen objects for the preservation frontend."""

from preservation_e2e.pages.archival_group import ArchivalGroupScreen
from preservation_e2e.pages.base import (
    LocatorDescriptor,
    Screen,
    by_css,
    by_label,
    by_placeholder,
    by_role,
    by_text,
    by_title,
)
from preservation_e2e.pages.container import ContainerScreen
from preservation_e2e.pages.deposit import DepositScreen
from preservation_e2e.pages.iiif import IIIFScreen
from preservation_e2e.pages.login import LoginScreen
from preservation_e2e.pages.navigation import NavigationScreen
from preservation_e2e.pages.search import SearchScreen

__all__ = [
    "ArchivalGroupScreen",
    "ContainerScreen",
    "DepositScreen",
    "IIIFScreen",
    "LocatorDescriptor",
    "LoginScreen",
    "NavigationScreen",
    "Screen",
    "SearchScreen",
    "by_css",
    "by_label",
    "by_placeholder",
    "by_role",
    "by_text",
    "by_title",
]
