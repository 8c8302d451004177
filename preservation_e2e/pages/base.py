"""
Base classes for screen objects.

Locators are declared as class attributes with the by_* helpers and resolve
against the screen's page on every attribute access, so a screen never holds
a stale Locator after navigation or reload.
"""

from typing import Dict, Optional

from playwright.sync_api import Locator, Page, expect

from preservation_e2e.logging_config import get_logger

logger = get_logger(__name__)


class LocatorDescriptor:
    """Declarative locator resolved lazily against ``screen.page``."""

    KINDS = ("role", "label", "text", "css", "placeholder", "title")

    def __init__(
        self,
        kind: str,
        value: str,
        name: Optional[str] = None,
        exact: Optional[bool] = None,
        parent: Optional["LocatorDescriptor"] = None,
        index: Optional[int] = None,
        has_text: Optional[str] = None,
    ):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown locator kind: {kind}")
        self.kind = kind
        self.value = value
        self.name = name
        self.exact = exact
        self.parent = parent
        self.index = index
        self.has_text = has_text
        self.attr_name: Optional[str] = None

    def __set_name__(self, owner, attr_name):
        self.attr_name = attr_name

    def __get__(self, screen, owner=None):
        if screen is None:
            return self
        return self.resolve(screen.page)

    def _copy(self, **changes) -> "LocatorDescriptor":
        fields = dict(
            kind=self.kind, value=self.value, name=self.name, exact=self.exact,
            parent=self.parent, index=self.index, has_text=self.has_text,
        )
        fields.update(changes)
        return LocatorDescriptor(**fields)

    def within(self, parent: "LocatorDescriptor") -> "LocatorDescriptor":
        return self._copy(parent=parent)

    def nth(self, index: int) -> "LocatorDescriptor":
        return self._copy(index=index)

    def filter(self, has_text: str) -> "LocatorDescriptor":
        return self._copy(has_text=has_text)

    def resolve(self, scope) -> Locator:
        """Build the Locator under ``scope`` (a Page or a Locator)."""
        if self.parent is not None:
            scope = self.parent.resolve(scope)

        if self.kind == "role":
            kwargs = {}
            if self.name is not None:
                kwargs["name"] = self.name
            if self.exact is not None:
                kwargs["exact"] = self.exact
            locator = scope.get_by_role(self.value, **kwargs)
        elif self.kind == "css":
            locator = scope.locator(self.value)
        else:
            method = getattr(scope, f"get_by_{self.kind}")
            if self.exact is not None:
                locator = method(self.value, exact=self.exact)
            else:
                locator = method(self.value)

        if self.has_text is not None:
            locator = locator.filter(has_text=self.has_text)
        if self.index is not None:
            locator = locator.nth(self.index)
        return locator

    def describe(self) -> str:
        text = f"{self.kind}={self.value!r}"
        if self.name is not None:
            text += f"[name={self.name!r}]"
        if self.has_text is not None:
            text += f"[has_text={self.has_text!r}]"
        if self.index is not None:
            text += f"[{self.index}]"
        if self.parent is not None:
            text = f"{self.parent.describe()} >> {text}"
        return text

    def __repr__(self):
        return f"<LocatorDescriptor {self.attr_name or ''} {self.describe()}>"


def by_role(role: str, name: Optional[str] = None, exact: Optional[bool] = None) -> LocatorDescriptor:
    return LocatorDescriptor("role", role, name=name, exact=exact)


def by_label(text: str, exact: Optional[bool] = None) -> LocatorDescriptor:
    return LocatorDescriptor("label", text, exact=exact)


def by_text(text: str, exact: Optional[bool] = None) -> LocatorDescriptor:
    return LocatorDescriptor("text", text, exact=exact)


def by_css(selector: str) -> LocatorDescriptor:
    return LocatorDescriptor("css", selector)


def by_placeholder(text: str, exact: Optional[bool] = None) -> LocatorDescriptor:
    return LocatorDescriptor("placeholder", text, exact=exact)


def by_title(text: str, exact: Optional[bool] = None) -> LocatorDescriptor:
    return LocatorDescriptor("title", text, exact=exact)


class Screen:
    """A UI screen or region bound to one Playwright page."""

    path: Optional[str] = None

    def __init__(self, page: Page):
        self.page = page

    @classmethod
    def locators(cls) -> Dict[str, LocatorDescriptor]:
        found: Dict[str, LocatorDescriptor] = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                if isinstance(value, LocatorDescriptor):
                    found[attr] = value
        return found

    def find(self, attr: str, within: Optional[Locator] = None) -> Locator:
        """Resolve a declared locator, optionally inside another Locator."""
        descriptor = self.locators()[attr]
        return descriptor.resolve(within if within is not None else self.page)

    def goto(self, path: Optional[str] = None) -> None:
        target = path or self.path
        if target is None:
            raise ValueError(f"{type(self).__name__} has no path to navigate to")
        logger.debug(f"Navigating to {target}")
        self.page.goto(target)

    def expect_visible(self, locator: Locator, message: str) -> None:
        expect(locator, message).to_be_visible()

    def expect_hidden(self, locator: Locator, message: str) -> None:
        expect(locator, message).to_be_hidden()

    def expect_alert(self, text: str, message: Optional[str] = None) -> None:
        expect(self.page.get_by_role("alert"), message or f"Alert contains {text!r}").to_contain_text(text)
