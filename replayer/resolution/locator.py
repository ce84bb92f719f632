"""Element resolution: from a selector model to one live element.

Resolution runs in rounds. Each round walks the ordered candidates and
applies the confidence/count acceptance rule:

- no matches: next candidate
- one match at confidence >= 80: accept
- several matches at confidence >= 80: reject, the selector is untrustworthy
- any matches below 80: accept, disambiguating when there are several

Rounds repeat with growing delays and a network-idle wait in between. When
every round misses, the content signature and finally its list position are
tried. A genuinely absent element resolves to None; only driver faults
(page or browser gone) raise.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..execution.clock import Clock, SystemClock
from ..execution.errors import BrowserFatalError, is_fatal
from ..execution.retry import RetryPolicy
from ..recording.models import ContentSignature, SelectorCandidate, SelectorModel
from .disambiguation import DisambiguationHints, Disambiguator
from .strategies import build_locator, order_candidates, quote
from .visibility import RecoveryResult, VisibilityRecovery

logger = structlog.get_logger()

HIGH_CONFIDENCE = 80

NETWORK_IDLE_TIMEOUT_MS = 3000
ATTACH_TIMEOUT_MS = 5000


@dataclass
class ResolvedElement:
    """A live element reference and how it was found."""

    locator: Locator
    via: str  # Candidate strategy, or content-signature:<field> / list-position
    candidate: Optional[SelectorCandidate] = None
    attempts: int = 1
    visible: bool = True
    recovery: Optional[RecoveryResult] = None


def default_resolution_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=4, delays_ms=(1000, 2000, 3000), name="resolve")


class ElementLocator:
    """Resolves selector models to live elements.

    Example:
        locator = ElementLocator(clock)
        resolved = await locator.resolve(page, action.selector, action.content_signature)
        if resolved is None:
            raise ElementNotFoundError(action.selector.describe())
    """

    def __init__(
        self,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        disambiguator: Disambiguator | None = None,
        visibility: VisibilityRecovery | None = None,
    ):
        self.clock = clock or SystemClock()
        self.retry_policy = retry_policy or default_resolution_policy()
        self.disambiguator = disambiguator or Disambiguator()
        self.visibility = visibility or VisibilityRecovery(self.clock)
        self.log = logger.bind(component="element_locator")

    async def resolve(
        self,
        page: Page,
        model: SelectorModel,
        signature: ContentSignature | None = None,
        ensure_visible: bool = True,
    ) -> Optional[ResolvedElement]:
        """Resolve a selector model to at most one live element.

        Args:
            page: Page to search
            model: Selector candidates for the element
            signature: Optional content-based fallback description
            ensure_visible: Run visibility recovery when the element is hidden

        Returns:
            The resolved element, or None when nothing matched

        Raises:
            BrowserFatalError: If the page or browser is gone
        """
        ordered = order_candidates(model.candidates)
        resolved: Optional[ResolvedElement] = None

        if ordered:
            async def attempt(number: int) -> Optional[ResolvedElement]:
                found = await self._resolution_pass(page, ordered, model)
                if found is not None:
                    found.attempts = number + 1
                return found

            async def wait_for_idle(number: int) -> None:
                await self._wait_for_network_idle(page)

            resolved = await self.retry_policy.run(attempt, self.clock, between=wait_for_idle)

        if resolved is None and signature is not None:
            resolved = await self._resolve_by_signature(page, signature)

        if resolved is None:
            self.log.info("Element not resolved", selector=model.describe(), candidates=len(ordered))
            return None

        self.log.debug("Element resolved", via=resolved.via, attempts=resolved.attempts)
        if ensure_visible:
            await self._ensure_visible(page, resolved)
        return resolved

    async def _resolution_pass(
        self,
        page: Page,
        ordered: list[SelectorCandidate],
        model: SelectorModel,
    ) -> Optional[ResolvedElement]:
        for candidate in ordered:
            locator = build_locator(page, candidate)
            count = await self._count(locator, candidate)
            if count == 0:
                continue

            if candidate.confidence >= HIGH_CONFIDENCE:
                if count > 1:
                    self.log.debug(
                        "Ambiguous high-confidence selector rejected",
                        strategy=candidate.strategy.value,
                        value=candidate.text_value,
                        matches=count,
                    )
                    continue
                element = locator.first
            elif count > 1:
                element = await self.disambiguator.narrow(page, locator, count, self._hints(candidate, model))
            else:
                element = locator.first

            if not await self._attached(element):
                continue
            return ResolvedElement(locator=element, via=candidate.strategy.value, candidate=candidate)

        return None

    def _hints(self, candidate: SelectorCandidate, model: SelectorModel) -> DisambiguationHints:
        return DisambiguationHints(
            selector_text=candidate.text_value,
            text_contains=candidate.text_contains or model.text_contains,
            position=model.position,
            validated_unique=candidate.validated_unique or model.validated_unique,
        )

    async def _count(self, locator: Locator, candidate: SelectorCandidate) -> int:
        try:
            return await locator.count()
        except PlaywrightError as e:
            self._raise_if_fatal(e)
            # Malformed selectors (bad CSS, bad XPath) simply match nothing
            self.log.debug("Selector query failed", strategy=candidate.strategy.value, error=str(e))
            return 0

    async def _attached(self, element: Locator) -> bool:
        try:
            await element.wait_for(state="attached", timeout=ATTACH_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            self._raise_if_fatal(e)
            return False
        return True

    async def _resolve_by_signature(self, page: Page, signature: ContentSignature) -> Optional[ResolvedElement]:
        element_type = signature.element_type
        fingerprint = signature.fingerprint
        queries = []
        # Text queries need a tag: a bare :has-text() also matches every ancestor
        if fingerprint.heading and element_type:
            queries.append(("heading", f'{element_type}:has-text("{quote(fingerprint.heading)}")'))
        if fingerprint.link_href:
            queries.append(("link-href", f'a[href*="{quote(fingerprint.link_href)}"]'))
        if fingerprint.image_src:
            queries.append(("image-src", f'img[src*="{quote(fingerprint.image_src)}"]'))
        if fingerprint.price and element_type:
            queries.append(("price", f'{element_type}:has-text("{quote(fingerprint.price)}")'))
        if signature.fallback_position is not None and signature.list_container:
            queries.append((
                "list-position",
                f"{signature.list_container} > {element_type or ''}:nth-child({signature.fallback_position + 1})",
            ))

        for field_name, selector in queries:
            locator = page.locator(selector)
            try:
                count = await locator.count()
            except PlaywrightError as e:
                self._raise_if_fatal(e)
                continue
            if count > 0:
                self.log.info("Resolved by content signature", field=field_name, matches=count)
                via = "list-position" if field_name == "list-position" else f"content-signature:{field_name}"
                return ResolvedElement(locator=locator.first, via=via)
        return None

    async def _ensure_visible(self, page: Page, resolved: ResolvedElement) -> None:
        try:
            visible = await resolved.locator.is_visible()
        except PlaywrightError as e:
            self._raise_if_fatal(e)
            visible = False
        if visible:
            return

        self.log.info("Resolved element is hidden, attempting recovery", via=resolved.via)
        resolved.recovery = await self.visibility.recover(page, resolved.locator)
        resolved.visible = resolved.recovery.success

    async def _wait_for_network_idle(self, page: Page) -> None:
        try:
            await page.wait_for_load_state("networkidle", timeout=NETWORK_IDLE_TIMEOUT_MS)
        except PlaywrightError as e:
            self._raise_if_fatal(e)

    def _raise_if_fatal(self, error: PlaywrightError) -> None:
        if is_fatal(error):
            raise BrowserFatalError(str(error)) from error
