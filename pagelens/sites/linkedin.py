"""LinkedIn extraction — member profiles and company pages.

Both extractors pause between sections with human pacing and scroll each
section into view before reading it, because LinkedIn renders sections
lazily as they approach the viewport.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from pagelens.browser.dom import Document, Node
from pagelens.config.settings import CompanyParams, PacingConfig, PollingConfig, ProfileParams
from pagelens.pipeline.extraction import isoformat_utc, utc_now
from pagelens.pipeline.manager import guard_extraction
from pagelens.pipeline.pacing import human_pause
from pagelens.pipeline.readiness import wait_until_ready
from pagelens.pipeline.resolver import exists, resolve, resolve_all, resolve_text

logger = logging.getLogger(__name__)

ITEM_SELECTOR = ".artdeco-list__item"
ITEM_TITLE_SELECTOR = '.mr1.hoverable-link-text.t-bold span[aria-hidden="true"]'
ITEM_SUBTITLE_SELECTOR = '.t-14.t-normal span[aria-hidden="true"]'
ITEM_CAPTION_SELECTOR = ".pvs-entity__caption-wrapper"
ITEM_LOCATION_SELECTOR = '.t-14.t-normal.t-black--light span[aria-hidden="true"]'
ITEM_ENDORSEMENT_SELECTOR = '.t-14.t-normal.t-black span[aria-hidden="true"]'
ITEM_GRADE_SELECTOR = '.inline-show-more-text--is-collapsed span[aria-hidden="true"]'

PROFILE_READY_SELECTORS = (".text-heading-xlarge", ".pv-text-details__left-panel", ".profile-name", "h1")
PROFILE_NAME_SELECTORS = (
    ".text-heading-xlarge",
    ".pv-text-details__left-panel h1",
    ".profile-name",
    "h1.text-heading-xlarge",
)
PROFILE_HEADLINE_SELECTORS = (
    ".text-body-medium.break-words",
    ".pv-text-details__left-panel .text-body-medium",
    ".pv-top-card--list-bullet .text-body-medium",
)
PROFILE_LOCATION_SELECTOR = (
    ".text-body-small.inline.t-black--light.break-words, "
    ".pv-text-details__left-panel .text-body-small, "
    ".pv-top-card--list-bullet .text-body-small"
)
PROFILE_CONNECTION_SELECTORS = ('.text-body-small a[href*="connections"]', ".pv-top-card--list-bullet li a")
EXPERIENCE_DESCRIPTION_SELECTORS = (
    '.inline-show-more-text--is-collapsed span[aria-hidden="true"]',
    '.inline-show-more-text span[aria-hidden="true"]',
    '.pvs-entity__description span[aria-hidden="true"]',
)

# Experience location: a geographic marker and no duration words
LOCATION_MARKERS = (",", "Remote", "On-site", "Hybrid")
DURATION_WORDS = ("Present", "mos", "yr")
DESCRIPTION_MIN_CHARS = 50
DESCRIPTION_MAX_CHARS = 500

COMPANY_READY_SELECTORS = (".org-top-card-summary__title", 'h1[data-testid="company-name"]', ".company-name", "h1")
COMPANY_NAME_SELECTORS = (
    ".org-top-card-summary__title",
    'h1[data-testid="company-name"]',
    ".company-name",
    "h1.text-heading-xlarge",
    ".org-top-card-primary-content__title h1",
    '[data-test="company-name"]',
)
COMPANY_INDUSTRY_SELECTORS = (
    ".org-top-card-summary__industry",
    '[data-testid="company-industry"]',
    ".industry",
    ".org-top-card-summary-info-list__info-item:first-child",
)
COMPANY_INFO_SELECTORS = (".org-top-card-summary-info-list__info-item", ".org-top-card-summary__info-item")
COMPANY_SIZE_SELECTORS = (
    ".org-top-card-summary__info-item",
    '[data-testid="company-size"]',
    ".company-size",
    'a[href*="search/results/people"]',
)
COMPANY_LOCATION_SELECTORS = (
    ".org-top-card-summary-info-list__info-item",
    ".org-about-company-module__company-details .text-md",
    '[data-testid="company-locations"]',
    ".company-location",
)
HEADQUARTERS_EXCLUSIONS = ("http", "@", "employee", "followers", "software")
VERIFIED_SELECTORS = (
    'svg[data-test-icon="verified-medium"]',
    '[data-testid="verified-badge"]',
    ".verified-badge",
    ".org-top-card-summary__badge svg",
    'svg[aria-label="Verified"]',
)
UPDATES_SECTION_SELECTORS = (".org-company-posts", ".company-updates", ".feed-container")
UPDATE_SELECTORS = (
    ".org-company-posts .feed-shared-update-v2",
    ".company-updates .update-item",
    '[data-testid="company-update"]',
    ".feed-shared-update-v2",
    'article[data-urn*="activity"]',
)
UPDATE_CONTENT_SELECTORS = (
    ".feed-shared-text",
    ".update-content",
    ".feed-shared-inline-show-more-text",
    ".update-components-text",
    ".feed-shared-update-v2__description",
)
UPDATE_TIME_SELECTORS = (
    "time",
    ".update-time",
    ".feed-shared-actor__sub-description time",
    ".update-components-actor__sub-description",
    '[data-testid="timestamp"]',
)
LIKE_SELECTORS = (
    ".social-details-social-counts__reactions-count",
    ".social-counts-reactions__count-value",
    ".like-count",
    ".social-detail-social-counts",
)
COMMENT_COUNT_SELECTORS = (
    ".social-details-social-counts__comments button",
    ".social-counts-comments__count-value",
    ".comment-count",
)
REPOST_SELECTORS = ('[aria-label*="reposts"]', ".social-counts-reposts__count-value", ".repost-count")
UPDATE_TYPE_MARKERS = (
    (".update-components-article", "article"),
    (".update-components-video, .video-s-loader", "video"),
    (".update-components-header", "repost"),
    (".update-components-image", "image_post"),
)
AUTHOR_SELECTORS = (
    '.update-components-actor__title span[dir="ltr"] span[aria-hidden="true"]',
    ".update-components-actor__title span span",
    ".update-components-actor__title",
    ".update-components-header a",
    ".feed-shared-actor__title",
)
AUTHOR_CLEAN_SELECTOR = '.update-components-actor__title span[aria-hidden="true"] span'
AUTHOR_MAX_CHARS = 50
UPDATE_MEDIA_SELECTOR = ".update-components-image img, .feed-shared-image img"
STATIC_ASSET_MARKERS = ("static.licdn.com/aero-v1/sc/h/", "static.licdn.com/sc/h/")
CONTENT_MEDIA_HOST = "media.licdn.com"
EMPLOYEE_SECTION_SELECTORS = (".org-people", ".company-employees")
EMPLOYEE_CARD_SELECTOR = ".org-people-profile-card, .employee-card"
EMPLOYEE_NAME_SELECTORS = (
    ".org-people-profile-card__profile-title",
    ".employee-name",
    ".artdeco-entity-lockup__title",
)
EMPLOYEE_TITLE_SELECTORS = (
    ".org-people-profile-card__profile-info",
    ".employee-title",
    ".artdeco-entity-lockup__subtitle",
)

_DIGITS_RE = re.compile(r"(\d+(?:,\d+)*)")
_CONNECTIONS_RE = re.compile(r"(\d+[+,\d]*)")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str | None) -> str | None:
    """Collapse whitespace and undo LinkedIn's ``hashtag#`` rendering."""
    if not text:
        return None
    cleaned = _WHITESPACE_RE.sub(" ", text).strip()
    return cleaned.replace("hashtag#", "#") or None


async def _node_text(node: Node | None) -> str:
    return (await node.text()).strip() if node else ""


async def _section(document: Document, anchor_id: str, pacing: PacingConfig | None) -> Node | None:
    """Scroll the section anchored at ``#anchor_id`` into view and return it."""
    anchor = await document.query(f"#{anchor_id}")
    if anchor is None:
        logger.info("Profile section not found", extra={"section": anchor_id})
        return None
    await anchor.scroll_into_view()
    await human_pause(1000, 1500, pacing)
    return await anchor.closest("section")


# --- Profile ---


async def _basic_info(document: Document) -> dict[str, Any]:
    profile: dict[str, Any] = {}

    name = await resolve_text(PROFILE_NAME_SELECTORS, document)
    if name:
        profile["name"] = name

    headline = await resolve_text(PROFILE_HEADLINE_SELECTORS, document)
    if headline:
        profile["headline"] = headline

    for node in await document.query_all(PROFILE_LOCATION_SELECTOR):
        text = (await node.text()).strip()
        if text and "connections" not in text and "followers" not in text:
            profile["location"] = text
            break

    connections = await resolve(PROFILE_CONNECTION_SELECTORS, document)
    if connections is not None:
        match = _CONNECTIONS_RE.search(await connections.text())
        profile["connections"] = match.group(1) if match else None

    return profile


def experience_location(candidates: list[str]) -> str:
    for text in candidates:
        if not any(marker in text for marker in LOCATION_MARKERS):
            continue
        if any(word in text for word in DURATION_WORDS):
            continue
        return text
    return ""


def trim_description(text: str) -> str:
    description = re.sub(r"\s*…\s*$", "", text).strip()
    if len(description) > DESCRIPTION_MAX_CHARS:
        description = description[:DESCRIPTION_MAX_CHARS]
        last_space = description.rfind(" ")
        if last_space > 400:
            description = description[:last_space] + "..."
    return description


async def _experience_description(item: Node) -> str:
    for selector in EXPERIENCE_DESCRIPTION_SELECTORS:
        text = await _node_text(await item.query(selector))
        if (
            len(text) > DESCRIPTION_MIN_CHARS
            and "Show credential" not in text
            and "skills" not in text
        ):
            return trim_description(text)
    return ""


async def _experience_entry(item: Node) -> dict[str, Any] | None:
    title = await _node_text(await item.query(ITEM_TITLE_SELECTOR))
    subtitle = await _node_text(await item.query(ITEM_SUBTITLE_SELECTOR))
    company, _, employment_type = subtitle.partition(" · ")
    if not title and not company:
        return None

    locations = [await _node_text(span) for span in await item.query_all(ITEM_LOCATION_SELECTOR)]
    entry: dict[str, Any] = {
        "title": title,
        "company": company,
        "employmentType": employment_type.split(" · ")[0],
        "duration": await _node_text(await item.query(ITEM_CAPTION_SELECTOR)),
        "location": experience_location([text for text in locations if text]),
        "description": await _experience_description(item),
    }
    for optional in ("location", "description", "employmentType"):
        if not entry[optional]:
            del entry[optional]
    return entry


async def _experience(document: Document, max_entries: int, pacing: PacingConfig | None) -> list[dict[str, Any]]:
    section = await _section(document, "experience", pacing)
    if section is None:
        return []
    items = await section.query_all(ITEM_SELECTOR)
    entries = []
    for item in items[: min(max_entries, len(items))]:
        entry = await _experience_entry(item)
        if entry is not None:
            entries.append(entry)
    return entries


async def _education(document: Document, pacing: PacingConfig | None) -> list[dict[str, Any]]:
    section = await _section(document, "education", pacing)
    if section is None:
        return []
    entries = []
    for item in await section.query_all(ITEM_SELECTOR):
        school = await _node_text(await item.query(ITEM_TITLE_SELECTOR))
        degree = await _node_text(await item.query(ITEM_SUBTITLE_SELECTOR))
        if not school and not degree:
            continue
        entry = {"school": school, "degree": degree}
        year = await _node_text(await item.query(ITEM_CAPTION_SELECTOR))
        if year:
            entry["year"] = year
        grade = await _node_text(await item.query(ITEM_GRADE_SELECTOR))
        if grade:
            entry["grade"] = grade
        entries.append(entry)
    return entries


async def _skills(document: Document, pacing: PacingConfig | None) -> list[dict[str, Any]]:
    section = await _section(document, "skills", pacing)
    if section is None:
        return []
    entries = []
    for item in await section.query_all(ITEM_SELECTOR):
        skill = await _node_text(await item.query(ITEM_TITLE_SELECTOR))
        if not skill:
            continue
        context = await _node_text(await item.query(ITEM_ENDORSEMENT_SELECTOR))
        match = re.search(r"\d+", context)
        entry: dict[str, Any] = {"skill": skill}
        if match and int(match.group(0)):
            entry["endorsements"] = int(match.group(0))
        if context:
            entry["context"] = context
        entries.append(entry)
    return entries


def profile_id(url: str) -> str | None:
    match = re.search(r"/in/([^/?]+)", url)
    return match.group(1) if match else None


async def extract_profile_info(
    document: Document,
    params: ProfileParams | None = None,
    polling: PollingConfig | None = None,
    pacing: PacingConfig | None = None,
) -> dict[str, Any]:
    """Extract a member profile: basic info plus optional sections."""
    params = params or ProfileParams()
    polling = polling or PollingConfig()

    async def body() -> dict[str, Any]:
        await human_pause(1000, 2000, pacing)
        await wait_until_ready(
            lambda: exists(PROFILE_READY_SELECTORS, document),
            params.wait_for_load,
            poll_interval_ms=polling.poll_interval_ms,
            stabilization_ms=polling.stabilization_ms,
        )

        profile = await _basic_info(document)
        await human_pause(500, 1000, pacing)

        experience: list[dict[str, Any]] = []
        if params.include_experience:
            experience = await _experience(document, params.max_experience, pacing)
            await human_pause(800, 1500, pacing)

        education: list[dict[str, Any]] = []
        if params.include_education:
            education = await _education(document, pacing)
            await human_pause(500, 1000, pacing)

        skills: list[dict[str, Any]] = []
        if params.include_skills:
            skills = await _skills(document, pacing)
            await human_pause(500, 1000, pacing)

        logger.info(
            "Profile extracted",
            extra={"experience_count": len(experience), "education_count": len(education)},
        )
        return {
            "profile": profile,
            "experience": experience,
            "education": education,
            "skills": skills,
            "metadata": {
                "url": document.url,
                "profileId": profile_id(document.url),
                "extractedSections": {
                    "experience": params.include_experience,
                    "education": params.include_education,
                    "skills": params.include_skills,
                },
            },
            "extractedAt": isoformat_utc(utc_now()),
        }

    return await guard_extraction(document, "profile", body)


# --- Company ---


async def _first_matching(
    document: Document, selectors: tuple[str, ...], keep: Callable[[str], bool]
) -> str | None:
    for node in await resolve_all(selectors, document):
        text = clean_text(await node.text())
        if text and keep(text):
            return text
    return None


def is_headquarters(text: str) -> bool:
    lowered = text.lower()
    return len(text) > 3 and not any(marker in lowered for marker in HEADQUARTERS_EXCLUSIONS)


def is_employee_count(text: str) -> bool:
    lowered = text.lower()
    return "employee" in lowered or "size" in lowered


async def _company(document: Document) -> dict[str, Any]:
    name = await resolve(COMPANY_NAME_SELECTORS, document)
    industry = await resolve(COMPANY_INDUSTRY_SELECTORS, document)
    return {
        "name": clean_text(await name.text()) if name else None,
        "industry": clean_text(await industry.text()) if industry else None,
        "employeeCount": await _first_matching(document, COMPANY_SIZE_SELECTORS, is_employee_count),
        "followers": await _first_matching(
            document, COMPANY_INFO_SELECTORS, lambda text: "followers" in text.lower()
        ),
        "headquarters": await _first_matching(document, COMPANY_LOCATION_SELECTORS, is_headquarters),
        "verified": await resolve(VERIFIED_SELECTORS, document, accept=None) is not None,
    }


def dedupe_author(text: str) -> str:
    """Undo doubled renderings such as ``AcmeAcme`` and strip trailing metadata."""
    cleaned = text
    words = text.split()
    if len(words) >= 2 and words[0] == words[1]:
        cleaned = " ".join(words[1:])
    half = len(text) // 2
    if half and text[:half] == text[half:]:
        cleaned = text[:half]
    cleaned = cleaned.split("•")[0].strip()
    cleaned = re.sub(r"following|influencer", "", cleaned, flags=re.I).strip()
    return cleaned[:AUTHOR_MAX_CHARS]


async def _author(update: Node) -> str | None:
    node = await resolve(AUTHOR_SELECTORS, update)
    text = clean_text(await node.text()) if node else None
    if not text:
        return None
    clean = clean_text(await _node_text(await update.query(AUTHOR_CLEAN_SELECTOR)))
    if clean:
        return clean[:AUTHOR_MAX_CHARS]
    return dedupe_author(text)


async def _engagement(update: Node) -> dict[str, str]:
    engagement = {"likes": "0", "comments": "0", "reposts": "0"}

    likes = await resolve(LIKE_SELECTORS, update)
    if likes is not None:
        engagement["likes"] = re.sub(r"[^\d,KM]", "", clean_text(await likes.text()) or "") or "0"

    comments = await resolve(COMMENT_COUNT_SELECTORS, update)
    if comments is not None:
        match = _DIGITS_RE.search(clean_text(await comments.text()) or "")
        engagement["comments"] = match.group(1) if match else "0"

    reposts = await resolve(REPOST_SELECTORS, update)
    if reposts is not None:
        text = clean_text(await reposts.text()) or await reposts.attribute("aria-label") or ""
        match = _DIGITS_RE.search(text)
        engagement["reposts"] = match.group(1) if match else "0"

    return engagement


async def _update_type(update: Node) -> str:
    for selector, kind in UPDATE_TYPE_MARKERS:
        if await update.query(selector) is not None:
            return kind
    return "post"


async def _media(update: Node) -> list[dict[str, str]]:
    media = []
    for image in await update.query_all(UPDATE_MEDIA_SELECTOR):
        src = await image.attribute("src") or ""
        if not src or CONTENT_MEDIA_HOST not in src:
            continue
        if any(marker in src for marker in STATIC_ASSET_MARKERS):
            continue
        media.append({"type": "image", "url": src, "alt": await image.attribute("alt") or ""})
    return media


async def _update(update: Node, include_media: bool) -> dict[str, Any] | None:
    content_node = await resolve(UPDATE_CONTENT_SELECTORS, update)
    content = clean_text(await content_node.text()) if content_node else None
    if not content:
        return None

    timestamp = None
    time_node = await resolve(UPDATE_TIME_SELECTORS, update)
    if time_node is not None:
        timestamp = await time_node.attribute("datetime") or clean_text(await time_node.text())

    return {
        "content": content[:500],
        "timestamp": timestamp,
        "engagement": await _engagement(update),
        "type": await _update_type(update),
        "author": await _author(update),
        "media": await _media(update) if include_media else [],
    }


async def _updates(document: Document, params: CompanyParams, pacing: PacingConfig | None) -> list[dict[str, Any]]:
    section = await resolve(UPDATES_SECTION_SELECTORS, document, accept=None)
    if section is not None:
        await section.scroll_into_view()
    await human_pause(1500, 2000, pacing)

    elements = await resolve_all(UPDATE_SELECTORS, document)
    updates = []
    for element in elements[: min(params.max_updates, len(elements))]:
        update = await _update(element, params.include_media)
        if update is not None:
            updates.append(update)
    return updates


async def _employees(document: Document, params: CompanyParams, pacing: PacingConfig | None) -> list[dict[str, Any]]:
    cards = await document.query_all(EMPLOYEE_CARD_SELECTOR)
    if params.respect_privacy:
        summary = await document.query(".org-people-bar-graph-element__category")
        return [
            {
                "totalEmployeesVisible": len(cards),
                "totalEmployeesText": await _node_text(summary) or "Not available",
                "note": "Limited data for privacy compliance",
            }
        ]

    section = await resolve(EMPLOYEE_SECTION_SELECTORS, document, accept=None)
    if section is None:
        return []
    await section.scroll_into_view()
    await human_pause(1000, 1500, pacing)

    employees = []
    for card in cards[: min(params.max_employees, len(cards))]:
        name = await resolve(EMPLOYEE_NAME_SELECTORS, card)
        if name is None:
            continue
        title = await resolve(EMPLOYEE_TITLE_SELECTORS, card)
        link = await card.query('a[href*="/in/"]')
        employees.append(
            {
                "name": clean_text(await name.text()),
                "title": clean_text(await title.text()) if title else None,
                "profileUrl": await link.attribute("href") if link else None,
                "connectionDegree": None,
            }
        )
    return employees


def company_id(url: str) -> str | None:
    match = re.search(r"/(?:company|showcase|school)/([^/?]+)", url)
    return match.group(1) if match else None


async def extract_company_info(
    document: Document,
    params: CompanyParams | None = None,
    polling: PollingConfig | None = None,
    pacing: PacingConfig | None = None,
) -> dict[str, Any]:
    """Extract a company page: top card, recent updates and employee view."""
    params = params or CompanyParams()
    polling = polling or PollingConfig()

    async def body() -> dict[str, Any]:
        await human_pause(1000, 2000, pacing)
        await wait_until_ready(
            lambda: exists(COMPANY_READY_SELECTORS, document),
            params.wait_for_load,
            poll_interval_ms=polling.poll_interval_ms,
            stabilization_ms=polling.stabilization_ms,
        )

        company = await _company(document)
        await human_pause(500, 1000, pacing)

        updates: list[dict[str, Any]] = []
        if params.include_updates:
            updates = await _updates(document, params, pacing)
            await human_pause(800, 1200, pacing)

        employees: list[dict[str, Any]] = []
        if params.include_employees:
            employees = await _employees(document, params, pacing)

        extracted_at = isoformat_utc(utc_now())
        return {
            "company": company,
            "employees": employees,
            "updates": updates,
            "metadata": {
                "url": document.url,
                "companyId": company_id(document.url),
                "extractedSections": {
                    "updates": params.include_updates,
                    "employees": params.include_employees,
                },
                "extractedAt": extracted_at,
                "extractionConfig": params.model_dump(by_alias=True),
            },
            "extractedAt": extracted_at,
        }

    return await guard_extraction(document, "company", body)
