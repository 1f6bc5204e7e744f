"""Tests for the LinkedIn profile and company extractors."""

import pytest

from pagelens.browser.snapshot import SnapshotDocument
from pagelens.config.settings import CompanyParams, PacingConfig, PollingConfig, ProfileParams
from pagelens.sites.linkedin import (
    clean_text,
    company_id,
    dedupe_author,
    experience_location,
    extract_company_info,
    extract_profile_info,
    is_employee_count,
    is_headquarters,
    profile_id,
    trim_description,
)

FAST = PollingConfig(poll_interval_ms=1, stabilization_ms=0)
NO_PACING = PacingConfig(enabled=False)

PROFILE_URL = "https://www.linkedin.com/in/jane-doe/"
PROFILE_PAGE = """
<h1 class="text-heading-xlarge">Jane Doe</h1>
<div class="text-body-medium break-words">Engineer at Acme</div>
<span class="text-body-small inline t-black--light break-words">1,200 followers</span>
<span class="text-body-small inline t-black--light break-words">Berlin, Germany</span>
<span class="text-body-small"><a href="/mynetwork/connections">500+ connections</a></span>

<section>
  <div id="experience"></div>
  <ul>
    <li class="artdeco-list__item">
      <div class="mr1 hoverable-link-text t-bold"><span aria-hidden="true">Staff Engineer</span></div>
      <span class="t-14 t-normal"><span aria-hidden="true">Acme Corp · Full-time</span></span>
      <span class="pvs-entity__caption-wrapper">Jan 2020 - Present · 4 yrs</span>
      <span class="t-14 t-normal t-black--light"><span aria-hidden="true">Jan 2020 - Present · 4 yrs</span></span>
      <span class="t-14 t-normal t-black--light"><span aria-hidden="true">Berlin, Germany · Hybrid</span></span>
      <div class="inline-show-more-text--is-collapsed">
        <span aria-hidden="true">Led the platform team building distributed systems for payments and billing…</span>
      </div>
    </li>
    <li class="artdeco-list__item">
      <div class="mr1 hoverable-link-text t-bold"><span aria-hidden="true">Intern</span></div>
      <span class="t-14 t-normal"><span aria-hidden="true">Beta LLC</span></span>
      <span class="pvs-entity__caption-wrapper">2018</span>
    </li>
    <li class="artdeco-list__item"><span>empty</span></li>
  </ul>
</section>

<section>
  <div id="education"></div>
  <ul>
    <li class="artdeco-list__item">
      <div class="mr1 hoverable-link-text t-bold"><span aria-hidden="true">TU Berlin</span></div>
      <span class="t-14 t-normal"><span aria-hidden="true">MSc, Computer Science</span></span>
      <span class="pvs-entity__caption-wrapper">2014 - 2016</span>
      <div class="inline-show-more-text--is-collapsed"><span aria-hidden="true">Grade: 1.3</span></div>
    </li>
  </ul>
</section>

<section>
  <div id="skills"></div>
  <ul>
    <li class="artdeco-list__item">
      <div class="mr1 hoverable-link-text t-bold"><span aria-hidden="true">Python</span></div>
      <span class="t-14 t-normal t-black"><span aria-hidden="true">12 endorsements</span></span>
    </li>
    <li class="artdeco-list__item">
      <div class="mr1 hoverable-link-text t-bold"><span aria-hidden="true">Go</span></div>
    </li>
  </ul>
</section>
"""

COMPANY_URL = "https://www.linkedin.com/company/acme/"
COMPANY_PAGE = """
<h1 class="org-top-card-summary__title">  Acme
   Corp </h1>
<div class="org-top-card-summary__industry">Software Development</div>
<div class="org-top-card-summary-info-list__info-item">Software Development</div>
<div class="org-top-card-summary-info-list__info-item">Berlin, Germany</div>
<div class="org-top-card-summary-info-list__info-item">12,345 followers</div>
<div class="org-top-card-summary__info-item">1,001-5,000 employees</div>
<svg aria-label="Verified"></svg>

<div class="org-company-posts">
  <div class="feed-shared-update-v2">
    <div class="update-components-actor__title"><span aria-hidden="true"><span>Acme Corp</span></span></div>
    <time datetime="2024-06-01">1w</time>
    <div class="feed-shared-text">We are   hiring! hashtag#jobs</div>
    <span class="social-details-social-counts__reactions-count">1,234</span>
    <div class="social-details-social-counts__comments"><button>56 comments</button></div>
    <span aria-label="7 reposts">7 reposts</span>
    <div class="update-components-image">
      <img src="https://media.licdn.com/dms/image/abc.jpg" alt="team">
      <img src="https://static.licdn.com/sc/h/icon.svg">
    </div>
  </div>
  <div class="feed-shared-update-v2">
    <div class="update-components-actor__title">No content here</div>
  </div>
  <div class="feed-shared-update-v2">
    <div class="update-components-actor__title">Acme Acme • 3d</div>
    <div class="feed-shared-text">Second post</div>
    <div class="update-components-article">link preview</div>
  </div>
</div>

<div class="org-people">
  <div class="org-people-bar-graph-element__category">Engineering</div>
  <div class="org-people-profile-card">
    <div class="org-people-profile-card__profile-title">Sam Lee</div>
    <div class="org-people-profile-card__profile-info">CTO</div>
    <a href="https://www.linkedin.com/in/samlee">view</a>
  </div>
  <div class="org-people-profile-card"><div class="artdeco-entity-lockup__title">Kim</div></div>
</div>
"""


class TestHelpers:
    def test_clean_text(self):
        assert clean_text("  Big   news hashtag#launch ") == "Big news #launch"
        assert clean_text("   ") is None
        assert clean_text(None) is None

    def test_experience_location(self):
        assert experience_location(["Jan 2020 - Present", "Remote"]) == "Remote"
        assert experience_location(["3 yrs, 2 mos"]) == ""
        assert experience_location(["Full-time"]) == ""

    def test_trim_description(self):
        assert trim_description("Short text …") == "Short text"
        long_text = "word " * 120
        trimmed = trim_description(long_text)
        assert trimmed.endswith("...")
        assert len(trimmed) <= 503

    def test_ids(self):
        assert profile_id(PROFILE_URL) == "jane-doe"
        assert profile_id("https://www.linkedin.com/feed/") is None
        assert company_id(COMPANY_URL) == "acme"
        assert company_id("https://www.linkedin.com/school/tu-berlin?x=1") == "tu-berlin"

    def test_company_text_filters(self):
        assert is_headquarters("Berlin, Germany")
        assert not is_headquarters("Software Development")
        assert not is_headquarters("NYC")
        assert is_employee_count("1,001-5,000 Employees")
        assert not is_employee_count("12,345 followers")

    def test_dedupe_author(self):
        assert dedupe_author("AcmeAcme") == "Acme"
        assert dedupe_author("Acme Acme") == "Acme"
        assert dedupe_author("Acme Corp • Following") == "Acme Corp"
        assert len(dedupe_author("x" * 80 + "y")) == 50


class TestProfile:
    @pytest.mark.asyncio
    async def test_basic_info_and_sections(self):
        doc = SnapshotDocument(PROFILE_PAGE, url=PROFILE_URL)
        params = ProfileParams(wait_for_load=50, include_skills=True)
        result = await extract_profile_info(doc, params, polling=FAST, pacing=NO_PACING)

        assert result["profile"] == {
            "name": "Jane Doe",
            "headline": "Engineer at Acme",
            "location": "Berlin, Germany",
            "connections": "500+",
        }
        assert result["experience"] == [
            {
                "title": "Staff Engineer",
                "company": "Acme Corp",
                "employmentType": "Full-time",
                "duration": "Jan 2020 - Present · 4 yrs",
                "location": "Berlin, Germany · Hybrid",
                "description": "Led the platform team building distributed systems for payments and billing",
            },
            {"title": "Intern", "company": "Beta LLC", "duration": "2018"},
        ]
        assert result["education"] == [
            {"school": "TU Berlin", "degree": "MSc, Computer Science", "year": "2014 - 2016", "grade": "Grade: 1.3"}
        ]
        assert result["skills"] == [
            {"skill": "Python", "endorsements": 12, "context": "12 endorsements"},
            {"skill": "Go"},
        ]
        assert result["metadata"] == {
            "url": PROFILE_URL,
            "profileId": "jane-doe",
            "extractedSections": {"experience": True, "education": True, "skills": True},
        }

    @pytest.mark.asyncio
    async def test_max_experience(self):
        doc = SnapshotDocument(PROFILE_PAGE, url=PROFILE_URL)
        params = ProfileParams(wait_for_load=50, max_experience=1, include_education=False)
        result = await extract_profile_info(doc, params, polling=FAST, pacing=NO_PACING)
        assert [e["title"] for e in result["experience"]] == ["Staff Engineer"]
        assert result["education"] == []
        assert result["skills"] == []

    @pytest.mark.asyncio
    async def test_missing_sections(self):
        doc = SnapshotDocument("<h1>Someone</h1>", url=PROFILE_URL)
        result = await extract_profile_info(
            doc, ProfileParams(wait_for_load=50), polling=FAST, pacing=NO_PACING
        )
        assert result["experience"] == []
        assert result["education"] == []
        assert "error" not in result


class TestCompany:
    @pytest.mark.asyncio
    async def test_top_card(self):
        doc = SnapshotDocument(COMPANY_PAGE, url=COMPANY_URL)
        result = await extract_company_info(
            doc, CompanyParams(wait_for_load=50), polling=FAST, pacing=NO_PACING
        )
        assert result["company"] == {
            "name": "Acme Corp",
            "industry": "Software Development",
            "employeeCount": "1,001-5,000 employees",
            "followers": "12,345 followers",
            "headquarters": "Berlin, Germany",
            "verified": True,
        }
        metadata = result["metadata"]
        assert metadata["companyId"] == "acme"
        assert metadata["extractedSections"] == {"updates": True, "employees": False}
        assert metadata["extractionConfig"]["maxUpdates"] == 5
        assert metadata["extractedAt"] == result["extractedAt"]
        assert result["employees"] == []

    @pytest.mark.asyncio
    async def test_updates(self):
        doc = SnapshotDocument(COMPANY_PAGE, url=COMPANY_URL)
        result = await extract_company_info(
            doc, CompanyParams(wait_for_load=50), polling=FAST, pacing=NO_PACING
        )
        first, second = result["updates"]
        assert first == {
            "content": "We are hiring! #jobs",
            "timestamp": "2024-06-01",
            "engagement": {"likes": "1,234", "comments": "56", "reposts": "7"},
            "type": "image_post",
            "author": "Acme Corp",
            "media": [],
        }
        assert second["type"] == "article"
        assert second["author"] == "Acme"
        assert second["timestamp"] is None
        assert second["engagement"] == {"likes": "0", "comments": "0", "reposts": "0"}

    @pytest.mark.asyncio
    async def test_update_media(self):
        doc = SnapshotDocument(COMPANY_PAGE, url=COMPANY_URL)
        params = CompanyParams.model_validate({"waitForLoad": 50, "includeMedia": True, "maxUpdates": 1})
        result = await extract_company_info(doc, params, polling=FAST, pacing=NO_PACING)
        assert len(result["updates"]) == 1
        assert result["updates"][0]["media"] == [
            {"type": "image", "url": "https://media.licdn.com/dms/image/abc.jpg", "alt": "team"}
        ]

    @pytest.mark.asyncio
    async def test_employees_privacy_summary(self):
        doc = SnapshotDocument(COMPANY_PAGE, url=COMPANY_URL)
        params = CompanyParams(wait_for_load=50, include_employees=True, include_updates=False)
        result = await extract_company_info(doc, params, polling=FAST, pacing=NO_PACING)
        assert result["updates"] == []
        assert result["employees"] == [
            {
                "totalEmployeesVisible": 2,
                "totalEmployeesText": "Engineering",
                "note": "Limited data for privacy compliance",
            }
        ]

    @pytest.mark.asyncio
    async def test_employee_cards(self):
        doc = SnapshotDocument(COMPANY_PAGE, url=COMPANY_URL)
        params = CompanyParams(
            wait_for_load=50, include_employees=True, respect_privacy=False, include_updates=False
        )
        result = await extract_company_info(doc, params, polling=FAST, pacing=NO_PACING)
        assert result["employees"] == [
            {
                "name": "Sam Lee",
                "title": "CTO",
                "profileUrl": "https://www.linkedin.com/in/samlee",
                "connectionDegree": None,
            },
            {"name": "Kim", "title": None, "profileUrl": None, "connectionDegree": None},
        ]
