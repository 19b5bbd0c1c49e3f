"""Prompt construction for the business-analysis completion call."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from siteprofile.models.content import ScrapedContent
    from siteprofile.models.options import AnalysisOptions

MAX_CONTENT_CHARS = 2_000

RESPONSE_SCHEMA = """{
  "businessType": "string - Type of business (e.g., 'Webshop', 'Consultancy', 'Restaurant')",
  "mainActivities": ["array of main business activities"],
  "targetMarket": "string - Target market description",
  "businessDescription": "string - Comprehensive business description",
  "industryCategory": "string - Industry category (e.g., 'E-commerce', 'Healthcare', 'Technology')",
  "keyServices": ["array of key services offered"],
  "location": "string - Business location if determinable",
  "confidenceScore": 85,
  "strengths": ["array of identified business strengths"],
  "opportunities": ["array of growth opportunities"],
  "digitalMaturity": {
    "level": "basic|intermediate|advanced",
    "score": 75,
    "areas": ["array of digital maturity areas"]
  },
  "marketingInsights": {
    "positioning": "string - Market positioning",
    "uniqueSellingPoints": ["array of USPs"],
    "contentQuality": 80,
    "seoOptimization": 70
  },
  "recommendations": ["array of actionable recommendations"],
  "competitorAnalysis": {
    "similarBusinesses": ["array of similar business types"],
    "competitiveAdvantages": ["array of advantages"],
    "marketGaps": ["array of potential market gaps"]
  }
}"""

# (criterion, points): the additive confidence rubric, capped at 100
CONFIDENCE_RUBRIC: tuple[tuple[str, int], ...] = (
    ("Presence of a valid KvK-nummer (Dutch Chamber of Commerce number)", 20),
    ("Presence of a physical address (street, city)", 15),
    ("Presence of a phone number", 10),
    ("Presence of customer reviews/testimonials", 15),
    ("Presence of a detailed 'About Us' page", 10),
    ("Links to active social media profiles", 10),
    ("Website uses SSL (HTTPS)", 10),
    ("Absence of major spelling/grammar errors", 5),
)

_LANGUAGE_NAMES = {"nl": "Dutch", "en": "English"}


def _or(value: str, placeholder: str) -> str:
    return value if value else placeholder


def prepare_content(content: ScrapedContent) -> str:
    """Render the prompt body. Every section is always present."""
    social = "\n".join(f"{name}: {url}" for name, url in content.social_media.active().items())
    contact = content.contact_info
    business = content.business_info
    technical = content.technical_info

    sections = [
        "=== WEBSITE TITLE ===",
        _or(content.title, "No title available"),
        "",
        "=== DESCRIPTION ===",
        _or(content.description, "No description available"),
        "",
        "=== HEADINGS ===",
        _or("\n".join(content.headings), "No headings found"),
        "",
        "=== MAIN CONTENT ===",
        _or(content.content[:MAX_CONTENT_CHARS], "No content available"),
        "",
        "=== BUSINESS INFO ===",
        _or(business.about_text, "No about text available"),
        "",
        "=== SERVICES ===",
        _or(", ".join(business.services), "No services listed"),
        "",
        "=== PRODUCTS ===",
        _or(", ".join(business.products), "No products listed"),
        "",
        "=== CONTACT INFO ===",
        f"Emails: {_or(', '.join(contact.emails), 'None')}",
        f"Phones: {_or(', '.join(contact.phones), 'None')}",
        f"Addresses: {_or(', '.join(contact.addresses), 'None')}",
        "",
        "=== TECHNICAL INFO ===",
        f"SSL: {'Yes' if technical.has_ssl else 'No'}",
        f"Responsive: {'Yes' if technical.responsive else 'No'}",
        f"Load Time: {technical.load_time_ms}ms",
        "",
        "=== SOCIAL MEDIA ===",
        _or(social, "No social media links found"),
    ]
    return "\n".join(sections)


def system_prompt(options: AnalysisOptions) -> str:
    language = _LANGUAGE_NAMES[options.language]
    rubric = "\n".join(f"  - {criterion}: +{points} points" for criterion, points in CONFIDENCE_RUBRIC)
    return f"""You are a professional business analyst specializing in website analysis for Dutch businesses.

Your task is to analyze website content and provide structured business insights. You must respond in valid JSON format with the following structure:

{RESPONSE_SCHEMA}

Guidelines:
- Analyze in a Dutch market context and write every free-text value in {language}
- Focus on Dutch market conditions and business practices
- The 'confidenceScore' MUST be an integer between 0 and 100. Calculate it by summing the points from the following criteria based on the available website data:
{rubric}
  - If information is scarce or ambiguous, the total score should reflect that by being lower.
- Be specific and actionable in recommendations
- Consider local market dynamics and consumer behavior
- All other scores must be integers between 0 and 100
- Provide realistic and data-driven insights"""


def user_prompt(body: str, options: AnalysisOptions) -> str:
    extras = []
    if options.include_recommendations:
        extras.append(
            "Include specific, actionable recommendations for business growth and digital improvement."
        )
    if options.include_competitor_analysis:
        extras.append("Include competitor analysis and market positioning insights.")

    parts = [
        "Please analyze the following website content and provide a comprehensive business analysis:",
        body,
        "Focus on:\n"
        "1. Identifying the core business model and value proposition\n"
        "2. Understanding the target market and customer segments\n"
        "3. Evaluating digital maturity and online presence\n"
        "4. Assessing competitive positioning\n"
        "5. Identifying growth opportunities and areas for improvement",
        *extras,
        "Provide your analysis in the specified JSON format. "
        "Ensure all fields are populated with meaningful data based on the available content.",
    ]
    return "\n\n".join(parts)
