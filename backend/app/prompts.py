"""
Prompt text for audit generation. The system blocks are identical on every
call so they can be served from Anthropic's prompt cache.
"""

import json

SYSTEM_INSTRUCTION = (
    "You are a JSON-only API that audits Psychology Today profiles. "
    "You MUST return ONLY valid JSON. No explanations. No markdown. "
    "No code blocks. Start with { and end with }."
)

AUDIT_FRAMEWORK = """# Psychology Today Profile Audit Framework

You are analyzing a Psychology Today therapist profile to help the therapist convert more visitors into client inquiries. Every audit must be:
- Data-driven: grounded in the actual profile content
- Specific: concrete examples and actionable steps
- Revenue-focused: quantify the business impact
- Empathetic: you are helping a clinician grow their practice

## Audit Structure (11 Sections)

### 1. Executive Summary
- Overall score (0-100) reflecting profile effectiveness
- Performance level: Excellent (90-100), Above Average (75-89), Average (60-74), Below Average (45-59), Poor (0-44)
- 2-3 sentence summary of the current state
- 3 key findings
- Potential impact statement

### 2. Critical Issues (Top 5)
The five problems hurting conversion the most, each with:
- Title, Severity (Critical/High/Medium), Impact, Current Example, Recommendation, Expected Outcome

### 3. Section-by-Section Scores
Score each section 0-100 with a status (Excellent/Good/Needs Work/Critical) and priority (High/Medium/Low):
- Headline (critical: first impression)
- About Me (critical: main content)
- Specialties (high: searchability)
- Client Focus (high: targeting)
- Treatment Approach (medium: credibility)
- Credentials (medium: trust)
- Photo (high: personal connection)

### 4. Quick Wins (5-7 items)
Improvements that can be made today: action, time required (5 min, 15 min, 30 min, 1 hour), expected impact (High/Medium/Low), step-by-step instructions.

### 5. Revenue Opportunity Analysis
Current and optimized inquiries per month, monthly and annual revenue potential, and a breakdown of the math.

### 6. Market Analysis
Location, competition level, average local session rates, demand indicators, opportunities from market gaps.

### 7. Competitor Analysis
Two or three local competitors: profile URL, strengths, weaknesses, key takeaways; competitive advantages to emphasize; gaps to fill.

### 8. Optimization Preview
Before/after with reasoning for the headline and for the opening paragraph of About Me.

### 9. Implementation Roadmap (30 Days)
- Week 1: quick wins and headline
- Week 2: About Me rewrite
- Week 3: specialties, client focus, treatment approach
- Week 4: photo, credentials, final polish

### 10. Before/After Comparison
Current state, optimized state, expected results.

### 11. Next Steps
Summary of what was learned, immediate action items, and the offer of a done-for-you optimization service.

## Scoring Criteria

Overall score is the weighted sum of section scores:
- Headline: 20%
- About Me: 30%
- Specialties: 15%
- Client Focus: 10%
- Treatment Approach: 10%
- Credentials: 5%
- Photo: 10%

Performance levels:
- Excellent (90-100): highly optimized, minor tweaks only
- Above Average (75-89): strong profile, some improvements possible
- Average (60-74): decent profile, significant improvement potential
- Below Average (45-59): weak profile, major issues to fix
- Poor (0-44): critical problems, complete overhaul needed
"""

AUDIT_SCHEMA = """{
  "overallScore": <integer 0-100>,
  "performanceLevel": "<Excellent|Above Average|Average|Below Average|Poor>",
  "executiveSummary": {
    "currentState": "<2-3 sentences>",
    "keyFindings": ["<finding 1>", "<finding 2>", "<finding 3>"],
    "potentialImpact": "<1-2 sentences about revenue opportunity>"
  },
  "criticalIssues": [
    {
      "title": "<issue title>",
      "severity": "<Critical|High|Medium>",
      "impact": "<description>",
      "currentExample": "<what they have now>",
      "recommendation": "<what to do>",
      "expectedOutcome": "<results>"
    }
  ],
  "sectionScores": {
    "headline": {"score": <0-100>, "status": "<Excellent|Good|Needs Work|Critical>", "priority": "<High|Medium|Low>"},
    "aboutMe": {"score": <0-100>, "status": "<status>", "priority": "<priority>"},
    "specialties": {"score": <0-100>, "status": "<status>", "priority": "<priority>"},
    "clientFocus": {"score": <0-100>, "status": "<status>", "priority": "<priority>"},
    "treatmentApproach": {"score": <0-100>, "status": "<status>", "priority": "<priority>"},
    "credentials": {"score": <0-100>, "status": "<status>", "priority": "<priority>"},
    "photo": {"score": <0-100>, "status": "<status>", "priority": "<priority>"}
  },
  "quickWins": [
    {
      "action": "<specific action>",
      "timeRequired": "<5 min|15 min|30 min|1 hour>",
      "expectedImpact": "<High|Medium|Low>",
      "instructions": "<step-by-step>"
    }
  ],
  "revenueOpportunity": {
    "currentEstimate": "<e.g. 2-4 inquiries/month>",
    "optimizedEstimate": "<e.g. 8-12 inquiries/month>",
    "monthlyRevenuePotential": "<e.g. $4,800-7,200>",
    "annualRevenuePotential": "<e.g. $57,600-86,400>",
    "breakdown": "<explanation>"
  },
  "marketAnalysis": {
    "location": "<city, state>",
    "localCompetition": "<Low|Medium|High>",
    "averageSessionRate": "<$XXX-$XXX>",
    "demandIndicators": ["<indicator>"],
    "opportunities": ["<opportunity>"]
  },
  "competitorAnalysis": {
    "topCompetitors": [
      {"profileUrl": "<URL>", "strengths": ["<strength>"], "weaknesses": ["<weakness>"], "keyTakeaways": "<lesson>"}
    ],
    "competitiveAdvantages": ["<advantage>"],
    "gapsToFill": ["<gap>"]
  },
  "optimizationPreview": {
    "headline": {"before": "<current>", "after": "<optimized>", "reasoning": "<why>"},
    "aboutMeOpening": {"before": "<current>", "after": "<optimized>", "reasoning": "<why>"}
  },
  "implementationRoadmap": {
    "week1": {"focus": "<focus>", "tasks": ["<task>"], "estimatedTime": "<X hours>"},
    "week2": {"focus": "<focus>", "tasks": ["<task>"], "estimatedTime": "<X hours>"},
    "week3": {"focus": "<focus>", "tasks": ["<task>"], "estimatedTime": "<X hours>"},
    "week4": {"focus": "<focus>", "tasks": ["<task>"], "estimatedTime": "<X hours>"}
  }
}"""


def system_blocks() -> list[dict]:
    return [
        {"type": "text", "text": SYSTEM_INSTRUCTION, "cache_control": {"type": "ephemeral"}},
        {"type": "text", "text": AUDIT_FRAMEWORK, "cache_control": {"type": "ephemeral"}},
    ]


def audit_request(profile: dict) -> str:
    return (
        "Analyze this Psychology Today therapist profile and generate a comprehensive audit "
        "following the exact framework provided in the system prompt.\n\n"
        f"**Profile Data:**\n{json.dumps(profile, indent=2)}\n\n"
        f"Generate the audit in JSON format with this exact structure:\n{AUDIT_SCHEMA}\n\n"
        "IMPORTANT: Return ONLY valid JSON. Use double quotes, escape special characters, "
        "no trailing commas, no comments, no markdown code blocks."
    )


def correction_request(error: str) -> str:
    return (
        f"Your previous response could not be used: {error}. "
        "Return the complete audit again as a single valid JSON object matching the structure above. "
        "Output nothing but the JSON."
    )
