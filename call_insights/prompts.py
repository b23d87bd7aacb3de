"""Prompt templates."""

CATEGORIES = [
    "Lead Management",
    "Lead Quality",
    "Lead Quantity",
    "Visibility / Ranking",
    "Verification / Trust Badge",
    "Catalog / Storefront Setup",
    "Buyer Interaction",
    "Analytics / Reporting",
    "Billing & Renewal",
    "Payments",
    "App / Platform Usability",
    "Support / Training",
    "Compliance / Documentation",
    "Targeting",
    "Communication",
    "Account / Dashboard",
    "Other",
]


SYSTEM_PROMPT = """You are an expert customer service analyst for a B2B marketplace.

Analyze account support call transcripts and extract structured business insights:
1. Identify ALL issues mentioned, even subtle ones
2. Map each issue to exactly one category from the list provided
3. Assess churn risk from the caller's language, complaint severity and competitor mentions
4. Identify upsell opportunities from the caller's needs and business signals
5. Evaluate the support agent's performance

Respond with ONLY valid JSON. No markdown, no code blocks, no explanations."""


ANALYZE_PROMPT = """Analyze this call transcript:

{transcript}
{account_context}
Issue categories (use these exact names): {categories}

Return JSON with this structure:
{{
  "transcript_en": "English version of the transcript",
  "call_summary": "2-3 sentence summary of the call",
  "issues": [
    {{
      "problem": "Specific issue description",
      "category": "Category from the list above",
      "severity": "low|medium|high|critical",
      "action": "What should be done to fix this"
    }}
  ],
  "intent": {{
    "sentiment": "Positive|Neutral|Negative",
    "satisfaction_score": 1-10,
    "prompt_resolution": true/false,
    "overall_experience": "Good|Average|Poor"
  }},
  "churn": {{
    "risk": "low|medium|high",
    "renewal_at_risk": true/false,
    "probability": 0.0-1.0,
    "reason": "Why they might leave"
  }},
  "upsell": {{
    "has_opportunity": true/false,
    "score": 1-10,
    "willingness_to_invest": "low|medium|high",
    "is_growth_oriented": true/false,
    "interested_features": ["feature1", "feature2"],
    "reason": "Why this opportunity exists"
  }},
  "agent_performance": "Good|Average|Poor",
  "key_insights": ["insight1", "insight2"],
  "follow_up_needed": true/false,
  "escalation_required": true/false
}}

Return ONLY valid JSON."""
