"""
Prompt templates for clinical case generation.
Note: All JSON example braces are doubled ({{ }}) to escape them for .format()
"""

CASE_SYSTEM_PROMPT = """You are a senior clinician writing realistic teaching cases for medical students and junior doctors.
Write like an experienced physician, not a textbook. Be specific: vital signs with numbers,
exam findings with laterality, timing windows for interventions.
Cite guidelines by issuing society and year. Never invent URLs.
Respond with a single JSON object and nothing else."""

CASE_GENERATION_PROMPT = """Generate one complete clinical teaching case.

topic: {topic}
language: {language}
region: {region}
detected domains: {domains}
resource setting: {resource_setting}

Rules:
- Use the requested language for all narrative text and the region for units and guideline labels.
- If exact numbers vary between regions, give a reasonable range and say so.
- Management must give explicit timing windows and what to do if the working diagnosis is wrong.
{lmic_instruction}
Return JSON with this structure:
{{
  "meta": {{
    "topic": "{topic}",
    "language": "{language}",
    "region": "{region}",
    "demographics": {{"age": 0, "sex": ""}},
    "geography_of_living": ""
  }},
  "history": "presenting complaint, history of presenting illness, past history, medications, social history",
  "physical_exam": "vital signs and focused examination findings",
  "paraclinical": {{
    "labs": "key laboratory results with units",
    "imaging": "imaging findings if performed",
    "diagnostic_evidence": {{"supporting": [], "against": []}}
  }},
  "differential_diagnoses": ["most likely first"],
  "final_diagnosis": "single final diagnosis",
  "management": {{
    "initial": "first hour / emergency department management",
    "definitive": "definitive and ongoing management"
  }},
  "guidelines": {{
    "local": [],
    "continental": [],
    "usa": [],
    "international": []
  }},
  "teaching_points": ["3-5 pearls"]
}}"""

LMIC_INSTRUCTION = """- This case is for a low-resource setting: assume CT/MRI and advanced labs may be unavailable,
  prefer clinical scoring systems and WHO Essential Medicines, and list WHO guidance first."""
