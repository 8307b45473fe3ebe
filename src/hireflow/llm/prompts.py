from __future__ import annotations

PROFILE_SCHEMA_HINT = """
Return strict JSON with keys:
- profileData: object with keys
  - technicalSkills: array of {{skill, proficiency, evidenceSource}};
    proficiency is one of [beginner, intermediate, advanced, expert]
  - softSkills: array of {{skill, examples: string[]}}
  - experience: {{totalYears, relevantYears, positions: array of {{title, duration, keyAchievements: string[]}}}}
  - education: {{level, field, institution}}
  - culturalFit: {{workStyle, motivations: string[], preferences: string[]}}
  - careerTrajectory: {{progression, growthAreas: string[], stabilityScore: number 0..100}}
- overallScore: number 0..100
- dataSources: string[]
- gaps: string[]
- strengths: string[]
- concerns: string[]
- aiSummary: string
""".strip()

RESUME_ANALYSIS_PROMPT = """
You are screening a resume for a recruiter.
Return strict JSON with keys:
- summary: string
- skills: string[]
- experience: integer (years)
- education: string
- strengths: string[]
- weaknesses: string[]

Resume text:
{resume_text}
""".strip()

INITIAL_PROFILE_PROMPT = (
    """
You are an HR assessment expert building a candidate profile from a screened resume.
Only state what the resume supports; list missing information under gaps.

Candidate: {name}
Resume analysis JSON:
{analysis_json}

Target job:
{job_summary}

Resume excerpt:
{resume_text}
""".strip()
    + "\n\n"
    + PROFILE_SCHEMA_HINT
)

UPDATED_PROFILE_PROMPT = (
    """
You are an HR assessment expert updating a candidate profile after an interview.
Integrate the new interview evidence with the current profile, keep the result
consistent, and adjust the overall score to reflect interview performance.

Candidate: {name}
Current profile (version {version}, stage {stage}, score {overall_score}):
{profile_json}

Known strengths: {strengths}
Known concerns: {concerns}
Known gaps: {gaps}

Interview round {round} ({interview_type}):
- rating: {rating}/5
- feedback: {feedback}
- interviewer notes: {notes}
- recommendation: {recommendation}

Interview history:
{history}

Target job:
{job_summary}
""".strip()
    + "\n\n"
    + PROFILE_SCHEMA_HINT
)
