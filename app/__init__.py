"""
Gradii - AI-assisted recruiting and interviewing platform.

Architecture:
- Relational DB (SQLAlchemy): companies, users, campaigns, candidates, interviews, billing
- MongoDB: raw and parsed resumes, AI question generations
- OpenAI: resume parsing, talent-fit scoring, question generation
"""

__version__ = "1.0.0"
