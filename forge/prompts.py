"""Prompt templates and generation settings for each pipeline stage."""

from __future__ import annotations

from typing import Dict

from .schemas import GenerationParameters, Stage

SYSTEM_INSTRUCTIONS: Dict[Stage, str] = {
    Stage.IDEA: (
        "You are a Chief Product Officer. Clarify and elevate raw ideas into actionable "
        "product visions. Given a raw product idea, write a structured Product Vision "
        "Statement in Markdown with: 1. Product Name Suggestion, 2. Core Value "
        "Proposition (the why), 3. Target Users (the who), 4. Key Differentiators "
        "(the how), 5. Elevator Pitch (one concise sentence). Keep it professional "
        "and inspiring."
    ),
    Stage.RESEARCH: (
        "You are a research director who writes crisp briefs for autonomous research agents."
    ),
    Stage.PRD: (
        "You are a world-class Product Manager. You are strict, detailed, and focus on "
        "viability and user value."
    ),
    Stage.PLANNING: (
        "You are a Technical Project Manager. Break down complex goals into achievable tasks."
    ),
    Stage.DESIGN: (
        "You are a Senior UI/UX Designer. Focus on aesthetics, accessibility, and modern "
        "design trends."
    ),
    Stage.CODE: (
        "You are a Lead Software Engineer. You write precise, technical specifications "
        "for other developers."
    ),
}

GENERATION_PARAMETERS: Dict[Stage, GenerationParameters] = {
    Stage.IDEA: GenerationParameters(temperature=0.7),
    Stage.RESEARCH: GenerationParameters(temperature=0.7),
    Stage.PRD: GenerationParameters(temperature=0.7),
    Stage.PLANNING: GenerationParameters(temperature=0.5),
    Stage.DESIGN: GenerationParameters(temperature=0.9),
    Stage.CODE: GenerationParameters(temperature=0.2),
}

RESEARCH_MISSION_TEMPLATE = """\
Based on the following Product Vision, write a "Deep Research Mission" prompt for an
autonomous AI research agent.

The mission should instruct the agent to:
1. Find direct and indirect competitors.
2. Uncover recent trends in the specific market.
3. Identify user demographics and pain points.
4. Look for technical feasibility and similar existing implementations.

Keep the mission under 3 sentences but directive. Start with "Your mission is to..."

Product Vision:
{idea}
"""

RESEARCH_REPORT_TEMPLATE = """\
You are an expert Market Researcher with a deep understanding of the product landscape. \
Analyze the Product Vision Statement below together with the gathered research sources \
and produce a comprehensive research report.

Product Vision Statement:

---
{idea}
---

Cover the following sections:

**1. Competitor Analysis:**
Identify 3-5 direct and indirect competitors. For each, describe their offering, target \
audience, strengths, and weaknesses, and how well they address the needs this product targets.

**2. User Pain Point Deep Dive:**
Describe the most acute frustrations of the target users and where existing solutions \
fall short.

**3. Technical Feasibility Check:**
Assess the Key Differentiators: availability of the required technology (models, APIs, \
data), significant hurdles (accuracy, privacy, latency), and precedents that show feasibility.

**4. Strategic Opportunities & Market Gaps:**
Identify underserved gaps this product could exploit, considering emerging trends, unmet \
needs, and new business models."""

PRD_TEMPLATE = """\
Analyze the following product vision and the research documents that follow (if any).

PRODUCT VISION:
{idea}

TASK:
Create a comprehensive Product Requirements Document (PRD) in Markdown.
Include:
1. Executive Summary
2. Problem Statement
3. Target Audience (User Personas)
4. Key Features (Functional Requirements)
5. Success Metrics (KPIs)
6. Risks & Mitigation
"""

PLAN_TEMPLATE = """\
Based on the following PRD, create a step-by-step Implementation Plan (Roadmap).

PRD CONTENT:
{prd}

TASK:
Create a phased roadmap (Phase 1: MVP, Phase 2: Polish, Phase 3: Scale).
For each phase, list specific actionable tasks for Design, Frontend, and Backend.
Output in Markdown.
"""

DESIGN_TEMPLATE = """\
Based on the PRD and Plan, create a Design System & Blueprint.

PRD: {prd}
PLAN: {plan}

TASK:
1. Define the Color Palette (Primary, Secondary, Accent, Backgrounds) with hex codes and rationale.
2. Typography choices (Headings, Body).
3. UI Component Library definition (list the core components needed).
4. UX Flow description for the main user journey.
5. A text-based description of the 'Vibe' (e.g. Professional, Playful, Industrial).

Output in Markdown.
"""

CODE_TEMPLATE = """\
I need a master prompt to give to an AI coding agent so it can build this entire application.

Summarize the project:
- Idea: {idea}
- Key Design Elements: extract them from the design system below.
- Stack: React, Tailwind, TypeScript.

DESIGN SYSTEM CONTEXT:
{design}

PLAN CONTEXT:
{plan}

TASK:
Write a highly detailed "Master Prompt" that can be pasted into an IDE assistant to scaffold
the project. Specify the stack (React + Vite + TS + Tailwind), the directory structure, and
the first 3 core components to build.

Return ONLY the raw prompt text, with no conversational filler and no markdown code fences.
"""

RESEARCH_SOURCE_TEMPLATE = "--- RESEARCH DOCUMENT: {name} ---\n{content}\n--- END DOCUMENT ---"


def build_research_report_prompt(idea: str) -> str:
    """Report-generation prompt the user pastes next to their gathered sources."""
    return RESEARCH_REPORT_TEMPLATE.format(idea=idea)
