"""
Dummy agent: canned responses, no LLM.

Lets the whole workflow run end to end (`agate auto --agent dummy`) and backs
the workflow tests. The response is picked from phrases in the prompt.
"""

from pathlib import Path
from typing import TextIO

from agate.agents.base import Agent, SafeModeAgent, StreamingAgent

DEFAULT_RESPONSE = "OK - Dummy agent completed task"

INTERVIEW_RESPONSE = """QUESTION: Project Type
What type of project is this?
OPTIONS: CLI, Web App, Library, API

QUESTION: Testing
What testing approach?
OPTIONS: Unit tests, Integration tests, Both, None
"""

DESIGN_RESPONSE = """# Design Overview

This is a dummy design document.

## Architecture

- Component A
- Component B
"""

DECISIONS_RESPONSE = """# Technical Decisions

## Decision 1: Keep it small

A single module is enough for a first version.
"""

SPRINT_RESPONSE = """# Sprint 1

## Goal

Implement the core functionality.

## Tasks

- [ ] Set up project structure
  - [ ] coder: Create the project skeleton
  - [ ] _reviewer: Validate setup complete

- [ ] Implement core feature
  - [ ] coder: Write the main logic
  - [ ] _reviewer: Validate feature complete
"""

IMPLEMENT_RESPONSE = """### File: hello.txt
```
Hello, World!
```

Implementation complete.
"""

REVIEW_RESPONSE = "APPROVED - All requirements met."

GOAL_COMPLETE_RESPONSE = "GOAL_COMPLETE"

# Checked in order; the first phrase found in the lowercased prompt wins.
RESPONSES = [
    ("generate 3-5 clarifying questions", INTERVIEW_RESPONSE),
    ("assessing whether a project goal is fully met", GOAL_COMPLETE_RESPONSE),
    ("nested task checkboxes", SPRINT_RESPONSE),
    ("adr style", DECISIONS_RESPONSE),
    ("high-level component structure", DESIGN_RESPONSE),
    ("output any files", IMPLEMENT_RESPONSE),
    ("respond with: approved", REVIEW_RESPONSE),
]


def pick_response(prompt: str) -> str:
    lower = prompt.lower()
    for phrase, response in RESPONSES:
        if phrase in lower:
            return response
    return DEFAULT_RESPONSE


class DummyAgent(Agent, StreamingAgent, SafeModeAgent):
    name = "dummy"

    def available(self) -> bool:
        return True

    def execute(self, prompt: str, workdir: Path) -> str:
        return pick_response(prompt)

    def execute_streaming(self, prompt: str, workdir: Path, stream: TextIO) -> str:
        response = self.execute(prompt, workdir)
        stream.write(response + "\n")
        return response

    def execute_safe(self, prompt: str, workdir: Path, stream: TextIO | None = None) -> str:
        if stream is not None:
            return self.execute_streaming(prompt, workdir, stream)
        return self.execute(prompt, workdir)
