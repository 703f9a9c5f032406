"""Tests for agate.workflow.plan module."""

import pytest

from agate.agents import dummy
from agate.lib.fsview import LocalFileSystem
from agate.workflow.plan import (
    InterviewQuestion,
    PlanError,
    PlanOptions,
    accept_document,
    execute_plan_phase,
    find_skill_by_pattern,
    format_interview,
    format_interview_context,
    parse_interview_answers,
    parse_interview_questions,
    select_planning_agent,
)
from agate.workflow.status import Phase, get_status

DUMMY = PlanOptions(agent="dummy")


def answer_interview(project_dir):
    path = project_dir / ".ai" / "interview.md"
    content = path.read_text().replace("- [ ] All questions answered", "- [x] All questions answered")
    path.write_text(content)


class TestInterviewQuestions:
    """Tests for parsing and formatting interview questions."""

    def test_parse_dummy_response(self):
        questions = parse_interview_questions(dummy.INTERVIEW_RESPONSE)
        assert questions == [
            InterviewQuestion("Project Type", "What type of project is this?", ["CLI", "Web App", "Library", "API"]),
            InterviewQuestion("Testing", "What testing approach?",
                              ["Unit tests", "Integration tests", "Both", "None"]),
        ]

    def test_parse_bold_markers_and_multiline(self):
        response = "Some preamble\n\n**QUESTION: Scale**\nHow many users?\nPeak load?\n"
        assert parse_interview_questions(response) == [
            InterviewQuestion("Scale", "How many users? Peak load?"),
        ]

    def test_parse_nothing(self):
        assert parse_interview_questions("I have no questions.") == []

    def test_format(self):
        content = format_interview([InterviewQuestion("Project Type", "What is it?", ["CLI", "API"])])
        assert content.startswith("# Project Interview\n")
        assert "### Q1: Project Type\n\nWhat is it?\n\n- [ ] CLI\n- [ ] API\n" in content
        assert "**Answer**: \n" in content
        assert content.endswith("---\n- [ ] All questions answered (check when complete)\n")


class TestInterviewAnswers:
    """Tests for reading answers back."""

    FILLED = (
        "# Project Interview\n\n"
        "### Q1: Project Type\n\nWhat is it?\n\n- [x] CLI\n\n**Answer**: CLI\n\n"
        "### Q2: Testing\n\nHow?\n\n**Answer**: \nUnit tests\nwith coverage\n\n"
        "---\n- [x] All questions answered\n"
    )

    def test_parse_answers(self):
        assert parse_interview_answers(self.FILLED) == {
            "Project Type": "CLI",
            "Testing": "Unit tests\nwith coverage",
        }

    def test_unanswered(self):
        assert parse_interview_answers("### Q1: Project Type\n\n**Answer**: \n\n---\n") == {}

    def test_context(self):
        assert format_interview_context({"Project Type": "CLI"}) == (
            "## Interview Answers\n\n**Project Type**: CLI\n\n"
        )
        assert format_interview_context({}) == ""


class TestHelpers:
    """Tests for skill lookup, agent selection and document acceptance."""

    def test_find_skill_by_pattern(self):
        assert find_skill_by_pattern(["_reviewer", "go-coder"], "coder", "coder") == "go-coder"
        assert find_skill_by_pattern([], "coder", "coder") == "coder"

    def test_select_planning_agent_preferred(self, tmp_path):
        assert select_planning_agent(tmp_path, "dummy").name == "dummy"

    def test_select_planning_agent_from_settings(self, tmp_path):
        (tmp_path / ".ai").mkdir()
        (tmp_path / ".ai" / "agate.env").write_text("DEFAULT_AGENT=dummy\n")
        assert select_planning_agent(tmp_path).name == "dummy"

    def test_accept_saves_valid_output(self, tmp_path):
        path = tmp_path / "design" / "overview.md"
        accept_document(path, dummy.DESIGN_RESPONSE)
        assert path.read_text().startswith("# Design Overview")

    def test_accept_keeps_agent_written_file(self, tmp_path):
        path = tmp_path / "overview.md"
        path.write_text("# Written by the agent\n")
        accept_document(path, "I've created the document.")
        assert path.read_text() == "# Written by the agent\n"

    def test_accept_rejects_chatty_output(self, tmp_path):
        path = tmp_path / "overview.md"
        with pytest.raises(PlanError, match="file not found"):
            accept_document(path, "Here's the design you wanted")
        assert not path.exists()

    def test_accept_rejects_bad_file(self, tmp_path):
        path = tmp_path / "overview.md"
        path.write_text("Perfect! I've written the design.")
        with pytest.raises(PlanError, match="meta-commentary"):
            accept_document(path, "")


class TestPlanPhases:
    """End-to-end planning with the dummy agent."""

    def test_requires_goal(self, tmp_path):
        with pytest.raises(PlanError, match="GOAL.md not found"):
            execute_plan_phase(tmp_path, DUMMY)

    def test_interview_then_wait_for_answers(self, tmp_path):
        (tmp_path / "GOAL.md").write_text("Build a hello world CLI in Python\n")

        result = execute_plan_phase(tmp_path, DUMMY)
        assert result.message.startswith("Interview questions generated.")
        interview = (tmp_path / ".ai" / "interview.md").read_text()
        assert "### Q1: Project Type" in interview
        assert (tmp_path / ".ai" / "logs" / "sprint-000" / "001-interview-00-_interviewer-dummy.md").exists()

        result = execute_plan_phase(tmp_path, DUMMY)
        assert result.message.startswith("Interview questions pending.")
        assert get_status(LocalFileSystem(tmp_path)).phase == Phase.INTERVIEW

    def test_full_planning(self, tmp_path):
        (tmp_path / "GOAL.md").write_text("Build a hello world CLI in Python\n")
        execute_plan_phase(tmp_path, DUMMY)
        answer_interview(tmp_path)

        messages = [execute_plan_phase(tmp_path, DUMMY).message for _ in range(3)]

        assert messages == [
            "Design overview generated. Run 'agate next' to generate technical decisions.",
            "Technical decisions generated. Run 'agate next' to generate sprint plan.",
            "Sprint plan generated. Run 'agate next' to start implementation.",
        ]
        assert (tmp_path / ".ai" / "design" / "decisions.md").read_text().startswith("# Technical Decisions")
        sprint = (tmp_path / ".ai" / "sprints" / "01-initial.md").read_text()
        assert "- [ ] Set up project structure" in sprint

        status = get_status(LocalFileSystem(tmp_path))
        assert status.phase == Phase.EXECUTION
        assert execute_plan_phase(tmp_path, DUMMY).message.startswith("Planning complete.")

    def test_unknown_agent_falls_back_to_available(self, tmp_path):
        (tmp_path / ".ai").mkdir()
        (tmp_path / ".ai" / "agents.yaml").write_text("agents: {}\n")
        agent = select_planning_agent(tmp_path, "no-such-agent")
        assert agent.name in ("claude", "haiku", "codex", "dummy")
