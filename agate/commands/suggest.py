"""
agate suggest - Acknowledge a suggestion for the next step.

Suggestions are not persisted; the command only echoes them back.
"""

from agate.lib.console import print_error
from agate.workflow.sprint import truncate_text

SUGGESTION_PREVIEW = 60


def format_suggestion_ack(text: str) -> str:
    return (
        f"Suggestion noted: {truncate_text(text, SUGGESTION_PREVIEW)}\n\n"
        "Note: Suggestions are no longer queued. Use this command right before "
        "'agate next' if you want to influence the next task."
    )


def cmd_suggest(args) -> int:
    text = args.text.strip()
    if not text:
        print_error("suggestion cannot be empty")
        return 2

    print(format_suggestion_ack(text))
    return 0
