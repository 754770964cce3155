"""Named query templates, used as ``switchboard p <name> [args...]``."""

from __future__ import annotations

import re

PROMPT_TEMPLATES: dict[str, str] = {
    "review": (
        "You are an expert software engineer with a good taste on how a code should be. "
        "Assume that in current working directory, you are in a git repository. "
        "Get the current git status and diff. Review the change and provide feedback."
    ),
    "commit": (
        "You are an expert software engineer. Assume that in current working directory, "
        "you are in a git repository. Get the current git status and diff. "
        "Reason why the change was made. Then commit with a concise, descriptive message "
        "that follows Conventional Commits specification."
    ),
    "yt": (
        "Retell and summarize the video in a concise and descriptive manner. "
        "Use bullet points and markdown formatting. The url is {url}"
    ),
    "delegate": (
        "Split the following task into independent parts and delegate each part to the "
        "most suitable available agent with call_agent. Combine their answers into one "
        "response. Task: {task}"
    ),
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def template_args(template: str) -> list[str]:
    """Placeholder names in order of appearance."""
    return _PLACEHOLDER.findall(template)


def expand_template(name: str, args: list[str]) -> str:
    """Fill *name*'s placeholders positionally. Missing values become empty.

    Extra words are joined into the last placeholder. Raises KeyError for an
    unknown template.
    """
    template = PROMPT_TEMPLATES[name]
    names = template_args(template)
    values = dict(zip(names, args))
    if names and len(args) > len(names):
        values[names[-1]] = " ".join(args[len(names) - 1:])
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), ""), template)


def prepare_query(words: list[str] | tuple[str, ...]) -> str:
    """Turn the raw command-line words into the query text.

    ``p <name> args...`` expands a template. A leading ``c`` (continue) is
    dropped. Anything else is joined as-is.
    """
    text = " ".join(words).strip()
    tokens = text.split()
    if len(tokens) >= 2 and tokens[0] == "p":
        return expand_template(tokens[1], tokens[2:])
    if tokens and tokens[0] == "c":
        return " ".join(tokens[1:])
    return text
