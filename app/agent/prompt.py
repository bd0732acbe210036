"""System prompt for the documentation Q&A agent."""

from app.core.config import ANSWER_LANGUAGE

_ROLE = "You are an assistant that answers questions about the IAB Tech Lab documentation."

_SCOPE_HEADER = (
    "## What the documentation covers\n\n"
    "Below is an overview of the standards and capabilities covered by the documentation. "
    "Use it to decide which documents to search when answering.\n\n"
)


def build_system_prompt(scope_document: str, language: str = ANSWER_LANGUAGE) -> str:
    """
    Compose the agent's system instruction. Pure: same input, same output.
    The scope document is embedded verbatim when it has any non-whitespace content.
    """
    has_scope = bool(scope_document and scope_document.strip())
    scope_section = f"\n{_SCOPE_HEADER}{scope_document}\n" if has_scope else ""
    keyword_hint = "guided by the coverage overview above, " if has_scope else ""

    rules = [
        "Use the available search tools to look up the documentation before answering.",
        f"Search with keywords suited to the user's question, {keyword_hint}and refine the search if the first results are not enough.",
        "Base your answer only on information returned by the tools. If the tools return nothing relevant, say so honestly.",
        f"Answer in {language}, concisely.",
        "End your answer with a list of the URLs of the documents you referred to.",
        "If the question spans several standards, gather information from every relevant standard before answering.",
    ]
    numbered = "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules, 1))
    return f"{_ROLE}\n{scope_section}\n## Rules\n{numbered}\n"
