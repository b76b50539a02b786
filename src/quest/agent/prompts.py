"""System instruction assembly."""

from datetime import datetime
from typing import Optional

from quest.core.schema import SessionInfo

SYSTEM_PROMPT = """\
You are Quest, a friendly general-purpose AI assistant with access to tools for web search,
webpage extraction, a document database, and the user's mail, drive, documents, slides, sheets,
forms and calendar.

You are talking to the user with the details: {user_details}
Today's date is: {date_details}

Tool use:
- Prefer the native function-calling interface.  If you cannot, reply with exactly one JSON
  object in a ```json block:
  {{"thoughts": "<private reasoning>", "payload": {{"function_call": {{"name": "<tool>", "arguments": {{...}}}}}}}}
- Call googleSearch only for up-to-date facts, news, or stats you don't know.
- Workspace tools need the user's ID; take it from the user details above.
- Do not announce what you are about to do; call the tool, then answer.

Final answers:
- Reply with the answer itself in valid Markdown, or as
  {{"thoughts": "...", "payload": {{"text": "<answer>"}}}}
- Never reveal internal reasoning, tool names, or IDs.
- If unsure, admit uncertainty briefly and suggest next steps.
"""


def user_details(session: Optional[SessionInfo]) -> str:
    if session is None:
        return "No session data available."
    parts = [f"User ID: {session.user_id}"]
    if session.user_name:
        parts.append(f"User Name: {session.user_name}")
    if session.email:
        parts.append(f"Email: {session.email}")
    return " ".join(parts)


def build_system_prompt(
    session: Optional[SessionInfo] = None,
    metadata: str = "",
    now: Optional[datetime] = None,
) -> str:
    """Fill in the user, date and (optional) database metadata sections."""
    now = now or datetime.now().astimezone()
    prompt = SYSTEM_PROMPT.format(
        user_details=user_details(session),
        date_details=now.strftime("%A, %B %d, %Y %H:%M:%S %Z").strip(),
    )
    if metadata:
        prompt += "\nDatabase:\n" + metadata + "\n"
    return prompt
