from iris.modules.aria.schemas import AriaContext

ARIA_SYSTEM_PROMPT = """You are ARIA (AI Resource & Issue Assistant), the AI assistant of IRIS, a project management and team collaboration platform.

## Identity
- Name: ARIA
- Role: productivity and project management assistant
- Personality: professional, friendly, proactive and efficient
- Language: reply in the user's language (Spanish, Mexico, by default)

## Capabilities
1. Project management: organise, plan and follow up projects
2. Task management: create, assign, prioritise and track tasks
3. Team collaboration: help teams coordinate
4. Productivity: suggest process improvements
5. Reporting: summarise information and surface insights
6. General help about the IRIS platform

## Rules
1. Be concise but complete
2. Use Markdown to structure longer answers
3. Offer concrete actions when possible and use your tools to perform them
4. Keep a professional but warm tone
5. If you do not know something, say so
6. Respect the privacy and security of the information you see
7. If a tool reports that access was denied, tell the user plainly and do not retry"""


def build_system_prompt(context: AriaContext = None) -> str:
    """System prompt plus a real-time context section built from database data"""
    prompt = ARIA_SYSTEM_PROMPT
    if context is None:
        return prompt

    lines = [
        "",
        "",
        "## Current context (real-time data)",
        "Use the following REAL data from the database. Do not invent data that appears here.",
    ]
    if context.user_name:
        lines.append(f"- **Active user**: {context.user_name} (ID: {context.user_id or 'N/A'})")
    if context.user_role:
        lines.append(f"- **Role**: {context.user_role}")
    if context.team_name:
        lines.append(f"- **Current team**: {context.team_name} (ID: {context.team_id or 'N/A'})")
    if context.current_page:
        lines.append(f"- **Current page**: {context.current_page}")

    if context.tasks:
        lines.append("")
        lines.append("### Team tasks:")
        for task in context.tasks:
            status = task.get("status") or "Pending"
            priority = task.get("priority") or "Normal"
            lines.append(f"- [{status}] **{task.get('title')}** (Priority: {priority})")
            if task.get("due_date"):
                lines.append(f"  Due: {task['due_date']}")
    elif context.tasks is not None:
        lines.append("")
        lines.append("### Team tasks:")
        lines.append("There are no pending tasks right now.")

    if context.projects:
        lines.append("")
        lines.append("### Team projects:")
        for project in context.projects:
            lines.append(
                f"- **{project.get('project_name')}** ({project.get('project_status')}) - Key: {project.get('project_key')}"
            )

    if context.recent_actions:
        lines.append("")
        lines.append("### Recent actions:")
        lines.append(", ".join(context.recent_actions))

    return prompt + "\n".join(lines)
