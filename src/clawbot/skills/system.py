"""Core system commands for memory and help."""

from .base import NoArgs, Skill, ToolContext, ToolSpec

HELP_TEXT = """I am ClawBot! 🦞

I can:
- 🐙 Manage GitHub: "List my repos", "Check issues in facebook/react"
- 🌐 Browse the Web: "Read https://example.com"
- 💼 Find jobs: "Read my CV at <link> and find matching jobs"
- 🧠 Remember Context: I recall our chat (until you /clear it)

Commands: /start, /clear, /help, /browse <url>, /review <url>, /pr <url>

Try saying: "What are the latest issues in facebook/react?\""""


def clear_memory(args: NoArgs, ctx: ToolContext) -> str:
    ctx.store.clear_history(ctx.chat_id)
    ctx.reset_requested = True
    return "Memory cleared! I have forgotten our previous conversation."


def get_help(args: NoArgs, ctx: ToolContext) -> str:
    return HELP_TEXT


system_skill = Skill(
    name="system",
    description="Core system commands for memory and help",
    tools=[
        ToolSpec(
            name="clear_memory",
            description=(
                "Clear the conversation memory/history. Use this when the user says "
                "/clear, /start, or 'forget everything'."
            ),
            handler=clear_memory,
        ),
        ToolSpec(
            name="get_help",
            description="Get help on how to use the bot and list capabilities.",
            handler=get_help,
        ),
    ],
)
