"""Integration tests for Engine + LLM + Tools interaction."""

import json

from clawbot.engine import FALLBACK_REPLY
from clawbot.llm import OpenAI
from clawbot.models import ASSISTANT_ROLE, USER_ROLE, InboundMessage
from clawbot.web import PageContent


class TestEngineLLMIntegration:
    """Test Engine and LLM working together with real implementations."""

    def test_basic_conversation_flow_with_echo(self, test_app, recorder):
        reply = test_app.handle_message(InboundMessage(chat_id="1", text="Hello, Echo!"))

        assert "Echo LLM" in reply
        assert "Hello, Echo!" in reply
        assert recorder.sent == [("1", reply)]

        history = test_app.store.load_history("1")
        assert [m.role for m in history] == [USER_ROLE, ASSISTANT_ROLE]
        assert history[0].content == "Hello, Echo!"

    def test_multi_turn_conversation(self, test_app):
        test_app.handle_message(InboundMessage(chat_id="1", text="First message"))
        test_app.handle_message(InboundMessage(chat_id="1", text="Second message"))

        history = test_app.store.load_history("1")
        assert len(history) == 4
        assert history[0].content == "First message"
        assert history[2].content == "Second message"


class TestScenarios:
    """End-to-end runs of the loop with the built-in skills."""

    def test_list_repositories(self, bot, scripted_llm, mock_github, make_tool_call, recorder):
        mock_github.fetch_user_repos.return_value = "📂 me/clawbot (public)\n📂 me/site (public)"
        scripted_llm.script = [[make_tool_call("get_repos")], "You have 2 repos: clawbot and site."]

        bot.handle_message(InboundMessage(chat_id="9", text="What are my repos?"))

        assert len(scripted_llm.calls) == 2
        second_prompt = scripted_llm.calls[1]["messages"][-1]["content"]
        assert "[get_repos] 📂 me/clawbot (public)" in second_prompt
        assert recorder.sent == [("9", "You have 2 repos: clawbot and site.")]

    def test_chained_tools(self, bot, scripted_llm, mock_github, make_tool_call):
        """Set a repository, then read its issues, then answer."""
        mock_github.fetch_issues.return_value = "#12 [Issue] Crash on start (by ana)"
        scripted_llm.script = [
            [make_tool_call("set_repo", {"repo": "me/clawbot"})],
            [make_tool_call("get_issues", {"owner": "me", "repo": "clawbot"})],
            "There is one open issue: #12 Crash on start.",
        ]

        reply = bot.handle_message(InboundMessage(chat_id="9", text="Use me/clawbot and show issues"))

        assert reply == "There is one open issue: #12 Crash on start."
        assert bot.store.get_value("repo:9") == "me/clawbot"
        assert scripted_llm.calls[2]["tools"] is None
        final_prompt = scripted_llm.calls[2]["messages"][-1]["content"]
        assert "[set_repo] Default repository set to me/clawbot" in final_prompt
        assert "[get_issues] #12 [Issue] Crash on start (by ana)" in final_prompt

    def test_mixed_success_and_failure(self, bot, scripted_llm, mock_github, mock_web, make_tool_call):
        mock_github.fetch_user_repos.return_value = "📂 me/clawbot (public)"
        mock_web.browse_page.return_value = PageContent(url="https://x.dev", title="X", text="Hi")
        scripted_llm.script = [
            [
                make_tool_call("get_repos"),
                make_tool_call("get_issues", {"owner": "me"}),
                make_tool_call("browse_page", {"url": "https://x.dev"}),
            ],
            "Partial answer.",
        ]

        bot.handle_message(InboundMessage(chat_id="9", text="Do everything"))

        lines = scripted_llm.calls[1]["messages"][-1]["content"]
        assert "[get_repos] 📂 me/clawbot (public)" in lines
        assert "[get_issues] Invalid arguments for get_issues" in lines
        assert "[browse_page] Browsed content from https://x.dev" in lines

    def test_tool_loop_hits_ceiling(self, bot, scripted_llm, mock_github, make_tool_call, recorder):
        mock_github.fetch_user_repos.return_value = "📂 me/clawbot (public)"
        scripted_llm.script = [[make_tool_call("get_repos")] for _ in range(3)]

        bot.handle_message(InboundMessage(chat_id="9", text="Loop"))

        assert len(scripted_llm.calls) == 3
        assert recorder.sent == [("9", FALLBACK_REPLY)]
        assert bot.store.load_history("9")[-1].content == FALLBACK_REPLY

    def test_job_preferences_feed_daily_briefing(self, bot, scripted_llm, make_tool_call, recorder):
        scripted_llm.script = [
            [make_tool_call("save_job_preferences", {"role": "Backend", "keywords": ["python"]})],
            "Saved! I'll brief you daily.",
            "Today's jobs: none yet.",
        ]

        bot.handle_message(InboundMessage(chat_id="9", text="Send me backend python jobs daily"))
        assert json.loads(bot.store.get_value("prefs:9"))["role"] == "Backend"

        assert bot.run_daily_briefing() == 1
        assert recorder.sent[-1] == ("9", "Today's jobs: none yet.")


class TestOpenAIWithEngine:
    def test_openai_tool_round_trip(self, bot, mock_github):
        """The OpenAI provider's parsed tool calls drive the real executor."""
        from types import SimpleNamespace
        from unittest.mock import MagicMock

        def response(content=None, tool_calls=None):
            message = SimpleNamespace(content=content, tool_calls=tool_calls)
            return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        llm = OpenAI.__new__(OpenAI)
        llm.client = MagicMock()
        llm.model = "gpt-4o"
        llm.temperature = 0.8
        llm.client.chat.completions.create.side_effect = [
            response(
                tool_calls=[
                    SimpleNamespace(
                        id="call_1",
                        function=SimpleNamespace(name="get_repos", arguments="{}"),
                    )
                ]
            ),
            response(content="You have one repo."),
        ]
        mock_github.fetch_user_repos.return_value = "📂 me/clawbot (public)"
        bot.llm = llm

        reply = bot.handle_message(InboundMessage(chat_id="3", text="repos?"))

        assert reply == "You have one repo."
        first, second = llm.client.chat.completions.create.call_args_list
        assert first.kwargs["tool_choice"] == "auto"
        assert "[get_repos]" in second.kwargs["messages"][-1]["content"]
