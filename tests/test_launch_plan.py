import tempfile
import unittest
from pathlib import Path


def _request(**kw):
    from grove.contracts.v1 import LaunchRequest

    doc = {"workspace_name": "feature-a", "workspace_path": Path("/repos/feature-a")}
    doc.update(kw)
    return LaunchRequest(**doc)


class TestBuildLaunchPlan(unittest.TestCase):
    def test_plain_agent_launch(self) -> None:
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(_request(), environ={})
        s = "grove-ws-feature-a"
        self.assertEqual(plan.session_name, s)
        self.assertEqual(plan.pane_lookup_cmd, ["tmux", "list-panes", "-t", s, "-F", "#{pane_id}"])
        self.assertEqual(
            plan.pre_launch_cmds,
            [
                ["tmux", "new-session", "-d", "-s", s, "-c", "/repos/feature-a"],
                ["tmux", "set-option", "-t", s, "history-limit", "10000"],
            ],
        )
        self.assertEqual(plan.launch_cmd, ["tmux", "send-keys", "-t", s, "claude", "Enter"])
        self.assertIsNone(plan.launcher_script)

    def test_agent_table(self) -> None:
        from grove.contracts.v1 import AgentType
        from grove.kernel.launch_plan import build_launch_plan

        cases = [
            (AgentType.CLAUDE, False, "claude"),
            (AgentType.CLAUDE, True, "claude --dangerously-skip-permissions"),
            (AgentType.CODEX, False, "codex"),
            (AgentType.CODEX, True, "codex --dangerously-bypass-approvals-and-sandbox"),
            (AgentType.OPENCODE, False, "opencode"),
            (AgentType.OPENCODE, True, "opencode"),
        ]
        for agent, skip, line in cases:
            plan = build_launch_plan(_request(agent=agent, skip_permissions=skip), environ={})
            self.assertEqual(plan.launch_cmd[4], line, (agent, skip))

    def test_opencode_skip_permissions_env(self) -> None:
        from grove.contracts.v1 import AgentType
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(_request(agent=AgentType.OPENCODE, skip_permissions=True), environ={})
        new_session = plan.pre_launch_cmds[0]
        self.assertIn('OPENCODE_PERMISSION={"*":"allow"}', new_session)
        self.assertEqual(new_session[new_session.index('OPENCODE_PERMISSION={"*":"allow"}') - 1], "-e")

    def test_dimensions_and_env_overrides(self) -> None:
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(
            _request(capture_cols=120, capture_rows=40, agent_env=[("CLAUDE_CONFIG_DIR", "/tmp/c")]),
            environ={},
        )
        self.assertEqual(
            plan.pre_launch_cmds[0],
            [
                "tmux",
                "new-session",
                "-d",
                "-s",
                "grove-ws-feature-a",
                "-c",
                "/repos/feature-a",
                "-x",
                "120",
                "-y",
                "40",
                "-e",
                "CLAUDE_CONFIG_DIR=/tmp/c",
            ],
        )

        only_cols = build_launch_plan(_request(capture_cols=120), environ={})
        self.assertNotIn("-x", only_cols.pre_launch_cmds[0])
        zero = build_launch_plan(_request(capture_cols=0, capture_rows=40), environ={})
        self.assertNotIn("-x", zero.pre_launch_cmds[0])

    def test_command_override_env(self) -> None:
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(_request(skip_permissions=True), environ={"GROVE_CLAUDE_CMD": "claude-beta"})
        self.assertEqual(plan.launch_cmd[4], "claude-beta --dangerously-skip-permissions")

    def test_prompt_uses_launcher_script(self) -> None:
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(_request(prompt="Fix the flaky test.\nThen run it."), environ={})
        script = plan.launcher_script
        self.assertIsNotNone(script)
        self.assertEqual(script.path, Path("/repos/feature-a/.grove/start.sh"))
        self.assertTrue(script.contents.startswith("#!/usr/bin/env bash\n"))
        self.assertIn("GROVE_PROMPT=$(cat <<'GROVE_PROMPT_EOF'\nFix the flaky test.\nThen run it.\nGROVE_PROMPT_EOF\n)", script.contents)
        self.assertTrue(script.contents.endswith('exec claude "$GROVE_PROMPT"\n'))
        self.assertEqual(
            plan.launch_cmd,
            ["tmux", "send-keys", "-t", "grove-ws-feature-a", "bash /repos/feature-a/.grove/start.sh", "Enter"],
        )

    def test_opencode_prompt_flag(self) -> None:
        from grove.contracts.v1 import AgentType
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(_request(agent=AgentType.OPENCODE, prompt="hi"), environ={})
        self.assertTrue(plan.launcher_script.contents.endswith('exec opencode --prompt "$GROVE_PROMPT"\n'))

    def test_init_command_without_prompt(self) -> None:
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(_request(workspace_init_command="  direnv allow  "), environ={})
        self.assertEqual(plan.launcher_script.contents, "#!/usr/bin/env bash\ndirenv allow\nexec claude\n")

    def test_prompt_containing_delimiter(self) -> None:
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(_request(prompt="a\nGROVE_PROMPT_EOF\nb"), environ={})
        self.assertIn("<<'GROVE_PROMPT_EOF_1'", plan.launcher_script.contents)
        self.assertIn("\nGROVE_PROMPT_EOF_1\n)", plan.launcher_script.contents)

    def test_building_touches_nothing_on_disk(self) -> None:
        from grove.kernel.launch_plan import build_launch_plan

        with tempfile.TemporaryDirectory() as td:
            plan = build_launch_plan(_request(workspace_path=Path(td), prompt="go"), environ={})
            self.assertIsNotNone(plan.launcher_script)
            self.assertFalse((Path(td) / ".grove").exists())

    def test_project_prefixed_session(self) -> None:
        from grove.kernel.launch_plan import build_launch_plan

        plan = build_launch_plan(_request(project_name="grove"), environ={})
        self.assertEqual(plan.session_name, "grove-ws-grove-feature-a")


class TestShellAndStopPlans(unittest.TestCase):
    def test_shell_plan(self) -> None:
        from grove.contracts.v1 import ShellLaunchRequest
        from grove.kernel.launch_plan import build_shell_launch_plan

        req = ShellLaunchRequest(
            session_name="grove-ws-feature-a-shell",
            workspace_path=Path("/repos/feature-a"),
            command="npm run dev",
            workspace_init_command="direnv allow",
        )
        plan = build_shell_launch_plan(req)
        self.assertEqual(plan.session_name, "grove-ws-feature-a-shell")
        self.assertEqual(plan.pre_launch_cmds[0][:5], ["tmux", "new-session", "-d", "-s", "grove-ws-feature-a-shell"])
        self.assertEqual(
            plan.launch_cmd,
            ["tmux", "send-keys", "-t", "grove-ws-feature-a-shell", "direnv allow; npm run dev", "Enter"],
        )

        empty = build_shell_launch_plan(req.model_copy(update={"command": "", "workspace_init_command": None}))
        self.assertEqual(empty.launch_cmd, [])

    def test_stop_plan(self) -> None:
        from grove.kernel.launch_plan import stop_plan

        self.assertEqual(stop_plan("grove-ws-a"), [["tmux", "kill-session", "-t", "grove-ws-a"]])

    def test_requests_from_workspace(self) -> None:
        from grove.contracts.v1 import AgentType, Workspace
        from grove.kernel.launch_plan import launch_request_for_workspace, shell_launch_request_for_workspace

        ws = Workspace(name="feature-a", path=Path("/repos/feature-a"), branch="feature-a", agent=AgentType.CODEX, project_name="grove")
        req = launch_request_for_workspace(ws, prompt="go", skip_permissions=True, agent_env=[("A", "1")])
        self.assertEqual(req.project_name, "grove")
        self.assertEqual(req.agent, AgentType.CODEX)
        self.assertEqual(req.agent_env, [("A", "1")])

        shell = shell_launch_request_for_workspace(ws, "grove-ws-grove-feature-a-shell", "ls")
        self.assertEqual(shell.workspace_path, Path("/repos/feature-a"))
        self.assertEqual(shell.command, "ls")

    def test_duplicate_session_error(self) -> None:
        from grove.kernel.launch_plan import tmux_launch_error_indicates_duplicate_session

        self.assertTrue(tmux_launch_error_indicates_duplicate_session("command failed: tmux new-session; duplicate session: grove-ws-a"))
        self.assertFalse(tmux_launch_error_indicates_duplicate_session("no server running"))


if __name__ == "__main__":
    unittest.main()
