import re
import unittest
from pathlib import Path


def _workspace(**kw):
    from grove.contracts.v1 import Workspace

    doc = {"name": "feature-a", "path": Path("/repos/grove/feature-a"), "branch": "feature-a"}
    doc.update(kw)
    return Workspace(**doc)


class TestSessionNames(unittest.TestCase):
    def test_sanitize_examples(self) -> None:
        from grove.kernel.sessions import sanitize_workspace_name

        self.assertEqual(sanitize_workspace_name("feature/a b"), "feature-a-b")
        self.assertEqual(sanitize_workspace_name("--x--"), "x")
        self.assertEqual(sanitize_workspace_name("a__b"), "a__b")
        self.assertEqual(sanitize_workspace_name("a///b"), "a-b")
        self.assertEqual(sanitize_workspace_name("///"), "workspace")
        self.assertEqual(sanitize_workspace_name(""), "workspace")
        self.assertEqual(sanitize_workspace_name("café"), "caf")

    def test_sanitize_is_total_and_idempotent(self) -> None:
        from grove.kernel.sessions import sanitize_workspace_name

        samples = [
            "",
            "-",
            "main",
            "Feature_42",
            "fix: the thing!",
            "ünïcödé/名前",
            "  spaced  out  ",
            "a--b---c",
            "\t\n",
            "x" * 300,
        ]
        valid = re.compile(r"^[A-Za-z0-9_-]+$")
        for s in samples:
            once = sanitize_workspace_name(s)
            self.assertEqual(sanitize_workspace_name(once), once, s)
            self.assertTrue(valid.match(once), (s, once))
            self.assertFalse(once.startswith("-") or once.endswith("-"), once)
            self.assertNotIn("--", once)

    def test_primary_and_auxiliary_names(self) -> None:
        from grove.kernel.sessions import (
            git_session_name_for_workspace,
            session_name_for_workspace,
            session_name_for_workspace_in_project,
            session_name_for_workspace_ref,
            shell_session_name_for_workspace,
        )

        self.assertEqual(session_name_for_workspace("feature-a"), "grove-ws-feature-a")
        self.assertEqual(session_name_for_workspace_in_project("my proj", "ws 1"), "grove-ws-my-proj-ws-1")

        ws = _workspace(project_name="grove")
        self.assertEqual(session_name_for_workspace_ref(ws), "grove-ws-grove-feature-a")
        self.assertEqual(git_session_name_for_workspace(ws), "grove-ws-grove-feature-a-git")
        self.assertEqual(shell_session_name_for_workspace(ws), "grove-ws-grove-feature-a-shell")

    def test_project_prefix_can_collide(self) -> None:
        from grove.kernel.sessions import session_name_for_workspace_in_project

        self.assertEqual(
            session_name_for_workspace_in_project("a-b", "c"),
            session_name_for_workspace_in_project("a", "b-c"),
        )


class TestPreviewHelpers(unittest.TestCase):
    def test_start_stop_eligibility(self) -> None:
        from grove.contracts.v1 import WorkspaceStatus
        from grove.kernel.sessions import workspace_can_start_agent, workspace_can_stop_agent

        self.assertTrue(workspace_can_start_agent(_workspace(status=WorkspaceStatus.IDLE)))
        self.assertTrue(workspace_can_start_agent(_workspace(status=WorkspaceStatus.DONE)))
        self.assertFalse(workspace_can_start_agent(_workspace(status=WorkspaceStatus.ACTIVE)))
        self.assertFalse(workspace_can_start_agent(_workspace(supported_agent=False)))
        self.assertFalse(workspace_can_start_agent(None))

        self.assertTrue(workspace_can_stop_agent(_workspace(status=WorkspaceStatus.WAITING)))
        self.assertFalse(workspace_can_stop_agent(_workspace(status=WorkspaceStatus.IDLE)))
        self.assertFalse(workspace_can_stop_agent(None))

    def test_live_preview_targets(self) -> None:
        from grove.contracts.v1 import WorkspaceStatus
        from grove.kernel.sessions import (
            git_preview_session_if_ready,
            live_preview_agent_session,
            live_preview_capture_target_for_tab,
            workspace_can_enter_interactive,
            workspace_session_for_preview_tab,
        )

        idle = _workspace()
        active = _workspace(status=WorkspaceStatus.ACTIVE)

        self.assertIsNone(live_preview_agent_session(idle))
        self.assertEqual(live_preview_agent_session(active), "grove-ws-feature-a")
        self.assertFalse(workspace_can_enter_interactive(idle, False))
        self.assertTrue(workspace_can_enter_interactive(idle, True))

        self.assertIsNone(git_preview_session_if_ready(idle, set()))
        self.assertEqual(git_preview_session_if_ready(idle, {"grove-ws-feature-a-git"}), "grove-ws-feature-a-git")
        self.assertEqual(workspace_session_for_preview_tab(idle, True, "g"), "g")
        self.assertIsNone(workspace_session_for_preview_tab(None, True, "g"))

        target = live_preview_capture_target_for_tab(active, False, set())
        self.assertIsNotNone(target)
        self.assertEqual(target.session_name, "grove-ws-feature-a")
        self.assertTrue(target.include_escape_sequences)
        self.assertIsNone(live_preview_capture_target_for_tab(idle, False, set()))


if __name__ == "__main__":
    unittest.main()
