import os
import tempfile
import unittest
from pathlib import Path


class TestSettings(unittest.TestCase):
    def test_missing_file_yields_defaults(self) -> None:
        from grove.kernel.settings import load_settings

        old_home = os.environ.get("GROVE_HOME")
        try:
            with tempfile.TemporaryDirectory() as td:
                os.environ["GROVE_HOME"] = td
                settings = load_settings()
                self.assertFalse(settings.launch_skip_permissions)
                self.assertEqual(settings.projects, [])
                self.assertEqual(settings.log_level, "")
        finally:
            if old_home is None:
                os.environ.pop("GROVE_HOME", None)
            else:
                os.environ["GROVE_HOME"] = old_home

    def test_save_then_load(self) -> None:
        from grove.kernel.settings import GroveSettings, ProjectConfig, ProjectDefaults, load_settings, save_settings

        old_home = os.environ.get("GROVE_HOME")
        try:
            with tempfile.TemporaryDirectory() as td:
                os.environ["GROVE_HOME"] = td
                save_settings(
                    GroveSettings(
                        launch_skip_permissions=True,
                        log_level="debug",
                        projects=[
                            ProjectConfig(
                                name="grove",
                                path=Path(td) / "repo",
                                defaults=ProjectDefaults(
                                    base_branch="main",
                                    workspace_init_command="direnv allow",
                                    agent_env={"codex": ["OPENAI_BASE_URL=http://localhost:8080"]},
                                ),
                            )
                        ],
                    )
                )
                self.assertTrue((Path(td) / "settings.yaml").exists())

                settings = load_settings()
                self.assertTrue(settings.launch_skip_permissions)
                self.assertEqual(settings.log_level, "DEBUG")
                project = settings.project_named("grove")
                self.assertIsNotNone(project)
                assert project is not None
                self.assertEqual(project.defaults.base_branch, "main")
                self.assertEqual(project.defaults.workspace_init_command, "direnv allow")
                from grove.contracts.v1 import AgentType

                self.assertEqual(
                    project.defaults.env_for(AgentType.CODEX), [("OPENAI_BASE_URL", "http://localhost:8080")]
                )
                self.assertEqual(project.defaults.env_for(AgentType.CLAUDE), [])
                self.assertIsNone(settings.project_named("other"))
        finally:
            if old_home is None:
                os.environ.pop("GROVE_HOME", None)
            else:
                os.environ["GROVE_HOME"] = old_home

    def test_unreadable_yaml_falls_back(self) -> None:
        from grove.kernel.settings import load_settings

        old_home = os.environ.get("GROVE_HOME")
        try:
            with tempfile.TemporaryDirectory() as td:
                os.environ["GROVE_HOME"] = td
                (Path(td) / "settings.yaml").write_text("projects: [unclosed\n", encoding="utf-8")
                settings = load_settings()
                self.assertEqual(settings.projects, [])
        finally:
            if old_home is None:
                os.environ.pop("GROVE_HOME", None)
            else:
                os.environ["GROVE_HOME"] = old_home

    def test_from_dict_legacy_and_loose_values(self) -> None:
        from grove.kernel.settings import GroveSettings

        settings = GroveSettings.from_dict(
            {
                "launch_skip_permissions": "yes",
                "projects": [
                    {"name": "a", "path": "/repos/a", "defaults": {"setup_commands": ["", "  make deps "]}},
                    {"name": "", "path": "/repos/b"},
                    "junk",
                ],
            }
        )
        self.assertTrue(settings.launch_skip_permissions)
        self.assertEqual([p.name for p in settings.projects], ["a"])
        self.assertEqual(settings.projects[0].defaults.workspace_init_command, "make deps")

    def test_parse_agent_env(self) -> None:
        from grove.kernel.settings import parse_agent_env

        self.assertEqual(
            parse_agent_env([" KEY =a=b", "NOEQUALS", "1BAD=x", "_OK= spaced ", 42]),
            [("KEY", "a=b"), ("_OK", " spaced ")],
        )
        self.assertEqual(parse_agent_env("KEY=VALUE"), [])


class TestCoerceBool(unittest.TestCase):
    def test_values(self) -> None:
        from grove.util.conv import coerce_bool

        self.assertTrue(coerce_bool("on"))
        self.assertFalse(coerce_bool("false", default=True))
        self.assertTrue(coerce_bool("", default=True))
        self.assertFalse(coerce_bool("maybe"))
        self.assertTrue(coerce_bool(2))


if __name__ == "__main__":
    unittest.main()
