import subprocess
import unittest
from unittest import mock


def _completed(args, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=args, returncode=returncode, stdout=stdout, stderr=stderr)


class _FakeRun:
    """Stands in for subprocess.run; answers by tmux subcommand."""

    def __init__(self, answers):
        self.answers = answers
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append((list(args), kwargs))
        answer = self.answers.get(args[1], (0, "", ""))
        code, out, err = answer
        return _completed(args, code, out, err)


class TestCapture(unittest.TestCase):
    def test_capture_args_and_decode(self) -> None:
        from grove.runners import tmux

        fake = _FakeRun({"capture-pane": (0, "héllo\n".encode("utf-8"), b"")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            out = tmux.capture_session_output("grove-ws-a", 240)
            self.assertEqual(out, "héllo\n")
            tmux.capture_output("grove-ws-a", 100)
        self.assertEqual(fake.calls[0][0], ["tmux", "capture-pane", "-p", "-e", "-t", "grove-ws-a", "-S", "-240"])
        self.assertEqual(fake.calls[1][0], ["tmux", "capture-pane", "-p", "-t", "grove-ws-a", "-S", "-100"])

    def test_capture_failures(self) -> None:
        from grove.runners import tmux

        fake = _FakeRun({"capture-pane": (1, b"", b"can't find session: grove-ws-a\n")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            with self.assertRaises(tmux.CaptureError) as cm:
                tmux.capture_session_output("grove-ws-a")
        self.assertTrue(cm.exception.session_missing)
        self.assertEqual(str(cm.exception), "tmux capture-pane failed for 'grove-ws-a': can't find session: grove-ws-a")

        fake = _FakeRun({"capture-pane": (0, b"\xff\xfe", b"")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            with self.assertRaises(tmux.CaptureError) as cm:
                tmux.capture_session_output("grove-ws-a")
        self.assertFalse(cm.exception.session_missing)
        self.assertTrue(str(cm.exception).startswith("tmux output utf8 decode failed: "))


class TestSessions(unittest.TestCase):
    def test_list_sessions(self) -> None:
        from grove.runners import tmux

        fake = _FakeRun({"list-sessions": (0, "grove-ws-a\n\nother\n", "")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            self.assertEqual(tmux.list_sessions(), {"grove-ws-a", "other"})

        fake = _FakeRun({"list-sessions": (1, "", "no server running on /tmp/tmux-0/default\n")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            self.assertEqual(tmux.list_sessions(), set())

        fake = _FakeRun({"list-sessions": (1, "", "permission denied\n")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            with self.assertRaises(tmux.TmuxError):
                tmux.list_sessions()

    def test_has_session(self) -> None:
        from grove.runners import tmux

        with mock.patch("grove.runners.tmux.subprocess.run", _FakeRun({"has-session": (1, "", "")})):
            self.assertFalse(tmux.has_session("grove-ws-a"))
        with mock.patch("grove.runners.tmux.subprocess.run", _FakeRun({})):
            self.assertTrue(tmux.has_session("grove-ws-a"))

    def test_missing_tmux_binary(self) -> None:
        from grove.runners import tmux

        def boom(args, **kwargs):
            raise FileNotFoundError("tmux")

        with mock.patch("grove.runners.tmux.subprocess.run", boom):
            self.assertFalse(tmux.has_session("grove-ws-a"))
            with self.assertRaises(tmux.CaptureError):
                tmux.capture_output("grove-ws-a", 10)


class TestResizeAndPaste(unittest.TestCase):
    def test_resize_falls_back_to_pane(self) -> None:
        from grove.runners import tmux

        fake = _FakeRun({"resize-window": (1, "", "no such window")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            tmux.resize_session("grove-ws-a", 120, 40)
        self.assertEqual(
            [c[0][1] for c in fake.calls],
            ["set-option", "resize-window", "resize-pane"],
        )
        self.assertEqual(fake.calls[2][0], ["tmux", "resize-pane", "-t", "grove-ws-a", "-x", "120", "-y", "40"])

    def test_resize_failure_and_noop(self) -> None:
        from grove.runners import tmux

        fake = _FakeRun({"resize-window": (1, "", "bad window"), "resize-pane": (1, "", "bad pane")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            with self.assertRaises(tmux.TmuxError) as cm:
                tmux.resize_session("grove-ws-a", 80, 24)
            self.assertIn("resize-window=bad window; resize-pane=bad pane", str(cm.exception))

            fake.calls.clear()
            tmux.resize_session("grove-ws-a", 0, 24)
            self.assertEqual(fake.calls, [])

    def test_paste_buffer(self) -> None:
        from grove.runners import tmux

        fake = _FakeRun({})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            tmux.paste_buffer("grove-ws-a", "multi\nline")
        load, paste = fake.calls
        self.assertEqual(load[0], ["tmux", "load-buffer", "-"])
        self.assertEqual(load[1]["input"], b"multi\nline")
        self.assertEqual(paste[0], ["tmux", "paste-buffer", "-t", "grove-ws-a"])

        fake = _FakeRun({"load-buffer": (1, b"", b"")})
        with mock.patch("grove.runners.tmux.subprocess.run", fake):
            with self.assertRaises(tmux.TmuxError):
                tmux.paste_buffer("grove-ws-a", "x")
        self.assertEqual(len(fake.calls), 1)


if __name__ == "__main__":
    unittest.main()
