"""Tests for slashkit.core.debug."""

from io import StringIO

from rich.console import Console

from slashkit.core.debug import DebugLogger


def _logger(tmp_path=None, verbose=False):
    buf = StringIO()
    console = Console(file=buf, force_terminal=False, width=200)
    log_file = str(tmp_path / "debug.log") if tmp_path else ""
    logger = DebugLogger(console=console, log_file=log_file)
    logger.set_verbose(verbose)
    return logger, buf


class TestDebugLogger:
    def test_warn_goes_to_console(self):
        logger, buf = _logger()
        logger.warn("careful", 3)
        assert "careful 3" in buf.getvalue()

    def test_debug_hidden_unless_verbose(self):
        logger, buf = _logger()
        logger.debug("hidden")
        assert buf.getvalue() == ""

        logger.set_verbose(True)
        logger.debug("shown")
        assert "shown" in buf.getvalue()

    def test_exceptions_formatted(self):
        logger, buf = _logger()
        logger.error("failed:", ValueError("bad input"))
        assert "ValueError: bad input" in buf.getvalue()

    def test_markup_is_not_interpreted(self):
        logger, buf = _logger()
        logger.log("[bold]x[/bold]")
        assert "[bold]x[/bold]" in buf.getvalue()

    def test_log_file_receives_every_level(self, tmp_path):
        logger, _ = _logger(tmp_path)
        logger.log("one")
        logger.debug("two")
        content = (tmp_path / "debug.log").read_text()
        assert "[LOG] one" in content
        assert "[DEBUG] two" in content

    def test_delegate_receives_calls(self):
        logger, buf = _logger()
        seen = []

        class Capture:
            def log(self, *args):
                seen.append(("log", args))

            def warn(self, *args):
                seen.append(("warn", args))

            def error(self, *args):
                seen.append(("error", args))

            def debug(self, *args):
                seen.append(("debug", args))

        logger.set_delegate(Capture())
        logger.warn("x")
        assert seen == [("warn", ("x",))]
        assert buf.getvalue() == ""


class TestPrefixedLogger:
    def test_prefix_added(self):
        logger, buf = _logger()
        logger.get_logger("extensions").warn("skipping")
        assert "[extensions] skipping" in buf.getvalue()
