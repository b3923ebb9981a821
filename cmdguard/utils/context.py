"""Context sanitizing for confidence scoring.

Produces a copy of a shell command, of identical length, in which regions
that the shell will not execute are blanked out:

- comments
- quoted arguments of commands that only treat them as data (``echo``,
  ``grep``), and the values of git message options (``git commit -m``,
  ``git log --grep``)
- heredoc bodies fed to such commands

The confidence scorer compares a pattern match against this copy. A match
whose characters were blanked almost certainly sits in data rather than in
code.

This is a lightweight scanner, not a shell parser. When in doubt it leaves
text untouched, which keeps a match at full confidence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


FILLER = " "

# Commands that never execute their arguments or stdin.
INERT_COMMANDS = frozenset(
    {
        ":",
        "ack",
        "ag",
        "cat",
        "comm",
        "cut",
        "diff",
        "echo",
        "egrep",
        "false",
        "fgrep",
        "gh",
        "grep",
        "head",
        "jq",
        "less",
        "logger",
        "more",
        "printf",
        "rg",
        "sort",
        "tail",
        "tee",
        "tr",
        "true",
        "uniq",
        "wc",
        "yq",
    }
)

# git runs pager, ssh and alias values from its config through the shell, so
# only the values of its message options are treated as data.
_GIT_MESSAGE_FLAGS = {
    "commit": frozenset({"-m", "--message"}),
    "merge": frozenset({"-m", "--message"}),
    "notes": frozenset({"-m", "--message"}),
    "stash": frozenset({"-m", "--message"}),
    "tag": frozenset({"-m", "--message"}),
    "log": frozenset({"--grep"}),
}
# Global git options whose value is the next word.
_GIT_VALUE_OPTIONS = frozenset(
    {"-c", "-C", "--config-env", "--git-dir", "--work-tree", "--namespace", "--super-prefix"}
)

_SEPARATORS = frozenset(";&|()`\n")
_DELIMITER_STOP = frozenset(" \t\n;&|<>()")


def _is_assignment(word: str) -> bool:
    name, sep, _ = word.partition("=")
    return bool(sep) and name.isidentifier()


def _git_subcommand(args: list[str]) -> Optional[str]:
    expect_value = False
    for arg in args:
        if expect_value:
            expect_value = False
        elif arg in _GIT_VALUE_OPTIONS:
            expect_value = True
        elif not arg.startswith("-"):
            return arg
    return None


def _runs_shell_alias(content: str) -> bool:
    """True for "!cmd" and "alias.name=!cmd", which git hands to the shell."""
    if content.lstrip().startswith("!"):
        return True
    name, sep, value = content.partition("=")
    return bool(sep) and "alias." in name.lower() and value.lstrip().startswith("!")


@dataclass
class _PendingHeredoc:
    delimiter: str
    strip_tabs: bool
    inert: bool


@dataclass
class _ContextScanner:
    """Single left-to-right pass that records the ranges to blank out."""

    command: str
    ranges: list[tuple[int, int]] = field(default_factory=list)
    _line_ranges: list[tuple[int, int]] = field(default_factory=list)
    _word: list[str] = field(default_factory=list)
    _word_started: bool = False
    _segment_command: Optional[str] = None
    _segment_args: list[str] = field(default_factory=list)
    _after_pipe: bool = False
    _redirect_target: bool = False
    _line_feeds_executor: bool = False
    _heredocs: list[_PendingHeredoc] = field(default_factory=list)

    def scan(self) -> list[tuple[int, int]]:
        text = self.command
        i = 0
        length = len(text)
        while i < length:
            char = text[i]

            if char == "\\":
                if i + 1 < length and text[i + 1] != "\n":
                    self._word.append(text[i + 1])
                    self._word_started = True
                i += 2
                continue

            if char in "'\"":
                i = self._quoted(i)
                continue

            if char == "#" and not self._word_started:
                end = text.find("\n", i)
                end = length if end == -1 else end
                self.ranges.append((i, end))
                i = end
                continue

            if char == "<" and text.startswith("<<", i) and not text.startswith("<<<", i):
                i = self._heredoc_operator(i)
                continue

            if char == "\n":
                self._end_segment(pipe=False)
                i = self._heredoc_bodies(i + 1)
                self._end_line()
                continue

            if char in _SEPARATORS:
                pipe = char == "|" and not text.startswith("||", i) and not (
                    i > 0 and text[i - 1] == "|"
                )
                self._end_segment(pipe=pipe)
                i += 1
                continue

            if char in " \t":
                self._end_word()
                i += 1
                continue

            if char in "<>":
                self._end_word()
                self._redirect_target = True
                # ">&2" duplicates a descriptor; the "&" is not a separator.
                i += 2 if text.startswith("&", i + 1) else 1
                continue

            self._word.append(char)
            self._word_started = True
            i += 1

        self._end_segment(pipe=False)
        self._end_line()
        return self.ranges

    # Words and segments

    def _end_word(self) -> None:
        if not self._word_started:
            return
        word = "".join(self._word)
        self._word = []
        self._word_started = False
        if self._redirect_target:
            self._redirect_target = False
            return
        if self._segment_command is not None:
            self._segment_args.append(word)
        elif not _is_assignment(word):
            self._segment_command = word.rsplit("/", 1)[-1]
            if self._after_pipe and self._segment_command not in INERT_COMMANDS:
                self._line_feeds_executor = True

    def _end_segment(self, pipe: bool) -> None:
        self._end_word()
        self._segment_command = None
        self._segment_args = []
        self._redirect_target = False
        self._after_pipe = pipe

    def _end_line(self) -> None:
        if not self._line_feeds_executor:
            self.ranges.extend(self._line_ranges)
        self._line_ranges = []
        self._line_feeds_executor = False

    def _inert_segment(self) -> bool:
        return self._segment_command is not None and self._segment_command in INERT_COMMANDS

    # Quotes

    def _closing_quote(self, start: int) -> int:
        text = self.command
        quote = text[start]
        if quote == "'":
            return text.find("'", start + 1)
        i = start + 1
        while i < len(text):
            if text[i] == "\\":
                i += 2
                continue
            if text[i] == '"':
                return i
            i += 1
        return -1

    def _quoted(self, start: int) -> int:
        close = self._closing_quote(start)
        if close == -1:
            # Unterminated quote: leave the remainder alone.
            self._word.append(self.command[start:])
            self._word_started = True
            return len(self.command)

        content = self.command[start + 1 : close]
        prefix = "".join(self._word)
        self._word.append(content)
        self._word_started = True
        if self._should_mask_quote(self.command[start], content, prefix):
            self._line_ranges.append((start + 1, close))
        return close + 1

    def _should_mask_quote(self, quote: str, content: str, prefix: str) -> bool:
        if not content:
            return False
        if self._segment_command == "git":
            if not self._git_message_value(prefix) or _runs_shell_alias(content):
                return False
        elif not self._inert_segment():
            return False
        if quote == '"' and ("$(" in content or "`" in content):
            return False
        return True

    def _git_message_value(self, prefix: str) -> bool:
        """True when the quote being read is the value of a git message option."""
        flags = _GIT_MESSAGE_FLAGS.get(_git_subcommand(self._segment_args) or "")
        if not flags:
            return False
        if prefix:
            # --message='...' or -m'...'
            if prefix.endswith("="):
                return prefix[:-1] in flags
            return prefix == "-m" and prefix in flags
        return bool(self._segment_args) and self._segment_args[-1] in flags

    # Heredocs

    def _heredoc_operator(self, start: int) -> int:
        text = self.command
        i = start + 2
        strip_tabs = i < len(text) and text[i] == "-"
        if strip_tabs:
            i += 1
        while i < len(text) and text[i] in " \t":
            i += 1

        if i < len(text) and text[i] in "'\"":
            close = text.find(text[i], i + 1)
            if close == -1:
                return len(text)
            delimiter = text[i + 1 : close]
            end = close + 1
        else:
            end = i
            while end < len(text) and text[end] not in _DELIMITER_STOP:
                end += 1
            delimiter = text[i:end].replace("\\", "")

        if not delimiter:
            self._end_word()
            return i
        self._end_word()
        self._heredocs.append(_PendingHeredoc(delimiter, strip_tabs, self._inert_segment()))
        return end

    def _heredoc_bodies(self, pos: int) -> int:
        text = self.command
        for heredoc in self._heredocs:
            body_start = pos
            body_end = len(text)
            while pos < len(text):
                line_end = text.find("\n", pos)
                line_end = len(text) if line_end == -1 else line_end
                line = text[pos:line_end]
                if heredoc.strip_tabs:
                    line = line.lstrip("\t")
                if line == heredoc.delimiter:
                    body_end = pos
                    pos = min(line_end + 1, len(text))
                    break
                pos = line_end + 1
            else:
                pos = len(text)
            if heredoc.inert and body_end > body_start:
                self._line_ranges.append((body_start, body_end))
        self._heredocs = []
        return pos


def masked_ranges(command: str) -> list[tuple[int, int]]:
    """Return the ``[start, end)`` ranges of ``command`` that are not executed."""
    if not command:
        return []
    return sorted(_ContextScanner(command).scan())


def sanitize_for_pattern_matching(command: str) -> str:
    """Blank out non-executed regions of ``command``, preserving its length.

    Newlines inside masked regions are kept so line structure survives.
    """
    ranges = masked_ranges(command)
    if not ranges:
        return command
    chars = list(command)
    for start, end in ranges:
        for index in range(start, end):
            if chars[index] != "\n":
                chars[index] = FILLER
    return "".join(chars)


__all__ = [
    "FILLER",
    "INERT_COMMANDS",
    "masked_ranges",
    "sanitize_for_pattern_matching",
]
