"""
Task line parsing and serialization

A task line looks like:

    - [ ] Buy milk #groceries !!2 📅2024-03-01 ⏰09:30 ⏳30min ///errands #tdsync

Tokens are pulled out by an ordered pipeline of extractors. Each extractor
works on the residual text left by the previous one, so the text that remains
at the end is the task content.
"""

import re
from typing import Dict, List, NamedTuple, Optional, Pattern, Tuple
from urllib.parse import quote
from tdsync.config.settings import Settings, settings as default_settings
from tdsync.config.constants import (
    DUE_DATE_KEYWORDS,
    DUE_DATE_ALTERNATIVE_KEYWORDS,
    DUE_TIME_KEYWORDS,
    DUE_TIME_ALTERNATIVE_KEYWORDS,
    DURATION_KEYWORDS,
    DURATION_ALTERNATIVE_KEYWORDS,
    DEFAULT_DUE_DATE_KEYWORD,
    DEFAULT_DUE_TIME_KEYWORD,
    DURATION_UNIT_MINUTE,
    MAX_DURATION_MINUTES,
    MISSING_FLAG_STYLE,
    TASK_DEFAULT_PRIORITY,
    TODOIST_TASK_URL,
    TODOIST_TASK_APP_URI,
)
from tdsync.models.task import Task, Duration
from tdsync.services.task_cache import TaskCacheService
from tdsync.services.project_cache_service import ProjectCacheService
from tdsync.utils.date_parser import normalize_date, normalize_time
from tdsync.utils.date_utils import get_current_date_str
from tdsync.utils.logger import logger

CHECKBOX_PATTERN = re.compile(r"^\s*[-*]\s+\[([ xX])\]\s+")
CHECKBOX_PREFIX_PATTERN = re.compile(r"^(\s*[-*]\s+)\[[ xX]\]")
TASK_LINK_PATTERN = re.compile(
    r"\s?%%\[tid::\s*\[([a-zA-Z0-9]+)\]"
    r"\((?:https://app\.todoist\.com/app/task/[a-zA-Z0-9]+|todoist://task\?id=[a-zA-Z0-9]+)\)\]%%"
)
PROJECT_PATTERN = re.compile(r"%%\[p::\s*([^\]]+?)\s*\]%%")
INLINE_METADATA_PATTERN = re.compile(r"%%\[\w+::\s*[^\]]*\]%%")
DEADLINE_PATTERN = re.compile(r"\{\{([^{}]*)\}\}")
SECTION_PATTERN = re.compile(r"///([\w-]+)")
PRIORITY_PATTERN = re.compile(r"(?<!\S)!!([1-4])(?!\S)")
LABEL_PATTERN = re.compile(r"(?<!\S)#([\w-]+)")
TAB_INDENT_PATTERN = re.compile(r"^(\t+)")
FRONTMATTER_PATTERN = re.compile(r"^---\n[\s\S]*?\n---\n")


def _alternation(keywords: List[str]) -> str:
    # Longest first so "🗓️" wins over its base character "🗓"
    return "|".join(re.escape(keyword) for keyword in sorted(keywords, key=len, reverse=True))


class TokenExtractor(NamedTuple):
    """One step of the line parsing pipeline"""
    name: str
    pattern: Pattern


class TaskParser:
    """Converts task lines to tasks and rewrites task lines"""

    def __init__(
        self,
        cache: TaskCacheService,
        project_cache: Optional[ProjectCacheService] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize task parser

        Args:
            cache: Task cache used for parent and catalogue lookups
            project_cache: Resolves or creates projects and sections
            settings: Application settings
        """
        self.cache = cache
        self.project_cache = project_cache
        self.settings = settings or default_settings
        self.logger = logger

        date_keywords = list(DUE_DATE_KEYWORDS)
        time_keywords = list(DUE_TIME_KEYWORDS)
        duration_keywords = list(DURATION_KEYWORDS)
        if self.settings.ALTERNATIVE_KEYWORDS:
            date_keywords += DUE_DATE_ALTERNATIVE_KEYWORDS
            time_keywords += DUE_TIME_ALTERNATIVE_KEYWORDS
            duration_keywords += DURATION_ALTERNATIVE_KEYWORDS

        self.sync_tag = self.settings.SYNC_TAG
        self.sync_tag_pattern = re.compile(
            rf"(?<!\S){re.escape(self.sync_tag)}(?![\w-])", re.IGNORECASE
        )
        self.due_date_pattern = re.compile(
            rf"(?P<kw>{_alternation(date_keywords)})(?P<sp>\s?)"
            rf"(?P<value>\d{{2}}(?:\d{{2}})?-\d{{1,2}}-\d{{1,2}})(?!\d)"
        )
        self.due_time_pattern = re.compile(
            rf"(?P<kw>{_alternation(time_keywords)})(?P<sp>\s?)(?P<value>\d{{1,2}}:\d{{2}})(?!\d)"
        )
        self.duration_pattern = re.compile(
            rf"(?:{_alternation(duration_keywords)})\s?(\d+)min\b"
        )
        # Emoji keywords on their own, or "@" followed by a digit
        leftover = [_alternation(DUE_DATE_KEYWORDS)]
        if self.settings.ALTERNATIVE_KEYWORDS:
            leftover.append(r"@\s?\d")
        self.calendar_leftover_pattern = re.compile("|".join(leftover))
        self.missing_flag_pattern = re.compile(
            rf"\s*<mark[^>]*>\+\+\+{re.escape(self.settings.NON_EXISTING_TASK_FLAG)}\+\+\+</mark>"
        )

        self.extractors: Tuple[TokenExtractor, ...] = (
            TokenExtractor("checkbox", CHECKBOX_PATTERN),
            TokenExtractor("missing_flag", self.missing_flag_pattern),
            TokenExtractor("task_link", TASK_LINK_PATTERN),
            TokenExtractor("project", PROJECT_PATTERN),
            TokenExtractor("inline_metadata", INLINE_METADATA_PATTERN),
            TokenExtractor("deadline", DEADLINE_PATTERN),
            TokenExtractor("due_date", self.due_date_pattern),
            TokenExtractor("due_time", self.due_time_pattern),
            TokenExtractor("duration", self.duration_pattern),
            TokenExtractor("section", SECTION_PATTERN),
            TokenExtractor("priority", PRIORITY_PATTERN),
            TokenExtractor("sync_tag", self.sync_tag_pattern),
            TokenExtractor("labels", LABEL_PATTERN),
        )

    # Token pipeline

    def extract_tokens(self, line: str) -> Tuple[Dict[str, List[str]], str]:
        """
        Run every extractor over the line

        Args:
            line: Task line

        Returns:
            Extracted values per extractor name and the residual text
        """
        values: Dict[str, List[str]] = {}
        residual = line
        for extractor in self.extractors:
            found = []
            for match in extractor.pattern.finditer(residual):
                groups = match.groupdict()
                if "value" in groups:
                    found.append(groups["value"])
                elif match.groups():
                    found.append(match.group(1))
                else:
                    found.append(match.group(0))
            values[extractor.name] = found
            if found:
                residual = extractor.pattern.sub(" ", residual)
        return values, residual

    # Line queries

    def has_sync_tag(self, line: str) -> bool:
        return bool(self.sync_tag_pattern.search(line))

    def is_task_line(self, line: str) -> bool:
        """Check that the line is a checkbox item carrying the sync tag"""
        return bool(CHECKBOX_PATTERN.match(line)) and self.has_sync_tag(line)

    @staticmethod
    def is_checkbox_line(line: str) -> bool:
        return bool(CHECKBOX_PATTERN.match(line))

    @staticmethod
    def has_task_id(line: str) -> bool:
        return bool(TASK_LINK_PATTERN.search(line))

    @staticmethod
    def get_task_id(line: str) -> Optional[str]:
        match = TASK_LINK_PATTERN.search(line)
        return match.group(1) if match else None

    @staticmethod
    def is_completed(line: str) -> bool:
        match = CHECKBOX_PATTERN.match(line)
        return bool(match) and match.group(1) in ("x", "X")

    def has_missing_flag(self, line: str) -> bool:
        return bool(self.missing_flag_pattern.search(line))

    def count_sync_tags(self, text: str) -> int:
        return len(self.sync_tag_pattern.findall(text))

    @staticmethod
    def count_task_links(text: str) -> int:
        return len(TASK_LINK_PATTERN.findall(text))

    @staticmethod
    def get_tab_indentation(line: str) -> int:
        match = TAB_INDENT_PATTERN.match(line)
        return len(match.group(1)) if match else 0

    @staticmethod
    def strip_frontmatter(text: str) -> str:
        return FRONTMATTER_PATTERN.sub("", text, count=1)

    def get_due_date(self, line: str) -> Optional[str]:
        match = self.due_date_pattern.search(line)
        return normalize_date(match.group("value")) if match else None

    def get_due_time(self, line: str) -> Optional[str]:
        match = self.due_time_pattern.search(line)
        return normalize_time(match.group("value")) if match else None

    # Parsing

    def _parse_due(self, values: Dict[str, List[str]], residual: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Classify the due shape of a line

        Returns:
            (due_date, due_datetime); at most one shape is produced
        """
        raw_date = values["due_date"][0] if values["due_date"] else None
        raw_time = values["due_time"][0] if values["due_time"] else None
        due_date = normalize_date(raw_date) if raw_date else None
        due_time = normalize_time(raw_time) if raw_time else None

        if raw_date and not due_date:
            self.logger.warning(f"[TaskParser] Invalid due date '{raw_date}', due date omitted")
            return None, None
        if due_date is None and self.calendar_leftover_pattern.search(residual):
            self.logger.warning("[TaskParser] Calendar token without a valid date, due date omitted")
            return None, None

        if due_date and due_time:
            return due_date, f"{due_date}T{due_time}:00"
        if due_date:
            return due_date, None
        if due_time:
            return None, f"{get_current_date_str()}T{due_time}:00"
        return None, None

    def _parse_duration(self, values: Dict[str, List[str]]) -> Optional[Duration]:
        if not values["duration"]:
            return None
        minutes = int(values["duration"][0])
        if minutes > MAX_DURATION_MINUTES:
            self.logger.error(
                f"[TaskParser] Duration {minutes}min exceeds {MAX_DURATION_MINUTES} minutes, omitted"
            )
            return None
        if minutes <= 0:
            return None
        return Duration(amount=minutes, unit=DURATION_UNIT_MINUTE)

    def _parse_deadline(self, values: Dict[str, List[str]]) -> Optional[str]:
        if not values["deadline"]:
            return None
        deadline = normalize_date(values["deadline"][0], allow_month_day=True)
        if deadline is None:
            self.logger.warning(f"[TaskParser] Invalid deadline '{{{{{values['deadline'][0]}}}}}', omitted")
        return deadline

    @staticmethod
    def _parse_priority(values: Dict[str, List[str]]) -> int:
        if not values["priority"]:
            return TASK_DEFAULT_PRIORITY
        return 5 - int(values["priority"][0])

    def _parse_labels(self, values: Dict[str, List[str]]) -> List[str]:
        labels: List[str] = []
        for label in values["labels"]:
            if label not in labels:
                labels.append(label)
        return labels

    @staticmethod
    def _document_name(path: str) -> str:
        name = path.rsplit("/", 1)[-1]
        return name[:-3] if name.endswith(".md") else name

    def build_backlink(self, path: str) -> str:
        """Description linking back to the owning document"""
        vault = quote(self.settings.vault_name, safe="")
        return f"[{path}](obsidian://open?vault={vault}&file={quote(path, safe='')})"

    def find_parent_id(self, document_text: str, line_index: int, line: str) -> Optional[str]:
        """
        Find the parent task of an indented line

        Scans upward until a blank line or a line indented less than the
        child. That line is the parent when it carries a task id.

        Args:
            document_text: Full document
            line_index: Index of the child line
            line: Child line text

        Returns:
            Parent task id or None
        """
        indentation = self.get_tab_indentation(line)
        if indentation == 0:
            return None

        lines = document_text.split("\n")
        for index in range(min(line_index, len(lines)) - 1, -1, -1):
            candidate = lines[index]
            if not candidate.strip():
                return None
            if self.get_tab_indentation(candidate) >= indentation:
                continue
            return self.get_task_id(candidate)
        return None

    async def _resolve_project_id(
        self,
        path: str,
        parent_id: Optional[str],
        project_name: Optional[str],
        labels: List[str],
    ) -> str:
        if parent_id:
            parent = self.cache.load_task(parent_id)
            if parent and parent.project_id:
                return parent.project_id

        if project_name and self.project_cache is not None:
            project_id = await self.project_cache.get_or_create_project_id(project_name)
            if project_id:
                return project_id

        for label in labels:
            project_id = self.cache.get_project_id_by_name(label)
            if project_id:
                return project_id

        return (
            self.cache.get_default_project_id_for_file(path)
            or self.cache.get_project_id_by_name(self.settings.DEFAULT_PROJECT_NAME)
            or ""
        )

    async def convert_text_to_task(
        self,
        line: str,
        path: str,
        line_index: Optional[int] = None,
        document_text: Optional[str] = None,
    ) -> Task:
        """
        Parse a task line

        Parsing never raises for malformed tokens; such fields are omitted
        and a warning is logged.

        Args:
            line: Task line
            path: Owning document path
            line_index: Line number, needed for parent lookup
            document_text: Full document, needed for parent lookup

        Returns:
            Parsed task without id
        """
        values, residual = self.extract_tokens(line)

        labels = self._parse_labels(values)
        due_date, due_datetime = self._parse_due(values, residual)

        parent_id = None
        if line_index is not None and document_text is not None:
            parent_id = self.find_parent_id(document_text, line_index, line)

        project_name = values["project"][0] if values["project"] else None
        project_id = await self._resolve_project_id(path, parent_id, project_name, labels)

        section_id = None
        if values["section"] and project_id and self.project_cache is not None:
            section_id = await self.project_cache.get_or_create_section_id(values["section"][0], project_id)

        content = " ".join(residual.split())
        if not content:
            content = self._document_name(path)

        return Task(
            content=content,
            description=self.build_backlink(path),
            project_id=project_id,
            section_id=section_id,
            parent_id=parent_id,
            due_date=due_date,
            due_datetime=due_datetime,
            labels=labels,
            priority=self._parse_priority(values),
            duration=self._parse_duration(values),
            deadline_date=self._parse_deadline(values),
            is_completed=self.is_completed(line),
            path=path,
        )

    # Serialization

    def build_task_link(self, task_id: str) -> str:
        template = TODOIST_TASK_APP_URI if self.settings.LINKS_APP_URI else TODOIST_TASK_URL
        return f"%%[tid:: [{task_id}]({template.format(task_id=task_id)})]%%"

    def add_task_link(self, line: str, link: str) -> str:
        """
        Add the id link to a line

        The link goes at the end of the line, or right before the due date
        token when CHANGE_DATE_ORDER is set.
        """
        if self.has_task_id(line):
            return line
        if self.settings.CHANGE_DATE_ORDER and self.due_date_pattern.search(line):
            return self.due_date_pattern.sub(lambda m: f"{link} {m.group(0)}", line, count=1)
        return f"{line.rstrip()} {link}"

    def remove_task_link(self, line: str) -> str:
        return TASK_LINK_PATTERN.sub("", line)

    def _insert_near_sync_tag(self, line: str, token: str) -> str:
        if not self.has_sync_tag(line):
            return f"{line.rstrip()} {token}"
        if self.settings.CHANGE_DATE_ORDER:
            return self.sync_tag_pattern.sub(lambda m: f"{m.group(0)} {token}", line, count=1)
        return self.sync_tag_pattern.sub(lambda m: f"{token} {m.group(0)}", line, count=1)

    def insert_due_date(self, line: str, due_date: str) -> str:
        return self._insert_near_sync_tag(line, f"{DEFAULT_DUE_DATE_KEYWORD}{due_date}")

    def insert_due_time(self, line: str, due_time: str) -> str:
        """Insert a time token after the date token, or near the sync tag"""
        token = f"{DEFAULT_DUE_TIME_KEYWORD}{due_time}"
        if self.due_date_pattern.search(line):
            return self.due_date_pattern.sub(lambda m: f"{m.group(0)} {token}", line, count=1)
        return self._insert_near_sync_tag(line, token)

    def replace_due_date(self, line: str, due_date: str) -> str:
        return self.due_date_pattern.sub(
            lambda m: f"{m.group('kw')}{m.group('sp')}{due_date}", line, count=1
        )

    def replace_due_time(self, line: str, due_time: str) -> str:
        return self.due_time_pattern.sub(
            lambda m: f"{m.group('kw')}{m.group('sp')}{due_time}", line, count=1
        )

    def remove_due(self, line: str) -> str:
        """Remove due date and due time tokens"""
        line = re.sub(rf"\s?(?:{self.due_date_pattern.pattern})", "", line)
        return re.sub(rf"\s?(?:{self.due_time_pattern.pattern})", "", line)

    def stabilize_time_only_line(self, line: str) -> str:
        """
        Pin a time-only due to today's date

        A line with a clock token but no calendar token gets today's date
        written in front of the time, so re-parsing tomorrow keeps the same
        due datetime.

        Args:
            line: Task line

        Returns:
            Rewritten line, or the line unchanged
        """
        if self.due_date_pattern.search(line) or self.calendar_leftover_pattern.search(line):
            return line
        match = self.due_time_pattern.search(line)
        if not match or normalize_time(match.group("value")) is None:
            return line
        today = get_current_date_str()
        return line[:match.start()] + f"{DEFAULT_DUE_DATE_KEYWORD}{today} " + line[match.start():]

    def add_sync_tag(self, line: str) -> str:
        if self.has_sync_tag(line):
            return line
        return f"{line.rstrip()} {self.sync_tag}"

    def remove_sync_tag(self, line: str) -> str:
        return re.sub(rf"\s?{self.sync_tag_pattern.pattern}", "", line, count=1, flags=re.IGNORECASE)

    def add_missing_flag(self, line: str) -> str:
        if self.has_missing_flag(line):
            return line
        flag = self.settings.NON_EXISTING_TASK_FLAG
        return f'{line.rstrip()} <mark style="{MISSING_FLAG_STYLE}">+++{flag}+++</mark>'

    def remove_missing_flag(self, line: str) -> str:
        return self.missing_flag_pattern.sub("", line)

    @staticmethod
    def set_checkbox(line: str, checked: bool) -> str:
        mark = "x" if checked else " "
        return CHECKBOX_PREFIX_PATTERN.sub(lambda m: f"{m.group(1)}[{mark}]", line, count=1)

    @staticmethod
    def replace_content(line: str, old_content: str, new_content: str) -> str:
        if not old_content or old_content not in line:
            return line
        return line.replace(old_content, new_content, 1)

    def build_note_line(self, parent_line: str, event_datetime: str, note: str) -> str:
        """Child line holding a Todoist comment"""
        indent = "\t" * (self.get_tab_indentation(parent_line) + 1)
        return f"{indent}- {event_datetime} {note}".rstrip()
