#!/usr/bin/env python3
'''
Layout Learner - Adaptive CLI Typing Lessons
============================================

Features
--------
1) Lessons are built from the **most frequent characters** of a word list, so a new
   keyboard layout is learned in the order the letters actually matter.
2) Real words are drawn from the word list when possible; otherwise pronounceable-ish
   pseudo-words are generated (no runs of 3 identical letters, even letter spread).
3) Every keystroke updates a per-character **accuracy + speed score**, persisted in SQLite
   (default: ~/.layout_learner/stats.db).
4) **Adaptive focus**: each lesson guarantees the weakest (lowest scoring) character
   appears in every word. Characters never typed before always come first.
5) Lesson history, lifetime report, CSV/JSON export and matplotlib charts.

Quick Start
-----------
- Install: `pip install .` (matplotlib is only needed for `--plot`).
- Run: `layout-learner` or `python3 layout_learner.py --words words.txt`

Command-Line Options
--------------------
- `--words PATH`          : Word list, one word per line (default: built-in common words).
- `--chars N`             : Number of top-frequency characters to practice (default: 5).
- `--min-length N`        : Minimum word length (default: 3).
- `--max-length N`        : Maximum word length (default: 5).
- `--word-count N`        : Words per lesson (default: 10).
- `--target-cpm N`        : Target characters per minute used for the speed score (default: 250).
- `--accuracy-weight W`   : Weight of accuracy in the score; speed gets 1-W (default: 0.5).
- `--db PATH`             : Override database path. Default: ~/.layout_learner/stats.db
- `--no-store`            : Do not persist anything (practice-only).
- `--reset`               : Delete saved character statistics, then exit.
- `--report`              : Print lifetime stats and weakest characters, then exit.
- `--export-csv PATH`     : Export lessons/characters to CSV (PATH_lessons.csv & PATH_chars.csv), then exit.
- `--export-json PATH`    : Export lessons+characters to a single JSON file, then exit.
- `--plot PREFIX`         : Save charts as PREFIX_accuracy.png and PREFIX_cpm.png (raw + 5-SMA), then exit.
- `--log-file PATH`       : Log file (default: ~/.layout_learner/layout_learner.log).

Controls
--------
- Type the displayed text. Correct chars turn green, mistakes red.
- Backspace moves back one character (the attempt still counts).
- At the end screen press Enter for a new lesson.
- Press ESC at any time to quit.

Design Notes
------------
- Score = accuracy * accuracy_weight + speed_score * time_weight, where the speed score is 1
  at half the target time per character and 0 at (or beyond) the target time.
- The lesson ends one character before the end of the text: the trailing separator is never typed.
- Handler switches (typing <-> end screen) are queued and applied after the current key
  has been handled, never from inside a handler.
- Modules: DataStore, word generation/sampling, CharacterStat tracking, LessonEngine, CursesRenderer.
'''

from __future__ import annotations
import argparse
import collections
import curses
import datetime as dt
import enum
import json
import logging
import math
import os
import random
import sqlite3
import sys
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

log = logging.getLogger(__name__)

# ------------------------------
# Utility helpers
# ------------------------------

def clamp(n, lo, hi):
    return max(lo, min(hi, n))

def now_ts() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")

def now_ms() -> int:
    return time.monotonic_ns() // 1_000_000

def human_duration(seconds: float) -> str:
    seconds = int(seconds)
    m, s = divmod(seconds, 60)
    return f"{m}m{s:02d}s" if m else f"{s}s"

APP_DIR = Path.home() / ".layout_learner"
DEFAULT_DB = str(APP_DIR / "stats.db")
DEFAULT_LOG = str(APP_DIR / "layout_learner.log")

def setup_logging(log_file: Optional[str], level: str = "WARNING"):
    # curses owns the terminal, so records go to a file
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_file,
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

# ------------------------------
# Settings
# ------------------------------

@dataclass(frozen=True)
class LessonSettings:
    char_count: int = 5
    min_word_length: int = 3
    max_word_length: int = 5
    word_count: int = 10
    target_cpm: int = 250
    accuracy_weight: float = 0.5
    time_weight: float = 0.5

    def __post_init__(self):
        if self.char_count < 1:
            raise ValueError("char_count must be at least 1")
        if self.min_word_length < 1:
            raise ValueError("min_word_length must be at least 1")
        if self.max_word_length < self.min_word_length:
            raise ValueError("max_word_length must not be smaller than min_word_length")
        if self.word_count < 1:
            raise ValueError("word_count must be at least 1")
        if self.target_cpm < 1:
            raise ValueError("target_cpm must be at least 1")
        for name in ("accuracy_weight", "time_weight"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]")
        if not math.isclose(self.accuracy_weight + self.time_weight, 1.0):
            raise ValueError("accuracy_weight and time_weight must add up to 1.0")

    @property
    def target_ms_per_char(self) -> float:
        return 60000.0 / self.target_cpm

# ------------------------------
# Corpus & character frequency
# ------------------------------

COMMON_WORDS = """
the of and to in is you that it he was for on are as with his they i at be this
have from or one had by word but not what all were we when your can said there
use an each which she do how their if will up other about out many then them
these so some her would make like him into time has look two more write go see
number no way could people my than first water been call who oil its now find
long down day did get come made may part over new sound take only little work
know place year live me back give most very after thing our just name good
sentence man think say great where help through much before line right too mean
old any same tell boy follow came want show also around form three small set
put end does another well large must big even such because turn here why ask
went men read need land different home us move try kind hand picture again
change off play spell air away animal house point page letter mother answer
found study still learn should world high every near add food between own below
country plant last school father keep tree never start city earth eye light
thought head under story saw left few while along might close something seem
next hard open example begin life always those both paper together got group
often run important until children side feet car mile night walk white sea
began grow took river four carry state once book hear stop without second late
""".strip().split()

def read_corpus(source) -> List[str]:
    """Return the stripped, lower-cased words of a corpus.

    `source` is either a path to a word file (one word per line) or an iterable of lines.
    Reading a path that does not exist raises OSError.
    """
    if isinstance(source, (str, os.PathLike)):
        with open(source, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    else:
        lines = list(source)
    words = []
    for line in lines:
        word = line.strip().lower()
        if word:
            words.append(word)
    return words

def analyze_frequency(corpus) -> List[str]:
    """Characters of the corpus by descending occurrence; ties keep first-seen order."""
    counts = collections.Counter()
    for word in read_corpus(corpus):
        counts.update(ch for ch in word if not ch.isspace())
    # most_common() is a stable sort over insertion (first-seen) order
    return [ch for ch, _ in counts.most_common()]

# ------------------------------
# Word generation & sampling
# ------------------------------

MIN_CANDIDATE_WORDS = 4

def pick_character(chars: Sequence[str], usage: Dict[str, int], max_usage: int,
                   exclude: Optional[str], rng) -> Optional[str]:
    candidates = [c for c in chars if c != exclude and usage.get(c, 0) < max_usage]
    if not candidates:
        return None
    return rng.choice(candidates)

def generate_word(chars: Sequence[str], priority: str, min_length: int, max_length: int,
                  rng: random.Random | None = None) -> str:
    """Build one pseudo-word from `chars` that contains `priority` at least once.

    No character is used more than length // 2 times (the priority character at least once),
    and no character appears three times in a row. If the characters run out the word is
    returned early, shorter than requested.
    """
    if priority not in chars:
        raise ValueError(f"priority character {priority!r} is not one of the lesson characters")
    rng = rng or random
    # upper bound is exclusive
    length = rng.randrange(min_length, max_length) if max_length > min_length else min_length
    priority_position = rng.randrange(length)
    max_usage = length // 2

    usage = collections.Counter()
    letters = []
    previous, in_a_row = None, 0
    for i in range(length):
        if (i == priority_position and previous != priority
                and usage[priority] < max(max_usage, 1)):
            ch = priority
        else:
            exclude = previous if in_a_row >= 2 else None
            ch = pick_character(chars, usage, max_usage, exclude, rng)
            if ch is None:
                break
        letters.append(ch)
        usage[ch] += 1
        in_a_row = in_a_row + 1 if ch == previous else 1
        previous = ch

    if usage[priority] == 0:
        letters.append(priority)
    return "".join(letters)

def sample_words(corpus, chars: Sequence[str], priority: str, min_length: int, max_length: int,
                 amount: int, rng: random.Random | None = None) -> List[str]:
    """Draw `amount` words (with replacement) that only use `chars` and contain `priority`.

    Real words from the corpus are preferred; generated words top the pool up to
    MIN_CANDIDATE_WORDS.
    """
    rng = rng or random
    allowed = set(chars)
    pool = [
        w for w in read_corpus(corpus)
        if min_length <= len(w) <= max_length and priority in w and set(w) <= allowed
    ]
    log.debug("%d corpus words match %r (priority %r)", len(pool), "".join(chars), priority)
    while len(pool) < MIN_CANDIDATE_WORDS:
        pool.append(generate_word(chars, priority, min_length, max_length, rng))
    return [rng.choice(pool) for _ in range(amount)]

# ------------------------------
# Character statistics
# ------------------------------

UNSEEN = -1.0

@dataclass
class CharacterStat:
    attempts: int = 0
    correct: int = 0
    accuracy: float = UNSEEN
    total_time_ms: int = 0
    average_time_ms: int = 0
    score: float = UNSEEN

    @property
    def seen(self) -> bool:
        return self.attempts > 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CharacterStat":
        return cls(
            attempts=int(data.get("attempts", 0)),
            correct=int(data.get("correct", 0)),
            accuracy=float(data.get("accuracy", UNSEEN)),
            total_time_ms=int(data.get("total_time_ms", 0)),
            average_time_ms=int(data.get("average_time_ms", 0)),
            score=float(data.get("score", UNSEEN)),
        )

def speed_score(average_time_ms: float, settings: LessonSettings) -> float:
    target = settings.target_ms_per_char
    lower = target / 2
    speed = max(average_time_ms, lower)
    return clamp(1 - (speed - lower) / (target - lower), 0.0, 1.0)

def record_attempt(stat: CharacterStat, is_correct: bool, elapsed_ms: Optional[int],
                   settings: LessonSettings) -> CharacterStat:
    """Return the stat updated with one attempt; `stat` itself is left untouched."""
    attempts = stat.attempts + 1
    correct = stat.correct + (1 if is_correct else 0)
    accuracy = correct / attempts if attempts > 0 else 0.0

    total_time_ms, average_time_ms = stat.total_time_ms, stat.average_time_ms
    if elapsed_ms is not None:
        total_time_ms += elapsed_ms
        average_time_ms = total_time_ms // attempts

    score = (accuracy * settings.accuracy_weight
             + speed_score(average_time_ms, settings) * settings.time_weight)
    return CharacterStat(attempts, correct, accuracy, total_time_ms, average_time_ms, score)

def select_priority(current_chars: Sequence[str], stats: Dict[str, CharacterStat]) -> str:
    """The lowest scoring lesson character; unseen ones score -1, ties go to the earlier one."""
    best, best_score = None, None
    for ch in current_chars:
        if ch == " ":
            continue
        stat = stats.get(ch)
        score = stat.score if stat is not None else UNSEEN
        if best is None or score < best_score:
            best, best_score = ch, score
    if best is None:
        raise ValueError("no character available to prioritise")
    return best

def weakest_characters(stats: Dict[str, CharacterStat], n: int = 5) -> List[tuple]:
    seen = [(ch, st) for ch, st in stats.items() if st.seen and ch != " "]
    return sorted(seen, key=lambda x: x[1].score)[:n]

# ------------------------------
# Data Store (SQLite)
# ------------------------------

class DataStore:
    def __init__(self, db_path: str, persist: bool = True):
        self.db_path = db_path
        self.persist = persist
        if self.persist:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(db_path)
            self.conn.execute("PRAGMA journal_mode=WAL")
            self._init_schema()
        else:
            self.conn = None

    def _init_schema(self):
        cur = self.conn.cursor()
        cur.execute('''
        CREATE TABLE IF NOT EXISTS char_stats (
            char TEXT PRIMARY KEY,
            attempts INTEGER NOT NULL,
            correct INTEGER NOT NULL,
            accuracy REAL NOT NULL,
            total_time_ms INTEGER NOT NULL,
            average_time_ms INTEGER NOT NULL,
            score REAL NOT NULL
        );
        ''')
        cur.execute('''
        CREATE TABLE IF NOT EXISTS lessons (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            started_at TEXT NOT NULL,
            duration_sec REAL NOT NULL,
            chars TEXT NOT NULL,
            priority_char TEXT NOT NULL,
            chars_typed INTEGER NOT NULL,
            chars_correct INTEGER NOT NULL,
            accuracy REAL NOT NULL,
            cpm REAL NOT NULL,
            config_json TEXT NOT NULL
        );
        ''')
        self.conn.commit()

    def close(self):
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def load_stats(self) -> Dict[str, CharacterStat]:
        if not self.persist:
            return {}
        cur = self.conn.cursor()
        cur.execute('''
          SELECT char, attempts, correct, accuracy, total_time_ms, average_time_ms, score
          FROM char_stats;
        ''')
        columns = [d[0] for d in cur.description]
        return {r[0]: CharacterStat.from_dict(dict(zip(columns[1:], r[1:]))) for r in cur.fetchall()}

    def save_stats(self, stats: Dict[str, CharacterStat]):
        if not self.persist:
            return
        cur = self.conn.cursor()
        cur.executemany('''
        INSERT OR REPLACE INTO char_stats (char, attempts, correct, accuracy, total_time_ms, average_time_ms, score)
        VALUES (?, ?, ?, ?, ?, ?, ?);
        ''', [
            (ch, st.attempts, st.correct, st.accuracy, st.total_time_ms, st.average_time_ms, st.score)
            for ch, st in stats.items()
        ])
        self.conn.commit()

    def reset_stats(self) -> int:
        if not self.persist:
            return 0
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*) FROM char_stats;")
        removed = cur.fetchone()[0]
        cur.execute("DELETE FROM char_stats;")
        self.conn.commit()
        return removed

    def insert_lesson(self, session: "Session", settings: LessonSettings) -> int:
        if not self.persist:
            return -1
        cur = self.conn.cursor()
        cur.execute('''
        INSERT INTO lessons (started_at, duration_sec, chars, priority_char, chars_typed, chars_correct, accuracy, cpm, config_json)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
        ''', (
            session.started_at,
            session.duration_sec,
            "".join(session.current_chars),
            session.priority_char,
            session.chars_typed,
            session.correct_count,
            session.accuracy,
            session.cpm,
            json.dumps(asdict(settings), ensure_ascii=False),
        ))
        self.conn.commit()
        return cur.lastrowid

    def lifetime_summary(self) -> dict:
        if not self.persist:
            return {}
        cur = self.conn.cursor()
        summary = {}

        cur.execute('SELECT COUNT(*), AVG(cpm), AVG(accuracy), SUM(duration_sec) FROM lessons;')
        row = cur.fetchone()
        summary["lessons"] = row[0] or 0
        summary["avg_cpm"] = row[1] or 0.0
        summary["avg_accuracy"] = row[2] or 0.0
        summary["total_sec"] = row[3] or 0.0

        cur.execute('SELECT started_at, priority_char, cpm, accuracy FROM lessons ORDER BY id DESC LIMIT 10;')
        summary["recent"] = [
            {"started_at": r[0], "priority_char": r[1], "cpm": r[2], "accuracy": r[3]}
            for r in cur.fetchall()
        ]
        summary["weakest"] = weakest_characters(self.load_stats(), 10)
        return summary

    def fetch_lessons(self) -> list[dict]:
        if not self.persist:
            return []
        cur = self.conn.cursor()
        cur.execute("""
          SELECT id, started_at, duration_sec, chars, priority_char, chars_typed,
                 chars_correct, accuracy, cpm, config_json
          FROM lessons ORDER BY id ASC;
        """)
        return [{
            "id": r[0],
            "started_at": r[1],
            "duration_sec": r[2],
            "chars": r[3],
            "priority_char": r[4],
            "chars_typed": r[5],
            "chars_correct": r[6],
            "accuracy": r[7],
            "cpm": r[8],
            "config_json": r[9],
        } for r in cur.fetchall()]

    def fetch_stats(self) -> list[dict]:
        return [dict(char=ch, **st.to_dict()) for ch, st in sorted(self.load_stats().items())]

# ------------------------------
# Key events
# ------------------------------

KEY_ESCAPE = 27
BACKSPACE_KEYS = (curses.KEY_BACKSPACE, 127, 8)
ENTER_KEYS = (curses.KEY_ENTER, 10, 13)

@dataclass(frozen=True)
class KeyEvent:
    rune: Optional[str] = None
    is_backspace: bool = False
    is_escape: bool = False
    is_enter: bool = False

    @classmethod
    def from_curses(cls, key) -> Optional["KeyEvent"]:
        """Translate a `get_wch()` result (str or int key code)."""
        code = ord(key) if isinstance(key, str) and len(key) == 1 else key
        if code == KEY_ESCAPE:
            return cls(is_escape=True)
        if code in BACKSPACE_KEYS:
            return cls(is_backspace=True)
        if code in ENTER_KEYS:
            return cls(is_enter=True)
        if isinstance(key, str) and key.isprintable():
            return cls(rune=key)
        return None

# ------------------------------
# Lesson session & state machine
# ------------------------------

class State(enum.Enum):
    ACTIVE = "active"
    END_SCREEN = "end_screen"

@dataclass
class Session:
    text: str
    current_chars: List[str]
    priority_char: str
    cursor: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    started: bool = False
    active_char_start_ms: int = 0
    first_key_ms: int = 0
    last_key_ms: int = 0
    marks: List[Optional[bool]] = field(default_factory=list)
    started_at: str = field(default_factory=now_ts)

    def __post_init__(self):
        if not self.marks:
            self.marks = [None] * len(self.text)

    @property
    def expected(self) -> Optional[str]:
        return self.text[self.cursor] if self.cursor < len(self.text) else None

    @property
    def chars_typed(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def accuracy(self) -> float:
        """Percentage of correct keystrokes, 0.0 before any key was typed."""
        if self.chars_typed == 0:
            return 0.0
        return self.correct_count * 100 / self.chars_typed

    @property
    def duration_sec(self) -> float:
        return max(0, self.last_key_ms - self.first_key_ms) / 1000.0

    @property
    def cpm(self) -> float:
        minutes = self.duration_sec / 60.0
        if minutes <= 0:
            return 0.0
        return self.correct_count / minutes

def build_text(words: Iterable[str]) -> str:
    return "".join(f"{w} " for w in words)

class LessonEngine:
    """Owns the character stats and the current Session, and routes keystrokes.

    Handlers never swap the active handler themselves: they queue the next State and
    `handle_key` installs it once the handler has returned.
    """

    def __init__(self, character_priority: Sequence[str], settings: LessonSettings,
                 stats: Dict[str, CharacterStat], corpus, store: DataStore | None = None,
                 rng: random.Random | None = None, clock: Callable[[], int] = now_ms):
        if not character_priority:
            raise ValueError("the word list contains no characters")
        if settings.char_count > len(character_priority):
            raise ValueError(
                f"the word list only has {len(character_priority)} distinct characters, "
                f"{settings.char_count} requested"
            )
        self.character_priority = list(character_priority)
        self.settings = settings
        self.stats = dict(stats)
        self.corpus = corpus
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock

        self.session: Optional[Session] = None
        self.state = State.ACTIVE
        self.error: Optional[str] = None
        self.running = True
        self.lessons_completed = 0

        self._handlers = {
            State.ACTIVE: self._on_active_key,
            State.END_SCREEN: self._on_end_screen_key,
        }
        self._handler = self._handlers[State.ACTIVE]
        self._pending = collections.deque(maxlen=1)

    # -- lifecycle --

    def start(self) -> Session:
        """Build the first lesson. Corpus errors propagate: they are configuration errors."""
        session = self._build_lesson()
        self._apply_pending()
        return session

    def new_lesson(self) -> Optional[Session]:
        try:
            return self._build_lesson()
        except (OSError, UnicodeDecodeError) as e:
            log.error("Could not generate new words: %s", e)
            self.error = f"Error generating new words: {e}"
            self._request(State.END_SCREEN)
            return None

    def _build_lesson(self) -> Session:
        current = self.character_priority[:self.settings.char_count]
        priority = select_priority(current, self.stats)
        s = self.settings
        words = sample_words(self.corpus, current, priority, s.min_word_length, s.max_word_length,
                             s.word_count, self.rng)
        for ch in current:
            self.stats.setdefault(ch, CharacterStat())

        self.session = Session(text=build_text(words), current_chars=current, priority_char=priority)
        self.error = None
        log.info("New lesson: chars=%r priority=%r words=%d", "".join(current), priority, len(words))
        self.save_stats()
        self._request(State.ACTIVE)
        return self.session

    def quit(self):
        self.running = False
        self.save_stats()

    def save_stats(self):
        if self.store is None:
            return
        try:
            self.store.save_stats(self.stats)
        except sqlite3.Error:
            log.exception("Saving character statistics failed")

    def _finish_lesson(self):
        self.lessons_completed += 1
        session = self.session
        log.info("Lesson finished: accuracy=%.2f cpm=%.1f", session.accuracy, session.cpm)
        if self.store is None:
            return
        try:
            self.store.insert_lesson(session, self.settings)
        except sqlite3.Error:
            log.exception("Recording the lesson failed")

    # -- dispatch --

    def handle_key(self, event: KeyEvent):
        self._handler(event)
        self._apply_pending()

    def _request(self, state: State):
        self._pending.append(state)

    def _apply_pending(self):
        while self._pending:
            self.state = self._pending.popleft()
            self._handler = self._handlers[self.state]

    def _on_active_key(self, event: KeyEvent):
        s = self.session
        if event.is_escape:
            self.quit()
            return
        if event.is_backspace:
            s.cursor = max(0, s.cursor - 1)
            s.marks[s.cursor] = None
            return
        if event.rune is None:
            return

        expected = s.expected
        correct = event.rune == expected
        now = self.clock()
        elapsed = None
        if not s.started:
            s.started = True
            s.first_key_ms = now
        elif correct:
            elapsed = now - s.active_char_start_ms

        stat = self.stats.get(expected, CharacterStat())
        self.stats[expected] = record_attempt(stat, correct, elapsed, self.settings)
        s.marks[s.cursor] = correct
        if correct:
            s.correct_count += 1
        else:
            s.incorrect_count += 1
        s.last_key_ms = now
        s.cursor += 1

        if s.cursor >= len(s.text) - 1:
            self._finish_lesson()
            self._request(State.END_SCREEN)
            return
        s.active_char_start_ms = now

    def _on_end_screen_key(self, event: KeyEvent):
        if event.is_enter:
            self.new_lesson()
        elif event.is_escape:
            self.quit()

# ------------------------------
# Renderer (curses)
# ------------------------------

class CursesRenderer:
    COLOR_OK = 1
    COLOR_ERR = 2
    COLOR_DIM = 3
    COLOR_INFO = 4

    def __init__(self, stdscr):
        self.stdscr = stdscr

    def init_colors(self):
        curses.start_color()
        curses.use_default_colors()
        curses.init_pair(self.COLOR_OK, curses.COLOR_GREEN, -1)
        curses.init_pair(self.COLOR_ERR, curses.COLOR_RED, -1)
        curses.init_pair(self.COLOR_DIM, curses.COLOR_CYAN, -1)
        curses.init_pair(self.COLOR_INFO, curses.COLOR_YELLOW, -1)

    def _put(self, y: int, x: int, text: str, attr: int = 0):
        maxy, maxx = self.stdscr.getmaxyx()
        if y >= maxy - 1 or x >= maxx - 1:
            return
        try:
            self.stdscr.addstr(y, x, text[:maxx - 1 - x], attr)
        except curses.error:
            pass

    def score_color(self, stat: Optional[CharacterStat]) -> int:
        if stat is None or not stat.seen:
            return curses.color_pair(self.COLOR_DIM)
        if stat.score < 0.5:
            return curses.color_pair(self.COLOR_ERR)
        if stat.score < 0.8:
            return curses.color_pair(self.COLOR_INFO)
        return curses.color_pair(self.COLOR_OK)

    def draw(self, engine: LessonEngine):
        self.stdscr.erase()
        if engine.state is State.END_SCREEN:
            self.draw_end_screen(engine)
        else:
            self.draw_header(engine)
            self.draw_text(engine.session)
        self.stdscr.refresh()

    def draw_header(self, engine: LessonEngine):
        s = engine.session
        _, maxx = self.stdscr.getmaxyx()
        self._put(0, 0, f"Lesson {engine.lessons_completed + 1}  |  Priority: ", curses.color_pair(self.COLOR_INFO))
        x = len(f"Lesson {engine.lessons_completed + 1}  |  Priority: ")
        self._put(0, x, repr(s.priority_char), curses.A_BOLD)
        x += 5
        self._put(0, x, "|  Chars: ", curses.color_pair(self.COLOR_INFO))
        x += 10
        for ch in s.current_chars:
            attr = self.score_color(engine.stats.get(ch))
            if ch == s.priority_char:
                attr |= curses.A_UNDERLINE
            self._put(0, x, ch, attr)
            x += 2
        try:
            self.stdscr.hline(1, 0, curses.ACS_HLINE, maxx)
        except curses.error:
            pass

    def draw_text(self, s: Session):
        _, maxx = self.stdscr.getmaxyx()
        width = max(1, maxx - 2)
        for i, ch in enumerate(s.text):
            y, x = 3 + i // width, i % width
            mark = s.marks[i]
            if mark is True:
                attr = curses.color_pair(self.COLOR_OK)
            elif mark is False:
                attr = curses.color_pair(self.COLOR_ERR)
            else:
                attr = curses.color_pair(self.COLOR_DIM)
            if i == s.cursor:
                attr |= curses.A_REVERSE
            if ch == " " and i < len(s.text) - 1:
                attr |= curses.A_UNDERLINE
            self._put(y, x, ch, attr)
        y = 4 + len(s.text) // width
        self._put(y + 1, 0, "Backspace = go back | ESC = quit")

    def draw_end_screen(self, engine: LessonEngine):
        y = 0
        if engine.error:
            self._put(y, 0, engine.error, curses.color_pair(self.COLOR_ERR)); y += 2
        elif engine.session is not None:
            s = engine.session
            self._put(y, 0, "Lesson Summary", curses.A_BOLD | curses.A_UNDERLINE); y += 2
            self._put(y, 0, f"Your accuracy was: {s.accuracy:.2f}"); y += 1
            self._put(y, 0, f"Speed            : {s.cpm:.0f} CPM (target {engine.settings.target_cpm})"); y += 1
            self._put(y, 0, f"Correct / Errors : {s.correct_count} / {s.incorrect_count}"); y += 2
            weakest = weakest_characters({c: engine.stats[c] for c in s.current_chars if c in engine.stats}, 3)
            if weakest:
                self._put(y, 0, "Weakest characters:", curses.A_BOLD); y += 1
                for ch, st in weakest:
                    self._put(y, 2, f"{ch!r} : score {st.score:.2f}  acc {st.accuracy*100:.0f}%  avg {st.average_time_ms}ms",
                              self.score_color(st))
                    y += 1
                y += 1
        self._put(y, 0, "Press enter to continue...", curses.color_pair(self.COLOR_INFO)); y += 1
        self._put(y, 0, "Press escape to exit...", curses.color_pair(self.COLOR_ERR))

def run_trainer(stdscr, engine: LessonEngine):
    renderer = CursesRenderer(stdscr)
    renderer.init_colors()
    curses.curs_set(0)
    while engine.running:
        renderer.draw(engine)
        try:
            key = stdscr.get_wch()
        except curses.error:
            continue
        event = KeyEvent.from_curses(key)
        if event is not None:
            engine.handle_key(event)

# ------------------------------
# Reporting (CLI non-TUI)
# ------------------------------

def print_report(store: DataStore):
    summ = store.lifetime_summary()
    if not summ:
        print("No data available (persistence disabled or no lessons yet).")
        return
    print("\n=== Lifetime Summary ===")
    print(f"Total lessons      : {summ['lessons']}")
    print(f"Time practiced     : {human_duration(summ['total_sec'])}")
    print(f"Avg speed          : {summ['avg_cpm']:.1f} CPM")
    print(f"Avg accuracy       : {summ['avg_accuracy']:.1f}%")

    print("\n=== Recent (latest 10) ===")
    for r in summ["recent"]:
        print(f"{r['started_at']} | focus {r['priority_char']!r} | {r['cpm']:6.1f} CPM | Acc: {r['accuracy']:5.1f}%")

    print("\nWeakest characters:")
    for ch, st in summ["weakest"]:
        print(f"  {ch!r:<5} -> score {st.score:.2f} | acc {st.accuracy*100:5.1f}% | avg {st.average_time_ms}ms | {st.attempts} attempts")

# ------------------------------
# Exports & Charts
# ------------------------------

def export_csv(store: DataStore, path: str):
    import csv
    for label, rows in (("lessons", store.fetch_lessons()), ("chars", store.fetch_stats())):
        out_path = f"{path}_{label}.csv"
        if not rows:
            print(f"No {label} to export.")
            continue
        with open(out_path, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
            w.writeheader()
            for row in rows:
                w.writerow(row)
        print(f"CSV exported -> {out_path}")

def export_json(store: DataStore, path: str):
    data = {"lessons": store.fetch_lessons(), "chars": store.fetch_stats()}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    print(f"JSON exported -> {path}")

def moving_average(xs: Sequence, values: Sequence[float], window: int = 5) -> tuple[list, list[float]]:
    """Points of the trailing `window`-lesson average; the first window-1 lessons have none."""
    recent = collections.deque(maxlen=window)
    out_x, out_y = [], []
    for x, v in zip(xs, values):
        recent.append(v)
        if len(recent) == window:
            out_x.append(x)
            out_y.append(sum(recent) / window)
    return out_x, out_y

def _plot_series(plt, xs, values, label: str, path: str):
    plt.figure()
    plt.plot(xs, values, marker="o", label=label)
    xs_sma, y_sma = moving_average(xs, values, 5)
    if xs_sma: plt.plot(xs_sma, y_sma, linestyle="--", label=f"{label} (5-SMA)")
    plt.title(f"{label} over lessons")
    plt.xlabel("Lesson #"); plt.ylabel(label); plt.legend()
    plt.savefig(path, bbox_inches="tight"); plt.close()
    print(f"Saved {path}")

def plot_charts(store: DataStore, prefix: str):
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    data = store.fetch_lessons()
    if not data:
        print("No lessons to plot.")
        return
    xs = [d["id"] for d in data]
    _plot_series(plt, xs, [d["accuracy"] for d in data], "Accuracy (%)", f"{prefix}_accuracy.png")
    _plot_series(plt, xs, [d["cpm"] for d in data], "Speed (CPM)", f"{prefix}_cpm.png")

# ------------------------------
# Argparse / Main
# ------------------------------

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Adaptive CLI typing trainer for learning a keyboard layout")
    p.add_argument("--words", type=str, default=None, help="Word list, one word per line (default: built-in common words)")
    p.add_argument("--chars", type=int, default=5, help="Number of most frequent characters to practice")
    p.add_argument("--min-length", type=int, default=3, help="Minimum word length")
    p.add_argument("--max-length", type=int, default=5, help="Maximum word length")
    p.add_argument("--word-count", type=int, default=10, help="Words per lesson")
    p.add_argument("--target-cpm", type=int, default=250, help="Target characters per minute for the speed score")
    p.add_argument("--accuracy-weight", type=float, default=0.5, help="Weight of accuracy in the score (speed gets the rest)")
    p.add_argument("--db", type=str, default=DEFAULT_DB, help="SQLite database path")
    p.add_argument("--no-store", action="store_true", help="Do not store results")
    p.add_argument("--reset", action="store_true", help="Delete saved character statistics and exit")
    p.add_argument("--report", action="store_true", help="Print lifetime summary and exit")
    p.add_argument("--export-csv", type=str, default=None, help="Export to CSV base path (writes *_lessons.csv and *_chars.csv), then exit")
    p.add_argument("--export-json", type=str, default=None, help="Export lessons+characters to JSON at path, then exit")
    p.add_argument("--plot", type=str, default=None, help="Save charts to files with this path prefix (e.g., /tmp/typing), then exit")
    p.add_argument("--log-file", type=str, default=DEFAULT_LOG, help="Log file path")
    p.add_argument("--log-level", type=str, default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")
    return p.parse_args(argv)

def settings_from_args(args) -> LessonSettings:
    accuracy_weight = clamp(args.accuracy_weight, 0.0, 1.0)
    return LessonSettings(
        char_count=clamp(args.chars, 1, 100),
        min_word_length=clamp(args.min_length, 1, 30),
        max_word_length=clamp(args.max_length, 1, 30),
        word_count=clamp(args.word_count, 1, 200),
        target_cpm=clamp(args.target_cpm, 10, 2000),
        accuracy_weight=accuracy_weight,
        time_weight=1.0 - accuracy_weight,
    )

def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_file, args.log_level)
    persist = not args.no_store
    store = DataStore(args.db, persist=persist)

    if args.export_csv:
        export_csv(store, args.export_csv); return 0
    if args.export_json:
        export_json(store, args.export_json); return 0
    if args.plot:
        plot_charts(store, args.plot); return 0
    if args.report:
        print_report(store); return 0
    if args.reset:
        removed = store.reset_stats()
        print(f"Removed statistics for {removed} characters."); return 0

    try:
        settings = settings_from_args(args)
    except ValueError as e:
        print(f"Invalid settings: {e}", file=sys.stderr); return 2

    corpus = args.words or COMMON_WORDS
    try:
        ranking = analyze_frequency(corpus)
        engine = LessonEngine(ranking, settings, store.load_stats(), corpus, store=store)
        engine.start()
    except OSError as e:
        log.error("Could not read word list %s: %s", args.words, e)
        print(f"Error reading word list: {e}", file=sys.stderr); return 1
    except ValueError as e:
        print(f"Invalid word list: {e}", file=sys.stderr); return 1

    try:
        curses.wrapper(run_trainer, engine)
    except KeyboardInterrupt:
        engine.quit()
        print("\nSession cancelled.")

    print("\n=== Practice Results ===")
    print(f"Lessons completed: {engine.lessons_completed}")
    weakest = weakest_characters(engine.stats, 5)
    if weakest:
        print("Focus next on: " + ", ".join(f"{ch!r} ({st.score:.2f})" for ch, st in weakest))
    if persist:
        print(f"Saved to DB     : {args.db}")
    else:
        print("Results not persisted.")
    store.close()
    return 0

if __name__ == "__main__":
    sys.exit(main())
