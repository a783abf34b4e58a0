#!/usr/bin/env python3
"""
Ramadan Tracker Desktop Widget
Islamic pixel-art themed always-on-top window showing:
  - Countdown to Seheri end / Iftar, adjusted to your longitude
  - Your daily log: fasting, the five prayers, Quran pages
  - Your totals and overall progress
  - The group leaderboard, with a read-only view of each member
  - The month's Seheri/Iftar timetable
  - Desktop reminders 10 and 5 minutes before Seheri ends and Iftar,
    and a nightly reminder to complete the day's log
"""

import datetime
import logging
import threading
import tkinter as tk
from tkinter import messagebox, ttk

from ramadan_tracker.config import (
    BACKENDS,
    clear_session,
    load_session_user_id,
    load_settings,
    save_session_user_id,
    save_settings,
)
from ramadan_tracker.countdown import IFTAR_STARTS, adjusted_schedule, compute_countdown, fmt_countdown
from ramadan_tracker.location import (
    clear_manual_location,
    get_location,
    load_manual_location,
    location_offset,
    location_timezone,
    save_manual_location,
)
from ramadan_tracker.notifier import (
    cancel_timers,
    is_nightly_reminder_due,
    notify_nightly,
    schedule_reminders,
)
from ramadan_tracker.records import (
    SALAH_DISPLAY,
    SALAH_NAMES,
    set_quran_pages,
    toggle_fasting,
    toggle_salah,
)
from ramadan_tracker.repository import open_repository
from ramadan_tracker.schedule import RAMADAN_DAYS, current_ramadan_day
from ramadan_tracker.scoring import compute_stats, fasting_progress
from ramadan_tracker.sync import SnapshotPoller, TrackerSession
from ramadan_tracker.users import (
    AuthenticationError,
    RegistrationError,
    authenticate,
    register_user,
)
from ramadan_tracker.verses import fetch_daily_verse

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────────
# Theme constants — pixel-art Islamic palette
# ──────────────────────────────────────────────────────────────────────────────
BG_DARK = "#0d1117"          # near-black background
BG_CARD = "#161b22"          # slightly lighter card
BG_HIGHLIGHT = "#1a3a2a"     # deep Islamic green for highlighted row
BORDER_COLOR = "#2ea043"     # Islamic green border
ACCENT_GOLD = "#f0c040"      # gold accents
ACCENT_GREEN = "#3fb950"     # bright green
TEXT_WHITE = "#e6edf3"       # off-white text
TEXT_DIM = "#8b949e"         # dimmed text
TEXT_RED = "#ff6b6b"         # warning red
TEXT_SEHERI = "#7ec8e3"      # light blue for Seheri
TEXT_IFTAR = "#ffa07a"       # orange-red for Iftar

FONT_PIXEL = ("Courier", 10, "bold")
FONT_PIXEL_SM = ("Courier", 8)
FONT_PIXEL_LG = ("Courier", 14, "bold")
FONT_TITLE = ("Courier", 12, "bold")
FONT_CLOCK = ("Courier", 22, "bold")
FONT_ARABIC = ("Arial", 14, "bold")

WINDOW_W = 520
WINDOW_H = 760

REFRESH_MS = 1000  # update countdown every second

PIXEL_BORDER_H = "▀" * 56


class RamadanTrackerApp:
    def __init__(self, root: tk.Tk, settings):
        self.root = root
        self.settings = settings

        self.repository = open_repository(settings)
        # Wall clock of the configured zone until the location is known
        self.tz = location_timezone(None, settings.timezone)
        self.schedule = settings.build_schedule()
        self.offset_minutes = 0
        self.location = {}

        self.session: TrackerSession | None = None
        self.poller: SnapshotPoller | None = None
        self.active_timers: list = []
        self._reminder_target = None
        self._nightly_shown_for = None
        self._tick_id = None

        self._setup_window()
        self._build_ui()
        self._start_background_load()
        self._tick()

    # ──────────────────────────────────────────────────────────────────────
    # Window setup
    # ──────────────────────────────────────────────────────────────────────
    def _setup_window(self):
        root = self.root
        root.title("Ramadan Tracker")
        root.configure(bg=BG_DARK)
        root.resizable(False, False)
        root.attributes("-topmost", True)
        screen_w = root.winfo_screenwidth()
        screen_h = root.winfo_screenheight()
        x = screen_w - WINDOW_W - 40
        y = max(0, (screen_h - WINDOW_H) // 2)
        root.geometry(f"{WINDOW_W}x{WINDOW_H}+{x}+{y}")
        root.protocol("WM_DELETE_WINDOW", self.close)

    def _now(self) -> datetime.datetime:
        return datetime.datetime.now(self.tz)

    def _today_day(self) -> int:
        return current_ramadan_day(self._now(), self.settings.start_date, RAMADAN_DAYS)

    # ──────────────────────────────────────────────────────────────────────
    # UI construction
    # ──────────────────────────────────────────────────────────────────────
    def _build_ui(self):
        outer = tk.Frame(self.root, bg=BORDER_COLOR, bd=0)
        outer.pack(fill=tk.BOTH, expand=True, padx=2, pady=2)
        inner = tk.Frame(outer, bg=BG_DARK, bd=0)
        inner.pack(fill=tk.BOTH, expand=True, padx=1, pady=1)

        tk.Label(inner, text=PIXEL_BORDER_H, font=("Courier", 6), fg=BORDER_COLOR, bg=BG_DARK).pack(fill=tk.X)
        tk.Label(
            inner,
            text="🌙  RAMADAN TRACKER  ◆  رمضان مبارك",
            font=FONT_TITLE,
            fg=ACCENT_GOLD,
            bg=BG_DARK,
            pady=4,
        ).pack(fill=tk.X)

        tools = tk.Frame(inner, bg=BG_DARK)
        tools.pack(fill=tk.X, padx=12)
        tk.Button(
            tools, text=" 📍 Location ", font=FONT_PIXEL_SM, fg=TEXT_WHITE, bg=BG_CARD,
            bd=0, cursor="hand2", command=self._show_location_dialog,
        ).pack(side=tk.LEFT)
        tk.Button(
            tools, text=" ⚙ Storage ", font=FONT_PIXEL_SM, fg=TEXT_WHITE, bg=BG_CARD,
            bd=0, cursor="hand2", command=self._show_storage_dialog,
        ).pack(side=tk.RIGHT)

        # ── countdown panel (always visible) ──────────────────────────────
        cd = tk.Frame(inner, bg=BG_HIGHLIGHT, bd=1, relief=tk.RIDGE)
        cd.pack(fill=tk.X, padx=12, pady=4)
        self.lbl_location = tk.Label(cd, text="📍 Detecting location…", font=FONT_PIXEL_SM, fg=TEXT_DIM, bg=BG_HIGHLIGHT)
        self.lbl_location.pack()
        self.lbl_countdown_label = tk.Label(cd, text="—", font=FONT_PIXEL, fg=ACCENT_GREEN, bg=BG_HIGHLIGHT)
        self.lbl_countdown_label.pack()
        self.lbl_countdown = tk.Label(cd, text="--:--:--", font=FONT_CLOCK, fg=ACCENT_GOLD, bg=BG_HIGHLIGHT)
        self.lbl_countdown.pack()
        row = tk.Frame(cd, bg=BG_HIGHLIGHT)
        row.pack(fill=tk.X, padx=8, pady=(0, 4))
        self.lbl_seheri = tk.Label(row, text="Seheri --:--", font=FONT_PIXEL_SM, fg=TEXT_SEHERI, bg=BG_HIGHLIGHT)
        self.lbl_seheri.pack(side=tk.LEFT)
        self.lbl_iftar = tk.Label(row, text="Iftar --:--", font=FONT_PIXEL_SM, fg=TEXT_IFTAR, bg=BG_HIGHLIGHT)
        self.lbl_iftar.pack(side=tk.RIGHT)

        # ── notification banner (hidden by default) ───────────────────────
        self.notif_frame = tk.Frame(inner, bg="#2d1b00", bd=1, relief=tk.RIDGE, cursor="hand2")
        self.lbl_notif_title = tk.Label(self.notif_frame, text="", font=FONT_PIXEL, fg=ACCENT_GOLD, bg="#2d1b00")
        self.lbl_notif_title.pack(pady=2)
        self.lbl_notif_msg = tk.Label(self.notif_frame, text="", font=FONT_PIXEL_SM, fg=TEXT_WHITE, bg="#2d1b00", wraplength=480)
        self.lbl_notif_msg.pack(pady=(0, 4))
        self.notif_frame.bind("<Button-1>", lambda _e: self._hide_notif_banner())

        self._body = tk.Frame(inner, bg=BG_DARK)
        self._body.pack(fill=tk.BOTH, expand=True)
        self._build_auth_screen()
        self._build_main_screen()
        self._show_auth()

    def _build_auth_screen(self):
        self._auth = tk.Frame(self._body, bg=BG_DARK)
        tk.Label(self._auth, text="Join the group or sign in", font=FONT_PIXEL_LG, fg=ACCENT_GOLD, bg=BG_DARK).pack(pady=(30, 10))

        form = tk.Frame(self._auth, bg=BG_DARK)
        form.pack(pady=6)
        tk.Label(form, text="Name:", font=FONT_PIXEL_SM, fg=TEXT_WHITE, bg=BG_DARK, width=10, anchor="w").grid(row=0, column=0, pady=4)
        self.ent_name = tk.Entry(form, font=FONT_PIXEL_SM, fg=TEXT_WHITE, bg=BG_CARD, insertbackground=TEXT_WHITE, width=28, relief=tk.FLAT)
        self.ent_name.grid(row=0, column=1, pady=4)
        tk.Label(form, text="Password:", font=FONT_PIXEL_SM, fg=TEXT_WHITE, bg=BG_DARK, width=10, anchor="w").grid(row=1, column=0, pady=4)
        self.ent_password = tk.Entry(form, show="•", font=FONT_PIXEL_SM, fg=TEXT_WHITE, bg=BG_CARD, insertbackground=TEXT_WHITE, width=28, relief=tk.FLAT)
        self.ent_password.grid(row=1, column=1, pady=4)

        self.lbl_auth_error = tk.Label(self._auth, text="", font=FONT_PIXEL_SM, fg=TEXT_RED, bg=BG_DARK)
        self.lbl_auth_error.pack()

        btns = tk.Frame(self._auth, bg=BG_DARK)
        btns.pack(pady=10)
        tk.Button(
            btns, text="  Start My Journey  ", font=FONT_PIXEL_SM,
            fg=BG_DARK, bg=ACCENT_GOLD, activebackground="#c0a030",
            bd=0, cursor="hand2", command=lambda: self._submit_auth(register=True),
        ).pack(side=tk.LEFT, padx=6)
        tk.Button(
            btns, text="  Log In  ", font=FONT_PIXEL_SM,
            fg=BG_DARK, bg=ACCENT_GREEN, activebackground="#2ea043",
            bd=0, cursor="hand2", command=lambda: self._submit_auth(register=False),
        ).pack(side=tk.LEFT, padx=6)

    def _build_main_screen(self):
        self._main = tk.Frame(self._body, bg=BG_DARK)

        top = tk.Frame(self._main, bg=BG_DARK)
        top.pack(fill=tk.X, padx=12)
        self.lbl_user = tk.Label(top, text="", font=FONT_PIXEL, fg=ACCENT_GREEN, bg=BG_DARK)
        self.lbl_user.pack(side=tk.LEFT)
        tk.Button(
            top, text=" Sign Out ", font=FONT_PIXEL_SM, fg=TEXT_RED, bg=BG_CARD,
            bd=0, cursor="hand2", command=self._logout,
        ).pack(side=tk.RIGHT)

        self.lbl_verse_ar = tk.Label(self._main, text="", font=FONT_ARABIC, fg=ACCENT_GOLD, bg=BG_DARK, wraplength=480)
        self.lbl_verse_ar.pack(pady=(6, 0))
        self.lbl_verse_en = tk.Label(self._main, text="Loading wisdom…", font=FONT_PIXEL_SM, fg=TEXT_DIM, bg=BG_DARK, wraplength=480)
        self.lbl_verse_en.pack()

        tabs = ttk.Notebook(self._main)
        tabs.pack(fill=tk.BOTH, expand=True, padx=8, pady=6)
        self._build_dashboard_tab(tabs)
        self._build_group_tab(tabs)
        self._build_schedule_tab(tabs)

    def _build_dashboard_tab(self, tabs):
        tab = tk.Frame(tabs, bg=BG_DARK)
        tabs.add(tab, text="My Dashboard")

        totals = tk.Frame(tab, bg=BG_DARK)
        totals.pack(fill=tk.X, pady=6)
        self.lbl_totals = {}
        for key, caption in (("fastings", "Fasts"), ("prayers", "Prayers"), ("pages", "Quran Pages"), ("progress", "Progress")):
            box = tk.Frame(totals, bg=BG_CARD)
            box.pack(side=tk.LEFT, expand=True, fill=tk.X, padx=3)
            tk.Label(box, text=caption, font=FONT_PIXEL_SM, fg=TEXT_DIM, bg=BG_CARD).pack()
            lbl = tk.Label(box, text="0", font=FONT_PIXEL_LG, fg=TEXT_WHITE, bg=BG_CARD)
            lbl.pack()
            self.lbl_totals[key] = lbl

        pick = tk.Frame(tab, bg=BG_DARK)
        pick.pack(fill=tk.X, padx=6, pady=4)
        tk.Label(pick, text="Day:", font=FONT_PIXEL, fg=TEXT_WHITE, bg=BG_DARK).pack(side=tk.LEFT)
        self.var_day = tk.IntVar(value=self._today_day())
        tk.Spinbox(
            pick, from_=1, to=RAMADAN_DAYS, textvariable=self.var_day, width=4,
            font=FONT_PIXEL, command=self._refresh_day_card,
        ).pack(side=tk.LEFT, padx=4)
        self.lbl_day_date = tk.Label(pick, text="", font=FONT_PIXEL_SM, fg=TEXT_DIM, bg=BG_DARK)
        self.lbl_day_date.pack(side=tk.RIGHT)

        card = tk.Frame(tab, bg=BG_CARD, bd=1, relief=tk.RIDGE)
        card.pack(fill=tk.X, padx=6, pady=4)
        self.btn_fasting = tk.Button(
            card, text="Not Fasting", font=FONT_PIXEL, fg=TEXT_WHITE, bg=BG_HIGHLIGHT,
            bd=0, cursor="hand2", command=self._on_toggle_fasting,
        )
        self.btn_fasting.pack(fill=tk.X, padx=8, pady=6)

        salah_row = tk.Frame(card, bg=BG_CARD)
        salah_row.pack(pady=4)
        self.salah_buttons = {}
        for name in SALAH_NAMES:
            btn = tk.Button(
                salah_row, text=SALAH_DISPLAY[name], font=FONT_PIXEL_SM, width=8,
                fg=TEXT_WHITE, bg=BG_DARK, bd=0, cursor="hand2",
                command=lambda n=name: self._on_toggle_salah(n),
            )
            btn.pack(side=tk.LEFT, padx=2)
            self.salah_buttons[name] = btn

        pages_row = tk.Frame(card, bg=BG_CARD)
        pages_row.pack(pady=6)
        tk.Label(pages_row, text="📖 Quran pages:", font=FONT_PIXEL_SM, fg=TEXT_WHITE, bg=BG_CARD).pack(side=tk.LEFT)
        self.var_pages = tk.StringVar(value="0")
        ent = tk.Entry(pages_row, textvariable=self.var_pages, width=6, font=FONT_PIXEL, fg=TEXT_WHITE, bg=BG_DARK, insertbackground=TEXT_WHITE, relief=tk.FLAT)
        ent.pack(side=tk.LEFT, padx=4)
        ent.bind("<Return>", lambda _e: self._on_pages_changed())
        ent.bind("<FocusOut>", lambda _e: self._on_pages_changed())

        self.lbl_sync = tk.Label(tab, text="", font=FONT_PIXEL_SM, fg=TEXT_DIM, bg=BG_DARK)
        self.lbl_sync.pack(pady=2)

    def _build_group_tab(self, tabs):
        tab = tk.Frame(tabs, bg=BG_DARK)
        tabs.add(tab, text="Group Report")
        tk.Label(tab, text="Double-click a member to see their report.", font=FONT_PIXEL_SM, fg=TEXT_DIM, bg=BG_DARK).pack(pady=4)
        columns = ("rank", "name", "fasts", "prayers", "pages", "progress")
        self.tree_group = ttk.Treeview(tab, columns=columns, show="headings", height=16)
        for col, width in zip(columns, (40, 150, 60, 70, 60, 80)):
            self.tree_group.heading(col, text=col.title())
            self.tree_group.column(col, width=width, anchor="center")
        self.tree_group.pack(fill=tk.BOTH, expand=True, padx=4)
        self.tree_group.bind("<Double-1>", self._on_member_selected)

    def _build_schedule_tab(self, tabs):
        tab = tk.Frame(tabs, bg=BG_DARK)
        tabs.add(tab, text="Schedule")
        self.lbl_schedule_note = tk.Label(tab, text="", font=FONT_PIXEL_SM, fg=TEXT_DIM, bg=BG_DARK)
        self.lbl_schedule_note.pack(pady=4)
        columns = ("day", "date", "seheri", "iftar")
        self.tree_schedule = ttk.Treeview(tab, columns=columns, show="headings", height=18)
        for col, width in zip(columns, (60, 140, 110, 110)):
            self.tree_schedule.heading(col, text=col.title())
            self.tree_schedule.column(col, width=width, anchor="center")
        self.tree_schedule.pack(fill=tk.BOTH, expand=True, padx=4)
        self._refresh_schedule()

    def _show_auth(self):
        self._main.pack_forget()
        self._auth.pack(fill=tk.BOTH, expand=True)

    def _show_main(self):
        self._auth.pack_forget()
        self._main.pack(fill=tk.BOTH, expand=True)

    # ──────────────────────────────────────────────────────────────────────
    # Data loading (runs in background threads)
    # ──────────────────────────────────────────────────────────────────────
    def _start_background_load(self):
        threading.Thread(target=self._load_location, daemon=True).start()
        threading.Thread(target=self._restore_session, daemon=True).start()

    def _load_location(self):
        location = load_manual_location() or get_location()
        offset = location_offset(
            location, self.settings.reference_longitude, self.settings.minutes_per_degree
        )
        self.root.after(0, lambda: self._on_location_loaded(location, offset))

    def _on_location_loaded(self, location: dict, offset: int):
        self.location = location
        self.offset_minutes = offset
        self.tz = location_timezone(location, self.settings.timezone)
        self.lbl_location.config(
            text=f"📍 {location['city']}, {location['country']}  ({offset:+d} min)",
            fg=ACCENT_GREEN,
        )
        self._refresh_schedule()
        self._reminder_target = None  # boundary times moved; reschedule

    def _restore_session(self):
        user_id = load_session_user_id()
        if not user_id:
            return
        try:
            user = self.repository.get_by_id(user_id)
        except Exception as exc:
            logger.error("Could not restore session: %s", exc)
            return
        if user is not None:
            self.root.after(0, lambda: self._start_session(user))

    def _submit_auth(self, register: bool):
        name = self.ent_name.get()
        password = self.ent_password.get()
        self.lbl_auth_error.config(text="")

        def _work():
            try:
                if register:
                    user = register_user(
                        self.repository, name, password, start_date=self.settings.start_date
                    )
                else:
                    user = authenticate(self.repository, name, password)
            except (RegistrationError, AuthenticationError) as exc:
                message = str(exc)
                self.root.after(0, lambda: self.lbl_auth_error.config(text=message))
                return
            except Exception as exc:
                logger.error("Sign-in failed: %s", exc)
                message = f"Could not reach storage: {exc}"
                self.root.after(0, lambda: self.lbl_auth_error.config(text=message[:80]))
                return
            self.root.after(0, lambda: self._start_session(user))

        threading.Thread(target=_work, daemon=True).start()

    def _start_session(self, user):
        save_session_user_id(user.id)
        self.session = TrackerSession(
            self.repository, user, on_sync_error=self._on_sync_error
        )
        self.ent_name.delete(0, tk.END)
        self.ent_password.delete(0, tk.END)
        self.lbl_user.config(text=f"☪ {user.name}")
        self._show_main()
        self.var_day.set(self._today_day())
        self._refresh_all()

        threading.Thread(target=self._load_group, daemon=True).start()
        threading.Thread(target=self._load_verse, daemon=True).start()

        self.poller = SnapshotPoller(
            self.repository, self._on_remote_change, interval=self.settings.poll_interval
        )
        self.poller.start()

    def _load_group(self):
        try:
            self.session.refresh()
        except Exception as exc:
            logger.error("Could not load group: %s", exc)
            return
        self.root.after(0, self._refresh_all)

    def _load_verse(self):
        verse = fetch_daily_verse(self._today_day())
        self.root.after(0, lambda: self._show_verse(verse))

    def _show_verse(self, verse):
        self.lbl_verse_ar.config(text=verse.arabic)
        self.lbl_verse_en.config(text=f"“{verse.english}” — {verse.reference}")

    def _on_remote_change(self, event):
        """Called from the poller thread."""
        def _apply():
            if self.session is None:
                return
            self.session.apply_change(event)
            self._refresh_all()
        self.root.after(0, _apply)

    def _on_sync_error(self, exc):
        """Called from a sync thread; local edits are kept."""
        self.root.after(0, lambda: self.lbl_sync.config(text="⚠ Not saved to server yet", fg=TEXT_RED))

    def _logout(self):
        if self.poller:
            self.poller.stop(timeout=1)
            self.poller = None
        if self.session:
            self.session.close()
        self.session = None
        clear_session()
        self._show_auth()

    # ──────────────────────────────────────────────────────────────────────
    # Edits
    # ──────────────────────────────────────────────────────────────────────
    def _current_record(self):
        if self.session is None:
            return None
        try:
            day = int(self.var_day.get())
        except (tk.TclError, ValueError):
            return None
        return self.session.record_for(day)

    def _commit(self, record):
        self.session.update_record(record)
        self.lbl_sync.config(text="✓ Saved", fg=TEXT_DIM)
        self._refresh_all()

    def _on_toggle_fasting(self):
        record = self._current_record()
        if record is not None:
            self._commit(toggle_fasting(record))

    def _on_toggle_salah(self, name: str):
        record = self._current_record()
        if record is not None:
            self._commit(toggle_salah(record, name))

    def _on_pages_changed(self):
        record = self._current_record()
        if record is None:
            return
        updated = set_quran_pages(record, self.var_pages.get())
        if updated != record:
            self._commit(updated)
        else:
            self.var_pages.set(str(record.quran_pages))

    # ──────────────────────────────────────────────────────────────────────
    # Views
    # ──────────────────────────────────────────────────────────────────────
    def _refresh_all(self):
        if self.session is None:
            return
        self._refresh_totals()
        self._refresh_day_card()
        self._refresh_group()

    def _refresh_totals(self):
        stats = self.session.stats(self._today_day())
        self.lbl_totals["fastings"].config(text=str(stats.total_fastings))
        self.lbl_totals["prayers"].config(text=str(stats.total_prayers))
        self.lbl_totals["pages"].config(text=str(stats.total_pages))
        self.lbl_totals["progress"].config(text=f"{stats.overall_progress}%")

    def _refresh_day_card(self):
        record = self._current_record()
        if record is None:
            return
        self.lbl_day_date.config(text=record.date)
        self.btn_fasting.config(
            text="Fasting Today" if record.fasting else "Not Fasting",
            bg=ACCENT_GOLD if record.fasting else BG_HIGHLIGHT,
            fg=BG_DARK if record.fasting else TEXT_WHITE,
        )
        for name, btn in self.salah_buttons.items():
            done = record.salah.get(name, False)
            btn.config(bg=ACCENT_GREEN if done else BG_DARK, fg=BG_DARK if done else TEXT_WHITE)
        self.var_pages.set(str(record.quran_pages))

    def _refresh_group(self):
        self.tree_group.delete(*self.tree_group.get_children())
        for ranked in self.session.leaderboard(self._today_day()):
            user, stats = ranked.user, ranked.stats
            name = f"{user.name} (you)" if user.id == self.session.current_user.id else user.name
            self.tree_group.insert(
                "", tk.END, iid=user.id,
                values=(ranked.rank, name, stats.total_fastings, stats.total_prayers,
                        stats.total_pages, f"{stats.overall_progress}%"),
            )

    def _refresh_schedule(self):
        self.tree_schedule.delete(*self.tree_schedule.get_children())
        for day, date_str, seheri, iftar in adjusted_schedule(self.schedule, self.offset_minutes):
            self.tree_schedule.insert("", tk.END, values=(f"Day {day}", date_str, seheri, iftar))
        self.lbl_schedule_note.config(
            text=f"Timings adjusted by {self.offset_minutes:+d} min for your location"
        )

    def _on_member_selected(self, _event):
        selection = self.tree_group.selection()
        if not selection or self.session is None:
            return
        user = next((u for u in self.session.users if u.id == selection[0]), None)
        if user is None:
            return
        stats = compute_stats(user.records, self._today_day())
        lines = [
            f"Fasts: {stats.total_fastings}  ({fasting_progress(stats)}% of the month)",
            f"Prayers: {stats.total_prayers}",
            f"Quran: {stats.total_pages} pages",
            f"Progress: {stats.overall_progress}%",
            "",
        ]
        for r in user.records:
            if r.has_activity:
                lines.append(
                    f"Day {r.day:2d}: {'fasted' if r.fasting else '—'}, "
                    f"{r.prayers_done}/5 prayers, {r.quran_pages} pages"
                )
        messagebox.showinfo(f"{user.name}'s Report", "\n".join(lines), parent=self.root)

    # ──────────────────────────────────────────────────────────────────────
    # Notifications
    # ──────────────────────────────────────────────────────────────────────
    def _on_notification(self, title: str, message: str):
        """Called from a timer thread; schedule GUI update in main thread."""
        self.root.after(0, lambda: self._show_notif_banner(title, message))
        self.root.after(0, lambda: self.root.bell())

    def _show_notif_banner(self, title: str, message: str):
        self.lbl_notif_title.config(text=title)
        self.lbl_notif_msg.config(text=message)
        self.notif_frame.pack(fill=tk.X, padx=12, pady=4, before=self._body)
        self.root.after(15000, self._hide_notif_banner)

    def _hide_notif_banner(self):
        self.notif_frame.pack_forget()

    def _reschedule_reminders(self, info, now):
        """Re-arm the 10/5/0-minute reminders whenever the countdown target changes."""
        if info.target == self._reminder_target:
            return
        cancel_timers(self.active_timers)
        self._reminder_target = info.target
        name = "Iftar" if info.label == IFTAR_STARTS else "Seheri end"
        secs = int((info.target - now).total_seconds())
        self.active_timers.extend(schedule_reminders(name, secs, gui_callback=self._on_notification))

    def _check_nightly(self, now):
        if self.session is None or not is_nightly_reminder_due(now):
            return
        if self._nightly_shown_for == now.date():
            return
        self._nightly_shown_for = now.date()
        notify_nightly(callback=self._on_notification)

    # ──────────────────────────────────────────────────────────────────────
    # Location and storage dialogs
    # ──────────────────────────────────────────────────────────────────────
    def _make_dialog(self, title: str, geometry: str) -> tk.Toplevel:
        dlg = tk.Toplevel(self.root)
        dlg.title(title)
        dlg.configure(bg=BG_DARK)
        dlg.geometry(geometry)
        dlg.resizable(False, False)
        dlg.attributes("-topmost", True)
        dlg.transient(self.root)
        dlg.grab_set()
        tk.Label(dlg, text=title, font=FONT_TITLE, fg=ACCENT_GOLD, bg=BG_DARK).pack(pady=(10, 6))
        return dlg

    def _dialog_entry(self, parent, row: int, label: str, value: str = "") -> tk.Entry:
        tk.Label(
            parent, text=label, font=FONT_PIXEL_SM,
            fg=TEXT_WHITE, bg=BG_DARK, anchor="w", width=12,
        ).grid(row=row, column=0, sticky="w", pady=2)
        ent = tk.Entry(
            parent, font=FONT_PIXEL_SM,
            fg=TEXT_WHITE, bg=BG_CARD, insertbackground=TEXT_WHITE,
            width=30, relief=tk.FLAT,
        )
        ent.grid(row=row, column=1, sticky="ew", pady=2, padx=(4, 0))
        ent.insert(0, value)
        return ent

    def _dialog_button(self, parent, text: str, bg: str, command):
        tk.Button(
            parent, text=f"  {text}  ", font=FONT_PIXEL_SM,
            fg=BG_DARK if bg != BG_CARD else TEXT_WHITE, bg=bg,
            bd=0, cursor="hand2", command=command,
        ).pack(side=tk.LEFT, padx=6)

    def _show_location_dialog(self):
        """Set a manual location, or go back to IP detection."""
        dlg = self._make_dialog("📍 Set Location", "400x340")
        fields_frame = tk.Frame(dlg, bg=BG_DARK)
        fields_frame.pack(fill=tk.X, padx=20, pady=4)

        labels = ["City:", "Region:", "Country:", "Latitude:", "Longitude:", "Timezone:"]
        keys = ["city", "region", "country", "lat", "lon", "timezone"]
        entries = {
            key: self._dialog_entry(fields_frame, i, label, str(self.location.get(key, "")))
            for i, (label, key) in enumerate(zip(labels, keys))
        }
        fields_frame.columnconfigure(1, weight=1)

        def _apply():
            try:
                loc = {
                    "city": entries["city"].get().strip(),
                    "region": entries["region"].get().strip(),
                    "country": entries["country"].get().strip(),
                    "lat": float(entries["lat"].get().strip()),
                    "lon": float(entries["lon"].get().strip()),
                    "timezone": entries["timezone"].get().strip(),
                }
            except ValueError:
                messagebox.showerror(
                    "Invalid input", "Latitude and Longitude must be numbers.", parent=dlg,
                )
                return
            save_manual_location(loc)
            dlg.destroy()
            self._reload_location()

        def _refresh_ip():
            clear_manual_location()
            dlg.destroy()
            self._reload_location()

        btn_frame = tk.Frame(dlg, bg=BG_DARK)
        btn_frame.pack(pady=10)
        self._dialog_button(btn_frame, "Save", ACCENT_GREEN, _apply)
        self._dialog_button(btn_frame, "Refresh from IP", ACCENT_GOLD, _refresh_ip)
        self._dialog_button(btn_frame, "Cancel", BG_CARD, dlg.destroy)

    def _reload_location(self):
        self.lbl_location.config(text="📍 Refreshing location…", fg=TEXT_DIM)
        threading.Thread(target=self._load_location, daemon=True).start()

    def _show_storage_dialog(self):
        """Pick the storage backend; saved to the settings file, used from the next start."""
        dlg = self._make_dialog("⚙ Storage", "460x260")
        fields_frame = tk.Frame(dlg, bg=BG_DARK)
        fields_frame.pack(fill=tk.X, padx=20, pady=4)

        tk.Label(
            fields_frame, text="Backend:", font=FONT_PIXEL_SM,
            fg=TEXT_WHITE, bg=BG_DARK, anchor="w", width=12,
        ).grid(row=0, column=0, sticky="w", pady=2)
        var_backend = tk.StringVar(value=self.settings.backend)
        ttk.Combobox(
            fields_frame, textvariable=var_backend, values=BACKENDS, state="readonly", width=28,
        ).grid(row=0, column=1, sticky="ew", pady=2, padx=(4, 0))
        ent_sheet = self._dialog_entry(fields_frame, 1, "Sheet URL:", self.settings.sheet_url)
        ent_db = self._dialog_entry(fields_frame, 2, "Database URL:", self.settings.database_url)
        fields_frame.columnconfigure(1, weight=1)

        def _apply():
            backend = var_backend.get()
            sheet_url = ent_sheet.get().strip()
            if backend == "sheet" and not sheet_url:
                messagebox.showerror("Invalid input", "The sheet backend needs a URL.", parent=dlg)
                return
            self.settings.backend = backend
            self.settings.sheet_url = sheet_url
            self.settings.database_url = ent_db.get().strip() or self.settings.database_url
            try:
                save_settings(self.settings)
            except OSError as exc:
                logger.error("Could not save settings: %s", exc)
                messagebox.showerror("Settings", f"Could not save settings: {exc}", parent=dlg)
                return
            dlg.destroy()
            messagebox.showinfo(
                "Settings", "Saved. The new storage is used from the next start.", parent=self.root,
            )

        btn_frame = tk.Frame(dlg, bg=BG_DARK)
        btn_frame.pack(pady=10)
        self._dialog_button(btn_frame, "Save", ACCENT_GREEN, _apply)
        self._dialog_button(btn_frame, "Cancel", BG_CARD, dlg.destroy)

    # ──────────────────────────────────────────────────────────────────────
    # Countdown tick
    # ──────────────────────────────────────────────────────────────────────
    def _tick(self):
        """Called every second to update the countdown."""
        try:
            now = self._now()
            info = compute_countdown(
                self.schedule, now, self.offset_minutes, self.settings.start_date
            )
            if info is None:
                self.lbl_countdown_label.config(text="Ramadan has ended")
                self.lbl_countdown.config(text="——:——:——")
            else:
                fg = TEXT_SEHERI if "Seheri" in info.label else TEXT_IFTAR
                self.lbl_countdown_label.config(text=info.label, fg=fg)
                color = TEXT_RED if info.total_seconds < 300 else ACCENT_GOLD
                self.lbl_countdown.config(text=fmt_countdown(info.total_seconds), fg=color)
                self.lbl_seheri.config(text=f"Seheri {info.seheri.strftime('%H:%M')}")
                self.lbl_iftar.config(text=f"Iftar {info.iftar.strftime('%H:%M')}")
                self._reschedule_reminders(info, now)
            self._check_nightly(now)
        except Exception:
            logger.exception("Countdown tick failed")

        self._tick_id = self.root.after(REFRESH_MS, self._tick)

    def close(self):
        """Stop the tick, poller and reminder timers, then destroy the window."""
        if self._tick_id is not None:
            self.root.after_cancel(self._tick_id)
            self._tick_id = None
        if self.poller:
            self.poller.stop(timeout=1)
        if self.session:
            self.session.close()
        cancel_timers(self.active_timers)
        self.root.destroy()


# ──────────────────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────────────────
def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings()
    root = tk.Tk()
    RamadanTrackerApp(root, settings)
    root.mainloop()


if __name__ == "__main__":
    main()
